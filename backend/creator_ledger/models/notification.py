"""Admin notification model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class AdminNotification(Base):
    """Ledger events that need an administrator's attention."""

    __tablename__ = "admin_notifications"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # "payout_request", "settlement_failed"
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_admin_notifications_type", "type"),
        Index("idx_admin_notifications_is_read", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<AdminNotification(uuid={self.uuid}, type={self.type}, is_read={self.is_read})>"
