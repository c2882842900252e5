"""Earning event model: one row per credit to a creator."""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from creator_ledger.database import Base


class EarningEvent(Base):
    """Records each sale or milestone credited to a creator.

    All amounts stored in cents (USD). Rows are immutable apart from the
    status moving pending -> available -> paid.
    """
    __tablename__ = "creator_earning_events"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    creator_role: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # "product_sale", "course_sale", "free_download_milestone"
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)  # "product", "course"
    source_id: Mapped[str] = mapped_column(String(36), nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("orders.uuid"), nullable=True)
    gross_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_commission_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    creator_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    payout_request_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        # Exactly one credit per order line; milestones have no order and never collide
        UniqueConstraint("order_id", "source_id", "event_type", name="uniq_earning_order_source"),
        Index("idx_earning_events_creator", "creator_id"),
        Index("idx_earning_events_status", "status"),
        Index("idx_earning_events_date", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<EarningEvent(uuid={self.uuid}, creator_id={self.creator_id}, event_type={self.event_type}, status={self.status})>"
