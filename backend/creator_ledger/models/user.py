"""User model for the creator ledger."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class User(Base):
    """Platform account. Creators are users with a freelancer or teacher role."""

    __tablename__ = "users"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # User info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Account info
    status: Mapped[str] = mapped_column(String(50), default="active")
    user_role: Mapped[str] = mapped_column(String(50), default="user")  # "user", "freelancer", "teacher", "admin"

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Indexes
    __table_args__ = (
        Index("idx_user_status", "status"),
        Index("idx_user_role", "user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(uuid={self.uuid}, email={self.email}, user_role={self.user_role})>"
