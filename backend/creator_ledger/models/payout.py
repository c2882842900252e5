"""Payout account and payout request models."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from creator_ledger.database import Base


class PayoutAccount(Base):
    """Bank/PayPal/crypto/mobile money destination, owned by the accounts subsystem."""

    __tablename__ = "payout_accounts"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # "bank", "paypal", "crypto", "mobile_money"
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_payout_account_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<PayoutAccount(uuid={self.uuid}, user_id={self.user_id}, type={self.type})>"


class PayoutRequest(Base):
    """Creator withdrawal, requested manually or generated by settlement."""

    __tablename__ = "creator_payout_requests"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Request info (cents)
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    amount_requested_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_approved_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payout_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payout_account_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("payout_accounts.uuid"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="awaiting_admin")

    # Auto payouts created by settlement carry the run's date
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    settlement_date: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Admin workflow
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=True)

    # Timestamps
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payout_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    payout_account: Mapped["PayoutAccount | None"] = relationship("PayoutAccount", foreign_keys=[payout_account_id])

    __table_args__ = (
        Index("idx_payout_requests_creator", "creator_id"),
        Index("idx_payout_requests_status", "status"),
        Index("idx_payout_requests_auto", "creator_id", "is_auto_generated", "settlement_date"),
    )

    @property
    def reserved_cents(self) -> int:
        """Amount this request currently holds out of the available balance."""
        if self.amount_approved_cents is not None:
            return self.amount_approved_cents
        return self.amount_requested_cents

    def __repr__(self) -> str:
        return f"<PayoutRequest(uuid={self.uuid}, creator_id={self.creator_id}, status={self.status})>"
