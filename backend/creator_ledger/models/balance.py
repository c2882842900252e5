"""Creator balance model: cached running totals per creator."""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class CreatorBalance(Base):
    """One row per creator, mutated only through atomic deltas.

    lifetime_earnings == available + pending + total_withdrawn + amounts
    reserved by open payout requests.
    """

    __tablename__ = "creator_balances"

    # Primary key
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), primary_key=True)

    # Balances (cents)
    available_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifetime_earnings_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_withdrawn_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Payout schedule
    last_payout_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_payout_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<CreatorBalance(creator_id={self.creator_id}, available={self.available_cents}, "
            f"pending={self.pending_cents})>"
        )
