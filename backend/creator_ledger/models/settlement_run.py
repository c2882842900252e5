"""Settlement run model: audit record and per-date mutex for the batch job."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class SettlementRun(Base):
    """One row per settlement date. The unique date is the batch lock."""

    __tablename__ = "settlement_runs"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    settlement_date: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)  # YYYY-MM-DD
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="running")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Metrics, accumulated across retries
    creators_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    creators_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_payouts_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pending_moved_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_creators: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    run_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_settlement_runs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<SettlementRun(settlement_date={self.settlement_date}, status={self.status})>"
