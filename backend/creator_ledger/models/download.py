"""Download tracking models feeding free-download milestones."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from creator_ledger.database import Base


class ProductDownloadStats(Base):
    """Monotonic per-product counters, updated with insert-or-add upserts."""

    __tablename__ = "product_download_stats"

    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.uuid", ondelete="CASCADE"), primary_key=True)
    total_downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Free download count at which the last milestone was paid (0, 50, 100, ...)
    last_milestone_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downloads_this_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downloads_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_download_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ProductDownloadStats(product_id={self.product_id}, total={self.total_downloads}, free={self.free_downloads})>"


class ProductDownloadEvent(Base):
    """Append-only log of individual downloads."""

    __tablename__ = "product_download_events"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.uuid", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    download_type: Mapped[str] = mapped_column(String(50), nullable=False)  # "free", "paid", "subscription"
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("orders.uuid"), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    downloaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_download_events_product", "product_id"),
        Index("idx_download_events_user", "user_id"),
        Index("idx_download_events_date", "downloaded_at"),
    )

    def __repr__(self) -> str:
        return f"<ProductDownloadEvent(product_id={self.product_id}, download_type={self.download_type})>"
