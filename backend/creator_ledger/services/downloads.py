"""Download tracking and free-download milestone rewards."""
import logging
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import dialect_insert, unit_of_work
from creator_ledger.exceptions import LedgerValidationError
from creator_ledger.models.download import ProductDownloadEvent, ProductDownloadStats
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.product import Product
from creator_ledger.models.states import DownloadType
from creator_ledger.services.earnings import EarningRecorder
from creator_ledger.services.money import format_usd

logger = logging.getLogger(__name__)

ROLLUP_COLUMNS = {
    "week": "downloads_this_week",
    "month": "downloads_this_month",
}


class DownloadResult(NamedTuple):
    total_downloads: int
    free_downloads: int
    last_milestone_count: int
    milestone_event: Optional[EarningEvent]


class DownloadTracker:
    """Counts downloads per product and pays milestone bonuses on free products."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.recorder = EarningRecorder(db)

    async def track_download(
        self,
        product_id: str,
        user_id: str,
        download_type: str,
        order_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DownloadResult:
        """
        Log a download and bump the product's counters in one transaction.

        Counters are incremented with an insert-or-add upsert, never
        read-modify-write. For free downloads the milestone counter is then
        advanced with a compare-and-set on the value just read, so when a
        burst of downloads crosses a threshold exactly one of them wins and
        pays the bonus.
        """
        try:
            kind = DownloadType(download_type)
        except ValueError:
            raise LedgerValidationError(f"Unsupported download type '{download_type}'")
        step = settings.FREE_DOWNLOAD_MILESTONE
        milestone_event = None

        async with unit_of_work(self.db):
            self.db.add(ProductDownloadEvent(
                product_id=product_id,
                user_id=user_id,
                download_type=kind.value,
                order_id=order_id,
                ip_address=ip_address,
                user_agent=user_agent,
            ))
            await self.db.flush()

            stats = await self._increment(product_id, kind)

            last_milestone = stats.last_milestone_count
            if kind == DownloadType.FREE and stats.free_downloads >= last_milestone + step:
                next_milestone = last_milestone + step
                advanced = await self.db.execute(
                    update(ProductDownloadStats)
                    .where(
                        ProductDownloadStats.product_id == product_id,
                        ProductDownloadStats.last_milestone_count == last_milestone,
                    )
                    .values(last_milestone_count=next_milestone)
                    .execution_options(synchronize_session=False)
                )
                if advanced.rowcount == 1:
                    last_milestone = next_milestone
                    logger.info(f"Free download milestone reached: {stats.free_downloads} downloads for product {product_id}")
                    milestone_event = await self._reward(product_id, stats.free_downloads)

        logger.info(f"Tracked {kind.value} download for product {product_id} by user {user_id}")
        return DownloadResult(
            total_downloads=stats.total_downloads,
            free_downloads=stats.free_downloads,
            last_milestone_count=last_milestone,
            milestone_event=milestone_event,
        )

    async def _increment(self, product_id: str, kind: DownloadType):
        now = datetime.utcnow()
        free = 1 if kind == DownloadType.FREE else 0
        paid = 1 if kind == DownloadType.PAID else 0
        subscription = 1 if kind == DownloadType.SUBSCRIPTION else 0

        stmt = dialect_insert(self.db, ProductDownloadStats).values(
            product_id=product_id,
            total_downloads=1,
            free_downloads=free,
            paid_downloads=paid,
            subscription_downloads=subscription,
            last_milestone_count=0,
            downloads_this_week=1,
            downloads_this_month=1,
            last_download_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["product_id"],
            set_={
                "total_downloads": ProductDownloadStats.total_downloads + 1,
                "free_downloads": ProductDownloadStats.free_downloads + free,
                "paid_downloads": ProductDownloadStats.paid_downloads + paid,
                "subscription_downloads": ProductDownloadStats.subscription_downloads + subscription,
                "downloads_this_week": ProductDownloadStats.downloads_this_week + 1,
                "downloads_this_month": ProductDownloadStats.downloads_this_month + 1,
                "last_download_at": now,
                "updated_at": now,
            },
        ).returning(
            ProductDownloadStats.total_downloads,
            ProductDownloadStats.free_downloads,
            ProductDownloadStats.last_milestone_count,
        )
        result = await self.db.execute(stmt)
        return result.one()

    async def _reward(self, product_id: str, download_count: int) -> Optional[EarningEvent]:
        product = await self.db.get(Product, product_id)
        if product is None or product.seller_id is None:
            return None
        if not product.is_free:
            # Paid products earn through sales, not download milestones
            return None
        if product.seller_role == settings.SYSTEM_OWNER_ROLE:
            return None

        event = await self.recorder.add_milestone_earning(
            product, download_count, settings.FREE_DOWNLOAD_MILESTONE
        )
        logger.info(
            f"Milestone earning: {product.seller_role} {product.seller_id} earned "
            f"{format_usd(event.creator_amount_cents)} for {download_count} free downloads"
        )
        return event

    async def get_stats(self, product_id: str) -> Optional[ProductDownloadStats]:
        result = await self.db.execute(
            select(ProductDownloadStats)
            .where(ProductDownloadStats.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def reset_rollups(self, period: str) -> int:
        """Zero the weekly or monthly rolling counters for every product."""
        column = ROLLUP_COLUMNS.get(period)
        if column is None:
            raise LedgerValidationError(f"Unknown rollup period '{period}'")

        async with unit_of_work(self.db):
            result = await self.db.execute(
                update(ProductDownloadStats)
                .values(**{column: 0})
                .execution_options(synchronize_session=False)
            )
        logger.info(f"Reset {column} for {result.rowcount} products")
        return result.rowcount
