"""Earning event recording: commission split, idempotency and pending credit."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import unit_of_work
from creator_ledger.exceptions import (
    ConcurrencyConflictError,
    DuplicateProcessingError,
    LedgerValidationError,
)
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.product import Course, Product
from creator_ledger.models.states import EarningEventType, EarningStatus, SourceType, source_state
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.money import Amount, format_usd, split_commission, to_cents

logger = logging.getLogger(__name__)

# Event type and commission rate setting for each kind of sale
SALE_CONTEXTS = {
    SourceType.PRODUCT: (EarningEventType.PRODUCT_SALE, "PRODUCT_COMMISSION_RATE"),
    SourceType.COURSE: (EarningEventType.COURSE_SALE, "COURSE_COMMISSION_RATE"),
}


class EarningRecorder:
    """Creates earning events and credits the creator's pending balance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.balances = BalanceLedger(db)

    async def is_system_owned(self, source_type: SourceType, source_id: str) -> bool:
        """
        Check whether a product/course belongs to the platform.

        Platform products are sold by the system role; platform courses have
        no instructor. Revenue from them stays with the platform entirely.
        """
        if source_type == SourceType.PRODUCT:
            product = await self.db.get(Product, source_id)
            if product is None:
                return False
            return product.seller_id is None or product.seller_role == settings.SYSTEM_OWNER_ROLE
        course = await self.db.get(Course, source_id)
        if course is None:
            return False
        return course.instructor_id is None

    async def find_existing(self, order_id: str, source_id: str) -> Optional[EarningEvent]:
        result = await self.db.execute(
            select(EarningEvent)
            .where(EarningEvent.order_id == order_id, EarningEvent.source_id == source_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_earning(
        self,
        creator_id: str,
        creator_role: str,
        source_type: SourceType,
        source_id: str,
        order_id: Optional[str],
        sale_amount: Amount,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[EarningEvent]:
        """
        Stage a sale earning inside the caller's transaction.

        Returns None for platform-owned content. Raises
        DuplicateProcessingError when the (order, source) pair is already
        credited, and ConcurrencyConflictError when a concurrent writer got
        there first.
        """
        try:
            source_type = SourceType(source_type)
        except ValueError:
            raise LedgerValidationError(f"Unsupported source type '{source_type}'")
        if creator_role == settings.SYSTEM_OWNER_ROLE or await self.is_system_owned(source_type, source_id):
            logger.info(f"{source_type.value} {source_id} is system-owned, revenue stays with the platform")
            return None

        if order_id is not None and await self.find_existing(order_id, source_id) is not None:
            raise DuplicateProcessingError(
                f"Earning already recorded for order {order_id} and {source_type.value} {source_id}"
            )

        gross_cents = to_cents(sale_amount)
        if gross_cents <= 0:
            raise LedgerValidationError("Sale amount must be positive")

        event_type, rate_setting = SALE_CONTEXTS[source_type]
        split = split_commission(gross_cents, getattr(settings, rate_setting))

        event = EarningEvent(
            creator_id=creator_id,
            creator_role=creator_role,
            event_type=event_type.value,
            source_type=source_type.value,
            source_id=source_id,
            order_id=order_id,
            gross_amount_cents=split.gross_cents,
            platform_commission_cents=split.commission_cents,
            creator_amount_cents=split.creator_cents,
            status=EarningStatus.PENDING.value,
            event_metadata=metadata or {},
            event_date=datetime.utcnow(),
        )
        return await self._insert_and_credit(event)

    async def add_milestone_earning(
        self,
        product: Product,
        download_count: int,
        milestone: int,
    ) -> EarningEvent:
        """Stage a free-download milestone bonus: fixed amount, no commission."""
        split = split_commission(settings.FREE_DOWNLOAD_REWARD_CENTS, 0)
        event = EarningEvent(
            creator_id=product.seller_id,
            creator_role=product.seller_role or "freelancer",
            event_type=EarningEventType.FREE_DOWNLOAD_MILESTONE.value,
            source_type=SourceType.PRODUCT.value,
            source_id=product.uuid,
            order_id=None,
            gross_amount_cents=split.gross_cents,
            platform_commission_cents=split.commission_cents,
            creator_amount_cents=split.creator_cents,
            status=EarningStatus.PENDING.value,
            event_metadata={
                "product_name": product.name,
                "download_count": download_count,
                "milestone": milestone,
            },
            event_date=datetime.utcnow(),
        )
        return await self._insert_and_credit(event)

    async def _insert_and_credit(self, event: EarningEvent) -> EarningEvent:
        self.db.add(event)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"Earning for order {event.order_id} was recorded concurrently"
            ) from e

        if event.creator_amount_cents > 0:
            await self.balances.credit_pending(event.creator_id, event.creator_amount_cents)

        logger.info(
            f"Recorded {event.event_type} earning: {event.creator_role} {event.creator_id} earned "
            f"{format_usd(event.creator_amount_cents)} from {event.source_type} {event.source_id} (pending)"
        )
        return event

    async def record_earning(
        self,
        creator_id: str,
        creator_role: str,
        source_type: SourceType,
        source_id: str,
        order_id: Optional[str],
        sale_amount: Amount,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[EarningEvent]:
        """
        Record a sale earning as its own transaction.

        Idempotent per (order_id, source_id): a repeat call returns the event
        recorded the first time without crediting the balance again.
        """
        try:
            async with unit_of_work(self.db):
                existing = await self.find_existing(order_id, source_id) if order_id else None
                if existing is not None:
                    logger.info(f"Earning already recorded for order {order_id} and {source_id}, skipping duplicate")
                    return existing
                return await self.add_earning(
                    creator_id, creator_role, source_type, source_id, order_id, sale_amount, metadata
                )
        except (DuplicateProcessingError, ConcurrencyConflictError) as e:
            existing = await self.find_existing(order_id, source_id) if order_id else None
            if existing is None:
                raise
            logger.info(f"Skipping duplicate earning: {e.message}")
            return existing

    async def record_product_sale(
        self,
        seller_id: str,
        seller_role: str,
        product_id: str,
        order_id: str,
        sale_amount: Amount,
        product_name: str,
    ) -> Optional[EarningEvent]:
        return await self.record_earning(
            seller_id, seller_role, SourceType.PRODUCT, product_id, order_id, sale_amount,
            {"product_name": product_name, "sale_price": str(sale_amount)},
        )

    async def record_course_sale(
        self,
        teacher_id: str,
        course_id: str,
        order_id: str,
        sale_amount: Amount,
        course_name: str,
    ) -> Optional[EarningEvent]:
        return await self.record_earning(
            teacher_id, "teacher", SourceType.COURSE, course_id, order_id, sale_amount,
            {"course_name": course_name, "sale_price": str(sale_amount)},
        )

    async def list_earnings(
        self,
        creator_id: str,
        limit: int = 50,
        status: Optional[EarningStatus] = None,
    ) -> List[EarningEvent]:
        """Creator's earning events, newest first."""
        query = select(EarningEvent).where(EarningEvent.creator_id == creator_id)
        if status is not None:
            query = query.where(EarningEvent.status == EarningStatus(status).value)
        result = await self.db.execute(
            query.order_by(desc(EarningEvent.event_date), desc(EarningEvent.created_at))
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def transition_creator_events(
        self,
        creator_id: str,
        target: EarningStatus,
        payout_request_id: Optional[str] = None,
        event_ids: Optional[List[str]] = None,
    ) -> int:
        """
        Move a creator's events into *target* from the one status allowed to
        precede it (pending -> available, available -> paid).

        Restricted to *event_ids* when given. Returns the number of events moved.
        """
        values: Dict[str, Any] = {"status": target.value}
        if payout_request_id is not None:
            values["payout_request_id"] = payout_request_id

        query = (
            update(EarningEvent)
            .where(
                EarningEvent.creator_id == creator_id,
                EarningEvent.status == source_state(target).value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if event_ids is not None:
            if not event_ids:
                return 0
            query = query.where(EarningEvent.uuid.in_(event_ids))
        result = await self.db.execute(query)
        return result.rowcount
