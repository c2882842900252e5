"""Order status hook: credit creators exactly once when an order is paid."""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import unit_of_work
from creator_ledger.exceptions import (
    ConcurrencyConflictError,
    DuplicateProcessingError,
    LedgerValidationError,
    NotFoundError,
)
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.order import Order, OrderItem
from creator_ledger.models.product import Course, Product
from creator_ledger.models.states import OrderStatus, SourceType
from creator_ledger.services.earnings import EarningRecorder
from creator_ledger.services.money import cents_to_str

logger = logging.getLogger(__name__)

EARNING_STATUSES = (OrderStatus.PAID, OrderStatus.DELIVERED)
EARNING_STATUS_VALUES = {s.value for s in EARNING_STATUSES}


class SaleLine(NamedTuple):
    source_type: SourceType
    source_id: str
    quantity: int
    total_price_cents: int


class OrderEarningsHook:
    """Called by the checkout flow when an order becomes paid or delivered."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.recorder = EarningRecorder(db)

    async def mark_order_paid(self, order_id: str, status: str = OrderStatus.PAID.value) -> List[EarningEvent]:
        """
        Set the order status and record one earning per order item.

        The order row is locked for the whole transaction, so two concurrent
        "mark paid" calls for the same order serialize and only the first
        creates earning events. Lock conflicts are retried a few times.

        Returns the earning events created by this call (empty on repeats).
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            raise LedgerValidationError(f"Unknown order status '{status}'")
        if target not in EARNING_STATUSES:
            raise LedgerValidationError(f"Order status '{target.value}' does not trigger earnings")

        attempts = settings.ORDER_HOOK_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                return await self._apply(order_id, target)
            except ConcurrencyConflictError:
                if attempt == attempts:
                    raise
                logger.warning(f"Conflict recording earnings for order {order_id}, retry {attempt}/{attempts - 1}")
                await asyncio.sleep(0.05 * attempt)
        return []

    async def _apply(self, order_id: str, target: OrderStatus) -> List[EarningEvent]:
        created: List[EarningEvent] = []
        async with unit_of_work(self.db):
            result = await self.db.execute(
                select(Order)
                .where(Order.uuid == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            order = result.scalar_one_or_none()
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            previous = order.status
            now = datetime.utcnow()
            order.status = target.value
            order.updated_at = now
            if target == OrderStatus.DELIVERED:
                order.completed_at = now

            if previous in EARNING_STATUS_VALUES:
                logger.info(f"Order {order_id} was already {previous}, skipping duplicate processing")
                return created

            already = await self.db.scalar(
                select(EarningEvent.uuid).where(EarningEvent.order_id == order_id).limit(1)
            )
            if already is not None:
                logger.info(f"Order {order_id} already has earning events, skipping duplicate processing")
                return created

            items = await self.db.execute(select(OrderItem).where(OrderItem.order_id == order_id))
            for line in merge_lines(items.scalars().all()):
                event = await self._record_line(order_id, line)
                if event is not None:
                    created.append(event)

        logger.info(f"Recorded {len(created)} earning events for order {order_id}")
        return created

    async def _record_line(self, order_id: str, line: SaleLine):
        sale_amount = cents_to_str(line.total_price_cents)
        charged = line.total_price_cents > 0

        if line.source_type == SourceType.PRODUCT:
            product = await self.db.get(Product, line.source_id)
            if product is None or product.seller_id is None:
                return None
            event = None
            if charged:
                try:
                    event = await self.recorder.add_earning(
                        product.seller_id, product.seller_role or "freelancer", SourceType.PRODUCT,
                        product.uuid, order_id, sale_amount,
                        {"product_name": product.name, "sale_price": sale_amount, "quantity": line.quantity},
                    )
                except DuplicateProcessingError as e:
                    logger.info(f"Skipping duplicate earning: {e.message}")
                    return None
            await self.db.execute(
                update(Product)
                .where(Product.uuid == product.uuid)
                .values(sales_count=Product.sales_count + line.quantity)
                .execution_options(synchronize_session=False)
            )
            return event

        if not charged:
            return None
        course = await self.db.get(Course, line.source_id)
        if course is None or course.instructor_id is None:
            return None
        try:
            return await self.recorder.add_earning(
                course.instructor_id, "teacher", SourceType.COURSE, course.uuid, order_id,
                sale_amount, {"course_name": course.title, "sale_price": sale_amount},
            )
        except DuplicateProcessingError as e:
            logger.info(f"Skipping duplicate earning: {e.message}")
            return None


def merge_lines(items: Iterable[OrderItem]) -> List[SaleLine]:
    """
    Collapse order items into one line per product or course.

    Earnings are keyed by (order, source), so two items for the same product
    must be credited as a single sale.
    """
    merged: Dict[Tuple[SourceType, str], SaleLine] = {}
    for item in items:
        if item.product_id:
            key = (SourceType.PRODUCT, item.product_id)
        elif item.course_id:
            key = (SourceType.COURSE, item.course_id)
        else:
            continue
        line = merged.get(key)
        if line is None:
            merged[key] = SaleLine(key[0], key[1], item.quantity, item.total_price_cents)
        else:
            merged[key] = line._replace(
                quantity=line.quantity + item.quantity,
                total_price_cents=line.total_price_cents + item.total_price_cents,
            )
    return list(merged.values())
