"""Tests for the order paid hook."""
import asyncio

import pytest
from sqlalchemy import func, select

from creator_ledger.exceptions import LedgerValidationError, NotFoundError
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.order import Order, OrderItem
from creator_ledger.models.product import Product
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.orders import OrderEarningsHook
from factories import create_course, create_product, create_user


async def create_order(db, buyer, items):
    order = Order(buyer_id=buyer.uuid, status="pending")
    db.add(order)
    await db.flush()
    for item in items:
        db.add(OrderItem(order_id=order.uuid, **item))
    await db.commit()
    return order


@pytest.mark.asyncio
async def test_mark_order_paid_records_each_item(test_db):
    buyer = await create_user(test_db, role="user")
    freelancer = await create_user(test_db)
    teacher = await create_user(test_db, role="teacher")
    product = await create_product(test_db, freelancer)
    course = await create_course(test_db, teacher)
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 2, "total_price_cents": 8000},
        {"course_id": course.uuid, "quantity": 1, "total_price_cents": 10000},
    ])

    events = await OrderEarningsHook(test_db).mark_order_paid(order.uuid)

    assert len(events) == 2
    by_type = {e.event_type: e for e in events}
    assert by_type["product_sale"].creator_id == freelancer.uuid
    assert by_type["product_sale"].creator_amount_cents == 6000
    assert by_type["product_sale"].event_metadata["quantity"] == 2
    assert by_type["course_sale"].creator_id == teacher.uuid
    assert by_type["course_sale"].creator_amount_cents == 6500

    await test_db.refresh(order)
    await test_db.refresh(product)
    assert order.status == "paid"
    assert order.completed_at is None
    assert product.sales_count == 2

    ledger = BalanceLedger(test_db)
    assert (await ledger.get_balance(freelancer.uuid)).pending_cents == 6000
    assert (await ledger.get_balance(teacher.uuid)).pending_cents == 6500


@pytest.mark.asyncio
async def test_repeated_status_update_does_not_credit_again(test_db):
    buyer = await create_user(test_db, role="user")
    freelancer = await create_user(test_db)
    product = await create_product(test_db, freelancer)
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 1, "total_price_cents": 4000},
    ])
    hook = OrderEarningsHook(test_db)

    assert len(await hook.mark_order_paid(order.uuid)) == 1
    assert await hook.mark_order_paid(order.uuid, status="delivered") == []

    await test_db.refresh(order)
    await test_db.refresh(product)
    assert order.status == "delivered"
    assert order.completed_at is not None
    assert product.sales_count == 1
    assert await test_db.scalar(select(func.count(EarningEvent.uuid))) == 1
    assert (await BalanceLedger(test_db).get_balance(freelancer.uuid)).pending_cents == 3000


@pytest.mark.asyncio
async def test_free_item_order_paid_then_delivered_counts_one_sale(test_db):
    buyer = await create_user(test_db, role="user")
    freelancer = await create_user(test_db)
    product = await create_product(test_db, freelancer, price_cents=0, name="Free Icons")
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 1, "total_price_cents": 0},
    ])
    hook = OrderEarningsHook(test_db)

    assert await hook.mark_order_paid(order.uuid) == []
    assert await hook.mark_order_paid(order.uuid, status="delivered") == []

    await test_db.refresh(product)
    assert product.sales_count == 1


@pytest.mark.asyncio
async def test_lines_for_the_same_product_are_credited_together(test_db):
    buyer = await create_user(test_db, role="user")
    freelancer = await create_user(test_db)
    product = await create_product(test_db, freelancer)
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 1, "total_price_cents": 4000},
        {"product_id": product.uuid, "quantity": 2, "total_price_cents": 8000},
    ])

    events = await OrderEarningsHook(test_db).mark_order_paid(order.uuid)

    assert len(events) == 1
    assert events[0].gross_amount_cents == 12000
    assert events[0].creator_amount_cents == 9000
    assert events[0].event_metadata["quantity"] == 3
    await test_db.refresh(product)
    assert product.sales_count == 3
    assert (await BalanceLedger(test_db).get_balance(freelancer.uuid)).pending_cents == 9000


@pytest.mark.asyncio
async def test_unknown_status_is_a_validation_error(test_db):
    with pytest.raises(LedgerValidationError, match="Unknown order status 'shipped'"):
        await OrderEarningsHook(test_db).mark_order_paid("any-order", status="shipped")


@pytest.mark.asyncio
async def test_system_owned_item_counts_sale_without_earning(test_db):
    buyer = await create_user(test_db, role="user")
    admin = await create_user(test_db, role="admin")
    product = await create_product(test_db, admin, name="Platform Template")
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 1, "total_price_cents": 4000},
    ])

    events = await OrderEarningsHook(test_db).mark_order_paid(order.uuid)

    assert events == []
    await test_db.refresh(product)
    assert product.sales_count == 1


@pytest.mark.asyncio
async def test_free_item_counts_sale_without_earning(test_db):
    buyer = await create_user(test_db, role="user")
    freelancer = await create_user(test_db)
    product = await create_product(test_db, freelancer, price_cents=0, name="Free Icons")
    order = await create_order(test_db, buyer, [
        {"product_id": product.uuid, "quantity": 1, "total_price_cents": 0},
    ])

    events = await OrderEarningsHook(test_db).mark_order_paid(order.uuid)

    assert events == []
    await test_db.refresh(product)
    assert product.sales_count == 1
    balance = await BalanceLedger(test_db).get_balance(freelancer.uuid)
    assert balance.lifetime_earnings_cents == 0


@pytest.mark.asyncio
async def test_status_that_does_not_pay_creators_is_rejected(test_db):
    with pytest.raises(LedgerValidationError):
        await OrderEarningsHook(test_db).mark_order_paid("any-order", status="cancelled")


@pytest.mark.asyncio
async def test_unknown_order(test_db):
    with pytest.raises(NotFoundError):
        await OrderEarningsHook(test_db).mark_order_paid("missing-order")


@pytest.mark.asyncio
async def test_concurrent_paid_notifications_credit_once(session_factory):
    async with session_factory() as db:
        buyer = await create_user(db, role="user")
        freelancer = await create_user(db)
        product = await create_product(db, freelancer)
        order = await create_order(db, buyer, [
            {"product_id": product.uuid, "quantity": 1, "total_price_cents": 4000},
        ])
        order_id, freelancer_id, product_id = order.uuid, freelancer.uuid, product.uuid

    async def mark_paid():
        async with session_factory() as session:
            return await OrderEarningsHook(session).mark_order_paid(order_id)

    results = await asyncio.gather(mark_paid(), mark_paid())

    assert sorted(len(created) for created in results) == [0, 1]
    async with session_factory() as db:
        assert await db.scalar(select(func.count(EarningEvent.uuid))) == 1
        sales_count = await db.scalar(select(Product.sales_count).where(Product.uuid == product_id))
        assert sales_count == 1
        balance = await BalanceLedger(db).get_balance(freelancer_id)
        assert balance.pending_cents == 3000
