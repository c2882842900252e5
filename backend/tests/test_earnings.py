"""Tests for earning event recording."""
import pytest
from sqlalchemy import func, select

from creator_ledger.exceptions import LedgerValidationError
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.states import EarningStatus
from creator_ledger.schemas.earnings import EarningResponse
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.earnings import EarningRecorder
from factories import create_course, create_product, create_user


async def count_events(db) -> int:
    return await db.scalar(select(func.count(EarningEvent.uuid)))


@pytest.mark.asyncio
async def test_product_sale_records_pending_earning(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator)

    event = await EarningRecorder(test_db).record_product_sale(
        creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name
    )

    response = EarningResponse.from_event(event)
    assert response.event_type == "product_sale"
    assert response.gross_amount == "40.00"
    assert response.platform_commission == "10.00"
    assert response.creator_amount == "30.00"
    assert response.status == "pending"
    assert response.metadata["product_name"] == "Logo Pack"

    balance = await BalanceLedger(test_db).get_balance(creator.uuid)
    assert balance.pending_cents == 3000
    assert balance.lifetime_earnings_cents == 3000
    assert balance.available_cents == 0


@pytest.mark.asyncio
async def test_course_sale_uses_course_commission(test_db):
    teacher = await create_user(test_db, role="teacher")
    course = await create_course(test_db, teacher)

    event = await EarningRecorder(test_db).record_course_sale(
        teacher.uuid, course.uuid, "order-1", "100.00", course.title
    )

    assert event.event_type == "course_sale"
    assert event.creator_role == "teacher"
    assert event.platform_commission_cents == 3500
    assert event.creator_amount_cents == 6500


@pytest.mark.asyncio
async def test_recording_same_order_twice_credits_once(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator)
    recorder = EarningRecorder(test_db)

    first = await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name)
    second = await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name)

    assert second.uuid == first.uuid
    assert await count_events(test_db) == 1
    balance = await BalanceLedger(test_db).get_balance(creator.uuid)
    assert balance.pending_cents == 3000


@pytest.mark.asyncio
async def test_concurrent_duplicate_hits_unique_constraint(test_db, monkeypatch):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator)
    creator_id, product_id = creator.uuid, product.uuid
    recorder = EarningRecorder(test_db)
    first = await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name)

    # A concurrent writer passed the existence check before the first insert committed
    real_find_existing = EarningRecorder.find_existing
    calls = []

    async def miss_first_lookup(self, order_id, source_id):
        calls.append(order_id)
        if len(calls) == 1:
            return None
        return await real_find_existing(self, order_id, source_id)

    monkeypatch.setattr(EarningRecorder, "find_existing", miss_first_lookup)

    second = await recorder.record_product_sale(creator_id, "freelancer", product_id, "order-1", "40.00", "Logo Pack")

    assert second.uuid == first.uuid
    assert len(calls) == 2
    assert await count_events(test_db) == 1
    balance = await BalanceLedger(test_db).get_balance(creator_id)
    assert balance.pending_cents == 3000
    assert balance.lifetime_earnings_cents == 3000


@pytest.mark.asyncio
async def test_system_owned_product_earns_nothing(test_db):
    admin = await create_user(test_db, role="admin")
    product = await create_product(test_db, admin)

    event = await EarningRecorder(test_db).record_earning(
        admin.uuid, "admin", "product", product.uuid, "order-1", "40.00"
    )

    assert event is None
    assert await count_events(test_db) == 0
    balance = await BalanceLedger(test_db).get_balance(admin.uuid)
    assert balance.pending_cents == 0


@pytest.mark.asyncio
async def test_product_sold_by_system_role_earns_nothing_for_named_creator(test_db):
    admin = await create_user(test_db, role="admin")
    creator = await create_user(test_db)
    product = await create_product(test_db, admin)

    event = await EarningRecorder(test_db).record_earning(
        creator.uuid, "freelancer", "product", product.uuid, "order-1", "40.00"
    )

    assert event is None
    assert await count_events(test_db) == 0


@pytest.mark.asyncio
async def test_course_without_instructor_is_platform_content(test_db):
    teacher = await create_user(test_db, role="teacher")
    course = await create_course(test_db, None)

    event = await EarningRecorder(test_db).record_course_sale(
        teacher.uuid, course.uuid, "order-1", "100.00", course.title
    )

    assert event is None
    assert await count_events(test_db) == 0


@pytest.mark.asyncio
async def test_non_positive_sale_is_rejected(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator)

    with pytest.raises(LedgerValidationError):
        await EarningRecorder(test_db).record_product_sale(
            creator.uuid, "freelancer", product.uuid, "order-1", "0.00", product.name
        )

    assert await count_events(test_db) == 0


@pytest.mark.asyncio
async def test_unknown_source_type_is_rejected(test_db):
    creator = await create_user(test_db)
    creator_id = creator.uuid

    with pytest.raises(LedgerValidationError, match="Unsupported source type 'bundle'"):
        await EarningRecorder(test_db).record_earning(
            creator_id, "freelancer", "bundle", "bundle-1", "order-1", "40.00"
        )

    assert await count_events(test_db) == 0
    balance = await BalanceLedger(test_db).get_balance(creator_id)
    assert balance.pending_cents == 0


@pytest.mark.asyncio
async def test_list_earnings_filters_by_status(test_db):
    creator = await create_user(test_db)
    other = await create_user(test_db)
    product = await create_product(test_db, creator)
    other_product = await create_product(test_db, other)
    recorder = EarningRecorder(test_db)

    await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name)
    await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-2", "20.00", product.name)
    await recorder.record_product_sale(other.uuid, "freelancer", other_product.uuid, "order-3", "20.00", other_product.name)

    moved = await recorder.transition_creator_events(creator.uuid, EarningStatus.AVAILABLE)
    await test_db.commit()
    assert moved == 2

    await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-4", "8.00", product.name)

    all_events = await recorder.list_earnings(creator.uuid)
    assert [e.order_id for e in all_events] == ["order-4", "order-2", "order-1"]

    pending = await recorder.list_earnings(creator.uuid, status=EarningStatus.PENDING)
    assert [e.order_id for e in pending] == ["order-4"]

    available = await recorder.list_earnings(creator.uuid, status="available")
    assert {e.order_id for e in available} == {"order-1", "order-2"}


@pytest.mark.asyncio
async def test_transition_only_moves_events_from_preceding_status(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator)
    recorder = EarningRecorder(test_db)
    await recorder.record_product_sale(creator.uuid, "freelancer", product.uuid, "order-1", "40.00", product.name)

    # pending events cannot jump straight to paid
    assert await recorder.transition_creator_events(creator.uuid, EarningStatus.PAID) == 0
    assert await recorder.transition_creator_events(creator.uuid, EarningStatus.AVAILABLE) == 1
    assert await recorder.transition_creator_events(creator.uuid, EarningStatus.AVAILABLE) == 0
    assert await recorder.transition_creator_events(creator.uuid, EarningStatus.PAID, event_ids=[]) == 0
    await test_db.commit()
