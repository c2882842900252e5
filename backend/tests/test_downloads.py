"""Tests for download tracking and free-download milestones."""
import asyncio

import pytest
from sqlalchemy import func, select

from creator_ledger.exceptions import LedgerValidationError
from creator_ledger.models.download import ProductDownloadEvent, ProductDownloadStats
from creator_ledger.models.earning import EarningEvent
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.downloads import DownloadTracker
from factories import create_product, create_user


async def seed_stats(db, product_id, free_downloads, last_milestone_count):
    db.add(ProductDownloadStats(
        product_id=product_id,
        total_downloads=free_downloads,
        free_downloads=free_downloads,
        last_milestone_count=last_milestone_count,
    ))
    await db.commit()


async def milestone_events(db):
    result = await db.execute(
        select(EarningEvent).where(EarningEvent.event_type == "free_download_milestone")
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_first_download_creates_stats(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator, price_cents=0)
    tracker = DownloadTracker(test_db)

    result = await tracker.track_download(product.uuid, "user-1", "free", ip_address="10.0.0.1")

    assert result.total_downloads == 1
    assert result.free_downloads == 1
    assert result.milestone_event is None

    stats = await tracker.get_stats(product.uuid)
    assert stats.downloads_this_week == 1
    assert stats.downloads_this_month == 1
    assert stats.last_download_at is not None
    logged = await test_db.scalar(select(func.count(ProductDownloadEvent.uuid)))
    assert logged == 1


@pytest.mark.asyncio
async def test_paid_download_does_not_count_towards_milestones(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator, price_cents=0)
    await seed_stats(test_db, product.uuid, free_downloads=49, last_milestone_count=0)

    result = await DownloadTracker(test_db).track_download(product.uuid, "user-1", "paid", order_id=None)

    assert result.free_downloads == 49
    assert result.total_downloads == 50
    assert result.milestone_event is None
    stats = await DownloadTracker(test_db).get_stats(product.uuid)
    assert stats.paid_downloads == 1


@pytest.mark.asyncio
async def test_crossing_milestone_pays_bonus_once(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator, price_cents=0, name="Free Icons")
    await seed_stats(test_db, product.uuid, free_downloads=149, last_milestone_count=100)
    tracker = DownloadTracker(test_db)

    result = await tracker.track_download(product.uuid, "user-150", "free")

    assert result.free_downloads == 150
    assert result.last_milestone_count == 150
    event = result.milestone_event
    assert event is not None
    assert event.creator_id == creator.uuid
    assert event.gross_amount_cents == 50
    assert event.platform_commission_cents == 0
    assert event.creator_amount_cents == 50
    assert event.order_id is None
    assert event.event_metadata == {"product_name": "Free Icons", "download_count": 150, "milestone": 50}

    following = await tracker.track_download(product.uuid, "user-151", "free")
    assert following.milestone_event is None
    assert following.last_milestone_count == 150

    assert len(await milestone_events(test_db)) == 1
    balance = await BalanceLedger(test_db).get_balance(creator.uuid)
    assert balance.pending_cents == 50


@pytest.mark.asyncio
async def test_paid_product_advances_counter_without_bonus(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator, price_cents=999)
    await seed_stats(test_db, product.uuid, free_downloads=49, last_milestone_count=0)

    result = await DownloadTracker(test_db).track_download(product.uuid, "user-1", "free")

    assert result.last_milestone_count == 50
    assert result.milestone_event is None
    assert await milestone_events(test_db) == []


@pytest.mark.asyncio
async def test_system_owned_free_product_earns_no_bonus(test_db):
    admin = await create_user(test_db, role="admin")
    product = await create_product(test_db, admin, price_cents=0)
    await seed_stats(test_db, product.uuid, free_downloads=49, last_milestone_count=0)

    result = await DownloadTracker(test_db).track_download(product.uuid, "user-1", "free")

    assert result.last_milestone_count == 50
    assert result.milestone_event is None
    assert await milestone_events(test_db) == []


@pytest.mark.asyncio
async def test_reset_rollups(test_db):
    creator = await create_user(test_db)
    product = await create_product(test_db, creator, price_cents=0)
    tracker = DownloadTracker(test_db)
    await tracker.track_download(product.uuid, "user-1", "free")
    await tracker.track_download(product.uuid, "user-2", "subscription")

    assert await tracker.reset_rollups("week") == 1

    stats = await tracker.get_stats(product.uuid)
    assert stats.downloads_this_week == 0
    assert stats.downloads_this_month == 2
    assert stats.total_downloads == 2
    assert stats.subscription_downloads == 1

    with pytest.raises(LedgerValidationError):
        await tracker.reset_rollups("year")


@pytest.mark.asyncio
async def test_invalid_download_type(test_db):
    with pytest.raises(LedgerValidationError, match="Unsupported download type 'pirated'"):
        await DownloadTracker(test_db).track_download("product", "user-1", "pirated")


@pytest.mark.asyncio
async def test_concurrent_downloads_crossing_milestone_fire_once(session_factory):
    async with session_factory() as db:
        creator = await create_user(db)
        product = await create_product(db, creator, price_cents=0)
        await seed_stats(db, product.uuid, free_downloads=45, last_milestone_count=0)
        product_id, creator_id = product.uuid, creator.uuid

    async def download(n):
        async with session_factory() as session:
            return await DownloadTracker(session).track_download(product_id, f"user-{n}", "free")

    results = await asyncio.gather(*(download(n) for n in range(10)))

    winners = [r for r in results if r.milestone_event is not None]
    assert len(winners) == 1
    assert sorted(r.free_downloads for r in results) == list(range(46, 56))

    async with session_factory() as db:
        stats = await DownloadTracker(db).get_stats(product_id)
        assert stats.free_downloads == 55
        assert stats.last_milestone_count == 50
        assert len(await milestone_events(db)) == 1
        balance = await BalanceLedger(db).get_balance(creator_id)
        assert balance.pending_cents == 50
