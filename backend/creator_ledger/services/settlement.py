"""Monthly settlement batch: pending -> available for every creator, plus auto payouts.

The job is safe to run on any date and any number of times:

* the ``settlement_runs`` row for a date (unique) is the batch mutex; a
  completed date is never reprocessed, a running one makes other invocations
  decline, a failed one may be retried;
* each creator is settled in its own transaction, so one bad row cannot hold
  back everyone else's funds; failures are collected on the run, which then
  ends ``failed`` and can be retried;
* a retry simply settles every creator still showing a pending balance.
  Creators settled by an earlier attempt have nothing pending and are not
  touched again.
"""
import logging
import time
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import unit_of_work
from creator_ledger.exceptions import DuplicateProcessingError, LedgerError
from creator_ledger.models.settlement_run import SettlementRun
from creator_ledger.models.states import (
    EarningStatus,
    NotificationType,
    SettlementStatus,
    ensure_transition,
)
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.earnings import EarningRecorder
from creator_ledger.services.money import cents_to_str, format_usd
from creator_ledger.services.notifications import NotificationService
from creator_ledger.services.payouts import PayoutManager

logger = logging.getLogger(__name__)


class CreatorSettlement(NamedTuple):
    moved_cents: int
    auto_payout_id: Optional[str]


class SettlementOutcome(NamedTuple):
    settlement_date: str
    status: str
    already_ran: bool
    message: str
    creators_processed: int = 0
    creators_failed: int = 0
    auto_payouts_created: int = 0
    total_pending_moved_cents: int = 0
    duration_ms: int = 0
    failures: Sequence[Dict[str, str]] = ()


def _declined(run: SettlementRun, message: str) -> SettlementOutcome:
    return SettlementOutcome(
        settlement_date=run.settlement_date,
        status=run.status,
        already_ran=True,
        message=message,
        creators_processed=run.creators_processed,
        creators_failed=run.creators_failed,
        auto_payouts_created=run.auto_payouts_created,
        total_pending_moved_cents=run.total_pending_moved_cents,
        duration_ms=run.duration_ms or 0,
        failures=list(run.failed_creators or []),
    )


class SettlementProcessor:
    """Runs settlement for one date using an injected session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.balances = BalanceLedger(db)
        self.earnings = EarningRecorder(db)
        self.payouts = PayoutManager(db)
        self.notifications = NotificationService(db)

    async def _lock_run(self, settlement_date: str) -> Optional[SettlementRun]:
        result = await self.db.execute(
            select(SettlementRun)
            .where(SettlementRun.settlement_date == settlement_date)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _acquire(self, settlement_date: str) -> Tuple[Optional[SettlementRun], Optional[SettlementOutcome]]:
        """
        Take the batch lock for *settlement_date*.

        Returns ``(run, None)`` when this invocation should proceed, or
        ``(None, outcome)`` when it must decline.
        """
        try:
            async with unit_of_work(self.db):
                run = await self._lock_run(settlement_date)
                now = datetime.utcnow()

                if run is not None and run.status == SettlementStatus.COMPLETED.value:
                    logger.info(f"Settlement already completed for {settlement_date} - skipping")
                    return None, _declined(run, "Settlement already completed for this date")

                if run is not None and run.status == SettlementStatus.RUNNING.value:
                    stale_before = now - timedelta(minutes=settings.SETTLEMENT_STALE_AFTER_MINUTES)
                    if run.run_at > stale_before:
                        logger.info(f"Settlement already running for {settlement_date} - skipping")
                        return None, _declined(run, "Settlement already in progress")
                    logger.warning(f"Settlement run for {settlement_date} started at {run.run_at} looks abandoned, marking failed")
                    run.status = ensure_transition(run.status, SettlementStatus.FAILED).value
                    run.error_message = "Run abandoned before completion"

                if run is not None:
                    logger.info(f"Retrying failed settlement run for {settlement_date} (attempt {run.attempts + 1})")
                    run.status = ensure_transition(run.status, SettlementStatus.RUNNING).value
                    run.attempts += 1
                    run.run_at = now
                    run.error_message = None
                    run.completed_at = None
                    run.duration_ms = None
                    return run, None

                run = SettlementRun(
                    settlement_date=settlement_date,
                    status=SettlementStatus.RUNNING.value,
                    attempts=1,
                    failed_creators=[],
                    run_at=now,
                )
                self.db.add(run)
                try:
                    await self.db.flush()
                except IntegrityError as e:
                    raise DuplicateProcessingError(
                        f"Settlement for {settlement_date} was started concurrently"
                    ) from e
                return run, None
        except DuplicateProcessingError as e:
            logger.info(f"{e.message} - skipping")
            return None, SettlementOutcome(
                settlement_date=settlement_date,
                status=SettlementStatus.RUNNING.value,
                already_ran=True,
                message="Settlement already in progress",
            )

    async def _settle_creator(self, creator_id: str, settlement_date: str) -> CreatorSettlement:
        move = await self.balances.move_pending_to_available(creator_id)
        if move.moved_cents == 0:
            return CreatorSettlement(0, None)

        await self.earnings.transition_creator_events(creator_id, EarningStatus.AVAILABLE)
        logger.info(
            f"Creator {creator_id}: moved {format_usd(move.moved_cents)} to available "
            f"(total available: {format_usd(move.available_cents)})"
        )

        if move.available_cents < settings.MINIMUM_PAYOUT_CENTS:
            return CreatorSettlement(move.moved_cents, None)

        if await self.payouts.auto_payout_exists(creator_id, settlement_date):
            logger.warning(f"Creator {creator_id} already has an auto payout for {settlement_date} - skipping duplicate")
            return CreatorSettlement(move.moved_cents, None)

        account = await self.payouts.default_account(creator_id)
        if account is None:
            logger.warning(f"Creator {creator_id} has no default payout account - leaving funds available")
            return CreatorSettlement(move.moved_cents, None)

        payout = await self.payouts.create_auto_payout(
            creator_id, move.available_cents, account, settlement_date
        )
        logger.info(f"Auto payout completed for creator {creator_id}: {format_usd(move.available_cents)} marked as paid")
        return CreatorSettlement(move.moved_cents, payout.uuid)

    async def run(self, settlement_date: Optional[date] = None) -> SettlementOutcome:
        """
        Settle every creator with a pending balance for *settlement_date*
        (today, UTC, by default).
        """
        started = time.monotonic()
        day = (settlement_date or datetime.utcnow().date()).isoformat()
        logger.info(f"Starting settlement for {day}...")

        run, declined = await self._acquire(day)
        if declined is not None:
            return declined

        processed = 0
        auto_payouts = 0
        moved_total = 0
        failures: List[Dict[str, str]] = []

        try:
            creators = [b.creator_id for b in await self.balances.creators_with_pending()]
            await self.db.commit()
            logger.info(f"Found {len(creators)} creators with pending balances")

            for creator_id in creators:
                try:
                    async with unit_of_work(self.db):
                        settled = await self._settle_creator(creator_id, day)
                except Exception as e:
                    # unit_of_work already rolled this creator back; record and move on
                    message = e.message if isinstance(e, LedgerError) else str(e)
                    logger.error(f"Settlement failed for creator {creator_id}: {message}")
                    failures.append({"creator_id": creator_id, "error": message})
                    continue

                if settled.moved_cents == 0:
                    continue
                processed += 1
                moved_total += settled.moved_cents
                if settled.auto_payout_id is not None:
                    auto_payouts += 1

            duration_ms = int((time.monotonic() - started) * 1000)
            run = await self._finish(day, processed, auto_payouts, moved_total, failures, duration_ms)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error processing settlement for {day}: {e}")
            try:
                await self._mark_failed(day, str(e), int((time.monotonic() - started) * 1000))
            except LedgerError as mark_error:
                logger.error(f"Failed to update settlement run status: {mark_error.message}")
            raise

        if failures:
            message = f"Settlement for {day} finished with {len(failures)} failed creators; retry to settle them"
            logger.error(message)
        else:
            message = f"Settlement completed for {processed} creators with {auto_payouts} automatic payouts"
            logger.info(f"{message} ({duration_ms}ms)")

        return SettlementOutcome(
            settlement_date=day,
            status=run.status,
            already_ran=False,
            message=message,
            creators_processed=processed,
            creators_failed=len(failures),
            auto_payouts_created=auto_payouts,
            total_pending_moved_cents=moved_total,
            duration_ms=duration_ms,
            failures=failures,
        )

    async def _finish(
        self,
        settlement_date: str,
        processed: int,
        auto_payouts: int,
        moved_cents: int,
        failures: List[Dict[str, str]],
        duration_ms: int,
    ) -> SettlementRun:
        async with unit_of_work(self.db):
            run = await self._lock_run(settlement_date)
            target = SettlementStatus.FAILED if failures else SettlementStatus.COMPLETED
            run.status = ensure_transition(run.status, target).value
            run.creators_processed += processed
            run.auto_payouts_created += auto_payouts
            run.total_pending_moved_cents += moved_cents
            run.creators_failed = len(failures)
            run.failed_creators = failures
            run.duration_ms = duration_ms
            if failures:
                run.error_message = f"{len(failures)} creator(s) failed to settle"
                await self.notifications.notify(
                    NotificationType.SETTLEMENT_FAILED,
                    "Settlement needs attention",
                    f"Settlement for {settlement_date} failed for {len(failures)} creator(s)",
                    related_id=run.uuid,
                )
            else:
                run.completed_at = datetime.utcnow()
        return run

    async def _mark_failed(self, settlement_date: str, error: str, duration_ms: int) -> None:
        async with unit_of_work(self.db):
            run = await self._lock_run(settlement_date)
            if run is None or run.status != SettlementStatus.RUNNING.value:
                return
            run.status = ensure_transition(run.status, SettlementStatus.FAILED).value
            run.error_message = error
            run.duration_ms = duration_ms
            await self.notifications.notify(
                NotificationType.SETTLEMENT_FAILED,
                "Settlement failed",
                f"Settlement for {settlement_date} failed: {error}",
                related_id=run.uuid,
            )

    async def preview(self) -> Dict[str, Any]:
        """What a settlement run would do right now, without changing anything."""
        creators = await self.balances.creators_with_pending()
        details = []
        total_pending = 0
        total_auto = 0
        auto_count = 0
        for balance in creators:
            new_available = balance.available_cents + balance.pending_cents
            has_account = await self.payouts.default_account(balance.creator_id) is not None
            auto = has_account and new_available >= settings.MINIMUM_PAYOUT_CENTS
            total_pending += balance.pending_cents
            if auto:
                auto_count += 1
                total_auto += new_available
            details.append({
                "creator_id": balance.creator_id,
                "current_pending": cents_to_str(balance.pending_cents),
                "current_available": cents_to_str(balance.available_cents),
                "new_available": cents_to_str(new_available),
                "has_default_account": has_account,
                "will_get_auto_payout": auto,
            })
        return {
            "total_creators": len(creators),
            "auto_payout_count": auto_count,
            "total_pending_amount": cents_to_str(total_pending),
            "total_auto_payout_amount": cents_to_str(total_auto),
            "creators": details,
        }

    async def list_runs(self, limit: int = 30) -> List[SettlementRun]:
        result = await self.db.execute(
            select(SettlementRun)
            .order_by(desc(SettlementRun.settlement_date))
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
