"""Service functions for atomic creator balance operations.

Balances are never read, changed in Python and written back.  Every
mutation is either an insert-or-add upsert or an UPDATE expressed as a delta
on the current column value, taken after locking the creator's row with
SELECT FOR UPDATE where the new value depends on what is there.
"""
import logging
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import dialect_insert, unit_of_work
from creator_ledger.exceptions import (
    InsufficientBalanceError,
    LedgerValidationError,
    NotFoundError,
)
from creator_ledger.models.balance import CreatorBalance
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.payout import PayoutRequest
from creator_ledger.models.states import EarningStatus, PayoutStatus, OPEN_PAYOUT_STATUSES
from creator_ledger.services.money import cents_to_str, format_usd

logger = logging.getLogger(__name__)


def next_payout_date(now: Optional[datetime] = None) -> datetime:
    """Payout day of the month following *now* (the 5th by default)."""
    now = now or datetime.utcnow()
    if now.month == 12:
        year, month = now.year + 1, 1
    else:
        year, month = now.year, now.month + 1
    return datetime(year, month, settings.PAYOUT_DAY_OF_MONTH)


class BalanceMove(NamedTuple):
    moved_cents: int
    available_cents: int


class BalanceLedger:
    """Delta operations on CreatorBalance rows.

    Methods only flush; the caller owns the transaction so several ledger
    steps can commit or roll back together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _lock(self, creator_id: str) -> Optional[CreatorBalance]:
        result = await self.db.execute(
            select(CreatorBalance)
            .where(CreatorBalance.creator_id == creator_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _apply(self, creator_id: str, **values) -> None:
        values["updated_at"] = datetime.utcnow()
        result = await self.db.execute(
            update(CreatorBalance)
            .where(CreatorBalance.creator_id == creator_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"No balance found for creator {creator_id}")

    async def get_balance(self, creator_id: str) -> CreatorBalance:
        """Current balance row, or an unsaved zero balance for unknown creators."""
        result = await self.db.execute(
            select(CreatorBalance)
            .where(CreatorBalance.creator_id == creator_id)
            .execution_options(populate_existing=True)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            return CreatorBalance(
                creator_id=creator_id,
                available_cents=0,
                pending_cents=0,
                lifetime_earnings_cents=0,
                total_withdrawn_cents=0,
                next_payout_date=next_payout_date(),
            )
        return balance

    async def creators_with_pending(self) -> List[CreatorBalance]:
        result = await self.db.execute(
            select(CreatorBalance)
            .where(CreatorBalance.pending_cents > 0)
            .order_by(CreatorBalance.creator_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def credit_pending(self, creator_id: str, amount_cents: int) -> None:
        """
        Add earnings to pending and lifetime balances.

        Creates the balance row on a creator's first earning.
        """
        if amount_cents <= 0:
            raise LedgerValidationError("Credit amount must be positive")

        now = datetime.utcnow()
        stmt = dialect_insert(self.db, CreatorBalance).values(
            creator_id=creator_id,
            available_cents=0,
            pending_cents=amount_cents,
            lifetime_earnings_cents=amount_cents,
            total_withdrawn_cents=0,
            next_payout_date=next_payout_date(now),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["creator_id"],
            set_={
                "pending_cents": CreatorBalance.pending_cents + amount_cents,
                "lifetime_earnings_cents": CreatorBalance.lifetime_earnings_cents + amount_cents,
                "updated_at": now,
            },
        )
        await self.db.execute(stmt)
        logger.info(f"Credited {format_usd(amount_cents)} to pending balance of creator {creator_id}")

    async def move_pending_to_available(self, creator_id: str) -> BalanceMove:
        """
        Move the whole pending balance to available and stamp payout dates.

        A creator with nothing pending is left untouched, so repeating the
        call is harmless.
        """
        balance = await self._lock(creator_id)
        if balance is None or balance.pending_cents == 0:
            available = balance.available_cents if balance else 0
            return BalanceMove(moved_cents=0, available_cents=available)

        moved = balance.pending_cents
        now = datetime.utcnow()
        await self._apply(
            creator_id,
            available_cents=CreatorBalance.available_cents + moved,
            pending_cents=CreatorBalance.pending_cents - moved,
            last_payout_date=now,
            next_payout_date=next_payout_date(now),
        )
        logger.info(f"Moved {format_usd(moved)} from pending to available for creator {creator_id}")
        return BalanceMove(moved_cents=moved, available_cents=balance.available_cents + moved)

    async def debit_available(self, creator_id: str, amount_cents: int) -> None:
        """
        Reserve funds from the available balance.

        Raises InsufficientBalanceError if the amount exceeds what is available.
        The check and the debit happen under the same row lock.
        """
        if amount_cents <= 0:
            raise LedgerValidationError("Debit amount must be positive")

        balance = await self._lock(creator_id)
        available = balance.available_cents if balance else 0
        if available < amount_cents:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {format_usd(available)}",
                {"available": cents_to_str(available), "requested": cents_to_str(amount_cents)},
            )

        await self._apply(creator_id, available_cents=CreatorBalance.available_cents - amount_cents)

    async def credit_available(self, creator_id: str, amount_cents: int) -> None:
        """Return reserved funds to the available balance."""
        if amount_cents <= 0:
            raise LedgerValidationError("Credit amount must be positive")
        await self._apply(creator_id, available_cents=CreatorBalance.available_cents + amount_cents)

    async def record_withdrawal(
        self,
        creator_id: str,
        amount_cents: int,
        from_available: bool = False,
    ) -> None:
        """
        Count a completed payout in total_withdrawn.

        Manual payouts already left available when they were requested; auto
        payouts pass ``from_available=True`` to debit it in the same statement.
        """
        if amount_cents <= 0:
            raise LedgerValidationError("Withdrawal amount must be positive")
        values = {"total_withdrawn_cents": CreatorBalance.total_withdrawn_cents + amount_cents}
        if from_available:
            values["available_cents"] = CreatorBalance.available_cents - amount_cents
        await self._apply(creator_id, **values)

    async def expected_totals(self, creator_id: str) -> Dict[str, int]:
        """Balance fields as implied by earning events and payout requests."""
        lifetime = await self.db.scalar(
            select(func.coalesce(func.sum(EarningEvent.creator_amount_cents), 0))
            .where(EarningEvent.creator_id == creator_id)
        )
        pending = await self.db.scalar(
            select(func.coalesce(func.sum(EarningEvent.creator_amount_cents), 0))
            .where(
                EarningEvent.creator_id == creator_id,
                EarningEvent.status == EarningStatus.PENDING.value,
            )
        )
        held = func.coalesce(PayoutRequest.amount_approved_cents, PayoutRequest.amount_requested_cents)
        withdrawn = await self.db.scalar(
            select(func.coalesce(func.sum(held), 0))
            .where(
                PayoutRequest.creator_id == creator_id,
                PayoutRequest.status == PayoutStatus.COMPLETED.value,
            )
        )
        reserved = await self.db.scalar(
            select(func.coalesce(func.sum(held), 0))
            .where(
                PayoutRequest.creator_id == creator_id,
                PayoutRequest.status.in_([s.value for s in OPEN_PAYOUT_STATUSES]),
            )
        )
        lifetime, pending, withdrawn, reserved = (int(v) for v in (lifetime, pending, withdrawn, reserved))
        return {
            "available_cents": lifetime - pending - withdrawn - reserved,
            "pending_cents": pending,
            "lifetime_earnings_cents": lifetime,
            "total_withdrawn_cents": withdrawn,
        }

    async def reconcile(self, creator_id: str) -> Dict[str, Dict[str, int]]:
        """
        Recompute a creator's cached balance from earning and payout history.

        This is the only operation that overwrites balance values instead of
        applying deltas; it exists to recover from drift. Returns the
        ``before`` and ``after`` values.
        """
        async with unit_of_work(self.db):
            current = await self._lock(creator_id)
            totals = await self.expected_totals(creator_id)

            if current is None:
                before = {key: 0 for key in totals}
                now = datetime.utcnow()
                self.db.add(CreatorBalance(
                    creator_id=creator_id,
                    next_payout_date=next_payout_date(now),
                    created_at=now,
                    updated_at=now,
                    **totals,
                ))
            else:
                before = {key: getattr(current, key) for key in totals}
                await self._apply(creator_id, **totals)

        if before != totals:
            logger.warning(f"Reconciled drifted balance for creator {creator_id}: {before} -> {totals}")
        else:
            logger.info(f"Balance for creator {creator_id} already consistent")
        return {"before": before, "after": totals}
