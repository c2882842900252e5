"""Payout request lifecycle: creator withdrawals and the admin workflow.

awaiting_admin -> approved -> payment_processing -> completed
awaiting_admin -> rejected

Funds leave the available balance when a payout is requested and come back
if it is rejected (or approved for less than requested). They are counted as
withdrawn once the payout completes.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.config import settings
from creator_ledger.database import unit_of_work
from creator_ledger.exceptions import LedgerError, LedgerValidationError, NotFoundError
from creator_ledger.models.earning import EarningEvent
from creator_ledger.models.payout import PayoutAccount, PayoutRequest
from creator_ledger.models.states import (
    EarningStatus,
    NotificationType,
    PayoutMethod,
    PayoutStatus,
    ensure_transition,
)
from creator_ledger.services.balance import BalanceLedger, next_payout_date
from creator_ledger.services.earnings import EarningRecorder
from creator_ledger.services.money import Amount, format_usd, to_cents
from creator_ledger.services.notifications import NotificationService

logger = logging.getLogger(__name__)


class BulkItemResult(NamedTuple):
    request_id: str
    success: bool
    status: Optional[str] = None
    reason: Optional[str] = None


class PayoutManager:
    """Creates payout requests and moves them through the admin workflow."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.balances = BalanceLedger(db)
        self.earnings = EarningRecorder(db)
        self.notifications = NotificationService(db)

    async def _lock_request(self, request_id: str) -> PayoutRequest:
        result = await self.db.execute(
            select(PayoutRequest)
            .where(PayoutRequest.uuid == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payout = result.scalar_one_or_none()
        if payout is None:
            raise NotFoundError("Payout request not found")
        return payout

    async def get_request(self, request_id: str) -> PayoutRequest:
        payout = await self.db.get(PayoutRequest, request_id, populate_existing=True)
        if payout is None:
            raise NotFoundError("Payout request not found")
        return payout

    async def list_requests(
        self,
        creator_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 100,
    ) -> List[PayoutRequest]:
        query = select(PayoutRequest)
        if creator_id is not None:
            query = query.where(PayoutRequest.creator_id == creator_id)
        if status is not None:
            query = query.where(PayoutRequest.status == PayoutStatus(status).value)
        result = await self.db.execute(
            query.order_by(desc(PayoutRequest.requested_at))
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def request_payout(
        self,
        creator_id: str,
        amount: Amount,
        payout_method: str,
        payout_account_id: str,
        notes: Optional[str] = None,
    ) -> PayoutRequest:
        """
        Reserve funds for a withdrawal and queue it for admin review.

        Raises:
            LedgerValidationError: amount below minimum, unknown method, or
                the account does not belong to the creator / match the method.
            InsufficientBalanceError: amount exceeds the available balance.
        """
        amount_cents = to_cents(amount)
        if amount_cents < settings.MINIMUM_PAYOUT_CENTS:
            raise LedgerValidationError(
                f"Minimum payout amount is {format_usd(settings.MINIMUM_PAYOUT_CENTS)}"
            )
        try:
            method = PayoutMethod(payout_method)
        except ValueError:
            raise LedgerValidationError(f"Unsupported payout method '{payout_method}'")

        async with unit_of_work(self.db):
            account = await self.db.scalar(
                select(PayoutAccount).where(
                    PayoutAccount.uuid == payout_account_id,
                    PayoutAccount.user_id == creator_id,
                    PayoutAccount.type == method.value,
                )
            )
            if account is None:
                raise LedgerValidationError("Payout account not found or method mismatch")

            await self.balances.debit_available(creator_id, amount_cents)

            payout = PayoutRequest(
                creator_id=creator_id,
                amount_requested_cents=amount_cents,
                payout_method=method.value,
                payout_account_id=account.uuid,
                status=PayoutStatus.AWAITING_ADMIN.value,
                is_auto_generated=False,
                requested_at=datetime.utcnow(),
                payout_date=next_payout_date(),
                admin_notes=notes,
            )
            self.db.add(payout)
            await self.db.flush()

            await self.notifications.notify(
                NotificationType.PAYOUT_REQUEST,
                "Payout requested",
                f"Creator {creator_id} requested {format_usd(amount_cents)} via {method.value}",
                related_id=payout.uuid,
            )

        logger.info(f"Payout request created: {creator_id} requested {format_usd(amount_cents)} via {method.value}")
        return payout

    async def approve(
        self,
        request_id: str,
        approved_amount: Optional[Amount] = None,
        payment_reference: Optional[str] = None,
        admin_notes: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> PayoutRequest:
        """Approve an awaiting request, optionally for less than requested."""
        async with unit_of_work(self.db):
            payout = await self._lock_request(request_id)
            ensure_transition(payout.status, PayoutStatus.APPROVED)

            requested = payout.amount_requested_cents
            approved = requested if approved_amount is None else to_cents(approved_amount)
            if approved <= 0 or approved > requested:
                raise LedgerValidationError(
                    f"Approved amount must be between $0.01 and {format_usd(requested)}"
                )
            if approved < requested:
                await self.balances.credit_available(payout.creator_id, requested - approved)

            now = datetime.utcnow()
            payout.status = PayoutStatus.APPROVED.value
            payout.amount_approved_cents = approved
            payout.payment_reference = payment_reference or payout.payment_reference
            payout.admin_notes = admin_notes or payout.admin_notes
            payout.processed_by = admin_id
            payout.approved_at = now
            payout.processed_at = now

        logger.info(f"Payout request {request_id} approved for {format_usd(approved)} by admin {admin_id}")
        return payout

    async def reject(
        self,
        request_id: str,
        reason: str,
        admin_notes: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> PayoutRequest:
        """Reject an awaiting request and return the reserved funds."""
        if not reason or not reason.strip():
            raise LedgerValidationError("Rejection reason is required")

        async with unit_of_work(self.db):
            payout = await self._lock_request(request_id)
            ensure_transition(payout.status, PayoutStatus.REJECTED)

            await self.balances.credit_available(payout.creator_id, payout.reserved_cents)

            payout.status = PayoutStatus.REJECTED.value
            payout.rejection_reason = reason.strip()
            payout.admin_notes = admin_notes or payout.admin_notes
            payout.processed_by = admin_id
            payout.processed_at = datetime.utcnow()

        logger.info(f"Payout request {request_id} rejected by admin {admin_id}, funds returned to creator")
        return payout

    async def mark_paid(
        self,
        request_id: str,
        payment_reference: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> PayoutRequest:
        """Record that an approved payout was sent: approved -> payment_processing."""
        async with unit_of_work(self.db):
            payout = await self._lock_request(request_id)
            ensure_transition(payout.status, PayoutStatus.PAYMENT_PROCESSING)

            payout.status = PayoutStatus.PAYMENT_PROCESSING.value
            payout.payment_reference = payment_reference or payout.payment_reference
            payout.processed_by = admin_id
            payout.processed_at = datetime.utcnow()

        logger.info(f"Payout {request_id} marked as paid by admin {admin_id}")
        return payout

    async def complete(self, request_id: str, admin_id: Optional[str] = None) -> PayoutRequest:
        """
        Finalize a processed payout: payment_processing -> completed.

        Counts the amount as withdrawn and marks the creator's oldest
        available earnings covered by it as paid.
        """
        async with unit_of_work(self.db):
            payout = await self._lock_request(request_id)
            ensure_transition(payout.status, PayoutStatus.COMPLETED)

            amount = payout.reserved_cents
            await self.balances.record_withdrawal(payout.creator_id, amount)
            await self._settle_events(payout.creator_id, payout.uuid, amount)

            payout.status = PayoutStatus.COMPLETED.value
            payout.processed_by = admin_id or payout.processed_by
            payout.finalized_at = datetime.utcnow()

        logger.info(f"Payout {request_id} completed: {format_usd(amount)} withdrawn by creator {payout.creator_id}")
        return payout

    async def _settle_events(self, creator_id: str, payout_id: str, amount_cents: int) -> int:
        result = await self.db.execute(
            select(EarningEvent.uuid, EarningEvent.creator_amount_cents)
            .where(
                EarningEvent.creator_id == creator_id,
                EarningEvent.status == EarningStatus.AVAILABLE.value,
            )
            .order_by(EarningEvent.event_date, EarningEvent.created_at)
        )
        covered: List[str] = []
        remaining = amount_cents
        for event_id, event_cents in result.all():
            if event_cents > remaining:
                break
            covered.append(event_id)
            remaining -= event_cents
        return await self.earnings.transition_creator_events(
            creator_id, EarningStatus.PAID, payout_request_id=payout_id, event_ids=covered
        )

    async def auto_payout_exists(self, creator_id: str, settlement_date: str) -> bool:
        existing = await self.db.scalar(
            select(PayoutRequest.uuid).where(
                PayoutRequest.creator_id == creator_id,
                PayoutRequest.is_auto_generated.is_(True),
                PayoutRequest.settlement_date == settlement_date,
            ).limit(1)
        )
        return existing is not None

    async def default_account(self, creator_id: str) -> Optional[PayoutAccount]:
        return await self.db.scalar(
            select(PayoutAccount)
            .where(PayoutAccount.user_id == creator_id, PayoutAccount.is_default.is_(True))
            .limit(1)
        )

    async def create_auto_payout(
        self,
        creator_id: str,
        amount_cents: int,
        account: PayoutAccount,
        settlement_date: str,
    ) -> PayoutRequest:
        """
        Stage a completed auto payout for the whole available balance.

        Runs inside the settlement transaction for one creator: the payout
        row, the balance debit and the paid flag on earnings commit together.
        """
        now = datetime.utcnow()
        payout = PayoutRequest(
            creator_id=creator_id,
            amount_requested_cents=amount_cents,
            amount_approved_cents=amount_cents,
            payout_method=account.type,
            payout_account_id=account.uuid,
            status=PayoutStatus.COMPLETED.value,
            is_auto_generated=True,
            settlement_date=settlement_date,
            payment_reference=f"AUTO-PAYOUT-{settlement_date}-{creator_id[:8]}",
            requested_at=now,
            processed_at=now,
            finalized_at=now,
            payout_date=now,
            admin_notes=f"Automatic monthly payout (balance >= {format_usd(settings.MINIMUM_PAYOUT_CENTS)})",
        )
        self.db.add(payout)
        await self.db.flush()

        await self.balances.record_withdrawal(creator_id, amount_cents, from_available=True)
        await self.earnings.transition_creator_events(
            creator_id, EarningStatus.PAID, payout_request_id=payout.uuid
        )
        return payout

    async def bulk_apply(self, action: str, request_ids: List[str], **kwargs: Any) -> List[BulkItemResult]:
        """
        Apply one admin action to many requests.

        Each request is its own transaction; failures are reported per item
        and never abort the rest of the batch.
        """
        handlers = {
            "approve": self.approve,
            "reject": self.reject,
            "mark_paid": self.mark_paid,
            "complete": self.complete,
        }
        handler = handlers.get(action)
        if handler is None:
            raise LedgerValidationError(f"Unknown bulk action '{action}'")
        if not request_ids:
            raise LedgerValidationError("request_ids must be a non-empty list")

        results: List[BulkItemResult] = []
        for request_id in request_ids:
            try:
                payout = await handler(request_id, **kwargs)
                results.append(BulkItemResult(request_id, True, status=payout.status))
            except LedgerError as e:
                results.append(BulkItemResult(request_id, False, reason=e.message))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Bulk {action}: {succeeded}/{len(request_ids)} payout requests updated")
        return results

    def summarize(self, results: List[BulkItemResult]) -> Dict[str, Any]:
        return {
            "success_count": sum(1 for r in results if r.success),
            "total_requests": len(results),
            "results": [r._asdict() for r in results],
        }
