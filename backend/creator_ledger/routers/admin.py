"""Admin endpoints for the payout queue, reconciliation and notifications."""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.auth.dependencies import admin_required
from creator_ledger.database import get_db
from creator_ledger.models.states import NotificationType, PayoutStatus
from creator_ledger.models.user import User
from creator_ledger.schemas.balance import BalanceResponse, ReconcileResponse
from creator_ledger.schemas.notifications import NotificationResponse
from creator_ledger.schemas.payouts import (
    BulkPayoutRequest,
    BulkPayoutResponse,
    PayoutApproveRequest,
    PayoutListResponse,
    PayoutMarkPaidRequest,
    PayoutRejectRequest,
    PayoutResponse,
)
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.notifications import NotificationService
from creator_ledger.services.payouts import PayoutManager

router = APIRouter()


@router.get("/payouts", response_model=PayoutListResponse)
async def list_payout_requests(
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    creator_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """List payout requests, newest first, optionally filtered by status or creator."""
    payouts = await PayoutManager(db).list_requests(creator_id=creator_id, status=payout_status, limit=limit)
    return PayoutListResponse(
        payouts=[PayoutResponse.from_request(p) for p in payouts],
        total=len(payouts),
    )


@router.get("/payouts/{request_id}", response_model=PayoutResponse)
async def get_payout_request(
    request_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    payout = await PayoutManager(db).get_request(request_id)
    return PayoutResponse.from_request(payout)


@router.post("/payouts/bulk", response_model=BulkPayoutResponse)
async def bulk_update_payouts(
    bulk_data: BulkPayoutRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Apply one action to many payout requests.

    Each request succeeds or fails on its own; the response lists both.
    """
    kwargs: Dict[str, Any] = {"admin_id": current_user.uuid}
    if bulk_data.action == "approve":
        kwargs.update(payment_reference=bulk_data.payment_reference, admin_notes=bulk_data.admin_notes)
    elif bulk_data.action == "reject":
        kwargs.update(reason=bulk_data.reason or "", admin_notes=bulk_data.admin_notes)
    elif bulk_data.action == "mark_paid":
        kwargs.update(payment_reference=bulk_data.payment_reference)

    manager = PayoutManager(db)
    results = await manager.bulk_apply(bulk_data.action, bulk_data.request_ids, **kwargs)
    return manager.summarize(results)


@router.post("/payouts/{request_id}/approve", response_model=PayoutResponse)
async def approve_payout(
    request_id: str,
    approve_data: PayoutApproveRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Approve an awaiting request, optionally for a smaller amount."""
    payout = await PayoutManager(db).approve(
        request_id,
        approved_amount=approve_data.approved_amount,
        payment_reference=approve_data.payment_reference,
        admin_notes=approve_data.admin_notes,
        admin_id=current_user.uuid,
    )
    return PayoutResponse.from_request(payout)


@router.post("/payouts/{request_id}/reject", response_model=PayoutResponse)
async def reject_payout(
    request_id: str,
    reject_data: PayoutRejectRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Reject an awaiting request; the reserved amount returns to available."""
    payout = await PayoutManager(db).reject(
        request_id,
        reject_data.reason,
        admin_notes=reject_data.admin_notes,
        admin_id=current_user.uuid,
    )
    return PayoutResponse.from_request(payout)


@router.post("/payouts/{request_id}/mark-paid", response_model=PayoutResponse)
async def mark_payout_paid(
    request_id: str,
    paid_data: PayoutMarkPaidRequest,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    payout = await PayoutManager(db).mark_paid(
        request_id,
        payment_reference=paid_data.payment_reference,
        admin_id=current_user.uuid,
    )
    return PayoutResponse.from_request(payout)


@router.post("/payouts/{request_id}/complete", response_model=PayoutResponse)
async def complete_payout(
    request_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    payout = await PayoutManager(db).complete(request_id, admin_id=current_user.uuid)
    return PayoutResponse.from_request(payout)


@router.get("/creators/{creator_id}/balance", response_model=BalanceResponse)
async def get_creator_balance(
    creator_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    balance = await BalanceLedger(db).get_balance(creator_id)
    return BalanceResponse.from_balance(balance)


@router.post("/creators/{creator_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_creator_balance(
    creator_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Recompute a creator's cached balance from earning and payout history."""
    snapshots = await BalanceLedger(db).reconcile(creator_id)
    return ReconcileResponse.from_snapshots(creator_id, snapshots)


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    notifications = await NotificationService(db).list_notifications(
        unread_only=unread_only, notification_type=notification_type
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    notification = await NotificationService(db).mark_read(notification_id, current_user.uuid)
    return NotificationResponse.model_validate(notification)
