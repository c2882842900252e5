"""Creator-facing balance, earnings and payout request endpoints."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.auth.dependencies import creator_required
from creator_ledger.config import settings
from creator_ledger.database import get_db
from creator_ledger.models.states import EarningStatus, PayoutStatus
from creator_ledger.models.user import User
from creator_ledger.rate_limit import limiter
from creator_ledger.schemas.balance import BalanceResponse
from creator_ledger.schemas.earnings import EarningListResponse, EarningResponse
from creator_ledger.schemas.payouts import (
    PayoutListResponse,
    PayoutRequestCreate,
    PayoutResponse,
)
from creator_ledger.services.balance import BalanceLedger
from creator_ledger.services.earnings import EarningRecorder
from creator_ledger.services.payouts import PayoutManager

router = APIRouter()


@router.get("/api/creators/me/balance", response_model=BalanceResponse)
async def get_my_balance(
    current_user: User = Depends(creator_required),
    db: AsyncSession = Depends(get_db)
):
    """Get the authenticated creator's pending/available/lifetime balance."""
    balance = await BalanceLedger(db).get_balance(current_user.uuid)
    return BalanceResponse.from_balance(balance)


@router.get("/api/creators/me/earnings", response_model=EarningListResponse)
async def get_my_earnings(
    limit: int = Query(50, ge=1, le=200),
    earning_status: Optional[EarningStatus] = Query(None, alias="status"),
    current_user: User = Depends(creator_required),
    db: AsyncSession = Depends(get_db)
):
    """List the creator's earning events, newest first."""
    events = await EarningRecorder(db).list_earnings(current_user.uuid, limit=limit, status=earning_status)
    return EarningListResponse(
        earnings=[EarningResponse.from_event(e) for e in events],
        total=len(events),
    )


@router.post("/api/creators/me/payouts", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.PAYOUT_REQUEST_RATE_LIMIT)
async def request_payout(
    request: Request,
    payout_data: PayoutRequestCreate,
    current_user: User = Depends(creator_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Request a withdrawal of available funds.

    - Amount must be at least the minimum payout
    - The payout account must belong to the creator and match the method
    - Funds are reserved immediately and returned if an admin rejects
    """
    payout = await PayoutManager(db).request_payout(
        current_user.uuid,
        payout_data.amount,
        payout_data.payout_method,
        payout_data.payout_account_id,
        notes=payout_data.notes,
    )
    return PayoutResponse.from_request(payout)


@router.get("/api/creators/me/payouts", response_model=PayoutListResponse)
async def get_my_payouts(
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(creator_required),
    db: AsyncSession = Depends(get_db)
):
    """List the creator's payout requests, newest first."""
    payouts = await PayoutManager(db).list_requests(
        creator_id=current_user.uuid, status=payout_status, limit=limit
    )
    return PayoutListResponse(
        payouts=[PayoutResponse.from_request(p) for p in payouts],
        total=len(payouts),
    )
