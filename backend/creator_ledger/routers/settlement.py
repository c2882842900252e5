"""Admin endpoints to trigger, preview and audit settlement runs."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.auth.dependencies import admin_required
from creator_ledger.database import get_db
from creator_ledger.models.user import User
from creator_ledger.schemas.settlement import (
    SettlementPreviewResponse,
    SettlementResultResponse,
    SettlementRunRequest,
    SettlementRunResponse,
)
from creator_ledger.services.settlement import SettlementProcessor

router = APIRouter()


@router.post("/run", response_model=SettlementResultResponse)
async def run_settlement(
    run_data: Optional[SettlementRunRequest] = None,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Run settlement now (admin override of the monthly schedule).

    Safe to call repeatedly: a date that already completed is not processed
    again, and a failed date retries only the creators still pending.
    """
    settlement_date = run_data.settlement_date if run_data else None
    outcome = await SettlementProcessor(db).run(settlement_date)
    return SettlementResultResponse.from_outcome(outcome)


@router.get("/preview", response_model=SettlementPreviewResponse)
async def preview_settlement(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    return await SettlementProcessor(db).preview()


@router.get("/runs", response_model=List[SettlementRunResponse])
async def list_settlement_runs(
    limit: int = Query(30, ge=1, le=365),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    runs = await SettlementProcessor(db).list_runs(limit)
    return [SettlementRunResponse.from_run(r) for r in runs]
