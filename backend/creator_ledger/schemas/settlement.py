"""Schemas for settlement endpoints."""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from creator_ledger.models.settlement_run import SettlementRun
from creator_ledger.services.money import cents_to_str
from creator_ledger.services.settlement import SettlementOutcome


class SettlementRunRequest(BaseModel):
    settlement_date: Optional[date] = Field(None, description="Defaults to today (UTC)")


class SettlementResultResponse(BaseModel):
    """Outcome of one settlement invocation."""

    settlement_date: str
    status: str
    already_ran: bool
    message: str
    creators_processed: int
    creators_failed: int
    auto_payouts_created: int
    total_pending_moved: str
    duration_ms: int
    failures: List[Dict[str, str]]

    @classmethod
    def from_outcome(cls, outcome: SettlementOutcome) -> "SettlementResultResponse":
        return cls(
            settlement_date=outcome.settlement_date,
            status=outcome.status,
            already_ran=outcome.already_ran,
            message=outcome.message,
            creators_processed=outcome.creators_processed,
            creators_failed=outcome.creators_failed,
            auto_payouts_created=outcome.auto_payouts_created,
            total_pending_moved=cents_to_str(outcome.total_pending_moved_cents),
            duration_ms=outcome.duration_ms,
            failures=list(outcome.failures),
        )


class SettlementRunResponse(BaseModel):
    """Schema for a settlement run audit row."""

    uuid: str
    settlement_date: str
    status: str
    attempts: int
    creators_processed: int
    creators_failed: int
    auto_payouts_created: int
    total_pending_moved: str
    failed_creators: List[Dict[str, str]]
    error_message: Optional[str]
    run_at: datetime
    completed_at: Optional[datetime]
    duration_ms: Optional[int]

    @classmethod
    def from_run(cls, run: SettlementRun) -> "SettlementRunResponse":
        return cls(
            uuid=run.uuid,
            settlement_date=run.settlement_date,
            status=run.status,
            attempts=run.attempts,
            creators_processed=run.creators_processed,
            creators_failed=run.creators_failed,
            auto_payouts_created=run.auto_payouts_created,
            total_pending_moved=cents_to_str(run.total_pending_moved_cents),
            failed_creators=list(run.failed_creators or []),
            error_message=run.error_message,
            run_at=run.run_at,
            completed_at=run.completed_at,
            duration_ms=run.duration_ms,
        )


class SettlementPreviewCreator(BaseModel):
    creator_id: str
    current_pending: str
    current_available: str
    new_available: str
    has_default_account: bool
    will_get_auto_payout: bool


class SettlementPreviewResponse(BaseModel):
    total_creators: int
    auto_payout_count: int
    total_pending_amount: str
    total_auto_payout_amount: str
    creators: List[SettlementPreviewCreator]
