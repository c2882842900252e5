"""Schemas for creator balance endpoints."""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field

from creator_ledger.config import settings
from creator_ledger.models.balance import CreatorBalance
from creator_ledger.services.money import cents_to_str


class BalanceResponse(BaseModel):
    """Schema for a creator's current balance. Amounts are decimal strings."""

    creator_id: str
    available_balance: str = Field(..., description="Withdrawable now, e.g. '12.34'")
    pending_balance: str = Field(..., description="Awaiting the next settlement")
    lifetime_earnings: str
    total_withdrawn: str
    last_payout_date: Optional[datetime] = None
    next_payout_date: Optional[datetime] = None
    minimum_payout: str
    can_request_payout: bool

    @classmethod
    def from_balance(cls, balance: CreatorBalance) -> "BalanceResponse":
        return cls(
            creator_id=balance.creator_id,
            available_balance=cents_to_str(balance.available_cents),
            pending_balance=cents_to_str(balance.pending_cents),
            lifetime_earnings=cents_to_str(balance.lifetime_earnings_cents),
            total_withdrawn=cents_to_str(balance.total_withdrawn_cents),
            last_payout_date=balance.last_payout_date,
            next_payout_date=balance.next_payout_date,
            minimum_payout=cents_to_str(settings.MINIMUM_PAYOUT_CENTS),
            can_request_payout=balance.available_cents >= settings.MINIMUM_PAYOUT_CENTS,
        )


class ReconcileResponse(BaseModel):
    """Cached balance before and after recomputing it from history."""

    creator_id: str
    drift_detected: bool
    before: Dict[str, str]
    after: Dict[str, str]

    @classmethod
    def from_snapshots(cls, creator_id: str, snapshots: Dict[str, Dict[str, int]]) -> "ReconcileResponse":
        def as_money(values: Dict[str, int]) -> Dict[str, str]:
            return {key.replace("_cents", ""): cents_to_str(value) for key, value in values.items()}

        return cls(
            creator_id=creator_id,
            drift_detected=snapshots["before"] != snapshots["after"],
            before=as_money(snapshots["before"]),
            after=as_money(snapshots["after"]),
        )
