"""Schemas for earning event endpoints."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from creator_ledger.models.earning import EarningEvent
from creator_ledger.services.money import cents_to_str


class EarningResponse(BaseModel):
    """Schema for a single earning event."""

    uuid: str
    creator_id: str
    event_type: str
    source_type: str
    source_id: str
    order_id: Optional[str]
    gross_amount: str
    platform_commission: str
    creator_amount: str
    currency: str
    status: str
    payout_request_id: Optional[str]
    metadata: Dict[str, Any]
    event_date: datetime

    @classmethod
    def from_event(cls, event: EarningEvent) -> "EarningResponse":
        return cls(
            uuid=event.uuid,
            creator_id=event.creator_id,
            event_type=event.event_type,
            source_type=event.source_type,
            source_id=event.source_id,
            order_id=event.order_id,
            gross_amount=cents_to_str(event.gross_amount_cents),
            platform_commission=cents_to_str(event.platform_commission_cents),
            creator_amount=cents_to_str(event.creator_amount_cents),
            currency=event.currency,
            status=event.status,
            payout_request_id=event.payout_request_id,
            metadata=event.event_metadata or {},
            event_date=event.event_date,
        )


class EarningListResponse(BaseModel):
    earnings: List[EarningResponse]
    total: int
