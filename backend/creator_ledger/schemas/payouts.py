"""Schemas for payout request endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from creator_ledger.models.payout import PayoutRequest
from creator_ledger.services.money import cents_to_str


class PayoutRequestCreate(BaseModel):
    """Creator's withdrawal request. Amount is a decimal string or number."""

    amount: Decimal = Field(..., gt=0, description="Amount to withdraw, e.g. '60.00'")
    payout_method: str = Field(..., pattern="^(bank|paypal|crypto|mobile_money)$")
    payout_account_id: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=1000)


class PayoutApproveRequest(BaseModel):
    approved_amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the requested amount")
    payment_reference: Optional[str] = Field(None, max_length=255)
    admin_notes: Optional[str] = None


class PayoutRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Shown to the creator")
    admin_notes: Optional[str] = None


class PayoutMarkPaidRequest(BaseModel):
    payment_reference: Optional[str] = Field(None, max_length=255)


class BulkPayoutRequest(BaseModel):
    """One admin action applied to many payout requests."""

    action: Literal["approve", "reject", "mark_paid", "complete"]
    request_ids: List[str] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, description="Required for reject")
    payment_reference: Optional[str] = None
    admin_notes: Optional[str] = None


class PayoutResponse(BaseModel):
    """Schema for a single payout request."""

    uuid: str
    creator_id: str
    amount_requested: str
    amount_approved: Optional[str]
    payout_method: str
    payout_account_id: Optional[str]
    status: str
    is_auto_generated: bool
    settlement_date: Optional[str]
    payment_reference: Optional[str]
    rejection_reason: Optional[str]
    admin_notes: Optional[str]
    processed_by: Optional[str]
    requested_at: datetime
    approved_at: Optional[datetime]
    processed_at: Optional[datetime]
    finalized_at: Optional[datetime]
    payout_date: Optional[datetime]

    @classmethod
    def from_request(cls, payout: PayoutRequest) -> "PayoutResponse":
        approved = payout.amount_approved_cents
        return cls(
            uuid=payout.uuid,
            creator_id=payout.creator_id,
            amount_requested=cents_to_str(payout.amount_requested_cents),
            amount_approved=cents_to_str(approved) if approved is not None else None,
            payout_method=payout.payout_method,
            payout_account_id=payout.payout_account_id,
            status=payout.status,
            is_auto_generated=payout.is_auto_generated,
            settlement_date=payout.settlement_date,
            payment_reference=payout.payment_reference,
            rejection_reason=payout.rejection_reason,
            admin_notes=payout.admin_notes,
            processed_by=payout.processed_by,
            requested_at=payout.requested_at,
            approved_at=payout.approved_at,
            processed_at=payout.processed_at,
            finalized_at=payout.finalized_at,
            payout_date=payout.payout_date,
        )


class PayoutListResponse(BaseModel):
    payouts: List[PayoutResponse]
    total: int


class BulkItemResponse(BaseModel):
    request_id: str
    success: bool
    status: Optional[str] = None
    reason: Optional[str] = None


class BulkPayoutResponse(BaseModel):
    success_count: int
    total_requests: int
    results: List[BulkItemResponse]
