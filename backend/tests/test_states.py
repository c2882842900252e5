"""Tests for status enums and guarded transitions."""
import pytest

from creator_ledger.exceptions import InvalidStateTransitionError
from creator_ledger.models.states import (
    EarningStatus,
    PayoutStatus,
    SettlementStatus,
    can_transition,
    ensure_transition,
    source_state,
)


def test_payout_lifecycle_transitions():
    assert can_transition(PayoutStatus.AWAITING_ADMIN, PayoutStatus.APPROVED)
    assert can_transition(PayoutStatus.AWAITING_ADMIN, PayoutStatus.REJECTED)
    assert can_transition(PayoutStatus.APPROVED, PayoutStatus.PAYMENT_PROCESSING)
    assert can_transition(PayoutStatus.PAYMENT_PROCESSING, PayoutStatus.COMPLETED)

    assert not can_transition(PayoutStatus.AWAITING_ADMIN, PayoutStatus.COMPLETED)
    assert not can_transition(PayoutStatus.APPROVED, PayoutStatus.REJECTED)
    assert not can_transition(PayoutStatus.REJECTED, PayoutStatus.APPROVED)
    assert not can_transition(PayoutStatus.COMPLETED, PayoutStatus.AWAITING_ADMIN)


def test_earning_statuses_only_move_forward():
    assert can_transition(EarningStatus.PENDING, EarningStatus.AVAILABLE)
    assert can_transition(EarningStatus.AVAILABLE, EarningStatus.PAID)
    assert not can_transition(EarningStatus.PENDING, EarningStatus.PAID)
    assert not can_transition(EarningStatus.PAID, EarningStatus.PENDING)


def test_settlement_failed_run_can_be_retried():
    assert can_transition(SettlementStatus.FAILED, SettlementStatus.RUNNING)
    assert not can_transition(SettlementStatus.COMPLETED, SettlementStatus.RUNNING)


def test_ensure_transition_returns_target():
    assert ensure_transition("awaiting_admin", PayoutStatus.APPROVED) is PayoutStatus.APPROVED


def test_ensure_transition_rejects_invalid_move():
    with pytest.raises(InvalidStateTransitionError) as exc_info:
        ensure_transition("completed", PayoutStatus.APPROVED)

    error = exc_info.value
    assert error.current == "completed"
    assert error.target == "approved"
    assert error.status_code == 409
    assert "payout request" in error.message


def test_source_state():
    assert source_state(EarningStatus.AVAILABLE) is EarningStatus.PENDING
    assert source_state(EarningStatus.PAID) is EarningStatus.AVAILABLE
    with pytest.raises(InvalidStateTransitionError):
        source_state(EarningStatus.PENDING)
