"""Closed status types and their allowed transitions."""
import enum
from typing import Dict, FrozenSet, Type, TypeVar

from creator_ledger.exceptions import InvalidStateTransitionError


class EarningStatus(str, enum.Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    PAID = "paid"


class EarningEventType(str, enum.Enum):
    PRODUCT_SALE = "product_sale"
    COURSE_SALE = "course_sale"
    FREE_DOWNLOAD_MILESTONE = "free_download_milestone"


class SourceType(str, enum.Enum):
    PRODUCT = "product"
    COURSE = "course"


class PayoutStatus(str, enum.Enum):
    AWAITING_ADMIN = "awaiting_admin"
    APPROVED = "approved"
    PAYMENT_PROCESSING = "payment_processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PayoutMethod(str, enum.Enum):
    BANK = "bank"
    PAYPAL = "paypal"
    CRYPTO = "crypto"
    MOBILE_MONEY = "mobile_money"


class SettlementStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DownloadType(str, enum.Enum):
    FREE = "free"
    PAID = "paid"
    SUBSCRIPTION = "subscription"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class NotificationType(str, enum.Enum):
    PAYOUT_REQUEST = "payout_request"
    SETTLEMENT_FAILED = "settlement_failed"


# Payout requests holding funds that have left available but are not yet withdrawn
OPEN_PAYOUT_STATUSES = (
    PayoutStatus.AWAITING_ADMIN,
    PayoutStatus.APPROVED,
    PayoutStatus.PAYMENT_PROCESSING,
)

EARNING_TRANSITIONS: Dict[EarningStatus, FrozenSet[EarningStatus]] = {
    EarningStatus.PENDING: frozenset({EarningStatus.AVAILABLE}),
    EarningStatus.AVAILABLE: frozenset({EarningStatus.PAID}),
    EarningStatus.PAID: frozenset(),
}

PAYOUT_TRANSITIONS: Dict[PayoutStatus, FrozenSet[PayoutStatus]] = {
    PayoutStatus.AWAITING_ADMIN: frozenset({PayoutStatus.APPROVED, PayoutStatus.REJECTED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PAYMENT_PROCESSING}),
    PayoutStatus.PAYMENT_PROCESSING: frozenset({PayoutStatus.COMPLETED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.REJECTED: frozenset(),
}

SETTLEMENT_TRANSITIONS: Dict[SettlementStatus, FrozenSet[SettlementStatus]] = {
    SettlementStatus.RUNNING: frozenset({SettlementStatus.COMPLETED, SettlementStatus.FAILED}),
    SettlementStatus.FAILED: frozenset({SettlementStatus.RUNNING}),
    SettlementStatus.COMPLETED: frozenset(),
}

_TRANSITIONS = {
    EarningStatus: ("earning event", EARNING_TRANSITIONS),
    PayoutStatus: ("payout request", PAYOUT_TRANSITIONS),
    SettlementStatus: ("settlement run", SETTLEMENT_TRANSITIONS),
}

S = TypeVar("S", EarningStatus, PayoutStatus, SettlementStatus)


def can_transition(current: S, target: S) -> bool:
    _, table = _TRANSITIONS[type(current)]
    return target in table[current]


def ensure_transition(current: str, target: S) -> S:
    """
    Validate a move from *current* (a raw column value) to *target*.

    Returns *target* so callers can assign the result directly.
    Raises InvalidStateTransitionError if the move is not allowed.
    """
    status_type: Type[S] = type(target)
    entity, table = _TRANSITIONS[status_type]
    current_state = status_type(current)
    if target not in table[current_state]:
        raise InvalidStateTransitionError(entity, current_state.value, target.value)
    return target


def source_state(target: EarningStatus) -> EarningStatus:
    """The single earning status that may flow into *target*."""
    for state, targets in EARNING_TRANSITIONS.items():
        if target in targets:
            return state
    raise InvalidStateTransitionError("earning event", "<none>", target.value)
