# storefront/domain/status.py
from dataclasses import dataclass
from enum import Enum


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    REQUIRES_ACTION = "REQUIRES_ACTION"
    PAID = "PAID"
    FAILED = "FAILED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    DISPUTED = "DISPUTED"


class PaymentStatus(str, Enum):
    REQUIRES_ACTION = "REQUIRES_ACTION"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    DISPUTED = "DISPUTED"


_VALID_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.PENDING, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.FAILED,
        OrderStatus.REQUIRES_ACTION,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.PAID,
        OrderStatus.FAILED,
        OrderStatus.REQUIRES_ACTION,
        OrderStatus.CANCELLED,
    },
    OrderStatus.REQUIRES_ACTION: {
        OrderStatus.PROCESSING,
        OrderStatus.PAID,
        OrderStatus.FAILED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    # new payment attempt, or a later approval on the same provider reference
    # (parked in REQUIRES_ACTION when that approval finds the stock gone)
    OrderStatus.FAILED: {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.REQUIRES_ACTION},
    OrderStatus.PAID: {
        OrderStatus.SHIPPED,
        OrderStatus.REFUNDED,
        OrderStatus.PARTIALLY_REFUNDED,
        OrderStatus.DISPUTED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.REFUNDED,
        OrderStatus.PARTIALLY_REFUNDED,
        OrderStatus.DISPUTED,
    },
    OrderStatus.PARTIALLY_REFUNDED: {
        OrderStatus.SHIPPED,
        OrderStatus.REFUNDED,
        OrderStatus.DISPUTED,
    },
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.DISPUTED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in _VALID_TRANSITIONS.items() if not targets)
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
AWAITING_PAYMENT_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS[current]


def transition_path(current: OrderStatus, target: OrderStatus) -> list[OrderStatus] | None:
    """Steps from current to target. PENDING -> PAID goes through PROCESSING."""
    if can_transition(current, target):
        return [target]
    if (
        target == OrderStatus.PAID
        and can_transition(current, OrderStatus.PROCESSING)
        and can_transition(OrderStatus.PROCESSING, target)
    ):
        return [OrderStatus.PROCESSING, target]
    return None


class ProviderStatusKind(str, Enum):
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    DISPUTED = "DISPUTED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ProviderStatus:
    """Provider status mapped at the provider boundary. `raw` keeps the original value for logs."""

    kind: ProviderStatusKind
    raw: str = ""

    @classmethod
    def unknown(cls, raw: str) -> "ProviderStatus":
        return cls(ProviderStatusKind.UNKNOWN, raw)


# provider status -> (order target, payment target)
RECONCILE_TABLE = {
    ProviderStatusKind.APPROVED: (OrderStatus.PAID, PaymentStatus.SUCCEEDED),
    ProviderStatusKind.PENDING: (OrderStatus.PROCESSING, PaymentStatus.PROCESSING),
    ProviderStatusKind.REJECTED: (OrderStatus.FAILED, PaymentStatus.FAILED),
    ProviderStatusKind.REFUNDED: (OrderStatus.REFUNDED, PaymentStatus.REFUNDED),
    ProviderStatusKind.PARTIALLY_REFUNDED: (OrderStatus.PARTIALLY_REFUNDED, PaymentStatus.PARTIALLY_REFUNDED),
    ProviderStatusKind.DISPUTED: (OrderStatus.DISPUTED, PaymentStatus.DISPUTED),
    ProviderStatusKind.UNKNOWN: (OrderStatus.REQUIRES_ACTION, PaymentStatus.REQUIRES_ACTION),
}
