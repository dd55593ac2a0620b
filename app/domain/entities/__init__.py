"""Entidades del dominio de reservas."""

from app.domain.entities.outbox_event import (
    AggregateType,
    OutboxEvent,
    OutboxEventType,
    OutboxStatus,
)
from app.domain.entities.payment_order import (
    OPEN_ORDER_STATUSES,
    PaymentOrder,
    PaymentOrderStatus,
)
from app.domain.entities.reservation import (
    ACTIVE_STATUSES,
    PAYMENT_OUTCOMES,
    STALE_PAYMENT_STATUSES,
    PaymentMethod,
    PaymentOutcome,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.entities.slot import (
    DateOverride,
    OverrideKind,
    SlotStatus,
    SlotTemplate,
    SlotView,
)

__all__ = [
    # Reservation
    "Reservation",
    "ReservationStatus",
    "PaymentStatus",
    "PaymentMethod",
    "PaymentOutcome",
    "PAYMENT_OUTCOMES",
    "ACTIVE_STATUSES",
    "STALE_PAYMENT_STATUSES",
    # PaymentOrder
    "PaymentOrder",
    "PaymentOrderStatus",
    "OPEN_ORDER_STATUSES",
    # Slots
    "SlotTemplate",
    "DateOverride",
    "OverrideKind",
    "SlotStatus",
    "SlotView",
    # OutboxEvent
    "OutboxEvent",
    "OutboxEventType",
    "OutboxStatus",
    "AggregateType",
]
