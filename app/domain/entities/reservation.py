"""Entidad Reservation - Agregado raíz del dominio."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from app.domain.value_objects.holder import Holder
from app.domain.value_objects.money import Money
from app.domain.value_objects.time_range import TimeRange


class ReservationStatus(str, Enum):
    """Estados posibles de una reserva."""

    TEMPORARY = "TEMPORARY"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Estados de pago de una reserva."""

    UNSET = "UNSET"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados por la escuela."""

    SWISH = "swish"
    PAY_AT_LOCATION = "pay_at_location"
    CREDITS = "credits"
    QLIRO = "qliro"


@dataclass(frozen=True)
class PaymentOutcome:
    """Resultado de confirmar una reserva con un método de pago."""

    status: ReservationStatus
    payment_status: PaymentStatus
    client_selectable: bool


# Swish and pay-at-location are verified manually; online checkout only settles via webhook.
PAYMENT_OUTCOMES: dict[PaymentMethod, PaymentOutcome] = {
    PaymentMethod.SWISH: PaymentOutcome(
        ReservationStatus.CONFIRMED, PaymentStatus.PENDING, client_selectable=True
    ),
    PaymentMethod.PAY_AT_LOCATION: PaymentOutcome(
        ReservationStatus.CONFIRMED, PaymentStatus.PENDING, client_selectable=True
    ),
    PaymentMethod.CREDITS: PaymentOutcome(
        ReservationStatus.CONFIRMED, PaymentStatus.PAID, client_selectable=True
    ),
    PaymentMethod.QLIRO: PaymentOutcome(
        ReservationStatus.CONFIRMED, PaymentStatus.PAID, client_selectable=False
    ),
}

ACTIVE_STATUSES = (ReservationStatus.TEMPORARY, ReservationStatus.CONFIRMED)
STALE_PAYMENT_STATUSES = (PaymentStatus.UNSET, PaymentStatus.PENDING)


@dataclass
class Reservation:
    """
    Entidad principal del dominio - Agregado Raíz.

    Representa la reserva de una clase de manejo en un slot (fecha, hora de inicio).
    """

    # Identificadores
    id: int | None = None

    # Slot
    date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    duration_minutes: int = 0
    lesson_type: str = "driving_lesson"

    # Titular y pagador
    holder: Holder = field(default_factory=Holder)
    payer_name: str | None = None
    payer_email: str | None = None
    payer_phone: str | None = None

    # Financieros
    currency_code: str = "SEK"
    total_price: Decimal = Decimal("0")
    invoice_reference: str | None = None

    # Estados
    status: ReservationStatus = ReservationStatus.TEMPORARY
    payment_status: PaymentStatus = PaymentStatus.UNSET
    payment_method: PaymentMethod | None = None
    cancel_reason: str | None = None

    # Control de concurrencia
    lock_version: int = 0

    # Timestamps (UTC)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    archived_at: datetime | None = None

    # === Propiedades calculadas ===

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    @property
    def price(self) -> Money:
        return Money(amount=self.total_price, currency_code=self.currency_code)

    @property
    def is_active(self) -> bool:
        """Ocupa su slot (temporal o confirmada)."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.status == ReservationStatus.CANCELLED

    @property
    def awaiting_payment(self) -> bool:
        """Puede completarse con un pago (temporal, o confirmada con pago pendiente)."""
        if self.status == ReservationStatus.TEMPORARY:
            return True
        return (
            self.status == ReservationStatus.CONFIRMED
            and self.payment_status in STALE_PAYMENT_STATUSES
        )
