"""DTOs para reservas."""

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from app.domain.entities.reservation import Reservation
from app.domain.value_objects.holder import Holder


@dataclass
class HoldRequestDTO:
    """Datos para crear una reserva temporal."""

    date: date
    start_time: time
    end_time: time
    holder: Holder
    lesson_type: str = "driving_lesson"
    total_price: Decimal = Decimal("0")


@dataclass
class PayerDTO:
    """Datos del pagador al confirmar."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class ConfirmationResultDTO:
    reservation: Reservation
    invoice_reference: str | None
    changed: bool


@dataclass
class PaymentApplicationDTO:
    """Resultado de registrar un pago contra una reserva."""

    reservation: Reservation
    changed: bool
