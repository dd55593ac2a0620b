from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, condecimal, constr, model_validator

from app.domain.entities.reservation import PaymentMethod, PaymentStatus, Reservation, ReservationStatus

Money = condecimal(max_digits=12, decimal_places=2, ge=0)


class GuestContact(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    email: EmailStr
    phone: constr(strip_whitespace=True, min_length=5, max_length=50)


class CreateHoldRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: date
    start_time: time
    end_time: time | None = None
    duration_minutes: int = Field(default=60, gt=0, le=480)
    lesson_type: constr(strip_whitespace=True, min_length=1, max_length=64) = "driving_lesson"
    total_price: Money = Decimal("0")
    guest: GuestContact | None = None

    @model_validator(mode="after")
    def _check_end_time(self) -> "CreateHoldRequest":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class CreateHoldResponse(BaseModel):
    reservation_id: int
    status: ReservationStatus
    payment_status: PaymentStatus
    expires_at: datetime | None = None


class Payer(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    email: EmailStr
    phone: constr(strip_whitespace=True, max_length=50) | None = None


class ConfirmReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: PaymentMethod
    payer: Payer | None = None


class CancelReservationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: constr(strip_whitespace=True, max_length=64) | None = None


class ReservationResponse(BaseModel):
    id: int
    date: date
    start_time: time
    end_time: time
    lesson_type: str
    status: ReservationStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod | None = None
    total_price: Decimal
    currency_code: str
    invoice_reference: str | None = None
    cancel_reason: str | None = None

    @classmethod
    def from_entity(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            date=reservation.date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            lesson_type=reservation.lesson_type,
            status=reservation.status,
            payment_status=reservation.payment_status,
            payment_method=reservation.payment_method,
            total_price=reservation.total_price,
            currency_code=reservation.currency_code,
            invoice_reference=reservation.invoice_reference,
            cancel_reason=reservation.cancel_reason,
        )


class ConfirmReservationResponse(BaseModel):
    reservation: ReservationResponse
    invoice_reference: str | None = None
    changed: bool
