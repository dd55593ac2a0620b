"""DTOs (Data Transfer Objects) de la capa de aplicación."""

from app.application.dtos.payment_dto import (
    CallbackOutcome,
    CallbackReason,
    CallbackResult,
    SweepReportDTO,
)
from app.application.dtos.reservation_dto import (
    ConfirmationResultDTO,
    HoldRequestDTO,
    PayerDTO,
    PaymentApplicationDTO,
)

__all__ = [
    # Reservation DTOs
    "HoldRequestDTO",
    "PayerDTO",
    "ConfirmationResultDTO",
    "PaymentApplicationDTO",
    # Payment DTOs
    "CallbackOutcome",
    "CallbackReason",
    "CallbackResult",
    "SweepReportDTO",
]
