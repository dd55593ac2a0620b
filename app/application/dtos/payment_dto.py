"""DTOs para pagos y barrido de reservas vencidas."""

from dataclasses import dataclass, field
from enum import Enum


class CallbackOutcome(str, Enum):
    ACCEPTED = "ACCEPTED"
    IGNORED = "IGNORED"
    REJECTED = "REJECTED"


class CallbackReason(str, Enum):
    """Motivo de cada resultado del pipeline de verificación."""

    APPLIED = "APPLIED"
    MISSING_SIGNATURE = "MISSING_SIGNATURE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    UNKNOWN_REFERENCE = "UNKNOWN_REFERENCE"
    TOKEN_MISMATCH = "TOKEN_MISMATCH"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_ALREADY_USED = "TOKEN_ALREADY_USED"
    IDENTIFIER_MISMATCH = "IDENTIFIER_MISMATCH"
    MISSING_TOKEN = "MISSING_TOKEN"
    NOT_PAID_STATUS = "NOT_PAID_STATUS"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"


@dataclass(frozen=True)
class CallbackResult:
    outcome: CallbackOutcome
    reason: CallbackReason
    http_status: int

    @property
    def acknowledged(self) -> bool:
        return self.outcome != CallbackOutcome.REJECTED

    @classmethod
    def accepted(cls) -> "CallbackResult":
        return cls(CallbackOutcome.ACCEPTED, CallbackReason.APPLIED, 200)

    @classmethod
    def ignored(cls, reason: CallbackReason) -> "CallbackResult":
        return cls(CallbackOutcome.IGNORED, reason, 200)

    @classmethod
    def rejected(cls, reason: CallbackReason, http_status: int = 401) -> "CallbackResult":
        return cls(CallbackOutcome.REJECTED, reason, http_status)


@dataclass
class SweepReportDTO:
    cancelled_holds: list[int] = field(default_factory=list)
    expired_orders: int = 0
    past_date_orders: int = 0

    @property
    def total(self) -> int:
        return len(self.cancelled_holds) + self.expired_orders + self.past_date_orders
