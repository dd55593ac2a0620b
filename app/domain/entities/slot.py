"""Entidades del catálogo de slots y la vista de disponibilidad."""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum


class OverrideKind(str, Enum):
    """Tipos de excepción a la plantilla semanal."""

    FULL_DAY_BLOCK = "FULL_DAY_BLOCK"
    RANGE_BLOCK = "RANGE_BLOCK"
    EXTRA_SLOT = "EXTRA_SLOT"


class SlotStatus(str, Enum):
    """Clasificación de un slot en la respuesta de disponibilidad."""

    AVAILABLE = "AVAILABLE"
    MUST_CALL = "MUST_CALL"
    HELD = "HELD"
    HELD_STALE = "HELD_STALE"
    BOOKED = "BOOKED"


SLOT_STATUS_TEXT: dict[SlotStatus, str] = {
    SlotStatus.AVAILABLE: "Available",
    SlotStatus.MUST_CALL: "Call to book",
    SlotStatus.HELD: "Being booked",
    SlotStatus.HELD_STALE: "Being released",
    SlotStatus.BOOKED: "Booked",
}


@dataclass(frozen=True)
class SlotTemplate:
    """Capacidad semanal recurrente. weekday: 0=lunes .. 6=domingo."""

    weekday: int
    start_time: time
    end_time: time
    active: bool = True
    id: int | None = None


@dataclass(frozen=True)
class DateOverride:
    """Bloqueo o slot extra para una fecha concreta."""

    date: date
    kind: OverrideKind
    start_time: time | None = None
    end_time: time | None = None
    reserved_for_customer_id: int | None = None
    reason: str | None = None
    id: int | None = None

    def visible_to(self, caller_id: int | None) -> bool:
        if self.reserved_for_customer_id is None:
            return True
        return caller_id is not None and caller_id == self.reserved_for_customer_id


@dataclass(frozen=True)
class SlotView:
    time: time
    end_time: time
    status: SlotStatus
    clickable: bool
    status_text: str
    call_phone: str | None = None
    is_extra_slot: bool = False
    reason: str | None = None
