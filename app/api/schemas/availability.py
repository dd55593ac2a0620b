from datetime import time

from pydantic import BaseModel

from app.domain.entities.slot import SlotStatus, SlotView


class SlotViewResponse(BaseModel):
    time: time
    end_time: time
    status: SlotStatus
    clickable: bool
    status_text: str
    call_phone: str | None = None
    is_extra_slot: bool = False
    reason: str | None = None

    @classmethod
    def from_view(cls, view: SlotView) -> "SlotViewResponse":
        return cls(
            time=view.time,
            end_time=view.end_time,
            status=view.status,
            clickable=view.clickable,
            status_text=view.status_text,
            call_phone=view.call_phone,
            is_extra_slot=view.is_extra_slot,
            reason=view.reason,
        )


class AvailabilityResponse(BaseModel):
    slots: dict[str, list[SlotViewResponse]]
