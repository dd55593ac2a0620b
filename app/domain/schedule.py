"""Reglas del calendario: qué slots se ofrecen en una fecha y qué los bloquea."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, time

from app.domain.entities.slot import DateOverride, OverrideKind, SlotTemplate
from app.domain.value_objects.time_range import TimeRange


@dataclass(frozen=True)
class OfferedSlot:
    range: TimeRange
    extra: DateOverride | None = None

    @property
    def is_extra(self) -> bool:
        return self.extra is not None


def override_range(override: DateOverride) -> TimeRange:
    """Franja de un RANGE_BLOCK o EXTRA_SLOT; ValueError si está incompleta."""
    if override.start_time is None or override.end_time is None:
        raise ValueError(f"override {override.id} ({override.kind.value}) sin horario")
    return TimeRange(start=override.start_time, end=override.end_time)


def blocking_override(
    overrides: Iterable[DateOverride], slot_range: TimeRange
) -> DateOverride | None:
    """Primer bloqueo que cubre la franja: día completo, o rango que se superpone."""
    overrides = list(overrides)
    for override in overrides:
        if override.kind == OverrideKind.FULL_DAY_BLOCK:
            return override
    for override in overrides:
        if override.kind == OverrideKind.RANGE_BLOCK and override_range(override).overlaps(slot_range):
            return override
    return None


def offered_slots(
    day: date,
    templates: Iterable[SlotTemplate],
    overrides: Iterable[DateOverride],
    caller_id: int | None,
) -> dict[time, OfferedSlot]:
    """
    Slots que la escuela ofrece en ``day`` para ``caller_id``, por hora de inicio.

    Un EXTRA_SLOT reemplaza a la plantilla con la misma hora de inicio. Los
    slots extra fijados a otro cliente no se ofrecen.
    """
    overrides = [o for o in overrides if o.date == day]
    if any(o.kind == OverrideKind.FULL_DAY_BLOCK for o in overrides):
        return {}
    blocks = [override_range(o) for o in overrides if o.kind == OverrideKind.RANGE_BLOCK]

    offered: dict[time, OfferedSlot] = {}
    for template in templates:
        if not template.active or template.weekday != day.weekday():
            continue
        slot_range = TimeRange(start=template.start_time, end=template.end_time)
        if any(slot_range.overlaps(block) for block in blocks):
            continue
        offered[template.start_time] = OfferedSlot(range=slot_range)

    for override in overrides:
        if override.kind != OverrideKind.EXTRA_SLOT or not override.visible_to(caller_id):
            continue
        slot_range = override_range(override)
        if any(slot_range.overlaps(block) for block in blocks):
            continue
        offered[slot_range.start] = OfferedSlot(range=slot_range, extra=override)

    return offered
