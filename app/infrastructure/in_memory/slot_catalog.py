from collections.abc import Iterable
from dataclasses import replace
from datetime import date

from app.application.interfaces.slot_catalog import SlotCatalog
from app.domain.entities.slot import DateOverride, SlotTemplate


class InMemorySlotCatalog(SlotCatalog):
    def __init__(self) -> None:
        self.templates: list[SlotTemplate] = []
        self.overrides: list[DateOverride] = []

    async def list_templates(self, weekdays: Iterable[int]) -> list[SlotTemplate]:
        wanted = set(weekdays)
        return [t for t in self.templates if t.active and t.weekday in wanted]

    async def list_overrides(self, dates: Iterable[date]) -> list[DateOverride]:
        wanted = set(dates)
        return [o for o in self.overrides if o.date in wanted]

    async def add_template(self, template: SlotTemplate) -> SlotTemplate:
        stored = replace(template, id=len(self.templates) + 1)
        self.templates.append(stored)
        return stored

    async def add_override(self, override: DateOverride) -> DateOverride:
        stored = replace(override, id=len(self.overrides) + 1)
        self.overrides.append(stored)
        return stored
