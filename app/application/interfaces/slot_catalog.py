from collections.abc import Iterable
from datetime import date

from app.domain.entities.slot import DateOverride, SlotTemplate


class SlotCatalog:
    async def list_templates(self, weekdays: Iterable[int]) -> list[SlotTemplate]:
        """Plantillas activas para los días de la semana dados."""
        raise NotImplementedError

    async def list_overrides(self, dates: Iterable[date]) -> list[DateOverride]:
        raise NotImplementedError

    async def add_template(self, template: SlotTemplate) -> SlotTemplate:
        raise NotImplementedError

    async def add_override(self, override: DateOverride) -> DateOverride:
        raise NotImplementedError
