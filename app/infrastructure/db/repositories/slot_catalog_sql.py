from collections.abc import Iterable
from datetime import date

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.slot_catalog import SlotCatalog
from app.domain.entities.slot import DateOverride, OverrideKind, SlotTemplate
from app.infrastructure.db.tables import date_overrides, slot_templates


class SlotCatalogSQL(SlotCatalog):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_templates(self, weekdays: Iterable[int]) -> list[SlotTemplate]:
        wanted = list(weekdays)
        if not wanted:
            return []
        stmt = (
            select(slot_templates)
            .where(slot_templates.c.weekday.in_(wanted), slot_templates.c.active == 1)
            .order_by(slot_templates.c.weekday, slot_templates.c.start_time)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [
            SlotTemplate(
                id=row["id"],
                weekday=row["weekday"],
                start_time=row["start_time"],
                end_time=row["end_time"],
                active=bool(row["active"]),
            )
            for row in rows
        ]

    async def list_overrides(self, dates: Iterable[date]) -> list[DateOverride]:
        wanted = list(dates)
        if not wanted:
            return []
        stmt = select(date_overrides).where(date_overrides.c.date.in_(wanted)).order_by(date_overrides.c.id)
        rows = (await self._session.execute(stmt)).mappings().all()
        return [
            DateOverride(
                id=row["id"],
                date=row["date"],
                kind=OverrideKind(row["kind"]),
                start_time=row["start_time"],
                end_time=row["end_time"],
                reserved_for_customer_id=row["reserved_for_customer_id"],
                reason=row["reason"],
            )
            for row in rows
        ]

    async def add_template(self, template: SlotTemplate) -> SlotTemplate:
        result = await self._session.execute(
            insert(slot_templates).values(
                weekday=template.weekday,
                start_time=template.start_time,
                end_time=template.end_time,
                active=1 if template.active else 0,
            )
        )
        return SlotTemplate(
            id=result.inserted_primary_key[0],
            weekday=template.weekday,
            start_time=template.start_time,
            end_time=template.end_time,
            active=template.active,
        )

    async def add_override(self, override: DateOverride) -> DateOverride:
        result = await self._session.execute(
            insert(date_overrides).values(
                date=override.date,
                kind=override.kind.value,
                start_time=override.start_time,
                end_time=override.end_time,
                reserved_for_customer_id=override.reserved_for_customer_id,
                reason=override.reason,
            )
        )
        return DateOverride(
            id=result.inserted_primary_key[0],
            date=override.date,
            kind=override.kind,
            start_time=override.start_time,
            end_time=override.end_time,
            reserved_for_customer_id=override.reserved_for_customer_id,
            reason=override.reason,
        )
