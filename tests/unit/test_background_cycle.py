"""
Tests del ciclo del worker en modo in-memory.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from app.api.dependencies import in_memory_use_cases
from app.application.dtos.reservation_dto import HoldRequestDTO
from app.domain.entities.reservation import ReservationStatus
from app.domain.value_objects.holder import Holder
from app.main import run_background_cycle


def next_weekday_slot_day() -> date:
    """Un lunes a más de una semana, dentro del horario de desarrollo."""
    day = datetime.now(timezone.utc).date() + timedelta(days=14)
    return day - timedelta(days=day.weekday())


class TestInMemoryUseCases:
    @pytest.mark.asyncio
    async def test_calls_share_the_process_repositories(self, settings):
        first = in_memory_use_cases(settings)
        second = in_memory_use_cases(settings)

        hold = await first["lifecycle"].create_hold(
            HoldRequestDTO(
                date=next_weekday_slot_day(),
                start_time=time(16),
                end_time=time(17),
                holder=Holder(customer_id=9001),
                total_price=Decimal("650.00"),
            )
        )
        cancelled = await second["lifecycle"].cancel(hold.id, reason="test")

        assert cancelled.status == ReservationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_background_cycle_runs_on_in_memory_store(self, settings):
        await run_background_cycle(settings)

        report = await in_memory_use_cases(settings)["sweeper"].execute()
        assert report.cancelled_holds == []
