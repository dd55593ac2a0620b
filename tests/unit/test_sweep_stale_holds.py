"""
Tests del barrido de reservas temporales vencidas y del archivado.
"""

from datetime import datetime, timezone

import pytest

from app.domain.entities.payment_order import PaymentOrderStatus
from app.domain.entities.reservation import PaymentMethod, ReservationStatus


class TestSweepStaleHolds:
    @pytest.mark.asyncio
    async def test_stale_hold_cancelled_confirmed_untouched(self, lifecycle, sweeper, hold_request, clock, bundle):
        stale = await lifecycle.create_hold(hold_request(start_hour=10, customer_id=1))
        booked = await lifecycle.create_hold(hold_request(start_hour=11, customer_id=2))
        await lifecycle.confirm(booked.id, PaymentMethod.SWISH)
        clock.advance(minutes=6)

        report = await sweeper.execute()

        assert report.cancelled_holds == [stale.id]
        repo = bundle["reservation_repo"]
        assert (await repo.get(stale.id)).status == ReservationStatus.CANCELLED
        assert (await repo.get(stale.id)).cancel_reason == "hold_expired"
        assert (await repo.get(booked.id)).status == ReservationStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_fresh_hold_survives(self, lifecycle, sweeper, hold_request, clock):
        await lifecycle.create_hold(hold_request())
        clock.advance(minutes=4)

        report = await sweeper.execute()

        assert report.cancelled_holds == []
        assert report.total == 0

    @pytest.mark.asyncio
    async def test_stale_checkout_expires_its_order(
        self, lifecycle, reconciliation, sweeper, hold_request, clock, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        clock.advance(minutes=6)

        report = await sweeper.execute()

        assert report.cancelled_holds == [hold.id]
        assert report.expired_orders == 1
        stored = await bundle["payment_order_repo"].get(order.id)
        assert stored.status == PaymentOrderStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, lifecycle, sweeper, hold_request, clock):
        await lifecycle.create_hold(hold_request())
        clock.advance(minutes=6)

        first = await sweeper.execute()
        second = await sweeper.execute()

        assert len(first.cancelled_holds) == 1
        assert second.total == 0

    @pytest.mark.asyncio
    async def test_orders_for_past_lessons_expire(
        self, lifecycle, reconciliation, sweeper, hold_request, clock, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)
        order = await reconciliation.open_or_get_order(hold.id)
        clock.set_time(datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc))

        report = await sweeper.execute()

        assert report.past_date_orders == 1
        assert report.cancelled_holds == [], "Una reserva confirmada nunca se barre"
        stored = await bundle["payment_order_repo"].get(order.id)
        assert stored.status == PaymentOrderStatus.EXPIRED


class TestArchiveCancelled:
    @pytest.mark.asyncio
    async def test_archives_only_old_cancelled_rows(self, lifecycle, sweeper, hold_request, clock, bundle):
        cancelled = await lifecycle.create_hold(hold_request(start_hour=10))
        active = await lifecycle.create_hold(hold_request(start_hour=12))
        await lifecycle.confirm(active.id, PaymentMethod.PAY_AT_LOCATION)
        await lifecycle.cancel(cancelled.id)
        clock.advance(minutes=16)

        archived = await sweeper.archive_cancelled()

        assert archived == 1
        repo = bundle["reservation_repo"]
        assert (await repo.get(cancelled.id)).archived_at == clock.now()
        assert (await repo.get(active.id)).archived_at is None

    @pytest.mark.asyncio
    async def test_recent_cancellations_are_kept(self, lifecycle, sweeper, hold_request, clock):
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.cancel(hold.id)
        clock.advance(minutes=10)

        assert await sweeper.archive_cancelled() == 0
