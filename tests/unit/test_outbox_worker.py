"""
Tests del worker de outbox: factura, notificaciones y reintentos.
"""

from datetime import timedelta

import pytest

from app.application.use_cases.process_outbox import ProcessOutboxUseCase
from app.domain.entities.outbox_event import OutboxEvent, OutboxStatus
from app.domain.entities.reservation import PaymentMethod
from app.infrastructure.messaging.outbox_worker import OutboxWorker
from app.infrastructure.services.notifications_impl import LoggingNotificationService


class CountingInvoicing:
    def __init__(self) -> None:
        self.calls = 0

    async def create_invoice(self, reservation) -> str:
        self.calls += 1
        return f"INV-{reservation.id}"


class FlakyNotifications(LoggingNotificationService):
    """Falla las primeras ``failures`` confirmaciones."""

    def __init__(self, failures: int) -> None:
        self.failures = failures

    async def send_booking_confirmed(self, reservation, invoice_reference) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("smtp unavailable")
        await super().send_booking_confirmed(reservation, invoice_reference)


def make_worker(bundle, invoicing, notifications, max_retries: int = 5) -> OutboxWorker:
    process = ProcessOutboxUseCase(
        reservation_repo=bundle["reservation_repo"],
        invoicing=invoicing,
        notifications=notifications,
        transaction_manager=bundle["tx_manager"],
        clock=bundle["clock"],
    )
    worker = OutboxWorker(
        outbox_repo=bundle["outbox_repo"],
        transaction_manager=bundle["tx_manager"],
        clock=bundle["clock"],
        worker_id="worker-test",
        max_retries=max_retries,
    )
    for event_type, handler in process.handlers().items():
        worker.register_handler(event_type, handler)
    return worker


class TestOutboxWorker:
    @pytest.mark.asyncio
    async def test_confirmation_issues_invoice(self, use_cases, lifecycle, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)

        processed = await use_cases["outbox_worker"].run_once()

        assert processed == 1
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.invoice_reference == f"INV-20250310-{hold.id:06d}"
        assert all(e.status == OutboxStatus.DONE for e in bundle["outbox_repo"].events.values())
        assert await use_cases["outbox_worker"].run_once() == 0

    @pytest.mark.asyncio
    async def test_retry_does_not_invoice_twice(self, lifecycle, hold_request, bundle, clock):
        invoicing = CountingInvoicing()
        worker = make_worker(bundle, invoicing, FlakyNotifications(failures=1))
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)

        assert await worker.run_once() == 0
        clock.advance(seconds=30)
        assert await worker.run_once() == 1

        assert invoicing.calls == 1, "La factura debe emitirse una sola vez"
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.invoice_reference == f"INV-{hold.id}"

    @pytest.mark.asyncio
    async def test_failed_handler_backs_off_exponentially(self, lifecycle, hold_request, bundle, clock):
        worker = make_worker(bundle, CountingInvoicing(), FlakyNotifications(failures=3))
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)
        outbox = bundle["outbox_repo"]
        event_id = next(iter(outbox.events))

        await worker.run_once()
        event = outbox.events[event_id]
        assert event.status == OutboxStatus.RETRY
        assert event.attempts == 1
        assert event.next_attempt_at == clock.now() + timedelta(seconds=30)
        assert event.error_message == "smtp unavailable"

        assert await worker.run_once() == 0, "No se reintenta antes del backoff"

        clock.advance(seconds=30)
        await worker.run_once()
        assert outbox.events[event_id].attempts == 2
        assert outbox.events[event_id].next_attempt_at == clock.now() + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_event_fails_after_max_attempts(self, lifecycle, hold_request, bundle, clock):
        worker = make_worker(bundle, CountingInvoicing(), FlakyNotifications(failures=10), max_retries=2)
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)
        outbox = bundle["outbox_repo"]

        await worker.run_once()
        clock.advance(minutes=5)
        await worker.run_once()

        event = next(iter(outbox.events.values()))
        assert event.status == OutboxStatus.FAILED
        assert event.attempts == 2
        clock.advance(hours=1)
        assert await worker.run_once() == 0

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_completed(self, bundle, clock):
        worker = make_worker(bundle, CountingInvoicing(), LoggingNotificationService())
        outbox = bundle["outbox_repo"]
        stored = await outbox.enqueue(OutboxEvent(event_type="LEGACY_EVENT"), clock.now())

        assert await worker.run_once() == 1
        assert outbox.events[stored.id].status == OutboxStatus.DONE

    @pytest.mark.asyncio
    async def test_event_without_reservation_id_is_retried(self, bundle, clock):
        worker = make_worker(bundle, CountingInvoicing(), LoggingNotificationService())
        outbox = bundle["outbox_repo"]
        stored = await outbox.enqueue(OutboxEvent(event_type="BOOKING_CANCELLED"), clock.now())

        assert await worker.run_once() == 0
        assert outbox.events[stored.id].status == OutboxStatus.RETRY

    @pytest.mark.asyncio
    async def test_cancellation_notice_is_sent(self, use_cases, lifecycle, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.cancel(hold.id, reason="changed plans")

        assert await use_cases["outbox_worker"].run_once() == 1
        assert bundle["outbox_repo"].by_type("BOOKING_CANCELLED")[0].status == OutboxStatus.DONE
