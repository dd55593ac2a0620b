import logging
from collections.abc import Awaitable, Callable

from app.application.interfaces.clock import Clock
from app.application.interfaces.invoicing import InvoicingService
from app.application.interfaces.notifications import NotificationService
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.outbox_event import OutboxEvent, OutboxEventType
from app.domain.entities.reservation import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

EventHandler = Callable[[OutboxEvent], Awaitable[None]]


class ProcessOutboxUseCase:
    """
    Handlers de eventos de dominio: factura y notificaciones.

    Un handler que lanza excepción deja el evento para reintento; la
    referencia de factura se guarda en la reserva, así que un reintento no
    genera una segunda factura.
    """

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        invoicing: InvoicingService,
        notifications: NotificationService,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._invoicing = invoicing
        self._notifications = notifications
        self._transaction_manager = transaction_manager
        self._clock = clock

    def handlers(self) -> dict[str, EventHandler]:
        return {
            OutboxEventType.BOOKING_CONFIRMED.value: self.handle_booking_confirmed,
            OutboxEventType.PAYMENT_RECEIVED.value: self.handle_payment_received,
            OutboxEventType.BOOKING_CANCELLED.value: self.handle_booking_cancelled,
        }

    async def handle_booking_confirmed(self, event: OutboxEvent) -> None:
        reservation = await self._load(event)
        if reservation is None:
            return
        invoice_reference = reservation.invoice_reference
        if invoice_reference is None:
            invoice_reference = await self._invoicing.create_invoice(reservation)
            async with self._transaction_manager.start():
                await self._reservation_repo.update_where(
                    reservation.id,
                    expected_statuses=tuple(ReservationStatus),
                    values={"invoice_reference": invoice_reference, "updated_at": self._clock.now()},
                )
            logger.info(
                "Invoice created",
                extra={"reservation_id": reservation.id, "invoice_reference": invoice_reference},
            )
        await self._notifications.send_booking_confirmed(reservation, invoice_reference)

    async def handle_payment_received(self, event: OutboxEvent) -> None:
        reservation = await self._load(event)
        if reservation is not None:
            await self._notifications.send_payment_received(reservation)

    async def handle_booking_cancelled(self, event: OutboxEvent) -> None:
        reservation = await self._load(event)
        if reservation is not None:
            await self._notifications.send_booking_cancelled(reservation)

    async def _load(self, event: OutboxEvent) -> Reservation | None:
        reservation_id = event.payload.get("reservation_id")
        if reservation_id is None:
            raise ValueError(f"Missing reservation_id in event {event.id}")
        async with self._transaction_manager.start():
            reservation = await self._reservation_repo.get(int(reservation_id))
        if reservation is None:
            logger.warning(
                "Reservation for outbox event not found",
                extra={"event_id": event.id, "reservation_id": reservation_id},
            )
        return reservation
