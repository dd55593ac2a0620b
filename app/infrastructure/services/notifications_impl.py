import logging

from app.application.interfaces.notifications import NotificationService
from app.domain.entities.reservation import Reservation

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """Registra las notificaciones; el envío de email vive fuera de este servicio."""

    async def send_booking_confirmed(
        self, reservation: Reservation, invoice_reference: str | None
    ) -> None:
        logger.info(
            "Booking confirmation queued",
            extra={
                "reservation_id": reservation.id,
                "recipient": reservation.holder.masked(),
                "invoice_reference": invoice_reference,
            },
        )

    async def send_payment_received(self, reservation: Reservation) -> None:
        logger.info(
            "Payment receipt queued",
            extra={"reservation_id": reservation.id, "recipient": reservation.holder.masked()},
        )

    async def send_booking_cancelled(self, reservation: Reservation) -> None:
        logger.info(
            "Cancellation notice queued",
            extra={
                "reservation_id": reservation.id,
                "recipient": reservation.holder.masked(),
                "reason": reservation.cancel_reason,
            },
        )
