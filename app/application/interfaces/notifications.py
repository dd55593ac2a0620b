from app.domain.entities.reservation import Reservation


class NotificationService:
    async def send_booking_confirmed(
        self, reservation: Reservation, invoice_reference: str | None
    ) -> None:
        raise NotImplementedError

    async def send_payment_received(self, reservation: Reservation) -> None:
        raise NotImplementedError

    async def send_booking_cancelled(self, reservation: Reservation) -> None:
        raise NotImplementedError
