import logging

from app.application.interfaces.invoicing import InvoicingService
from app.domain.entities.reservation import Reservation

logger = logging.getLogger(__name__)


class LoggingInvoicingService(InvoicingService):
    """
    Emite la referencia de factura y deja constancia en el log.

    La generación del PDF y el envío pertenecen al servicio de facturación;
    la referencia es determinista por reserva.
    """

    def __init__(self, prefix: str = "INV") -> None:
        self._prefix = prefix

    async def create_invoice(self, reservation: Reservation) -> str:
        reference = f"{self._prefix}-{reservation.date:%Y%m%d}-{reservation.id:06d}"
        logger.info(
            "Invoice issued",
            extra={
                "reservation_id": reservation.id,
                "invoice_reference": reference,
                "amount": str(reservation.total_price),
                "currency": reservation.currency_code,
            },
        )
        return reference
