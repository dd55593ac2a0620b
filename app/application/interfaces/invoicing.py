from app.domain.entities.reservation import Reservation


class InvoicingService:
    async def create_invoice(self, reservation: Reservation) -> str:
        """Genera la factura y retorna su referencia."""
        raise NotImplementedError
