from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from app.domain.entities.payment_order import PaymentOrder, PaymentOrderStatus


class PaymentOrderRepo:
    async def create(self, order: PaymentOrder) -> PaymentOrder:
        """Inserta la orden; OpenPaymentOrderExistsError si ya hay una abierta."""
        raise NotImplementedError

    async def get(self, order_id: int) -> PaymentOrder | None:
        raise NotImplementedError

    async def get_open_for_reservation(self, reservation_id: int) -> PaymentOrder | None:
        raise NotImplementedError

    async def count_for_reservation(self, reservation_id: int) -> int:
        raise NotImplementedError

    async def find_by_provider_order_id(self, provider_order_id: str) -> PaymentOrder | None:
        raise NotImplementedError

    async def find_by_merchant_reference(self, merchant_reference: str) -> PaymentOrder | None:
        raise NotImplementedError

    async def find_by_token(self, callback_token: str) -> PaymentOrder | None:
        raise NotImplementedError

    async def update_where(
        self,
        order_id: int,
        expected_statuses: Sequence[PaymentOrderStatus],
        values: dict[str, Any],
    ) -> PaymentOrder | None:
        raise NotImplementedError

    async def expire_open_for_reservation(
        self,
        reservation_id: int,
        now: datetime,
        status: PaymentOrderStatus = PaymentOrderStatus.EXPIRED,
    ) -> int:
        raise NotImplementedError

    async def list_open_before(self, day: date) -> list[PaymentOrder]:
        """Órdenes abiertas cuya reserva es anterior a ``day``."""
        raise NotImplementedError
