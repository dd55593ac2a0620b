from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.domain.entities.payment_order import (
    OPEN_ORDER_STATUSES,
    PaymentOrder,
    PaymentOrderStatus,
)
from app.domain.errors import OpenPaymentOrderExistsError


class InMemoryPaymentOrderRepo(PaymentOrderRepo):
    def __init__(self) -> None:
        self.orders: dict[int, PaymentOrder] = {}
        self._next_id = 1

    async def create(self, order: PaymentOrder) -> PaymentOrder:
        if order.status in OPEN_ORDER_STATUSES and any(
            o.reservation_id == order.reservation_id and o.is_open for o in self.orders.values()
        ):
            raise OpenPaymentOrderExistsError(order.reservation_id)
        stored = replace(order, id=self._next_id)
        self.orders[stored.id] = stored
        self._next_id += 1
        return replace(stored)

    async def get(self, order_id: int) -> PaymentOrder | None:
        order = self.orders.get(order_id)
        return replace(order) if order else None

    async def get_open_for_reservation(self, reservation_id: int) -> PaymentOrder | None:
        return self._first(lambda o: o.reservation_id == reservation_id and o.is_open)

    async def count_for_reservation(self, reservation_id: int) -> int:
        return sum(1 for o in self.orders.values() if o.reservation_id == reservation_id)

    async def find_by_provider_order_id(self, provider_order_id: str) -> PaymentOrder | None:
        return self._first(lambda o: o.provider_order_id == provider_order_id)

    async def find_by_merchant_reference(self, merchant_reference: str) -> PaymentOrder | None:
        return self._first(lambda o: o.merchant_reference == merchant_reference)

    async def find_by_token(self, callback_token: str) -> PaymentOrder | None:
        return self._first(lambda o: o.callback_token == callback_token)

    async def update_where(
        self,
        order_id: int,
        expected_statuses: Sequence[PaymentOrderStatus],
        values: dict[str, Any],
    ) -> PaymentOrder | None:
        order = self.orders.get(order_id)
        if order is None or order.status not in expected_statuses:
            return None
        updated = replace(order, **values)
        self.orders[order_id] = updated
        return replace(updated)

    async def expire_open_for_reservation(
        self,
        reservation_id: int,
        now: datetime,
        status: PaymentOrderStatus = PaymentOrderStatus.EXPIRED,
    ) -> int:
        expired = 0
        for order_id, order in list(self.orders.items()):
            if order.reservation_id == reservation_id and order.is_open:
                self.orders[order_id] = replace(order, status=status, updated_at=now)
                expired += 1
        return expired

    async def list_open_before(self, day: date) -> list[PaymentOrder]:
        return [
            replace(o)
            for o in self.orders.values()
            if o.is_open and o.reservation_date is not None and o.reservation_date < day
        ]

    def _first(self, predicate) -> PaymentOrder | None:
        # Latest first, so a reference reused after a retry resolves to the newest order.
        for order_id in sorted(self.orders, reverse=True):
            if predicate(self.orders[order_id]):
                return replace(self.orders[order_id])
        return None
