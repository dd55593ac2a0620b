from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.domain.entities.payment_order import (
    OPEN_ORDER_STATUSES,
    PaymentOrder,
    PaymentOrderStatus,
)
from app.domain.errors import OpenPaymentOrderExistsError
from app.infrastructure.db.tables import from_db_datetime, payment_orders, to_db_datetime

_DATETIME_FIELDS = ("callback_token_expires_at", "token_consumed_at", "created_at", "updated_at")
_OPEN = [s.value for s in OPEN_ORDER_STATUSES]


class PaymentOrderRepoSQL(PaymentOrderRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, order: PaymentOrder) -> PaymentOrder:
        values = self._to_columns(
            {
                "reservation_id": order.reservation_id,
                "reservation_date": order.reservation_date,
                "merchant_reference": order.merchant_reference,
                "provider_order_id": order.provider_order_id,
                "payment_link": order.payment_link,
                "amount": order.amount,
                "currency_code": order.currency_code,
                "status": order.status,
                "callback_token": order.callback_token,
                "callback_token_expires_at": order.callback_token_expires_at,
                "token_consumed_at": order.token_consumed_at,
                "created_at": order.created_at,
                "updated_at": order.updated_at,
            }
        )
        try:
            result = await self._session.execute(insert(payment_orders).values(values))
        except IntegrityError as exc:
            # open-order index or a merchant reference taken by a concurrent checkout
            raise OpenPaymentOrderExistsError(order.reservation_id) from exc
        return await self.get(result.inserted_primary_key[0])

    async def get(self, order_id: int) -> PaymentOrder | None:
        return await self._first(payment_orders.c.id == order_id)

    async def get_open_for_reservation(self, reservation_id: int) -> PaymentOrder | None:
        return await self._first(
            payment_orders.c.reservation_id == reservation_id,
            payment_orders.c.status.in_(_OPEN),
        )

    async def count_for_reservation(self, reservation_id: int) -> int:
        stmt = select(func.count()).select_from(payment_orders).where(
            payment_orders.c.reservation_id == reservation_id
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def find_by_provider_order_id(self, provider_order_id: str) -> PaymentOrder | None:
        return await self._first(payment_orders.c.provider_order_id == provider_order_id)

    async def find_by_merchant_reference(self, merchant_reference: str) -> PaymentOrder | None:
        return await self._first(payment_orders.c.merchant_reference == merchant_reference)

    async def find_by_token(self, callback_token: str) -> PaymentOrder | None:
        return await self._first(payment_orders.c.callback_token == callback_token)

    async def update_where(
        self,
        order_id: int,
        expected_statuses: Sequence[PaymentOrderStatus],
        values: dict[str, Any],
    ) -> PaymentOrder | None:
        stmt = (
            update(payment_orders)
            .where(
                payment_orders.c.id == order_id,
                payment_orders.c.status.in_([s.value for s in expected_statuses]),
            )
            .values(**self._to_columns(values))
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(order_id)

    async def expire_open_for_reservation(
        self,
        reservation_id: int,
        now: datetime,
        status: PaymentOrderStatus = PaymentOrderStatus.EXPIRED,
    ) -> int:
        stmt = (
            update(payment_orders)
            .where(
                payment_orders.c.reservation_id == reservation_id,
                payment_orders.c.status.in_(_OPEN),
            )
            .values(status=status.value, updated_at=to_db_datetime(now))
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def list_open_before(self, day: date) -> list[PaymentOrder]:
        stmt = (
            select(payment_orders)
            .where(
                payment_orders.c.status.in_(_OPEN),
                payment_orders.c.reservation_date < day,
            )
            .order_by(payment_orders.c.id)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._from_row(row) for row in rows]

    async def _first(self, *conditions) -> PaymentOrder | None:
        stmt = select(payment_orders).where(*conditions).order_by(payment_orders.c.id.desc()).limit(1)
        row = (await self._session.execute(stmt)).mappings().first()
        return self._from_row(row) if row else None

    @staticmethod
    def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
        columns: dict[str, Any] = {}
        for key, value in values.items():
            if key in _DATETIME_FIELDS:
                columns[key] = to_db_datetime(value)
            elif isinstance(value, PaymentOrderStatus):
                columns[key] = value.value
            else:
                columns[key] = value
        return columns

    @staticmethod
    def _from_row(row) -> PaymentOrder:
        return PaymentOrder(
            id=row["id"],
            reservation_id=row["reservation_id"],
            reservation_date=row["reservation_date"],
            merchant_reference=row["merchant_reference"],
            provider_order_id=row["provider_order_id"],
            payment_link=row["payment_link"],
            amount=Decimal(str(row["amount"])),
            currency_code=row["currency_code"],
            status=PaymentOrderStatus(row["status"]),
            callback_token=row["callback_token"],
            callback_token_expires_at=from_db_datetime(row["callback_token_expires_at"]),
            token_consumed_at=from_db_datetime(row["token_consumed_at"]),
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
