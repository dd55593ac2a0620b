"""Entidad PaymentOrder - orden del proveedor de pagos asociada a una reserva."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class PaymentOrderStatus(str, Enum):
    """Estados de una orden de pago."""

    CREATED = "CREATED"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


OPEN_ORDER_STATUSES = (PaymentOrderStatus.CREATED, PaymentOrderStatus.PENDING)


@dataclass
class PaymentOrder:
    """
    Orden de checkout en el proveedor.

    Como máximo una orden abierta (CREATED/PENDING) por reserva. El
    ``callback_token`` autoriza una única notificación de pago y caduca en
    ``callback_token_expires_at``.
    """

    id: int | None = None
    reservation_id: int = 0
    reservation_date: date | None = None
    merchant_reference: str = ""
    provider_order_id: str | None = None
    payment_link: str | None = None
    amount: Decimal = Decimal("0")
    currency_code: str = "SEK"
    status: PaymentOrderStatus = PaymentOrderStatus.CREATED
    callback_token: str | None = None
    callback_token_expires_at: datetime | None = None
    token_consumed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ORDER_STATUSES

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentOrderStatus.PAID

    def token_expired(self, now: datetime) -> bool:
        if self.callback_token_expires_at is None:
            return True
        return now >= self.callback_token_expires_at
