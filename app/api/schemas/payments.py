from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from app.api.schemas.reservations import ReservationResponse
from app.domain.entities.payment_order import PaymentOrder, PaymentOrderStatus
from app.domain.entities.reservation import PaymentMethod


class CheckoutResponse(BaseModel):
    order_id: int
    merchant_reference: str
    payment_link: str | None = None
    status: PaymentOrderStatus
    amount: Decimal
    currency_code: str

    @classmethod
    def from_entity(cls, order: PaymentOrder) -> "CheckoutResponse":
        return cls(
            order_id=order.id,
            merchant_reference=order.merchant_reference,
            payment_link=order.payment_link,
            status=order.status,
            amount=order.amount,
            currency_code=order.currency_code,
        )


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: PaymentMethod = PaymentMethod.SWISH


class VerifyPaymentResponse(BaseModel):
    reservation: ReservationResponse
    changed: bool


class WorkerSweepResponse(BaseModel):
    cancelled_holds: list[int]
    expired_orders: int
    past_date_orders: int
    archived: int


class WorkerOutboxResponse(BaseModel):
    processed: int
