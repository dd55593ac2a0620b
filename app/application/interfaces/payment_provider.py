from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

PAID_PROVIDER_STATUSES = frozenset({"Completed", "Paid"})
FAILED_PROVIDER_STATUSES = frozenset({"Refused", "Cancelled", "Expired", "Failed"})


@dataclass
class ProviderOrder:
    provider_order_id: str
    status: str
    payment_link: str | None = None
    merchant_reference: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_PROVIDER_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_PROVIDER_STATUSES


@dataclass
class CheckoutRequest:
    merchant_reference: str
    amount: Decimal
    currency_code: str
    push_url: str
    description: str
    customer_email: str | None = None
    customer_phone: str | None = None


class PaymentProviderClient:
    async def create_order(self, request: CheckoutRequest) -> ProviderOrder:
        raise NotImplementedError

    async def get_order(self, provider_order_id: str) -> ProviderOrder | None:
        """Retorna None si el proveedor no conoce la orden."""
        raise NotImplementedError

    def verify_signature(self, raw_body: bytes, signature_header: str | None) -> bool:
        raise NotImplementedError
