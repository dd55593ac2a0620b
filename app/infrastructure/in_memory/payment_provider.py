import hashlib
import hmac

from app.application.interfaces.payment_provider import (
    CheckoutRequest,
    PaymentProviderClient,
    ProviderOrder,
)
from app.domain.errors import PaymentProviderError


class InMemoryPaymentProvider(PaymentProviderClient):
    """Proveedor simulado para desarrollo y tests; firma con HMAC como el real."""

    def __init__(self, webhook_secret: str | None, checkout_base_url: str = "https://checkout.example") -> None:
        self._webhook_secret = webhook_secret
        self._checkout_base_url = checkout_base_url.rstrip("/")
        self.orders: dict[str, ProviderOrder] = {}
        self.requests: list[CheckoutRequest] = []
        self.fail_next_create = False
        self.fail_lookups = False
        self._next_id = 1000

    async def create_order(self, request: CheckoutRequest) -> ProviderOrder:
        self.requests.append(request)
        if self.fail_next_create:
            self.fail_next_create = False
            raise PaymentProviderError("Payment provider request failed", status_code=503)
        order_id = str(self._next_id)
        self._next_id += 1
        order = ProviderOrder(
            provider_order_id=order_id,
            status="InProcess",
            payment_link=f"{self._checkout_base_url}/pay/{order_id}",
            merchant_reference=request.merchant_reference,
        )
        self.orders[order_id] = order
        return order

    async def get_order(self, provider_order_id: str) -> ProviderOrder | None:
        if self.fail_lookups:
            raise PaymentProviderError("Payment provider request failed", status_code=503)
        return self.orders.get(provider_order_id)

    def verify_signature(self, raw_body: bytes, signature_header: str | None) -> bool:
        if not signature_header or not self._webhook_secret:
            return False
        return hmac.compare_digest(self.sign(raw_body), signature_header.strip().lower())

    def sign(self, raw_body: bytes) -> str:
        return hmac.new(self._webhook_secret.encode(), raw_body, hashlib.sha256).hexdigest()

    def set_status(self, provider_order_id: str, status: str) -> None:
        self.orders[provider_order_id].status = status

    def forget(self, provider_order_id: str) -> None:
        self.orders.pop(provider_order_id, None)
