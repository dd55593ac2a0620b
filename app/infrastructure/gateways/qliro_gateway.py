import asyncio
import base64
import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any

import httpx

from app.application.interfaces.payment_provider import (
    CheckoutRequest,
    PaymentProviderClient,
    ProviderOrder,
)
from app.domain.errors import PaymentProviderError
from app.infrastructure.circuit_breaker import CircuitBreakerError, payment_breaker

logger = logging.getLogger(__name__)


class ProviderUnavailableError(Exception):
    """5xx o fallo de red: cuenta como fallo para el circuit breaker."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QliroGateway(PaymentProviderClient):
    """
    Cliente HTTP de Qliro One (merchant API).

    Cada request va firmado con ``Authorization: Qliro base64(sha256(body + secret))``.
    httpx se usa en modo síncrono dentro de ``asyncio.to_thread`` porque
    pybreaker solo protege llamadas síncronas.

    ``payment_breaker.call`` mantiene el lock del breaker durante todo el
    request, así que un proceso envía a Qliro un request a la vez; con el
    timeout por defecto (10 s) un proveedor lento encola los checkouts
    concurrentes. Escalar checkouts significa más procesos, no más hilos.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        api_secret: str,
        webhook_secret: str | None,
        terms_url: str,
        confirmation_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._api_secret = api_secret
        self._webhook_secret = webhook_secret
        self._terms_url = terms_url
        self._confirmation_url = confirmation_url
        self._timeout = timeout_seconds
        self._transport = transport

    # === API ===

    async def create_order(self, request: CheckoutRequest) -> ProviderOrder:
        payload = self._order_payload(request)
        body = json.dumps(payload)
        response = await self._send("POST", "/checkout/merchantapi/Orders", body)
        if not 200 <= response.status_code < 300:
            logger.error(
                "Qliro rejected order creation",
                extra={
                    "merchant_reference": request.merchant_reference,
                    "status_code": response.status_code,
                },
            )
            raise PaymentProviderError(
                f"Payment provider rejected the order ({response.status_code})",
                status_code=response.status_code,
            )

        data = self._json(response)
        payment_link = data.get("PaymentLink")
        order_id = data.get("OrderId")
        if not payment_link or order_id is None:
            raise PaymentProviderError("Payment provider did not return a payment link")
        return ProviderOrder(
            provider_order_id=str(order_id),
            status=data.get("Status") or "InProcess",
            payment_link=payment_link,
            merchant_reference=request.merchant_reference,
            raw=data,
        )

    async def get_order(self, provider_order_id: str) -> ProviderOrder | None:
        path = f"/checkout/merchantapi/orders/{provider_order_id}"
        response = await self._send("GET", path, None)
        if response.status_code == 404:
            return None
        if not 200 <= response.status_code < 300:
            raise PaymentProviderError(
                f"Payment provider order lookup failed ({response.status_code})",
                status_code=response.status_code,
            )
        data = self._json(response)
        return ProviderOrder(
            provider_order_id=str(data.get("OrderId") or provider_order_id),
            status=data.get("CustomerCheckoutStatus") or data.get("Status") or "",
            payment_link=data.get("PaymentLink"),
            merchant_reference=data.get("MerchantReference"),
            raw=data,
        )

    def verify_signature(self, raw_body: bytes, signature_header: str | None) -> bool:
        if not signature_header or not self._webhook_secret:
            return False
        expected = hmac.new(self._webhook_secret.encode(), raw_body, hashlib.sha256).hexdigest()
        presented = signature_header.strip().removeprefix("sha256=").lower()
        return hmac.compare_digest(expected, presented)

    # === Helpers ===

    def auth_header(self, body: str | None) -> str:
        digest = hashlib.sha256(((body or "") + self._api_secret).encode()).digest()
        return f"Qliro {base64.b64encode(digest).decode()}"

    def _order_payload(self, request: CheckoutRequest) -> dict[str, Any]:
        price = float(Decimal(request.amount).quantize(Decimal("0.01")))
        payload: dict[str, Any] = {
            "MerchantApiKey": self._api_key,
            "MerchantReference": request.merchant_reference,
            "Currency": request.currency_code,
            "Country": "SE",
            "Language": "sv-se",
            "MerchantTermsUrl": self._terms_url,
            "MerchantConfirmationUrl": self._confirmation_url,
            "MerchantCheckoutStatusPushUrl": request.push_url,
            "OrderItems": [
                {
                    "MerchantReference": request.merchant_reference,
                    "Description": request.description,
                    "Type": "Product",
                    "Quantity": 1,
                    "PricePerItemIncVat": price,
                    "PricePerItemExVat": price,
                    "VatRate": 0,
                }
            ],
        }
        if request.customer_email or request.customer_phone:
            payload["CustomerInformation"] = {
                "Email": request.customer_email,
                "MobileNumber": request.customer_phone,
                "JuridicalType": "Physical",
            }
        return payload

    async def _send(self, method: str, path: str, body: str | None) -> httpx.Response:
        url = f"{self._api_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": self.auth_header(body),
        }

        def _request() -> httpx.Response:
            try:
                with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                    response = client.request(method, url, content=body, headers=headers)
            except httpx.HTTPError as exc:
                raise ProviderUnavailableError(str(exc)) from exc
            if response.status_code >= 500:
                raise ProviderUnavailableError(
                    f"Payment provider error {response.status_code}", response.status_code
                )
            return response

        try:
            return await asyncio.to_thread(payment_breaker.call, _request)
        except CircuitBreakerError as exc:
            logger.error(
                "Payment provider circuit breaker is open - service unavailable",
                extra={"path": path, "circuit_state": str(exc)},
            )
            raise PaymentProviderError("Payment provider temporarily unavailable") from exc
        except ProviderUnavailableError as exc:
            logger.error(
                "Payment provider request failed",
                extra={"path": path, "status_code": exc.status_code, "error": str(exc)},
            )
            raise PaymentProviderError(
                "Payment provider request failed", status_code=exc.status_code
            ) from exc

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise PaymentProviderError("Payment provider returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise PaymentProviderError("Payment provider returned an unexpected body")
        return data
