import hmac
import json
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from app.application.dtos.payment_dto import CallbackReason, CallbackResult
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.application.interfaces.payment_provider import (
    PAID_PROVIDER_STATUSES,
    CheckoutRequest,
    PaymentProviderClient,
)
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.reservation_lifecycle import ReservationLifecycleManager
from app.domain.entities.payment_order import (
    OPEN_ORDER_STATUSES,
    PaymentOrder,
    PaymentOrderStatus,
)
from app.domain.entities.reservation import (
    ACTIVE_STATUSES,
    PaymentMethod,
    PaymentStatus,
    Reservation,
)
from app.domain.errors import (
    AlreadyTerminalError,
    DomainError,
    InvalidMoneyError,
    OpenPaymentOrderExistsError,
    PaymentProviderError,
    ReservationNotFoundError,
)
from app.domain.policy import LeasePolicy
from app.domain.value_objects.holder import Holder
from app.domain.value_objects.merchant_reference import MerchantReference
from app.domain.value_objects.money import Money

# A CREATED order without provider id is treated as abandoned after this long.
ORPHAN_ORDER_GRACE = timedelta(minutes=1)
UNSETTLED_ORDER_STATUSES = tuple(s for s in PaymentOrderStatus if s != PaymentOrderStatus.PAID)


def mask(value: str | None) -> str | None:
    """Deja los primeros 4 caracteres, suficiente para correlacionar logs."""
    if not value:
        return value
    return f"{value[:4]}***"


@dataclass
class CallbackContext:
    """Estado acumulado por los pasos del pipeline de verificación."""

    signature_header: str | None
    raw_body: bytes
    token: str | None
    now: datetime
    provider_order_id: str | None = None
    merchant_reference: str | None = None
    provider_status: str | None = None
    order: PaymentOrder | None = None
    reservation: Reservation | None = None


CallbackStep = Callable[[CallbackContext], Awaitable[CallbackResult | None]]


class PaymentReconciliationService:
    """
    Concilia el estado local con el proveedor de pagos.

    - ``open_or_get_order``: como máximo una orden abierta por reserva.
    - ``handle_provider_callback``: verifica notificaciones de pago con un
      pipeline ordenado de pasos; cada paso retorna None para continuar o un
      CallbackResult que corta la cadena con un motivo propio.
    """

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        payment_order_repo: PaymentOrderRepo,
        payment_provider: PaymentProviderClient,
        lifecycle: ReservationLifecycleManager,
        transaction_manager: TransactionManager,
        clock: Clock,
        policy: LeasePolicy,
        public_base_url: str,
        currency_code: str = "SEK",
    ) -> None:
        self._reservation_repo = reservation_repo
        self._payment_order_repo = payment_order_repo
        self._payment_provider = payment_provider
        self._lifecycle = lifecycle
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._policy = policy
        self._public_base_url = public_base_url.rstrip("/")
        self._currency_code = currency_code
        self._logger = logging.getLogger(__name__)
        self._steps: list[CallbackStep] = [
            self._verify_signature,
            self._parse_payload,
            self._resolve_order,
            self._check_order_token,
            self._resolve_by_token,
            self._require_order,
            self._require_paid_status,
            self._load_reservation,
        ]

    # === Checkout ===

    async def open_or_get_order(
        self,
        reservation_id: int,
        amount: Decimal | None = None,
        customer: Holder | None = None,
    ) -> PaymentOrder:
        for _ in range(3):
            async with self._transaction_manager.start():
                reservation = await self._reservation_repo.get(reservation_id)
                if reservation is None:
                    raise ReservationNotFoundError(reservation_id)
                if not reservation.awaiting_payment:
                    raise AlreadyTerminalError(
                        reservation_id,
                        f"{reservation.status.value}/{reservation.payment_status.value}",
                        "start checkout for",
                    )
                existing = await self._payment_order_repo.get_open_for_reservation(reservation_id)

            if existing is not None:
                refreshed = await self._refresh(existing)
                if refreshed is not None:
                    return refreshed

            try:
                return await self._create_order(reservation, amount, customer or reservation.holder)
            except OpenPaymentOrderExistsError:
                self._logger.info(
                    "Concurrent checkout created an order, reusing it",
                    extra={"reservation_id": reservation_id},
                )
        raise OpenPaymentOrderExistsError(reservation_id)

    async def _refresh(self, order: PaymentOrder) -> PaymentOrder | None:
        """Estado vivo de una orden abierta; None si quedó cerrada y hay que crear otra."""
        now = self._clock.now()
        if order.provider_order_id is None:
            if order.created_at and now - order.created_at < ORPHAN_ORDER_GRACE:
                return order
            await self._close_order(order, PaymentOrderStatus.FAILED, now)
            return None

        try:
            live = await self._payment_provider.get_order(order.provider_order_id)
        except PaymentProviderError as exc:
            self._logger.warning(
                "Could not refresh payment order, returning stored state",
                extra={"order_id": order.id, "error": exc.message},
            )
            return order

        if live is not None and live.is_paid:
            await self._apply_paid(order, now, source="status_poll")
            async with self._transaction_manager.start():
                return await self._payment_order_repo.get(order.id)
        if live is None or live.is_failed:
            await self._close_order(
                order, PaymentOrderStatus.FAILED if live else PaymentOrderStatus.EXPIRED, now
            )
            return None
        if order.token_expired(now):
            # callbacks for this order would be rejected from now on
            await self._close_order(order, PaymentOrderStatus.EXPIRED, now)
            return None
        if live.payment_link and live.payment_link != order.payment_link:
            async with self._transaction_manager.start():
                updated = await self._payment_order_repo.update_where(
                    order.id,
                    expected_statuses=OPEN_ORDER_STATUSES,
                    values={"payment_link": live.payment_link, "updated_at": now},
                )
            return updated or order
        return order

    async def _create_order(
        self, reservation: Reservation, amount: Decimal | None, customer: Holder
    ) -> PaymentOrder:
        price = Money(amount=amount if amount is not None else reservation.total_price,
                      currency_code=self._currency_code)
        if price.is_zero():
            raise InvalidMoneyError("Online checkout requires a positive amount")
        now = self._clock.now()
        token = secrets.token_urlsafe(32)

        async with self._transaction_manager.start():
            attempt = await self._payment_order_repo.count_for_reservation(reservation.id) + 1
            order = await self._payment_order_repo.create(
                PaymentOrder(
                    reservation_id=reservation.id,
                    reservation_date=reservation.date,
                    merchant_reference=MerchantReference(reservation.id, attempt).value,
                    amount=price.amount,
                    currency_code=price.currency_code,
                    status=PaymentOrderStatus.CREATED,
                    callback_token=token,
                    callback_token_expires_at=self._policy.token_expiry(now),
                    created_at=now,
                    updated_at=now,
                )
            )
            await self._reservation_repo.update_where(
                reservation.id,
                expected_statuses=ACTIVE_STATUSES,
                expected_payment_statuses=(PaymentStatus.UNSET,),
                values={"payment_status": PaymentStatus.PENDING, "updated_at": now},
            )

        request = CheckoutRequest(
            merchant_reference=order.merchant_reference,
            amount=price.amount,
            currency_code=price.currency_code,
            push_url=f"{self._public_base_url}/api/v1/webhooks/payments?token={token}",
            description=f"{reservation.lesson_type} {reservation.date.isoformat()} "
            f"{reservation.start_time.strftime('%H:%M')}",
            customer_email=customer.guest_email or reservation.payer_email,
            customer_phone=customer.guest_phone or reservation.payer_phone,
        )
        try:
            provider_order = await self._payment_provider.create_order(request)
        except PaymentProviderError:
            await self._close_order(order, PaymentOrderStatus.FAILED, self._clock.now())
            raise

        async with self._transaction_manager.start():
            updated = await self._payment_order_repo.update_where(
                order.id,
                expected_statuses=(PaymentOrderStatus.CREATED,),
                values={
                    "status": PaymentOrderStatus.PENDING,
                    "provider_order_id": provider_order.provider_order_id,
                    "payment_link": provider_order.payment_link,
                    "updated_at": self._clock.now(),
                },
            )
            if updated is None:
                updated = await self._payment_order_repo.get(order.id)

        self._logger.info(
            "Payment order created",
            extra={
                "reservation_id": reservation.id,
                "order_id": order.id,
                "merchant_reference": order.merchant_reference,
                "provider_order_id": mask(provider_order.provider_order_id),
            },
        )
        return updated

    async def _close_order(self, order: PaymentOrder, status: PaymentOrderStatus, now: datetime) -> None:
        async with self._transaction_manager.start():
            await self._payment_order_repo.update_where(
                order.id,
                expected_statuses=OPEN_ORDER_STATUSES,
                values={"status": status, "updated_at": now},
            )

    # === Callback del proveedor ===

    async def handle_provider_callback(
        self, signature_header: str | None, raw_body: bytes, token: str | None
    ) -> CallbackResult:
        ctx = CallbackContext(
            signature_header=signature_header,
            raw_body=raw_body,
            token=token or None,
            now=self._clock.now(),
        )
        result = None
        async with self._transaction_manager.start():
            for step in self._steps:
                result = await step(ctx)
                if result is not None:
                    break

        if result is None:
            result = await self._apply_paid(ctx.order, ctx.now, source="callback")
        self._log_result(ctx, result)
        return result

    async def _verify_signature(self, ctx: CallbackContext) -> CallbackResult | None:
        if not ctx.signature_header:
            return CallbackResult.rejected(CallbackReason.MISSING_SIGNATURE)
        if not self._payment_provider.verify_signature(ctx.raw_body, ctx.signature_header):
            return CallbackResult.rejected(CallbackReason.INVALID_SIGNATURE)
        return None

    async def _parse_payload(self, ctx: CallbackContext) -> CallbackResult | None:
        try:
            payload = json.loads(ctx.raw_body)
        except (UnicodeDecodeError, ValueError):
            return CallbackResult.rejected(CallbackReason.MALFORMED_PAYLOAD, http_status=400)
        if not isinstance(payload, dict):
            return CallbackResult.rejected(CallbackReason.MALFORMED_PAYLOAD, http_status=400)

        order_id = payload.get("OrderId")
        reference = payload.get("MerchantReference")
        status = payload.get("Status")
        if not isinstance(status, str) or (order_id is None and reference is None):
            return CallbackResult.rejected(CallbackReason.MALFORMED_PAYLOAD, http_status=400)

        ctx.provider_status = status
        ctx.provider_order_id = str(order_id) if order_id is not None else None
        if reference is not None:
            parsed = MerchantReference.parse(reference if isinstance(reference, str) else None)
            if parsed is None:
                return CallbackResult.ignored(CallbackReason.UNKNOWN_REFERENCE)
            ctx.merchant_reference = parsed.value
        return None

    async def _resolve_order(self, ctx: CallbackContext) -> CallbackResult | None:
        order = None
        if ctx.provider_order_id:
            order = await self._payment_order_repo.find_by_provider_order_id(ctx.provider_order_id)
        if order is None and ctx.merchant_reference:
            order = await self._payment_order_repo.find_by_merchant_reference(ctx.merchant_reference)
        if order is not None and not self._identifiers_agree(ctx, order):
            return CallbackResult.rejected(CallbackReason.IDENTIFIER_MISMATCH)
        ctx.order = order
        return None

    async def _check_order_token(self, ctx: CallbackContext) -> CallbackResult | None:
        if ctx.order is None or not ctx.order.callback_token:
            return None
        return self._token_verdict(ctx, ctx.order)

    async def _resolve_by_token(self, ctx: CallbackContext) -> CallbackResult | None:
        if ctx.order is not None or not ctx.token:
            return None
        order = await self._payment_order_repo.find_by_token(ctx.token)
        if order is None:
            return None
        if not self._identifiers_agree(ctx, order):
            return CallbackResult.rejected(CallbackReason.IDENTIFIER_MISMATCH)
        ctx.order = order
        return self._token_verdict(ctx, order)

    async def _require_order(self, ctx: CallbackContext) -> CallbackResult | None:
        if ctx.order is None:
            return CallbackResult.rejected(CallbackReason.MISSING_TOKEN)
        return None

    async def _require_paid_status(self, ctx: CallbackContext) -> CallbackResult | None:
        if ctx.provider_status not in PAID_PROVIDER_STATUSES:
            return CallbackResult.ignored(CallbackReason.NOT_PAID_STATUS)
        return None

    async def _load_reservation(self, ctx: CallbackContext) -> CallbackResult | None:
        reservation = await self._reservation_repo.get(ctx.order.reservation_id)
        if reservation is None:
            return CallbackResult.ignored(CallbackReason.UNKNOWN_REFERENCE)
        if reservation.is_cancelled or reservation.is_paid:
            return CallbackResult.ignored(CallbackReason.ALREADY_TERMINAL)
        ctx.reservation = reservation
        return None

    def _token_verdict(self, ctx: CallbackContext, order: PaymentOrder) -> CallbackResult | None:
        presented = ctx.token or ""
        matches = hmac.compare_digest(presented.encode(), order.callback_token.encode())
        if not matches:
            return CallbackResult.rejected(CallbackReason.TOKEN_MISMATCH)
        if order.is_settled or order.token_consumed_at is not None:
            return CallbackResult.ignored(CallbackReason.TOKEN_ALREADY_USED)
        if order.token_expired(ctx.now):
            return CallbackResult.rejected(CallbackReason.TOKEN_EXPIRED)
        return None

    @staticmethod
    def _identifiers_agree(ctx: CallbackContext, order: PaymentOrder) -> bool:
        if ctx.provider_order_id and order.provider_order_id:
            if ctx.provider_order_id != order.provider_order_id:
                return False
        if ctx.merchant_reference and ctx.merchant_reference != order.merchant_reference:
            return False
        return True

    async def _apply_paid(self, order: PaymentOrder, now: datetime, source: str) -> CallbackResult:
        """Registra el pago en la reserva y liquida la orden, consumiendo su token."""
        changed = False
        try:
            application = await self._lifecycle.record_payment(
                order.reservation_id, PaymentMethod.QLIRO
            )
            changed = application.changed
        except DomainError as exc:
            # the provider already took the money; staff resolve it from the logs
            self._logger.error(
                "Verified payment could not be applied to reservation",
                extra={
                    "reservation_id": order.reservation_id,
                    "order_id": order.id,
                    "error_code": exc.code,
                    "source": source,
                },
            )

        async with self._transaction_manager.start():
            await self._payment_order_repo.update_where(
                order.id,
                expected_statuses=UNSETTLED_ORDER_STATUSES,
                values={"status": PaymentOrderStatus.PAID, "token_consumed_at": now, "updated_at": now},
            )
        if changed:
            return CallbackResult.accepted()
        return CallbackResult.ignored(CallbackReason.ALREADY_TERMINAL)

    def _log_result(self, ctx: CallbackContext, result: CallbackResult) -> None:
        extra = {
            "outcome": result.outcome.value,
            "reason": result.reason.value,
            "provider_order_id": mask(ctx.provider_order_id),
            "merchant_reference": mask(ctx.merchant_reference),
            "token": mask(ctx.token),
            "order_id": ctx.order.id if ctx.order else None,
        }
        if not result.acknowledged:
            self._logger.warning("Payment callback rejected", extra=extra)
        elif result.reason == CallbackReason.ALREADY_TERMINAL:
            self._logger.warning("Payment callback for settled or cancelled reservation", extra=extra)
        else:
            self._logger.info("Payment callback processed", extra=extra)
