"""
Tests de conciliación de pagos: apertura de órdenes y notificaciones del proveedor.

Cubre:
- Una sola orden abierta por reserva (reutilización y reintento)
- Pipeline de verificación del callback (firma, payload, token, estado)
- Callbacks tardíos sobre reservas canceladas por el barrido
"""

from decimal import Decimal

import pytest

from app.application.dtos.payment_dto import CallbackOutcome, CallbackReason
from app.domain.entities.payment_order import PaymentOrderStatus
from app.domain.entities.reservation import PaymentMethod, PaymentStatus, ReservationStatus
from app.domain.errors import AlreadyTerminalError, InvalidMoneyError, PaymentProviderError


def paid_callback(order, status: str = "Completed") -> dict:
    return {
        "OrderId": order.provider_order_id,
        "MerchantReference": order.merchant_reference,
        "Status": status,
    }


class TestOpenOrGetOrder:
    @pytest.mark.asyncio
    async def test_first_checkout_creates_pending_order(self, lifecycle, reconciliation, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())

        order = await reconciliation.open_or_get_order(hold.id)

        assert order.status == PaymentOrderStatus.PENDING
        assert order.merchant_reference == f"booking_{hold.id}"
        assert order.payment_link == "https://checkout.example/pay/1000"
        assert order.amount == Decimal("650.00")
        request = bundle["payment_provider"].requests[0]
        assert request.push_url == (
            f"https://booking.test/api/v1/webhooks/payments?token={order.callback_token}"
        )
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.payment_status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_second_checkout_reuses_open_order(self, lifecycle, reconciliation, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())

        first = await reconciliation.open_or_get_order(hold.id)
        second = await reconciliation.open_or_get_order(hold.id)

        assert first.id == second.id
        assert len(bundle["payment_provider"].requests) == 1, "No debe crear otra orden en el proveedor"

    @pytest.mark.asyncio
    async def test_provider_failure_closes_order(self, lifecycle, reconciliation, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())
        bundle["payment_provider"].fail_next_create = True

        with pytest.raises(PaymentProviderError):
            await reconciliation.open_or_get_order(hold.id)

        orders = list(bundle["payment_order_repo"].orders.values())
        assert [o.status for o in orders] == [PaymentOrderStatus.FAILED]

        retry = await reconciliation.open_or_get_order(hold.id)
        assert retry.merchant_reference == f"booking_{hold.id}-2"
        assert retry.status == PaymentOrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_order_paid_at_provider_is_applied_on_refresh(
        self, lifecycle, reconciliation, hold_request, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        bundle["payment_provider"].set_status(order.provider_order_id, "Paid")

        refreshed = await reconciliation.open_or_get_order(hold.id)

        assert refreshed.status == PaymentOrderStatus.PAID
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_order_unknown_to_provider_is_replaced(self, lifecycle, reconciliation, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())
        first = await reconciliation.open_or_get_order(hold.id)
        bundle["payment_provider"].forget(first.provider_order_id)

        second = await reconciliation.open_or_get_order(hold.id)

        assert second.id != first.id
        old = await bundle["payment_order_repo"].get(first.id)
        assert old.status == PaymentOrderStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_lookup_failure_returns_stored_order(self, lifecycle, reconciliation, hold_request, bundle):
        hold = await lifecycle.create_hold(hold_request())
        first = await reconciliation.open_or_get_order(hold.id)
        bundle["payment_provider"].fail_lookups = True

        second = await reconciliation.open_or_get_order(hold.id)

        assert second.id == first.id

    @pytest.mark.asyncio
    async def test_paid_reservation_cannot_checkout(self, lifecycle, reconciliation, hold_request, bundle):
        await bundle["credits_ledger"].grant(42, "driving_lesson", 1)
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.CREDITS)

        with pytest.raises(AlreadyTerminalError):
            await reconciliation.open_or_get_order(hold.id)

    @pytest.mark.asyncio
    async def test_free_lesson_cannot_checkout(self, lifecycle, reconciliation, hold_request):
        hold = await lifecycle.create_hold(hold_request(price="0"))

        with pytest.raises(InvalidMoneyError):
            await reconciliation.open_or_get_order(hold.id)


class TestProviderCallback:
    @pytest.mark.asyncio
    async def test_paid_callback_confirms_reservation(
        self, lifecycle, reconciliation, hold_request, signed_callback, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.outcome == CallbackOutcome.ACCEPTED
        assert result.http_status == 200
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.payment_status == PaymentStatus.PAID
        assert reservation.payment_method == PaymentMethod.QLIRO
        stored = await bundle["payment_order_repo"].get(order.id)
        assert stored.status == PaymentOrderStatus.PAID
        assert stored.token_consumed_at is not None

    @pytest.mark.asyncio
    async def test_replayed_callback_is_acknowledged_without_change(
        self, lifecycle, reconciliation, hold_request, signed_callback, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))
        await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        replay = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert replay.outcome == CallbackOutcome.IGNORED
        assert replay.reason == CallbackReason.TOKEN_ALREADY_USED
        assert replay.acknowledged
        outbox = bundle["outbox_repo"]
        assert len(outbox.by_type("BOOKING_CONFIRMED")) == 1

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, lifecycle, reconciliation, hold_request, signed_callback):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, _ = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(None, body, order.callback_token)

        assert result.reason == CallbackReason.MISSING_SIGNATURE
        assert result.http_status == 401

    @pytest.mark.asyncio
    async def test_invalid_signature_rejected(self, lifecycle, reconciliation, hold_request, signed_callback):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, _ = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback("deadbeef", body, order.callback_token)

        assert result.reason == CallbackReason.INVALID_SIGNATURE
        assert not result.acknowledged

    @pytest.mark.asyncio
    async def test_wrong_token_rejected_even_with_valid_signature(
        self, lifecycle, reconciliation, hold_request, signed_callback, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(signature, body, "not-the-token")

        assert result.reason == CallbackReason.TOKEN_MISMATCH
        assert result.http_status == 401
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.payment_status != PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_expired_token_rejected(
        self, lifecycle, reconciliation, hold_request, signed_callback, clock
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))
        clock.advance(minutes=31)

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.reason == CallbackReason.TOKEN_EXPIRED
        assert not result.acknowledged

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, lifecycle, reconciliation, hold_request, signed_callback):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(signature, body, None)

        assert result.reason == CallbackReason.TOKEN_MISMATCH

    @pytest.mark.asyncio
    async def test_token_for_another_order_rejected(
        self, lifecycle, reconciliation, hold_request, signed_callback
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback({"OrderId": "9999", "Status": "Completed"})

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.reason == CallbackReason.IDENTIFIER_MISMATCH

    @pytest.mark.asyncio
    async def test_unknown_order_without_token_rejected(self, reconciliation, signed_callback):
        body, signature = signed_callback({"OrderId": "9999", "Status": "Completed"})

        result = await reconciliation.handle_provider_callback(signature, body, None)

        assert result.reason == CallbackReason.MISSING_TOKEN
        assert result.http_status == 401

    @pytest.mark.asyncio
    async def test_malformed_reference_is_ignored(self, reconciliation, signed_callback):
        body, signature = signed_callback({"MerchantReference": "booking_abc", "Status": "Completed"})

        result = await reconciliation.handle_provider_callback(signature, body, "some-token")

        assert result.outcome == CallbackOutcome.IGNORED
        assert result.reason == CallbackReason.UNKNOWN_REFERENCE

    @pytest.mark.asyncio
    async def test_non_json_body_is_bad_request(self, reconciliation, bundle):
        body = b"not json"
        signature = bundle["payment_provider"].sign(body)

        result = await reconciliation.handle_provider_callback(signature, body, "some-token")

        assert result.reason == CallbackReason.MALFORMED_PAYLOAD
        assert result.http_status == 400

    @pytest.mark.asyncio
    async def test_non_paid_status_is_ignored(
        self, lifecycle, reconciliation, hold_request, signed_callback, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order, status="InProcess"))

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.reason == CallbackReason.NOT_PAID_STATUS
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.status == ReservationStatus.TEMPORARY

    @pytest.mark.asyncio
    async def test_callback_after_sweep_does_not_revive_reservation(
        self, lifecycle, reconciliation, sweeper, hold_request, signed_callback, clock, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        order = await reconciliation.open_or_get_order(hold.id)
        clock.advance(minutes=6)
        report = await sweeper.execute()
        assert report.cancelled_holds == [hold.id]
        body, signature = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.outcome == CallbackOutcome.IGNORED
        assert result.reason == CallbackReason.ALREADY_TERMINAL
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.status == ReservationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_callback_for_swish_pending_reservation_marks_paid(
        self, lifecycle, reconciliation, hold_request, signed_callback, bundle
    ):
        hold = await lifecycle.create_hold(hold_request())
        await lifecycle.confirm(hold.id, PaymentMethod.SWISH)
        order = await reconciliation.open_or_get_order(hold.id)
        body, signature = signed_callback(paid_callback(order))

        result = await reconciliation.handle_provider_callback(signature, body, order.callback_token)

        assert result.outcome == CallbackOutcome.ACCEPTED
        reservation = await bundle["reservation_repo"].get(hold.id)
        assert reservation.payment_status == PaymentStatus.PAID
        assert len(bundle["outbox_repo"].by_type("PAYMENT_RECEIVED")) == 1
