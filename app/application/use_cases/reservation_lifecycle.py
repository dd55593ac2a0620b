import logging
from datetime import datetime

from app.application.dtos.reservation_dto import (
    ConfirmationResultDTO,
    HoldRequestDTO,
    PayerDTO,
    PaymentApplicationDTO,
)
from app.application.interfaces.clock import Clock
from app.application.interfaces.credits_ledger import CreditsLedger
from app.application.interfaces.outbox_repo import OutboxRepo
from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.slot_catalog import SlotCatalog
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.sweep_stale_holds import SweepStaleHoldsUseCase
from app.domain.entities.outbox_event import OutboxEvent, OutboxEventType
from app.domain.entities.payment_order import PaymentOrderStatus
from app.domain.entities.reservation import (
    ACTIVE_STATUSES,
    PAYMENT_OUTCOMES,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.errors import (
    AlreadyTerminalError,
    MustCallWindowError,
    PaymentMethodNotAllowedError,
    ReservationNotFoundError,
    SlotBlockedError,
    SlotConflictError,
    SlotNowBlockedError,
    ValidationError,
)
from app.domain.policy import LeasePolicy
from app.domain.schedule import blocking_override, offered_slots
from app.domain.value_objects.time_range import TimeRange

UNSETTLED_PAYMENT_STATUSES = (PaymentStatus.UNSET, PaymentStatus.PENDING, PaymentStatus.FAILED)


class ReservationLifecycleManager:
    """
    Único punto de escritura de las transiciones de una reserva:
    TEMPORARY -> CONFIRMED -> (pago) y cualquiera activa -> CANCELLED.

    Las transiciones son compare-and-set en el repositorio; solo quien gana
    la actualización dispara efectos (débito de créditos, eventos outbox).
    """

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        payment_order_repo: PaymentOrderRepo,
        slot_catalog: SlotCatalog,
        outbox_repo: OutboxRepo,
        credits_ledger: CreditsLedger,
        garbage_collector: SweepStaleHoldsUseCase,
        transaction_manager: TransactionManager,
        clock: Clock,
        policy: LeasePolicy,
        contact_phone: str | None = None,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._payment_order_repo = payment_order_repo
        self._slot_catalog = slot_catalog
        self._outbox_repo = outbox_repo
        self._credits_ledger = credits_ledger
        self._garbage_collector = garbage_collector
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._policy = policy
        self._contact_phone = contact_phone
        self._logger = logging.getLogger(__name__)

    # === Hold ===

    async def create_hold(self, request: HoldRequestDTO) -> Reservation:
        request.holder.validate()
        try:
            slot_range = TimeRange(start=request.start_time, end=request.end_time)
        except ValueError as exc:
            raise ValidationError("end_time", "must be after start_time") from exc
        day = request.date
        day_label, start_label = day.isoformat(), request.start_time.strftime("%H:%M")
        now = self._clock.now()

        async with self._transaction_manager.start():
            templates = await self._slot_catalog.list_templates([day.weekday()])
            overrides = await self._slot_catalog.list_overrides([day])
            try:
                block = blocking_override(overrides, slot_range)
                offered = offered_slots(day, templates, overrides, request.holder.customer_id)
            except ValueError as exc:
                self._logger.warning(
                    "Incomplete schedule data, refusing hold",
                    extra={"date": day_label, "error": str(exc)},
                )
                raise SlotBlockedError(day_label, start_label, reason="schedule_unavailable") from exc
            if block is not None:
                raise SlotBlockedError(day_label, start_label, reason=block.kind.value.lower())
            if request.start_time not in offered:
                raise SlotBlockedError(day_label, start_label, reason="not_offered")
            if self._policy.is_within_must_call(day, request.start_time, now):
                raise MustCallWindowError(day_label, start_label, self._contact_phone)

            for existing in await self._reservation_repo.list_active_for_dates([day]):
                if not existing.time_range.overlaps(slot_range):
                    continue
                if self._policy.is_stale(existing, now) and await self._garbage_collector.release_stale_hold(
                    existing.id, now
                ):
                    continue
                raise SlotConflictError(day_label, start_label)

            created = await self._reservation_repo.insert_hold(
                Reservation(
                    date=day,
                    start_time=request.start_time,
                    end_time=request.end_time,
                    duration_minutes=slot_range.duration_minutes,
                    lesson_type=request.lesson_type,
                    holder=request.holder,
                    total_price=request.total_price,
                    status=ReservationStatus.TEMPORARY,
                    payment_status=PaymentStatus.UNSET,
                    created_at=now,
                    updated_at=now,
                )
            )

        self._logger.info(
            "Hold created",
            extra={
                "reservation_id": created.id,
                "date": day_label,
                "start_time": start_label,
                "holder": request.holder.masked(),
            },
        )
        return created

    # === Confirmación ===

    async def confirm(
        self,
        reservation_id: int,
        payment_method: PaymentMethod,
        payer: PayerDTO | None = None,
    ) -> ConfirmationResultDTO:
        outcome = PAYMENT_OUTCOMES[payment_method]
        if not outcome.client_selectable:
            raise PaymentMethodNotAllowedError(
                payment_method.value, "settled only through the payment provider"
            )
        return await self._confirm(reservation_id, payment_method, payer, outcome.payment_status)

    async def _confirm(
        self,
        reservation_id: int,
        payment_method: PaymentMethod,
        payer: PayerDTO | None,
        payment_status: PaymentStatus,
    ) -> ConfirmationResultDTO:
        outcome = PAYMENT_OUTCOMES[payment_method]
        now = self._clock.now()

        async with self._transaction_manager.start():
            reservation = await self._get_or_raise(reservation_id)
            if reservation.status == ReservationStatus.CONFIRMED:
                return ConfirmationResultDTO(reservation, reservation.invoice_reference, changed=False)
            if reservation.status == ReservationStatus.CANCELLED:
                raise AlreadyTerminalError(reservation_id, reservation.status.value, "confirm")

            await self._ensure_not_blocked(reservation)

            debited = False
            if payment_method == PaymentMethod.CREDITS:
                if reservation.holder.is_guest:
                    raise PaymentMethodNotAllowedError(
                        payment_method.value, "guests cannot pay with credits"
                    )
                debited = await self._credits_ledger.debit(
                    reservation.holder.customer_id, reservation.lesson_type, reservation_id
                )

            values = {
                "status": outcome.status,
                "payment_status": payment_status,
                "payment_method": payment_method,
                "updated_at": now,
            }
            if payer is not None:
                values.update(
                    payer_name=payer.name, payer_email=payer.email, payer_phone=payer.phone
                )
            confirmed = await self._reservation_repo.update_where(
                reservation_id,
                expected_statuses=(ReservationStatus.TEMPORARY,),
                values=values,
            )
            if confirmed is None:
                if debited:
                    await self._credits_ledger.refund(reservation_id)
                current = await self._get_or_raise(reservation_id)
                if current.status == ReservationStatus.CONFIRMED:
                    return ConfirmationResultDTO(current, current.invoice_reference, changed=False)
                raise AlreadyTerminalError(reservation_id, current.status.value, "confirm")

        self._logger.info(
            "Reservation confirmed",
            extra={
                "reservation_id": reservation_id,
                "payment_method": payment_method.value,
                "payment_status": payment_status.value,
            },
        )
        await self._emit(OutboxEventType.BOOKING_CONFIRMED, confirmed, now)
        return ConfirmationResultDTO(confirmed, confirmed.invoice_reference, changed=True)

    async def record_payment(
        self, reservation_id: int, payment_method: PaymentMethod
    ) -> PaymentApplicationDTO:
        """
        Registra un pago verificado (webhook del proveedor o verificación manual).

        Una reserva temporal se confirma directamente como pagada; una
        confirmada con pago pendiente pasa a PAID. Reservas canceladas o ya
        pagadas no cambian.
        """
        async with self._transaction_manager.start():
            reservation = await self._get_or_raise(reservation_id)

        if reservation.status == ReservationStatus.TEMPORARY:
            result = await self._confirm(reservation_id, payment_method, None, PaymentStatus.PAID)
            if result.changed:
                return PaymentApplicationDTO(result.reservation, changed=True)
            reservation = result.reservation

        if reservation.status != ReservationStatus.CONFIRMED or reservation.is_paid:
            return PaymentApplicationDTO(reservation, changed=False)

        now = self._clock.now()
        async with self._transaction_manager.start():
            paid = await self._reservation_repo.update_where(
                reservation_id,
                expected_statuses=(ReservationStatus.CONFIRMED,),
                expected_payment_statuses=UNSETTLED_PAYMENT_STATUSES,
                values={
                    "payment_status": PaymentStatus.PAID,
                    "payment_method": payment_method,
                    "updated_at": now,
                },
            )
            if paid is None:
                current = await self._get_or_raise(reservation_id)
                return PaymentApplicationDTO(current, changed=False)

        self._logger.info(
            "Payment recorded",
            extra={"reservation_id": reservation_id, "payment_method": payment_method.value},
        )
        await self._emit(OutboxEventType.PAYMENT_RECEIVED, paid, now)
        return PaymentApplicationDTO(paid, changed=True)

    # === Cancelación ===

    async def cancel(self, reservation_id: int, reason: str | None = None) -> Reservation:
        now = self._clock.now()
        async with self._transaction_manager.start():
            reservation = await self._get_or_raise(reservation_id)
            if reservation.status == ReservationStatus.CANCELLED:
                return reservation
            cancelled = await self._reservation_repo.update_where(
                reservation_id,
                expected_statuses=ACTIVE_STATUSES,
                values={
                    "status": ReservationStatus.CANCELLED,
                    "cancel_reason": reason or "cancelled",
                    "updated_at": now,
                },
            )
            if cancelled is None:
                return await self._get_or_raise(reservation_id)
            await self._payment_order_repo.expire_open_for_reservation(
                reservation_id, now, status=PaymentOrderStatus.CANCELLED
            )
            if cancelled.payment_method == PaymentMethod.CREDITS:
                await self._credits_ledger.refund(reservation_id)

        self._logger.info(
            "Reservation cancelled",
            extra={"reservation_id": reservation_id, "reason": cancelled.cancel_reason},
        )
        await self._emit(OutboxEventType.BOOKING_CANCELLED, cancelled, now)
        return cancelled

    # === Helpers ===

    async def _get_or_raise(self, reservation_id: int) -> Reservation:
        reservation = await self._reservation_repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    async def _ensure_not_blocked(self, reservation: Reservation) -> None:
        overrides = await self._slot_catalog.list_overrides([reservation.date])
        day_label = reservation.date.isoformat()
        start_label = reservation.start_time.strftime("%H:%M")
        try:
            block = blocking_override(overrides, reservation.time_range)
        except ValueError as exc:
            raise SlotNowBlockedError(day_label, start_label) from exc
        if block is not None:
            self._logger.warning(
                "Slot blocked after hold was created",
                extra={"reservation_id": reservation.id, "override_kind": block.kind.value},
            )
            raise SlotNowBlockedError(day_label, start_label)

    async def _emit(self, event_type: OutboxEventType, reservation: Reservation, now: datetime) -> None:
        payload = {
            "payment_method": reservation.payment_method.value if reservation.payment_method else None,
            "payment_status": reservation.payment_status.value,
        }
        try:
            async with self._transaction_manager.start():
                await self._outbox_repo.enqueue(
                    OutboxEvent.for_reservation(event_type, reservation.id, payload), now
                )
        except Exception:
            self._logger.exception(
                "Failed to enqueue domain event",
                extra={"reservation_id": reservation.id, "event_type": event_type.value},
            )
