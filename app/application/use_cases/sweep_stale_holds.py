import logging
from datetime import datetime

from app.application.dtos.payment_dto import SweepReportDTO
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.payment_order import OPEN_ORDER_STATUSES, PaymentOrderStatus
from app.domain.entities.reservation import STALE_PAYMENT_STATUSES, ReservationStatus
from app.domain.policy import LeasePolicy

HOLD_EXPIRED_REASON = "hold_expired"


class SweepStaleHoldsUseCase:
    """
    Garbage collector de reservas temporales vencidas.

    Cada cancelación es un compare-and-set que vuelve a evaluar el predicado
    de vencimiento en el UPDATE, así que una reserva confirmada entre la
    lectura y la escritura no se toca.
    """

    def __init__(
        self,
        reservation_repo: ReservationRepo,
        payment_order_repo: PaymentOrderRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
        policy: LeasePolicy,
    ) -> None:
        self._reservation_repo = reservation_repo
        self._payment_order_repo = payment_order_repo
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._policy = policy
        self._logger = logging.getLogger(__name__)

    async def execute(self) -> SweepReportDTO:
        now = self._clock.now()
        report = SweepReportDTO()

        async with self._transaction_manager.start():
            stale = await self._reservation_repo.list_stale(self._policy.stale_cutoff(now))
            for reservation in stale:
                expired = await self._release(reservation.id, now)
                if expired is None:
                    continue
                report.cancelled_holds.append(reservation.id)
                report.expired_orders += expired

            past_orders = await self._payment_order_repo.list_open_before(self._policy.today(now))
            for order in past_orders:
                updated = await self._payment_order_repo.update_where(
                    order.id,
                    expected_statuses=OPEN_ORDER_STATUSES,
                    values={"status": PaymentOrderStatus.EXPIRED, "updated_at": now},
                )
                if updated is not None:
                    report.past_date_orders += 1

        if report.total:
            self._logger.info(
                "Stale hold sweep finished",
                extra={
                    "cancelled_holds": len(report.cancelled_holds),
                    "expired_orders": report.expired_orders,
                    "past_date_orders": report.past_date_orders,
                },
            )
        return report

    async def release_stale_hold(self, reservation_id: int, now: datetime) -> bool:
        """
        Cancela una reserva si sigue vencida. Debe llamarse dentro de una transacción.

        Returns:
            True si esta llamada la canceló.
        """
        return await self._release(reservation_id, now) is not None

    async def archive_cancelled(self) -> int:
        """Archiva (soft) reservas canceladas sin cambios durante la retención."""
        now = self._clock.now()
        async with self._transaction_manager.start():
            archived = await self._reservation_repo.archive_cancelled_before(
                self._policy.archive_cutoff(now), now
            )
        if archived:
            self._logger.info("Archived cancelled reservations", extra={"archived": archived})
        return archived

    async def _release(self, reservation_id: int, now: datetime) -> int | None:
        cancelled = await self._reservation_repo.update_where(
            reservation_id,
            expected_statuses=(ReservationStatus.TEMPORARY,),
            expected_payment_statuses=STALE_PAYMENT_STATUSES,
            created_before=self._policy.stale_cutoff(now),
            values={
                "status": ReservationStatus.CANCELLED,
                "cancel_reason": HOLD_EXPIRED_REASON,
                "updated_at": now,
            },
        )
        if cancelled is None:
            return None
        expired = await self._payment_order_repo.expire_open_for_reservation(reservation_id, now)
        self._logger.info(
            "Stale hold released",
            extra={"reservation_id": reservation_id, "expired_orders": expired},
        )
        return expired
