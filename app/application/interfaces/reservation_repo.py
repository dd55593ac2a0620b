from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any

from app.domain.entities.reservation import PaymentStatus, Reservation, ReservationStatus


class ReservationRepo:
    async def insert_hold(self, reservation: Reservation) -> Reservation:
        """Inserta una reserva activa; SlotConflictError si el slot ya está ocupado."""
        raise NotImplementedError

    async def get(self, reservation_id: int) -> Reservation | None:
        raise NotImplementedError

    async def list_active_for_dates(self, dates: Iterable[date]) -> list[Reservation]:
        raise NotImplementedError

    async def update_where(
        self,
        reservation_id: int,
        expected_statuses: Sequence[ReservationStatus],
        values: dict[str, Any],
        expected_payment_statuses: Sequence[PaymentStatus] | None = None,
        created_before: datetime | None = None,
    ) -> Reservation | None:
        """
        Compare-and-set: aplica ``values`` solo si la fila sigue cumpliendo las
        condiciones. Retorna la reserva actualizada, o None si otro la cambió.
        """
        raise NotImplementedError

    async def list_stale(self, cutoff: datetime) -> list[Reservation]:
        raise NotImplementedError

    async def archive_cancelled_before(self, cutoff: datetime, now: datetime) -> int:
        raise NotImplementedError
