from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from app.application.interfaces.reservation_repo import ReservationRepo
from app.domain.entities.reservation import (
    ACTIVE_STATUSES,
    STALE_PAYMENT_STATUSES,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.errors import SlotConflictError


class InMemoryReservationRepo(ReservationRepo):
    def __init__(self) -> None:
        self.reservations: dict[int, Reservation] = {}
        self._next_id = 1

    async def insert_hold(self, reservation: Reservation) -> Reservation:
        # Check and insert without awaiting in between: atomic on the event loop.
        for existing in self.reservations.values():
            if (
                existing.status in ACTIVE_STATUSES
                and existing.date == reservation.date
                and existing.start_time == reservation.start_time
            ):
                raise SlotConflictError(
                    reservation.date.isoformat(), reservation.start_time.strftime("%H:%M")
                )
        stored = replace(reservation, id=self._next_id, lock_version=0)
        self.reservations[stored.id] = stored
        self._next_id += 1
        return replace(stored)

    async def get(self, reservation_id: int) -> Reservation | None:
        reservation = self.reservations.get(reservation_id)
        return replace(reservation) if reservation else None

    async def list_active_for_dates(self, dates: Iterable[date]) -> list[Reservation]:
        wanted = set(dates)
        return [
            replace(r)
            for r in self.reservations.values()
            if r.date in wanted and r.status in ACTIVE_STATUSES
        ]

    async def update_where(
        self,
        reservation_id: int,
        expected_statuses: Sequence[ReservationStatus],
        values: dict[str, Any],
        expected_payment_statuses: Sequence[PaymentStatus] | None = None,
        created_before: datetime | None = None,
    ) -> Reservation | None:
        reservation = self.reservations.get(reservation_id)
        if reservation is None or reservation.status not in expected_statuses:
            return None
        if (
            expected_payment_statuses is not None
            and reservation.payment_status not in expected_payment_statuses
        ):
            return None
        if created_before is not None and not (
            reservation.created_at and reservation.created_at < created_before
        ):
            return None
        updated = replace(reservation, **values, lock_version=reservation.lock_version + 1)
        self.reservations[reservation_id] = updated
        return replace(updated)

    async def list_stale(self, cutoff: datetime) -> list[Reservation]:
        return [
            replace(r)
            for r in self.reservations.values()
            if r.status == ReservationStatus.TEMPORARY
            and r.payment_status in STALE_PAYMENT_STATUSES
            and r.created_at is not None
            and r.created_at < cutoff
        ]

    async def archive_cancelled_before(self, cutoff: datetime, now: datetime) -> int:
        archived = 0
        for reservation_id, r in list(self.reservations.items()):
            if (
                r.status == ReservationStatus.CANCELLED
                and r.archived_at is None
                and r.updated_at is not None
                and r.updated_at < cutoff
            ):
                self.reservations[reservation_id] = replace(r, archived_at=now)
                archived += 1
        return archived
