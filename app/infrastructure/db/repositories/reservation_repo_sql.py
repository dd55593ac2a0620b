from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.reservation_repo import ReservationRepo
from app.domain.entities.reservation import (
    ACTIVE_STATUSES,
    STALE_PAYMENT_STATUSES,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from app.domain.errors import SlotConflictError
from app.domain.value_objects.holder import Holder
from app.infrastructure.db.tables import from_db_datetime, reservations, to_db_datetime

_DATETIME_FIELDS = ("created_at", "updated_at", "archived_at")


class ReservationRepoSQL(ReservationRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_hold(self, reservation: Reservation) -> Reservation:
        values = self._to_row(reservation)
        values.pop("id", None)
        values["lock_version"] = 0
        try:
            result = await self._session.execute(insert(reservations).values(values))
        except IntegrityError as exc:
            raise SlotConflictError(
                reservation.date.isoformat(), reservation.start_time.strftime("%H:%M")
            ) from exc
        reservation_id = result.inserted_primary_key[0]
        return await self.get(reservation_id)

    async def get(self, reservation_id: int) -> Reservation | None:
        stmt = select(reservations).where(reservations.c.id == reservation_id).limit(1)
        row = (await self._session.execute(stmt)).mappings().first()
        return self._from_row(row) if row else None

    async def list_active_for_dates(self, dates: Iterable[date]) -> list[Reservation]:
        wanted = list(dates)
        if not wanted:
            return []
        stmt = (
            select(reservations)
            .where(
                reservations.c.date.in_(wanted),
                reservations.c.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(reservations.c.date, reservations.c.start_time)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._from_row(row) for row in rows]

    async def update_where(
        self,
        reservation_id: int,
        expected_statuses: Sequence[ReservationStatus],
        values: dict[str, Any],
        expected_payment_statuses: Sequence[PaymentStatus] | None = None,
        created_before: datetime | None = None,
    ) -> Reservation | None:
        conditions = [
            reservations.c.id == reservation_id,
            reservations.c.status.in_([s.value for s in expected_statuses]),
        ]
        if expected_payment_statuses is not None:
            conditions.append(
                reservations.c.payment_status.in_([s.value for s in expected_payment_statuses])
            )
        if created_before is not None:
            conditions.append(reservations.c.created_at < to_db_datetime(created_before))

        stmt = (
            update(reservations)
            .where(*conditions)
            .values(
                **self._to_columns(values),
                lock_version=reservations.c.lock_version + 1,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(reservation_id)

    async def list_stale(self, cutoff: datetime) -> list[Reservation]:
        stmt = (
            select(reservations)
            .where(
                reservations.c.status == ReservationStatus.TEMPORARY.value,
                reservations.c.payment_status.in_([s.value for s in STALE_PAYMENT_STATUSES]),
                reservations.c.created_at < to_db_datetime(cutoff),
            )
            .order_by(reservations.c.id)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._from_row(row) for row in rows]

    async def archive_cancelled_before(self, cutoff: datetime, now: datetime) -> int:
        stmt = (
            update(reservations)
            .where(
                reservations.c.status == ReservationStatus.CANCELLED.value,
                reservations.c.archived_at.is_(None),
                reservations.c.updated_at < to_db_datetime(cutoff),
            )
            .values(archived_at=to_db_datetime(now))
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    # === Mapeo ===

    @staticmethod
    def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
        columns: dict[str, Any] = {}
        for key, value in values.items():
            if key == "holder":
                columns.update(
                    customer_id=value.customer_id,
                    guest_name=value.guest_name,
                    guest_email=value.guest_email,
                    guest_phone=value.guest_phone,
                )
            elif key in _DATETIME_FIELDS:
                columns[key] = to_db_datetime(value)
            elif isinstance(value, Enum):
                columns[key] = value.value
            else:
                columns[key] = value
        return columns

    def _to_row(self, reservation: Reservation) -> dict[str, Any]:
        return self._to_columns(
            {
                "id": reservation.id,
                "date": reservation.date,
                "start_time": reservation.start_time,
                "end_time": reservation.end_time,
                "duration_minutes": reservation.duration_minutes,
                "lesson_type": reservation.lesson_type,
                "holder": reservation.holder,
                "payer_name": reservation.payer_name,
                "payer_email": reservation.payer_email,
                "payer_phone": reservation.payer_phone,
                "currency_code": reservation.currency_code,
                "total_price": reservation.total_price,
                "invoice_reference": reservation.invoice_reference,
                "status": reservation.status,
                "payment_status": reservation.payment_status,
                "payment_method": reservation.payment_method,
                "cancel_reason": reservation.cancel_reason,
                "created_at": reservation.created_at,
                "updated_at": reservation.updated_at,
                "archived_at": reservation.archived_at,
            }
        )

    @staticmethod
    def _from_row(row) -> Reservation:
        return Reservation(
            id=row["id"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            duration_minutes=row["duration_minutes"],
            lesson_type=row["lesson_type"],
            holder=Holder(
                customer_id=row["customer_id"],
                guest_name=row["guest_name"],
                guest_email=row["guest_email"],
                guest_phone=row["guest_phone"],
            ),
            payer_name=row["payer_name"],
            payer_email=row["payer_email"],
            payer_phone=row["payer_phone"],
            currency_code=row["currency_code"],
            total_price=Decimal(str(row["total_price"])),
            invoice_reference=row["invoice_reference"],
            status=ReservationStatus(row["status"]),
            payment_status=PaymentStatus(row["payment_status"]),
            payment_method=PaymentMethod(row["payment_method"]) if row["payment_method"] else None,
            cancel_reason=row["cancel_reason"],
            lock_version=row["lock_version"],
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
            archived_at=from_db_datetime(row["archived_at"]),
        )
