import logging
from datetime import datetime, timedelta

from sqlalchemy import insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.outbox_repo import OutboxRepo
from app.domain.entities.outbox_event import READY_STATUSES, OutboxEvent, OutboxStatus
from app.infrastructure.db.tables import from_db_datetime, outbox_events, to_db_datetime

logger = logging.getLogger(__name__)

_READY = [s.value for s in READY_STATUSES]


class OutboxRepoSQL(OutboxRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue(self, event: OutboxEvent, now: datetime) -> OutboxEvent:
        db_now = to_db_datetime(now)
        stmt = insert(outbox_events).values(
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_code=event.aggregate_code,
            payload=event.payload,
            status=OutboxStatus.NEW.value,
            attempts=0,
            next_attempt_at=db_now,
            created_at=db_now,
            updated_at=db_now,
        )
        result = await self._session.execute(stmt)
        return await self.get_by_id(result.inserted_primary_key[0])

    async def get_by_id(self, event_id: int) -> OutboxEvent | None:
        stmt = select(outbox_events).where(outbox_events.c.id == event_id).limit(1)
        row = (await self._session.execute(stmt)).mappings().first()
        return self._from_row(row) if row else None

    async def claim_ready(
        self,
        limit: int,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 300,
    ) -> list[OutboxEvent]:
        db_now = to_db_datetime(now)
        ready = (
            outbox_events.c.status.in_(_READY),
            or_(
                outbox_events.c.next_attempt_at.is_(None),
                outbox_events.c.next_attempt_at <= db_now,
            ),
            or_(
                outbox_events.c.lock_expires_at.is_(None),
                outbox_events.c.lock_expires_at <= db_now,
            ),
        )
        candidates = (
            await self._session.execute(
                select(outbox_events.c.id).where(*ready).order_by(outbox_events.c.id).limit(limit)
            )
        ).scalars().all()

        claimed: list[OutboxEvent] = []
        for event_id in candidates:
            # conditional per row: another worker may have claimed it since the select
            stmt = (
                update(outbox_events)
                .where(outbox_events.c.id == event_id, *ready)
                .values(
                    locked_by=locked_by,
                    locked_at=db_now,
                    lock_expires_at=db_now + timedelta(seconds=lock_ttl_seconds),
                    updated_at=db_now,
                    status=OutboxStatus.IN_PROGRESS.value,
                )
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 1:
                claimed.append(await self.get_by_id(event_id))
        return claimed

    async def mark_done(self, event_id: int, now: datetime) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.DONE.value,
                locked_by=None,
                lock_expires_at=None,
                updated_at=to_db_datetime(now),
            )
        )
        await self._session.execute(stmt)

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.RETRY.value,
                attempts=attempts,
                next_attempt_at=to_db_datetime(next_attempt_at),
                error_message=error_message,
                locked_by=None,
                lock_expires_at=None,
            )
        )
        await self._session.execute(stmt)

    async def mark_failed(self, event_id: int, attempts: int, error_message: str | None) -> None:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event_id)
            .values(
                status=OutboxStatus.FAILED.value,
                attempts=attempts,
                error_message=error_message,
                locked_by=None,
                lock_expires_at=None,
            )
        )
        await self._session.execute(stmt)
        logger.warning(
            "Outbox event marked as failed - requires manual intervention",
            extra={"event_id": event_id, "attempts": attempts},
        )

    @staticmethod
    def _from_row(row) -> OutboxEvent:
        return OutboxEvent(
            id=row["id"],
            event_type=row["event_type"],
            aggregate_type=row["aggregate_type"],
            aggregate_code=row["aggregate_code"],
            payload=row["payload"] or {},
            status=OutboxStatus(row["status"]),
            attempts=row["attempts"] or 0,
            next_attempt_at=from_db_datetime(row["next_attempt_at"]),
            error_message=row["error_message"],
            locked_by=row["locked_by"],
            lock_expires_at=from_db_datetime(row["lock_expires_at"]),
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
