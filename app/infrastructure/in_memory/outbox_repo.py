from dataclasses import replace
from datetime import datetime

from app.application.interfaces.outbox_repo import OutboxRepo
from app.domain.entities.outbox_event import OutboxEvent, OutboxStatus


class InMemoryOutboxRepo(OutboxRepo):
    def __init__(self) -> None:
        self.events: dict[int, OutboxEvent] = {}
        self._next_id = 1

    async def enqueue(self, event: OutboxEvent, now: datetime) -> OutboxEvent:
        stored = replace(
            event,
            id=self._next_id,
            status=OutboxStatus.NEW,
            attempts=0,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )
        self.events[stored.id] = stored
        self._next_id += 1
        return replace(stored)

    async def get_by_id(self, event_id: int) -> OutboxEvent | None:
        event = self.events.get(event_id)
        return replace(event) if event else None

    async def claim_ready(
        self,
        limit: int,
        locked_by: str,
        now: datetime,
        lock_ttl_seconds: int = 300,
    ) -> list[OutboxEvent]:
        claimed = []
        for event_id in sorted(self.events):
            if len(claimed) >= limit:
                break
            event = self.events[event_id]
            if not event.is_ready(now):
                continue
            event.claim(locked_by, now, lock_ttl_seconds)
            claimed.append(replace(event))
        return claimed

    async def mark_done(self, event_id: int, now: datetime) -> None:
        event = self.events.get(event_id)
        if event:
            event.mark_done(now)

    async def mark_retry(
        self,
        event_id: int,
        attempts: int,
        next_attempt_at: datetime,
        error_message: str | None,
    ) -> None:
        event = self.events.get(event_id)
        if event:
            event.mark_retry(attempts, next_attempt_at, error_message)

    async def mark_failed(self, event_id: int, attempts: int, error_message: str | None) -> None:
        event = self.events.get(event_id)
        if event:
            event.mark_failed(attempts, error_message)

    def by_type(self, event_type: str) -> list[OutboxEvent]:
        return [e for e in self.events.values() if e.event_type == event_type]
