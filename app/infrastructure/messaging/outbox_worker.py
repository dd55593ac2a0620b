"""Worker para procesar eventos del Outbox Pattern."""

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from uuid import uuid4

from app.application.interfaces.clock import Clock
from app.application.interfaces.outbox_repo import OutboxRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.outbox_event import OutboxEvent

logger = logging.getLogger(__name__)


class OutboxWorker:
    """
    Worker que procesa eventos del outbox de forma asíncrona.

    Características:
    - Handlers registrados por tipo de evento
    - Backoff exponencial en reintentos
    - Locking por evento para evitar procesamiento duplicado entre workers
    """

    def __init__(
        self,
        outbox_repo: OutboxRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
        worker_id: str | None = None,
        batch_size: int = 10,
        lock_duration_seconds: int = 300,
        max_retries: int = 5,
    ) -> None:
        """
        Inicializa el worker.

        Args:
            outbox_repo: Repositorio de eventos outbox.
            transaction_manager: Unidad de trabajo para claim y marcado.
            clock: Servicio de reloj.
            worker_id: Identificador único del worker (auto-generado si no se provee).
            batch_size: Número máximo de eventos a procesar por ciclo.
            lock_duration_seconds: Duración del lock en segundos.
            max_retries: Número máximo de intentos por evento.
        """
        self._outbox_repo = outbox_repo
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        self._batch_size = batch_size
        self._lock_duration = lock_duration_seconds
        self._max_retries = max_retries
        self._handlers: dict[str, Callable[[OutboxEvent], Awaitable[None]]] = {}

    @property
    def worker_id(self) -> str:
        return self._worker_id

    def register_handler(self, event_type: str, handler: Callable[[OutboxEvent], Awaitable[None]]) -> None:
        self._handlers[event_type] = handler

    async def run_once(self) -> int:
        """
        Procesa un batch de eventos listos.

        Returns:
            Número de eventos procesados exitosamente.
        """
        now = self._clock.now()
        async with self._transaction_manager.start():
            events = await self._outbox_repo.claim_ready(
                limit=self._batch_size,
                locked_by=self._worker_id,
                now=now,
                lock_ttl_seconds=self._lock_duration,
            )

        processed = 0
        for event in events:
            if await self._process_event(event):
                processed += 1
        return processed

    async def _process_event(self, event: OutboxEvent) -> bool:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.warning(
                "No handler for outbox event type",
                extra={"event_id": event.id, "event_type": event.event_type},
            )
            await self._mark_done(event)
            return True

        try:
            await handler(event)
        except Exception as exc:
            logger.exception(
                "Outbox handler failed",
                extra={"event_id": event.id, "event_type": event.event_type},
            )
            await self._handle_failure(event, str(exc))
            return False

        await self._mark_done(event)
        logger.info(
            "Outbox event processed",
            extra={"event_id": event.id, "event_type": event.event_type},
        )
        return True

    async def _mark_done(self, event: OutboxEvent) -> None:
        async with self._transaction_manager.start():
            await self._outbox_repo.mark_done(event.id, self._clock.now())

    async def _handle_failure(self, event: OutboxEvent, error_message: str) -> None:
        attempts = event.attempts + 1

        if attempts >= self._max_retries:
            logger.error(
                "Outbox event exceeded max attempts",
                extra={"event_id": event.id, "attempts": attempts},
            )
            async with self._transaction_manager.start():
                await self._outbox_repo.mark_failed(event.id, attempts, error_message[:255])
            return

        # Backoff exponencial: 30s, 60s, 120s, 240s
        backoff_seconds = 30 * (2 ** (attempts - 1))
        next_attempt = self._clock.now() + timedelta(seconds=backoff_seconds)
        async with self._transaction_manager.start():
            await self._outbox_repo.mark_retry(
                event_id=event.id,
                attempts=attempts,
                next_attempt_at=next_attempt,
                error_message=error_message[:255],
            )
