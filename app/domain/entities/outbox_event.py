"""Entidad OutboxEvent - representa un evento en el patrón Outbox."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class OutboxStatus(str, Enum):
    """Estados de un evento en el outbox."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    RETRY = "RETRY"
    DONE = "DONE"
    FAILED = "FAILED"


READY_STATUSES = (OutboxStatus.NEW, OutboxStatus.RETRY)


class OutboxEventType(str, Enum):
    """Tipos de eventos del outbox."""

    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"


class AggregateType(str, Enum):
    """Tipos de agregados."""

    RESERVATION = "RESERVATION"
    PAYMENT_ORDER = "PAYMENT_ORDER"


@dataclass
class OutboxEvent:
    """
    Entidad que representa un evento en el patrón Transactional Outbox.

    Los efectos secundarios de confirmar o cobrar una reserva (factura,
    notificaciones) se registran aquí y los procesa el worker después del
    commit, de modo que un fallo aguas abajo nunca deshace la transición.
    """

    # Identificadores
    id: int | None = None

    # Tipo de evento
    event_type: str = OutboxEventType.BOOKING_CONFIRMED.value

    # Agregado asociado
    aggregate_type: str = AggregateType.RESERVATION.value
    aggregate_code: str | None = None

    # Payload del evento (JSON)
    payload: dict[str, Any] = field(default_factory=dict)

    # Estado
    status: OutboxStatus = OutboxStatus.NEW

    # Reintentos
    attempts: int = 0
    next_attempt_at: datetime | None = None
    error_message: str | None = None

    # Locking para procesamiento distribuido
    locked_by: str | None = None
    lock_expires_at: datetime | None = None

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # === Propiedades ===

    def is_ready(self, now: datetime) -> bool:
        """Verifica si el evento puede ser reclamado."""
        if self.status not in READY_STATUSES:
            return False
        if self.next_attempt_at and now < self.next_attempt_at:
            return False
        if self.lock_expires_at and now < self.lock_expires_at:
            return False
        return True

    @property
    def is_final(self) -> bool:
        """Verifica si el evento está en un estado final."""
        return self.status in (OutboxStatus.DONE, OutboxStatus.FAILED)

    # === Métodos de negocio ===

    def claim(self, worker_id: str, now: datetime, lock_duration_seconds: int = 300) -> None:
        self.locked_by = worker_id
        self.lock_expires_at = now + timedelta(seconds=lock_duration_seconds)
        self.status = OutboxStatus.IN_PROGRESS
        self.updated_at = now

    def release_lock(self) -> None:
        """Libera el lock del evento."""
        self.locked_by = None
        self.lock_expires_at = None

    def mark_done(self, now: datetime) -> None:
        self.status = OutboxStatus.DONE
        self.updated_at = now
        self.release_lock()

    def mark_retry(self, attempts: int, next_attempt_at: datetime, error_message: str | None) -> None:
        self.status = OutboxStatus.RETRY
        self.attempts = attempts
        self.next_attempt_at = next_attempt_at
        self.error_message = error_message
        self.release_lock()

    def mark_failed(self, attempts: int, error_message: str | None) -> None:
        """Marca el evento como fallido permanentemente."""
        self.status = OutboxStatus.FAILED
        self.attempts = attempts
        self.error_message = error_message
        self.release_lock()

    @classmethod
    def for_reservation(
        cls,
        event_type: OutboxEventType,
        reservation_id: int,
        payload: dict[str, Any] | None = None,
    ) -> "OutboxEvent":
        """Factory para eventos cuyo agregado es una reserva."""
        return cls(
            event_type=event_type.value,
            aggregate_type=AggregateType.RESERVATION.value,
            aggregate_code=str(reservation_id),
            payload={"reservation_id": reservation_id, **(payload or {})},
            status=OutboxStatus.NEW,
        )
