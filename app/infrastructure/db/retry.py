"""
Reintento de unidades de trabajo que chocan con un bloqueo transitorio.

El barrido de holds y el worker del outbox actualizan muchas filas por
ciclo y pueden cruzarse con una confirmación o un webhook que toca la misma
reserva. La base aborta a uno de los dos (deadlock, serialización o, en
SQLite, "database is locked"); la unidad de trabajo ya hizo rollback y se
puede repetir completa.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE de Postgres: deadlock_detected, serialization_failure
RETRYABLE_SQLSTATES = frozenset({"40P01", "40001"})

# Códigos MySQL 1213 (deadlock) y 1205 (lock wait timeout); SQLite solo informa por mensaje
RETRYABLE_MESSAGES = ("(1213,", "(1205,", "database is locked")


def is_deadlock_error(error: BaseException) -> bool:
    """True si el error es un bloqueo transitorio que vale la pena reintentar."""
    if not isinstance(error, DBAPIError):
        return False
    if getattr(error.orig, "sqlstate", None) in RETRYABLE_SQLSTATES:
        return True
    message = str(error)
    return any(marker in message for marker in RETRYABLE_MESSAGES)


async def retry_on_deadlock(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.1,
) -> T:
    """
    Ejecuta `operation` y la repite ante un deadlock, con backoff exponencial
    (base_delay, 2*base_delay, ...). Cualquier otro error se propaga al instante.
    """
    name = getattr(operation, "__qualname__", repr(operation))
    attempt = 1
    while True:
        try:
            return await operation()
        except DBAPIError as exc:
            if not is_deadlock_error(exc):
                raise
            if attempt >= max_attempts:
                logger.error(
                    "Deadlock persists after retries",
                    extra={"operation": name, "attempts": attempt, "error": str(exc.orig)},
                )
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "Deadlock detected, retrying unit of work",
                extra={"operation": name, "attempt": attempt, "retry_delay": delay},
            )
            await asyncio.sleep(delay)
            attempt += 1
