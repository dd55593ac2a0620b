from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol


class TransactionManager(Protocol):
    """Unidad de trabajo: los repos llamados dentro de ``start()`` comparten commit/rollback."""

    @asynccontextmanager
    async def start(self) -> AsyncIterator[None]:
        yield
