from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.application.interfaces.transaction_manager import TransactionManager


class NoopTransactionManager(TransactionManager):
    """Los repos en memoria aplican cada operación al instante; no hay rollback."""

    @asynccontextmanager
    async def start(self) -> AsyncIterator[None]:
        yield
