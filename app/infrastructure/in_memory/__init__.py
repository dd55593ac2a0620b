"""Implementaciones in-memory para desarrollo y testing."""

from app.infrastructure.in_memory.credits_ledger import InMemoryCreditsLedger
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.payment_order_repo import InMemoryPaymentOrderRepo
from app.infrastructure.in_memory.payment_provider import InMemoryPaymentProvider
from app.infrastructure.in_memory.reservation_repo import InMemoryReservationRepo
from app.infrastructure.in_memory.slot_catalog import InMemorySlotCatalog
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager as InMemoryTransactionManager

__all__ = [
    # Repositories
    "InMemoryReservationRepo",
    "InMemoryPaymentOrderRepo",
    "InMemorySlotCatalog",
    "InMemoryOutboxRepo",
    "InMemoryCreditsLedger",
    # Gateways
    "InMemoryPaymentProvider",
    # Infrastructure
    "InMemoryTransactionManager",
]
