"""
Capa de Infraestructura - Reservas de clases de manejo.

Esta capa contiene las implementaciones concretas de los puertos (interfaces).
Incluye adaptadores para bases de datos, el proveedor de pagos y servicios.

Estructura:
- db/: Tablas, repositorios SQL y utilidades de transacción
- gateways/: Adaptador del proveedor de pagos (Qliro)
- in_memory/: Implementaciones in-memory para desarrollo y testing
- messaging/: Worker del outbox
- services/: Facturación y notificaciones
"""

# Database
from app.infrastructure.db.repositories.credits_ledger_sql import CreditsLedgerSQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.payment_order_repo_sql import PaymentOrderRepoSQL
from app.infrastructure.db.repositories.reservation_repo_sql import ReservationRepoSQL
from app.infrastructure.db.repositories.slot_catalog_sql import SlotCatalogSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager

# Gateways
from app.infrastructure.gateways.qliro_gateway import QliroGateway

# In-Memory (for testing)
from app.infrastructure.in_memory import (
    InMemoryCreditsLedger,
    InMemoryOutboxRepo,
    InMemoryPaymentOrderRepo,
    InMemoryPaymentProvider,
    InMemoryReservationRepo,
    InMemorySlotCatalog,
    InMemoryTransactionManager,
)

# Messaging
from app.infrastructure.messaging.outbox_worker import OutboxWorker

# Services
from app.infrastructure.services import LoggingInvoicingService, LoggingNotificationService

__all__ = [
    # Database - Repositories SQL
    "ReservationRepoSQL",
    "PaymentOrderRepoSQL",
    "SlotCatalogSQL",
    "OutboxRepoSQL",
    "CreditsLedgerSQL",
    "SQLAlchemyTransactionManager",
    # Gateways
    "QliroGateway",
    # In-Memory Implementations
    "InMemoryReservationRepo",
    "InMemoryPaymentOrderRepo",
    "InMemorySlotCatalog",
    "InMemoryOutboxRepo",
    "InMemoryCreditsLedger",
    "InMemoryPaymentProvider",
    "InMemoryTransactionManager",
    # Messaging
    "OutboxWorker",
    # Services
    "LoggingInvoicingService",
    "LoggingNotificationService",
]
