"""Interfaces (Puertos) de la capa de aplicación."""

from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.credits_ledger import CreditsLedger
from app.application.interfaces.invoicing import InvoicingService
from app.application.interfaces.notifications import NotificationService
from app.application.interfaces.outbox_repo import OutboxRepo
from app.application.interfaces.payment_order_repo import PaymentOrderRepo
from app.application.interfaces.payment_provider import (
    CheckoutRequest,
    PaymentProviderClient,
    ProviderOrder,
)
from app.application.interfaces.reservation_repo import ReservationRepo
from app.application.interfaces.slot_catalog import SlotCatalog
from app.application.interfaces.transaction_manager import TransactionManager

__all__ = [
    # Repositories
    "ReservationRepo",
    "PaymentOrderRepo",
    "SlotCatalog",
    "OutboxRepo",
    # Gateways
    "PaymentProviderClient",
    "ProviderOrder",
    "CheckoutRequest",
    "CreditsLedger",
    "InvoicingService",
    "NotificationService",
    # Infrastructure
    "TransactionManager",
    "Clock",
    "SystemClock",
    "FakeClock",
]
