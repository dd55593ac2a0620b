"""Servicios de infraestructura."""

from app.infrastructure.services.invoicing_impl import LoggingInvoicingService
from app.infrastructure.services.notifications_impl import LoggingNotificationService

__all__ = [
    "LoggingInvoicingService",
    "LoggingNotificationService",
]
