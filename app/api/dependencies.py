import hmac
from datetime import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AsyncSessionLocal
from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_provider import PaymentProviderClient
from app.application.use_cases.compute_availability import ComputeAvailabilityUseCase
from app.application.use_cases.payment_reconciliation import PaymentReconciliationService
from app.application.use_cases.process_outbox import ProcessOutboxUseCase
from app.application.use_cases.reservation_lifecycle import ReservationLifecycleManager
from app.application.use_cases.sweep_stale_holds import SweepStaleHoldsUseCase
from app.config import Settings, get_settings
from app.domain.entities.slot import SlotTemplate
from app.infrastructure.db.repositories.credits_ledger_sql import CreditsLedgerSQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.payment_order_repo_sql import PaymentOrderRepoSQL
from app.infrastructure.db.repositories.reservation_repo_sql import ReservationRepoSQL
from app.infrastructure.db.repositories.slot_catalog_sql import SlotCatalogSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from app.infrastructure.gateways.qliro_gateway import QliroGateway
from app.infrastructure.in_memory.credits_ledger import InMemoryCreditsLedger
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.payment_order_repo import InMemoryPaymentOrderRepo
from app.infrastructure.in_memory.payment_provider import InMemoryPaymentProvider
from app.infrastructure.in_memory.reservation_repo import InMemoryReservationRepo
from app.infrastructure.in_memory.slot_catalog import InMemorySlotCatalog
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager
from app.infrastructure.messaging.outbox_worker import OutboxWorker
from app.infrastructure.services.invoicing_impl import LoggingInvoicingService
from app.infrastructure.services.notifications_impl import LoggingNotificationService

# Lunes a viernes, clases de una hora de 08:00 a 17:00.
DEV_SCHEDULE = [
    SlotTemplate(weekday=weekday, start_time=time(hour), end_time=time(hour + 1))
    for weekday in range(5)
    for hour in range(8, 17)
]


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncSession | None:
    if settings.use_in_memory:
        yield None
        return
    async with AsyncSessionLocal() as session:
        yield session


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict[str, Any]:
    settings = get_settings()
    slot_catalog = InMemorySlotCatalog()
    slot_catalog.templates.extend(DEV_SCHEDULE)
    return {
        "reservation_repo": InMemoryReservationRepo(),
        "payment_order_repo": InMemoryPaymentOrderRepo(),
        "slot_catalog": slot_catalog,
        "outbox_repo": InMemoryOutboxRepo(),
        "credits_ledger": InMemoryCreditsLedger(),
        "payment_provider": InMemoryPaymentProvider(settings.payment_webhook_secret),
        "tx_manager": NoopTransactionManager(),
        "clock": SystemClock(),
    }


def qliro_gateway(settings: Settings) -> QliroGateway:
    base_url = settings.public_base_url.rstrip("/")
    return QliroGateway(
        api_url=settings.qliro_api_url,
        api_key=settings.qliro_api_key or "",
        api_secret=settings.qliro_api_secret or "",
        webhook_secret=settings.payment_webhook_secret,
        terms_url=f"{base_url}/kopvillkor",
        confirmation_url=f"{base_url}/booking/confirmation",
        timeout_seconds=settings.payment_provider_timeout_seconds,
    )


def build_use_cases(
    settings: Settings,
    *,
    reservation_repo,
    payment_order_repo,
    slot_catalog,
    outbox_repo,
    credits_ledger,
    payment_provider: PaymentProviderClient,
    tx_manager,
    clock: Clock,
) -> dict[str, Any]:
    """Cablea los casos de uso sobre un juego de repositorios (SQL o en memoria)."""
    policy = settings.lease_policy()
    sweeper = SweepStaleHoldsUseCase(
        reservation_repo=reservation_repo,
        payment_order_repo=payment_order_repo,
        transaction_manager=tx_manager,
        clock=clock,
        policy=policy,
    )
    lifecycle = ReservationLifecycleManager(
        reservation_repo=reservation_repo,
        payment_order_repo=payment_order_repo,
        slot_catalog=slot_catalog,
        outbox_repo=outbox_repo,
        credits_ledger=credits_ledger,
        garbage_collector=sweeper,
        transaction_manager=tx_manager,
        clock=clock,
        policy=policy,
        contact_phone=settings.contact_phone,
    )
    process_outbox = ProcessOutboxUseCase(
        reservation_repo=reservation_repo,
        invoicing=LoggingInvoicingService(),
        notifications=LoggingNotificationService(),
        transaction_manager=tx_manager,
        clock=clock,
    )
    outbox_worker = OutboxWorker(
        outbox_repo=outbox_repo,
        transaction_manager=tx_manager,
        clock=clock,
        batch_size=settings.outbox_batch_size,
    )
    for event_type, handler in process_outbox.handlers().items():
        outbox_worker.register_handler(event_type, handler)

    return {
        "availability": ComputeAvailabilityUseCase(
            slot_catalog=slot_catalog,
            reservation_repo=reservation_repo,
            transaction_manager=tx_manager,
            clock=clock,
            policy=policy,
            contact_phone=settings.contact_phone,
        ),
        "lifecycle": lifecycle,
        "reconciliation": PaymentReconciliationService(
            reservation_repo=reservation_repo,
            payment_order_repo=payment_order_repo,
            payment_provider=payment_provider,
            lifecycle=lifecycle,
            transaction_manager=tx_manager,
            clock=clock,
            policy=policy,
            public_base_url=settings.public_base_url,
            currency_code=settings.currency,
        ),
        "sweeper": sweeper,
        "outbox_worker": outbox_worker,
        "policy": policy,
    }


def in_memory_use_cases(settings: Settings) -> dict[str, Any]:
    """Casos de uso sobre los repositorios en memoria compartidos del proceso."""
    return build_use_cases(settings, **_in_memory_bundle())


def build_sql_use_cases(settings: Settings, session: AsyncSession, clock: Clock) -> dict[str, Any]:
    return build_use_cases(
        settings,
        reservation_repo=ReservationRepoSQL(session),
        payment_order_repo=PaymentOrderRepoSQL(session),
        slot_catalog=SlotCatalogSQL(session),
        outbox_repo=OutboxRepoSQL(session),
        credits_ledger=CreditsLedgerSQL(session, clock),
        payment_provider=qliro_gateway(settings),
        tx_manager=SQLAlchemyTransactionManager(session),
        clock=clock,
    )


def get_use_cases(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
) -> dict[str, Any]:
    if settings.use_in_memory:
        return in_memory_use_cases(settings)

    if not session:
        raise RuntimeError("DB session not available")
    return build_sql_use_cases(settings, session, SystemClock())


# === Identidad y secretos ===


def get_caller_id(
    x_customer_id: int | None = Header(default=None, alias="X-Customer-Id"),
) -> int | None:
    """El gateway de autenticación resuelve al cliente y lo pasa en X-Customer-Id."""
    if x_customer_id is not None and x_customer_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-Customer-Id")
    return x_customer_id


def _check_bearer(authorization: str | None, secret: str | None) -> None:
    if not secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    presented = authorization or ""
    if not hmac.compare_digest(presented.encode(), f"Bearer {secret}".encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    _check_bearer(authorization, settings.cron_secret)


def require_admin_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    _check_bearer(authorization, settings.admin_secret)
