"""
Pytest configuration and shared fixtures.

Este módulo provee fixtures reutilizables para:
- Reloj fijo (FakeClock) y configuración de prueba
- Juego de repositorios in-memory con el calendario semanal sembrado
- Base de datos SQLite (aiosqlite) para los repositorios SQL
- Cliente HTTP de prueba (FastAPI TestClient)
"""

import json
from collections.abc import AsyncGenerator, Generator
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.dependencies import build_use_cases, get_use_cases
from app.application.dtos.reservation_dto import HoldRequestDTO
from app.application.interfaces.clock import FakeClock
from app.config import Settings, get_settings
from app.domain.entities.slot import SlotTemplate
from app.domain.value_objects.holder import Holder
from app.infrastructure.circuit_breaker import payment_breaker
from app.infrastructure.db.tables import metadata
from app.infrastructure.in_memory import (
    InMemoryCreditsLedger,
    InMemoryOutboxRepo,
    InMemoryPaymentOrderRepo,
    InMemoryPaymentProvider,
    InMemoryReservationRepo,
    InMemorySlotCatalog,
    InMemoryTransactionManager,
)
from app.main import app

# Lunes 3 de marzo de 2025, una semana antes del día de las clases.
NOW = datetime(2025, 3, 3, 8, 0, tzinfo=timezone.utc)
LESSON_DAY = date(2025, 3, 10)

WEBHOOK_SECRET = "whsec-test"
CRON_SECRET = "cron-test"
ADMIN_SECRET = "admin-test"
CONTACT_PHONE = "+46 8 123 45 67"

WEEKLY_SCHEDULE = [
    SlotTemplate(weekday=weekday, start_time=time(hour), end_time=time(hour + 1))
    for weekday in range(7)
    for hour in range(8, 17)
]


# ============================================================================
# CONFIGURACIÓN Y RELOJ
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        use_in_memory=True,
        school_timezone="UTC",
        contact_phone=CONTACT_PHONE,
        public_base_url="https://booking.test",
        payment_webhook_secret=WEBHOOK_SECRET,
        cron_secret=CRON_SECRET,
        admin_secret=ADMIN_SECRET,
        sweep_on_availability=True,
        background_worker_enabled=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


# ============================================================================
# REPOSITORIOS IN-MEMORY Y CASOS DE USO
# ============================================================================

@pytest.fixture
def bundle(clock: FakeClock) -> dict:
    slot_catalog = InMemorySlotCatalog()
    slot_catalog.templates.extend(WEEKLY_SCHEDULE)
    return {
        "reservation_repo": InMemoryReservationRepo(),
        "payment_order_repo": InMemoryPaymentOrderRepo(),
        "slot_catalog": slot_catalog,
        "outbox_repo": InMemoryOutboxRepo(),
        "credits_ledger": InMemoryCreditsLedger(),
        "payment_provider": InMemoryPaymentProvider(WEBHOOK_SECRET),
        "tx_manager": InMemoryTransactionManager(),
        "clock": clock,
    }


@pytest.fixture
def use_cases(settings: Settings, bundle: dict) -> dict:
    return build_use_cases(settings, **bundle)


@pytest.fixture
def lifecycle(use_cases: dict):
    return use_cases["lifecycle"]


@pytest.fixture
def reconciliation(use_cases: dict):
    return use_cases["reconciliation"]


@pytest.fixture
def sweeper(use_cases: dict):
    return use_cases["sweeper"]


@pytest.fixture
def hold_request():
    """Factory de HoldRequestDTO para el día de clases."""

    def _make(
        start_hour: int = 10,
        end_hour: int | None = None,
        customer_id: int | None = 42,
        day: date = LESSON_DAY,
        price: str = "650.00",
    ) -> HoldRequestDTO:
        if customer_id is not None:
            holder = Holder(customer_id=customer_id)
        else:
            holder = Holder(
                guest_name="Anna Svensson",
                guest_email="anna@example.com",
                guest_phone="+46701234567",
            )
        return HoldRequestDTO(
            date=day,
            start_time=time(start_hour),
            end_time=time(end_hour if end_hour is not None else start_hour + 1),
            holder=holder,
            total_price=Decimal(price),
        )

    return _make


@pytest.fixture
def signed_callback(bundle: dict):
    """Cuerpo y firma de una notificación del proveedor."""

    def _sign(payload: dict) -> tuple[bytes, str]:
        body = json.dumps(payload).encode()
        return body, bundle["payment_provider"].sign(body)

    return _sign


# ============================================================================
# BASE DE DATOS (aiosqlite)
# ============================================================================

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Engine SQLite en archivo: varias sesiones ven los mismos datos."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# CLIENTE HTTP
# ============================================================================

@pytest.fixture
def client(settings: Settings, use_cases: dict) -> Generator[TestClient, None, None]:
    """
    FastAPI TestClient con configuración de prueba y casos de uso in-memory
    compartidos, para que el test pueda inspeccionar los repositorios.
    """
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_use_cases] = lambda: use_cases

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# HOOKS DE PYTEST
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """
    Reset circuit breakers antes de cada test.
    Evita que tests fallen por breakers abiertos de tests anteriores.
    """
    payment_breaker.close()
    yield
    payment_breaker.close()
