import asyncio
import contextlib
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.deps import AsyncSessionLocal, engine
from app.api.dependencies import build_sql_use_cases, in_memory_use_cases
from app.api.routers.admin import router as admin_router
from app.api.routers.availability import router as availability_router
from app.api.routers.health import router as health_router
from app.api.routers.reservations import router as reservations_router
from app.api.routers.webhooks import router as webhooks_router
from app.api.routers.worker import router as worker_router
from app.application.interfaces.clock import SystemClock
from app.config import Settings, get_settings
from app.domain.errors import (
    AlreadyTerminalError,
    DomainError,
    MustCallWindowError,
    OpenPaymentOrderExistsError,
    PaymentOrderNotFoundError,
    PaymentProviderError,
    ReservationNotFoundError,
    SlotBlockedError,
    SlotConflictError,
)
from app.infrastructure.db.tables import metadata

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

NOT_FOUND_ERRORS = (ReservationNotFoundError, PaymentOrderNotFoundError)
CONFLICT_ERRORS = (SlotConflictError, AlreadyTerminalError, OpenPaymentOrderExistsError)


async def run_background_cycle(settings: Settings) -> None:
    """Un ciclo del worker: barrido, archivo y outbox."""
    if settings.use_in_memory:
        await _run_cycle(in_memory_use_cases(settings))
        return
    async with AsyncSessionLocal() as session:
        await _run_cycle(build_sql_use_cases(settings, session, SystemClock()))


async def _run_cycle(use_cases: dict) -> None:
    await use_cases["sweeper"].execute()
    await use_cases["sweeper"].archive_cancelled()
    await use_cases["outbox_worker"].run_once()


async def background_worker(settings: Settings) -> None:
    logger.info(
        "Background worker started",
        extra={"poll_interval_seconds": settings.worker_poll_interval_seconds},
    )
    while True:
        try:
            await run_background_cycle(settings)
        except Exception:
            logger.exception("Background worker cycle failed")
        await asyncio.sleep(settings.worker_poll_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if not settings.use_in_memory:
        # Initialize DB tables (for dev/demo purposes)
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    worker_task = None
    if settings.background_worker_enabled:
        worker_task = asyncio.create_task(background_worker(settings))
    yield
    # Cleanup
    if worker_task is not None:
        worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker_task
    await engine.dispose()

app = FastAPI(
    title="Lesson Booking API",
    version="0.1.0",
    lifespan=lifespan
)


def _error_status(exc: DomainError) -> int:
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    if isinstance(exc, CONFLICT_ERRORS):
        return 409
    if isinstance(exc, PaymentProviderError):
        return 502
    return 422


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Errores de dominio como respuestas tipadas que la UI puede accionar."""
    content: dict = {"code": exc.code, "message": exc.message}
    if isinstance(exc, (SlotBlockedError, SlotConflictError, MustCallWindowError)):
        content.update(date=exc.slot_date, start_time=exc.start_time)
    if isinstance(exc, SlotBlockedError):
        content["reason"] = exc.reason
    if isinstance(exc, MustCallWindowError):
        content["call_phone"] = exc.call_phone
    if isinstance(exc, AlreadyTerminalError):
        content["current_status"] = exc.current_status

    status_code = _error_status(exc)
    log = logger.error if status_code == 502 else logger.info
    log(
        "Domain error",
        extra={"code": exc.code, "path": request.url.path, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content=content)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    # Log the full error with context for internal debugging
    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        }
    )

    # Return a generic error to the client without exposing internal details
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists."
        }
    )


app.include_router(health_router, tags=["Health"])
app.include_router(availability_router, prefix="/api/v1", tags=["Availability"])
app.include_router(reservations_router, prefix="/api/v1", tags=["Reservations"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
app.include_router(webhooks_router, prefix="/api/v1", tags=["Webhooks"])
app.include_router(worker_router, prefix="/api/v1", tags=["Worker"])
