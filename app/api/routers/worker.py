import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_use_cases, require_cron_secret
from app.api.schemas.payments import WorkerOutboxResponse, WorkerSweepResponse
from app.infrastructure.db.retry import retry_on_deadlock

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post(
    "/workers/sweep",
    response_model=WorkerSweepResponse,
    status_code=status.HTTP_200_OK,
)
async def sweep_stale_holds(
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> WorkerSweepResponse:
    """
    Cancela holds vencidos, expira órdenes de fechas pasadas y archiva
    cancelaciones antiguas, con reintento ante deadlocks.
    """
    sweeper = use_cases["sweeper"]
    report = await retry_on_deadlock(sweeper.execute, max_attempts=3, base_delay=0.1)
    archived = await retry_on_deadlock(sweeper.archive_cancelled, max_attempts=3, base_delay=0.1)
    return WorkerSweepResponse(
        cancelled_holds=report.cancelled_holds,
        expired_orders=report.expired_orders,
        past_date_orders=report.past_date_orders,
        archived=archived,
    )


@router.post(
    "/workers/outbox",
    response_model=WorkerOutboxResponse,
    status_code=status.HTTP_200_OK,
)
async def process_outbox(
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> WorkerOutboxResponse:
    processed = await retry_on_deadlock(use_cases["outbox_worker"].run_once, max_attempts=3, base_delay=0.1)
    return WorkerOutboxResponse(processed=processed)
