import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_caller_id, get_use_cases
from app.api.schemas.availability import AvailabilityResponse, SlotViewResponse
from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_DATES_PER_QUERY = 31


def _parse_dates(raw: str) -> list[date]:
    parts = [part.strip() for part in raw.split(",") if part.strip()]
    if not parts:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="dates is required")
    if len(parts) > MAX_DATES_PER_QUERY:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At most {MAX_DATES_PER_QUERY} dates per query",
        )
    try:
        return [date.fromisoformat(part) for part in parts]
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="dates must be YYYY-MM-DD"
        ) from exc


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    use_cases: Annotated[dict, Depends(get_use_cases)],
    settings: Annotated[Settings, Depends(get_settings)],
    caller_id: Annotated[int | None, Depends(get_caller_id)],
    dates: str = Query(..., description="Comma separated YYYY-MM-DD dates"),
) -> AvailabilityResponse:
    days = _parse_dates(dates)

    if settings.sweep_on_availability:
        try:
            await use_cases["sweeper"].execute()
        except Exception:
            # the next sweep retries
            logger.exception("Opportunistic sweep failed")

    availability = await use_cases["availability"].execute(days, caller_id=caller_id)
    return AvailabilityResponse(
        slots={
            day.isoformat(): [SlotViewResponse.from_view(view) for view in views]
            for day, views in availability.items()
        }
    )
