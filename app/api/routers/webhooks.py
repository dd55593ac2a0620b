from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import get_use_cases

router = APIRouter()

REJECTION_DETAIL = {400: "Bad request", 401: "Unauthorized"}


@router.post("/webhooks/payments")
async def payment_webhook(
    request: Request,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    token: str | None = Query(default=None),
) -> JSONResponse:
    raw_body = await request.body()
    signature = request.headers.get("Payment-Signature")
    result = await use_cases["reconciliation"].handle_provider_callback(
        signature_header=signature, raw_body=raw_body, token=token
    )
    if result.acknowledged:
        return JSONResponse(status_code=200, content={"CallbackResponse": "received"})
    return JSONResponse(
        status_code=result.http_status,
        content={"detail": REJECTION_DETAIL.get(result.http_status, "Rejected")},
    )
