from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_use_cases, require_admin_secret
from app.api.schemas.payments import VerifyPaymentRequest, VerifyPaymentResponse
from app.api.schemas.reservations import ReservationResponse
from app.domain.entities.reservation import PaymentMethod
from app.domain.errors import PaymentMethodNotAllowedError

router = APIRouter(dependencies=[Depends(require_admin_secret)])

MANUALLY_VERIFIED_METHODS = (PaymentMethod.SWISH, PaymentMethod.PAY_AT_LOCATION)


@router.post(
    "/admin/reservations/{reservation_id}/payments/verify",
    response_model=VerifyPaymentResponse,
    status_code=status.HTTP_200_OK,
)
async def verify_payment(
    reservation_id: int,
    payload: VerifyPaymentRequest,
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> VerifyPaymentResponse:
    """Staff marca como cobrado un pago Swish o en el local."""
    if payload.payment_method not in MANUALLY_VERIFIED_METHODS:
        raise PaymentMethodNotAllowedError(
            payload.payment_method.value, "only Swish and pay-at-location are verified manually"
        )
    result = await use_cases["lifecycle"].record_payment(reservation_id, payload.payment_method)
    return VerifyPaymentResponse(
        reservation=ReservationResponse.from_entity(result.reservation),
        changed=result.changed,
    )
