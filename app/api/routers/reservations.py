from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Body, Depends, status

from app.api.dependencies import get_caller_id, get_use_cases
from app.api.schemas.payments import CheckoutResponse
from app.api.schemas.reservations import (
    CancelReservationRequest,
    ConfirmReservationRequest,
    ConfirmReservationResponse,
    CreateHoldRequest,
    CreateHoldResponse,
    ReservationResponse,
)
from app.application.dtos.reservation_dto import HoldRequestDTO, PayerDTO
from app.domain.value_objects.holder import Holder

router = APIRouter()


@router.post(
    "/reservations/holds",
    response_model=CreateHoldResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_hold(
    payload: CreateHoldRequest,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    caller_id: Annotated[int | None, Depends(get_caller_id)],
) -> CreateHoldResponse:
    if caller_id is not None:
        holder = Holder(customer_id=caller_id)
    elif payload.guest is not None:
        holder = Holder(
            guest_name=payload.guest.name,
            guest_email=str(payload.guest.email),
            guest_phone=payload.guest.phone,
        )
    else:
        holder = Holder()

    end_time = payload.end_time
    if end_time is None:
        start = datetime.combine(payload.date, payload.start_time)
        end_time = (start + timedelta(minutes=payload.duration_minutes)).time()

    reservation = await use_cases["lifecycle"].create_hold(
        HoldRequestDTO(
            date=payload.date,
            start_time=payload.start_time,
            end_time=end_time,
            holder=holder,
            lesson_type=payload.lesson_type,
            total_price=payload.total_price,
        )
    )
    return CreateHoldResponse(
        reservation_id=reservation.id,
        status=reservation.status,
        payment_status=reservation.payment_status,
        expires_at=use_cases["policy"].hold_expires_at(reservation),
    )


@router.post(
    "/reservations/{reservation_id}/confirm",
    response_model=ConfirmReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def confirm_reservation(
    reservation_id: int,
    payload: ConfirmReservationRequest,
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> ConfirmReservationResponse:
    payer = None
    if payload.payer is not None:
        payer = PayerDTO(name=payload.payer.name, email=str(payload.payer.email), phone=payload.payer.phone)
    result = await use_cases["lifecycle"].confirm(reservation_id, payload.payment_method, payer)
    return ConfirmReservationResponse(
        reservation=ReservationResponse.from_entity(result.reservation),
        invoice_reference=result.invoice_reference,
        changed=result.changed,
    )


@router.post(
    "/reservations/{reservation_id}/cancel",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_reservation(
    reservation_id: int,
    use_cases: Annotated[dict, Depends(get_use_cases)],
    payload: Annotated[CancelReservationRequest | None, Body()] = None,
) -> ReservationResponse:
    reason = payload.reason if payload else None
    reservation = await use_cases["lifecycle"].cancel(reservation_id, reason=reason)
    return ReservationResponse.from_entity(reservation)


@router.post(
    "/reservations/{reservation_id}/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_200_OK,
)
async def start_checkout(
    reservation_id: int,
    use_cases: Annotated[dict, Depends(get_use_cases)],
) -> CheckoutResponse:
    order = await use_cases["reconciliation"].open_or_get_order(reservation_id)
    return CheckoutResponse.from_entity(order)
