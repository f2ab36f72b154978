# backend/passdesk/routes/v1/checkout.py
"""
Checkout route - API v1

POST /api/v1/students/{student_id}/checkout converts the live reservation
into enrollments and one transaction, or changes nothing.
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, status

from ...api.dependencies import get_booking_engine
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...schemas.checkout import CheckoutRequest, CheckoutResponse
from ...services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout-v1"])


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Re-validation found a conflict or a full batch"},
        410: {"description": "Reservation expired"},
        422: {"description": "Reservation is empty"},
    },
)
async def checkout(
    student_id: str,
    payload: CheckoutRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> CheckoutResponse:
    try:
        receipt = await asyncio.to_thread(engine.checkout, student_id, payload.to_contact())
        return CheckoutResponse.from_receipt(receipt)
    except DomainException as e:
        handle_domain_exception(e)
