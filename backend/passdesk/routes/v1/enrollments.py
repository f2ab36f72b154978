# backend/passdesk/routes/v1/enrollments.py
"""
Enrollment routes - API v1

Endpoints:
    GET /students/{student_id}/enrollments - A student's passes
    POST /enrollments/{enrollment_id}/cancel - Cancel (monthly lock applies)
    POST /enrollments/{enrollment_id}/switch - One-time batch switch
    PATCH /enrollments/{enrollment_id}/auto-renew - Set the auto-renew flag
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Body, Depends, Query
from fastapi.params import Path

from ...api.dependencies import get_booking_engine
from ...core.exceptions import DomainException
from ...errors import ULID_PATH_PATTERN, handle_domain_exception
from ...schemas.enrollment import AutoRenewUpdate, EnrollmentResponse, SwitchBatchRequest
from ...services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["enrollments-v1"])


@router.get("/students/{student_id}/enrollments", response_model=List[EnrollmentResponse])
async def list_enrollments(
    student_id: str,
    active_only: bool = Query(False),
    engine: BookingEngine = Depends(get_booking_engine),
) -> List[EnrollmentResponse]:
    try:
        enrollments = await asyncio.to_thread(engine.list_enrollments, student_id, active_only)
        return [EnrollmentResponse.model_validate(e) for e in enrollments]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/enrollments/{enrollment_id}/cancel",
    response_model=EnrollmentResponse,
    responses={423: {"description": "Monthly pass still inside its lock window"}},
)
async def cancel_enrollment(
    enrollment_id: str = Path(..., description="Enrollment ULID", pattern=ULID_PATH_PATTERN),
    engine: BookingEngine = Depends(get_booking_engine),
) -> EnrollmentResponse:
    try:
        enrollment = await asyncio.to_thread(engine.cancel_enrollment, enrollment_id)
        return EnrollmentResponse.model_validate(enrollment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/enrollments/{enrollment_id}/switch",
    response_model=EnrollmentResponse,
    responses={422: {"description": "Switch already used or too close to the start date"}},
)
async def switch_batch(
    enrollment_id: str = Path(..., description="Enrollment ULID", pattern=ULID_PATH_PATTERN),
    payload: SwitchBatchRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> EnrollmentResponse:
    try:
        enrollment = await asyncio.to_thread(
            engine.switch_batch, enrollment_id, payload.new_batch_id
        )
        return EnrollmentResponse.model_validate(enrollment)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/enrollments/{enrollment_id}/auto-renew", response_model=EnrollmentResponse)
async def set_auto_renew(
    enrollment_id: str = Path(..., description="Enrollment ULID", pattern=ULID_PATH_PATTERN),
    payload: AutoRenewUpdate = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> EnrollmentResponse:
    try:
        enrollment = await asyncio.to_thread(
            engine.set_auto_renew, enrollment_id, payload.auto_renew
        )
        return EnrollmentResponse.model_validate(enrollment)
    except DomainException as e:
        handle_domain_exception(e)
