# backend/passdesk/routes/v1/reservations.py
"""
Student reservation routes - API v1

Mounted under /api/v1/students/{student_id}/reservation.
All business logic delegated to BookingEngine.

Endpoints:
    GET / - Current reservation with items, total and time left
    DELETE / - Clear the reservation
    GET /remaining - Seconds left on the shared timer
    POST /check - Would this batch or pass be accepted?
    POST /items - Add a batch seat or pass
    PATCH /items/{item_id} - Change an item's start date or auto-renew flag
    DELETE /items/{item_id} - Remove an item
    POST /extend - Restart the timer for a live reservation
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.params import Path

from ...api.dependencies import get_booking_engine
from ...core.exceptions import DomainException
from ...domain.timer import remaining_seconds
from ...errors import ULID_PATH_PATTERN, handle_domain_exception
from ...schemas.reservation import (
    AddToReservationResponse,
    BookingCandidateRequest,
    ClearReservationResponse,
    ConflictCheckResponse,
    RemainingTimeResponse,
    ReservationItemResponse,
    ReservationItemUpdate,
    ReservationResponse,
)
from ...services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reservations-v1"])


@router.get("", response_model=ReservationResponse)
async def get_reservation(
    student_id: str,
    engine: BookingEngine = Depends(get_booking_engine),
) -> ReservationResponse:
    """Current reservation. Expired reservations come back empty with is_expired set."""
    try:
        snapshot = await asyncio.to_thread(engine.get_reservation, student_id)
        return ReservationResponse.from_snapshot(snapshot)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("", response_model=ClearReservationResponse)
async def clear_reservation(
    student_id: str,
    engine: BookingEngine = Depends(get_booking_engine),
) -> ClearReservationResponse:
    try:
        removed = await asyncio.to_thread(engine.clear_reservation, student_id)
        return ClearReservationResponse(removed=removed)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/remaining", response_model=RemainingTimeResponse)
async def get_remaining_time(
    student_id: str,
    engine: BookingEngine = Depends(get_booking_engine),
) -> RemainingTimeResponse:
    try:
        seconds = await asyncio.to_thread(engine.remaining_reservation_seconds, student_id)
        return RemainingTimeResponse(student_id=student_id, remaining_seconds=seconds)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/check", response_model=ConflictCheckResponse)
async def check_candidate(
    student_id: str,
    payload: BookingCandidateRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> ConflictCheckResponse:
    """
    Check a candidate without reserving it.

    Conflicts are reported in the body with a 200; only malformed input or
    unknown offerings produce an error status.
    """
    try:
        result = await asyncio.to_thread(engine.check_add, student_id, payload.to_candidate())
        return ConflictCheckResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/items",
    response_model=AddToReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Schedule conflict, duplicate or full batch"},
        410: {"description": "Reservation expired"},
    },
)
async def add_to_reservation(
    student_id: str,
    payload: BookingCandidateRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> AddToReservationResponse:
    try:
        added = await asyncio.to_thread(
            engine.add_to_reservation, student_id, payload.to_candidate()
        )
        return AddToReservationResponse(
            item=ReservationItemResponse.model_validate(added.item),
            notes=list(added.result.notes),
            expires_at=added.expires_at,
            remaining_seconds=remaining_seconds(added.expires_at, engine.now()),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/items/{item_id}", response_model=ReservationItemResponse)
async def update_reservation_item(
    student_id: str,
    item_id: str = Path(..., description="Reservation item ULID", pattern=ULID_PATH_PATTERN),
    payload: ReservationItemUpdate = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> ReservationItemResponse:
    try:
        item = None
        if payload.start_date is not None:
            item = await asyncio.to_thread(
                engine.update_reservation_item_start_date, student_id, item_id, payload.start_date
            )
        if payload.auto_renew is not None:
            item = await asyncio.to_thread(
                engine.update_reservation_item_auto_renew, student_id, item_id, payload.auto_renew
            )
        return ReservationItemResponse.model_validate(item)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_from_reservation(
    student_id: str,
    item_id: str = Path(..., description="Reservation item ULID", pattern=ULID_PATH_PATTERN),
    engine: BookingEngine = Depends(get_booking_engine),
) -> Response:
    try:
        await asyncio.to_thread(engine.remove_from_reservation, student_id, item_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/extend", response_model=RemainingTimeResponse)
async def extend_reservation(
    student_id: str,
    engine: BookingEngine = Depends(get_booking_engine),
) -> RemainingTimeResponse:
    try:
        expires_at = await asyncio.to_thread(engine.extend_reservation, student_id)
        return RemainingTimeResponse(
            student_id=student_id,
            remaining_seconds=remaining_seconds(expires_at, engine.now()),
        )
    except DomainException as e:
        handle_domain_exception(e)
