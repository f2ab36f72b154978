# backend/passdesk/routes/v1/batches.py
"""
Business batch routes - API v1

Mounted under /api/v1/businesses/{business_id}/batches.

Endpoints:
    GET / - List batches (open only unless include_closed)
    POST / - Create a batch
    PUT /{batch_id} - Edit a batch
    POST /{batch_id}/cancel - Cancel a batch
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_engine
from ...core.exceptions import DomainException
from ...errors import ULID_PATH_PATTERN, handle_domain_exception
from ...schemas.batch import BatchResponse, BatchUpsertRequest
from ...services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["batches-v1"])


@router.get("", response_model=List[BatchResponse])
async def list_batches(
    business_id: str,
    include_closed: bool = Query(False),
    engine: BookingEngine = Depends(get_booking_engine),
) -> List[BatchResponse]:
    try:
        batches = await asyncio.to_thread(engine.list_batches, business_id, include_closed)
        return [BatchResponse.model_validate(b) for b in batches]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Teacher already teaches at this time"}},
)
async def create_batch(
    business_id: str,
    payload: BatchUpsertRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BatchResponse:
    try:
        batch = await asyncio.to_thread(engine.create_or_edit_batch, business_id, payload.to_spec())
        return BatchResponse.model_validate(batch)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{batch_id}",
    response_model=BatchResponse,
    responses={
        404: {"description": "Batch not found"},
        409: {"description": "Teacher already teaches at this time"},
    },
)
async def edit_batch(
    business_id: str,
    batch_id: str = Path(..., description="Batch ULID", pattern=ULID_PATH_PATTERN),
    payload: BatchUpsertRequest = Body(...),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BatchResponse:
    try:
        batch = await asyncio.to_thread(
            engine.create_or_edit_batch, business_id, payload.to_spec(batch_id=batch_id)
        )
        return BatchResponse.model_validate(batch)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{batch_id}/cancel", response_model=BatchResponse)
async def cancel_batch(
    business_id: str,
    batch_id: str = Path(..., description="Batch ULID", pattern=ULID_PATH_PATTERN),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BatchResponse:
    try:
        batch = await asyncio.to_thread(engine.cancel_batch, batch_id, business_id)
        return BatchResponse.model_validate(batch)
    except DomainException as e:
        handle_domain_exception(e)
