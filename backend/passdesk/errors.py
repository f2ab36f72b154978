"""
Problem+json error envelopes for the HTTP surface.

Every error response carries ``type, title, status, detail, instance`` plus
the engine's stable ``code`` and, where present, ``errors`` with details
(for conflicts, the full ConflictResult).
"""

import logging
from typing import Any, Dict, NoReturn, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"

STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    410: "Gone",
    422: "Unprocessable Entity",
    423: "Locked",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def problem_response(
    request: Request,
    status_code: int,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": STATUS_TITLES.get(status_code, "Error"),
        "status": status_code,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors is not None:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(
        body, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers
    )


def _unpack(detail: Any) -> Tuple[Optional[str], Optional[str], Any]:
    """Split an HTTPException detail into (message, code, errors)."""
    if detail is None:
        return None, None, None
    if not isinstance(detail, dict):
        return str(detail), None, None
    message = detail.get("message") or detail.get("detail")
    code = detail.get("code")
    return (
        message if isinstance(message, str) else None,
        code if isinstance(code, str) else None,
        detail.get("details") or detail.get("errors"),
    )


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Re-raise a domain error as the HTTPException its class maps to."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def register_error_handlers(app: FastAPI) -> None:
    def from_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message, code, errors = _unpack(exc.detail)
        return problem_response(
            request,
            exc.status_code,
            detail=message,
            code=code,
            errors=errors,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return from_http_exception(request, exc)

    @app.exception_handler(DomainException)
    async def on_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
        # Raised outside a route body, e.g. from a dependency
        return from_http_exception(request, exc.to_http_exception())

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return problem_response(
            request,
            422,
            detail="Request validation failed",
            code="validation_error",
            errors=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return problem_response(
            request, 500, detail="Internal Server Error", code="internal_server_error"
        )
