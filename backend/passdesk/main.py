# backend/passdesk/main.py
"""
PassDesk API application.

Run locally with:
    uvicorn passdesk.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import is_running_tests, settings
from .database import init_db
from .errors import register_error_handlers
from .routes.v1 import batches as batches_v1
from .routes.v1 import checkout as checkout_v1
from .routes.v1 import enrollments as enrollments_v1
from .routes.v1 import health as health_v1
from .routes.v1 import reservations as reservations_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"PassDesk API starting up (environment: {settings.environment})")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    else:
        init_db()
    yield
    logger.info("PassDesk API shutting down")


app = FastAPI(
    title="PassDesk API",
    description="Scheduling-conflict detection, reservations and checkout for class passes",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(health_v1.router)
api_v1.include_router(reservations_v1.router, prefix="/students/{student_id}/reservation")
api_v1.include_router(checkout_v1.router, prefix="/students/{student_id}/checkout")
api_v1.include_router(enrollments_v1.router)
api_v1.include_router(batches_v1.router, prefix="/businesses/{business_id}/batches")

app.include_router(api_v1)
