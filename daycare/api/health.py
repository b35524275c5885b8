"""Health check API endpoints."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from daycare.core.database import AsyncSessionLocal

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    message: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", message="Daycare API is running")


@router.get("/health/db", response_model=HealthResponse)
async def health_check_db() -> HealthResponse:
    """Database health check endpoint."""
    try:
        async with AsyncSessionLocal() as db:
            result = await db.execute(text("SELECT 1"))
            if result.scalar() == 1:
                return HealthResponse(status="ok", message="Database connection is working")
            return HealthResponse(status="error", message="Database query failed")
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return HealthResponse(status="error", message=f"Database connection failed: {e}")
