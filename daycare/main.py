"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select

from daycare.api import (
    attendance,
    audit,
    auth,
    children,
    families,
    files,
    health,
    invoices,
    messages,
    parent_portal,
    parents,
    pay_periods,
    reports,
    schedules,
    time_entries,
    time_off_requests,
    users,
)
from daycare.core.database import AsyncSessionLocal, init_db
from daycare.core.exceptions import register_exception_handlers
from daycare.core.logging import RequestTimingMiddleware, configure_logging
from daycare.core.security import get_password_hash
from daycare.core.settings import settings
from daycare.models import User, UserRole
from daycare.workers.billing_scheduler import billing_scheduler

logger = logging.getLogger(__name__)


async def ensure_admin_account() -> None:
    """Create the configured admin account on an empty install."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(func.count(User.id)).where(User.role == UserRole.ADMIN))
        if result.scalar():
            return
        db.add(User(
            email=settings.admin_email.strip().lower(),
            password_hash=get_password_hash(settings.admin_password),
            first_name="Admin",
            last_name="User",
            role=UserRole.ADMIN,
            must_reset_password=True,
        ))
        await db.commit()
        logger.info(f"Created bootstrap admin account {settings.admin_email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting daycare application...")

    await init_db()
    logger.info("Database initialized")
    await ensure_admin_account()

    if settings.scheduler_enabled:
        billing_scheduler.start()

    yield

    logger.info("Shutting down...")
    billing_scheduler.stop()
    logger.info("Application stopped")


app = FastAPI(
    title="Daycare Management API",
    description="Families, enrollment, attendance, billing and payroll for a daycare",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)
register_exception_handlers(app)

# Every router carries its own /api prefix
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(families.router)
app.include_router(parents.router)
app.include_router(children.router)
app.include_router(attendance.router)
app.include_router(schedules.router)
app.include_router(time_entries.router)
app.include_router(time_off_requests.router)
app.include_router(pay_periods.router)
app.include_router(invoices.router)
app.include_router(files.router)
app.include_router(messages.router)
app.include_router(parent_portal.router)
app.include_router(reports.router)
app.include_router(audit.router)


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "daycare.main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.env == "dev",
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
