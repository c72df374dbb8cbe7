"""Ward Staff — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from wardstaff import __version__
from wardstaff.admin.router import router as admin_router
from wardstaff.attendance.router import router as attendance_router
from wardstaff.auth.router import router as auth_router
from wardstaff.common.exceptions import register_exception_handlers
from wardstaff.common.log_config import configure_logging
from wardstaff.common.rate_limit import limiter
from wardstaff.config import settings
from wardstaff.database import engine
from wardstaff.disciplinary.router import router as disciplinary_router
from wardstaff.leave.router import router as leave_router
from wardstaff.notifications.router import router as notifications_router
from wardstaff.reports.router import router as reports_router
from wardstaff.staff.router import departments_router, staff_router

# Register every mapped table on Base.metadata
import wardstaff.auth.models  # noqa: F401
import wardstaff.notifications.models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("ward staff API starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("ward staff API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Ward Staff",
        description="Ward office staff management: attendance, leave, disciplinary cases.",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(staff_router, prefix="/api/v1/staff", tags=["staff"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(leave_router, prefix="/api/v1/leaves", tags=["leave"])
    app.include_router(disciplinary_router, prefix="/api/v1/disciplinary", tags=["disciplinary"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["reports"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])

    return app


app = create_app()
