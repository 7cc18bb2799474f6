"""CRM Assignment Engine — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from crm_assign.adapters.persistence.database import engine
from crm_assign.config import settings
from crm_assign.infrastructure.api.routes_agents import router as agents_router
from crm_assign.infrastructure.api.routes_assignments import router as assignments_router
from crm_assign.infrastructure.api.routes_health import router as health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="CRM Assignment & SLA Engine",
        description="Assignment lifecycle, SLA tracking and agent workload",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(assignments_router, prefix="/api")
    app.include_router(agents_router, prefix="/api")

    return app


app = create_app()
