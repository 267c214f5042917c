"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the reservation services, registers routers, and prepares the
database before the first request.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from reservation_engine.controllers.availability_controller import router as availability_router
from reservation_engine.controllers.campaign_controller import router as campaign_router
from reservation_engine.controllers.plan_controller import router as plan_router
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.services.auth_service import AuthService
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.campaign_service import CampaignService
from reservation_engine.services.conversion_service import ConversionService
from reservation_engine.services.id_allocator import IdAllocator
from reservation_engine.services.lock_service import ResourceLockService
from reservation_engine.services.plan_service import PlanService
from reservation_engine.services.utilization_service import UtilizationService
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository, one id allocator and one lock
    service, so plan edits and conversions serialise on the same keys.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    lock_service = ResourceLockService(settings)
    id_allocator = IdAllocator(repository, settings)

    availability_service = AvailabilityQueryService(repository=repository, settings=settings)
    plan_service = PlanService(
        repository=repository,
        settings=settings,
        id_allocator=id_allocator,
        lock_service=lock_service,
    )
    conversion_service = ConversionService(
        repository=repository,
        settings=settings,
        lock_service=lock_service,
        id_allocator=id_allocator,
        availability_service=availability_service,
    )
    campaign_service = CampaignService(repository=repository, settings=settings)
    utilization_service = UtilizationService(repository=repository, settings=settings)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(availability_router)
    app.include_router(plan_router)
    app.include_router(campaign_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    app.state.settings = settings
    app.state.repository = repository
    app.state.lock_service = lock_service
    app.state.auth_service = auth_service
    app.state.availability_service = availability_service
    app.state.plan_service = plan_service
    app.state.conversion_service = conversion_service
    app.state.campaign_service = campaign_service
    app.state.utilization_service = utilization_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the demo inventory is seeded.
    """
    repository: DataRepository = app.state.repository
    settings: Settings = app.state.settings

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo inventory (skipped if tenant already has resources)")
        repository.seed_demo_data()

    logger.info("Startup complete | database=%s", repository.database_path)


# Module-level app object for uvicorn
app = create_app()
