"""FastAPI application entrypoint and router wiring for the backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx
from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from reliefhub.api.changes import router as changes_router
from reliefhub.api.changes import ws_router as changes_ws_router
from reliefhub.api.disasters import router as disasters_router
from reliefhub.api.enrichment import router as enrichment_router
from reliefhub.api.reports import router as reports_router
from reliefhub.api.resources import router as resources_router
from reliefhub.core.config import settings
from reliefhub.core.error_handling import install_error_handling
from reliefhub.core.logging import configure_logging, get_logger
from reliefhub.core.roles import default_directory
from reliefhub.db.session import build_engine, build_session_maker, init_db
from reliefhub.db.store import SQLModelStore
from reliefhub.schemas.errors import ErrorResponse
from reliefhub.schemas.health import HealthStatusResponse
from reliefhub.services.cache import CacheAside, RedisCacheBackend, StoreCacheBackend
from reliefhub.services.enrichment import build_enrichment_service
from reliefhub.services.entities import AuditedEntityStore
from reliefhub.services.fanout import ChangeFanout
from reliefhub.services.geo import GeoMatcher

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from reliefhub.services.cache import CacheBackend

configure_logging()
logger = get_logger(__name__)
OPENAPI_TAGS = [
    {
        "name": "health",
        "description": "Service liveness/readiness probes used by infrastructure and runtime checks.",
    },
    {
        "name": "disasters",
        "description": "Audited disaster records and proximity search over their resources.",
    },
    {
        "name": "reports",
        "description": "Citizen and official reports filed against a disaster.",
    },
    {
        "name": "resources",
        "description": "Relief resources such as shelters and supply points.",
    },
    {
        "name": "enrichment",
        "description": "Cached geocoding, image verification, and official update lookups.",
    },
    {
        "name": "changes",
        "description": "Live streams of entity changes for connected observers.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every long-lived component and release them on shutdown."""
    logger.info(
        "app.lifecycle.starting",
        extra={
            "environment": settings.environment,
            "db_auto_migrate": settings.db_auto_migrate,
            "cache_backend": settings.cache_backend,
        },
    )
    engine = build_engine()
    await init_db(engine)
    store = SQLModelStore(
        build_session_maker(engine),
        timeout_seconds=settings.store_timeout_seconds,
    )
    redis_backend: RedisCacheBackend | None = None
    cache_backend: CacheBackend
    if settings.cache_backend == "redis":
        redis_backend = RedisCacheBackend.from_url(settings.cache_redis_url)
        cache_backend = redis_backend
    else:
        cache_backend = StoreCacheBackend(store)
    cache = CacheAside(cache_backend, default_ttl_seconds=settings.cache_default_ttl_seconds)
    fanout = ChangeFanout(queue_size=settings.fanout_subscriber_queue_size)
    http_client = httpx.AsyncClient(timeout=settings.provider_timeout_seconds)

    app.state.store = store
    app.state.cache = cache
    app.state.fanout = fanout
    app.state.entities = AuditedEntityStore(store, fanout)
    app.state.geo_matcher = GeoMatcher(store)
    app.state.enrichment = build_enrichment_service(settings, cache, http_client)
    app.state.role_directory = default_directory
    app.state.nearby_default_radius_meters = settings.nearby_default_radius_meters
    logger.info("app.lifecycle.started")
    try:
        yield
    finally:
        fanout.close()
        await http_client.aclose()
        if redis_backend is not None:
            await redis_backend.close()
        await engine.dispose()
        logger.info("app.lifecycle.stopped")


app = FastAPI(
    title="ReliefHub API",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("app.cors.enabled", extra={"origins_count": len(origins)})
else:
    logger.info("app.cors.disabled")

install_error_handling(app)


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Health Check",
    description="Lightweight liveness probe endpoint.",
    responses={
        status.HTTP_200_OK: {
            "description": "Service is alive.",
            "content": {"application/json": {"example": {"ok": True}}},
        }
    },
)
def health() -> HealthStatusResponse:
    """Lightweight liveness probe endpoint."""
    return HealthStatusResponse(ok=True)


@app.get(
    "/healthz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Health Alias Check",
    description="Alias liveness probe endpoint for platform compatibility.",
)
def healthz() -> HealthStatusResponse:
    return HealthStatusResponse(ok=True)


@app.get(
    "/readyz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Readiness Check",
    description="Ready once startup has attached the store and fanout.",
)
def readyz() -> HealthStatusResponse:
    ready = all(
        getattr(app.state, name, None) is not None for name in ("store", "fanout", "enrichment")
    )
    return HealthStatusResponse(ok=ready)


api_v1 = APIRouter(
    prefix="/api/v1",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_504_GATEWAY_TIMEOUT: {"model": ErrorResponse},
    },
)
api_v1.include_router(disasters_router)
api_v1.include_router(reports_router)
api_v1.include_router(resources_router)
api_v1.include_router(enrichment_router)
api_v1.include_router(changes_router)
app.include_router(api_v1)
app.include_router(changes_ws_router)

logger.debug("app.routes.registered", extra={"count": len(app.routes)})
