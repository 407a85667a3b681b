"""Reusable FastAPI dependencies resolving components built at startup.

Every long-lived component (entity store, geo matcher, enrichment service,
change fanout) is constructed once in the application lifespan and attached to
`app.state`. Routes receive them through these dependencies, so tests can
build a bare app, populate its state, and exercise real routers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import Depends, HTTPException, Request, WebSocket, status

from reliefhub.core.roles import Identity, get_caller_identity

if TYPE_CHECKING:
    from starlette.datastructures import State

    from reliefhub.services.enrichment import EnrichmentService
    from reliefhub.services.entities import AuditedEntityStore
    from reliefhub.services.fanout import ChangeFanout
    from reliefhub.services.geo import GeoMatcher


def _component(state: State, name: str) -> Any:
    component = getattr(state, name, None)
    if component is None:
        msg = f"Application component {name!r} is not initialized."
        raise RuntimeError(msg)
    return component


def get_entity_store(request: Request) -> AuditedEntityStore:
    return _component(request.app.state, "entities")


def get_geo_matcher(request: Request) -> GeoMatcher:
    return _component(request.app.state, "geo_matcher")


def get_enrichment(request: Request) -> EnrichmentService:
    return _component(request.app.state, "enrichment")


def get_fanout(request: Request) -> ChangeFanout:
    return _component(request.app.state, "fanout")


def get_default_radius_meters(request: Request) -> float:
    return float(getattr(request.app.state, "nearby_default_radius_meters", 10_000.0))


ENTITIES_DEP = Depends(get_entity_store)
GEO_MATCHER_DEP = Depends(get_geo_matcher)
ENRICHMENT_DEP = Depends(get_enrichment)
FANOUT_DEP = Depends(get_fanout)
DEFAULT_RADIUS_DEP = Depends(get_default_radius_meters)


def require_caller(identity: Identity | None = Depends(get_caller_identity)) -> Identity:
    """Reject callers the role directory cannot resolve."""
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown caller")
    return identity


CALLER_DEP = Depends(require_caller)


def get_websocket_fanout(websocket: WebSocket) -> ChangeFanout:
    return _component(websocket.app.state, "fanout")
