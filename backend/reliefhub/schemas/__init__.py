"""Public schema exports shared across API route modules."""

from reliefhub.schemas.common import AuditEntryRead, LocationInput, OkResponse
from reliefhub.schemas.disasters import DisasterCreate, DisasterRead, DisasterUpdate
from reliefhub.schemas.enrichment import (
    GeocodeRequest,
    GeocodeResponse,
    OfficialUpdate,
    OfficialUpdatesResponse,
    SocialMediaPost,
    SocialMediaResponse,
    VerifyImageRequest,
    VerifyImageResponse,
)
from reliefhub.schemas.errors import ErrorResponse
from reliefhub.schemas.health import HealthStatusResponse
from reliefhub.schemas.reports import ReportCreate, ReportRead, ReportUpdate
from reliefhub.schemas.resources import (
    NearbyResourceRead,
    ResourceCreate,
    ResourceRead,
    ResourceUpdate,
)

__all__ = [
    "AuditEntryRead",
    "DisasterCreate",
    "DisasterRead",
    "DisasterUpdate",
    "ErrorResponse",
    "GeocodeRequest",
    "GeocodeResponse",
    "HealthStatusResponse",
    "LocationInput",
    "NearbyResourceRead",
    "OfficialUpdate",
    "OfficialUpdatesResponse",
    "OkResponse",
    "ReportCreate",
    "ReportRead",
    "ReportUpdate",
    "ResourceCreate",
    "ResourceRead",
    "ResourceUpdate",
    "SocialMediaPost",
    "SocialMediaResponse",
    "VerifyImageRequest",
    "VerifyImageResponse",
]
