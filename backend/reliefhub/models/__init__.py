"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from reliefhub.models.cache_entries import CacheSlot
from reliefhub.models.disasters import Disaster
from reliefhub.models.reports import Report
from reliefhub.models.resources import Resource

__all__ = [
    "CacheSlot",
    "Disaster",
    "Report",
    "Resource",
]
