"""Cached enrichment endpoints: geocoding, image checks, official updates, social feed."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter

from reliefhub.api.deps import ENRICHMENT_DEP
from reliefhub.schemas.enrichment import (
    GeocodeRequest,
    GeocodeResponse,
    OfficialUpdatesResponse,
    SocialMediaResponse,
    VerifyImageRequest,
    VerifyImageResponse,
)

if TYPE_CHECKING:
    from reliefhub.services.enrichment import EnrichmentService

router = APIRouter(tags=["enrichment"])


@router.post("/geocode", response_model=GeocodeResponse)
async def geocode(
    payload: GeocodeRequest,
    enrichment: EnrichmentService = ENRICHMENT_DEP,
) -> GeocodeResponse:
    """Extract a place name from free text and resolve it to coordinates."""
    result, cached = await enrichment.geocode_text(payload.text)
    return GeocodeResponse.model_validate({**result, "cached": cached})


@router.get("/mock-social-media", response_model=SocialMediaResponse)
async def mock_social_media(
    enrichment: EnrichmentService = ENRICHMENT_DEP,
) -> SocialMediaResponse:
    posts, cached = await enrichment.social_media_feed()
    return SocialMediaResponse.model_validate({"posts": posts, "cached": cached})


@router.get("/disasters/{disaster_id}/official-updates", response_model=OfficialUpdatesResponse)
async def official_updates(
    disaster_id: UUID,
    enrichment: EnrichmentService = ENRICHMENT_DEP,
) -> OfficialUpdatesResponse:
    """Headlines scraped from the configured official sources."""
    updates, cached = await enrichment.official_updates(disaster_id)
    return OfficialUpdatesResponse.model_validate({"updates": updates, "cached": cached})


@router.post("/disasters/{disaster_id}/verify-image", response_model=VerifyImageResponse)
async def verify_image(
    disaster_id: UUID,
    payload: VerifyImageRequest,
    enrichment: EnrichmentService = ENRICHMENT_DEP,
) -> VerifyImageResponse:
    result, cached = await enrichment.verify_image(disaster_id, payload.image_url)
    return VerifyImageResponse.model_validate({**result, "cached": cached})
