"""Request and response schemas for cached enrichment endpoints.

Every response carries `cached`, which is true when the answer came from the
cache instead of a fresh provider call.
"""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class GeocodeRequest(SQLModel):
    text: str = Field(examples=["Flooding reported near Times Square, Manhattan"])


class GeocodeResponse(SQLModel):
    location_name: str
    lat: float
    lng: float
    cached: bool = False


class VerifyImageRequest(SQLModel):
    image_url: str = Field(examples=["https://example.com/flood.jpg"])


class VerifyImageResponse(SQLModel):
    image_url: str
    analysis: str
    cached: bool = False


class OfficialUpdate(SQLModel):
    source: str = Field(examples=["FEMA"])
    headline: str


class OfficialUpdatesResponse(SQLModel):
    updates: list[OfficialUpdate]
    cached: bool = False


class SocialMediaPost(SQLModel):
    post: str
    user: str


class SocialMediaResponse(SQLModel):
    posts: list[SocialMediaPost]
    cached: bool = False
