# ruff: noqa: INP001
"""Enrichment chains, provider adapters, and their cache behavior."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from reliefhub.core.errors import ProviderError, ProviderTimeoutError, ValidationError
from reliefhub.services.cache import CacheAside, CacheEntry, encode_text
from reliefhub.services.enrichment import EnrichmentService
from reliefhub.services.enrichment.gemini import (
    GeminiImageAnalyzer,
    GeminiLocationExtractor,
    UnconfiguredGemini,
    message_text,
)
from reliefhub.services.enrichment.nominatim import NominatimGeocoder
from reliefhub.services.enrichment.providers import FetchedImage, call_provider
from reliefhub.services.enrichment.service import MOCK_SOCIAL_POSTS
from reliefhub.services.enrichment.web import HttpImageFetcher, HttpPageTitleFetcher, extract_title
from reliefhub.services.geo import GeoPoint


class _MemoryBackend:
    def __init__(self) -> None:
        self.entries: dict[str, CacheEntry] = {}

    async def read(self, key: str) -> CacheEntry | None:
        return self.entries.get(key)

    async def write(self, entry: CacheEntry) -> None:
        self.entries[entry.key] = entry

    async def remove(self, key: str) -> None:
        self.entries.pop(key, None)


class _FakeExtractor:
    def __init__(self, answer: str = "Manhattan, NYC", *, fail: bool = False) -> None:
        self.answer = answer
        self.fail = fail
        self.calls: list[str] = []

    async def extract_location(self, text: str) -> str:
        self.calls.append(text)
        if self.fail:
            raise ProviderError("No location found")
        return self.answer


class _FakeGeocoder:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def geocode(self, location_name: str) -> GeoPoint:
        self.calls.append(location_name)
        if self.fail:
            raise ProviderError("No geocode result", detail=location_name)
        return GeoPoint(lat=40.7831, lng=-73.9712)


class _FakeImages:
    def __init__(self) -> None:
        self.fetched: list[str] = []
        self.analyzed: list[tuple[bytes, str]] = []

    async def fetch_image(self, url: str) -> FetchedImage:
        self.fetched.append(url)
        return FetchedImage(content=b"\x89PNG", mime_type="image/png")

    async def analyze_image(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
        self.analyzed.append((image_bytes, mime_type))
        return "No signs of manipulation; flooding visible."


class _FakeTitles:
    def __init__(self, titles: dict[str, str]) -> None:
        self.titles = titles
        self.calls: list[str] = []

    async def fetch_page_title(self, url: str) -> str:
        self.calls.append(url)
        return self.titles[url]


def _service(
    *,
    extractor: _FakeExtractor | None = None,
    geocoder: _FakeGeocoder | None = None,
    images: _FakeImages | None = None,
    titles: _FakeTitles | None = None,
    sources: tuple[tuple[str, str], ...] = (),
) -> tuple[EnrichmentService, _MemoryBackend]:
    backend = _MemoryBackend()
    images = images or _FakeImages()
    service = EnrichmentService(
        CacheAside(backend),
        location_extractor=extractor or _FakeExtractor(),
        geocoder=geocoder or _FakeGeocoder(),
        image_fetcher=images,
        image_analyzer=images,
        page_title_fetcher=titles or _FakeTitles({}),
        official_sources=sources,
    )
    return service, backend


@pytest.mark.asyncio
async def test_geocode_text_chains_providers_and_caches_result() -> None:
    extractor = _FakeExtractor()
    geocoder = _FakeGeocoder()
    service, backend = _service(extractor=extractor, geocoder=geocoder)

    first = await service.geocode_text("Heavy flooding in Manhattan, NYC")
    second = await service.geocode_text("Heavy flooding in Manhattan, NYC")

    expected = {"location_name": "Manhattan, NYC", "lat": 40.7831, "lng": -73.9712}
    assert first == (expected, False)
    assert second == (expected, True)
    assert extractor.calls == ["Heavy flooding in Manhattan, NYC"]
    assert geocoder.calls == ["Manhattan, NYC"]
    assert f"geocode:{encode_text('Heavy flooding in Manhattan, NYC')}" in backend.entries


@pytest.mark.asyncio
async def test_geocode_text_fails_fast_and_caches_nothing() -> None:
    geocoder = _FakeGeocoder()
    service, backend = _service(extractor=_FakeExtractor(fail=True), geocoder=geocoder)

    with pytest.raises(ProviderError, match="No location found"):
        await service.geocode_text("somewhere")
    assert geocoder.calls == []
    assert backend.entries == {}


@pytest.mark.asyncio
async def test_geocode_failure_after_extraction_is_not_cached() -> None:
    service, backend = _service(geocoder=_FakeGeocoder(fail=True))

    with pytest.raises(ProviderError, match="No geocode result"):
        await service.geocode_text("Atlantis")
    assert backend.entries == {}


@pytest.mark.asyncio
async def test_geocode_text_requires_text() -> None:
    service, _ = _service()

    with pytest.raises(ValidationError, match="text is required"):
        await service.geocode_text("   ")


@pytest.mark.asyncio
async def test_verify_image_analyzes_fetched_bytes_once() -> None:
    images = _FakeImages()
    service, _ = _service(images=images)
    url = "https://example.org/flood.png"

    result, cached = await service.verify_image("d1", url)
    _, cached_again = await service.verify_image("d1", url)

    assert result == {"image_url": url, "analysis": "No signs of manipulation; flooding visible."}
    assert (cached, cached_again) == (False, True)
    assert images.analyzed == [(b"\x89PNG", "image/png")]


@pytest.mark.asyncio
async def test_verify_image_rejects_non_http_urls() -> None:
    service, _ = _service()

    with pytest.raises(ValidationError, match="http"):
        await service.verify_image("d1", "ftp://example.org/x.jpg")


@pytest.mark.asyncio
async def test_official_updates_keep_source_order() -> None:
    titles = _FakeTitles(
        {"https://fema.example/": "FEMA News", "https://redcross.example/": "Red Cross Updates"},
    )
    service, _ = _service(
        titles=titles,
        sources=(("FEMA", "https://fema.example/"), ("Red Cross", "https://redcross.example/")),
    )

    updates, cached = await service.official_updates("d1")
    _, cached_again = await service.official_updates("d1")

    assert updates == [
        {"source": "FEMA", "headline": "FEMA News"},
        {"source": "Red Cross", "headline": "Red Cross Updates"},
    ]
    assert (cached, cached_again) == (False, True)
    assert len(titles.calls) == 2


@pytest.mark.asyncio
async def test_social_media_feed_returns_fixed_posts() -> None:
    service, _ = _service()

    posts, cached = await service.social_media_feed()
    _, cached_again = await service.social_media_feed()

    assert posts == [dict(post) for post in MOCK_SOCIAL_POSTS]
    assert len(posts) == 4
    assert (cached, cached_again) == (False, True)


def test_extract_title_takes_first_title_and_normalizes_whitespace() -> None:
    html = "<html><head><title>\n  Disaster   Update \n</title></head><body><title>x</title></body></html>"

    assert extract_title(html) == "Disaster Update"
    assert extract_title("<p>no title</p>") == ""


@pytest.mark.asyncio
async def test_nominatim_geocoder_parses_first_match() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"lat": "40.7831", "lon": "-73.9712"}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        geocoder = NominatimGeocoder(
            client,
            base_url="https://nominatim.example/search",
            user_agent="reliefhub-tests",
            timeout_seconds=5,
        )
        point = await geocoder.geocode("Manhattan, NYC")

    assert point == GeoPoint(lat=40.7831, lng=-73.9712)
    assert seen[0].url.params["q"] == "Manhattan, NYC"
    assert seen[0].url.params["limit"] == "1"
    assert seen[0].headers["user-agent"] == "reliefhub-tests"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "message"),
    [
        (httpx.Response(200, json=[]), "No geocode result"),
        (httpx.Response(200, json=[{"lat": "north"}]), "Malformed geocode result"),
        (httpx.Response(503, text="busy"), "nominatim geocode failed"),
    ],
)
async def test_nominatim_geocoder_failures(response: httpx.Response, message: str) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda _: response)) as client:
        geocoder = NominatimGeocoder(
            client,
            base_url="https://nominatim.example/search",
            user_agent="reliefhub-tests",
            timeout_seconds=5,
        )
        with pytest.raises(ProviderError, match=message):
            await geocoder.geocode("Atlantis")


@pytest.mark.asyncio
async def test_http_fetchers_read_titles_and_images() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/news":
            return httpx.Response(200, text="<title>Shelters open</title>")
        if request.url.path == "/photo":
            return httpx.Response(200, content=b"img", headers={"content-type": "image/png"})
        return httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        title = await HttpPageTitleFetcher(client, timeout_seconds=5).fetch_page_title(
            "https://agency.example/news",
        )
        fetcher = HttpImageFetcher(client, timeout_seconds=5, max_bytes=2)
        with pytest.raises(ProviderError, match="too large"):
            await fetcher.fetch_image("https://agency.example/photo")
        with pytest.raises(ProviderError, match="does not point to an image"):
            await fetcher.fetch_image("https://agency.example/page")
        image = await HttpImageFetcher(client, timeout_seconds=5).fetch_image(
            "https://agency.example/photo",
        )

    assert title == "Shelters open"
    assert image == FetchedImage(content=b"img", mime_type="image/png")


@pytest.mark.asyncio
async def test_call_provider_maps_timeouts_and_unexpected_errors() -> None:
    async def _slow() -> str:
        await asyncio.sleep(1)
        return "late"

    async def _broken() -> str:
        raise KeyError("candidates")

    async def _domain() -> str:
        raise ProviderError("No location found")

    with pytest.raises(ProviderTimeoutError) as timeout_info:
        await call_provider("gemini", "extract_location", _slow(), timeout_seconds=0.01)
    with pytest.raises(ProviderError, match="gemini extract_location failed"):
        await call_provider("gemini", "extract_location", _broken(), timeout_seconds=1)
    with pytest.raises(ProviderError, match="No location found"):
        await call_provider("gemini", "extract_location", _domain(), timeout_seconds=1)

    assert timeout_info.value.retryable is True


def test_message_text_flattens_content_parts() -> None:
    assert message_text(AIMessage(content="  Brooklyn  ")) == "Brooklyn"
    assert message_text(AIMessage(content=[{"type": "text", "text": "Queens"}, " NYC"])) == "Queens NYC"
    assert message_text(object()) == ""


class _FakeChatModel:
    def __init__(self, reply: Any) -> None:
        self.reply = reply
        self.received: list[list[Any]] = []

    async def ainvoke(self, messages: list[Any]) -> AIMessage:
        self.received.append(messages)
        return AIMessage(content=self.reply)


@pytest.mark.asyncio
async def test_gemini_location_extractor_prompts_and_reads_reply() -> None:
    model = _FakeChatModel("Lower East Side, NYC")
    extractor = GeminiLocationExtractor(model, timeout_seconds=5)  # type: ignore[arg-type]

    assert await extractor.extract_location("Power outage in Lower East Side") == "Lower East Side, NYC"
    system, human = model.received[0]
    assert isinstance(system, SystemMessage)
    assert isinstance(human, HumanMessage)
    assert "Power outage in Lower East Side" in human.content

    empty = GeminiLocationExtractor(_FakeChatModel(""), timeout_seconds=5)  # type: ignore[arg-type]
    with pytest.raises(ProviderError, match="No location found"):
        await empty.extract_location("nothing here")


@pytest.mark.asyncio
async def test_gemini_image_analyzer_sends_data_uri() -> None:
    model = _FakeChatModel("Looks authentic.")
    analyzer = GeminiImageAnalyzer(model, timeout_seconds=5)  # type: ignore[arg-type]

    assert await analyzer.analyze_image(b"abc", "image/png") == "Looks authentic."
    (message,) = model.received[0]
    image_part = message.content[1]
    assert image_part["image_url"]["url"] == "data:image/png;base64,YWJj"


@pytest.mark.asyncio
async def test_unconfigured_gemini_fails_every_call() -> None:
    gemini = UnconfiguredGemini()

    with pytest.raises(ProviderError, match="not configured"):
        await gemini.extract_location("x")
    with pytest.raises(ProviderError, match="not configured"):
        await gemini.analyze_image(b"x")


class _ChunkedBody(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]) -> None:
        self.chunks = chunks
        self.sent = 0

    async def __aiter__(self) -> Any:
        for chunk in self.chunks:
            self.sent += 1
            yield chunk


@pytest.mark.asyncio
async def test_image_fetcher_stops_reading_once_size_cap_is_passed() -> None:
    body = _ChunkedBody([b"ab", b"cd", b"ef", b"gh"])

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "image/jpeg"}, stream=body)

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        fetcher = HttpImageFetcher(client, timeout_seconds=5, max_bytes=3)
        with pytest.raises(ProviderError, match="too large"):
            await fetcher.fetch_image("https://agency.example/huge.jpg")

    assert body.sent == 2


@pytest.mark.asyncio
async def test_image_fetcher_rejects_oversized_content_length_before_reading() -> None:
    body = _ChunkedBody([b"abcdef"])

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "image/png", "content-length": "6"},
            stream=body,
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        fetcher = HttpImageFetcher(client, timeout_seconds=5, max_bytes=3)
        with pytest.raises(ProviderError) as exc_info:
            await fetcher.fetch_image("https://agency.example/big.png")

    assert exc_info.value.detail == "6 bytes exceeds 3"
    assert body.sent == 0
