"""Plain HTTP fetchers: page titles for official updates and images for analysis."""

from __future__ import annotations

from html.parser import HTMLParser
from typing import TYPE_CHECKING

from reliefhub.core.errors import ProviderError
from reliefhub.services.enrichment.providers import (
    DEFAULT_IMAGE_MIME_TYPE,
    FetchedImage,
    call_provider,
)

if TYPE_CHECKING:
    import httpx

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class _TitleParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self._in_title = False
        self._done = False
        self.parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "title" and not self._done:
            self._in_title = True

    def handle_endtag(self, tag: str) -> None:
        if tag == "title" and self._in_title:
            self._in_title = False
            self._done = True

    def handle_data(self, data: str) -> None:
        if self._in_title:
            self.parts.append(data)


def extract_title(html: str) -> str:
    """Return the whitespace-normalized text of the first `<title>` element."""
    parser = _TitleParser()
    parser.feed(html)
    parser.close()
    return " ".join("".join(parser.parts).split())


class HttpPageTitleFetcher:
    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def _get_html(self, url: str) -> str:
        response = await self._client.get(url, follow_redirects=True)
        response.raise_for_status()
        return response.text

    async def fetch_page_title(self, url: str) -> str:
        html = await call_provider(
            "web",
            "fetch_page_title",
            self._get_html(url),
            timeout_seconds=self._timeout_seconds,
        )
        return extract_title(html)


class HttpImageFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout_seconds: float,
        max_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._max_bytes = max_bytes

    def _too_large(self, size: int) -> ProviderError:
        return ProviderError("Image is too large", detail=f"{size} bytes exceeds {self._max_bytes}")

    async def _download(self, url: str) -> FetchedImage:
        async with self._client.stream("GET", url, follow_redirects=True) as response:
            response.raise_for_status()
            content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
            if content_type and not content_type.startswith("image/"):
                raise ProviderError("URL does not point to an image", detail=content_type)
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > self._max_bytes:
                raise self._too_large(int(declared))
            content = bytearray()
            async for chunk in response.aiter_bytes():
                content.extend(chunk)
                # Servers may omit or understate Content-Length.
                if len(content) > self._max_bytes:
                    raise self._too_large(len(content))
        return FetchedImage(
            content=bytes(content),
            mime_type=content_type or DEFAULT_IMAGE_MIME_TYPE,
        )

    async def fetch_image(self, url: str) -> FetchedImage:
        return await call_provider(
            "web",
            "fetch_image",
            self._download(url),
            timeout_seconds=self._timeout_seconds,
        )
