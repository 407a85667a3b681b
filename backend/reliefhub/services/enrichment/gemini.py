"""Gemini-backed location extraction and image analysis."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from reliefhub.core.errors import ProviderError
from reliefhub.services.enrichment.providers import DEFAULT_IMAGE_MIME_TYPE, call_provider

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

PROVIDER_NAME = "gemini"
LOCATION_SYSTEM_PROMPT = (
    "You extract place names from short incident reports. "
    "Reply with the single most specific location name only, no extra words."
)
IMAGE_ANALYSIS_PROMPT = "Analyze this image for signs of manipulation or disaster context."


def build_chat_model(api_key: str, model: str) -> ChatGoogleGenerativeAI:
    return ChatGoogleGenerativeAI(api_key=api_key, model=model, temperature=0)


def message_text(result: object) -> str:
    """Flatten a chat model reply into plain text."""
    content = getattr(result, "content", "")
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        content = "".join(parts)
    return str(content or "").strip()


class GeminiLocationExtractor:
    def __init__(self, model: BaseChatModel, *, timeout_seconds: float) -> None:
        self._model = model
        self._timeout_seconds = timeout_seconds

    async def extract_location(self, text: str) -> str:
        messages = [
            SystemMessage(content=LOCATION_SYSTEM_PROMPT),
            HumanMessage(content=f"Extract the location name from: {text}"),
        ]
        result = await call_provider(
            PROVIDER_NAME,
            "extract_location",
            self._model.ainvoke(messages),
            timeout_seconds=self._timeout_seconds,
        )
        location_name = message_text(result)
        if not location_name:
            raise ProviderError("No location found", detail="empty model reply")
        return location_name


class GeminiImageAnalyzer:
    def __init__(self, model: BaseChatModel, *, timeout_seconds: float) -> None:
        self._model = model
        self._timeout_seconds = timeout_seconds

    async def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str = DEFAULT_IMAGE_MIME_TYPE,
    ) -> str:
        encoded = base64.b64encode(image_bytes).decode("utf-8")
        content: list[str | dict[str, Any]] = [
            {"type": "text", "text": IMAGE_ANALYSIS_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
        ]
        result = await call_provider(
            PROVIDER_NAME,
            "analyze_image",
            self._model.ainvoke([HumanMessage(content=content)]),
            timeout_seconds=self._timeout_seconds,
        )
        analysis = message_text(result)
        if not analysis:
            raise ProviderError("No analysis result", detail="empty model reply")
        return analysis


class UnconfiguredGemini:
    """Stand-in used when no Gemini API key is configured; every call fails."""

    async def extract_location(self, text: str) -> str:
        raise ProviderError("Gemini is not configured", detail="GEMINI_API_KEY is empty")

    async def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str = DEFAULT_IMAGE_MIME_TYPE,
    ) -> str:
        raise ProviderError("Gemini is not configured", detail="GEMINI_API_KEY is empty")
