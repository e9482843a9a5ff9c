"""Deterministic offline providers used for development and tests."""

from __future__ import annotations

import asyncio
import base64
from typing import AsyncIterator, Iterator

from ..ai_types import (
    AIRequest,
    AIResult,
    Artifact,
    Modality,
    NO_STREAMING,
    ProviderCapabilities,
    StreamCompleted,
    StreamEvent,
    StreamStarted,
    StreamingCapabilities,
    TextDelta,
    Usage,
)

MAX_CHUNK_SIZE = 28
DELTA_DELAY_SECONDS = 0.12

_COVER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="320" height="180">'
    '<rect width="100%" height="100%" fill="#f0f4ff"/>'
    '<text x="50%" y="50%" font-size="18" text-anchor="middle" fill="#2b2b2b" '
    'font-family="Segoe UI, Arial">Mock Cover</text></svg>'
)


class MockTextProvider:
    """Rewrites selections with tagged, rule-based transforms."""

    provider_id = "mock-text"
    capabilities = ProviderCapabilities(supports_text=True)
    streaming_capabilities = StreamingCapabilities(supports_text_streaming=True)
    requires_entitlement = False
    is_billable = False

    def __init__(self, *, delta_delay: float = DELTA_DELAY_SECONDS, chunk_size: int = MAX_CHUNK_SIZE) -> None:
        self._delta_delay = max(0.0, delta_delay)
        self._chunk_size = max(1, chunk_size)

    async def execute(self, request: AIRequest) -> AIResult:
        artifact = Artifact(Modality.TEXT, "text/plain", text=build_mock_text(request))
        return AIResult(
            request.request_id,
            (artifact,),
            Usage(),
            {"provider": self.provider_id, "model": "mock-text"},
        )

    async def stream(self, request: AIRequest) -> AsyncIterator[StreamEvent]:
        proposed = build_mock_text(request)
        yield StreamStarted()
        for chunk in chunk_text(proposed, self._chunk_size):
            yield TextDelta(chunk)
            await asyncio.sleep(self._delta_delay)
        yield StreamCompleted()


class MockImageProvider:
    """Returns a fixed SVG placeholder cover."""

    provider_id = "mock-image"
    capabilities = ProviderCapabilities(supports_image=True)
    streaming_capabilities = NO_STREAMING
    requires_entitlement = False
    is_billable = False

    async def execute(self, request: AIRequest) -> AIResult:
        payload = _COVER_SVG.encode("utf-8")
        data_url = "data:image/svg+xml;base64," + base64.b64encode(payload).decode("ascii")
        artifact = Artifact(
            Modality.IMAGE,
            "image/svg+xml",
            data=payload,
            metadata={"dataUrl": data_url},
        )
        return AIResult(
            request.request_id,
            (artifact,),
            Usage(),
            {"provider": self.provider_id, "model": "mock-image"},
        )


def build_mock_text(request: AIRequest) -> str:
    original = request.context.selection_text or ""
    tone = request.input_text("tone", "Neutral")
    length = request.input_text("length", "Same")
    preserve = request.input_flag("preserve_terms", True)
    key = request.input_text("instruction").strip().lower()
    header = f"[AI rewrite:{tone}:{length}:{'Preserve' if preserve else 'Flex'}] "

    if "shorten" in key:
        return f"{header}{_trim_to_words(original, 12)} [AI shortened]"
    if "grammar" in key:
        return f"{header}[AI grammar fix] {original}"
    if "tone" in key:
        return f"{header}[AI tone shift] {original}"
    if "summarize" in key or "summary" in key:
        return f"{header}[AI summary] {_trim_to_words(original, 20)}"
    if length.lower() == "shorter":
        return f"{header}{_trim_to_words(original, 12)}"
    if length.lower() == "longer":
        return f"{header}{original} [AI expanded]"
    return f"{header}{original}"


def chunk_text(text: str, max_chunk_size: int = MAX_CHUNK_SIZE) -> Iterator[str]:
    """Split ``text`` into chunks of at most ``max_chunk_size``, preferring word breaks."""

    index = 0
    while index < len(text):
        next_index = min(len(text), index + max_chunk_size)
        if next_index < len(text) and not text[next_index - 1].isspace():
            last_space = text.rfind(" ", index, next_index)
            if last_space > index:
                next_index = last_space + 1
        yield text[index:next_index]
        index = next_index


def _trim_to_words(text: str, max_words: int) -> str:
    words = text.split()
    return " ".join(words[:max_words])


__all__ = ["MockImageProvider", "MockTextProvider", "build_mock_text", "chunk_text"]
