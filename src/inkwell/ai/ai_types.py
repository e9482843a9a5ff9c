"""Shared typing contracts for AI requests, results, and streaming."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Optional, Union

from ..core.ranges import TextRange
from ..documents.model import Document, new_id


def _utcnow() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Modality(str, Enum):
    TEXT = "text"
    IMAGE = "image"


# -----------------------------------------------------------------------------
# Provider capability flags
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ProviderCapabilities:
    supports_text: bool = False
    supports_image: bool = False

    def supports(self, modality: Modality) -> bool:
        if modality is Modality.IMAGE:
            return self.supports_image
        return self.supports_text


@dataclass(slots=True, frozen=True)
class StreamingCapabilities:
    supports_text_streaming: bool = False
    supports_image_streaming: bool = False

    def supports(self, modality: Modality) -> bool:
        if modality is Modality.IMAGE:
            return self.supports_image_streaming
        return self.supports_text_streaming


NO_STREAMING = StreamingCapabilities()


# -----------------------------------------------------------------------------
# Request / result
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class RequestContext:
    """Document context an action gathers for the provider."""

    document_id: str
    section_id: str
    selection_range: TextRange = field(default_factory=TextRange.zero)
    selection_text: str = ""
    document_title: Optional[str] = None
    language_hint: Optional[str] = None
    containing_paragraph: Optional[str] = None
    surrounding_before: Optional[str] = None
    surrounding_after: Optional[str] = None


@dataclass(slots=True, frozen=True)
class AIRequest:
    """Immutable provider request built by an action."""

    action_id: str
    modalities: tuple[Modality, ...]
    context: RequestContext
    inputs: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=new_id)

    def needs(self, modality: Modality) -> bool:
        return modality in self.modalities

    def input_text(self, key: str, default: str = "") -> str:
        value = self.inputs.get(key)
        if value is None:
            return default
        return str(value)

    def input_flag(self, key: str, default: bool) -> bool:
        value = self.inputs.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"true", "false"}:
            return text == "true"
        return default


@dataclass(slots=True, frozen=True)
class Artifact:
    """Single output produced by a provider."""

    modality: Modality
    mime_type: str
    text: Optional[str] = None
    data: Optional[bytes] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    artifact_id: str = field(default_factory=new_id)


@dataclass(slots=True, frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    latency_seconds: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(slots=True, frozen=True)
class AIResult:
    request_id: str
    artifacts: tuple[Artifact, ...] = ()
    usage: Usage = field(default_factory=Usage)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def first(self, modality: Modality) -> Artifact | None:
        for artifact in self.artifacts:
            if artifact.modality is modality:
                return artifact
        return None


# -----------------------------------------------------------------------------
# Stream events (closed set)
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class StreamStarted:
    type: str = "started"


@dataclass(slots=True, frozen=True)
class TextDelta:
    delta: str
    type: str = "text.delta"


@dataclass(slots=True, frozen=True)
class ImageDelta:
    reference: str
    type: str = "image.delta"


@dataclass(slots=True, frozen=True)
class StreamCompleted:
    type: str = "completed"


@dataclass(slots=True, frozen=True)
class StreamFailed:
    error: str
    code: Optional[str] = None
    type: str = "failed"


StreamEvent = Union[StreamStarted, TextDelta, ImageDelta, StreamCompleted, StreamFailed]


# -----------------------------------------------------------------------------
# Action input
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class ActionInput:
    """Raw user input for one action invocation."""

    document: Document
    section_id: str
    selection_range: TextRange = field(default_factory=TextRange.zero)
    selected_text: str = ""
    instruction: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None

    def option_text(self, key: str, default: str = "") -> str:
        value = self.options.get(key)
        if value is None:
            return default
        return str(value)

    def option_flag(self, key: str, default: bool) -> bool:
        value = self.options.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"true", "false"}:
            return text == "true"
        return default


@dataclass(slots=True)
class StreamingSession:
    """Two outputs of one streamed action: the events and the final proposal.

    ``completion`` resolves exactly once, to the proposal or to ``None``,
    whether the caller drains ``events`` fully, hits a failure, or cancels.
    """

    events: AsyncIterator[StreamEvent]
    completion: "asyncio.Future[Any]"

    async def aclose(self) -> None:
        """Stop the event stream early; the completion resolves to ``None``."""

        closer = getattr(self.events, "aclose", None)
        if closer is not None:
            await closer()
        if not self.completion.done():
            self.completion.set_result(None)


__all__ = [
    "AIRequest",
    "AIResult",
    "ActionInput",
    "Artifact",
    "ImageDelta",
    "Modality",
    "NO_STREAMING",
    "ProviderCapabilities",
    "RequestContext",
    "StreamCompleted",
    "StreamEvent",
    "StreamFailed",
    "StreamStarted",
    "StreamingCapabilities",
    "StreamingSession",
    "TextDelta",
    "Usage",
]
