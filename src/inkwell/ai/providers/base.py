"""Provider contracts shared by the registry, router, and executor."""

from __future__ import annotations

from typing import AsyncIterator, Iterable, Protocol, runtime_checkable

from ..ai_types import AIRequest, AIResult, Modality, ProviderCapabilities, StreamEvent, StreamingCapabilities


@runtime_checkable
class AIProvider(Protocol):
    """Text/image generation backend behind a uniform execute contract."""

    provider_id: str
    capabilities: ProviderCapabilities
    streaming_capabilities: StreamingCapabilities
    requires_entitlement: bool
    is_billable: bool

    async def execute(self, request: AIRequest) -> AIResult:
        """Run ``request`` to completion and return its artifacts."""
        ...


@runtime_checkable
class StreamingAIProvider(AIProvider, Protocol):
    def stream(self, request: AIRequest) -> AsyncIterator[StreamEvent]:
        """Yield stream events, ending with a completed or failed event."""
        ...


def supports_all(provider: AIProvider, modalities: Iterable[Modality]) -> bool:
    return all(provider.capabilities.supports(modality) for modality in modalities)


def streams_all(provider: AIProvider, modalities: Iterable[Modality]) -> bool:
    """Return whether ``provider`` can stream every one of ``modalities``."""

    if not isinstance(provider, StreamingAIProvider):
        return False
    return all(provider.streaming_capabilities.supports(modality) for modality in modalities)


__all__ = ["AIProvider", "StreamingAIProvider", "streams_all", "supports_all"]
