"""AI providers, the provider registry, and routing."""

from .base import AIProvider, StreamingAIProvider, streams_all, supports_all
from .mock import MockImageProvider, MockTextProvider
from .openai_provider import OpenAIProvider
from .registry import ProviderRegistry
from .router import ProviderRouter, ProviderSelection, primary_modality

__all__ = [
    "AIProvider",
    "MockImageProvider",
    "MockTextProvider",
    "OpenAIProvider",
    "ProviderRegistry",
    "ProviderRouter",
    "ProviderSelection",
    "StreamingAIProvider",
    "primary_modality",
    "streams_all",
    "supports_all",
]
