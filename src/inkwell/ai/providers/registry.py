"""Lookup of providers by id."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from ..ai_types import Modality
from .base import AIProvider, supports_all

LOGGER = logging.getLogger(__name__)


class ProviderRegistry:
    """Case-insensitive provider lookup; the first registration of an id wins.

    Reads are safe from any thread once registration is complete.
    """

    def __init__(self, providers: Iterable[AIProvider] | None = None) -> None:
        self._providers: dict[str, AIProvider] = {}
        self._lock = threading.Lock()
        for provider in providers or ():
            self.register(provider)

    def register(self, provider: AIProvider) -> bool:
        """Add ``provider``; returns ``False`` when its id is already taken."""

        key = self._normalize_key(provider.provider_id)
        if not key:
            raise ValueError("Provider ID is required.")
        with self._lock:
            if key in self._providers:
                LOGGER.debug("Provider %s already registered; keeping the first", provider.provider_id)
                return False
            self._providers[key] = provider
        LOGGER.debug("Registered AI provider %s", provider.provider_id)
        return True

    def get_by_id(self, provider_id: str | None) -> AIProvider | None:
        key = self._normalize_key(provider_id)
        if not key:
            return None
        return self._providers.get(key)

    def get_all(self) -> tuple[AIProvider, ...]:
        return tuple(self._providers.values())

    def get_first_capable(self, modalities: Iterable[Modality]) -> AIProvider | None:
        wanted = tuple(modalities)
        for provider in self._providers.values():
            if supports_all(provider, wanted):
                return provider
        return None

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and self.get_by_id(provider_id) is not None

    def __len__(self) -> int:
        return len(self._providers)

    @staticmethod
    def _normalize_key(provider_id: str | None) -> str:
        return (provider_id or "").strip().lower()


__all__ = ["ProviderRegistry"]
