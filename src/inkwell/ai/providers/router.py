"""Selects a provider for a request from configured defaults and capabilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...services.settings import SettingsProvider
from ..ai_types import AIRequest, Modality
from ..errors import NoProviderMatchedError, ProviderUnavailableError
from .base import AIProvider, streams_all
from .registry import ProviderRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProviderSelection:
    provider: AIProvider
    provider_id: str
    used_fallback: bool = False
    reason: str = "preferred"


def primary_modality(request: AIRequest) -> Modality:
    """Image wins over text when an action needs both."""

    return Modality.IMAGE if request.needs(Modality.IMAGE) else Modality.TEXT


class ProviderRouter:
    """Routes requests to the preferred provider or, if allowed, a fallback."""

    def __init__(self, registry: ProviderRegistry, settings_provider: SettingsProvider) -> None:
        self._registry = registry
        self._settings_provider = settings_provider

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def select(self, request: AIRequest, *, require_streaming: bool = False) -> ProviderSelection:
        """Pick a provider for ``request``.

        Raises:
            ProviderUnavailableError: preferred provider unusable, fallback disabled.
            NoProviderMatchedError: fallback found no capable provider.
        """

        settings = self._settings_provider().providers
        modality = primary_modality(request)
        preferred_id = (
            settings.default_image_provider_id if modality is Modality.IMAGE else settings.default_text_provider_id
        )
        preferred = self._registry.get_by_id(preferred_id)
        if preferred is not None and preferred.capabilities.supports(modality):
            LOGGER.debug("Routing %s request to preferred provider %s", modality.value, preferred.provider_id)
            return ProviderSelection(preferred, preferred.provider_id)

        if preferred is None:
            LOGGER.warning("Preferred %s provider '%s' is not registered", modality.value, preferred_id)
        else:
            LOGGER.warning("Preferred provider '%s' does not support %s", preferred_id, modality.value)

        if not settings.allow_provider_fallback:
            raise ProviderUnavailableError(
                message=f"Preferred AI provider '{preferred_id}' is unavailable.",
                provider_id=preferred_id,
            )

        for candidate in self._registry.get_all():
            if not candidate.capabilities.supports(modality):
                continue
            if require_streaming and not streams_all(candidate, (modality,)):
                continue
            LOGGER.debug("Routing %s request to fallback provider %s", modality.value, candidate.provider_id)
            return ProviderSelection(candidate, candidate.provider_id, used_fallback=True, reason="fallback")

        raise NoProviderMatchedError(
            message=f"No AI provider supports {modality.value} requests.",
            details={"modality": modality.value, "require_streaming": require_streaming},
        )


__all__ = ["ProviderRouter", "ProviderSelection", "primary_modality"]
