"""OpenAI-backed provider for selection rewrites, Story Coach, and cover images."""

from __future__ import annotations

import asyncio
import base64
import inspect
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Mapping

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ...services.settings import OpenAISettings, SettingsProvider
from ..actions.base import COVER_IMAGE_ACTION_ID, REWRITE_ACTION_ID, STORY_COACH_ACTION_ID
from ..ai_types import (
    AIRequest,
    AIResult,
    Artifact,
    Modality,
    ProviderCapabilities,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    StreamStarted,
    StreamingCapabilities,
    TextDelta,
    Usage,
)
from ..errors import AIProviderError
from ..prompts import StoryCoachPromptBuilder, cover_image_prompt, rewrite_system_prompt, rewrite_user_prompt
from ..tokens import TokenCounterRegistry

LOGGER = logging.getLogger(__name__)

PROVIDER_ID = "openai"
_TEXT_ACTIONS = frozenset({REWRITE_ACTION_ID, STORY_COACH_ACTION_ID})
_RETRYABLE_ERRORS = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.TimeoutException,
)


class OpenAIProvider:
    """Provider wrapping :class:`openai.AsyncOpenAI` with retry semantics.

    Settings are read on every call, so key or model changes apply to the
    next request. The underlying client is rebuilt only when connection
    settings change.
    """

    provider_id = PROVIDER_ID
    capabilities = ProviderCapabilities(supports_text=True, supports_image=True)
    streaming_capabilities = StreamingCapabilities(supports_text_streaming=True)
    requires_entitlement = True
    is_billable = True

    def __init__(
        self,
        settings_provider: SettingsProvider,
        *,
        client: AsyncOpenAI | None = None,
        token_registry: TokenCounterRegistry | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._client = client
        self._client_injected = client is not None
        self._client_key: tuple[Any, ...] | None = None
        self._token_registry = token_registry or TokenCounterRegistry()

    @property
    def settings(self) -> OpenAISettings:
        return self._settings_provider().providers.openai

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------
    async def execute(self, request: AIRequest) -> AIResult:
        settings = self.settings
        if not settings.api_key.strip():
            raise AIProviderError(message="OpenAI API key is not configured.", provider_id=PROVIDER_ID)
        if request.action_id not in _TEXT_ACTIONS and request.action_id != COVER_IMAGE_ACTION_ID:
            raise AIProviderError(
                message=f"OpenAI provider does not support action '{request.action_id}'.",
                provider_id=PROVIDER_ID,
            )

        started = time.perf_counter()
        try:
            if request.action_id == COVER_IMAGE_ACTION_ID:
                artifact, usage = await self._execute_image(request, settings)
                model = settings.image_model
            else:
                artifact, usage = await self._execute_text(request, settings)
                model = settings.text_model
        except (asyncio.CancelledError, AIProviderError):
            raise
        except Exception as exc:
            raise AIProviderError(message="OpenAI request failed.", provider_id=PROVIDER_ID) from exc

        latency = time.perf_counter() - started
        LOGGER.debug(
            "OpenAI request %s model=%s document=%s section=%s selection_length=%d latency_ms=%d",
            request.action_id,
            model,
            request.context.document_id,
            request.context.section_id,
            len(request.context.selection_text),
            int(latency * 1000),
        )
        return AIResult(
            request.request_id,
            (artifact,),
            Usage(usage[0], usage[1], latency),
            {"provider": PROVIDER_ID, "model": model},
        )

    async def _execute_text(self, request: AIRequest, settings: OpenAISettings) -> tuple[Artifact, tuple[int, int]]:
        client = self._get_client(settings)
        messages = self._build_messages(request)
        response: Any = None
        async for attempt in self._retrying(settings):
            with attempt:
                response = await client.chat.completions.create(
                    model=settings.text_model,
                    messages=messages,
                    max_completion_tokens=settings.max_output_tokens,
                )
        text = self._extract_text(response)
        usage = getattr(response, "usage", None)
        if usage is not None:
            tokens = (int(getattr(usage, "prompt_tokens", 0) or 0), int(getattr(usage, "completion_tokens", 0) or 0))
        else:
            tokens = self._estimate_usage(settings.text_model, messages, text)
        return Artifact(Modality.TEXT, "text/plain", text=text), tokens

    async def _execute_image(self, request: AIRequest, settings: OpenAISettings) -> tuple[Artifact, tuple[int, int]]:
        client = self._get_client(settings)
        payload: Dict[str, Any] = {
            "model": settings.image_model,
            "prompt": cover_image_prompt(request),
            "size": settings.image_size,
        }
        if settings.image_model.startswith("dall-e"):
            payload["response_format"] = "b64_json"
        response: Any = None
        async for attempt in self._retrying(settings):
            with attempt:
                response = await client.images.generate(**payload)
        data = getattr(response, "data", None) or []
        encoded = getattr(data[0], "b64_json", None) if data else None
        if not encoded:
            raise AIProviderError(message="OpenAI image response contained no image data.", provider_id=PROVIDER_ID)
        image_bytes = base64.b64decode(encoded)
        data_url = f"data:image/png;base64,{encoded}"
        artifact = Artifact(Modality.IMAGE, "image/png", data=image_bytes, metadata={"dataUrl": data_url})
        usage = getattr(response, "usage", None)
        tokens = (
            (int(getattr(usage, "input_tokens", 0) or 0), int(getattr(usage, "output_tokens", 0) or 0))
            if usage is not None
            else (0, 0)
        )
        return artifact, tokens

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    async def stream(self, request: AIRequest) -> AsyncIterator[StreamEvent]:
        settings = self.settings
        yield StreamStarted()
        if request.action_id not in _TEXT_ACTIONS:
            yield StreamFailed(f"OpenAI streaming is not available for action '{request.action_id}'.")
            return
        if not settings.api_key.strip():
            yield StreamFailed("OpenAI API key is not configured.")
            return

        client = self._get_client(settings)
        payload = {
            "model": settings.text_model,
            "messages": self._build_messages(request),
            "max_completion_tokens": settings.max_output_tokens,
        }
        # Not retried: deltas already yielded cannot be recalled.
        try:
            async with client.chat.completions.stream(**payload) as stream:
                async for event in stream:
                    if getattr(event, "type", None) != "content.delta":
                        continue
                    delta = getattr(event, "delta", None)
                    if delta:
                        yield TextDelta(delta)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("OpenAI stream for %s failed: %s", request.action_id, exc)
            yield StreamFailed(f"OpenAI request failed: {exc}")
            return
        yield StreamCompleted()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def aclose(self) -> None:
        if self._client is None:
            return
        result = self._client.close()
        if inspect.isawaitable(result):
            await result

    def _get_client(self, settings: OpenAISettings) -> AsyncOpenAI:
        if self._client_injected and self._client is not None:
            return self._client
        key = (settings.api_key, settings.base_url, settings.organization, settings.request_timeout)
        if self._client is None or key != self._client_key:
            self._client = self._build_client(settings)
            self._client_key = key
        return self._client

    @staticmethod
    def _build_client(settings: OpenAISettings) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
        )

    @staticmethod
    def _retrying(settings: OpenAISettings) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, settings.max_retries)),
            wait=wait_exponential(multiplier=settings.retry_min_seconds, max=settings.retry_max_seconds),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )

    @staticmethod
    def _build_messages(request: AIRequest) -> List[Dict[str, str]]:
        if request.action_id == STORY_COACH_ACTION_ID:
            system_prompt = StoryCoachPromptBuilder.system_prompt
            user_prompt = StoryCoachPromptBuilder.from_request(request)
        else:
            system_prompt = rewrite_system_prompt(request.context.language_hint)
            user_prompt = rewrite_user_prompt(request)
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    @staticmethod
    def _extract_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise AIProviderError(message="OpenAI response contained no choices.", provider_id=PROVIDER_ID)
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not content:
            raise AIProviderError(message="OpenAI response contained no text.", provider_id=PROVIDER_ID)
        return str(content).strip()

    def _estimate_usage(
        self, model: str, messages: List[Mapping[str, str]], output_text: str
    ) -> tuple[int, int]:
        prompt = "\n".join(message["content"] for message in messages)
        return (
            self._token_registry.count(model, prompt),
            self._token_registry.count(model, output_text),
        )


__all__ = ["OpenAIProvider", "PROVIDER_ID"]
