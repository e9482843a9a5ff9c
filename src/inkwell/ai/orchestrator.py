"""Single entry point for running AI actions in batch or streaming mode."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional, cast

from ..services.settings import SettingsProvider
from ..services.usage import IMAGE_KIND, TEXT_KIND, UsageEvent, UsageMeter
from .actions.base import AIAction
from .ai_types import (
    NO_STREAMING,
    ActionInput,
    AIRequest,
    AIResult,
    Artifact,
    ImageDelta,
    Modality,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    StreamingCapabilities,
    StreamingSession,
    StreamStarted,
    TextDelta,
    Usage,
)
from .errors import AIError, ErrorCode
from .executor import ActionExecutor
from .policy import UsageDecision, UsagePolicy
from .proposals import ExecutionOutcome, ExecutionResult, Proposal
from .providers.base import AIProvider, StreamingAIProvider, streams_all, supports_all
from .providers.registry import ProviderRegistry
from .providers.router import ProviderRouter
from .tokens import estimate_tokens

LOGGER = logging.getLogger(__name__)

IMAGE_TOKEN_COST = 1000


@dataclass(slots=True, frozen=True)
class _Gate:
    """Everything resolved before a provider is called."""

    action: AIAction
    request: AIRequest
    provider: AIProvider
    decision: UsageDecision


@dataclass(slots=True, frozen=True)
class _Denial:
    error_code: str
    message: str


class AIOrchestrator:
    """Resolves actions, routes and gates requests, and returns proposals.

    Settings are read through ``settings_provider`` on every call so that
    toggles such as ``enabled`` or ``streaming.enabled`` apply immediately.
    """

    def __init__(
        self,
        actions: Iterable[AIAction],
        registry: ProviderRegistry,
        router: ProviderRouter,
        policy: UsagePolicy,
        executor: ActionExecutor,
        settings_provider: SettingsProvider,
        *,
        meter: UsageMeter | None = None,
    ) -> None:
        self._actions = {action.action_id: action for action in actions}
        self._registry = registry
        self._router = router
        self._policy = policy
        self._executor = executor
        self._settings_provider = settings_provider
        self._meter = meter

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def actions(self) -> tuple[AIAction, ...]:
        return tuple(self._actions.values())

    def get_action(self, action_id: str) -> AIAction | None:
        return self._actions.get(action_id)

    def can_run_action(self, action_id: str) -> bool:
        if not self._settings_provider().enabled:
            return False
        action = self.get_action(action_id)
        if action is None:
            return False
        return any(supports_all(provider, action.modalities) for provider in self._registry.get_all())

    def get_streaming_capabilities(self, action_id: str) -> StreamingCapabilities:
        if not self._settings_provider().streaming.enabled:
            return NO_STREAMING
        action = self.get_action(action_id)
        if action is None:
            return NO_STREAMING
        for provider in self._registry.get_all():
            if not supports_all(provider, action.modalities):
                continue
            if isinstance(provider, StreamingAIProvider):
                return provider.streaming_capabilities
            return NO_STREAMING
        return NO_STREAMING

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------
    async def execute_action(self, action_id: str, action_input: ActionInput) -> ExecutionResult:
        """Run an action to completion.

        Denials come back as a blocked :class:`ExecutionResult`; provider
        failures raise :class:`~inkwell.ai.errors.AIProviderError`.
        """

        gate = self._open_gate(action_id, action_input)
        if isinstance(gate, _Denial):
            return ExecutionResult.blocked(gate.error_code, gate.message)

        outcome = await self._executor.execute(gate.action, action_input, gate.request, gate.provider)
        return self._finish(gate, outcome)

    def _finish(self, gate: _Gate, outcome: ExecutionOutcome) -> ExecutionResult:
        if not outcome.succeeded or outcome.proposal is None:
            return ExecutionResult.blocked(
                outcome.error_code or ErrorCode.BLOCKED,
                outcome.error_message or "AI output was rejected.",
            )
        self._record_usage(gate, outcome.result.usage, outcome.model)
        return ExecutionResult.success(outcome.proposal)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    def stream_action(self, action_id: str, action_input: ActionInput) -> StreamingSession:
        """Start an action and return its event stream plus completion future.

        Routing and the usage policy run before this returns. Must be called
        while an event loop is running.
        """

        loop = asyncio.get_running_loop()
        completion: asyncio.Future[Optional[Proposal]] = loop.create_future()
        streaming_enabled = self._settings_provider().streaming.enabled

        gate = self._open_gate(action_id, action_input)
        if isinstance(gate, _Denial):
            completion.set_result(None)
            return StreamingSession(_denied_events(gate), completion)

        if streaming_enabled and streams_all(gate.provider, gate.action.modalities):
            events = self._bridge_stream(gate, action_input, completion)
        else:
            events = self._simulate_stream(gate, action_input, completion)
        return StreamingSession(events, completion)

    async def _bridge_stream(
        self,
        gate: _Gate,
        action_input: ActionInput,
        completion: asyncio.Future[Optional[Proposal]],
    ) -> AsyncIterator[StreamEvent]:
        provider = cast(StreamingAIProvider, gate.provider)
        buffer: list[str] = []
        image_reference: str | None = None
        try:
            try:
                async with aclosing(provider.stream(gate.request)) as stream:
                    async for event in stream:
                        if isinstance(event, TextDelta):
                            buffer.append(event.delta)
                        elif isinstance(event, ImageDelta):
                            if event.reference.strip():
                                image_reference = event.reference
                        elif isinstance(event, StreamCompleted):
                            result = self._buffered_result(gate.request, "".join(buffer), image_reference)
                            outcome = self._executor.build_outcome(
                                gate.action, action_input, gate.request, result, provider.provider_id
                            )
                            if not outcome.succeeded or outcome.proposal is None:
                                _resolve(completion, None)
                                yield StreamFailed(
                                    outcome.error_message or "AI output was rejected.",
                                    outcome.error_code or ErrorCode.BLOCKED,
                                )
                                return
                            self._record_usage(gate, result.usage, "")
                            _resolve(completion, outcome.proposal)
                            yield event
                            return
                        elif isinstance(event, StreamFailed):
                            _resolve(completion, None)
                            yield event
                            return
                        yield event
            except Exception as exc:
                LOGGER.warning("Streaming action %s failed on %s: %s", gate.action.action_id, provider.provider_id, exc)
                _resolve(completion, None)
                yield _failure_event(exc)
                return
            LOGGER.warning("Provider %s ended a stream without a terminal event", provider.provider_id)
        finally:
            _resolve(completion, None)

    async def _simulate_stream(
        self,
        gate: _Gate,
        action_input: ActionInput,
        completion: asyncio.Future[Optional[Proposal]],
    ) -> AsyncIterator[StreamEvent]:
        try:
            yield StreamStarted()
            try:
                outcome = await self._executor.execute(gate.action, action_input, gate.request, gate.provider)
                result = self._finish(gate, outcome)
            except Exception as exc:
                LOGGER.warning("Simulated stream for %s failed: %s", gate.action.action_id, exc)
                _resolve(completion, None)
                yield _failure_event(exc)
                return
            if result.proposal is None:
                _resolve(completion, None)
                yield StreamFailed(result.error_message or "AI output was rejected.", result.error_code)
                return
            if result.proposal.proposed_text:
                yield TextDelta(result.proposal.proposed_text)
            _resolve(completion, result.proposal)
            yield StreamCompleted()
        finally:
            _resolve(completion, None)

    def _buffered_result(self, request: AIRequest, text: str, image_reference: str | None) -> AIResult:
        artifacts: list[Artifact] = []
        if request.needs(Modality.IMAGE) and image_reference:
            mime_type, data = decode_data_url(image_reference)
            artifacts.append(
                Artifact(Modality.IMAGE, mime_type, data=data, metadata={"dataUrl": image_reference})
            )
        if request.needs(Modality.TEXT) or not artifacts:
            artifacts.append(Artifact(Modality.TEXT, "text/plain", text=text))
        usage = Usage(
            input_tokens=estimate_tokens(request.context.selection_text),
            output_tokens=estimate_tokens(text),
        )
        return AIResult(request.request_id, tuple(artifacts), usage, {"streamed": True})

    # ------------------------------------------------------------------
    # Gate and accounting
    # ------------------------------------------------------------------
    def _open_gate(self, action_id: str, action_input: ActionInput) -> _Gate | _Denial:
        action = self.get_action(action_id)
        if action is None:
            LOGGER.warning("AI action '%s' is not registered", action_id)
            return _Denial(ErrorCode.ACTION_MISSING, f"AI action '{action_id}' is not available.")

        request = action.build_request(action_input)
        try:
            selection = self._router.select(request)
        except AIError as exc:
            LOGGER.warning("Routing failed for action %s: %s", action_id, exc)
            return _Denial(exc.error_code, exc.message)

        decision = self._policy.evaluate(
            selection.provider,
            action_id,
            action_input.user_id,
            is_image_action=action.is_image_action,
        )
        if not decision.allowed:
            return _Denial(decision.error_code or ErrorCode.BLOCKED, decision.error_message or "AI request blocked.")
        return _Gate(action, request, selection.provider, decision)

    def _record_usage(self, gate: _Gate, usage: Usage, model: str) -> None:
        if self._meter is None or not gate.provider.is_billable:
            return
        if not self._settings_provider().enabled:
            return
        if not gate.decision.user_id:
            LOGGER.debug("Skipping usage for %s: no user id", gate.action.action_id)
            return

        input_tokens = usage.input_tokens
        output_tokens = usage.output_tokens
        if gate.action.is_image_action and usage.total_tokens == 0:
            output_tokens = IMAGE_TOKEN_COST
        event = UsageEvent(
            user_id=gate.decision.user_id,
            kind=IMAGE_KIND if gate.action.is_image_action else TEXT_KIND,
            provider=gate.provider.provider_id,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            document_id=gate.request.context.document_id,
            section_id=gate.request.context.section_id,
            correlation_id=gate.request.request_id,
        )
        try:
            self._meter.record(event)
        except Exception:
            LOGGER.warning("Failed to record AI usage for request %s", gate.request.request_id, exc_info=True)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _resolve(completion: asyncio.Future[Optional[Proposal]], proposal: Proposal | None) -> None:
    if not completion.done():
        completion.set_result(proposal)


def _failure_event(exc: Exception) -> StreamFailed:
    if isinstance(exc, AIError):
        return StreamFailed(exc.message, exc.error_code)
    return StreamFailed(str(exc), ErrorCode.PROVIDER_FAILED)


async def _denied_events(denial: _Denial) -> AsyncIterator[StreamEvent]:
    yield StreamFailed(denial.message, denial.error_code)


def decode_data_url(reference: str) -> tuple[str, bytes | None]:
    """Split a ``data:`` URL into its MIME type and decoded payload.

    Anything that is not a base64 data URL yields ``("image/png", None)``.
    """

    if not reference.startswith("data:") or "," not in reference:
        return "image/png", None
    header, payload = reference[5:].split(",", 1)
    parts = header.split(";")
    mime_type = parts[0] or "image/png"
    if "base64" not in parts[1:]:
        return mime_type, payload.encode("utf-8")
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return mime_type, None


__all__ = ["AIOrchestrator", "IMAGE_TOKEN_COST", "decode_data_url"]
