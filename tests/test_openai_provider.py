from __future__ import annotations

import base64
from types import SimpleNamespace
from typing import Any, cast

import httpx
import pytest
from openai import AsyncOpenAI

from inkwell.ai.actions import GenerateCoverImageAction, RewriteSelectionAction, StoryCoachAction
from inkwell.ai.ai_types import (
    AIRequest,
    ActionInput,
    Modality,
    StreamCompleted,
    StreamFailed,
    StreamStarted,
    TextDelta,
)
from inkwell.ai.errors import AIProviderError
from inkwell.ai.providers.base import StreamingAIProvider
from inkwell.ai.providers.openai_provider import OpenAIProvider
from inkwell.ai.tokens import TokenCounterRegistry
from inkwell.core.ranges import TextRange
from inkwell.documents.model import Document
from inkwell.services.settings import AISettings, OpenAISettings, ProviderSettings, static_settings


class WordCounter:
    model_name = "gpt-4.1-mini"

    def count(self, text: str) -> int:
        return len(text.split())


class FakeStream:
    def __init__(self, events: list[Any], error: Exception | None = None) -> None:
        self._events = events
        self._error = error

    async def __aenter__(self) -> "FakeStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None

    async def __aiter__(self):
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error


class FakeCompletions:
    def __init__(self, responses: list[Any] | None = None, stream: FakeStream | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self._stream = stream

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def stream(self, **kwargs: Any) -> FakeStream:
        self.calls.append(kwargs)
        assert self._stream is not None
        return self._stream


class FakeImages:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    async def generate(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        return self.response


def _client(completions: FakeCompletions | None = None, images: FakeImages | None = None) -> AsyncOpenAI:
    client = SimpleNamespace(
        chat=SimpleNamespace(completions=completions or FakeCompletions()),
        images=images or FakeImages(None),
    )
    return cast(AsyncOpenAI, client)


def _chat_response(content: str, usage: Any = None) -> Any:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _provider(client: AsyncOpenAI, *, api_key: str = "sk-test", image_model: str = "gpt-image-1") -> OpenAIProvider:
    openai_settings = OpenAISettings(
        enabled=True,
        api_key=api_key,
        image_model=image_model,
        max_retries=2,
        retry_min_seconds=0,
        retry_max_seconds=0,
    )
    settings = AISettings(enabled=True, providers=ProviderSettings(openai=openai_settings))
    registry = TokenCounterRegistry()
    registry.register("gpt-4.1-mini", WordCounter())
    return OpenAIProvider(static_settings(settings), client=client, token_registry=registry)


def _rewrite_request(document: Document, section_id: str) -> AIRequest:
    return RewriteSelectionAction().build_request(
        ActionInput(document, section_id, TextRange(0, 5), instruction="Make it punchy")
    )


def test_provider_contract() -> None:
    provider = _provider(_client())

    assert isinstance(provider, StreamingAIProvider)
    assert provider.requires_entitlement and provider.is_billable
    assert provider.capabilities.supports(Modality.IMAGE)
    assert not provider.streaming_capabilities.supports(Modality.IMAGE)


@pytest.mark.asyncio
async def test_text_completion_uses_reported_usage(hello_document: Document, section_id: str) -> None:
    usage = SimpleNamespace(prompt_tokens=12, completion_tokens=3)
    completions = FakeCompletions([_chat_response("  Hi  ", usage)])

    result = await _provider(_client(completions)).execute(_rewrite_request(hello_document, section_id))

    artifact = result.first(Modality.TEXT)
    assert artifact is not None and artifact.text == "Hi"
    assert (result.usage.input_tokens, result.usage.output_tokens) == (12, 3)
    assert result.metadata["model"] == "gpt-4.1-mini"
    (call,) = completions.calls
    assert call["model"] == "gpt-4.1-mini"
    assert call["max_completion_tokens"] == 800
    assert [message["role"] for message in call["messages"]] == ["system", "user"]
    assert "Instruction: Make it punchy" in call["messages"][1]["content"]


@pytest.mark.asyncio
async def test_missing_usage_is_counted_with_registered_counter(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([_chat_response("two words")])

    result = await _provider(_client(completions)).execute(_rewrite_request(hello_document, section_id))

    assert result.usage.output_tokens == 2
    assert result.usage.input_tokens > 0


@pytest.mark.asyncio
async def test_transient_errors_are_retried(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([httpx.ConnectTimeout("timed out"), _chat_response("Hi")])

    result = await _provider(_client(completions)).execute(_rewrite_request(hello_document, section_id))

    assert len(completions.calls) == 2
    assert result.first(Modality.TEXT) is not None


@pytest.mark.asyncio
async def test_other_errors_are_wrapped_without_retry(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([ValueError("bad payload"), _chat_response("never")])

    with pytest.raises(AIProviderError) as excinfo:
        await _provider(_client(completions)).execute(_rewrite_request(hello_document, section_id))

    assert len(completions.calls) == 1
    assert excinfo.value.provider_id == "openai"
    assert isinstance(excinfo.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_empty_choices_raise(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([SimpleNamespace(choices=[], usage=None)])

    with pytest.raises(AIProviderError, match="no choices"):
        await _provider(_client(completions)).execute(_rewrite_request(hello_document, section_id))


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_calling(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([_chat_response("Hi")])

    with pytest.raises(AIProviderError, match="API key"):
        await _provider(_client(completions), api_key=" ").execute(_rewrite_request(hello_document, section_id))

    assert completions.calls == []


@pytest.mark.asyncio
async def test_story_coach_uses_coach_prompt(hello_document: Document, section_id: str) -> None:
    completions = FakeCompletions([_chat_response("A storm tests a town.")])
    request = StoryCoachAction().build_request(
        ActionInput(hello_document, section_id, options={"focus_field_key": "premise"})
    )

    await _provider(_client(completions)).execute(request)

    user_prompt = completions.calls[0]["messages"][1]["content"]
    assert "Focus field: premise" in user_prompt


@pytest.mark.asyncio
async def test_cover_image_request(hello_document: Document, section_id: str) -> None:
    encoded = base64.b64encode(b"png-bytes").decode("ascii")
    images = FakeImages(SimpleNamespace(data=[SimpleNamespace(b64_json=encoded)], usage=None))
    request = GenerateCoverImageAction().build_request(ActionInput(hello_document, section_id))

    result = await _provider(_client(images=images)).execute(request)

    (call,) = images.calls
    assert "response_format" not in call
    assert call["prompt"] == "Storm Notes - Hello world"
    artifact = result.first(Modality.IMAGE)
    assert artifact is not None and artifact.data == b"png-bytes"
    assert artifact.metadata["dataUrl"] == f"data:image/png;base64,{encoded}"


@pytest.mark.asyncio
async def test_dall_e_models_request_base64(hello_document: Document, section_id: str) -> None:
    encoded = base64.b64encode(b"x").decode("ascii")
    images = FakeImages(SimpleNamespace(data=[SimpleNamespace(b64_json=encoded)], usage=None))
    request = GenerateCoverImageAction().build_request(ActionInput(hello_document, section_id))

    await _provider(_client(images=images), image_model="dall-e-3").execute(request)

    assert images.calls[0]["response_format"] == "b64_json"


@pytest.mark.asyncio
async def test_stream_forwards_content_deltas(hello_document: Document, section_id: str) -> None:
    stream = FakeStream(
        [
            SimpleNamespace(type="chunk"),
            SimpleNamespace(type="content.delta", delta="Hi "),
            SimpleNamespace(type="content.delta", delta="there"),
            SimpleNamespace(type="content.done"),
        ]
    )
    provider = _provider(_client(FakeCompletions(stream=stream)))

    events = [event async for event in provider.stream(_rewrite_request(hello_document, section_id))]

    assert events == [StreamStarted(), TextDelta("Hi "), TextDelta("there"), StreamCompleted()]


@pytest.mark.asyncio
async def test_stream_errors_end_with_failed_event(hello_document: Document, section_id: str) -> None:
    stream = FakeStream([SimpleNamespace(type="content.delta", delta="Hi")], error=RuntimeError("dropped"))
    provider = _provider(_client(FakeCompletions(stream=stream)))

    events = [event async for event in provider.stream(_rewrite_request(hello_document, section_id))]

    assert events[:2] == [StreamStarted(), TextDelta("Hi")]
    assert events[-1] == StreamFailed("OpenAI request failed: dropped")


@pytest.mark.asyncio
async def test_stream_rejects_image_actions(hello_document: Document, section_id: str) -> None:
    provider = _provider(_client())
    request = GenerateCoverImageAction().build_request(ActionInput(hello_document, section_id))

    events = [event async for event in provider.stream(request)]

    assert isinstance(events[-1], StreamFailed)
    assert len(events) == 2
