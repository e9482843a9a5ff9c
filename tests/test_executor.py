from __future__ import annotations

import asyncio

import pytest

from inkwell.ai.actions import GenerateCoverImageAction, RewriteSelectionAction, StoryCoachAction
from inkwell.ai.ai_types import (
    AIRequest,
    AIResult,
    ActionInput,
    Artifact,
    Modality,
    NO_STREAMING,
    ProviderCapabilities,
)
from inkwell.ai.errors import AIProviderError, ErrorCode
from inkwell.ai.executor import ActionExecutor, build_user_summary
from inkwell.ai.proposals import AttachImageOperation, ReplaceSynopsisFieldOperation, ReplaceTextRangeOperation
from inkwell.core.ranges import TextRange
from inkwell.documents.model import Document
from inkwell.services.artifacts import ArtifactStore


class ScriptedProvider:
    provider_id = "scripted"
    capabilities = ProviderCapabilities(supports_text=True, supports_image=True)
    streaming_capabilities = NO_STREAMING
    requires_entitlement = False
    is_billable = False

    def __init__(self, *artifacts: Artifact, error: BaseException | None = None) -> None:
        self.artifacts = artifacts
        self.error = error
        self.requests: list[AIRequest] = []

    async def execute(self, request: AIRequest) -> AIResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return AIResult(request.request_id, self.artifacts, metadata={"model": "scripted-1"})


def _text(value: str | None) -> Artifact:
    return Artifact(Modality.TEXT, "text/plain", text=value)


async def _run(action, action_input: ActionInput, provider: ScriptedProvider, store: ArtifactStore | None = None):
    executor = ActionExecutor(store if store is not None else ArtifactStore())
    return await executor.execute(action, action_input, action.build_request(action_input), provider)


@pytest.mark.asyncio
async def test_rewrite_result_becomes_replace_operation(hello_document: Document, section_id: str) -> None:
    action_input = ActionInput(hello_document, section_id, TextRange(0, 5), selected_text="Hello")

    outcome = await _run(RewriteSelectionAction(), action_input, ScriptedProvider(_text("Hi")))

    assert outcome.succeeded
    assert outcome.model == "scripted-1"
    proposal = outcome.proposal
    assert proposal is not None
    assert proposal.operations == [ReplaceTextRangeOperation(section_id, TextRange(0, 5), "Hi")]
    assert proposal.original_text == "Hello"
    assert proposal.proposed_text == "Hi"
    assert proposal.summary_label == "Rewrite selection"
    assert proposal.target_scope == "Selection"
    assert proposal.user_summary == "Rewrite selected text"
    assert proposal.provider_id == "scripted"


@pytest.mark.asyncio
async def test_cover_image_is_stored_and_attached(hello_document: Document, section_id: str) -> None:
    store = ArtifactStore()
    image = Artifact(Modality.IMAGE, "image/png", data=b"png")

    outcome = await _run(GenerateCoverImageAction(), ActionInput(hello_document, section_id), ScriptedProvider(image), store)

    proposal = outcome.proposal
    assert proposal is not None
    assert proposal.artifact_ids == [image.artifact_id]
    assert proposal.operations == [AttachImageOperation(section_id, image.artifact_id, "cover")]
    assert proposal.target_scope == "Section"
    assert store.get(image.artifact_id) is image


@pytest.mark.asyncio
async def test_result_without_artifacts_yields_empty_proposal(hello_document: Document, section_id: str) -> None:
    outcome = await _run(RewriteSelectionAction(), ActionInput(hello_document, section_id), ScriptedProvider())

    assert outcome.succeeded
    assert outcome.proposal is not None and outcome.proposal.operations == []


def _coach_input(document: Document, section_id: str, **options: str) -> ActionInput:
    base = {"focus_field_key": "premise", "existing_value": "A storm"}
    base.update(options)
    return ActionInput(document, section_id, options=base)


@pytest.mark.asyncio
async def test_story_coach_output_is_trimmed(hello_document: Document, section_id: str) -> None:
    provider = ScriptedProvider(_text("  A storm tests a harbor town.  "))

    outcome = await _run(StoryCoachAction(), _coach_input(hello_document, section_id), provider)

    proposal = outcome.proposal
    assert proposal is not None
    assert proposal.operations == [ReplaceSynopsisFieldOperation("premise", "A storm tests a harbor town.")]
    assert proposal.target_scope == "Synopsis"
    assert proposal.original_text == "A storm"


@pytest.mark.asyncio
async def test_story_coach_rejects_labelled_output(hello_document: Document, section_id: str, caplog) -> None:
    provider = ScriptedProvider(_text("Premise: A storm arrives."))

    with caplog.at_level("WARNING"):
        outcome = await _run(StoryCoachAction(), _coach_input(hello_document, section_id), provider)

    assert not outcome.succeeded
    assert outcome.error_code == ErrorCode.STORY_COACH_REJECTED
    assert outcome.error_message == "Story Coach output rejected: field_label_detected"
    assert "field_label_detected" in caplog.text


@pytest.mark.asyncio
async def test_story_coach_requires_a_target_field(hello_document: Document, section_id: str) -> None:
    provider = ScriptedProvider(_text("Something new"))

    outcome = await _run(StoryCoachAction(), _coach_input(hello_document, section_id, focus_field_key=" "), provider)

    assert outcome.error_message == "Story Coach output rejected: missing target field key."


@pytest.mark.asyncio
async def test_provider_exceptions_are_wrapped(hello_document: Document, section_id: str) -> None:
    provider = ScriptedProvider(error=RuntimeError("boom"))

    with pytest.raises(AIProviderError) as excinfo:
        await _run(RewriteSelectionAction(), ActionInput(hello_document, section_id), provider)

    assert excinfo.value.provider_id == "scripted"
    assert excinfo.value.message == "AI provider 'scripted' failed: boom"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_cancellation_is_not_wrapped(hello_document: Document, section_id: str) -> None:
    provider = ScriptedProvider(error=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await _run(RewriteSelectionAction(), ActionInput(hello_document, section_id), provider)


@pytest.mark.parametrize(
    "instruction, options, expected",
    [
        ("Please shorten this", {}, "Shorten selected text"),
        ("fix grammar", {}, "Fix grammar in selected text"),
        ("Give me a summary", {}, "Summarize selected text"),
        ("", {"length": "Shorter"}, "Shorten selected text"),
        ("", {"tone": "Formal"}, "Rewrite selected text in a more Formal tone"),
        ("", {"tone": "Neutral"}, "Rewrite selected text"),
        ("rewrite it", {"tone": "neutral"}, "Rewrite selected text"),
        ("  Make it spooky ", {}, "Rewrite selected text: Make it spooky"),
        (None, {}, "Rewrite selected text"),
    ],
)
def test_rewrite_user_summaries(instruction, options, expected) -> None:
    assert build_user_summary("rewrite.selection", instruction, options) == expected


def test_other_action_summaries() -> None:
    assert build_user_summary("generate.image.cover", "x", {}) == "Generate cover image"
    assert build_user_summary("synopsis.story_coach", None, {}) == "Story Coach suggestion"
    assert build_user_summary("custom.thing", None, {}) == "Apply AI change"
