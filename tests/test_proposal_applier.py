from __future__ import annotations

import pytest

from inkwell.ai.ai_types import Artifact, Modality
from inkwell.ai.applier import ProposalApplier, build_reason, to_document_artifact
from inkwell.ai.proposals import (
    AttachImageOperation,
    Proposal,
    ReplaceSynopsisFieldOperation,
    ReplaceTextRangeOperation,
)
from inkwell.core.ranges import TextRange
from inkwell.editor.processor import CommandProcessor
from inkwell.services.artifacts import ArtifactStore


def _proposal(section_id: str, *operations, action_id: str = "rewrite.selection", **kwargs) -> Proposal:
    proposal = Proposal(
        section_id=section_id,
        summary_label="Rewrite selection",
        action_id=action_id,
        provider_id="mock-text",
        request_id="req-1",
        **kwargs,
    )
    proposal.operations.extend(operations)
    return proposal


@pytest.fixture
def store() -> ArtifactStore:
    return ArtifactStore()


@pytest.fixture
def applier(store: ArtifactStore) -> ProposalApplier:
    return ProposalApplier(store)


def test_reason_includes_action_and_request(section_id: str) -> None:
    assert build_reason(_proposal(section_id)) == "rewrite.selection (req-1)"
    assert build_reason(_proposal(section_id, reason="tighten")) == "tighten (rewrite.selection:req-1)"


def test_apply_rewrite_creates_one_group_and_history(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str
) -> None:
    proposal = _proposal(
        section_id,
        ReplaceTextRangeOperation(section_id, TextRange(0, 5), "Hi"),
        user_summary="Rewrite selected text",
        original_text="Hello",
        proposed_text="Hi",
    )

    group = applier.apply(proposal, processor)

    section = processor.document.chapters[0].sections[0]
    assert section.content.value == "<p>Hi world</p>"
    assert [entry.group_id for entry in section.ai.ai_edit_groups] == [group.group_id]
    assert section.ai.ai_edit_groups[0].reason == "rewrite.selection (req-1)"
    (history,) = section.ai.ai_history
    assert history.edit_group_id == group.group_id
    assert history.operation_summary == "Rewrite selected text"
    assert (history.before_text, history.after_text) == ("Hello", "Hi")


def test_applied_group_rolls_back_as_a_unit(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str
) -> None:
    proposal = _proposal(
        section_id,
        ReplaceTextRangeOperation(section_id, TextRange(0, 5), "Hi"),
        ReplaceTextRangeOperation(section_id, TextRange(3, 5), "earth"),
    )

    group = applier.apply(proposal, processor, record_history=False)
    assert processor.document.chapters[0].sections[0].content.value == "<p>Hi earth</p>"

    assert processor.rollback_ai_edit_group(section_id, group.group_id)
    section = processor.document.chapters[0].sections[0]
    assert section.content.value == "<p>Hello world</p>"
    assert section.ai.ai_history == []


def test_apply_cover_copies_artifact_into_document(
    applier: ProposalApplier, store: ArtifactStore, processor: CommandProcessor, section_id: str
) -> None:
    image = Artifact(Modality.IMAGE, "image/png", data=b"hi")
    store.store(image)
    proposal = _proposal(
        section_id,
        AttachImageOperation(section_id, image.artifact_id),
        action_id="generate.image.cover",
    )

    applier.apply(proposal, processor)

    document = processor.document
    assert document.chapters[0].sections[0].cover_image_id == image.artifact_id
    (stored,) = document.artifacts
    assert stored.base64_data == "aGk="
    assert stored.data_url == "data:image/png;base64,aGk="


def test_missing_artifact_is_skipped(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str, caplog
) -> None:
    proposal = _proposal(section_id, AttachImageOperation(section_id, "gone"), action_id="generate.image.cover")

    with caplog.at_level("WARNING"):
        applier.apply(proposal, processor)

    section = processor.document.chapters[0].sections[0]
    assert section.cover_image_id is None
    assert section.ai.ai_history == []
    assert not processor.can_undo
    assert "gone" in caplog.text


def test_apply_synopsis_field(applier: ProposalApplier, processor: CommandProcessor, section_id: str) -> None:
    proposal = _proposal(
        section_id,
        ReplaceSynopsisFieldOperation("premise", "A storm tests a town."),
        action_id="synopsis.story_coach",
    )

    applier.apply(proposal, processor)
    synopsis = processor.document.synopsis
    assert synopsis is not None and synopsis.premise == "A storm tests a town."

    processor.undo()
    assert synopsis.premise == ""


def test_unknown_operation_type_is_rejected(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str
) -> None:
    with pytest.raises(TypeError):
        applier.apply(_proposal(section_id, object()), processor)


def test_document_artifact_from_data_url_only() -> None:
    artifact = Artifact(
        Modality.IMAGE,
        "image/svg+xml",
        metadata={"dataUrl": "data:image/svg+xml;base64,PHN2Zy8+"},
    )

    converted = to_document_artifact(artifact)

    assert converted.artifact_id == artifact.artifact_id
    assert converted.base64_data == "PHN2Zy8+"
    assert converted.data_url == "data:image/svg+xml;base64,PHN2Zy8+"


def test_failed_operation_reverts_earlier_ones(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str
) -> None:
    proposal = _proposal(
        section_id,
        ReplaceTextRangeOperation(section_id, TextRange(0, 5), "Hi"),
        ReplaceTextRangeOperation("nope", TextRange(0, 1), "X"),
    )

    with pytest.raises(ValueError):
        applier.apply(proposal, processor)

    section = processor.document.chapters[0].sections[0]
    assert section.content.value == "<p>Hello world</p>"
    assert section.ai.ai_edit_groups == []
    assert section.ai.ai_history == []
    assert processor.ai_commands == ()
    assert not processor.can_undo
    assert not processor.can_redo


def test_unknown_synopsis_field_reverts_the_rewrite(
    applier: ProposalApplier, processor: CommandProcessor, section_id: str
) -> None:
    proposal = _proposal(
        section_id,
        ReplaceTextRangeOperation(section_id, TextRange(0, 5), "Hi"),
        ReplaceSynopsisFieldOperation("mood", "Grim"),
    )

    with pytest.raises(KeyError):
        applier.apply(proposal, processor)

    assert processor.document.chapters[0].sections[0].content.value == "<p>Hello world</p>"
    assert not processor.can_undo
