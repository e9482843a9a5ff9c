from __future__ import annotations

import pytest

from inkwell.ai.actions import (
    GenerateCoverImageAction,
    RewriteSelectionAction,
    StoryCoachAction,
    StoryCoachContextBuilder,
    StoryCoachOutputValidator,
    build_cover_prompt,
    default_actions,
)
from inkwell.ai.actions.rewrite import containing_paragraph
from inkwell.ai.ai_types import ActionInput, Modality
from inkwell.ai.prompts import NOT_DEFINED, StoryCoachPromptBuilder, rewrite_user_prompt
from inkwell.core.ranges import TextRange
from inkwell.documents.model import Document, Synopsis


def test_default_actions_have_unique_ids() -> None:
    ids = [action.action_id for action in default_actions()]

    assert ids == ["rewrite.selection", "generate.image.cover", "synopsis.story_coach"]


def test_rewrite_request_clamps_selection_to_plain_text(hello_document: Document, section_id: str) -> None:
    action_input = ActionInput(
        hello_document,
        section_id,
        selection_range=TextRange(6, 100),
        instruction="Make it louder",
        options={"tone": "Friendly", "preserve_terms": "false"},
    )

    request = RewriteSelectionAction().build_request(action_input)

    assert request.modalities == (Modality.TEXT,)
    assert request.context.selection_range == TextRange(6, 6)
    assert request.context.selection_text == "world "
    assert request.context.containing_paragraph == "Hello world"
    assert request.context.surrounding_before == "Hello "
    assert request.context.surrounding_after is None
    assert request.context.document_title == "Storm Notes"
    assert request.inputs["tone"] == "Friendly"
    assert request.inputs["length"] == "Same"
    assert request.inputs["preserve_terms"] is False


def test_rewrite_prompt_mentions_options_and_selection(hello_document: Document, section_id: str) -> None:
    action_input = ActionInput(hello_document, section_id, TextRange(0, 5), instruction="Be brief")

    prompt = rewrite_user_prompt(RewriteSelectionAction().build_request(action_input))

    assert "Tone: Neutral." in prompt
    assert "Preserve terms: yes." in prompt
    assert "Instruction: Be brief" in prompt
    assert prompt.endswith("Selection:\nHello")


def test_containing_paragraph_stops_at_blank_lines() -> None:
    text = "One.\n\nTwo three.\n\nFour."

    assert containing_paragraph(text, TextRange(7, 1)) == "Two three."
    assert containing_paragraph("", TextRange(0, 0)) is None


def test_cover_request_uses_title_and_opening_excerpt(hello_document: Document, section_id: str) -> None:
    action = GenerateCoverImageAction()

    request = action.build_request(ActionInput(hello_document, section_id))

    assert action.is_image_action
    assert request.modalities == (Modality.IMAGE,)
    assert request.inputs["prompt"] == "Storm Notes - Hello world"


def test_cover_prompt_falls_back_to_available_parts(hello_document: Document) -> None:
    hello_document.metadata.title = ""
    assert build_cover_prompt(hello_document) == "Hello world"

    hello_document.metadata.title = "Only Title"
    hello_document.chapters[0].sections[0].content.value = ""
    assert build_cover_prompt(hello_document) == "Only Title"


def test_story_coach_context_hides_field_names() -> None:
    synopsis = Synopsis(premise="A storm", protagonist="Eva")

    context = StoryCoachContextBuilder().build(synopsis, "premise")

    parts = context.other_fields_context.split("\n\n")
    assert parts[0] == "Eva"
    assert parts[1:] == [NOT_DEFINED] * 6
    assert "protagonist" not in context.other_fields_context.lower()
    assert context.focus_field_prompt.startswith("What core idea")


def test_story_coach_request_carries_options(hello_document: Document, section_id: str) -> None:
    context = StoryCoachContextBuilder().build(Synopsis(premise="A storm"), "premise")
    options = context.to_options(existing_value="A storm", user_notes="darker")

    request = StoryCoachAction().build_request(ActionInput(hello_document, section_id, options=options))
    prompt = StoryCoachPromptBuilder.from_request(request)

    assert request.inputs["focus_field_key"] == "premise"
    assert request.context.selection_range == TextRange(0, 7)
    assert "Focus field: premise" in prompt
    assert "Current value:\nA storm" in prompt
    assert "User input:\ndarker" in prompt


@pytest.mark.parametrize(
    "proposed, existing, reason",
    [
        ("   ", "", "empty_output"),
        ("A storm", " A storm ", "no_change"),
        ("## Premise\nA storm", "", "heading_detected"),
        ("Premise: A storm", "", "field_label_detected"),
        ("Intro\nEnding - they sail", "", "field_label_detected"),
    ],
)
def test_story_coach_validator_rejections(proposed: str, existing: str, reason: str) -> None:
    result = StoryCoachOutputValidator.validate(proposed, "premise", existing)

    assert not result.is_valid
    assert result.reason == reason


def test_story_coach_validator_accepts_prose() -> None:
    assert StoryCoachOutputValidator.validate("A storm tests a harbor town.", "premise", "A storm").is_valid
