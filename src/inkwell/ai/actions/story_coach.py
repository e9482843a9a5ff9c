"""Story Coach: propose a revised value for one synopsis field."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from ...core.ranges import TextRange
from ...documents.model import Synopsis
from ...documents.synopsis import SynopsisFieldCatalog
from ..ai_types import ActionInput, AIRequest, Modality, RequestContext
from ..prompts import NOT_DEFINED
from .base import STORY_COACH_ACTION_ID, AIAction, optional_text

_OPTIONAL_SUFFIX = " (optional)"
_HEADING_RE = re.compile(r"^\s*#{1,6}\s+")

FOCUS_PROMPTS: Mapping[str, str] = {
    "premise": "What core idea or hook should this story communicate?",
    "protagonist": "Who carries the emotional weight of this story, and what do they want?",
    "antagonist": "Who or what opposes the protagonist?",
    "central_conflict": "What stands between the protagonist and their goal?",
    "stakes": "What will be lost if the protagonist fails?",
    "arc": "How does the protagonist change from start to finish?",
    "setting": "Where and when does the story take place?",
    "ending": "What outcome brings the story to a satisfying close?",
}
DEFAULT_FOCUS_PROMPT = "Share what you want to develop in this field."


class StoryCoachAction(AIAction):
    """Reads its target field and context from the input options.

    Expected options: ``focus_field_key``, ``focus_field_prompt``,
    ``other_fields_context``, ``existing_value`` and ``user_notes``.
    """

    action_id = STORY_COACH_ACTION_ID
    display_name = "Story Coach"
    modalities = (Modality.TEXT,)

    def build_request(self, action_input: ActionInput) -> AIRequest:
        document = action_input.document
        existing = action_input.option_text("existing_value")
        context = RequestContext(
            document_id=document.document_id,
            section_id=action_input.section_id,
            selection_range=TextRange(0, len(existing)),
            selection_text=existing,
            document_title=optional_text(document.metadata.title),
            language_hint=optional_text(document.metadata.language),
        )
        inputs = {
            key: action_input.option_text(key)
            for key in (
                "focus_field_key",
                "focus_field_prompt",
                "other_fields_context",
                "existing_value",
                "user_notes",
            )
        }
        return AIRequest(self.action_id, self.modalities, context, inputs)


# -----------------------------------------------------------------------------
# Context
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class StoryCoachContext:
    focus_field_key: str
    focus_field_prompt: str
    other_fields_context: str

    def to_options(self, *, existing_value: str, user_notes: str = "") -> dict[str, str]:
        """Render as the option mapping :class:`StoryCoachAction` reads."""

        return {
            "focus_field_key": self.focus_field_key,
            "focus_field_prompt": self.focus_field_prompt,
            "other_fields_context": self.other_fields_context,
            "existing_value": existing_value,
            "user_notes": user_notes,
        }


class StoryCoachContextBuilder:
    """Summarizes every other synopsis field without naming them."""

    def build(self, synopsis: Synopsis, focus_field_key: str) -> StoryCoachContext:
        return StoryCoachContext(
            focus_field_key,
            focus_prompt(focus_field_key),
            self._other_fields_context(synopsis, focus_field_key),
        )

    @staticmethod
    def _other_fields_context(synopsis: Synopsis, focus_field_key: str) -> str:
        parts: list[str] = []
        focus = focus_field_key.lower()
        for definition in SynopsisFieldCatalog.FIELDS:
            if definition.key.lower() == focus:
                continue
            value = SynopsisFieldCatalog.get_value(synopsis, definition.key).strip()
            parts.append(value or NOT_DEFINED)
        return "\n\n".join(parts)


def focus_prompt(field_key: str) -> str:
    return FOCUS_PROMPTS.get(field_key, DEFAULT_FOCUS_PROMPT)


# -----------------------------------------------------------------------------
# Output validation
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class StoryCoachValidation:
    is_valid: bool
    reason: str = ""


class StoryCoachOutputValidator:
    """Rejects output that is empty, unchanged, or structured like a form."""

    @classmethod
    def validate(cls, proposed_text: str | None, focus_field_key: str, existing_value: str | None) -> StoryCoachValidation:
        trimmed = (proposed_text or "").strip()
        if not trimmed:
            return StoryCoachValidation(False, "empty_output")
        if trimmed == (existing_value or "").strip():
            return StoryCoachValidation(False, "no_change")
        if any(_HEADING_RE.match(line) for line in trimmed.splitlines()):
            return StoryCoachValidation(False, "heading_detected")
        if cls._contains_field_label(trimmed):
            return StoryCoachValidation(False, "field_label_detected")
        return StoryCoachValidation(True)

    @staticmethod
    def _contains_field_label(text: str) -> bool:
        for definition in SynopsisFieldCatalog.FIELDS:
            candidates = {definition.label, definition.key}
            if definition.label.lower().endswith(_OPTIONAL_SUFFIX):
                candidates.add(definition.label[: -len(_OPTIONAL_SUFFIX)])
            for candidate in candidates:
                pattern = rf"(^|\n)\s*{re.escape(candidate)}\s*[:\-]\s+"
                if re.search(pattern, text, re.IGNORECASE):
                    return True
        return False


__all__ = [
    "DEFAULT_FOCUS_PROMPT",
    "FOCUS_PROMPTS",
    "StoryCoachAction",
    "StoryCoachContext",
    "StoryCoachContextBuilder",
    "StoryCoachOutputValidator",
    "StoryCoachValidation",
    "focus_prompt",
]
