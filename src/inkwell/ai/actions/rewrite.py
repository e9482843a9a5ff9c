"""Rewrite the current selection."""

from __future__ import annotations

from ...core.ranges import TextRange
from ..ai_types import ActionInput, AIRequest, Modality, RequestContext
from .base import REWRITE_ACTION_ID, AIAction, optional_text, section_plain_text

SURROUNDING_CHARS = 500


class RewriteSelectionAction(AIAction):
    action_id = REWRITE_ACTION_ID
    display_name = "Rewrite selection"
    modalities = (Modality.TEXT,)
    requires_selection = True

    def build_request(self, action_input: ActionInput) -> AIRequest:
        document = action_input.document
        plain = section_plain_text(document, action_input.section_id)
        text_range = action_input.selection_range.clamp(len(plain))
        selection = plain[text_range.start : text_range.end]
        context = RequestContext(
            document_id=document.document_id,
            section_id=action_input.section_id,
            selection_range=text_range,
            selection_text=selection,
            document_title=optional_text(document.metadata.title),
            language_hint=optional_text(document.metadata.language) or "en",
            containing_paragraph=containing_paragraph(plain, text_range),
            surrounding_before=surrounding_before(plain, text_range),
            surrounding_after=surrounding_after(plain, text_range),
        )
        inputs = {
            "instruction": action_input.instruction or "",
            "tone": action_input.option_text("tone", "Neutral"),
            "length": action_input.option_text("length", "Same"),
            "preserve_terms": action_input.option_flag("preserve_terms", True),
        }
        return AIRequest(self.action_id, self.modalities, context, inputs)


def containing_paragraph(text: str, text_range: TextRange) -> str | None:
    """Return the blank-line-delimited paragraph around ``text_range``."""

    if not text:
        return None
    start = _find_paragraph_boundary(text, min(text_range.start, len(text)), backward=True)
    end = _find_paragraph_boundary(text, min(text_range.end, len(text)), backward=False)
    if end < start:
        return None
    paragraph = text[start:end].strip()
    return paragraph or None


def surrounding_before(text: str, text_range: TextRange) -> str | None:
    start = min(text_range.start, len(text))
    snippet = text[max(0, start - SURROUNDING_CHARS) : start]
    return snippet or None


def surrounding_after(text: str, text_range: TextRange) -> str | None:
    end = min(text_range.end, len(text))
    snippet = text[end : end + SURROUNDING_CHARS]
    return snippet or None


def _find_paragraph_boundary(text: str, index: int, *, backward: bool) -> int:
    if backward:
        for position in range(index, 0, -1):
            if _is_paragraph_break(text, position):
                return position
        return 0
    for position in range(index, len(text)):
        if _is_paragraph_break(text, position):
            return position
    return len(text)


def _is_paragraph_break(text: str, index: int) -> bool:
    if index <= 0 or index >= len(text):
        return False
    return (text[index - 1], text[index]) in {("\n", "\n"), ("\r", "\r"), ("\n", "\r")}


__all__ = [
    "RewriteSelectionAction",
    "SURROUNDING_CHARS",
    "containing_paragraph",
    "surrounding_after",
    "surrounding_before",
]
