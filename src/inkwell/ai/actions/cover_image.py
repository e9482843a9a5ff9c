"""Generate a cover image from the document title and opening text."""

from __future__ import annotations

from ...core.markup import to_plain_text
from ...documents.model import Document
from ..ai_types import ActionInput, AIRequest, Modality, RequestContext
from .base import COVER_IMAGE_ACTION_ID, AIAction, optional_text

EXCERPT_CHARS = 120


class GenerateCoverImageAction(AIAction):
    action_id = COVER_IMAGE_ACTION_ID
    display_name = "Generate cover image"
    modalities = (Modality.IMAGE,)

    def build_request(self, action_input: ActionInput) -> AIRequest:
        document = action_input.document
        context = RequestContext(
            document_id=document.document_id,
            section_id=action_input.section_id,
            selection_range=action_input.selection_range,
            selection_text=action_input.selected_text or "",
            document_title=optional_text(document.metadata.title),
            language_hint=optional_text(document.metadata.language) or "en",
        )
        inputs = {
            "prompt": build_cover_prompt(document),
            "instruction": action_input.instruction or "",
        }
        return AIRequest(self.action_id, self.modalities, context, inputs)


def build_cover_prompt(document: Document) -> str:
    """Combine the title with an excerpt of the first non-empty opening section."""

    title = (document.metadata.title or "").strip()
    excerpt = ""
    for chapter in document.chapters:
        if not chapter.sections:
            continue
        excerpt = to_plain_text(chapter.sections[0].content.value)
        if excerpt.strip():
            break
    excerpt = excerpt[:EXCERPT_CHARS].strip()
    if not title:
        return excerpt
    if not excerpt:
        return title
    return f"{title} - {excerpt}"


__all__ = ["EXCERPT_CHARS", "GenerateCoverImageAction", "build_cover_prompt"]
