"""Base class for user-invokable AI actions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from ...core.markup import to_plain_text
from ...documents.model import Document
from ..ai_types import ActionInput, AIRequest, Modality

REWRITE_ACTION_ID = "rewrite.selection"
COVER_IMAGE_ACTION_ID = "generate.image.cover"
STORY_COACH_ACTION_ID = "synopsis.story_coach"


class AIAction(ABC):
    """A named AI capability that turns raw input into a provider request."""

    action_id: ClassVar[str]
    display_name: ClassVar[str]
    modalities: ClassVar[tuple[Modality, ...]] = (Modality.TEXT,)
    requires_selection: ClassVar[bool] = False

    @abstractmethod
    def build_request(self, action_input: ActionInput) -> AIRequest:
        """Build an immutable request from ``action_input``."""

    @property
    def is_image_action(self) -> bool:
        return Modality.IMAGE in self.modalities

    def __repr__(self) -> str:
        return f"{type(self).__name__}(action_id={self.action_id!r})"


def section_plain_text(document: Document, section_id: str) -> str:
    section = document.find_section(section_id)
    if section is None:
        return ""
    return to_plain_text(section.content.value)


def optional_text(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


__all__ = [
    "AIAction",
    "COVER_IMAGE_ACTION_ID",
    "REWRITE_ACTION_ID",
    "STORY_COACH_ACTION_ID",
    "optional_text",
    "section_plain_text",
]
