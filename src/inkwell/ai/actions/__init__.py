"""Built-in AI actions."""

from .base import COVER_IMAGE_ACTION_ID, REWRITE_ACTION_ID, STORY_COACH_ACTION_ID, AIAction
from .cover_image import GenerateCoverImageAction, build_cover_prompt
from .rewrite import RewriteSelectionAction
from .story_coach import (
    StoryCoachAction,
    StoryCoachContext,
    StoryCoachContextBuilder,
    StoryCoachOutputValidator,
    StoryCoachValidation,
)


def default_actions() -> list[AIAction]:
    return [RewriteSelectionAction(), GenerateCoverImageAction(), StoryCoachAction()]


__all__ = [
    "AIAction",
    "COVER_IMAGE_ACTION_ID",
    "GenerateCoverImageAction",
    "REWRITE_ACTION_ID",
    "RewriteSelectionAction",
    "STORY_COACH_ACTION_ID",
    "StoryCoachAction",
    "StoryCoachContext",
    "StoryCoachContextBuilder",
    "StoryCoachOutputValidator",
    "StoryCoachValidation",
    "build_cover_prompt",
    "default_actions",
]
