"""Runs a routed provider call and maps its result into a proposal."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from ..services.artifacts import ArtifactStore
from .actions.base import COVER_IMAGE_ACTION_ID, REWRITE_ACTION_ID, STORY_COACH_ACTION_ID, AIAction
from .actions.story_coach import StoryCoachOutputValidator
from .ai_types import ActionInput, AIRequest, AIResult, Modality
from .errors import AIProviderError, ErrorCode
from .proposals import (
    AttachImageOperation,
    ExecutionOutcome,
    Proposal,
    ReplaceSynopsisFieldOperation,
    ReplaceTextRangeOperation,
)
from .providers.base import AIProvider

LOGGER = logging.getLogger(__name__)

COVER_ROLE = "cover"

SCOPE_SELECTION = "Selection"
SCOPE_SECTION = "Section"
SCOPE_SYNOPSIS = "Synopsis"


class ActionExecutor:
    """Calls providers at a single boundary and builds proposals from results."""

    def __init__(self, artifact_store: ArtifactStore) -> None:
        self._artifact_store = artifact_store

    @property
    def artifact_store(self) -> ArtifactStore:
        return self._artifact_store

    async def execute(
        self,
        action: AIAction,
        action_input: ActionInput,
        request: AIRequest,
        provider: AIProvider,
    ) -> ExecutionOutcome:
        """Execute ``request`` on ``provider``.

        Raises:
            AIProviderError: the provider failed; other exceptions are wrapped
                with the provider id and chained.
        """

        try:
            result = await provider.execute(request)
        except (asyncio.CancelledError, AIProviderError):
            raise
        except Exception as exc:
            raise AIProviderError(
                message=f"AI provider '{provider.provider_id}' failed: {exc}",
                provider_id=provider.provider_id,
            ) from exc
        return self.build_outcome(action, action_input, request, result, provider.provider_id)

    def build_outcome(
        self,
        action: AIAction,
        action_input: ActionInput,
        request: AIRequest,
        result: AIResult,
        provider_id: str,
    ) -> ExecutionOutcome:
        instruction = (action_input.instruction or "").strip()
        proposal = Proposal(
            section_id=request.context.section_id,
            summary_label=instruction or action.display_name,
            action_id=action.action_id,
            provider_id=provider_id,
            request_id=request.request_id,
            instruction=action_input.instruction,
            target_scope=target_scope(action.action_id),
            user_summary=build_user_summary(action.action_id, action_input.instruction, action_input.options),
        )

        if action.action_id == STORY_COACH_ACTION_ID:
            return self._build_story_coach(proposal, request, result, provider_id)

        text = result.first(Modality.TEXT)
        if text is not None and text.text is not None and action.action_id == REWRITE_ACTION_ID:
            proposal.operations.append(
                ReplaceTextRangeOperation(request.context.section_id, request.context.selection_range, text.text)
            )
            proposal.original_text = action_input.selected_text or request.context.selection_text
            proposal.proposed_text = text.text

        image = result.first(Modality.IMAGE)
        if image is not None and action.action_id == COVER_IMAGE_ACTION_ID:
            artifact_id = self._artifact_store.store(image)
            proposal.artifact_ids.append(artifact_id)
            proposal.operations.append(AttachImageOperation(request.context.section_id, artifact_id, COVER_ROLE))

        return ExecutionOutcome.success(proposal, result, provider_id)

    def _build_story_coach(
        self, proposal: Proposal, request: AIRequest, result: AIResult, provider_id: str
    ) -> ExecutionOutcome:
        focus_key = request.input_text("focus_field_key").strip()
        if not focus_key:
            return ExecutionOutcome.rejected(
                result,
                provider_id,
                ErrorCode.STORY_COACH_REJECTED,
                "Story Coach output rejected: missing target field key.",
            )

        existing = request.input_text("existing_value")
        text = result.first(Modality.TEXT)
        proposed = text.text if text is not None else None
        validation = StoryCoachOutputValidator.validate(proposed, focus_key, existing)
        if not validation.is_valid:
            LOGGER.warning(
                "Story Coach output rejected for field %s (request %s): %s",
                focus_key,
                request.request_id,
                validation.reason,
            )
            return ExecutionOutcome.rejected(
                result,
                provider_id,
                ErrorCode.STORY_COACH_REJECTED,
                f"Story Coach output rejected: {validation.reason}",
            )

        value = (proposed or "").strip()
        proposal.operations.append(ReplaceSynopsisFieldOperation(focus_key, value))
        proposal.original_text = existing
        proposal.proposed_text = value
        return ExecutionOutcome.success(proposal, result, provider_id)


# -----------------------------------------------------------------------------
# Review text
# -----------------------------------------------------------------------------


def target_scope(action_id: str) -> str:
    if action_id == COVER_IMAGE_ACTION_ID:
        return SCOPE_SECTION
    if action_id == STORY_COACH_ACTION_ID:
        return SCOPE_SYNOPSIS
    return SCOPE_SELECTION


def build_user_summary(action_id: str, instruction: str | None, options: Mapping[str, object]) -> str:
    """One sentence describing what the proposal does, for the review panel."""

    if action_id == COVER_IMAGE_ACTION_ID:
        return "Generate cover image"
    if action_id == STORY_COACH_ACTION_ID:
        return "Story Coach suggestion"
    if action_id != REWRITE_ACTION_ID:
        return "Apply AI change"

    normalized = (instruction or "").strip().lower()
    tone = str(options.get("tone") or "").strip()
    length = str(options.get("length") or "").strip()

    if "shorten" in normalized:
        return "Shorten selected text"
    if "grammar" in normalized:
        return "Fix grammar in selected text"
    if "summarize" in normalized or "summary" in normalized:
        return "Summarize selected text"
    if length.lower() == "shorter":
        return "Shorten selected text"
    if tone and tone.lower() != "neutral":
        return f"Rewrite selected text in a more {tone} tone"
    if "rewrite" in normalized:
        return "Rewrite selected text"
    if normalized:
        return f"Rewrite selected text: {(instruction or '').strip()}"
    return "Rewrite selected text"


__all__ = [
    "ActionExecutor",
    "COVER_ROLE",
    "SCOPE_SECTION",
    "SCOPE_SELECTION",
    "SCOPE_SYNOPSIS",
    "build_user_summary",
    "target_scope",
]
