"""Turns an accepted proposal into edit commands on a command processor."""

from __future__ import annotations

import base64
import logging

from ..documents.model import AIHistoryEntry, DocumentArtifact
from ..editor.commands import (
    AIEditCommand,
    AIEditGroup,
    AIReplacePlainTextRangeCommand,
    SetCoverImageCommand,
    UpdateSynopsisFieldCommand,
)
from ..editor.processor import CommandProcessor
from ..services.artifacts import ArtifactStore
from .ai_types import Artifact
from .proposals import AttachImageOperation, Proposal, ReplaceSynopsisFieldOperation, ReplaceTextRangeOperation

LOGGER = logging.getLogger(__name__)


class ProposalApplier:
    """Applies every operation of a proposal under one AI edit group."""

    def __init__(self, artifact_store: ArtifactStore) -> None:
        self._artifact_store = artifact_store

    def apply(self, proposal: Proposal, processor: CommandProcessor, *, record_history: bool = True) -> AIEditGroup:
        reason = build_reason(proposal)
        group = AIEditGroup(proposal.section_id, reason)
        executed: list[AIEditCommand] = []

        try:
            for operation in proposal.operations:
                command = self._command_for(proposal, operation, group, reason)
                if command is None:
                    continue
                processor.execute(command)
                executed.append(command)
        except Exception:
            LOGGER.warning(
                "Proposal %s failed after %d command(s); reverting", proposal.proposal_id, len(executed)
            )
            for command in reversed(executed):
                processor.discard(command)
            raise

        LOGGER.debug(
            "Applied proposal %s (%s) as group %s with %d command(s)",
            proposal.proposal_id,
            proposal.action_id,
            group.group_id,
            len(executed),
        )
        if record_history and executed:
            processor.append_ai_history_entry(proposal.section_id, history_entry(proposal, group))
        return group

    def _command_for(
        self, proposal: Proposal, operation: object, group: AIEditGroup, reason: str
    ) -> AIEditCommand | None:
        if isinstance(operation, ReplaceTextRangeOperation):
            return AIReplacePlainTextRangeCommand(
                operation.section_id, operation.text_range, operation.text, group, reason
            )
        if isinstance(operation, AttachImageOperation):
            return self._cover_command(operation, group, reason)
        if isinstance(operation, ReplaceSynopsisFieldOperation):
            return UpdateSynopsisFieldCommand(proposal.section_id, operation.field_key, operation.value, group, reason)
        raise TypeError(f"Unsupported proposal operation: {operation!r}")

    def _cover_command(
        self, operation: AttachImageOperation, group: AIEditGroup, reason: str
    ) -> SetCoverImageCommand | None:
        artifact = self._artifact_store.get(operation.artifact_id)
        if artifact is None:
            LOGGER.warning("Artifact %s is no longer available; skipping attach", operation.artifact_id)
            return None
        return SetCoverImageCommand(operation.section_id, to_document_artifact(artifact), group, reason)


def build_reason(proposal: Proposal) -> str:
    if not (proposal.reason or "").strip():
        return f"{proposal.action_id} ({proposal.request_id})"
    return f"{proposal.reason} ({proposal.action_id}:{proposal.request_id})"


def to_document_artifact(artifact: Artifact) -> DocumentArtifact:
    """Copy a provider artifact into the document's embeddable form."""

    data_url = artifact.metadata.get("dataUrl")
    data_url = str(data_url) if data_url else None
    base64_data = base64.b64encode(artifact.data).decode("ascii") if artifact.data else None
    if base64_data is None and data_url:
        base64_data = _base64_from_data_url(data_url)
    if data_url is None and base64_data is not None:
        data_url = f"data:{artifact.mime_type};base64,{base64_data}"
    return DocumentArtifact(artifact.artifact_id, artifact.mime_type, base64_data, data_url)


def history_entry(proposal: Proposal, group: AIEditGroup) -> AIHistoryEntry:
    return AIHistoryEntry(
        edit_group_id=group.group_id,
        action_id=proposal.action_id,
        provider_id=proposal.provider_id,
        operation_summary=proposal.user_summary or proposal.summary_label,
        target_scope=proposal.target_scope,
        affected_section_id=proposal.section_id,
        instruction=proposal.instruction,
        before_text=proposal.original_text,
        after_text=proposal.proposed_text,
    )


def _base64_from_data_url(data_url: str) -> str | None:
    comma = data_url.find(",")
    if comma < 0 or comma >= len(data_url) - 1:
        return None
    return data_url[comma + 1 :]


__all__ = ["ProposalApplier", "build_reason", "history_entry", "to_document_artifact"]
