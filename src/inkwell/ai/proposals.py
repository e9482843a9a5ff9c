"""Reviewable proposals and the primitive operations they carry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from ..core.ranges import TextRange
from ..documents.model import _utcnow, new_id
from .ai_types import AIResult


# -----------------------------------------------------------------------------
# Operations (closed set)
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ReplaceTextRangeOperation:
    """Replace a plain-text range of a section with new text."""

    section_id: str
    text_range: TextRange
    text: str
    kind: str = "replace_text_range"


@dataclass(slots=True, frozen=True)
class ReplaceSynopsisFieldOperation:
    field_key: str
    value: str
    kind: str = "replace_synopsis_field"


@dataclass(slots=True, frozen=True)
class AttachImageOperation:
    """Attach a stored artifact to a section under a role tag."""

    section_id: str
    artifact_id: str
    role: str = "cover"
    kind: str = "attach_image"


Operation = Union[ReplaceTextRangeOperation, ReplaceSynopsisFieldOperation, AttachImageOperation]


# -----------------------------------------------------------------------------
# Proposal
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class Proposal:
    """Outcome of one action invocation awaiting the user's decision."""

    section_id: str
    summary_label: str
    action_id: str
    provider_id: str
    request_id: str
    operations: list[Operation] = field(default_factory=list)
    artifact_ids: list[str] = field(default_factory=list)
    instruction: Optional[str] = None
    reason: Optional[str] = None
    user_summary: str = ""
    target_scope: str = "Selection"
    original_text: Optional[str] = None
    proposed_text: Optional[str] = None
    proposal_id: str = field(default_factory=new_id)
    created_utc: datetime = field(default_factory=_utcnow)


# -----------------------------------------------------------------------------
# Execution results
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ExecutionOutcome:
    """What the executor made of a provider result.

    A rejected outcome has no proposal; ``error_code`` says why the output
    could not be turned into operations.
    """

    result: AIResult
    provider_id: str
    proposal: Optional[Proposal] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.proposal is not None and self.error_code is None

    @property
    def model(self) -> str:
        return str(self.result.metadata.get("model") or "")

    @classmethod
    def success(cls, proposal: Proposal, result: AIResult, provider_id: str) -> "ExecutionOutcome":
        return cls(result, provider_id, proposal=proposal)

    @classmethod
    def rejected(cls, result: AIResult, provider_id: str, error_code: str, message: str) -> "ExecutionOutcome":
        return cls(result, provider_id, error_code=error_code, error_message=message)


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Batch orchestration result: a proposal or a structured denial."""

    proposal: Optional[Proposal] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.proposal is not None and self.error_code is None

    @classmethod
    def success(cls, proposal: Proposal) -> "ExecutionResult":
        return cls(proposal=proposal)

    @classmethod
    def blocked(cls, error_code: str, message: str) -> "ExecutionResult":
        return cls(error_code=error_code, error_message=message)


__all__ = [
    "AttachImageOperation",
    "ExecutionOutcome",
    "ExecutionResult",
    "Operation",
    "Proposal",
    "ReplaceSynopsisFieldOperation",
    "ReplaceTextRangeOperation",
]
