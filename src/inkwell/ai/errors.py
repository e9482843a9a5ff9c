"""Error types and stable outward codes for the AI pipeline.

Policy denials are values (see :mod:`inkwell.ai.policy`), never raised.
The exceptions here cover routing and provider failures that callers are
expected to handle or let propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Machine-readable codes surfaced to callers."""

    # Action / routing
    ACTION_MISSING = "ai.action_missing"
    PROVIDER_UNAVAILABLE = "ai.provider_unavailable"
    PROVIDER_MISSING = "ai.provider_missing"
    NO_PROVIDER_MATCHED = "ai.no_provider_matched"
    PROVIDER_FAILED = "ai.provider_failed"

    # Usage policy
    DISABLED = "ai.disabled"
    AUTH_REQUIRED = "auth.required"
    COVER_DISABLED = "ai.images.cover_disabled"
    RATE_LIMITED = "ai.rate_limited"
    QUOTA_EXCEEDED = "ai.quota_exceeded"
    BLOCKED = "ai.blocked"

    # Proposal construction
    STORY_COACH_REJECTED = "ai.story_coach_rejected"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class AIError(Exception):
    """Base exception for AI pipeline errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Routing Errors
# -----------------------------------------------------------------------------

@dataclass
class ProviderUnavailableError(AIError):
    """The preferred provider is unusable and fallback is disabled."""

    error_code: str = field(default=ErrorCode.PROVIDER_UNAVAILABLE)
    message: str = field(default="Preferred AI provider is unavailable.")
    details: dict[str, Any] = field(default_factory=dict)

    provider_id: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.provider_id:
            result["provider_id"] = self.provider_id
        return result


@dataclass
class NoProviderMatchedError(AIError):
    """No registered provider supports the requested modality."""

    error_code: str = field(default=ErrorCode.NO_PROVIDER_MATCHED)
    message: str = field(default="No AI provider supports this request.")
    details: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Provider Errors
# -----------------------------------------------------------------------------

@dataclass
class AIProviderError(AIError):
    """A provider call failed; raised at the executor boundary."""

    error_code: str = field(default=ErrorCode.PROVIDER_FAILED)
    message: str = field(default="AI provider request failed.")
    details: dict[str, Any] = field(default_factory=dict)

    provider_id: str = field(default="")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.provider_id:
            result["provider_id"] = self.provider_id
        return result


__all__ = [
    "AIError",
    "AIProviderError",
    "ErrorCode",
    "NoProviderMatchedError",
    "ProviderUnavailableError",
]
