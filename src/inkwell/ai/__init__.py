"""AI edit pipeline: requests, providers, usage policy, and proposals.

Heavier collaborators live in submodules (``inkwell.ai.orchestrator``,
``inkwell.ai.container``) and import the service layer; only plain data
types are re-exported here.
"""

from .ai_types import (
    ActionInput,
    AIRequest,
    AIResult,
    Artifact,
    Modality,
    RequestContext,
    StreamEvent,
    StreamingSession,
    Usage,
)
from .errors import AIError, AIProviderError, ErrorCode
from .proposals import ExecutionResult, Proposal

__all__ = [
    "AIError",
    "AIProviderError",
    "AIRequest",
    "AIResult",
    "ActionInput",
    "Artifact",
    "ErrorCode",
    "ExecutionResult",
    "Modality",
    "Proposal",
    "RequestContext",
    "StreamEvent",
    "StreamingSession",
    "Usage",
]
