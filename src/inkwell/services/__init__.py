"""Application services around the AI pipeline: settings, plans, usage, storage."""

from .artifacts import ArtifactStore
from .entitlements import (
    EntitlementService,
    Plan,
    PlanAssignmentError,
    PlanAssignmentErrorCode,
    PlanAssignmentService,
    PlanCatalog,
    UserEntitlements,
)
from .history import AIActionHistoryEntry, AIActionHistoryStore
from .settings import AISettings, SettingsProvider, SettingsStore, static_settings
from .usage import AIUsageStatus, AIUsageStatusService, UsageEvent, UsageMeter, UsageSnapshot

__all__ = [
    "AIActionHistoryEntry",
    "AIActionHistoryStore",
    "AISettings",
    "AIUsageStatus",
    "AIUsageStatusService",
    "ArtifactStore",
    "EntitlementService",
    "Plan",
    "PlanAssignmentError",
    "PlanAssignmentErrorCode",
    "PlanAssignmentService",
    "PlanCatalog",
    "SettingsProvider",
    "SettingsStore",
    "UsageEvent",
    "UsageMeter",
    "UsageSnapshot",
    "UserEntitlements",
    "static_settings",
]
