"""Wiring for the AI edit pipeline.

:func:`create_ai_services` assembles the registry, router, usage policy,
executor, orchestrator, and proposal applier around one settings provider
so hosts and tests share a single construction path.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..services.artifacts import ArtifactStore
from ..services.entitlements import EntitlementService, PlanAssignmentService, PlanCatalog
from ..services.history import AIActionHistoryStore
from ..services.settings import SettingsProvider
from ..services.usage import AIUsageStatusService, UsageMeter
from ..utils.logging import setup_logging
from .actions import AIAction, default_actions
from .applier import ProposalApplier
from .executor import ActionExecutor
from .orchestrator import AIOrchestrator
from .policy import RateLimiter, UsagePolicy
from .providers.base import AIProvider
from .providers.mock import MockImageProvider, MockTextProvider
from .providers.openai_provider import OpenAIProvider
from .providers.registry import ProviderRegistry
from .providers.router import ProviderRouter

__all__ = ["AIServices", "create_ai_services", "default_providers"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AIServices:
    """Every collaborator of one AI pipeline instance.

    Attributes:
        orchestrator: Entry point for running actions.
        applier: Applies accepted proposals to a command processor.
        registry: Registered providers.
        policy: Usage gate evaluated before provider calls.
        meter: Usage event log and aggregates.
        entitlements: Plan entitlement lookups.
        plan_assignments: Plan assignment service over ``catalog``.
        catalog: Plans and user assignments.
        artifacts: Provider artifacts referenced by proposals.
        history: External log of applied AI actions.
        usage_status: Per-user quota summary.
    """

    orchestrator: AIOrchestrator
    applier: ProposalApplier
    registry: ProviderRegistry
    policy: UsagePolicy
    meter: UsageMeter
    entitlements: EntitlementService
    plan_assignments: PlanAssignmentService
    catalog: PlanCatalog
    artifacts: ArtifactStore
    history: AIActionHistoryStore
    usage_status: AIUsageStatusService


def default_providers(settings_provider: SettingsProvider) -> list[AIProvider]:
    """Mock providers, plus OpenAI when it is enabled in the settings."""

    providers: list[AIProvider] = [MockTextProvider(), MockImageProvider()]
    if settings_provider().providers.openai.enabled:
        providers.append(OpenAIProvider(settings_provider))
    return providers


def create_ai_services(
    settings_provider: SettingsProvider,
    *,
    providers: Iterable[AIProvider] | None = None,
    actions: Iterable[AIAction] | None = None,
    catalog: PlanCatalog | None = None,
    rate_limiter: RateLimiter | None = None,
    clock: Callable[[], datetime] = _utcnow,
    configure_logging: bool = False,
) -> AIServices:
    """Build an :class:`AIServices` with in-memory stores.

    Args:
        settings_provider: Zero-argument callable returning current settings.
        providers: Providers to register; defaults to :func:`default_providers`.
        actions: Actions to expose; defaults to the built-in actions.
        catalog: Plan catalog; defaults to the built-in plans.
        rate_limiter: Shared limiter; a fresh one is created when omitted.
        clock: UTC clock used for usage periods and plan assignments.
        configure_logging: Install the file log described by ``AISettings.log``.
    """

    if configure_logging:
        setup_logging(settings_provider().log)
    registry = ProviderRegistry(providers if providers is not None else default_providers(settings_provider))
    catalog = catalog or PlanCatalog()
    entitlements = EntitlementService(catalog)
    meter = UsageMeter(clock=clock)
    artifacts = ArtifactStore()
    policy = UsagePolicy(settings_provider, entitlements, meter, rate_limiter=rate_limiter, clock=clock)
    orchestrator = AIOrchestrator(
        actions if actions is not None else default_actions(),
        registry,
        ProviderRouter(registry, settings_provider),
        policy,
        ActionExecutor(artifacts),
        settings_provider,
        meter=meter,
    )
    return AIServices(
        orchestrator=orchestrator,
        applier=ProposalApplier(artifacts),
        registry=registry,
        policy=policy,
        meter=meter,
        entitlements=entitlements,
        plan_assignments=PlanAssignmentService(catalog, entitlements, clock=clock),
        catalog=catalog,
        artifacts=artifacts,
        history=AIActionHistoryStore(),
        usage_status=AIUsageStatusService(entitlements, meter),
    )
