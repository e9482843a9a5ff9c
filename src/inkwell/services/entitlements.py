"""Subscription plans, plan assignments, and entitlement lookup."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional

LOGGER = logging.getLogger(__name__)

FREE_PLAN_KEY = "free"
ENTITLEMENT_CACHE_SECONDS = 60.0

AI_ENABLED = "ai.enabled"
AI_MONTHLY_TOKENS = "ai.monthly_tokens"
AI_DAILY_TOKENS_CAP = "ai.daily_tokens_cap"
AI_IMAGES_COVER = "ai.images.cover"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class Plan:
    key: str
    name: str
    entitlements: Mapping[str, str] = field(default_factory=dict)
    is_active: bool = True


DEFAULT_PLANS: tuple[Plan, ...] = (
    Plan(
        "free",
        "Free",
        {AI_ENABLED: "false", AI_MONTHLY_TOKENS: "0", AI_IMAGES_COVER: "false", "export.pdf": "false"},
    ),
    Plan(
        "standard",
        "Standard",
        {AI_ENABLED: "true", AI_MONTHLY_TOKENS: "200000", AI_IMAGES_COVER: "false", "export.pdf": "true"},
    ),
    Plan(
        "professional",
        "Professional",
        {AI_ENABLED: "true", AI_MONTHLY_TOKENS: "1000000", AI_IMAGES_COVER: "true", "export.pdf": "true"},
    ),
)


class PlanCatalog:
    """In-memory plan definitions plus the user-to-plan assignment log."""

    def __init__(self, plans: Iterable[Plan] | None = None) -> None:
        self._plans: dict[str, Plan] = {plan.key: plan for plan in (plans if plans is not None else DEFAULT_PLANS)}
        self._assignments: list[PlanAssignment] = []
        self._lock = threading.Lock()

    def get_plan(self, plan_key: str) -> Plan | None:
        return self._plans.get(plan_key)

    def add_plan(self, plan: Plan) -> None:
        self._plans[plan.key] = plan

    def active_plans(self) -> list[Plan]:
        return sorted((plan for plan in self._plans.values() if plan.is_active), key=lambda plan: plan.name)

    def plan_for_user(self, user_id: str) -> Plan | None:
        assignment = self.latest_assignment(user_id)
        if assignment is None:
            return None
        return self._plans.get(assignment.plan_key)

    def latest_assignment(self, user_id: str) -> PlanAssignment | None:
        with self._lock:
            matches = [entry for entry in self._assignments if entry.user_id == user_id]
        if not matches:
            return None
        # Ties go to the most recently added assignment.
        return max(reversed(matches), key=lambda entry: entry.assigned_utc)

    def has_assignment(self, user_id: str, plan_key: str) -> bool:
        with self._lock:
            return any(entry.user_id == user_id and entry.plan_key == plan_key for entry in self._assignments)

    def add_assignment(self, assignment: PlanAssignment) -> None:
        with self._lock:
            self._assignments.append(assignment)


@dataclass(slots=True, frozen=True)
class PlanAssignment:
    user_id: str
    plan_key: str
    assigned_utc: datetime
    assigned_by: str = ""


@dataclass(slots=True, frozen=True)
class UserEntitlements:
    user_id: str
    plan_key: str
    plan_name: str
    entitlements: Mapping[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        """Case-insensitive lookup."""

        return self.entitlements.get(key.lower())


class EntitlementService:
    """Resolves a user's plan entitlements with a short-lived per-user cache."""

    def __init__(
        self,
        catalog: PlanCatalog,
        *,
        cache_seconds: float = ENTITLEMENT_CACHE_SECONDS,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self._catalog = catalog
        self._cache_seconds = cache_seconds
        self._time_source = time_source
        self._cache: dict[str, tuple[float, UserEntitlements]] = {}
        self._lock = threading.Lock()

    def get_entitlements(self, user_id: str | None) -> UserEntitlements:
        if not user_id or not user_id.strip():
            return UserEntitlements("", FREE_PLAN_KEY, "Free", {})

        now = self._time_source()
        with self._lock:
            cached = self._cache.get(user_id)
            if cached is not None and now - cached[0] < self._cache_seconds:
                return cached[1]

        plan = self._catalog.plan_for_user(user_id) or self._catalog.get_plan(FREE_PLAN_KEY)
        entitlements = {key.lower(): value for key, value in (plan.entitlements.items() if plan else ())}
        result = UserEntitlements(
            user_id,
            plan.key if plan else FREE_PLAN_KEY,
            plan.name if plan else "Free",
            entitlements,
        )
        with self._lock:
            self._cache[user_id] = (now, result)
        LOGGER.debug("Resolved entitlements for %s: plan=%s", user_id, result.plan_key)
        return result

    def has(self, user_id: str | None, key: str) -> bool:
        if not key:
            return False
        value = self.get_entitlements(user_id).get(key)
        return value is not None and value.strip().lower() == "true"

    def get_int(self, user_id: str | None, key: str) -> Optional[int]:
        if not key:
            return None
        value = self.get_entitlements(user_id).get(key)
        if value is None:
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None

    def invalidate_for_user(self, user_id: str | None) -> None:
        if not user_id:
            return
        with self._lock:
            self._cache.pop(user_id, None)


# -----------------------------------------------------------------------------
# Plan assignment
# -----------------------------------------------------------------------------


class PlanAssignmentErrorCode(Enum):
    INVALID_USER_ID = "invalid_user_id"
    INVALID_PLAN_KEY = "invalid_plan_key"
    PLAN_NOT_FOUND = "plan_not_found"
    PLAN_INACTIVE = "plan_inactive"
    ASSIGNMENT_EXISTS = "assignment_exists"


class PlanAssignmentError(ValueError):
    def __init__(self, code: PlanAssignmentErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True, frozen=True)
class PlanAssignmentResult:
    user_id: str
    plan_key: str
    plan_name: str
    assigned_utc: datetime


class PlanAssignmentService:
    def __init__(
        self,
        catalog: PlanCatalog,
        entitlements: EntitlementService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._entitlements = entitlements
        self._clock = clock

    def get_active_plans(self) -> list[Plan]:
        return self._catalog.active_plans()

    def get_latest_assignment(self, user_id: str | None) -> PlanAssignment | None:
        if not user_id or not user_id.strip():
            return None
        return self._catalog.latest_assignment(user_id)

    def assign_plan(self, user_id: str, plan_key: str, assigned_by: str = "") -> PlanAssignmentResult:
        """Assign ``plan_key`` to ``user_id``.

        Raises:
            PlanAssignmentError: invalid ids, unknown or inactive plan, or
                the user already holds the plan.
        """

        if not user_id or not user_id.strip():
            raise PlanAssignmentError(PlanAssignmentErrorCode.INVALID_USER_ID, "userId is required.")
        if not plan_key or not plan_key.strip():
            raise PlanAssignmentError(PlanAssignmentErrorCode.INVALID_PLAN_KEY, "planKey is required.")
        plan = self._catalog.get_plan(plan_key)
        if plan is None:
            raise PlanAssignmentError(PlanAssignmentErrorCode.PLAN_NOT_FOUND, f"Plan '{plan_key}' was not found.")
        if not plan.is_active:
            raise PlanAssignmentError(PlanAssignmentErrorCode.PLAN_INACTIVE, f"Plan '{plan_key}' is not active.")
        if self._catalog.has_assignment(user_id, plan.key):
            raise PlanAssignmentError(
                PlanAssignmentErrorCode.ASSIGNMENT_EXISTS,
                f"User '{user_id}' already has plan '{plan_key}'.",
            )

        assignment = PlanAssignment(user_id, plan.key, self._clock(), assigned_by)
        self._catalog.add_assignment(assignment)
        self._entitlements.invalidate_for_user(user_id)
        LOGGER.info(
            "Plan assignment created: user_id=%s plan_key=%s assigned_by=%s",
            user_id,
            plan.key,
            assigned_by,
        )
        return PlanAssignmentResult(user_id, plan.key, plan.name, assignment.assigned_utc)


__all__ = [
    "AI_DAILY_TOKENS_CAP",
    "AI_ENABLED",
    "AI_IMAGES_COVER",
    "AI_MONTHLY_TOKENS",
    "DEFAULT_PLANS",
    "EntitlementService",
    "FREE_PLAN_KEY",
    "Plan",
    "PlanAssignment",
    "PlanAssignmentError",
    "PlanAssignmentErrorCode",
    "PlanAssignmentResult",
    "PlanAssignmentService",
    "PlanCatalog",
    "UserEntitlements",
]
