"""Per-request usage gate: entitlement, auth, rate limit, and token quota."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..services.entitlements import (
    AI_DAILY_TOKENS_CAP,
    AI_ENABLED,
    AI_IMAGES_COVER,
    AI_MONTHLY_TOKENS,
    EntitlementService,
)
from ..services.settings import SettingsProvider
from ..services.usage import TOTAL_KIND, UsageMeter
from .errors import ErrorCode
from .providers.base import AIProvider

LOGGER = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60.0
AI_REQUESTS_PER_MINUTE = "ai.requests_per_minute"


@dataclass(slots=True, frozen=True)
class UsageDecision:
    """Outcome of a policy check; denials carry a stable code and message."""

    allowed: bool
    user_id: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def allow(cls, user_id: str | None) -> "UsageDecision":
        return cls(True, user_id or "")

    @classmethod
    def deny(cls, user_id: str | None, error_code: str, message: str) -> "UsageDecision":
        return cls(False, user_id or "", error_code, message)


# -----------------------------------------------------------------------------
# Rate limiting
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class _RateCounter:
    window_start: float
    count: int
    lock: threading.Lock


class RateLimiter:
    """Per-user request counter over a sliding one-minute window.

    Counters are created on a user's first request and reset once their
    window has elapsed. Each counter is mutated under its own lock.
    """

    def __init__(
        self,
        *,
        window_seconds: float = RATE_WINDOW_SECONDS,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window_seconds = window_seconds
        self._time_source = time_source
        self._counters: dict[str, _RateCounter] = {}
        self._registry_lock = threading.Lock()

    def hit(self, user_id: str, limit: int) -> bool:
        """Count one request; return ``True`` while the user is within ``limit``."""

        counter = self._counter_for(user_id)
        with counter.lock:
            now = self._time_source()
            if now - counter.window_start >= self._window_seconds:
                counter.window_start = now
                counter.count = 0
            counter.count += 1
            return counter.count <= limit

    def count(self, user_id: str) -> int:
        """Requests counted for ``user_id`` in the current window."""

        with self._registry_lock:
            counter = self._counters.get(user_id)
        if counter is None:
            return 0
        with counter.lock:
            return counter.count

    def reset(self, user_id: str | None = None) -> None:
        with self._registry_lock:
            if user_id is None:
                self._counters.clear()
            else:
                self._counters.pop(user_id, None)

    def _counter_for(self, user_id: str) -> _RateCounter:
        with self._registry_lock:
            counter = self._counters.get(user_id)
            if counter is None:
                counter = _RateCounter(self._time_source(), 0, threading.Lock())
                self._counters[user_id] = counter
            return counter


# -----------------------------------------------------------------------------
# Policy
# -----------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsagePolicy:
    """Short-circuiting usage checks evaluated before every provider call."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        entitlements: EntitlementService,
        meter: UsageMeter,
        *,
        rate_limiter: RateLimiter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings_provider = settings_provider
        self._entitlements = entitlements
        self._meter = meter
        self._rate_limiter = rate_limiter or RateLimiter()
        self._clock = clock

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def evaluate(
        self,
        provider: AIProvider | None,
        action_id: str,
        user_id: str | None,
        *,
        is_image_action: bool = False,
    ) -> UsageDecision:
        decision = self._evaluate(provider, action_id, (user_id or "").strip(), is_image_action)
        if not decision.allowed:
            LOGGER.debug(
                "Usage denied for action %s user=%s: %s",
                action_id,
                decision.user_id or "<anonymous>",
                decision.error_code,
            )
        return decision

    def _evaluate(
        self, provider: AIProvider | None, action_id: str, user_id: str, is_image_action: bool
    ) -> UsageDecision:
        if provider is None:
            return UsageDecision.deny(None, ErrorCode.PROVIDER_MISSING, "AI provider is unavailable.")
        if not provider.requires_entitlement:
            return UsageDecision.allow(user_id)

        settings = self._settings_provider()
        if not settings.enabled:
            return UsageDecision.deny(user_id, ErrorCode.DISABLED, "AI is disabled by configuration.")
        if not user_id:
            return UsageDecision.deny(None, ErrorCode.AUTH_REQUIRED, "Sign in to use AI.")
        if not self._entitlements.has(user_id, AI_ENABLED):
            return UsageDecision.deny(user_id, ErrorCode.DISABLED, "AI is not enabled for your plan.")
        if is_image_action and not self._entitlements.has(user_id, AI_IMAGES_COVER):
            return UsageDecision.deny(
                user_id, ErrorCode.COVER_DISABLED, "Cover image generation is not included in your plan."
            )

        per_minute = self._entitlements.get_int(user_id, AI_REQUESTS_PER_MINUTE)
        if per_minute is None:
            per_minute = settings.rate_limiting.requests_per_minute
        if not self._rate_limiter.hit(user_id, per_minute):
            return UsageDecision.deny(
                user_id, ErrorCode.RATE_LIMITED, "Too many AI requests. Please wait a minute and try again."
            )

        limit = self._entitlements.get_int(user_id, AI_MONTHLY_TOKENS) or 0
        if limit <= 0:
            return UsageDecision.deny(user_id, ErrorCode.QUOTA_EXCEEDED, "AI usage quota is exhausted.")
        used = self._meter.get_current_period(user_id, TOTAL_KIND).total_tokens
        if used >= limit:
            return UsageDecision.deny(user_id, ErrorCode.QUOTA_EXCEEDED, "AI usage quota is exhausted.")

        daily_cap = self._entitlements.get_int(user_id, AI_DAILY_TOKENS_CAP)
        if daily_cap is not None:
            now = self._clock().astimezone(timezone.utc)
            day_start = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
            today = self._meter.get_range(user_id, TOTAL_KIND, day_start, day_start + timedelta(days=1))
            if today.total_tokens >= daily_cap:
                return UsageDecision.deny(user_id, ErrorCode.QUOTA_EXCEEDED, "Daily AI usage cap reached.")

        return UsageDecision.allow(user_id)


__all__ = ["AI_REQUESTS_PER_MINUTE", "RATE_WINDOW_SECONDS", "RateLimiter", "UsageDecision", "UsagePolicy"]
