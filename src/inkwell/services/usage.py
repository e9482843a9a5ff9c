"""Token usage metering and per-user AI usage status."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from .entitlements import AI_ENABLED, AI_MONTHLY_TOKENS, EntitlementService

LOGGER = logging.getLogger(__name__)

TOTAL_KIND = "ai.total"
TEXT_KIND = "ai.text"
IMAGE_KIND = "ai.image"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def month_bounds(timestamp: datetime) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` calendar month containing ``timestamp`` (UTC)."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    timestamp = timestamp.astimezone(timezone.utc)
    start = datetime(timestamp.year, timestamp.month, 1, tzinfo=timezone.utc)
    if timestamp.month == 12:
        end = datetime(timestamp.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(timestamp.year, timestamp.month + 1, 1, tzinfo=timezone.utc)
    return start, end


@dataclass(slots=True, frozen=True)
class UsageEvent:
    user_id: str
    kind: str
    provider: str = ""
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_micros: Optional[int] = None
    document_id: Optional[str] = None
    section_id: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp_utc: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class UsageSnapshot:
    user_id: str
    period_start: datetime
    period_end: datetime
    kind: str
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_micros: int = 0
    updated_utc: datetime = field(default_factory=_utcnow)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens


class UsageMeter:
    """In-memory usage log with per-month aggregates.

    Each recorded event also counts towards the ``ai.total`` aggregate, so
    quota checks read a single figure regardless of the event kind.
    """

    def __init__(self, *, clock: Clock = _utcnow) -> None:
        self._clock = clock
        self._events: list[UsageEvent] = []
        self._aggregates: dict[tuple[str, str, datetime], UsageSnapshot] = {}
        self._lock = threading.Lock()

    @property
    def events(self) -> tuple[UsageEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def record(self, event: UsageEvent) -> UsageEvent:
        if not event.user_id:
            raise ValueError("Usage events require a user id.")
        now = self._clock()
        timestamp = event.timestamp_utc or now
        if event.timestamp_utc is None:
            event = replace(event, timestamp_utc=timestamp)
        start, end = month_bounds(timestamp)
        kinds = [event.kind] if event.kind.lower() == TOTAL_KIND else [event.kind, TOTAL_KIND]
        with self._lock:
            for kind in kinds:
                key = (event.user_id, kind, start)
                current = self._aggregates.get(key) or UsageSnapshot(event.user_id, start, end, kind, updated_utc=now)
                self._aggregates[key] = replace(
                    current,
                    total_input_tokens=current.total_input_tokens + event.input_tokens,
                    total_output_tokens=current.total_output_tokens + event.output_tokens,
                    total_cost_micros=current.total_cost_micros + (event.cost_micros or 0),
                    updated_utc=now,
                )
            self._events.append(event)
        LOGGER.debug(
            "Recorded %s usage for %s: input=%d output=%d",
            event.kind,
            event.user_id,
            event.input_tokens,
            event.output_tokens,
        )
        return event

    def get_current_period(self, user_id: str, kind: str = TOTAL_KIND) -> UsageSnapshot:
        now = self._clock()
        start, end = month_bounds(now)
        with self._lock:
            aggregate = self._aggregates.get((user_id, kind, start))
        if aggregate is None:
            return UsageSnapshot(user_id, start, end, kind, updated_utc=now)
        return aggregate

    def get_range(self, user_id: str, kind: str, start: datetime, end: datetime) -> UsageSnapshot:
        """Sum events in ``[start, end)``; ``ai.total`` covers every kind."""

        now = self._clock()
        if not user_id or not user_id.strip():
            return UsageSnapshot(user_id, start, end, kind, updated_utc=now)
        include_all = kind.lower() == TOTAL_KIND
        input_tokens = output_tokens = cost = 0
        with self._lock:
            events = list(self._events)
        for event in events:
            if event.user_id != user_id or event.timestamp_utc is None:
                continue
            if not (start <= event.timestamp_utc < end):
                continue
            if not include_all and event.kind != kind:
                continue
            input_tokens += event.input_tokens
            output_tokens += event.output_tokens
            cost += event.cost_micros or 0
        return UsageSnapshot(user_id, start, end, kind, input_tokens, output_tokens, cost, now)


# -----------------------------------------------------------------------------
# Status
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class AIUsageStatus:
    plan_name: str
    ai_enabled: bool
    quota_total: int
    quota_used: int
    quota_remaining: int


class AIUsageStatusService:
    def __init__(self, entitlements: EntitlementService, meter: UsageMeter) -> None:
        self._entitlements = entitlements
        self._meter = meter

    def get_status(self, user_id: str | None) -> AIUsageStatus:
        if not user_id or not user_id.strip():
            status = AIUsageStatus("Free", False, 0, 0, 0)
        else:
            entitlements = self._entitlements.get_entitlements(user_id)
            quota_total = self._entitlements.get_int(user_id, AI_MONTHLY_TOKENS) or 0
            quota_used = self._meter.get_current_period(user_id, TOTAL_KIND).total_tokens
            status = AIUsageStatus(
                entitlements.plan_name,
                self._entitlements.has(user_id, AI_ENABLED),
                quota_total,
                quota_used,
                max(0, quota_total - quota_used),
            )
        LOGGER.info(
            "AI entitlements resolved: user_id=%s plan=%s ai.enabled=%s quota_total=%d quota_remaining=%d",
            user_id or "",
            status.plan_name,
            status.ai_enabled,
            status.quota_total,
            status.quota_remaining,
        )
        return status


__all__ = [
    "AIUsageStatus",
    "AIUsageStatusService",
    "Clock",
    "IMAGE_KIND",
    "TEXT_KIND",
    "TOTAL_KIND",
    "UsageEvent",
    "UsageMeter",
    "UsageSnapshot",
    "month_bounds",
]
