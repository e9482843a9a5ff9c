"""External log of AI actions a user has run against a document."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


@dataclass(slots=True, frozen=True)
class AIActionHistoryEntry:
    proposal_id: str
    action_key: str
    user_id: str
    document_id: str
    section_id: str
    created_utc: datetime
    summary: Optional[str] = None
    original_text: Optional[str] = None
    proposed_text: Optional[str] = None
    provider_id: Optional[str] = None
    model_id: Optional[str] = None
    is_applied: bool = False
    last_applied_at: Optional[datetime] = None
    applied_count: int = 0


class AIActionHistoryStore:
    """Keeps entries per (user, document); applied state comes from recorded events."""

    def __init__(self) -> None:
        self._entries: dict[str, list[AIActionHistoryEntry]] = {}
        self._applied: dict[str, list[datetime]] = {}
        self._lock = threading.Lock()

    def add(self, entry: AIActionHistoryEntry) -> None:
        key = self._key(entry.user_id, entry.document_id)
        with self._lock:
            self._entries.setdefault(key, []).append(entry)

    def list(self, user_id: str, document_id: str) -> list[AIActionHistoryEntry]:
        with self._lock:
            entries = list(self._entries.get(self._key(user_id, document_id), ()))
            applied = {entry.proposal_id: list(self._applied.get(entry.proposal_id, ())) for entry in entries}
        return [self._with_applied_state(entry, applied[entry.proposal_id]) for entry in entries]

    def add_applied_event(self, user_id: str, proposal_id: str, applied_at: datetime) -> None:
        """Record that ``proposal_id`` was applied.

        Raises:
            LookupError: no entry with that id belongs to ``user_id``.
        """

        with self._lock:
            known = any(
                entry.proposal_id == proposal_id and entry.user_id == user_id
                for entries in self._entries.values()
                for entry in entries
            )
            if not known:
                raise LookupError("History entry not found.")
            self._applied.setdefault(proposal_id, []).append(applied_at)

    @staticmethod
    def _with_applied_state(entry: AIActionHistoryEntry, applied: list[datetime]) -> AIActionHistoryEntry:
        if not applied:
            return replace(entry, is_applied=False, applied_count=0, last_applied_at=None)
        return replace(entry, is_applied=True, applied_count=len(applied), last_applied_at=max(applied))

    @staticmethod
    def _key(user_id: str, document_id: str) -> str:
        return f"{user_id}:{document_id}"


__all__ = ["AIActionHistoryEntry", "AIActionHistoryStore"]
