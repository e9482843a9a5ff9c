"""Section-side bookkeeping of which AI edit group produced which command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..documents.model import AIEditGroupEntry, Document, _utcnow

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .commands import AIEditCommand

LOGGER = logging.getLogger(__name__)


def append(document: Document, command: "AIEditCommand") -> None:
    """Record ``command`` under its edit group on the owning section."""

    section = document.find_section(command.section_id)
    if section is None:
        return
    info = section.ai
    entry = info.find_group(command.ai_edit_group_id)
    if entry is None:
        entry = AIEditGroupEntry(
            group_id=command.ai_edit_group_id,
            applied_utc=command.applied_utc or _utcnow(),
            reason=command.ai_edit_group_reason,
        )
        info.ai_edit_groups.append(entry)
    if command.command_id not in entry.command_ids:
        entry.command_ids.append(command.command_id)
    if not entry.reason:
        entry.reason = command.ai_edit_group_reason
    info.last_modified_by_ai = True


def remove(document: Document, command: "AIEditCommand") -> None:
    """Drop ``command`` from its group entry, deleting the entry when empty."""

    section = document.find_section(command.section_id)
    if section is None:
        return
    info = section.ai
    entry = info.find_group(command.ai_edit_group_id)
    if entry is None:
        return
    if command.command_id in entry.command_ids:
        entry.command_ids.remove(command.command_id)
    if not entry.command_ids:
        info.ai_edit_groups = [item for item in info.ai_edit_groups if item is not entry]
        LOGGER.debug("Removed empty AI edit group %s from section %s", entry.group_id, section.section_id)
    info.last_modified_by_ai = bool(info.ai_edit_groups)


def is_applied(document: Document, command: "AIEditCommand") -> bool:
    """Return ``True`` when ``command`` is currently listed in its group entry."""

    section = document.find_section(command.section_id)
    if section is None:
        return False
    entry = section.ai.find_group(command.ai_edit_group_id)
    return entry is not None and command.command_id in entry.command_ids


__all__ = ["append", "remove", "is_applied"]
