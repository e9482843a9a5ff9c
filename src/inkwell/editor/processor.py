"""Command execution with undo/redo stacks and AI edit-group rollback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..core.ranges import TextRange
from ..documents.model import AIHistoryEntry, Document
from . import provenance
from .commands import AIEditCommand, DocumentCommand, RollbackAIEditGroupCommand
from .errors import HistoryEmptyError

LOGGER = logging.getLogger(__name__)

DocumentListener = Callable[[Document], None]


@dataclass(slots=True, frozen=True)
class AIEditSelectionInfo:
    """Whether a selection touches text produced by an applied AI edit."""

    is_ai_edit: bool
    group_id: Optional[str] = None
    has_multiple_groups: bool = False


@dataclass(slots=True, frozen=True)
class AIEditRangeInfo:
    """Merged plain-text span covered by one applied AI edit group."""

    text_range: TextRange
    group_id: str


class CommandProcessor:
    """Runs commands against one document and tracks their history.

    Two undo mechanisms coexist. The LIFO undo/redo stacks reverse whatever
    ran last. Edit-group rollback targets one AI group regardless of its
    position in the stacks and scans every AI command this processor ever
    executed. Callers must serialize access; a processor is not safe for
    concurrent writers.
    """

    def __init__(self, document: Document, *, listeners: Iterable[DocumentListener] | None = None) -> None:
        self._document = document
        self._undo_stack: list[DocumentCommand] = []
        self._redo_stack: list[DocumentCommand] = []
        self._ai_commands: list[AIEditCommand] = []
        self._listeners: list[DocumentListener] = list(listeners or [])

    # ------------------------------------------------------------------
    # Properties & observers
    # ------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def ai_commands(self) -> tuple[AIEditCommand, ...]:
        """Every AI command executed through this processor, oldest first."""

        return tuple(self._ai_commands)

    def add_listener(self, listener: DocumentListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: DocumentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear_history(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()

    # ------------------------------------------------------------------
    # Execute / undo / redo
    # ------------------------------------------------------------------
    def execute(self, command: DocumentCommand) -> None:
        self._run(command)
        self._undo_stack.append(command)
        self._redo_stack.clear()
        LOGGER.debug("Executed %s", command)
        self._notify()

    def undo(self) -> DocumentCommand:
        if not self._undo_stack:
            raise HistoryEmptyError("No command available to undo.")
        command = self._undo_stack.pop()
        command.undo(self._document)
        if isinstance(command, AIEditCommand):
            provenance.remove(self._document, command)
        self._redo_stack.append(command)
        LOGGER.debug("Undid %s", command)
        self._notify()
        return command

    def redo(self) -> DocumentCommand:
        if not self._redo_stack:
            raise HistoryEmptyError("No command available to redo.")
        command = self._redo_stack.pop()
        self._run(command)
        self._undo_stack.append(command)
        LOGGER.debug("Redid %s", command)
        self._notify()
        return command

    def discard(self, command: DocumentCommand) -> None:
        """Reverse an executed command and drop it from every history.

        Unlike :meth:`undo` the command is not offered for redo.
        """

        if all(existing is not command for existing in self._undo_stack):
            raise ValueError(f"{command} is not on the undo stack.")
        command.undo(self._document)
        self._undo_stack = [existing for existing in self._undo_stack if existing is not command]
        if isinstance(command, AIEditCommand):
            provenance.remove(self._document, command)
            self._ai_commands = [existing for existing in self._ai_commands if existing is not command]
        LOGGER.debug("Discarded %s", command)
        self._notify()

    def _run(self, command: DocumentCommand) -> None:
        command.execute(self._document)
        if isinstance(command, AIEditCommand):
            provenance.append(self._document, command)
            if all(existing is not command for existing in self._ai_commands):
                self._ai_commands.append(command)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._document)

    # ------------------------------------------------------------------
    # Section AI history
    # ------------------------------------------------------------------
    def append_ai_history_entry(self, section_id: str, entry: AIHistoryEntry) -> bool:
        """Attach ``entry`` to a section unless its edit group is already logged."""

        section = self._document.find_section(section_id)
        if section is None:
            return False
        history = section.ai.ai_history
        if any(existing.edit_group_id == entry.edit_group_id for existing in history):
            return False
        history.append(entry)
        self._notify()
        return True

    def remove_ai_history_entry(self, section_id: str, edit_group_id: str) -> bool:
        if not edit_group_id:
            return False
        section = self._document.find_section(section_id)
        if section is None:
            return False
        remaining = [entry for entry in section.ai.ai_history if entry.edit_group_id != edit_group_id]
        if len(remaining) == len(section.ai.ai_history):
            return False
        section.ai.ai_history = remaining
        self._notify()
        return True

    # ------------------------------------------------------------------
    # AI edit queries
    # ------------------------------------------------------------------
    def get_ai_edit_selection_info(
        self, section_id: str, selection: TextRange, section_plain_length: int
    ) -> AIEditSelectionInfo:
        """Report which applied AI group, if any, ``selection`` falls into."""

        section = self._document.find_section(section_id) if section_id else None
        if section is None or not section.ai.ai_edit_groups:
            return AIEditSelectionInfo(False)
        has_multiple = len(section.ai.ai_edit_groups) > 1
        for command in reversed(self._applied_ai_commands(section_id)):
            if selection.intersects(self._command_range(command, section_plain_length)):
                return AIEditSelectionInfo(True, command.ai_edit_group_id, has_multiple)
        return AIEditSelectionInfo(False, None, has_multiple)

    def get_ai_edit_ranges(self, section_id: str, section_plain_length: int) -> list[AIEditRangeInfo]:
        """Return one merged range per applied AI group, sorted by start."""

        merged: dict[str, TextRange] = {}
        for command in self._applied_ai_commands(section_id):
            text_range = self._command_range(command, section_plain_length)
            group_id = command.ai_edit_group_id
            existing = merged.get(group_id)
            merged[group_id] = text_range if existing is None else existing.union(text_range)
        ranges = [AIEditRangeInfo(text_range, group_id) for group_id, text_range in merged.items()]
        ranges.sort(key=lambda info: info.text_range.start)
        return ranges

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------
    def rollback_ai_edit_group(self, section_id: str, group_id: str) -> bool:
        """Undo every applied command of ``group_id`` as one history entry.

        Returns ``False`` when the section, the group, or its commands are
        missing. The rollback itself lands on the undo stack so undo replays
        the group.
        """

        if not section_id:
            raise ValueError("Section ID is required.")
        if not group_id:
            raise ValueError("Group ID is required.")
        section = self._document.find_section(section_id)
        if section is None or section.ai.find_group(group_id) is None:
            return False
        commands = [
            command
            for command in self._applied_ai_commands(section_id)
            if command.ai_edit_group_id == group_id
        ]
        if not commands:
            return False
        self.execute(RollbackAIEditGroupCommand(section_id, group_id, commands))
        return True

    def rollback_last_ai_edit(self, section_id: str) -> bool:
        if not section_id:
            raise ValueError("Section ID is required.")
        section = self._document.find_section(section_id)
        if section is None or not section.ai.ai_edit_groups:
            return False
        return self.rollback_ai_edit_group(section_id, section.ai.ai_edit_groups[-1].group_id)

    def rollback_all_ai_edits(self, section_id: str) -> int:
        """Roll back every AI group on a section, newest first."""

        if not section_id:
            raise ValueError("Section ID is required.")
        section = self._document.find_section(section_id)
        if section is None:
            return 0
        group_ids = [entry.group_id for entry in section.ai.ai_edit_groups]
        rolled_back = 0
        for group_id in reversed(group_ids):
            if self.rollback_ai_edit_group(section_id, group_id):
                rolled_back += 1
        return rolled_back

    def _applied_ai_commands(self, section_id: str) -> list[AIEditCommand]:
        return [
            command
            for command in self._ai_commands
            if command.section_id == section_id and provenance.is_applied(self._document, command)
        ]

    @staticmethod
    def _command_range(command: AIEditCommand, section_plain_length: int) -> TextRange:
        text_range = command.text_range
        if text_range is not None:
            return text_range
        return TextRange(0, max(0, section_plain_length))


__all__ = ["AIEditRangeInfo", "AIEditSelectionInfo", "CommandProcessor", "DocumentListener"]
