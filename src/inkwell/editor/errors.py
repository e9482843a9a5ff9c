"""Exceptions raised by the command engine.

These indicate caller contract violations and are meant to propagate.
"""

from __future__ import annotations


class EditorError(RuntimeError):
    """Base class for command engine failures."""


class CommandStateError(EditorError):
    """Raised when a command is driven through an invalid state transition."""


class HistoryEmptyError(CommandStateError):
    """Raised when undo/redo is requested with an empty stack."""


class SectionNotFoundError(EditorError, LookupError):
    """Raised when a command targets a section missing from the document."""

    def __init__(self, section_id: str) -> None:
        super().__init__(f"Section {section_id} was not found.")
        self.section_id = section_id


class ChapterNotFoundError(EditorError, LookupError):
    def __init__(self, chapter_id: str) -> None:
        super().__init__(f"Chapter {chapter_id} was not found.")
        self.chapter_id = chapter_id


__all__ = [
    "ChapterNotFoundError",
    "CommandStateError",
    "EditorError",
    "HistoryEmptyError",
    "SectionNotFoundError",
]
