"""Command engine: reversible edits, provenance, and undo/redo."""

from .commands import (
    AIEditCommand,
    AIEditGroup,
    AIReplacePlainTextRangeCommand,
    CommandState,
    CompositeCommand,
    DocumentCommand,
    EditOrigin,
    MoveSectionCommand,
    ReorderSectionsCommand,
    RollbackAIEditGroupCommand,
    SetCoverImageCommand,
    UpdateSectionContentCommand,
    UpdateSectionNotesCommand,
    UpdateSectionTitleCommand,
    UpdateSynopsisFieldCommand,
    UpdateSynopsisFieldManualCommand,
)
from .errors import ChapterNotFoundError, CommandStateError, EditorError, HistoryEmptyError, SectionNotFoundError
from .processor import AIEditRangeInfo, AIEditSelectionInfo, CommandProcessor

__all__ = [
    "AIEditCommand",
    "AIEditGroup",
    "AIEditRangeInfo",
    "AIEditSelectionInfo",
    "AIReplacePlainTextRangeCommand",
    "ChapterNotFoundError",
    "CommandProcessor",
    "CommandState",
    "CommandStateError",
    "CompositeCommand",
    "DocumentCommand",
    "EditOrigin",
    "EditorError",
    "HistoryEmptyError",
    "MoveSectionCommand",
    "ReorderSectionsCommand",
    "RollbackAIEditGroupCommand",
    "SectionNotFoundError",
    "SetCoverImageCommand",
    "UpdateSectionContentCommand",
    "UpdateSectionNotesCommand",
    "UpdateSectionTitleCommand",
    "UpdateSynopsisFieldCommand",
    "UpdateSynopsisFieldManualCommand",
]
