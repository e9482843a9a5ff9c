"""Reversible document mutations used by the undo/redo engine.

Every command follows the same lifecycle::

    CONSTRUCTED --execute--> EXECUTED --undo--> UNDONE --execute--> EXECUTED ...

Undo before the first execute raises :class:`CommandStateError`. Commands keep
whole-field snapshots of the state they overwrite instead of computing diffs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import ClassVar, Optional, Sequence

from ..core.markup import splice_plain_range
from ..core.ranges import TextRange
from ..documents.model import (
    Chapter,
    Document,
    DocumentArtifact,
    Section,
    SectionContent,
    Synopsis,
    _utcnow,
    new_id,
)
from ..documents.synopsis import SynopsisFieldCatalog, UnknownSynopsisFieldError
from . import provenance
from .errors import ChapterNotFoundError, CommandStateError, EditorError, SectionNotFoundError

LOGGER = logging.getLogger(__name__)


class CommandState(Enum):
    """Lifecycle state of a command."""

    CONSTRUCTED = auto()
    EXECUTED = auto()
    UNDONE = auto()


class EditOrigin(str, Enum):
    USER = "user"
    AI = "ai"


# -----------------------------------------------------------------------------
# Base classes
# -----------------------------------------------------------------------------


class DocumentCommand(ABC):
    """Base class for reversible document mutations."""

    name: ClassVar[str] = "DocumentCommand"

    def __init__(self) -> None:
        self.command_id = new_id()
        self.state = CommandState.CONSTRUCTED
        self.executed_utc: datetime | None = None

    @property
    def has_executed(self) -> bool:
        return self.state is not CommandState.CONSTRUCTED

    def execute(self, document: Document) -> None:
        self._apply(document)
        if self.executed_utc is None:
            self.executed_utc = _utcnow()
        self.state = CommandState.EXECUTED

    def undo(self, document: Document) -> None:
        if not self.has_executed:
            raise CommandStateError(f"{self.name} has not been executed.")
        self._revert(document)
        self.state = CommandState.UNDONE

    @abstractmethod
    def _apply(self, document: Document) -> None:
        """Mutate ``document`` and capture whatever ``_revert`` needs."""

    @abstractmethod
    def _revert(self, document: Document) -> None:
        """Restore the state captured by ``_apply``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(command_id={self.command_id!r}, state={self.state.name})"


class SectionEditCommand(DocumentCommand):
    """Command scoped to a single section."""

    def __init__(self, section_id: str, origin: EditOrigin = EditOrigin.USER) -> None:
        if not section_id:
            raise ValueError("section_id is required")
        super().__init__()
        self.section_id = section_id
        self.origin = origin

    @property
    def applied_utc(self) -> datetime | None:
        """Instant of the first execution; never changes afterwards."""

        return self.executed_utc

    def _locate(self, document: Document) -> Section:
        section = document.find_section(self.section_id)
        if section is None:
            raise SectionNotFoundError(self.section_id)
        return section


@dataclass(slots=True, frozen=True)
class AIEditGroup:
    """One AI turn; owns every command produced for a single proposal."""

    section_id: str
    reason: Optional[str] = None
    group_id: str = field(default_factory=new_id)
    created_utc: datetime = field(default_factory=_utcnow)


class AIEditCommand(SectionEditCommand):
    """Section command produced by an AI proposal."""

    def __init__(self, section_id: str, group: AIEditGroup, reason: str | None = None) -> None:
        super().__init__(section_id, EditOrigin.AI)
        if group.section_id != section_id:
            raise ValueError("AI edit group section must match the command section")
        self.group = group
        self.reason = reason

    @property
    def ai_edit_group_id(self) -> str:
        return self.group.group_id

    @property
    def ai_edit_group_reason(self) -> str | None:
        return self.group.reason or self.reason

    @property
    def text_range(self) -> TextRange | None:
        """Plain-text span touched by this command, if it is range based."""

        return None


# -----------------------------------------------------------------------------
# User edits
# -----------------------------------------------------------------------------


class UpdateSectionContentCommand(SectionEditCommand):
    name = "UpdateSectionContent"

    def __init__(self, section_id: str, new_content: str) -> None:
        super().__init__(section_id)
        self._new_content = new_content or ""
        self._previous: SectionContent | None = None
        self._previous_modified: datetime | None = None

    def _apply(self, document: Document) -> None:
        section = self._locate(document)
        self._previous = section.content
        self._previous_modified = section.modified_utc
        section.content = SectionContent(format=section.content.format, value=self._new_content)
        section.modified_utc = _utcnow()

    def _revert(self, document: Document) -> None:
        section = self._locate(document)
        section.content = self._previous or SectionContent()
        if self._previous_modified is not None:
            section.modified_utc = self._previous_modified


class _SectionFieldCommand(SectionEditCommand):
    """Replaces one string attribute of a section."""

    attribute: ClassVar[str] = ""

    def __init__(self, section_id: str, new_value: str) -> None:
        super().__init__(section_id)
        self._new_value = new_value or ""
        self._previous_value = ""
        self._previous_modified: datetime | None = None

    def _apply(self, document: Document) -> None:
        section = self._locate(document)
        self._previous_value = getattr(section, self.attribute) or ""
        self._previous_modified = section.modified_utc
        setattr(section, self.attribute, self._new_value)
        section.modified_utc = _utcnow()

    def _revert(self, document: Document) -> None:
        section = self._locate(document)
        setattr(section, self.attribute, self._previous_value)
        if self._previous_modified is not None:
            section.modified_utc = self._previous_modified


class UpdateSectionTitleCommand(_SectionFieldCommand):
    name = "UpdateSectionTitle"
    attribute = "title"


class UpdateSectionNotesCommand(_SectionFieldCommand):
    name = "UpdateSectionNotes"
    attribute = "notes"


class MoveSectionCommand(SectionEditCommand):
    name = "MoveSection"

    def __init__(self, section_id: str, new_order: int) -> None:
        super().__init__(section_id)
        self._new_order = int(new_order)
        self._previous_order = 0

    def _apply(self, document: Document) -> None:
        section = self._locate(document)
        self._previous_order = section.order
        section.order = self._new_order

    def _revert(self, document: Document) -> None:
        self._locate(document).order = self._previous_order


class ReorderSectionsCommand(DocumentCommand):
    """Rewrites the ``order`` of every section in a chapter."""

    name = "ReorderSections"

    def __init__(self, chapter_id: str, ordered_section_ids: Sequence[str]) -> None:
        if not chapter_id:
            raise ValueError("chapter_id is required")
        if not ordered_section_ids:
            raise ValueError("Section order list must not be empty.")
        super().__init__()
        self.chapter_id = chapter_id
        self._ordered_ids = tuple(ordered_section_ids)
        self._previous_orders: dict[str, int] = {}

    def _apply(self, document: Document) -> None:
        chapter = self._chapter(document)
        self._validate(chapter)
        self._previous_orders = {section.section_id: section.order for section in chapter.sections}
        targets = {section_id: order for order, section_id in enumerate(self._ordered_ids)}
        for section in chapter.sections:
            section.order = targets[section.section_id]

    def _revert(self, document: Document) -> None:
        chapter = self._chapter(document)
        for section in chapter.sections:
            if section.section_id in self._previous_orders:
                section.order = self._previous_orders[section.section_id]

    def _chapter(self, document: Document) -> Chapter:
        chapter = document.find_chapter(self.chapter_id)
        if chapter is None:
            raise ChapterNotFoundError(self.chapter_id)
        return chapter

    def _validate(self, chapter: Chapter) -> None:
        if len(self._ordered_ids) != len(chapter.sections):
            raise EditorError("Section order list must include every section in the chapter.")
        unique = set(self._ordered_ids)
        if len(unique) != len(self._ordered_ids):
            raise EditorError("Section order list contains duplicate section IDs.")
        if any(section.section_id not in unique for section in chapter.sections):
            raise EditorError("Section order list is missing a section ID.")


class UpdateSynopsisFieldManualCommand(SectionEditCommand):
    """User edit of a synopsis field; provenance is keyed to a section id."""

    name = "UpdateSynopsisFieldManual"

    def __init__(self, section_id: str, field_key: str, new_value: str) -> None:
        super().__init__(section_id)
        if SynopsisFieldCatalog.get(field_key) is None:
            raise UnknownSynopsisFieldError(field_key)
        self.field_key = field_key
        self._new_value = new_value or ""
        self._previous_value = ""
        self._previous_modified: datetime | None = None

    def _apply(self, document: Document) -> None:
        synopsis = _require_synopsis(document)
        self._previous_value = SynopsisFieldCatalog.get_value(synopsis, self.field_key)
        self._previous_modified = synopsis.modified_utc
        SynopsisFieldCatalog.set_value(synopsis, self.field_key, self._new_value)
        synopsis.modified_utc = _utcnow()

    def _revert(self, document: Document) -> None:
        synopsis = _require_synopsis(document)
        SynopsisFieldCatalog.set_value(synopsis, self.field_key, self._previous_value)
        if self._previous_modified is not None:
            synopsis.modified_utc = self._previous_modified


class CompositeCommand(DocumentCommand):
    """Runs child commands as one undoable unit."""

    name = "CompositeCommand"

    def __init__(self, commands: Sequence[DocumentCommand]) -> None:
        super().__init__()
        self.commands = tuple(commands)

    def _apply(self, document: Document) -> None:
        for command in self.commands:
            command.execute(document)

    def _revert(self, document: Document) -> None:
        for command in reversed(self.commands):
            command.undo(document)


# -----------------------------------------------------------------------------
# AI edits
# -----------------------------------------------------------------------------


class AIReplacePlainTextRangeCommand(AIEditCommand):
    """Replaces a plain-text range of a section's markup with AI text."""

    name = "AIReplacePlainTextRange"

    def __init__(
        self,
        section_id: str,
        text_range: TextRange,
        new_text: str,
        group: AIEditGroup,
        reason: str | None = None,
    ) -> None:
        super().__init__(section_id, group, reason)
        self._range = TextRange.from_value(text_range)
        self.new_text = new_text or ""
        self._previous_value: str | None = None
        self._previous_modified: datetime | None = None

    @property
    def text_range(self) -> TextRange:
        return self._range

    def _apply(self, document: Document) -> None:
        section = self._locate(document)
        markup = section.content.value or ""
        self._previous_value = markup
        self._previous_modified = section.modified_utc
        section.content = SectionContent(
            format=section.content.format,
            value=splice_plain_range(markup, self._range, self.new_text),
        )
        section.modified_utc = _utcnow()

    def _revert(self, document: Document) -> None:
        section = self._locate(document)
        section.content = SectionContent(format=section.content.format, value=self._previous_value or "")
        if self._previous_modified is not None:
            section.modified_utc = self._previous_modified


class UpdateSynopsisFieldCommand(AIEditCommand):
    """AI replacement of one synopsis field."""

    name = "UpdateSynopsisField"

    def __init__(
        self,
        section_id: str,
        field_key: str,
        new_value: str,
        group: AIEditGroup,
        reason: str | None = None,
    ) -> None:
        super().__init__(section_id, group, reason)
        if SynopsisFieldCatalog.get(field_key) is None:
            raise UnknownSynopsisFieldError(field_key)
        self.field_key = field_key
        self.new_value = new_value or ""
        self._previous_value = ""
        self._previous_modified: datetime | None = None

    def _apply(self, document: Document) -> None:
        synopsis = _require_synopsis(document)
        self._previous_value = SynopsisFieldCatalog.get_value(synopsis, self.field_key)
        self._previous_modified = synopsis.modified_utc
        SynopsisFieldCatalog.set_value(synopsis, self.field_key, self.new_value)
        synopsis.modified_utc = _utcnow()

    def _revert(self, document: Document) -> None:
        synopsis = _require_synopsis(document)
        SynopsisFieldCatalog.set_value(synopsis, self.field_key, self._previous_value)
        if self._previous_modified is not None:
            synopsis.modified_utc = self._previous_modified


class SetCoverImageCommand(AIEditCommand):
    """Stores an artifact on the document and points a section's cover at it."""

    name = "SetCoverImage"

    def __init__(
        self,
        section_id: str,
        artifact: DocumentArtifact,
        group: AIEditGroup,
        reason: str | None = None,
    ) -> None:
        super().__init__(section_id, group, reason)
        self.artifact = artifact
        self._previous_cover_id: str | None = None
        self._previous_artifacts: list[DocumentArtifact] = []

    def _apply(self, document: Document) -> None:
        section = self._locate(document)
        self._previous_cover_id = section.cover_image_id
        self._previous_artifacts = list(document.artifacts)
        if document.find_artifact(self.artifact.artifact_id) is None:
            document.artifacts.append(self.artifact)
        section.cover_image_id = self.artifact.artifact_id

    def _revert(self, document: Document) -> None:
        section = self._locate(document)
        document.artifacts = list(self._previous_artifacts)
        section.cover_image_id = self._previous_cover_id


class RollbackAIEditGroupCommand(DocumentCommand):
    """Undoes every command of one AI edit group as a single history entry.

    Executing walks the commands newest-first and strips their provenance;
    undoing replays them oldest-first and re-records provenance.
    """

    name = "RollbackAIEditGroup"

    def __init__(self, section_id: str, group_id: str, commands_in_order: Sequence[AIEditCommand]) -> None:
        if not section_id:
            raise ValueError("Section ID is required.")
        if not group_id:
            raise ValueError("Group ID is required.")
        if not commands_in_order:
            raise ValueError("At least one command is required for rollback.")
        super().__init__()
        self.section_id = section_id
        self.group_id = group_id
        self.commands = tuple(
            command
            for command in commands_in_order
            if command.section_id == section_id and command.ai_edit_group_id == group_id
        )

    def _apply(self, document: Document) -> None:
        for command in reversed(self.commands):
            command.undo(document)
            provenance.remove(document, command)
        LOGGER.debug("Rolled back AI edit group %s (%d command(s))", self.group_id, len(self.commands))

    def _revert(self, document: Document) -> None:
        for command in self.commands:
            command.execute(document)
            provenance.append(document, command)


def _require_synopsis(document: Document) -> Synopsis:
    if document.synopsis is None:
        raise EditorError("Synopsis is not initialized.")
    return document.synopsis


__all__ = [
    "AIEditCommand",
    "AIEditGroup",
    "AIReplacePlainTextRangeCommand",
    "CommandState",
    "CompositeCommand",
    "DocumentCommand",
    "EditOrigin",
    "MoveSectionCommand",
    "ReorderSectionsCommand",
    "RollbackAIEditGroupCommand",
    "SectionEditCommand",
    "SetCoverImageCommand",
    "UpdateSectionContentCommand",
    "UpdateSectionNotesCommand",
    "UpdateSectionTitleCommand",
    "UpdateSynopsisFieldCommand",
    "UpdateSynopsisFieldManualCommand",
]
