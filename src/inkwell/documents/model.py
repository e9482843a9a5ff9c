"""Dataclasses describing a manuscript: chapters, sections, and AI provenance."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class DocumentMetadata:
    """User-visible metadata for a document."""

    title: str = ""
    subtitle: Optional[str] = None
    author: str = ""
    language: str = ""
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created_utc: datetime = field(default_factory=_utcnow)
    modified_utc: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class SectionContent:
    """Rich markup stored for a section."""

    format: str = "html"
    value: str = ""


@dataclass(slots=True)
class AIEditGroupEntry:
    """Provenance record of one AI edit group applied to a section."""

    group_id: str
    applied_utc: datetime
    reason: Optional[str] = None
    command_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "applied_utc": self.applied_utc.isoformat(),
            "reason": self.reason,
            "command_ids": list(self.command_ids),
        }


@dataclass(slots=True)
class AIHistoryEntry:
    """Section-side record of an applied AI action, kept for review panels."""

    edit_group_id: str
    action_id: str
    provider_id: str
    operation_summary: str = ""
    target_scope: str = "Selection"
    affected_section_id: Optional[str] = None
    instruction: Optional[str] = None
    before_text: Optional[str] = None
    after_text: Optional[str] = None
    entry_id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class SectionAIInfo:
    """AI bookkeeping stored on each section."""

    last_modified_by_ai: bool = False
    ai_edit_groups: list[AIEditGroupEntry] = field(default_factory=list)
    ai_history: list[AIHistoryEntry] = field(default_factory=list)

    def find_group(self, group_id: str) -> AIEditGroupEntry | None:
        """Return the most recent entry recorded for ``group_id``."""

        for entry in reversed(self.ai_edit_groups):
            if entry.group_id == group_id:
                return entry
        return None


@dataclass(slots=True)
class Section:
    """Smallest editable unit of a manuscript."""

    title: str = ""
    content: SectionContent = field(default_factory=SectionContent)
    notes: str = ""
    order: int = 0
    section_id: str = field(default_factory=new_id)
    cover_image_id: Optional[str] = None
    ai: SectionAIInfo = field(default_factory=SectionAIInfo)
    created_utc: datetime = field(default_factory=_utcnow)
    modified_utc: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Chapter:
    """Ordered group of sections."""

    title: str = ""
    order: int = 0
    sections: list[Section] = field(default_factory=list)
    chapter_id: str = field(default_factory=new_id)


@dataclass(slots=True)
class DocumentArtifact:
    """Binary asset (for now only images) embedded in a document."""

    artifact_id: str
    mime_type: str
    base64_data: Optional[str] = None
    data_url: Optional[str] = None


@dataclass(slots=True)
class Synopsis:
    """Structured story synopsis edited field by field."""

    premise: str = ""
    protagonist: str = ""
    antagonist: str = ""
    central_conflict: str = ""
    stakes: str = ""
    arc: str = ""
    setting: str = ""
    ending: str = ""
    modified_utc: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Document:
    """A manuscript made of chapters, each owning ordered sections."""

    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    chapters: list[Chapter] = field(default_factory=list)
    document_id: str = field(default_factory=new_id)
    artifacts: list[DocumentArtifact] = field(default_factory=list)
    synopsis: Optional[Synopsis] = None

    def iter_sections(self) -> Iterator[tuple[Chapter, int, Section]]:
        """Yield ``(chapter, index, section)`` for every section in order."""

        for chapter in self.chapters:
            for index, section in enumerate(chapter.sections):
                yield chapter, index, section

    def find_section(self, section_id: str) -> Section | None:
        """Locate a section by id with a linear scan."""

        for _chapter, _index, section in self.iter_sections():
            if section.section_id == section_id:
                return section
        return None

    def find_chapter(self, chapter_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.chapter_id == chapter_id:
                return chapter
        return None

    def find_artifact(self, artifact_id: str) -> DocumentArtifact | None:
        for artifact in self.artifacts:
            if artifact.artifact_id == artifact_id:
                return artifact
        return None


__all__ = [
    "AIEditGroupEntry",
    "AIHistoryEntry",
    "Chapter",
    "Document",
    "DocumentArtifact",
    "DocumentMetadata",
    "Section",
    "SectionAIInfo",
    "SectionContent",
    "Synopsis",
    "new_id",
]
