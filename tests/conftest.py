"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from inkwell.documents.model import Chapter, Document, DocumentMetadata, Section, SectionContent, Synopsis
from inkwell.editor.processor import CommandProcessor
from inkwell.services.settings import AISettings, static_settings


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def hello_document() -> Document:
    section = Section(title="Intro", content=SectionContent(value="<p>Hello world</p>"))
    return Document(
        metadata=DocumentMetadata(title="Storm Notes", language="en"),
        chapters=[Chapter(title="One", sections=[section])],
        synopsis=Synopsis(),
    )


@pytest.fixture
def section_id(hello_document: Document) -> str:
    return hello_document.chapters[0].sections[0].section_id


@pytest.fixture
def processor(hello_document: Document) -> CommandProcessor:
    return CommandProcessor(hello_document)


@pytest.fixture
def ai_settings() -> AISettings:
    return AISettings(enabled=True)


@pytest.fixture
def settings_provider(ai_settings: AISettings):
    return static_settings(ai_settings)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()
