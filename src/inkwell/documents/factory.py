"""Factory helpers for seeding new documents."""

from __future__ import annotations

from .model import (
    Chapter,
    Document,
    DocumentMetadata,
    Section,
    SectionContent,
    Synopsis,
    _utcnow,
)

_SAMPLE_SECTIONS: tuple[tuple[str, str], ...] = (
    (
        "Opening Scene",
        "<h1>Opening Scene</h1><p>The storm rolled in just after dusk, wrapping the town in a soft gray hush.</p>",
    ),
    (
        "Chapter One",
        "<h2>Chapter One</h2><p>Eva traced the map with her finger, pausing at the edge of the inked coastline.</p>",
    ),
    (
        "Chapter Two",
        "<h2>Chapter Two</h2><p>By morning, the docks were empty, save for a single lantern swaying against the tide.</p>",
    ),
)


def create_sample_document() -> Document:
    """Return the demo manuscript shown to first-time users."""

    now = _utcnow()
    sections = [
        Section(
            title=title,
            order=order,
            content=SectionContent(format="html", value=markup),
            created_utc=now,
            modified_utc=now,
        )
        for order, (title, markup) in enumerate(_SAMPLE_SECTIONS)
    ]
    return Document(
        metadata=DocumentMetadata(
            title="Sample Draft",
            author="Demo",
            language="en",
            tags=["demo"],
            created_utc=now,
            modified_utc=now,
        ),
        chapters=[Chapter(title="Draft", order=0, sections=sections)],
        synopsis=Synopsis(modified_utc=now),
    )


__all__ = ["create_sample_document"]
