"""Manuscript domain model."""

from .factory import create_sample_document
from .model import (
    AIEditGroupEntry,
    AIHistoryEntry,
    Chapter,
    Document,
    DocumentArtifact,
    DocumentMetadata,
    Section,
    SectionAIInfo,
    SectionContent,
    Synopsis,
)
from .synopsis import SynopsisFieldCatalog, SynopsisFieldDefinition, UnknownSynopsisFieldError

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
    "SynopsisFieldCatalog",
    "SynopsisFieldDefinition",
    "UnknownSynopsisFieldError",
    "create_sample_document",
]
