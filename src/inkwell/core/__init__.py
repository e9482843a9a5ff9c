"""Core text primitives shared by the editor and AI layers."""

from .markup import map_plain_range, resolve_markup_range, splice_plain_range, to_plain_text
from .ranges import TextRange

__all__ = [
    "TextRange",
    "map_plain_range",
    "resolve_markup_range",
    "splice_plain_range",
    "to_plain_text",
]
