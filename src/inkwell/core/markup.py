"""Conversions between stored rich markup and its plain-text projection.

The AI layer reads and writes plain text while sections persist HTML. The
projection used everywhere in the package is:

* closing block tags (``</p>``, ``</div>``, ``</h1>`` ... ``</code>``) and any
  ``<br>`` contribute exactly one space,
* every other tag is dropped,
* character references (``&amp;``, ``&#39;`` ...) count as their decoded text.

:func:`map_plain_range` walks the markup with the same rules so offsets in the
projection can be translated back into markup offsets.
"""

from __future__ import annotations

import html
import logging
import re

from .ranges import TextRange

LOGGER = logging.getLogger(__name__)

BLOCK_SEPARATOR_TAGS: frozenset[str] = frozenset(
    {
        "p",
        "div",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "li",
        "blockquote",
        "ul",
        "ol",
        "section",
        "article",
        "header",
        "footer",
        "pre",
        "code",
    }
)

_SEPARATOR_RE = re.compile(
    r"</(?:p|div|h[1-6]|li|blockquote|ul|ol|section|article|header|footer|pre|code)\s*>|<br\s*/?>",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")
_BR_RE = re.compile(r"br\s*/?$", re.IGNORECASE)


def to_plain_text(markup: str | None) -> str:
    """Return the plain-text projection of ``markup``."""

    if not markup or not markup.strip():
        return ""
    text = _SEPARATOR_RE.sub(" ", markup)
    text = _TAG_RE.sub("", text)
    return _ENTITY_RE.sub(lambda match: html.unescape(match.group(0)), text)


def is_block_separator(tag_body: str) -> bool:
    """Return ``True`` when the tag between ``<`` and ``>`` maps to one space."""

    trimmed = tag_body.strip()
    if not trimmed:
        return False
    if _BR_RE.match(trimmed):
        return True
    if not trimmed.startswith("/"):
        return False
    name = trimmed[1:].strip().split(None, 1)[0] if trimmed[1:].strip() else ""
    return name.lower() in BLOCK_SEPARATOR_TAGS


def map_plain_range(markup: str, text_range: TextRange) -> tuple[int, int] | None:
    """Translate a plain-text range into ``(start, end)`` markup offsets.

    Returns ``None`` when either boundary cannot be located, for example when
    the range extends past the projection or the markup has an unterminated
    tag. A boundary that falls on a block separator resolves to the offset just
    after the separator tag.
    """

    target_start = text_range.start
    target_end = text_range.end
    start: int | None = None
    end: int | None = None
    plain = 0
    index = 0
    length = len(markup)

    while index < length:
        if text_range.is_caret and start is not None:
            break
        char = markup[index]
        if char == "<":
            tag_end = markup.find(">", index)
            if tag_end < 0:
                break
            if is_block_separator(markup[index + 1 : tag_end]):
                if plain == target_start and start is None:
                    start = tag_end + 1
                plain += 1
                if plain == target_end and end is None and start is not None:
                    end = tag_end + 1
                    break
            index = tag_end + 1
            continue
        if char == "&":
            match = _ENTITY_RE.match(markup, index)
            if match is not None:
                decoded = html.unescape(match.group(0))
                for _ in decoded:
                    if plain == target_start and start is None:
                        start = index
                    plain += 1
                    if plain == target_end and end is None and start is not None:
                        end = match.end()
                        break
                index = match.end()
                if end is not None:
                    break
                continue
        if plain == target_start and start is None:
            start = index
        plain += 1
        if plain == target_end and end is None and start is not None:
            end = index + 1
            break
        index += 1

    if text_range.is_caret:
        if start is None and plain == target_start:
            # Caret at the very end of the projection.
            start = length
        if start is None:
            return None
        return (start, start)
    if start is None or end is None:
        return None
    return (start, end)


def resolve_markup_range(markup: str, text_range: TextRange) -> tuple[int, int]:
    """Map ``text_range`` into ``markup`` falling back to the whole content."""

    mapped = map_plain_range(markup, text_range)
    if mapped is None:
        LOGGER.debug(
            "Unable to map plain range %s into %d-char markup; using full content",
            text_range.to_tuple(),
            len(markup),
        )
        return (0, len(markup))
    start, end = mapped
    if end < start:
        start, end = end, start
    return (start, end)


def splice_plain_range(markup: str, text_range: TextRange, replacement: str) -> str:
    """Replace ``text_range`` of ``markup`` with HTML-escaped ``replacement``."""

    start, end = resolve_markup_range(markup, text_range)
    return markup[:start] + html.escape(replacement or "", quote=False) + markup[end:]


__all__ = [
    "BLOCK_SEPARATOR_TAGS",
    "to_plain_text",
    "is_block_separator",
    "map_plain_range",
    "resolve_markup_range",
    "splice_plain_range",
]
