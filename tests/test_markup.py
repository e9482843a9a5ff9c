from __future__ import annotations

import html
import re

import pytest

from inkwell.core.markup import (
    is_block_separator,
    map_plain_range,
    resolve_markup_range,
    splice_plain_range,
    to_plain_text,
)
from inkwell.core.ranges import TextRange

_TAGS = re.compile(r"<[^>]*>")


def _decoded(fragment: str) -> str:
    return html.unescape(_TAGS.sub("", fragment))


def test_plain_text_turns_block_closers_into_spaces() -> None:
    assert to_plain_text("<p>Hello</p><p>World</p>") == "Hello World "
    assert to_plain_text("line<br/>break") == "line break"
    assert to_plain_text("<p>Fish &amp; chips</p>") == "Fish & chips "
    assert to_plain_text("   ") == ""
    assert to_plain_text(None) == ""


def test_block_separator_detection() -> None:
    assert is_block_separator("/p")
    assert is_block_separator("/H2 ")
    assert is_block_separator("br /")
    assert not is_block_separator("p")
    assert not is_block_separator("/b")


def test_inline_markup_round_trips_every_range() -> None:
    markup = "<b>Hello</b> &amp; <i>good</i> world"
    plain = to_plain_text(markup)
    assert plain == "Hello & good world"

    for start in range(len(plain)):
        for length in range(1, len(plain) - start + 1):
            mapped = map_plain_range(markup, TextRange(start, length))
            assert mapped is not None, (start, length)
            begin, end = mapped
            assert _decoded(markup[begin:end]) == plain[start : start + length]


def test_range_after_block_separator_maps_into_next_block() -> None:
    markup = "<p>Hello</p><p>World</p>"

    begin, end = map_plain_range(markup, TextRange(6, 5))  # type: ignore[misc]

    assert markup[begin:end] == "World"


def test_empty_angle_brackets_are_skipped_by_projection_and_mapper() -> None:
    markup = "a<>b"

    assert to_plain_text(markup) == "ab"
    begin, end = map_plain_range(markup, TextRange(1, 1))  # type: ignore[misc]
    assert markup[begin:end] == "b"


def test_caret_positions_map_to_insertion_points() -> None:
    assert map_plain_range("<p>Hello world</p>", TextRange(5, 0)) == (8, 8)
    assert map_plain_range("<p>Hi</p>", TextRange(3, 0)) == (9, 9)


@pytest.mark.parametrize(
    "markup, text_range",
    [
        ("<p>Hello</p>", TextRange(2, 40)),
        ("<p>Hello <b", TextRange(0, 9)),
        ("", TextRange(0, 1)),
    ],
)
def test_unmappable_ranges_fall_back_to_whole_content(markup: str, text_range: TextRange) -> None:
    assert map_plain_range(markup, text_range) is None
    assert resolve_markup_range(markup, text_range) == (0, len(markup))


def test_splice_replaces_selection_and_escapes_text() -> None:
    assert splice_plain_range("<p>Hello world</p>", TextRange(0, 5), "Hi") == "<p>Hi world</p>"
    assert splice_plain_range("<p>Hello world</p>", TextRange(6, 5), "a < b") == "<p>Hello a &lt; b</p>"


def test_splice_outside_content_replaces_everything() -> None:
    assert splice_plain_range("<p>Hello</p>", TextRange(50, 2), "Fresh") == "Fresh"
