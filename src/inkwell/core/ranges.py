"""Structured helpers for representing plain-text spans."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(slots=True, frozen=True)
class TextRange(Sequence[int]):
    """Selection expressed as ``start`` + ``length`` in plain-text offsets."""

    start: int
    length: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", self._coerce_index(self.start, "start"))
        object.__setattr__(self, "length", self._coerce_index(self.length, "length"))

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"TextRange {label} must be an integer") from exc
        if number < 0:
            raise ValueError(f"TextRange {label} must be non-negative")
        return number

    def __len__(self) -> int:
        return 2

    def __getitem__(self, index: int | slice) -> int | tuple[int, ...]:
        if isinstance(index, slice):
            return self.to_tuple()[index]
        if index == 0:
            return self.start
        if index == 1:
            return self.length
        raise IndexError("TextRange index out of range")

    def __iter__(self) -> Iterator[int]:
        yield self.start
        yield self.length

    @property
    def end(self) -> int:
        """Return the exclusive end offset."""

        return self.start + self.length

    @property
    def is_caret(self) -> bool:
        """Return ``True`` when the range collapses to an insertion point."""

        return self.length == 0

    def to_tuple(self) -> tuple[int, int]:
        return (self.start, self.length)

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "length": self.length}

    def intersects(self, other: TextRange) -> bool:
        """Return ``True`` when ``self`` touches ``other``.

        A caret intersects a range when it sits anywhere inside it, including
        at either boundary. Non-empty ranges must overlap by at least one
        character.
        """

        if self.is_caret:
            return other.start <= self.start <= other.end
        return self.start < other.end and other.start < self.end

    def union(self, other: TextRange) -> TextRange:
        """Return the smallest range covering both ``self`` and ``other``."""

        start = min(self.start, other.start)
        end = max(self.end, other.end)
        return TextRange(start, end - start)

    def clamp(self, upper: int) -> TextRange:
        """Clamp the range to ``[0, upper]``."""

        upper = max(0, upper)
        start = min(self.start, upper)
        end = min(self.end, upper)
        return TextRange(start, max(0, end - start))

    @classmethod
    def from_bounds(cls, start: int, end: int) -> TextRange:
        """Build a range from two offsets, swapping them when reversed."""

        if end < start:
            start, end = end, start
        return cls(start, end - start)

    @classmethod
    def from_value(cls, value: Any) -> TextRange:
        """Coerce ``value`` into a :class:`TextRange`."""

        if isinstance(value, TextRange):
            return value
        if isinstance(value, Mapping):
            start = value.get("start")
            length = value.get("length")
            if length is None and value.get("end") is not None and start is not None:
                return cls.from_bounds(int(start), int(value["end"]))
            if start is None or length is None:
                raise ValueError("TextRange mappings require start and length keys")
            return cls(start, length)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("TextRange sequences must have exactly two entries")
            return cls(seq[0], seq[1])
        raise TypeError("Unsupported TextRange input")

    @classmethod
    def zero(cls) -> TextRange:
        return cls(0, 0)


__all__ = ["TextRange"]
