"""Token counting for usage accounting."""

from __future__ import annotations

import logging
import math
from typing import Dict, Protocol

import tiktoken

LOGGER = logging.getLogger(__name__)

# Average bytes per token for English prose (GPT-style tokenization)
BYTES_PER_TOKEN = 4
_FALLBACK_ENCODING = "cl100k_base"


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...


def estimate_tokens(text: str) -> int:
    """Estimate tokens from UTF-8 byte length; 0 for empty text."""

    if not text:
        return 0
    return max(1, math.ceil(len(text.encode("utf-8", errors="ignore")) / BYTES_PER_TOKEN))


class TiktokenCounter:
    """Token counter backed by OpenAI's tiktoken package."""

    def __init__(self, model_name: str, *, encoding_name: str | None = None) -> None:
        if not model_name:
            raise ValueError("model_name is required for TiktokenCounter")
        self.model_name = model_name
        self._encoding = self._load_encoding(model_name, encoding_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))

    @staticmethod
    def _load_encoding(model_name: str, encoding_name: str | None) -> tiktoken.Encoding:
        if encoding_name:
            return tiktoken.get_encoding(encoding_name)
        try:
            return tiktoken.encoding_for_model(model_name)
        except KeyError:
            LOGGER.debug("Falling back to %s encoding for model %s", _FALLBACK_ENCODING, model_name)
            return tiktoken.get_encoding(_FALLBACK_ENCODING)


class TokenCounterRegistry:
    """Caches one counter per model name."""

    def __init__(self) -> None:
        self._counters: Dict[str, TokenCounterProtocol] = {}

    def register(self, model_name: str, counter: TokenCounterProtocol) -> None:
        key = self._normalize_key(model_name)
        if not key:
            raise ValueError("model_name is required for token counter registration")
        self._counters[key] = counter

    def get(self, model_name: str) -> TokenCounterProtocol:
        key = self._normalize_key(model_name)
        counter = self._counters.get(key)
        if counter is None:
            counter = TiktokenCounter(model_name)
            self._counters[key] = counter
        return counter

    def count(self, model_name: str, text: str) -> int:
        return self.get(model_name).count(text)

    @staticmethod
    def _normalize_key(model_name: str | None) -> str:
        return (model_name or "").strip().lower()


__all__ = [
    "BYTES_PER_TOKEN",
    "TiktokenCounter",
    "TokenCounterProtocol",
    "TokenCounterRegistry",
    "estimate_tokens",
]
