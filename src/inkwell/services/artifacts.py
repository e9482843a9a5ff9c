"""In-memory storage for artifacts produced by AI providers."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..ai.ai_types import Artifact


class ArtifactStore:
    """Thread-safe artifact lookup by id; storing an id again replaces it."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}
        self._lock = threading.Lock()

    def store(self, artifact: Artifact) -> str:
        with self._lock:
            self._artifacts[artifact.artifact_id] = artifact
        return artifact.artifact_id

    def get(self, artifact_id: str) -> Artifact | None:
        with self._lock:
            return self._artifacts.get(artifact_id)

    def __contains__(self, artifact_id: object) -> bool:
        with self._lock:
            return artifact_id in self._artifacts

    def __len__(self) -> int:
        with self._lock:
            return len(self._artifacts)


__all__ = ["ArtifactStore"]
