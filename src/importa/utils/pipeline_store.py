"""Local pipeline store: one versioned JSON entry per import.

Writes are compare-and-swap: a caller reads ``(state, version)``, computes a
transition, and saves with ``expected_version``. A concurrent writer bumps
the version first, so the stale save raises ConcurrentUpdateError instead of
silently overwriting the other transition.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from importa import config as _config
from importa.models.pipeline import ImportPipelineState
from importa.services.exceptions import ArchivedPipelineError, ConcurrentUpdateError

logger = logging.getLogger(__name__)


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


@dataclass(frozen=True)
class StoredPipeline:
    import_id: str
    state: ImportPipelineState
    version: int
    archived: bool = False


class PipelineStore:
    """JSON-file store of pipeline states keyed by import id."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or _config.get_pipeline_store_path()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold an exclusive file lock during read-modify-write."""
        p = self.path
        p.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(p.with_suffix(".lock")):
            yield

    def _load(self) -> dict[str, dict[str, Any]]:
        p = self.path
        if not p.exists():
            return {}
        try:
            return json.loads(p.read_text())
        except (json.JSONDecodeError, ValueError):
            _backup_corrupt(p)
            return {}

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        p = self.path
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(".tmp")
        tmp.write_text(json.dumps(entries, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, p)

    @staticmethod
    def _to_stored(import_id: str, entry: dict[str, Any]) -> StoredPipeline:
        return StoredPipeline(
            import_id=import_id,
            state=ImportPipelineState.from_dict(entry["state"]),
            version=int(entry["version"]),
            archived=bool(entry.get("archived", False)),
        )

    def create(self, import_id: str, state: ImportPipelineState) -> StoredPipeline:
        """Register a new import at version 1. Existing ids are rejected."""
        with self._locked():
            entries = self._load()
            if import_id in entries:
                raise ConcurrentUpdateError(import_id, 0, int(entries[import_id]["version"]))
            entries[import_id] = {"version": 1, "state": state.to_dict()}
            self._save(entries)
        return StoredPipeline(import_id, state, 1)

    def get(self, import_id: str) -> StoredPipeline | None:
        with self._locked():
            entry = self._load().get(import_id)
        if entry is None:
            return None
        return self._to_stored(import_id, entry)

    def save(
        self, import_id: str, state: ImportPipelineState, expected_version: int
    ) -> StoredPipeline:
        """Replace the state only if the stored version still equals *expected_version*."""
        with self._locked():
            entries = self._load()
            entry = entries.get(import_id)
            actual = int(entry["version"]) if entry else 0
            if entry is not None and entry.get("archived"):
                logger.warning("Write to archived pipeline %s rejected", import_id)
                raise ArchivedPipelineError(import_id)
            if entry is None or actual != expected_version:
                logger.warning(
                    "Stale pipeline write for %s (expected v%d, stored v%d)",
                    import_id,
                    expected_version,
                    actual,
                )
                raise ConcurrentUpdateError(import_id, expected_version, actual)
            new_version = actual + 1
            entries[import_id] = {**entry, "version": new_version, "state": state.to_dict()}
            self._save(entries)
        return StoredPipeline(import_id, state, new_version)

    def archive(self, import_id: str) -> bool:
        """Mark an import as superseded; it stays readable but no longer writable."""
        with self._locked():
            entries = self._load()
            entry = entries.get(import_id)
            if entry is None:
                return False
            entry["archived"] = True
            entry["version"] = int(entry["version"]) + 1
            self._save(entries)
        return True

    def list_pipelines(self, include_archived: bool = False) -> list[StoredPipeline]:
        with self._locked():
            entries = self._load()
        stored = [self._to_stored(k, v) for k, v in entries.items()]
        if not include_archived:
            stored = [s for s in stored if not s.archived]
        return stored
