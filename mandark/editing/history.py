"""
Edit history — single-slot, persisted undo state for the last apply run.

The store keeps exactly one :class:`HistoryEntry`.  A run begins a new
entry (overwriting the previous one), records each file's original text
before that file is first written, and commits when done.  ``revert``
restores every recorded file and then clears the store.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .document import safe_write
from .errors import RevertError

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_FILE = os.path.join("~", ".mandark", "history.json")


@dataclass
class HistoryEntry:
    """Pre-edit snapshots for one apply run."""
    timestamp: str
    affected_files: dict[str, str] = field(default_factory=dict)
    complete: bool = False

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "complete": self.complete,
            "files": self.affected_files,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        files = data["files"]
        if not isinstance(files, dict):
            raise ValueError("files must be a mapping")
        return cls(
            timestamp=str(data["timestamp"]),
            affected_files={str(k): str(v) for k, v in files.items()},
            complete=bool(data.get("complete", False)),
        )


@dataclass
class FileRestore:
    path: str
    restored: bool
    error: str = ""


@dataclass
class RevertResult:
    """Outcome of a revert, one :class:`FileRestore` per recorded file."""
    no_history: bool = False
    timestamp: str = ""
    files: list[FileRestore] = field(default_factory=list)

    @property
    def restored(self) -> list[str]:
        return [f.path for f in self.files if f.restored]

    @property
    def failed(self) -> list[FileRestore]:
        return [f for f in self.files if not f.restored]

    @property
    def success(self) -> bool:
        return not self.no_history and not self.failed


class HistoryStore:
    """Single-slot history persisted as JSON at *path*."""

    def __init__(self, path: str = DEFAULT_HISTORY_FILE) -> None:
        self.path = os.path.abspath(os.path.expanduser(path))
        self._current: Optional[HistoryEntry] = None

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def begin_run(self) -> HistoryEntry:
        """Start a new run, replacing whatever was recorded before."""
        self._current = HistoryEntry(
            timestamp=datetime.now(timezone.utc).isoformat()
        )
        self._save(self._current)
        logger.info("[History] Run started at %s", self._current.timestamp)
        return self._current

    def record_file(self, path: str, original_text: str) -> None:
        """Snapshot *path* for the current run.

        Only the first snapshot per file is kept, so the entry always holds
        the text from before the run touched the file.
        """
        if self._current is None:
            raise RuntimeError("record_file() called outside a run")
        key = os.path.abspath(path)
        if key in self._current.affected_files:
            return
        self._current.affected_files[key] = original_text
        # Persist now so a crash mid-run is still revertible
        self._save(self._current)

    def commit_run(self) -> Optional[HistoryEntry]:
        """Mark the current run complete."""
        entry = self._current
        if entry is None:
            return None
        entry.complete = True
        self._save(entry)
        self._current = None
        logger.info("[History] Run committed (%d files)", len(entry.affected_files))
        return entry

    @property
    def in_run(self) -> bool:
        return self._current is not None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> Optional[HistoryEntry]:
        """Return the recorded entry, or ``None`` if there is none."""
        if not os.path.isfile(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return HistoryEntry.from_dict(json.load(f))
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as exc:
            logger.warning("[History] Ignoring unreadable history %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        """Forget the recorded run."""
        self._current = None
        try:
            if os.path.isfile(self.path):
                os.remove(self.path)
        except OSError as exc:
            logger.warning("[History] Could not remove %s: %s", self.path, exc)

    def _save(self, entry: HistoryEntry) -> None:
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(entry.to_dict(), f, indent=2)
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Revert
    # ------------------------------------------------------------------

    def revert(self) -> RevertResult:
        """Restore every file of the last run, then clear the store."""
        entry = self.load()
        if entry is None or not entry.affected_files:
            logger.info("[History] Nothing to revert")
            self.clear()
            return RevertResult(no_history=True)

        result = RevertResult(timestamp=entry.timestamp)
        for path, original in entry.affected_files.items():
            try:
                _restore_file(path, original)
                result.files.append(FileRestore(path=path, restored=True))
                logger.info("[History] Restored %s", path)
            except RevertError as exc:
                result.files.append(FileRestore(path=path, restored=False, error=str(exc)))
                logger.error("[History] %s", exc)

        self.clear()
        return result


def _restore_file(path: str, original: str) -> None:
    """Write *original* back to *path* and check the byte count."""
    if not os.path.isfile(path):
        raise RevertError(path, "file no longer exists")
    expected = original.encode("utf-8")
    try:
        safe_write(path, expected)
        actual = os.path.getsize(path)
    except OSError as exc:
        raise RevertError(path, f"write failed: {exc}") from exc
    if actual != len(expected):
        raise RevertError(
            path, f"restored {actual} bytes, expected {len(expected)}"
        )
