"""
Snapshot Store - Keeps the active session's snapshot on local disk.

The store:
- Holds a single blob per key (the "current active session")
- Stores plain JSON, one file per key
- Is overwritten after every change while a game is active
- Is deleted once the game finishes

Writes go to a temporary file that is renamed into place, so a crash
mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations
import json
import logging
import os
import tempfile
from pathlib import Path

from ..engine_core.errors import MigrationWarning
from ..engine_core.state import SessionState
from .codec import SnapshotError, deserialize, serialize

logger = logging.getLogger(__name__)

DEFAULT_KEY = "glassGameState"


class SnapshotStore:
    """
    File-based store for session snapshots.

    Usage:
        store = SnapshotStore(directory="~/.glass/snapshots")

        # After every change while the game is active
        store.save(state)

        # On startup
        restored = store.load()
        if restored:
            state, warnings = restored
    """

    def __init__(self, directory: str | Path | None = None, key: str = DEFAULT_KEY):
        if directory is None:
            directory = Path.home() / ".glass" / "snapshots"
        self.directory = Path(directory).expanduser()
        self.key = key

        # Ensure snapshot directory exists
        self.directory.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, state: SessionState):
        """Overwrite the stored snapshot with `state`."""
        payload = json.dumps(serialize(state), indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{self.key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise SnapshotError(f"Could not write snapshot {self.path}: {e}") from e

    def load(self) -> tuple[SessionState, list[MigrationWarning]] | None:
        """
        Read the stored snapshot.

        Returns None if nothing is stored. A file that is not UTF-8 JSON is
        removed and treated as missing. Records that fail to restore raise
        SnapshotError.
        """
        if not self.path.exists():
            return None

        try:
            record = json.loads(self.path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Discarding unreadable snapshot %s", self.path)
            self.path.unlink(missing_ok=True)
            return None

        return deserialize(record)

    def delete(self):
        """Remove the stored snapshot, if any."""
        self.path.unlink(missing_ok=True)
