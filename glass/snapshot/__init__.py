"""
Snapshot Module - Saving and resuming sessions.

The core defines what is persisted; where it goes is up to the caller.
SnapshotStore is the local-disk option used by the session layer.
"""

from .schema import SNAPSHOT_VERSION, SessionSnapshot
from .codec import SnapshotError, deserialize, serialize
from .store import SnapshotStore

__all__ = [
    "SNAPSHOT_VERSION",
    "SessionSnapshot",
    "SnapshotError",
    "deserialize",
    "serialize",
    "SnapshotStore",
]
