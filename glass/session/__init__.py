"""
Session Module - Runs party games for callers.

A session represents one game:
- Created when the host opens a game
- Holds the authoritative SessionState
- Applies actions through the reducer
- Saves a snapshot after every change while the game is active

The snapshot is deleted once the game finishes.
"""

from .manager import GameSession, SessionManager
from .timer import GameTimer

__all__ = [
    "GameSession",
    "SessionManager",
    "GameTimer",
]
