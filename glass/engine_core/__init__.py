"""
Engine Core - Deterministic party-game state management.

The engine is the runtime that:
1. Holds the SessionState of one game
2. Assigns participants to each challenge
3. Applies actions via the reducer
4. Keeps the scoring ledger and the turn rotation
"""

from .state import (
    Challenge,
    ChallengeResult,
    ChallengeSettings,
    ChallengeTopology,
    DurationMode,
    GameMode,
    GamePhase,
    ParticipantKind,
    ParticipantRef,
    Player,
    PrebuiltKind,
    SessionState,
    Team,
)
from .errors import EngineError, ErrorCode, MigrationCode, MigrationWarning
from .action import Action, ActionType, ActionPayload, ActionResult, AssignmentResult
from .reducer import Reducer, apply_action
from .assignment import select_participants, select_representatives, solo_representative
from .rotation import TurnAdvance, advance_turn, current_participant, time_limit_seconds
from .scoring import Standing, apply_result, compute_standings, determine_winners
from .pool import available_challenges, next_challenge, starter_challenges

__all__ = [
    "Challenge",
    "ChallengeResult",
    "ChallengeSettings",
    "ChallengeTopology",
    "DurationMode",
    "GameMode",
    "GamePhase",
    "ParticipantKind",
    "ParticipantRef",
    "Player",
    "PrebuiltKind",
    "SessionState",
    "Team",
    "EngineError",
    "ErrorCode",
    "MigrationCode",
    "MigrationWarning",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "AssignmentResult",
    "Reducer",
    "apply_action",
    "select_participants",
    "select_representatives",
    "solo_representative",
    "TurnAdvance",
    "advance_turn",
    "current_participant",
    "time_limit_seconds",
    "Standing",
    "apply_result",
    "compute_standings",
    "determine_winners",
    "available_challenges",
    "next_challenge",
    "starter_challenges",
]
