"""
API Module - Host UI interface.

Exposes the engine via REST API.
The host UI:
1. Creates a session and sets up players, teams and challenges
2. Starts the game
3. Draws challenges and records results
4. Reads standings and winners

Sessions live in memory; a snapshot directory makes them resumable.
"""

from .schemas import (
    # Requests
    AddPlayerRequest,
    AwardPointsRequest,
    CreateSessionRequest,
    CreateTeamsRequest,
    FinalScoresRequest,
    ImportSnapshotRequest,
    LoadChallengesRequest,
    RecordResultRequest,
    SelectChallengeRequest,
    SetDurationRequest,
    SetGameModeRequest,
    # Responses
    ActionResponse,
    ErrorResponse,
    SessionResponse,
    SnapshotResponse,
    StandingsResponse,
    # Shared
    ChallengeInfo,
    PlayerInfo,
    TeamInfo,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "AddPlayerRequest",
    "AwardPointsRequest",
    "CreateSessionRequest",
    "CreateTeamsRequest",
    "FinalScoresRequest",
    "ImportSnapshotRequest",
    "LoadChallengesRequest",
    "RecordResultRequest",
    "SelectChallengeRequest",
    "SetDurationRequest",
    "SetGameModeRequest",
    # Responses
    "ActionResponse",
    "ErrorResponse",
    "SessionResponse",
    "SnapshotResponse",
    "StandingsResponse",
    # Shared
    "ChallengeInfo",
    "PlayerInfo",
    "TeamInfo",
    # Service
    "APIService",
    "create_app",
]
