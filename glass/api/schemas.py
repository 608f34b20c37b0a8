"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the host UI and the engine.
All responses include explicit types for OpenAPI schema generation.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or was ended
- INSUFFICIENT_PARTICIPANTS: Not enough players/teams for the operation
- NO_CURRENT_PARTICIPANT: Nobody holds the turn
- INVALID_TRANSITION: Operation not allowed in the current phase
- UNKNOWN_ENTITY: A referenced player, team or challenge does not exist
- VALIDATION_ERROR: Malformed input
- SNAPSHOT_INVALID: Snapshot could not be read
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from ..engine_core.state import ChallengeTopology, DurationMode, GameMode, GamePhase, ParticipantKind


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INSUFFICIENT_PARTICIPANTS = "INSUFFICIENT_PARTICIPANTS"
    NO_CURRENT_PARTICIPANT = "NO_CURRENT_PARTICIPANT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    UNKNOWN_ENTITY = "UNKNOWN_ENTITY"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SNAPSHOT_INVALID = "SNAPSHOT_INVALID"


# =============================================================================
# Shared Models
# =============================================================================

class SettingsInfo(BaseModel):
    """Prebuilt challenge settings. `data` is passed through untouched."""
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)


class ChallengeInfo(BaseModel):
    """A challenge as sent by a catalog or the host."""
    id: Optional[str] = Field(default=None, description="Generated when omitted")
    title: str
    topology: ChallengeTopology
    point_value: int = 1
    reusable: bool = True
    description: str = ""
    difficulty: int = Field(default=1, ge=1, le=3)
    category: Optional[str] = None
    max_reuse_count: Optional[int] = Field(default=None, ge=1)
    prebuilt: Optional[bool] = Field(default=None, description="Defaults to whether settings are given")
    settings: Optional[SettingsInfo] = None

    model_config = {"from_attributes": True}


class PlayerInfo(BaseModel):
    player_id: str
    name: str
    score: float = 0
    team_id: Optional[str] = None


class TeamInfo(BaseModel):
    team_id: str
    name: str
    color_tag: str
    member_ids: list[str] = Field(default_factory=list)
    score: float = 0


class ParticipantInfo(BaseModel):
    participant_id: str
    kind: ParticipantKind


class StandingInfo(BaseModel):
    participant_id: str
    kind: ParticipantKind
    name: str
    score: float
    rank: int


class WarningInfo(BaseModel):
    code: str
    message: str
    entity_id: Optional[str] = None


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    seed: Optional[int] = Field(default=None, description="Seed for reproducible draws")


class AddPlayerRequest(BaseModel):
    name: str = Field(min_length=1)
    player_id: Optional[str] = None


class RenamePlayerRequest(BaseModel):
    name: str = Field(min_length=1)


class CreateTeamsRequest(BaseModel):
    team_count: int = Field(ge=1)
    team_names: list[str] = Field(default_factory=list)


class TeamMemberRequest(BaseModel):
    player_id: str


class SetGameModeRequest(BaseModel):
    game_mode: GameMode


class SetDurationRequest(BaseModel):
    duration_mode: DurationMode
    duration_value: int = Field(ge=1, description="Challenges, or minutes for time mode")


class LoadChallengesRequest(BaseModel):
    challenges: list[ChallengeInfo]


class SelectChallengeRequest(BaseModel):
    challenge_id: str


class RecordResultRequest(BaseModel):
    completed: bool = True
    winner_id: Optional[str] = None
    scores: Optional[dict[str, float]] = Field(
        default=None, description="Final per-participant totals for quiz challenges"
    )


class AwardPointsRequest(BaseModel):
    participant_id: str
    points: float


class FinalScoresRequest(BaseModel):
    scores: dict[str, float]


class ImportSnapshotRequest(BaseModel):
    snapshot: dict[str, Any]


# =============================================================================
# Response Models
# =============================================================================

class SessionResponse(BaseModel):
    """Full view of a session for the host UI."""
    session_id: str
    phase: GamePhase
    game_mode: GameMode
    duration_mode: DurationMode
    duration_value: int
    current_round: int
    current_turn_index: int
    players: list[PlayerInfo] = Field(default_factory=list)
    teams: list[TeamInfo] = Field(default_factory=list)
    challenge_count: int = 0
    custom_challenge_count: int = 0
    results_count: int = 0
    current_challenge: Optional[ChallengeInfo] = None
    current_participants: list[ParticipantInfo] = Field(default_factory=list)
    representatives: dict[str, str] = Field(
        default_factory=dict, description="Team ID -> player who plays for it"
    )
    time_remaining: Optional[float] = None
    is_finished: bool = False


class ActionResponse(BaseModel):
    success: bool = True
    changes: list[str] = Field(default_factory=list)
    session: SessionResponse


class StandingsResponse(BaseModel):
    session_id: str
    standings: list[StandingInfo]
    winners: list[StandingInfo]


class SnapshotResponse(BaseModel):
    session_id: str
    snapshot: dict[str, Any]
    warnings: list[WarningInfo] = Field(default_factory=list)


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeInfo]
    custom_challenges: list[ChallengeInfo]
    available_ids: list[str]


class SessionListResponse(BaseModel):
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    environment: str


class ErrorResponse(BaseModel):
    """Standardized error body."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None
