"""
Snapshot Records - Pydantic models for the persisted session shape.

These records define the portable blob written after every change to an
active session. The current layout is version 2; older layouts are
upgraded by migrations.py before they reach these models.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from ..engine_core.state import (
    DEFAULT_DURATION_VALUE,
    ChallengeTopology,
    DurationMode,
    GameMode,
    GamePhase,
    ParticipantKind,
    team_color,
)

SNAPSHOT_VERSION = 2


class PlayerRecord(BaseModel):
    id: Optional[str] = None
    name: str
    score: float = 0
    team_id: Optional[str] = None


class TeamRecord(BaseModel):
    id: Optional[str] = None
    name: str
    color_tag: str = Field(default_factory=lambda: team_color(0))
    member_ids: list[str] = Field(default_factory=list)
    score: float = 0


class SettingsRecord(BaseModel):
    """Tagged settings payload. `data` is stored exactly as given."""
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)


class ChallengeRecord(BaseModel):
    id: Optional[str] = None
    title: str
    topology: ChallengeTopology
    point_value: int = 1
    reusable: bool = True
    description: str = ""
    difficulty: int = 1
    category: Optional[str] = None
    max_reuse_count: Optional[int] = None
    prebuilt: Optional[bool] = Field(
        default=None, description="Missing in old records; inferred from settings"
    )
    settings: Optional[SettingsRecord] = None


class ParticipantRecord(BaseModel):
    id: str
    kind: ParticipantKind


class ResultRecord(BaseModel):
    challenge_id: str
    completed: bool
    winner_id: Optional[str] = None
    participant_ids: list[str] = Field(default_factory=list)
    scores: Optional[dict[str, float]] = None
    timestamp_millis: int = 0
    topology: Optional[ChallengeTopology] = None
    awarded: dict[str, float] = Field(default_factory=dict)


class SessionSnapshot(BaseModel):
    """Everything needed to resume a session."""
    version: int = SNAPSHOT_VERSION
    phase: GamePhase = GamePhase.SETUP
    game_mode: GameMode = GameMode.FREE_FOR_ALL
    duration_mode: DurationMode = DurationMode.BY_CHALLENGE_COUNT
    duration_value: int = DEFAULT_DURATION_VALUE
    current_round: int = 0
    current_turn_index: int = 0

    players: list[PlayerRecord] = Field(default_factory=list)
    teams: list[TeamRecord] = Field(default_factory=list)

    challenge_pool: list[ChallengeRecord] = Field(default_factory=list)
    custom_challenges: list[ChallengeRecord] = Field(default_factory=list)
    used_challenge_ids: list[str] = Field(default_factory=list)

    results: list[ResultRecord] = Field(default_factory=list)

    current_challenge: Optional[ChallengeRecord] = None
    current_challenge_participants: list[ParticipantRecord] = Field(default_factory=list)
    representatives: dict[str, str] = Field(default_factory=dict)

    pending_tally: dict[str, float] = Field(default_factory=dict)
    pending_awarded: dict[str, float] = Field(default_factory=dict)
