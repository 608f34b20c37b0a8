"""
Action System - Actions, payloads, and results.

Actions represent:
1. Game flow (start, select challenge, record result, end, reset)
2. Setup (roster, teams, mode, duration)
3. Challenge pool edits
4. Live scoring during quiz-style challenges

All state changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import time

from .errors import EngineError, ErrorCode
from .state import (
    Challenge,
    ChallengeResult,
    DurationMode,
    GameMode,
    ParticipantRef,
    SessionState,
)


class ActionType(Enum):
    """Types of actions in the system."""
    # Game flow
    START_GAME = "start_game"
    SELECT_CHALLENGE = "select_challenge"
    RECORD_RESULT = "record_result"
    END_GAME = "end_game"
    RESET_GAME = "reset_game"
    RESET_TURN = "reset_turn"

    # Setup
    ADD_PLAYER = "add_player"
    REMOVE_PLAYER = "remove_player"
    UPDATE_PLAYER = "update_player"
    CREATE_TEAMS = "create_teams"
    RANDOMIZE_TEAMS = "randomize_teams"
    ADD_PLAYER_TO_TEAM = "add_player_to_team"
    REMOVE_PLAYER_FROM_TEAM = "remove_player_from_team"
    SET_GAME_MODE = "set_game_mode"
    SET_DURATION = "set_duration"

    # Challenge pools
    LOAD_CHALLENGES = "load_challenges"
    ADD_CHALLENGE = "add_challenge"
    ADD_CUSTOM_CHALLENGE = "add_custom_challenge"
    UPDATE_CUSTOM_CHALLENGE = "update_custom_challenge"
    REMOVE_CUSTOM_CHALLENGE = "remove_custom_challenge"

    # Live scoring
    AWARD_POINTS = "award_points"
    SET_FINAL_SCORES = "set_final_scores"


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields.
    This is a generic container; validation happens in the reducer.
    """
    player_id: str | None = None
    team_id: str | None = None
    name: str | None = None

    challenge: Challenge | None = None
    challenges: list[Challenge] | None = None
    challenge_id: str | None = None
    result: ChallengeResult | None = None

    game_mode: GameMode | None = None
    duration_mode: DurationMode | None = None
    duration_value: int | None = None
    team_count: int | None = None
    team_names: list[str] | None = None

    participant_id: str | None = None
    points: float | None = None
    scores: dict[str, float] | None = None


@dataclass
class Action:
    """
    A complete action to be applied to the session state.

    Actions are validated before application and applied atomically
    by the reducer.
    """
    action_type: ActionType
    payload: ActionPayload = field(default_factory=ActionPayload)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def start_game(cls) -> Action:
        return cls(ActionType.START_GAME)

    @classmethod
    def end_game(cls) -> Action:
        return cls(ActionType.END_GAME)

    @classmethod
    def reset_game(cls) -> Action:
        return cls(ActionType.RESET_GAME)

    @classmethod
    def reset_turn(cls) -> Action:
        return cls(ActionType.RESET_TURN)

    @classmethod
    def select_challenge(cls, challenge: Challenge) -> Action:
        return cls(ActionType.SELECT_CHALLENGE, ActionPayload(challenge=challenge))

    @classmethod
    def record_result(
        cls,
        challenge_id: str,
        completed: bool,
        winner_id: str | None = None,
        participant_ids: list[str] | None = None,
        scores: dict[str, float] | None = None,
        timestamp_millis: int | None = None,
    ) -> Action:
        """
        Factory for a result.

        participant_ids defaults to the challenge's assigned participants;
        pass them explicitly to also record representative players.
        """
        result = ChallengeResult(
            challenge_id=challenge_id,
            completed=completed,
            winner_id=winner_id,
            participant_ids=tuple(participant_ids or ()),
            scores=dict(scores) if scores is not None else None,
            timestamp_millis=(
                timestamp_millis if timestamp_millis is not None else int(time.time() * 1000)
            ),
        )
        return cls(ActionType.RECORD_RESULT, ActionPayload(result=result))

    @classmethod
    def add_player(cls, name: str, player_id: str | None = None) -> Action:
        return cls(ActionType.ADD_PLAYER, ActionPayload(name=name, player_id=player_id))

    @classmethod
    def remove_player(cls, player_id: str) -> Action:
        return cls(ActionType.REMOVE_PLAYER, ActionPayload(player_id=player_id))

    @classmethod
    def update_player(cls, player_id: str, name: str) -> Action:
        return cls(ActionType.UPDATE_PLAYER, ActionPayload(player_id=player_id, name=name))

    @classmethod
    def create_teams(cls, team_count: int, team_names: list[str] | None = None) -> Action:
        return cls(
            ActionType.CREATE_TEAMS,
            ActionPayload(team_count=team_count, team_names=team_names or []),
        )

    @classmethod
    def randomize_teams(cls) -> Action:
        return cls(ActionType.RANDOMIZE_TEAMS)

    @classmethod
    def add_player_to_team(cls, team_id: str, player_id: str) -> Action:
        return cls(
            ActionType.ADD_PLAYER_TO_TEAM,
            ActionPayload(team_id=team_id, player_id=player_id),
        )

    @classmethod
    def remove_player_from_team(cls, team_id: str, player_id: str) -> Action:
        return cls(
            ActionType.REMOVE_PLAYER_FROM_TEAM,
            ActionPayload(team_id=team_id, player_id=player_id),
        )

    @classmethod
    def set_game_mode(cls, game_mode: GameMode) -> Action:
        return cls(ActionType.SET_GAME_MODE, ActionPayload(game_mode=game_mode))

    @classmethod
    def set_duration(cls, duration_mode: DurationMode, duration_value: int) -> Action:
        return cls(
            ActionType.SET_DURATION,
            ActionPayload(duration_mode=duration_mode, duration_value=duration_value),
        )

    @classmethod
    def load_challenges(cls, challenges: list[Challenge]) -> Action:
        return cls(ActionType.LOAD_CHALLENGES, ActionPayload(challenges=list(challenges)))

    @classmethod
    def add_challenge(cls, challenge: Challenge) -> Action:
        return cls(ActionType.ADD_CHALLENGE, ActionPayload(challenge=challenge))

    @classmethod
    def add_custom_challenge(cls, challenge: Challenge) -> Action:
        return cls(ActionType.ADD_CUSTOM_CHALLENGE, ActionPayload(challenge=challenge))

    @classmethod
    def update_custom_challenge(cls, challenge: Challenge) -> Action:
        return cls(ActionType.UPDATE_CUSTOM_CHALLENGE, ActionPayload(challenge=challenge))

    @classmethod
    def remove_custom_challenge(cls, challenge_id: str) -> Action:
        return cls(ActionType.REMOVE_CUSTOM_CHALLENGE, ActionPayload(challenge_id=challenge_id))

    @classmethod
    def award_points(cls, participant_id: str, points: float) -> Action:
        return cls(
            ActionType.AWARD_POINTS,
            ActionPayload(participant_id=participant_id, points=points),
        )

    @classmethod
    def set_final_scores(cls, scores: dict[str, float]) -> Action:
        return cls(ActionType.SET_FINAL_SCORES, ActionPayload(scores=dict(scores)))


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New state (if succeeded)
    - Typed error (if failed)
    - Human-readable changes (for logs and UI)
    """
    success: bool
    new_state: SessionState | None = None
    error: EngineError | None = None
    state_changes: list[str] = field(default_factory=list)

    @property
    def error_code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @classmethod
    def failure(cls, error: EngineError) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error)

    @classmethod
    def success_with_state(
        cls,
        state: SessionState,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])


@dataclass
class AssignmentResult:
    """Participants chosen for a challenge, or why none could be chosen."""
    success: bool
    participants: list[ParticipantRef] = field(default_factory=list)
    error: EngineError | None = None

    @property
    def participant_ids(self) -> list[str]:
        return [p.id for p in self.participants]

    @classmethod
    def of(cls, participants: list[ParticipantRef]) -> AssignmentResult:
        return cls(success=True, participants=participants)

    @classmethod
    def failure(cls, error: EngineError) -> AssignmentResult:
        return cls(success=False, error=error)
