"""
Turn Rotation - Whose turn it is, round counting, and end conditions.

The turn only moves after a SOLO challenge. Shared challenges (pairwise,
team, all-vs-all) leave it where it was, so the next SOLO challenge goes
to the party right after the one whose turn it was.
"""

from __future__ import annotations
from dataclasses import dataclass

from .action import AssignmentResult
from .errors import EngineError
from .state import ChallengeTopology, DurationMode, ParticipantRef, SessionState


@dataclass(frozen=True)
class TurnAdvance:
    next_turn_index: int
    next_round: int
    game_should_end: bool


def current_participant(state: SessionState) -> AssignmentResult:
    """The team (team mode) or player (free-for-all) whose turn it is."""
    index = state.current_turn_index
    if state.is_team_mode:
        if 0 <= index < len(state.teams):
            return AssignmentResult.of([ParticipantRef.team(state.teams[index].id)])
        return AssignmentResult.failure(EngineError.no_current_participant(
            "No team at the current turn index",
            turn_index=index, roster_size=len(state.teams),
        ))

    if 0 <= index < len(state.players):
        return AssignmentResult.of([ParticipantRef.player(state.players[index].id)])
    return AssignmentResult.failure(EngineError.no_current_participant(
        "No player at the current turn index",
        turn_index=index, roster_size=len(state.players),
    ))


def should_end(state: SessionState) -> bool:
    """Count-based end condition. Time-based games are ended by the caller."""
    return (
        state.duration_mode == DurationMode.BY_CHALLENGE_COUNT
        and len(state.results) >= state.duration_value
    )


def advance_turn(state: SessionState, topology: ChallengeTopology) -> TurnAdvance:
    """
    Compute the counters after a challenge of `topology` was played.

    `state.results` must already contain the result just recorded.
    """
    turn_index = state.current_turn_index
    round_number = state.current_round

    if topology == ChallengeTopology.SOLO:
        turn_index += 1
        if turn_index >= state.roster_size:
            turn_index = 0
            round_number += 1

    return TurnAdvance(
        next_turn_index=turn_index,
        next_round=round_number,
        game_should_end=should_end(state),
    )


def time_limit_seconds(state: SessionState) -> int | None:
    """Game length in seconds for time-based games, None otherwise."""
    if state.duration_mode != DurationMode.BY_TIME:
        return None
    return state.duration_value * 60
