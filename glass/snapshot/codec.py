"""
Snapshot Codec - SessionState <-> portable record.

serialize() produces a JSON-ready dict at the current version.
deserialize() accepts any known version, upgrades and repairs it, and
returns the restored state with the warnings collected on the way.

A finished session is never resumed: restoring one yields a fresh SETUP
state that keeps the challenge pools.
"""

from __future__ import annotations
import logging
from typing import Any

from pydantic import ValidationError

from ..engine_core.errors import MigrationCode, MigrationWarning
from ..engine_core.state import (
    Challenge,
    ChallengeResult,
    ChallengeSettings,
    GamePhase,
    ParticipantRef,
    Player,
    SessionState,
    Team,
)
from .migrations import detect_version, normalize, upgrade
from .schema import (
    SNAPSHOT_VERSION,
    ChallengeRecord,
    ParticipantRecord,
    PlayerRecord,
    ResultRecord,
    SessionSnapshot,
    SettingsRecord,
    TeamRecord,
)

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """A record could not be read as a session snapshot."""


# =============================================================================
# State -> record
# =============================================================================

def _challenge_record(c: Challenge) -> ChallengeRecord:
    return ChallengeRecord(
        id=c.id,
        title=c.title,
        topology=c.topology,
        point_value=c.point_value,
        reusable=c.reusable,
        description=c.description,
        difficulty=c.difficulty,
        category=c.category,
        max_reuse_count=c.max_reuse_count,
        prebuilt=c.prebuilt,
        settings=SettingsRecord(kind=c.settings.kind, data=dict(c.settings.data)) if c.settings else None,
    )


def to_snapshot(state: SessionState) -> SessionSnapshot:
    return SessionSnapshot(
        phase=state.phase,
        game_mode=state.game_mode,
        duration_mode=state.duration_mode,
        duration_value=state.duration_value,
        current_round=state.current_round,
        current_turn_index=state.current_turn_index,
        players=[
            PlayerRecord(id=p.id, name=p.name, score=p.score, team_id=p.team_id)
            for p in state.players
        ],
        teams=[
            TeamRecord(id=t.id, name=t.name, color_tag=t.color_tag,
                       member_ids=list(t.member_ids), score=t.score)
            for t in state.teams
        ],
        challenge_pool=[_challenge_record(c) for c in state.challenge_pool],
        custom_challenges=[_challenge_record(c) for c in state.custom_challenges],
        used_challenge_ids=list(state.used_challenge_ids),
        results=[
            ResultRecord(
                challenge_id=r.challenge_id,
                completed=r.completed,
                winner_id=r.winner_id,
                participant_ids=list(r.participant_ids),
                scores=dict(r.scores) if r.scores is not None else None,
                timestamp_millis=r.timestamp_millis,
                topology=r.topology,
                awarded=dict(r.awarded),
            )
            for r in state.results
        ],
        current_challenge=_challenge_record(state.current_challenge) if state.current_challenge else None,
        current_challenge_participants=[
            ParticipantRecord(id=ref.id, kind=ref.kind)
            for ref in state.current_challenge_participants
        ],
        representatives=dict(state.representatives),
        pending_tally=dict(state.pending_tally),
        pending_awarded=dict(state.pending_awarded),
    )


def serialize(state: SessionState) -> dict[str, Any]:
    """Portable, JSON-ready record of the whole session."""
    return to_snapshot(state).model_dump(mode="json")


# =============================================================================
# Record -> state
# =============================================================================

def _challenge(record: ChallengeRecord) -> Challenge:
    return Challenge(
        id=record.id,
        title=record.title,
        topology=record.topology,
        point_value=record.point_value,
        reusable=record.reusable,
        description=record.description,
        difficulty=record.difficulty,
        category=record.category,
        max_reuse_count=record.max_reuse_count,
        prebuilt=bool(record.prebuilt),
        settings=(
            ChallengeSettings(kind=record.settings.kind, data=dict(record.settings.data))
            if record.settings else None
        ),
    )


def from_snapshot(snapshot: SessionSnapshot) -> SessionState:
    return SessionState(
        phase=snapshot.phase,
        game_mode=snapshot.game_mode,
        duration_mode=snapshot.duration_mode,
        duration_value=snapshot.duration_value,
        current_round=snapshot.current_round,
        current_turn_index=snapshot.current_turn_index,
        players=[
            Player(id=p.id, name=p.name, score=p.score, team_id=p.team_id)
            for p in snapshot.players
        ],
        teams=[
            Team(id=t.id, name=t.name, color_tag=t.color_tag,
                 member_ids=list(t.member_ids), score=t.score)
            for t in snapshot.teams
        ],
        challenge_pool=[_challenge(c) for c in snapshot.challenge_pool],
        custom_challenges=[_challenge(c) for c in snapshot.custom_challenges],
        used_challenge_ids=list(snapshot.used_challenge_ids),
        results=[
            ChallengeResult(
                challenge_id=r.challenge_id,
                completed=r.completed,
                winner_id=r.winner_id,
                participant_ids=tuple(r.participant_ids),
                scores=dict(r.scores) if r.scores is not None else None,
                timestamp_millis=r.timestamp_millis,
                topology=r.topology,
                awarded=dict(r.awarded),
            )
            for r in snapshot.results
        ],
        current_challenge=_challenge(snapshot.current_challenge) if snapshot.current_challenge else None,
        current_challenge_participants=[
            ParticipantRef(id=ref.id, kind=ref.kind)
            for ref in snapshot.current_challenge_participants
        ],
        representatives=dict(snapshot.representatives),
        pending_tally=dict(snapshot.pending_tally),
        pending_awarded=dict(snapshot.pending_awarded),
    )


def deserialize(record: dict[str, Any]) -> tuple[SessionState, list[MigrationWarning]]:
    """
    Restore a session from a record of any known version.

    Raises SnapshotError when the record is not a snapshot at all or comes
    from a newer release. Everything else is repaired and reported.
    """
    if not isinstance(record, dict):
        raise SnapshotError(f"Expected a mapping, got {type(record).__name__}")

    version = detect_version(record)
    if version > SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Snapshot version {version} is newer than supported version {SNAPSHOT_VERSION}"
        )

    upgraded, warnings = upgrade(record)
    try:
        snapshot = SessionSnapshot.model_validate(upgraded)
    except ValidationError as e:
        raise SnapshotError(f"Invalid snapshot: {e}") from e

    warnings.extend(normalize(snapshot))
    state = from_snapshot(snapshot)

    if state.phase == GamePhase.FINISHED:
        warnings.append(MigrationWarning(
            MigrationCode.FINISHED_SESSION,
            "Snapshot belongs to a finished game; starting fresh",
        ))
        state = state.fresh()

    for warning in warnings:
        logger.info("Snapshot migration: %s", warning.message)
    return state, warnings
