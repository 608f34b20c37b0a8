"""
Snapshot Migrations - Upgrading and repairing persisted sessions.

Two steps run on every restore:

1. upgrade(): raw dict, version N -> version N+1, until current.
   Version 1 is the camelCase layout written by the first release
   (gameStarted/gameFinished flags, `challenges`, `canReuse`, ...).
2. normalize(): validated SessionSnapshot, repaired in place.
   - missing `prebuilt` flags are inferred from the settings payload
   - prebuilt challenges found in the custom pool move to the standard pool
   - duplicate challenges are dropped, first occurrence wins
   - entities without an ID get one
   - references to unknown players/teams are dropped
   - the phase is made to agree with the current challenge

Each change is reported as a MigrationWarning.
"""

from __future__ import annotations
from collections.abc import Callable
import logging
from typing import Any

from ..engine_core.errors import MigrationCode, MigrationWarning
from ..engine_core.state import GamePhase, ParticipantKind, generate_id
from .schema import SNAPSHOT_VERSION, ChallengeRecord, SessionSnapshot

logger = logging.getLogger(__name__)

LEGACY_MARKERS = ("gameStarted", "gameFinished", "gameDuration", "usedChallenges")


def detect_version(record: dict[str, Any]) -> int:
    """Version of a raw record. Unversioned records are either legacy or current."""
    version = record.get("version")
    if isinstance(version, int):
        return version
    if any(key in record for key in LEGACY_MARKERS):
        return 1
    return SNAPSHOT_VERSION


# =============================================================================
# Version upgrades
# =============================================================================

def _v1_challenge(raw: dict[str, Any]) -> dict[str, Any]:
    challenge = {
        "id": raw.get("id"),
        "title": raw.get("title", ""),
        "topology": raw.get("type", "individual"),
        "point_value": raw.get("points", 1),
        "reusable": raw.get("canReuse", True),
        "description": raw.get("description", ""),
        "difficulty": raw.get("difficulty", 1),
        "category": raw.get("category"),
        "max_reuse_count": raw.get("maxReuseCount"),
        "prebuilt": raw.get("isPrebuilt"),
        "settings": None,
    }
    if raw.get("prebuiltType"):
        challenge["settings"] = {
            "kind": raw["prebuiltType"],
            "data": raw.get("prebuiltSettings") or {},
        }
    return challenge


def _v1_phase(raw: dict[str, Any]) -> str:
    if raw.get("gameFinished"):
        return "finished"
    if raw.get("gameStarted"):
        return "awaiting_result" if raw.get("currentChallenge") else "selecting"
    return "setup"


def _v1_to_v2(raw: dict[str, Any], warnings: list[MigrationWarning]) -> dict[str, Any]:
    warnings.append(MigrationWarning(
        MigrationCode.LEGACY_SHAPE, "Upgraded a version 1 snapshot",
    ))

    teams = [
        {
            "id": t.get("id"),
            "name": t.get("name", ""),
            "color_tag": t.get("color", "pastel-blue"),
            "member_ids": list(t.get("playerIds") or []),
            "score": t.get("score", 0),
        }
        for t in raw.get("teams") or []
    ]
    team_ids = {t["id"] for t in teams if t["id"]}

    duration = raw.get("gameDuration") or {}
    current = raw.get("currentChallenge")

    return {
        "version": 2,
        "phase": _v1_phase(raw),
        "game_mode": raw.get("gameMode", "freeForAll"),
        "duration_mode": duration.get("type", "challenges"),
        "duration_value": duration.get("value", 20),
        "current_round": raw.get("currentRound", 0),
        "current_turn_index": raw.get("currentTurnIndex", 0),
        "players": [
            {
                "id": p.get("id"),
                "name": p.get("name", ""),
                "score": p.get("score", 0),
                "team_id": p.get("teamId"),
            }
            for p in raw.get("players") or []
        ],
        "teams": teams,
        "challenge_pool": [_v1_challenge(c) for c in raw.get("challenges") or []],
        "custom_challenges": [_v1_challenge(c) for c in raw.get("customChallenges") or []],
        "used_challenge_ids": list(raw.get("usedChallenges") or []),
        "results": [
            {
                "challenge_id": r.get("challengeId"),
                "completed": r.get("completed", False),
                "winner_id": r.get("winnerId"),
                "participant_ids": list(r.get("participantIds") or []),
                "scores": r.get("scores"),
                "timestamp_millis": r.get("timestamp", 0),
            }
            for r in raw.get("results") or []
        ],
        "current_challenge": _v1_challenge(current) if current else None,
        # Version 1 stored bare IDs; team IDs are the ones listed under teams
        "current_challenge_participants": [
            {"id": pid, "kind": "team" if pid in team_ids else "player"}
            for pid in raw.get("currentChallengeParticipants") or []
        ],
    }


UPGRADES: dict[int, Callable[[dict[str, Any], list[MigrationWarning]], dict[str, Any]]] = {
    1: _v1_to_v2,
}


def upgrade(record: dict[str, Any]) -> tuple[dict[str, Any], list[MigrationWarning]]:
    """Run every upgrade between the record's version and the current one."""
    warnings: list[MigrationWarning] = []
    version = detect_version(record)
    while version < SNAPSHOT_VERSION:
        step = UPGRADES[version]
        record = step(record, warnings)
        version += 1
        logger.info("Snapshot upgraded to version %d", version)
    return record, warnings


# =============================================================================
# Normalization
# =============================================================================

def _infer_prebuilt(challenge: ChallengeRecord, warnings: list[MigrationWarning]):
    if challenge.prebuilt is None:
        challenge.prebuilt = challenge.settings is not None
        warnings.append(MigrationWarning(
            MigrationCode.INFERRED_PREBUILT_FLAG,
            f"Challenge {challenge.title!r} marked prebuilt={challenge.prebuilt}",
            challenge.id,
        ))


def _ensure_id(entity, label: str, warnings: list[MigrationWarning]):
    if not entity.id:
        entity.id = generate_id()
        warnings.append(MigrationWarning(
            MigrationCode.GENERATED_ID, f"Gave {label} a new ID", entity.id,
        ))


def _dedupe(
    challenges: list[ChallengeRecord],
    seen: set[str],
    warnings: list[MigrationWarning],
) -> list[ChallengeRecord]:
    kept = []
    for challenge in challenges:
        if challenge.id in seen:
            warnings.append(MigrationWarning(
                MigrationCode.DROPPED_DUPLICATE,
                f"Dropped duplicate challenge {challenge.title!r}",
                challenge.id,
            ))
            continue
        seen.add(challenge.id)
        kept.append(challenge)
    return kept


def _fix_pools(snapshot: SessionSnapshot, warnings: list[MigrationWarning]):
    for challenge in [*snapshot.challenge_pool, *snapshot.custom_challenges]:
        _ensure_id(challenge, f"challenge {challenge.title!r}", warnings)
        _infer_prebuilt(challenge, warnings)
    if snapshot.current_challenge is not None:
        _ensure_id(snapshot.current_challenge, "the current challenge", warnings)
        _infer_prebuilt(snapshot.current_challenge, warnings)

    seen: set[str] = set()
    standard = _dedupe(snapshot.challenge_pool, seen, warnings)

    custom = []
    for challenge in snapshot.custom_challenges:
        if not challenge.prebuilt:
            custom.append(challenge)
            continue
        if challenge.id in seen:
            warnings.append(MigrationWarning(
                MigrationCode.DROPPED_DUPLICATE,
                f"Prebuilt challenge {challenge.title!r} is already in the standard pool",
                challenge.id,
            ))
            continue
        seen.add(challenge.id)
        standard.append(challenge)
        warnings.append(MigrationWarning(
            MigrationCode.MOVED_TO_STANDARD_POOL,
            f"Moved prebuilt challenge {challenge.title!r} to the standard pool",
            challenge.id,
        ))

    snapshot.challenge_pool = standard
    snapshot.custom_challenges = _dedupe(custom, seen, warnings)
    snapshot.used_challenge_ids = list(dict.fromkeys(snapshot.used_challenge_ids))


def _fix_rosters(snapshot: SessionSnapshot, warnings: list[MigrationWarning]):
    for player in snapshot.players:
        _ensure_id(player, f"player {player.name!r}", warnings)
    for team in snapshot.teams:
        _ensure_id(team, f"team {team.name!r}", warnings)

    player_ids = {p.id for p in snapshot.players}
    team_ids = {t.id for t in snapshot.teams}

    owner: dict[str, str] = {}
    for team in snapshot.teams:
        members = []
        for member_id in team.member_ids:
            if member_id not in player_ids or member_id in owner:
                warnings.append(MigrationWarning(
                    MigrationCode.DANGLING_REFERENCE,
                    f"Dropped member {member_id} from team {team.name!r}",
                    member_id,
                ))
                continue
            owner[member_id] = team.id
            members.append(member_id)
        team.member_ids = members

    for player in snapshot.players:
        player.team_id = owner.get(player.id)

    live = []
    for ref in snapshot.current_challenge_participants:
        known = team_ids if ref.kind == ParticipantKind.TEAM else player_ids
        if ref.id in known:
            live.append(ref)
        else:
            warnings.append(MigrationWarning(
                MigrationCode.DANGLING_REFERENCE,
                f"Dropped unknown participant {ref.id}",
                ref.id,
            ))
    snapshot.current_challenge_participants = live

    members = {t.id: set(t.member_ids) for t in snapshot.teams}
    playing = {ref.id for ref in live if ref.kind == ParticipantKind.TEAM}
    picks = {}
    for team_id, player_id in snapshot.representatives.items():
        if team_id in playing and player_id in members.get(team_id, ()):
            picks[team_id] = player_id
        else:
            warnings.append(MigrationWarning(
                MigrationCode.DANGLING_REFERENCE,
                f"Dropped representative {player_id} for team {team_id}",
                player_id,
            ))
    snapshot.representatives = picks


def _fix_phase(snapshot: SessionSnapshot, warnings: list[MigrationWarning]):
    challenge = snapshot.current_challenge
    if snapshot.phase == GamePhase.AWAITING_RESULT and challenge is None:
        snapshot.phase = GamePhase.SELECTING
        warnings.append(MigrationWarning(
            MigrationCode.INCONSISTENT_PHASE,
            "No challenge was waiting for a result; back to selecting",
        ))
    elif snapshot.phase in (GamePhase.SETUP, GamePhase.SELECTING) and challenge is not None:
        snapshot.current_challenge = None
        warnings.append(MigrationWarning(
            MigrationCode.INCONSISTENT_PHASE,
            f"Dropped challenge {challenge.title!r} left over from another phase",
            challenge.id,
        ))
    else:
        return
    snapshot.current_challenge_participants = []
    snapshot.pending_tally = {}
    snapshot.pending_awarded = {}
    snapshot.representatives = {}


def normalize(snapshot: SessionSnapshot) -> list[MigrationWarning]:
    """Repair a validated snapshot in place. Returns what was changed."""
    warnings: list[MigrationWarning] = []
    _fix_rosters(snapshot, warnings)
    _fix_pools(snapshot, warnings)
    _fix_phase(snapshot, warnings)
    return warnings
