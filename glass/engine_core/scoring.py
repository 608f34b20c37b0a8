"""
Scoring Ledger - Pure functions that apply outcomes to scores.

Nothing here mutates its inputs. Every function returns updated copies of
the players/teams it was given plus the net points it actually applied,
which the reducer records on the result (score conservation).

Team games credit points twice: the winning team and each of its members.
Player-level leaderboards stay meaningful that way, but it also means team
totals and player totals are not comparable. Kept as observed; pending
product confirmation.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from .state import (
    ChallengeResult,
    ParticipantKind,
    ParticipantRef,
    Player,
    SessionState,
    Team,
)


@dataclass(frozen=True)
class LedgerUpdate:
    """Updated rosters plus the net points applied per participant ID."""
    players: list[Player]
    teams: list[Team]
    awarded: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Standing:
    """One row of the leaderboard. Tied scores share a rank."""
    participant: ParticipantRef
    name: str
    score: float
    rank: int


def merge_awarded(*maps: Mapping[str, float]) -> dict[str, float]:
    """Sum several awarded maps, dropping entries that net to zero."""
    merged: dict[str, float] = {}
    for m in maps:
        for pid, points in m.items():
            merged[pid] = merged.get(pid, 0) + points
    return {pid: points for pid, points in merged.items() if points != 0}


def _resolve(players: list[Player], teams: list[Team], participant_id: str) -> ParticipantRef | None:
    if any(t.id == participant_id for t in teams):
        return ParticipantRef.team(participant_id)
    if any(p.id == participant_id for p in players):
        return ParticipantRef.player(participant_id)
    return None


def _credit(
    players: list[Player],
    teams: list[Team],
    ref: ParticipantRef,
    points: float,
) -> tuple[list[Player], list[Team], float]:
    """Add points to one entity, clamping at zero. Returns the applied delta."""
    applied = 0.0
    if ref.kind == ParticipantKind.TEAM:
        new_teams = []
        for team in teams:
            if team.id == ref.id:
                new_score = max(0, team.score + points)
                applied = new_score - team.score
                team = replace(team, score=new_score)
            new_teams.append(team)
        return players, new_teams, applied

    new_players = []
    for player in players:
        if player.id == ref.id:
            new_score = max(0, player.score + points)
            applied = new_score - player.score
            player = replace(player, score=new_score)
        new_players.append(player)
    return new_players, teams, applied


def award_points(
    players: list[Player],
    teams: list[Team],
    participant_id: str,
    points: float,
) -> LedgerUpdate:
    """
    Apply a single increment to one participant (live partial credit).

    Teams are credited on their own; members are not duplicated here.
    """
    ref = _resolve(players, teams, participant_id)
    if ref is None:
        return LedgerUpdate(players=players, teams=teams)
    players, teams, applied = _credit(players, teams, ref, points)
    return LedgerUpdate(players=players, teams=teams, awarded=merge_awarded({ref.id: applied}))


def award_win(
    players: list[Player],
    teams: list[Team],
    winner_id: str,
    points: float,
) -> LedgerUpdate:
    """
    Credit a challenge winner.

    A winning team gains the points and so does every member player.
    A winning player gains the points alone.
    """
    ref = _resolve(players, teams, winner_id)
    if ref is None:
        return LedgerUpdate(players=players, teams=teams)

    awarded: dict[str, float] = {}
    players, teams, applied = _credit(players, teams, ref, points)
    awarded[ref.id] = applied

    if ref.kind == ParticipantKind.TEAM:
        team = next(t for t in teams if t.id == ref.id)
        for member_id in team.member_ids:
            member = ParticipantRef.player(member_id)
            players, teams, applied = _credit(players, teams, member, points)
            awarded[member_id] = awarded.get(member_id, 0) + applied

    return LedgerUpdate(players=players, teams=teams, awarded=merge_awarded(awarded))


def reconcile_scores(
    players: list[Player],
    teams: list[Team],
    final_scores: Mapping[str, float],
    already_applied: Mapping[str, float],
) -> tuple[LedgerUpdate, dict[str, float]]:
    """
    Bring scores in line with a quiz's final per-participant totals.

    For each participant the difference between its final total and what
    was already applied for this challenge is applied once. Returns the
    update and the new tally; feeding that tally back in with the same
    final map applies nothing.
    """
    awarded: dict[str, float] = {}
    tally = dict(already_applied)
    for participant_id, final in final_scores.items():
        ref = _resolve(players, teams, participant_id)
        if ref is None:
            continue
        delta = final - tally.get(participant_id, 0)
        if delta == 0:
            continue
        players, teams, applied = _credit(players, teams, ref, delta)
        tally[participant_id] = tally.get(participant_id, 0) + applied
        awarded[participant_id] = awarded.get(participant_id, 0) + applied

    return LedgerUpdate(players=players, teams=teams, awarded=merge_awarded(awarded)), tally


def apply_result(
    state: SessionState,
    result: ChallengeResult,
    point_value: float,
) -> LedgerUpdate:
    """
    Apply a challenge outcome to the state's players and teams.

    Quiz-style results (with a scores map) are reconciled against the
    points already handed out live for the current challenge. Otherwise a
    completed result with a winner credits the winner with point_value.
    The returned awarded map covers only this call.
    """
    if result.scores is not None:
        update, _ = reconcile_scores(
            state.players, state.teams, result.scores, state.pending_tally
        )
        return update

    if result.completed and result.winner_id:
        return award_win(state.players, state.teams, result.winner_id, point_value)

    return LedgerUpdate(players=state.players, teams=state.teams)


def compute_standings(state: SessionState) -> list[Standing]:
    """Teams in team mode, players otherwise, highest score first."""
    if state.is_team_mode:
        rows = [(ParticipantRef.team(t.id), t.name, t.score) for t in state.teams]
    else:
        rows = [(ParticipantRef.player(p.id), p.name, p.score) for p in state.players]

    rows.sort(key=lambda row: row[2], reverse=True)

    standings = []
    rank = 0
    previous = None
    for position, (ref, name, score) in enumerate(rows, start=1):
        if score != previous:
            rank = position
            previous = score
        standings.append(Standing(participant=ref, name=name, score=score, rank=rank))
    return standings


def determine_winners(state: SessionState) -> list[Standing]:
    """Every participant tied for the top score. Empty if there is nobody."""
    return [s for s in compute_standings(state) if s.rank == 1]


def winner_from_scores(scores: Mapping[str, float]) -> str | None:
    """The single highest scorer of a quiz, or None when tied or empty."""
    if not scores:
        return None
    best = max(scores.values())
    leaders = [pid for pid, score in scores.items() if score == best]
    return leaders[0] if len(leaders) == 1 else None
