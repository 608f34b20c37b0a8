"""
Participant Assignment - Who takes part in a challenge.

select_participants() returns the authoritative participant list for a
challenge, by topology:

- SOLO: whoever's turn it is
- PAIRWISE: every team (team mode), or the current player plus one
  opponent drawn with the anti-repeat weighted selection (free-for-all)
- TEAM: every team (team mode), or the current player alone
- ALL_VS_ALL: every team and every player (team mode), or every player

select_representatives() picks the player who actually plays for each
team in a team-mode pairwise challenge. Those picks are for display; they
are not part of the authoritative list.
"""

from __future__ import annotations
import logging
import random

from .action import AssignmentResult
from .errors import EngineError
from .rotation import current_participant
from .selection import build_history, least_paired, weighted_pick
from .state import Challenge, ChallengeTopology, ParticipantRef, SessionState, Team

logger = logging.getLogger(__name__)


def select_participants(
    state: SessionState,
    challenge: Challenge,
    rng: random.Random,
) -> AssignmentResult:
    """Compute the participants for `challenge`. Never mutates `state`."""
    topology = challenge.topology

    if topology == ChallengeTopology.PAIRWISE:
        if state.is_team_mode:
            return _all_teams(state, minimum=2)
        return _pairwise_free_for_all(state, challenge, rng)

    if topology == ChallengeTopology.TEAM and state.is_team_mode:
        return _all_teams(state, minimum=1)

    if topology == ChallengeTopology.ALL_VS_ALL:
        return _everyone(state)

    # SOLO, and TEAM played as a team of one in free-for-all
    return current_participant(state)


def _all_teams(state: SessionState, minimum: int) -> AssignmentResult:
    if len(state.teams) < minimum:
        return AssignmentResult.failure(EngineError.insufficient_participants(
            f"Need at least {minimum} teams, have {len(state.teams)}",
            required=minimum, available=len(state.teams),
        ))
    return AssignmentResult.of([ParticipantRef.team(t.id) for t in state.teams])


def _pairwise_free_for_all(
    state: SessionState,
    challenge: Challenge,
    rng: random.Random,
) -> AssignmentResult:
    if len(state.players) < 2:
        return AssignmentResult.failure(EngineError.insufficient_participants(
            f"Need at least 2 players, have {len(state.players)}",
            required=2, available=len(state.players),
        ))

    current = current_participant(state)
    if not current.success:
        return current

    current_id = current.participants[0].id
    candidates = [p.id for p in state.players if p.id != current_id]
    history = build_history(state, challenge)
    opponent_id = weighted_pick(candidates, history, rng)
    logger.debug("Paired %s against %s", current_id, opponent_id)

    return AssignmentResult.of([
        ParticipantRef.player(current_id),
        ParticipantRef.player(opponent_id),
    ])


def _everyone(state: SessionState) -> AssignmentResult:
    if not state.is_team_mode:
        if not state.players:
            return AssignmentResult.failure(EngineError.insufficient_participants(
                "No players registered", required=1, available=0,
            ))
        return AssignmentResult.of([ParticipantRef.player(p.id) for p in state.players])

    if not state.teams:
        return AssignmentResult.failure(EngineError.insufficient_participants(
            "No teams created", required=1, available=0,
        ))

    refs = [ParticipantRef.team(t.id) for t in state.teams]
    seen: set[str] = set()
    for team in state.teams:
        for member_id in team.member_ids:
            if member_id not in seen and state.get_player(member_id):
                seen.add(member_id)
                refs.append(ParticipantRef.player(member_id))
    # Players not on any team still take part
    for player in state.players:
        if player.id not in seen:
            seen.add(player.id)
            refs.append(ParticipantRef.player(player.id))
    return AssignmentResult.of(refs)


def select_representatives(
    state: SessionState,
    challenge: Challenge,
    rng: random.Random,
    teams: list[Team] | None = None,
) -> dict[str, str]:
    """
    Pick one player per team for a team-mode pairwise challenge.

    Returns a map of team ID to player ID. A team with a single member
    sends that member; an empty team is skipped. Otherwise candidates are
    first narrowed to those who have faced the already-picked players the
    least, then drawn with the weighted selection.
    """
    history = build_history(state, challenge)
    picks: dict[str, str] = {}

    for team in teams if teams is not None else state.teams:
        members = [m for m in team.member_ids if state.get_player(m)]
        if not members:
            logger.warning("Team %s has no players to send", team.id)
            continue
        if len(members) == 1:
            picks[team.id] = members[0]
            continue

        already = list(picks.values())
        candidates = [m for m in members if m not in already]
        candidates = least_paired(candidates or members, already, history)
        picks[team.id] = weighted_pick(candidates, history, rng)

    return picks


def solo_representative(state: SessionState) -> str | None:
    """
    In team mode, the player who performs a SOLO challenge for the team
    whose turn it is. Members take turns by round. None in free-for-all,
    or when the team is empty.
    """
    if not state.is_team_mode:
        return None
    current = current_participant(state)
    if not current.success:
        return None
    team = state.get_team(current.participants[0].id)
    if team is None or not team.member_ids:
        return None
    return team.member_ids[state.current_round % len(team.member_ids)]
