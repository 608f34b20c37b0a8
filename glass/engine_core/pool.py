"""
Challenge Pool - Which challenges may still be played, and drawing one.
"""

from __future__ import annotations
from collections import Counter
import random

from .state import Challenge, ChallengeTopology, SessionState


def usage_counts(state: SessionState) -> Counter[str]:
    """How many results each challenge ID has, this session."""
    return Counter(r.challenge_id for r in state.results)


def is_available(state: SessionState, challenge: Challenge, counts: Counter[str] | None = None) -> bool:
    """
    Whether `challenge` can still be selected.

    A non-reusable challenge is spent once it was selected. A reusable one
    is spent once it was played max_reuse_count times.
    """
    if not challenge.reusable:
        return challenge.id not in state.used_challenge_ids
    if challenge.max_reuse_count is not None:
        counts = counts if counts is not None else usage_counts(state)
        return counts[challenge.id] < challenge.max_reuse_count
    return True


def available_challenges(state: SessionState) -> list[Challenge]:
    """
    Challenges from both pools that may be drawn next.

    TEAM challenges are left out in free-for-all.
    """
    counts = usage_counts(state)
    available = []
    seen: set[str] = set()
    for challenge in state.all_challenges:
        if challenge.id in seen:
            continue
        seen.add(challenge.id)
        if not state.is_team_mode and challenge.topology == ChallengeTopology.TEAM:
            continue
        if is_available(state, challenge, counts):
            available.append(challenge)
    return available


def next_challenge(state: SessionState, rng: random.Random) -> Challenge | None:
    """Draw a random available challenge, or None when the pool is spent."""
    available = available_challenges(state)
    if not available:
        return None
    return rng.choice(available)


def starter_challenges() -> list[Challenge]:
    """A small built-in catalog, enough to play a short game."""
    def make(cid: str, title: str, topology: ChallengeTopology, points: int,
             reusable: bool, description: str) -> Challenge:
        return Challenge(
            id=cid,
            title=title,
            topology=topology,
            point_value=points,
            reusable=reusable,
            description=description,
        )

    return [
        make("1", "Truth or Dare", ChallengeTopology.SOLO, 2, True,
             "Answer a personal question or perform a dare."),
        make("2", "Dance Move", ChallengeTopology.SOLO, 1, True,
             "Show your best dance move for 15 seconds."),
        make("3", "Tongue Twister", ChallengeTopology.SOLO, 2, True,
             "Say a tongue twister three times fast without a slip."),
        make("4", "Phone Reveal", ChallengeTopology.SOLO, 3, False,
             "Let the group read your last three messages."),
        make("6", "Rock, Paper, Scissors", ChallengeTopology.PAIRWISE, 1, True,
             "Best of three."),
        make("7", "Arm Wrestling", ChallengeTopology.PAIRWISE, 2, True,
             "Best of three rounds."),
        make("8", "Staring Contest", ChallengeTopology.PAIRWISE, 2, True,
             "First to blink or laugh loses."),
        make("11", "Team Quiz", ChallengeTopology.TEAM, 3, False,
             "Answer trivia questions as a team."),
        make("12", "Team Acting", ChallengeTopology.TEAM, 3, False,
             "Act out a movie scene for the other teams to guess."),
        make("16", "Never Have I Ever", ChallengeTopology.ALL_VS_ALL, 1, True,
             "Everyone plays; the last one with fingers up wins."),
    ]
