"""
Anti-repeat Selection - Weighted random choice biased by history.

Used whenever the engine has to pick someone for a pairwise challenge:
the free-for-all opponent and each team's representative player.

For every candidate the pairwise history gives:
- count: how often they were picked for a pairwise challenge
- recency: results since their latest pairwise appearance
  (total + 1 if they never appeared)
- per-challenge count: how often they played this reusable challenge

score = 1/(count+1) + 2*(recency/max_recency) + 1/(per_challenge+1)

Candidates are ranked by score and drawn with weight exp(-0.5 * rank),
so the best-rested candidate is favoured but nobody is starved.
"""

from __future__ import annotations
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import accumulate, combinations
import math
import random

from .state import Challenge, ChallengeResult, ChallengeTopology, SessionState

RANK_DECAY = 0.5
RECENCY_WEIGHT = 2.0


@dataclass(frozen=True)
class SelectionStats:
    count: int = 0
    recency: int = 0
    per_challenge_count: int = 0


@dataclass
class SelectionHistory:
    """Pairwise selection statistics derived from the result history."""
    total_results: int = 0
    stats: dict[str, SelectionStats] = field(default_factory=dict)
    pair_counts: dict[frozenset[str], int] = field(default_factory=dict)

    @property
    def has_history(self) -> bool:
        return bool(self.stats)

    @property
    def never_selected(self) -> int:
        """Recency sentinel, above any recency a real appearance can have."""
        return self.total_results + 1

    def stats_for(self, participant_id: str) -> SelectionStats:
        return self.stats.get(
            participant_id, SelectionStats(recency=self.never_selected)
        )

    def pair_frequency(self, a: str, b: str) -> int:
        return self.pair_counts.get(frozenset((a, b)), 0)


def result_topology(state: SessionState, result: ChallengeResult) -> ChallengeTopology | None:
    """Topology a result was played under; legacy results fall back to the pools."""
    if result.topology is not None:
        return result.topology
    challenge = state.get_challenge(result.challenge_id)
    return challenge.topology if challenge else None


def build_history(state: SessionState, challenge: Challenge | None = None) -> SelectionHistory:
    """
    Collect pairwise selection statistics from state.results.

    Per-challenge counts are only kept when `challenge` is reusable.
    """
    total = len(state.results)
    counts: dict[str, int] = {}
    last_seen: dict[str, int] = {}
    per_challenge: dict[str, int] = {}
    pairs: dict[frozenset[str], int] = {}
    track_challenge = challenge is not None and challenge.reusable

    for index, result in enumerate(state.results):
        if result_topology(state, result) != ChallengeTopology.PAIRWISE:
            continue

        involved = list(dict.fromkeys([*result.participant_ids, *filter(None, [result.winner_id])]))
        for pid in involved:
            counts[pid] = counts.get(pid, 0) + 1
            last_seen[pid] = index
            if track_challenge and result.challenge_id == challenge.id:
                per_challenge[pid] = per_challenge.get(pid, 0) + 1

        faced = [pid for pid in involved if state.get_team(pid) is None]
        for a, b in combinations(faced, 2):
            key = frozenset((a, b))
            pairs[key] = pairs.get(key, 0) + 1

    stats = {
        pid: SelectionStats(
            count=counts[pid],
            recency=total - last_seen[pid],
            per_challenge_count=per_challenge.get(pid, 0),
        )
        for pid in counts
    }
    return SelectionHistory(total_results=total, stats=stats, pair_counts=pairs)


def candidate_score(stats: SelectionStats, max_recency: int) -> float:
    return (
        1 / (stats.count + 1)
        + RECENCY_WEIGHT * (stats.recency / max_recency)
        + 1 / (stats.per_challenge_count + 1)
    )


def rank_candidates(
    candidates: Sequence[str],
    history: SelectionHistory,
) -> list[tuple[str, float]]:
    """Candidates with their scores, best first. Ties keep input order."""
    stats = [history.stats_for(c) for c in candidates]
    max_recency = max((s.recency for s in stats), default=1) or 1
    scored = [(c, candidate_score(s, max_recency)) for c, s in zip(candidates, stats)]
    return sorted(scored, key=lambda item: item[1], reverse=True)


def least_paired(
    candidates: Sequence[str],
    already_selected: Iterable[str],
    history: SelectionHistory,
) -> list[str]:
    """Keep only the candidates who faced the already-selected players least."""
    selected = list(already_selected)
    if not selected or not candidates:
        return list(candidates)
    frequency = {
        c: sum(history.pair_frequency(c, s) for s in selected) for c in candidates
    }
    lowest = min(frequency.values())
    return [c for c in candidates if frequency[c] == lowest]


def weighted_pick(
    candidates: Sequence[str],
    history: SelectionHistory,
    rng: random.Random,
) -> str:
    """
    Draw one candidate with exponentially decaying weight by rank.

    A single candidate, or an empty pairwise history, resolves to the top
    ranked candidate without consuming randomness.
    """
    if not candidates:
        raise ValueError("weighted_pick needs at least one candidate")

    ranked = [c for c, _ in rank_candidates(candidates, history)]
    if len(ranked) == 1 or not history.has_history:
        return ranked[0]

    cum_weights = list(accumulate(math.exp(-RANK_DECAY * i) for i in range(len(ranked))))
    return rng.choices(ranked, cum_weights=cum_weights, k=1)[0]
