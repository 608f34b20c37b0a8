"""
Pytest fixtures for Glass tests.
"""

import random

import pytest

from ..engine_core.action import Action
from ..engine_core.reducer import Reducer
from ..engine_core.state import (
    Challenge,
    ChallengeSettings,
    ChallengeTopology,
    GameMode,
    GamePhase,
    Player,
    SessionState,
    Team,
)


def make_players(count: int) -> list[Player]:
    return [Player(id=f"p{i + 1}", name=f"Player {i + 1}") for i in range(count)]


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so draws are reproducible."""
    return random.Random(1234)


@pytest.fixture
def reducer(rng) -> Reducer:
    return Reducer(rng=rng)


@pytest.fixture
def solo_challenge() -> Challenge:
    return Challenge(id="solo", title="Dance Move", topology=ChallengeTopology.SOLO, point_value=2)


@pytest.fixture
def pairwise_challenge() -> Challenge:
    return Challenge(id="duel", title="Arm Wrestling", topology=ChallengeTopology.PAIRWISE, point_value=1)


@pytest.fixture
def team_challenge() -> Challenge:
    return Challenge(
        id="relay", title="Team Acting", topology=ChallengeTopology.TEAM,
        point_value=3, reusable=False,
    )


@pytest.fixture
def all_challenge() -> Challenge:
    return Challenge(id="party", title="Never Have I Ever", topology=ChallengeTopology.ALL_VS_ALL)


@pytest.fixture
def quiz_challenge() -> Challenge:
    return Challenge(
        id="quiz",
        title="Music Quiz",
        topology=ChallengeTopology.ALL_VS_ALL,
        point_value=1,
        prebuilt=True,
        settings=ChallengeSettings(kind="quiz", data={"questions": [{"q": "2+2?", "a": "4"}]}),
    )


@pytest.fixture
def challenges(solo_challenge, pairwise_challenge, team_challenge, all_challenge, quiz_challenge):
    return [solo_challenge, pairwise_challenge, team_challenge, all_challenge, quiz_challenge]


@pytest.fixture
def setup_state(challenges) -> SessionState:
    """Three players in SETUP with the challenge pool loaded."""
    return SessionState(players=make_players(3), challenge_pool=list(challenges))


@pytest.fixture
def ffa_state(setup_state) -> SessionState:
    """A free-for-all game that has just started (p1 to play)."""
    return setup_state._copy_with(phase=GamePhase.SELECTING)


@pytest.fixture
def team_state(challenges) -> SessionState:
    """
    A team game that has just started.

    t1 = [p1, p3], t2 = [p2, p4]
    """
    players = make_players(4)
    teams = [
        Team(id="t1", name="Red", color_tag="pastel-pink", member_ids=["p1", "p3"]),
        Team(id="t2", name="Blue", color_tag="pastel-blue", member_ids=["p2", "p4"]),
    ]
    players = [
        Player(id=p.id, name=p.name, team_id="t1" if p.id in ("p1", "p3") else "t2")
        for p in players
    ]
    return SessionState(
        phase=GamePhase.SELECTING,
        game_mode=GameMode.TEAMS,
        players=players,
        teams=teams,
        challenge_pool=list(challenges),
    )


@pytest.fixture
def play(reducer):
    """
    Select a challenge and record its result in one go.

    Returns the state after the result; fails the test if either step is refused.
    """
    def _play(state, challenge, winner_id=None, completed=True, scores=None, winner_index=None):
        selected = reducer.apply(state, Action.select_challenge(challenge))
        assert selected.success, selected.error
        state = selected.new_state
        if winner_index is not None:
            winner_id = state.current_challenge_participants[winner_index].id
        recorded = reducer.apply(
            state,
            Action.record_result(challenge.id, completed, winner_id=winner_id, scores=scores),
        )
        assert recorded.success, recorded.error
        return recorded.new_state

    return _play
