"""
Integration tests: whole games through the session layer.
"""

import random

from ..engine_core.action import Action
from ..engine_core.pool import starter_challenges
from ..engine_core.state import ChallengeTopology, GameMode, GamePhase
from ..session import SessionManager


def _play_one(session, outcomes):
    result = session.draw_next_challenge()
    if result is None or session.is_finished:
        return False
    assert result.success, result.error
    ids = [p.id for p in session.state.current_challenge_participants]
    if session.state.current_challenge.topology == ChallengeTopology.SOLO:
        session.record_result(winner_id=ids[0], completed=outcomes.random() < 0.5)
    else:
        session.record_result(winner_id=outcomes.choice(ids))
    return True


class TestTeamGame:
    """A team game interrupted halfway and resumed from its snapshot."""

    def test_resume_mid_game(self, tmp_path):
        outcomes = random.Random(4)
        session = SessionManager(snapshot_dir=tmp_path, seed=21).create_session(session_id="night")
        for name in ("Ana", "Ben", "Cy", "Dee", "Eli"):
            session.dispatch(Action.add_player(name))
        session.dispatch(Action.set_game_mode(GameMode.TEAMS))
        session.dispatch(Action.create_teams(2, ["Red", "Blue"]))
        session.dispatch(Action.load_challenges(starter_challenges()))
        assert session.dispatch(Action.start_game()).success

        for _ in range(6):
            assert _play_one(session, outcomes)
        halfway = session.state

        # A new process picks the game up where it stopped
        resumed = SessionManager(snapshot_dir=tmp_path, seed=21).create_session(session_id="night")
        assert resumed.state == halfway

        while _play_one(resumed, outcomes):
            pass

        state = resumed.state
        assert state.phase == GamePhase.FINISHED
        assert len(state.results) == state.duration_value
        assert not resumed.store.exists()

        total = sum(p.score for p in state.players) + sum(t.score for t in state.teams)
        assert total == sum(sum(r.awarded.values()) for r in state.results)

        # Non-reusable challenges were played at most once
        once = {c.id for c in state.challenge_pool if not c.reusable}
        played = [r.challenge_id for r in state.results if r.challenge_id in once]
        assert len(played) == len(set(played))

        winners = resumed.winners()
        assert winners
        assert all(w.score == max(t.score for t in state.teams) for w in winners)

    def test_play_again_keeps_pool(self):
        session = SessionManager(seed=2).create_session()
        for name in ("Ana", "Ben"):
            session.dispatch(Action.add_player(name))
        session.dispatch(Action.load_challenges(starter_challenges()))
        session.dispatch(Action.start_game())
        session.dispatch(Action.end_game())

        session.dispatch(Action.reset_game())
        assert session.state.phase == GamePhase.SETUP
        assert len(session.state.challenge_pool) == len(starter_challenges())
        assert session.state.players == []
