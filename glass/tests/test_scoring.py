"""
Tests for the scoring ledger.

Tests:
- Winner credit (players, and teams with their members)
- Clamping at zero
- Quiz reconciliation without double counting
- Standings and winners
- Score conservation over whole games
"""

import random

import pytest

from ..engine_core.action import Action
from ..engine_core.scoring import (
    award_points,
    award_win,
    compute_standings,
    determine_winners,
    merge_awarded,
    reconcile_scores,
    winner_from_scores,
)
from ..engine_core.state import GamePhase, ParticipantKind, Player


def _scores(players):
    return {p.id: p.score for p in players}


class TestAwardWin:
    """Tests for crediting a winner."""

    def test_player_win_credits_only_player(self, ffa_state):
        update = award_win(ffa_state.players, ffa_state.teams, "p2", 3)
        assert _scores(update.players) == {"p1": 0, "p2": 3, "p3": 0}
        assert update.awarded == {"p2": 3}

    def test_team_win_credits_team_and_members(self, team_state):
        update = award_win(team_state.players, team_state.teams, "t1", 2)
        assert next(t for t in update.teams if t.id == "t1").score == 2
        assert next(t for t in update.teams if t.id == "t2").score == 0
        assert _scores(update.players) == {"p1": 2, "p2": 0, "p3": 2, "p4": 0}
        assert update.awarded == {"t1": 2, "p1": 2, "p3": 2}

    def test_unknown_winner_changes_nothing(self, ffa_state):
        update = award_win(ffa_state.players, ffa_state.teams, "ghost", 3)
        assert update.players == ffa_state.players
        assert update.awarded == {}

    def test_inputs_not_mutated(self, ffa_state):
        award_win(ffa_state.players, ffa_state.teams, "p1", 5)
        assert ffa_state.get_player("p1").score == 0


class TestAwardPoints:
    """Tests for live increments."""

    def test_team_increment_does_not_touch_members(self, team_state):
        update = award_points(team_state.players, team_state.teams, "t2", 4)
        assert next(t for t in update.teams if t.id == "t2").score == 4
        assert all(p.score == 0 for p in update.players)

    def test_score_clamped_at_zero(self):
        players = [Player(id="p1", name="Ana", score=2)]
        update = award_points(players, [], "p1", -5)
        assert update.players[0].score == 0
        assert update.awarded == {"p1": -2}


class TestReconcile:
    """Tests for quiz reconciliation."""

    def test_first_reconcile_applies_totals(self, ffa_state):
        update, tally = reconcile_scores(ffa_state.players, ffa_state.teams, {"p1": 3, "p2": 1}, {})
        assert _scores(update.players) == {"p1": 3, "p2": 1, "p3": 0}
        assert tally == {"p1": 3, "p2": 1}

    def test_reconcile_twice_applies_nothing(self, ffa_state):
        """Reconciling the same totals again is a no-op."""
        final = {"p1": 3, "p2": 1}
        first, tally = reconcile_scores(ffa_state.players, ffa_state.teams, final, {})
        second, tally_again = reconcile_scores(first.players, first.teams, final, tally)
        assert _scores(second.players) == _scores(first.players)
        assert second.awarded == {}
        assert tally_again == tally

    def test_reconcile_after_live_points(self, ffa_state):
        """Points already handed out live count toward the final total."""
        live = award_points(ffa_state.players, ffa_state.teams, "p1", 2)
        update, _ = reconcile_scores(live.players, live.teams, {"p1": 3}, {"p1": 2})
        assert update.players[0].score == 3
        assert update.awarded == {"p1": 1}

    def test_tally_follows_applied_points(self, ffa_state):
        """A negative total clamped at zero is remembered as zero."""
        update, tally = reconcile_scores(ffa_state.players, ffa_state.teams, {"p1": -4}, {})
        assert _scores(update.players)["p1"] == 0
        assert tally.get("p1", 0) == 0

        again, _ = reconcile_scores(update.players, update.teams, {"p1": 2}, tally)
        assert _scores(again.players)["p1"] == 2

    def test_unknown_ids_ignored(self, ffa_state):
        update, tally = reconcile_scores(ffa_state.players, ffa_state.teams, {"ghost": 9}, {})
        assert update.awarded == {}
        assert "ghost" not in tally


class TestStandings:
    """Tests for standings and winners."""

    def test_competition_ranking(self, ffa_state):
        players = [
            Player(id="p1", name="A", score=5),
            Player(id="p2", name="B", score=3),
            Player(id="p3", name="C", score=3),
            Player(id="p4", name="D", score=1),
        ]
        standings = compute_standings(ffa_state._copy_with(players=players))
        assert [s.participant.id for s in standings] == ["p1", "p2", "p3", "p4"]
        assert [s.rank for s in standings] == [1, 2, 2, 4]

    def test_team_mode_ranks_teams(self, team_state):
        update = award_win(team_state.players, team_state.teams, "t2", 1)
        standings = compute_standings(team_state._copy_with(players=update.players, teams=update.teams))
        assert [s.participant.id for s in standings] == ["t2", "t1"]
        assert all(s.participant.kind == ParticipantKind.TEAM for s in standings)

    def test_tied_winners(self, ffa_state):
        players = [
            Player(id="p1", name="A", score=4),
            Player(id="p2", name="B", score=4),
            Player(id="p3", name="C", score=1),
        ]
        winners = determine_winners(ffa_state._copy_with(players=players))
        assert {w.participant.id for w in winners} == {"p1", "p2"}

    def test_no_participants_no_winners(self, ffa_state):
        assert determine_winners(ffa_state._copy_with(players=[])) == []

    def test_winner_from_scores(self):
        assert winner_from_scores({"p1": 3, "p2": 5}) == "p2"
        assert winner_from_scores({"p1": 5, "p2": 5}) is None
        assert winner_from_scores({}) is None

    def test_merge_awarded_drops_zero(self):
        assert merge_awarded({"p1": 2, "p2": 1}, {"p1": -2, "p3": 1}) == {"p2": 1, "p3": 1}


class TestConservation:
    """The sum of all scores always equals the sum of points recorded on results."""

    @staticmethod
    def _check(state):
        total = sum(p.score for p in state.players) + sum(t.score for t in state.teams)
        recorded = sum(sum(r.awarded.values()) for r in state.results)
        assert total == pytest.approx(recorded)

    @pytest.mark.parametrize("fixture_name", ["ffa_state", "team_state"])
    def test_random_games_conserve_points(self, request, reducer, fixture_name):
        state = request.getfixturevalue(fixture_name)._copy_with(duration_value=1000)
        playable = [c for c in state.challenge_pool if c.reusable]
        outcomes = random.Random(99)

        for _ in range(60):
            challenge = outcomes.choice(playable)
            selected = reducer.apply(state, Action.select_challenge(challenge))
            assert selected.success, selected.error
            state = selected.new_state
            ids = [p.id for p in state.current_challenge_participants]

            if challenge.is_quiz_like:
                # Some live points, then the final totals
                state = reducer.apply(state, Action.award_points(ids[0], 1)).new_state
                final = {pid: outcomes.randint(0, 4) for pid in ids}
                action = Action.record_result(challenge.id, True, scores=final)
            elif outcomes.random() < 0.2:
                action = Action.record_result(challenge.id, False)
            else:
                action = Action.record_result(challenge.id, True, winner_id=outcomes.choice(ids))

            recorded = reducer.apply(state, action)
            assert recorded.success, recorded.error
            state = recorded.new_state
            self._check(state)

        assert state.phase == GamePhase.SELECTING

    def test_end_game_keeps_live_points_on_record(self, reducer, ffa_state, quiz_challenge):
        state = reducer.apply(ffa_state, Action.select_challenge(quiz_challenge)).new_state
        state = reducer.apply(state, Action.award_points("p2", 3)).new_state
        ended = reducer.apply(state, Action.end_game())

        assert ended.success
        state = ended.new_state
        assert state.get_player("p2").score == 3
        assert state.results[-1].completed is False
        assert state.results[-1].awarded == {"p2": 3}
        self._check(state)
