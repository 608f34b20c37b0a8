"""
Reducer - Applies actions to session state.

The reducer is the single point of state mutation.
All state changes must go through apply().

Design principles:
- Pure function: (state, action) -> new_state
- Validates before applying; a refused action leaves state untouched
- Returns ActionResult with success/failure
- Delegates scoring, assignment and rotation to their modules
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
import logging
import random

from .action import Action, ActionResult, ActionType
from .assignment import select_participants
from .errors import EngineError
from .pool import is_available
from .rotation import advance_turn
from .scoring import (
    apply_result,
    award_points,
    merge_awarded,
    reconcile_scores,
    winner_from_scores,
)
from .state import (
    Challenge,
    ChallengeResult,
    GameMode,
    GamePhase,
    Player,
    SessionState,
    Team,
    team_color,
)

logger = logging.getLogger(__name__)

_SETUP = frozenset({GamePhase.SETUP})
_ACTIVE = frozenset({GamePhase.SELECTING, GamePhase.AWAITING_RESULT})
_OPEN = frozenset({GamePhase.SETUP, GamePhase.SELECTING, GamePhase.AWAITING_RESULT})
_ANY = frozenset(GamePhase)

ALLOWED_PHASES: dict[ActionType, frozenset[GamePhase]] = {
    ActionType.START_GAME: _SETUP,
    ActionType.SELECT_CHALLENGE: frozenset({GamePhase.SELECTING}),
    ActionType.RECORD_RESULT: frozenset({GamePhase.AWAITING_RESULT}),
    ActionType.END_GAME: _ACTIVE,
    ActionType.RESET_GAME: _ANY,
    ActionType.RESET_TURN: _ACTIVE,
    ActionType.ADD_PLAYER: _SETUP,
    ActionType.REMOVE_PLAYER: _SETUP,
    ActionType.UPDATE_PLAYER: _ANY,
    ActionType.CREATE_TEAMS: _SETUP,
    ActionType.RANDOMIZE_TEAMS: _SETUP,
    ActionType.ADD_PLAYER_TO_TEAM: _SETUP,
    ActionType.REMOVE_PLAYER_FROM_TEAM: _SETUP,
    ActionType.SET_GAME_MODE: _SETUP,
    ActionType.SET_DURATION: _SETUP,
    ActionType.LOAD_CHALLENGES: _OPEN,
    ActionType.ADD_CHALLENGE: _OPEN,
    ActionType.ADD_CUSTOM_CHALLENGE: _OPEN,
    ActionType.UPDATE_CUSTOM_CHALLENGE: _OPEN,
    ActionType.REMOVE_CUSTOM_CHALLENGE: _OPEN,
    ActionType.AWARD_POINTS: frozenset({GamePhase.AWAITING_RESULT}),
    ActionType.SET_FINAL_SCORES: frozenset({GamePhase.AWAITING_RESULT}),
}


@dataclass
class Reducer:
    """
    Reducer applies actions to session state.

    Stateless apart from the random source, which is injected so seeded
    runs are reproducible.
    """
    rng: random.Random = field(default_factory=random.Random)

    def apply(self, state: SessionState, action: Action) -> ActionResult:
        """
        Apply an action to the session state.

        Returns ActionResult with new state or error.
        """
        error = self._validate_action(state, action)
        if error:
            logger.info("Rejected %s: %s", action.action_type.value, error)
            return ActionResult.failure(error)

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(EngineError.validation(
                f"No handler for action type: {action.action_type}"
            ))

        result = handler(state, action)
        if not result.success:
            logger.info("Refused %s: %s", action.action_type.value, result.error)
        return result

    def _validate_action(self, state: SessionState, action: Action) -> EngineError | None:
        """
        Validate that an action is legal in the current phase.

        Returns the error if invalid, None if valid.
        """
        allowed = ALLOWED_PHASES.get(action.action_type, _ANY)
        if state.phase not in allowed:
            return EngineError.invalid_transition(
                f"{action.action_type.value} is not allowed during {state.phase.value}",
                action=action.action_type.value,
                phase=state.phase.value,
            )
        return None

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.START_GAME: self._handle_start_game,
            ActionType.SELECT_CHALLENGE: self._handle_select_challenge,
            ActionType.RECORD_RESULT: self._handle_record_result,
            ActionType.END_GAME: self._handle_end_game,
            ActionType.RESET_GAME: self._handle_reset_game,
            ActionType.RESET_TURN: self._handle_reset_turn,
            ActionType.ADD_PLAYER: self._handle_add_player,
            ActionType.REMOVE_PLAYER: self._handle_remove_player,
            ActionType.UPDATE_PLAYER: self._handle_update_player,
            ActionType.CREATE_TEAMS: self._handle_create_teams,
            ActionType.RANDOMIZE_TEAMS: self._handle_randomize_teams,
            ActionType.ADD_PLAYER_TO_TEAM: self._handle_add_player_to_team,
            ActionType.REMOVE_PLAYER_FROM_TEAM: self._handle_remove_player_from_team,
            ActionType.SET_GAME_MODE: self._handle_set_game_mode,
            ActionType.SET_DURATION: self._handle_set_duration,
            ActionType.LOAD_CHALLENGES: self._handle_load_challenges,
            ActionType.ADD_CHALLENGE: self._handle_add_challenge,
            ActionType.ADD_CUSTOM_CHALLENGE: self._handle_add_custom_challenge,
            ActionType.UPDATE_CUSTOM_CHALLENGE: self._handle_update_custom_challenge,
            ActionType.REMOVE_CUSTOM_CHALLENGE: self._handle_remove_custom_challenge,
            ActionType.AWARD_POINTS: self._handle_award_points,
            ActionType.SET_FINAL_SCORES: self._handle_set_final_scores,
        }
        return handlers.get(action_type)

    # ------------------------------------------------------------------
    # Game flow
    # ------------------------------------------------------------------

    def _handle_start_game(self, state: SessionState, action: Action) -> ActionResult:
        if not state.players:
            return ActionResult.failure(EngineError.insufficient_participants(
                "At least one player is required to start", required=1, available=0,
            ))
        if state.is_team_mode and not state.teams:
            return ActionResult.failure(EngineError.insufficient_participants(
                "Team mode needs at least one team", required=1, available=0,
            ))

        new_state = state._copy_with(
            phase=GamePhase.SELECTING,
            current_round=0,
            current_turn_index=0,
            players=[replace(p, score=0) for p in state.players],
            teams=[replace(t, score=0) for t in state.teams],
            used_challenge_ids=[],
            results=[],
            current_challenge=None,
            current_challenge_participants=[],
            pending_tally={},
            pending_awarded={},
            representatives={},
        )
        logger.info(
            "Game started: %d players, %d teams, %s",
            len(state.players), len(state.teams), state.game_mode.value,
        )
        return ActionResult.success_with_state(new_state, ["Game started"])

    def _handle_select_challenge(self, state: SessionState, action: Action) -> ActionResult:
        challenge = action.payload.challenge
        if challenge is None:
            return ActionResult.failure(EngineError.validation("No challenge given"))

        if not is_available(state, challenge):
            return ActionResult.failure(EngineError.invalid_transition(
                f"Challenge {challenge.id} cannot be played again",
                challenge_id=challenge.id,
            ))

        assignment = select_participants(state, challenge, self.rng)
        if not assignment.success:
            return ActionResult.failure(assignment.error)

        used = [cid for cid in state.used_challenge_ids if cid != challenge.id]
        used.append(challenge.id)

        new_state = state._copy_with(
            phase=GamePhase.AWAITING_RESULT,
            current_challenge=challenge,
            current_challenge_participants=assignment.participants,
            used_challenge_ids=used,
            pending_tally={},
            pending_awarded={},
            representatives={},
        )
        return ActionResult.success_with_state(
            new_state,
            [f"Selected {challenge.title} for {', '.join(assignment.participant_ids)}"],
        )

    def _handle_record_result(self, state: SessionState, action: Action) -> ActionResult:
        result = action.payload.result
        challenge = state.current_challenge
        if challenge is None:
            return ActionResult.failure(EngineError.invalid_transition(
                "No challenge is waiting for a result"
            ))
        if result is None:
            return ActionResult.failure(EngineError.validation("No result given"))
        if result.challenge_id != challenge.id:
            return ActionResult.failure(EngineError.validation(
                f"Result is for {result.challenge_id}, current challenge is {challenge.id}",
                challenge_id=result.challenge_id,
            ))

        error = self._check_ids(state, result)
        if error:
            return ActionResult.failure(error)

        winner_id = result.winner_id
        if winner_id is None and result.scores:
            winner_id = winner_from_scores(result.scores)

        update = apply_result(state, result, challenge.point_value)
        participant_ids = result.participant_ids or tuple(
            p.id for p in state.current_challenge_participants
        )
        recorded = replace(
            result,
            winner_id=winner_id,
            participant_ids=tuple(participant_ids),
            topology=challenge.topology,
            awarded=merge_awarded(state.pending_awarded, update.awarded),
        )

        scored = state._copy_with(
            players=update.players,
            teams=update.teams,
            results=[*state.results, recorded],
        )
        turn = advance_turn(scored, challenge.topology)
        new_state = scored._copy_with(
            phase=GamePhase.FINISHED if turn.game_should_end else GamePhase.SELECTING,
            current_turn_index=turn.next_turn_index,
            current_round=turn.next_round,
            current_challenge=None,
            current_challenge_participants=[],
            pending_tally={},
            pending_awarded={},
            representatives={},
        )

        changes = [f"Recorded result for {challenge.title}"]
        if turn.game_should_end:
            logger.info("Game finished after %d results", len(new_state.results))
            changes.append("Game finished")
        return ActionResult.success_with_state(new_state, changes)

    def _check_ids(self, state: SessionState, result: ChallengeResult) -> EngineError | None:
        """Every ID a result names must resolve to a live player or team."""
        ids = [*result.participant_ids, *(result.scores or {})]
        if result.winner_id:
            ids.append(result.winner_id)
        for pid in ids:
            if state.resolve(pid) is None:
                return EngineError.unknown_entity(
                    f"Unknown participant {pid}", participant_id=pid,
                )
        return None

    def _handle_end_game(self, state: SessionState, action: Action) -> ActionResult:
        results = state.results
        # Points already handed out live stay on the record
        if state.current_challenge and state.pending_awarded:
            results = [*results, ChallengeResult(
                challenge_id=state.current_challenge.id,
                completed=False,
                participant_ids=tuple(p.id for p in state.current_challenge_participants),
                topology=state.current_challenge.topology,
                awarded=dict(state.pending_awarded),
                timestamp_millis=int(action.timestamp * 1000),
            )]

        new_state = state._copy_with(
            phase=GamePhase.FINISHED,
            results=results,
            current_challenge=None,
            current_challenge_participants=[],
            pending_tally={},
            pending_awarded={},
            representatives={},
        )
        logger.info("Game ended after %d results", len(results))
        return ActionResult.success_with_state(new_state, ["Game ended"])

    def _handle_reset_game(self, state: SessionState, action: Action) -> ActionResult:
        return ActionResult.success_with_state(state.fresh(), ["Game reset"])

    def _handle_reset_turn(self, state: SessionState, action: Action) -> ActionResult:
        logger.warning(
            "Turn index %d reset to 0 (roster size %d)",
            state.current_turn_index, state.roster_size,
        )
        return ActionResult.success_with_state(
            state._copy_with(current_turn_index=0), ["Turn reset"]
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _handle_add_player(self, state: SessionState, action: Action) -> ActionResult:
        name = (action.payload.name or "").strip()
        if not name:
            return ActionResult.failure(EngineError.validation("Player name is required"))
        player = Player.create(name, action.payload.player_id)
        if state.get_player(player.id) or state.get_team(player.id):
            return ActionResult.failure(EngineError.validation(
                f"ID {player.id} is already in use", player_id=player.id,
            ))
        return ActionResult.success_with_state(
            state._copy_with(players=[*state.players, player]),
            [f"Added player {name}"],
        )

    def _handle_remove_player(self, state: SessionState, action: Action) -> ActionResult:
        player_id = action.payload.player_id
        player = state.get_player(player_id) if player_id else None
        if not player:
            return ActionResult.failure(EngineError.unknown_entity(
                f"Player {player_id} not found", player_id=player_id,
            ))
        teams = [
            replace(t, member_ids=[m for m in t.member_ids if m != player_id])
            for t in state.teams
        ]
        players = [p for p in state.players if p.id != player_id]
        return ActionResult.success_with_state(
            state._copy_with(players=players, teams=teams),
            [f"Removed player {player.name}"],
        )

    def _handle_update_player(self, state: SessionState, action: Action) -> ActionResult:
        player_id = action.payload.player_id
        player = state.get_player(player_id) if player_id else None
        if not player:
            return ActionResult.failure(EngineError.unknown_entity(
                f"Player {player_id} not found", player_id=player_id,
            ))
        name = (action.payload.name or "").strip()
        if not name:
            return ActionResult.failure(EngineError.validation("Player name is required"))
        return ActionResult.success_with_state(
            state.with_player(replace(player, name=name)),
            [f"Renamed {player.name} to {name}"],
        )

    def _handle_create_teams(self, state: SessionState, action: Action) -> ActionResult:
        count = action.payload.team_count or 0
        if count < 1:
            return ActionResult.failure(EngineError.validation(
                "At least one team is required", team_count=count,
            ))
        names = action.payload.team_names or []
        teams = [
            Team.create(names[i] if i < len(names) and names[i] else f"Team {i + 1}", team_color(i))
            for i in range(count)
        ]
        for index, player in enumerate(state.players):
            teams[index % count].member_ids.append(player.id)

        return ActionResult.success_with_state(
            state._copy_with(teams=teams, players=_sync_team_ids(state.players, teams)),
            [f"Created {count} teams"],
        )

    def _handle_randomize_teams(self, state: SessionState, action: Action) -> ActionResult:
        if not state.teams:
            return ActionResult.failure(EngineError.validation("No teams to fill"))

        player_ids = [p.id for p in state.players]
        self.rng.shuffle(player_ids)

        count = len(state.teams)
        base, extra = divmod(len(player_ids), count)
        teams = []
        start = 0
        for index, team in enumerate(state.teams):
            size = base + (1 if index < extra else 0)
            teams.append(replace(team, member_ids=player_ids[start:start + size]))
            start += size

        return ActionResult.success_with_state(
            state._copy_with(teams=teams, players=_sync_team_ids(state.players, teams)),
            ["Teams randomized"],
        )

    def _handle_add_player_to_team(self, state: SessionState, action: Action) -> ActionResult:
        error = self._check_membership_ids(state, action)
        if error:
            return ActionResult.failure(error)
        team_id = action.payload.team_id
        player_id = action.payload.player_id

        teams = []
        for team in state.teams:
            members = [m for m in team.member_ids if m != player_id]
            if team.id == team_id:
                members.append(player_id)
            teams.append(replace(team, member_ids=members))

        return ActionResult.success_with_state(
            state._copy_with(teams=teams, players=_sync_team_ids(state.players, teams)),
            [f"Moved {player_id} to {team_id}"],
        )

    def _handle_remove_player_from_team(self, state: SessionState, action: Action) -> ActionResult:
        error = self._check_membership_ids(state, action)
        if error:
            return ActionResult.failure(error)
        team = state.get_team(action.payload.team_id)
        player_id = action.payload.player_id

        teams = [
            replace(t, member_ids=[m for m in t.member_ids if m != player_id])
            if t.id == team.id else t
            for t in state.teams
        ]
        return ActionResult.success_with_state(
            state._copy_with(teams=teams, players=_sync_team_ids(state.players, teams)),
            [f"Removed {player_id} from {team.id}"],
        )

    def _check_membership_ids(self, state: SessionState, action: Action) -> EngineError | None:
        team_id = action.payload.team_id
        player_id = action.payload.player_id
        if not team_id or not state.get_team(team_id):
            return EngineError.unknown_entity(f"Team {team_id} not found", team_id=team_id)
        if not player_id or not state.get_player(player_id):
            return EngineError.unknown_entity(f"Player {player_id} not found", player_id=player_id)
        return None

    def _handle_set_game_mode(self, state: SessionState, action: Action) -> ActionResult:
        mode = action.payload.game_mode
        if mode is None:
            return ActionResult.failure(EngineError.validation("No game mode given"))
        if mode == GameMode.FREE_FOR_ALL:
            new_state = state._copy_with(
                game_mode=mode,
                teams=[],
                players=[replace(p, team_id=None) for p in state.players],
            )
        else:
            new_state = state._copy_with(game_mode=mode)
        return ActionResult.success_with_state(new_state, [f"Game mode set to {mode.value}"])

    def _handle_set_duration(self, state: SessionState, action: Action) -> ActionResult:
        mode = action.payload.duration_mode
        value = action.payload.duration_value
        if mode is None or value is None or value < 1:
            return ActionResult.failure(EngineError.validation(
                "Duration needs a mode and a positive value", duration_value=value,
            ))
        return ActionResult.success_with_state(
            state._copy_with(duration_mode=mode, duration_value=value),
            [f"Duration set to {value} {mode.value}"],
        )

    # ------------------------------------------------------------------
    # Challenge pools
    # ------------------------------------------------------------------

    def _handle_load_challenges(self, state: SessionState, action: Action) -> ActionResult:
        challenges = _dedupe(action.payload.challenges or [])
        return ActionResult.success_with_state(
            state._copy_with(challenge_pool=challenges),
            [f"Loaded {len(challenges)} challenges"],
        )

    def _handle_add_challenge(self, state: SessionState, action: Action) -> ActionResult:
        challenge = action.payload.challenge
        error = self._check_new_challenge(state, challenge)
        if error:
            return ActionResult.failure(error)
        return ActionResult.success_with_state(
            state._copy_with(challenge_pool=[*state.challenge_pool, challenge]),
            [f"Added challenge {challenge.title}"],
        )

    def _handle_add_custom_challenge(self, state: SessionState, action: Action) -> ActionResult:
        challenge = action.payload.challenge
        error = self._check_new_challenge(state, challenge)
        if error:
            return ActionResult.failure(error)
        # Prebuilt challenges live in the standard pool
        if challenge.prebuilt:
            return ActionResult.success_with_state(
                state._copy_with(challenge_pool=[*state.challenge_pool, challenge]),
                [f"Added prebuilt challenge {challenge.title} to the standard pool"],
            )
        return ActionResult.success_with_state(
            state._copy_with(custom_challenges=[*state.custom_challenges, challenge]),
            [f"Added custom challenge {challenge.title}"],
        )

    def _handle_update_custom_challenge(self, state: SessionState, action: Action) -> ActionResult:
        challenge = action.payload.challenge
        if challenge is None:
            return ActionResult.failure(EngineError.validation("No challenge given"))
        if not any(c.id == challenge.id for c in state.custom_challenges):
            return ActionResult.failure(EngineError.unknown_entity(
                f"Custom challenge {challenge.id} not found", challenge_id=challenge.id,
            ))
        customs = [challenge if c.id == challenge.id else c for c in state.custom_challenges]
        return ActionResult.success_with_state(
            state._copy_with(custom_challenges=customs),
            [f"Updated custom challenge {challenge.title}"],
        )

    def _handle_remove_custom_challenge(self, state: SessionState, action: Action) -> ActionResult:
        challenge_id = action.payload.challenge_id
        if not any(c.id == challenge_id for c in state.custom_challenges):
            return ActionResult.failure(EngineError.unknown_entity(
                f"Custom challenge {challenge_id} not found", challenge_id=challenge_id,
            ))
        customs = [c for c in state.custom_challenges if c.id != challenge_id]
        return ActionResult.success_with_state(
            state._copy_with(custom_challenges=customs),
            [f"Removed custom challenge {challenge_id}"],
        )

    def _check_new_challenge(self, state: SessionState, challenge: Challenge | None) -> EngineError | None:
        if challenge is None:
            return EngineError.validation("No challenge given")
        if any(c.id == challenge.id for c in state.all_challenges):
            return EngineError.validation(
                f"Challenge {challenge.id} already exists", challenge_id=challenge.id,
            )
        return None

    # ------------------------------------------------------------------
    # Live scoring
    # ------------------------------------------------------------------

    def _handle_award_points(self, state: SessionState, action: Action) -> ActionResult:
        participant_id = action.payload.participant_id
        points = action.payload.points
        if not participant_id or state.resolve(participant_id) is None:
            return ActionResult.failure(EngineError.unknown_entity(
                f"Unknown participant {participant_id}", participant_id=participant_id,
            ))
        if points is None:
            return ActionResult.failure(EngineError.validation("No points given"))

        update = award_points(state.players, state.teams, participant_id, points)
        tally = dict(state.pending_tally)
        applied = update.awarded.get(participant_id, 0)
        tally[participant_id] = tally.get(participant_id, 0) + applied

        new_state = state._copy_with(
            players=update.players,
            teams=update.teams,
            pending_tally=tally,
            pending_awarded=merge_awarded(state.pending_awarded, update.awarded),
        )
        return ActionResult.success_with_state(
            new_state, [f"Awarded {points} to {participant_id}"]
        )

    def _handle_set_final_scores(self, state: SessionState, action: Action) -> ActionResult:
        scores = action.payload.scores
        if scores is None:
            return ActionResult.failure(EngineError.validation("No scores given"))
        for pid in scores:
            if state.resolve(pid) is None:
                return ActionResult.failure(EngineError.unknown_entity(
                    f"Unknown participant {pid}", participant_id=pid,
                ))

        update, tally = reconcile_scores(state.players, state.teams, scores, state.pending_tally)
        new_state = state._copy_with(
            players=update.players,
            teams=update.teams,
            pending_tally=tally,
            pending_awarded=merge_awarded(state.pending_awarded, update.awarded),
        )
        return ActionResult.success_with_state(new_state, ["Final scores reconciled"])


def _sync_team_ids(players: list[Player], teams: list[Team]) -> list[Player]:
    """Point every player's team_id at the team that lists them, if any."""
    owner = {m: t.id for t in teams for m in t.member_ids}
    return [replace(p, team_id=owner.get(p.id)) for p in players]


def _dedupe(challenges: list[Challenge]) -> list[Challenge]:
    seen: set[str] = set()
    unique = []
    for c in challenges:
        if c.id not in seen:
            seen.add(c.id)
            unique.append(c)
    return unique


def apply_action(state: SessionState, action: Action, rng: random.Random | None = None) -> ActionResult:
    """Apply one action with a throwaway reducer."""
    return Reducer(rng=rng or random.Random()).apply(state, action)
