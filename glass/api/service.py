"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine actions
2. Manages sessions
3. Formats responses for the host UI

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
Failures come back as ErrorResponse values, never as exceptions.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..engine_core.action import Action, ActionResult
from ..engine_core.errors import EngineError, MigrationWarning
from ..engine_core.pool import available_challenges
from ..engine_core.scoring import Standing
from ..engine_core.state import Challenge, ChallengeSettings
from ..session import GameSession, SessionManager
from ..snapshot import SnapshotError, deserialize, serialize
from .schemas import (
    ActionResponse,
    AddPlayerRequest,
    AwardPointsRequest,
    ChallengeInfo,
    ChallengeListResponse,
    CreateSessionRequest,
    CreateTeamsRequest,
    ErrorCode,
    ErrorResponse,
    FinalScoresRequest,
    ImportSnapshotRequest,
    LoadChallengesRequest,
    ParticipantInfo,
    PlayerInfo,
    RecordResultRequest,
    RenamePlayerRequest,
    SelectChallengeRequest,
    SessionResponse,
    SetDurationRequest,
    SetGameModeRequest,
    SettingsInfo,
    SnapshotResponse,
    StandingInfo,
    StandingsResponse,
    TeamInfo,
    TeamMemberRequest,
    WarningInfo,
)


def challenge_from_info(info: ChallengeInfo) -> Challenge:
    """Build an engine challenge from an API record."""
    settings = None
    if info.settings is not None:
        settings = ChallengeSettings(kind=info.settings.kind, data=dict(info.settings.data))
    kwargs = {}
    if info.prebuilt is not None:
        kwargs["prebuilt"] = info.prebuilt
    return Challenge.create(
        title=info.title,
        topology=info.topology,
        point_value=info.point_value,
        reusable=info.reusable,
        challenge_id=info.id,
        description=info.description,
        difficulty=info.difficulty,
        category=info.category,
        max_reuse_count=info.max_reuse_count,
        settings=settings,
        **kwargs,
    )


def challenge_to_info(challenge: Challenge) -> ChallengeInfo:
    return ChallengeInfo(
        id=challenge.id,
        title=challenge.title,
        topology=challenge.topology,
        point_value=challenge.point_value,
        reusable=challenge.reusable,
        description=challenge.description,
        difficulty=challenge.difficulty,
        category=challenge.category,
        max_reuse_count=challenge.max_reuse_count,
        prebuilt=challenge.prebuilt,
        settings=(
            SettingsInfo(kind=challenge.settings.kind, data=challenge.settings.data)
            if challenge.settings else None
        ),
    )


def _standing_info(standing: Standing) -> StandingInfo:
    return StandingInfo(
        participant_id=standing.participant.id,
        kind=standing.participant.kind,
        name=standing.name,
        score=standing.score,
        rank=standing.rank,
    )


def _warning_info(warning: MigrationWarning) -> WarningInfo:
    return WarningInfo(
        code=warning.code.value,
        message=warning.message,
        entity_id=warning.entity_id,
    )


def error_from_engine(error: EngineError) -> ErrorResponse:
    return ErrorResponse(
        error=error.message,
        error_code=ErrorCode(error.code.value),
        details=error.details or None,
    )


@dataclass
class APIService:
    """
    Main API service for the host UI.

    Usage:
        service = APIService()

        # Create session and set it up
        session = service.create_session(CreateSessionRequest(seed=7))
        service.add_player(session.session_id, AddPlayerRequest(name="Ana"))

        # Play
        service.start_game(session.session_id)
        service.next_challenge(session.session_id)
        service.record_result(session.session_id, RecordResultRequest(winner_id=...))
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        session = self.session_manager.create_session(seed=request.seed)
        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        session.check_time()
        return self._session_to_response(session)

    def end_session(self, session_id: str) -> bool:
        if not self.session_manager.get_session(session_id):
            return False
        self.session_manager.end_session(session_id)
        return True

    def list_sessions(self) -> list[str]:
        return self.session_manager.list_sessions()

    # =========================================================================
    # Setup
    # =========================================================================

    def add_player(self, session_id: str, request: AddPlayerRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.add_player(request.name, request.player_id))

    def rename_player(
        self, session_id: str, player_id: str, request: RenamePlayerRequest,
    ) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.update_player(player_id, request.name))

    def remove_player(self, session_id: str, player_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.remove_player(player_id))

    def create_teams(self, session_id: str, request: CreateTeamsRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.create_teams(request.team_count, request.team_names))

    def randomize_teams(self, session_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.randomize_teams())

    def add_team_member(
        self, session_id: str, team_id: str, request: TeamMemberRequest,
    ) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.add_player_to_team(team_id, request.player_id))

    def remove_team_member(self, session_id: str, team_id: str, player_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.remove_player_from_team(team_id, player_id))

    def set_game_mode(self, session_id: str, request: SetGameModeRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.set_game_mode(request.game_mode))

    def set_duration(self, session_id: str, request: SetDurationRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(
            session_id, Action.set_duration(request.duration_mode, request.duration_value)
        )

    # =========================================================================
    # Challenge pools
    # =========================================================================

    def list_challenges(self, session_id: str) -> ChallengeListResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        state = session.state
        return ChallengeListResponse(
            challenges=[challenge_to_info(c) for c in state.challenge_pool],
            custom_challenges=[challenge_to_info(c) for c in state.custom_challenges],
            available_ids=[c.id for c in available_challenges(state)],
        )

    def load_challenges(self, session_id: str, request: LoadChallengesRequest) -> ActionResponse | ErrorResponse:
        challenges = [challenge_from_info(c) for c in request.challenges]
        return self._dispatch(session_id, Action.load_challenges(challenges))

    def add_challenge(self, session_id: str, request: ChallengeInfo) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.add_challenge(challenge_from_info(request)))

    def add_custom_challenge(self, session_id: str, request: ChallengeInfo) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.add_custom_challenge(challenge_from_info(request)))

    def update_custom_challenge(
        self, session_id: str, challenge_id: str, request: ChallengeInfo,
    ) -> ActionResponse | ErrorResponse:
        challenge = challenge_from_info(request.model_copy(update={"id": challenge_id}))
        return self._dispatch(session_id, Action.update_custom_challenge(challenge))

    def remove_custom_challenge(self, session_id: str, challenge_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.remove_custom_challenge(challenge_id))

    # =========================================================================
    # Game flow
    # =========================================================================

    def start_game(self, session_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.start_game())

    def next_challenge(self, session_id: str) -> ActionResponse | ErrorResponse:
        """Draw a random challenge, or end the game if none is left."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        result = session.draw_next_challenge()
        if result is None:
            return ErrorResponse(
                error=f"Session is in phase {session.state.phase.value}, not selecting",
                error_code=ErrorCode.INVALID_TRANSITION,
            )
        return self._to_response(session, result)

    def select_challenge(self, session_id: str, request: SelectChallengeRequest) -> ActionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        challenge = session.state.get_challenge(request.challenge_id)
        if challenge is None:
            return ErrorResponse(
                error=f"Challenge {request.challenge_id} not found",
                error_code=ErrorCode.UNKNOWN_ENTITY,
            )
        return self._to_response(session, session.select_challenge(challenge))

    def record_result(self, session_id: str, request: RecordResultRequest) -> ActionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        result = session.record_result(
            winner_id=request.winner_id,
            completed=request.completed,
            scores=request.scores,
        )
        return self._to_response(session, result)

    def award_points(self, session_id: str, request: AwardPointsRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.award_points(request.participant_id, request.points))

    def set_final_scores(self, session_id: str, request: FinalScoresRequest) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.set_final_scores(request.scores))

    def end_game(self, session_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.end_game())

    def reset_game(self, session_id: str) -> ActionResponse | ErrorResponse:
        return self._dispatch(session_id, Action.reset_game())

    # =========================================================================
    # Queries and snapshots
    # =========================================================================

    def get_standings(self, session_id: str) -> StandingsResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return StandingsResponse(
            session_id=session_id,
            standings=[_standing_info(s) for s in session.standings()],
            winners=[_standing_info(s) for s in session.winners()],
        )

    def export_snapshot(self, session_id: str) -> SnapshotResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return SnapshotResponse(session_id=session_id, snapshot=serialize(session.state))

    def import_snapshot(self, session_id: str, request: ImportSnapshotRequest) -> SnapshotResponse | ErrorResponse:
        """Replace a session's state with a snapshot of any known version."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        try:
            state, warnings = deserialize(request.snapshot)
        except SnapshotError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.SNAPSHOT_INVALID)

        session.state = state
        session.persist()
        return SnapshotResponse(
            session_id=session_id,
            snapshot=serialize(state),
            warnings=[_warning_info(w) for w in warnings],
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _dispatch(self, session_id: str, action: Action) -> ActionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._to_response(session, session.dispatch(action))

    def _to_response(self, session: GameSession, result: ActionResult) -> ActionResponse | ErrorResponse:
        if not result.success:
            return error_from_engine(result.error)
        return ActionResponse(
            success=True,
            changes=result.state_changes,
            session=self._session_to_response(session),
        )

    def _not_found(self, session_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Session {session_id} not found",
            error_code=ErrorCode.SESSION_NOT_FOUND,
        )

    def _session_to_response(self, session: GameSession) -> SessionResponse:
        """Convert a session to its API view."""
        state = session.state
        return SessionResponse(
            session_id=session.session_id,
            phase=state.phase,
            game_mode=state.game_mode,
            duration_mode=state.duration_mode,
            duration_value=state.duration_value,
            current_round=state.current_round,
            current_turn_index=state.current_turn_index,
            players=[
                PlayerInfo(player_id=p.id, name=p.name, score=p.score, team_id=p.team_id)
                for p in state.players
            ],
            teams=[
                TeamInfo(team_id=t.id, name=t.name, color_tag=t.color_tag,
                         member_ids=list(t.member_ids), score=t.score)
                for t in state.teams
            ],
            challenge_count=len(state.challenge_pool),
            custom_challenge_count=len(state.custom_challenges),
            results_count=len(state.results),
            current_challenge=(
                challenge_to_info(state.current_challenge) if state.current_challenge else None
            ),
            current_participants=[
                ParticipantInfo(participant_id=ref.id, kind=ref.kind)
                for ref in session.current_participants()
            ],
            representatives=dict(session.representatives),
            time_remaining=session.time_remaining(),
            is_finished=session.is_finished,
        )
