"""
FastAPI Application - REST API for the host UI.

Endpoints:
    POST   /api/v1/sessions                          Create session
    GET    /api/v1/sessions                          List sessions
    GET    /api/v1/sessions/{id}                     Get session
    DELETE /api/v1/sessions/{id}                     End session
    POST   /api/v1/sessions/{id}/players             Add player
    PATCH  /api/v1/sessions/{id}/players/{pid}       Rename player
    DELETE /api/v1/sessions/{id}/players/{pid}       Remove player
    POST   /api/v1/sessions/{id}/teams               Create teams
    POST   /api/v1/sessions/{id}/teams/randomize     Shuffle players into teams
    POST   /api/v1/sessions/{id}/teams/{tid}/members         Move player into team
    DELETE /api/v1/sessions/{id}/teams/{tid}/members/{pid}   Remove player from team
    PUT    /api/v1/sessions/{id}/mode                Set game mode
    PUT    /api/v1/sessions/{id}/duration            Set duration
    GET    /api/v1/sessions/{id}/challenges          List pools
    PUT    /api/v1/sessions/{id}/challenges          Replace standard pool
    POST   /api/v1/sessions/{id}/challenges          Add standard challenge
    POST   /api/v1/sessions/{id}/custom-challenges          Add custom challenge
    PUT    /api/v1/sessions/{id}/custom-challenges/{cid}    Update custom challenge
    DELETE /api/v1/sessions/{id}/custom-challenges/{cid}    Remove custom challenge
    POST   /api/v1/sessions/{id}/start               Start game
    POST   /api/v1/sessions/{id}/next                Draw next challenge
    POST   /api/v1/sessions/{id}/select              Select a specific challenge
    POST   /api/v1/sessions/{id}/result              Record result
    POST   /api/v1/sessions/{id}/points              Live quiz points
    POST   /api/v1/sessions/{id}/final-scores        Reconcile quiz totals
    POST   /api/v1/sessions/{id}/end                 End game
    POST   /api/v1/sessions/{id}/reset               Reset game
    GET    /api/v1/sessions/{id}/standings           Standings and winners
    GET    /api/v1/sessions/{id}/snapshot            Export snapshot
    PUT    /api/v1/sessions/{id}/snapshot            Import snapshot

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Optional, Union
import os

from .. import __version__

# Environment configuration
GLASS_ENV = os.getenv("GLASS_ENV", "development")
GLASS_SNAPSHOT_DIR = os.getenv("GLASS_SNAPSHOT_DIR", None)
GLASS_SEED = os.getenv("GLASS_SEED", None)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

STATUS_CODES = {
    "SESSION_NOT_FOUND": 404,
    "UNKNOWN_ENTITY": 404,
    "INSUFFICIENT_PARTICIPANTS": 409,
    "NO_CURRENT_PARTICIPANT": 409,
    "INVALID_TRANSITION": 409,
    "VALIDATION_ERROR": 400,
    "SNAPSHOT_INVALID": 400,
}


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse

    from ..session import SessionManager
    from .service import APIService
    from .schemas import (
        # Request models
        AddPlayerRequest,
        AwardPointsRequest,
        ChallengeInfo,
        CreateSessionRequest,
        CreateTeamsRequest,
        FinalScoresRequest,
        ImportSnapshotRequest,
        LoadChallengesRequest,
        RecordResultRequest,
        RenamePlayerRequest,
        SelectChallengeRequest,
        SetDurationRequest,
        SetGameModeRequest,
        TeamMemberRequest,
        # Response models
        ActionResponse,
        ChallengeListResponse,
        EndSessionResponse,
        ErrorResponse,
        HealthResponse,
        SessionListResponse,
        SessionResponse,
        SnapshotResponse,
        StandingsResponse,
    )

    app = FastAPI(
        title="Glass Party Engine API",
        description="""
Turn-based party game engine: who plays next, scores and standings.

## Game Flow

1. Create a session, add players (and teams), load challenges
2. `POST /start`
3. Repeat: `POST /next` (or `/select`), then `POST /result`
4. The game ends by challenge count, by time, or with `POST /end`

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `INSUFFICIENT_PARTICIPANTS` | Not enough players or teams |
| `NO_CURRENT_PARTICIPANT` | Nobody holds the turn |
| `INVALID_TRANSITION` | Not allowed in the current phase |
| `UNKNOWN_ENTITY` | Unknown player, team or challenge |
| `VALIDATION_ERROR` | Malformed input |
| `SNAPSHOT_INVALID` | Snapshot could not be read |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    seed = int(GLASS_SEED) if GLASS_SEED else None
    api_service = service or APIService(
        session_manager=SessionManager(snapshot_dir=GLASS_SNAPSHOT_DIR, seed=seed)
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(error: ErrorResponse) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=STATUS_CODES.get(error.error_code.value, 400),
            content=error.model_dump(mode="json"),
        )

    def respond(response):
        if isinstance(response, ErrorResponse):
            return make_error_response(response)
        return response

    error_responses = {
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    }

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        tags=["Sessions"],
        summary="Create a new game session",
    )
    async def create_session(body: Optional[CreateSessionRequest] = None) -> SessionResponse:
        """Create a session in SETUP. Pass a seed for reproducible draws."""
        return api_service.create_session(body or CreateSessionRequest())

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Get session",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Current phase, rosters, challenge, participants and remaining time."""
        return respond(api_service.get_session(session_id))

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a session",
    )
    async def end_session(session_id: str) -> EndSessionResponse:
        """Drop the session and its snapshot."""
        success = api_service.end_session(session_id)
        return EndSessionResponse(success=success, session_id=session_id)

    # =========================================================================
    # Setup Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/players",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Add a player",
    )
    async def add_player(session_id: str, body: AddPlayerRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.add_player(session_id, body))

    @app.patch(
        "/api/v1/sessions/{session_id}/players/{player_id}",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Rename a player",
    )
    async def rename_player(
        session_id: str, player_id: str, body: RenamePlayerRequest,
    ) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.rename_player(session_id, player_id, body))

    @app.delete(
        "/api/v1/sessions/{session_id}/players/{player_id}",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Remove a player",
    )
    async def remove_player(session_id: str, player_id: str) -> Union[ActionResponse, JSONResponse]:
        """Also removes the player from their team."""
        return respond(api_service.remove_player(session_id, player_id))

    @app.post(
        "/api/v1/sessions/{session_id}/teams",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Create teams",
    )
    async def create_teams(session_id: str, body: CreateTeamsRequest) -> Union[ActionResponse, JSONResponse]:
        """Replace the teams and deal the players out evenly."""
        return respond(api_service.create_teams(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/teams/randomize",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Shuffle players into the existing teams",
    )
    async def randomize_teams(session_id: str) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.randomize_teams(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/teams/{team_id}/members",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Move a player into a team",
    )
    async def add_team_member(
        session_id: str, team_id: str, body: TeamMemberRequest,
    ) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.add_team_member(session_id, team_id, body))

    @app.delete(
        "/api/v1/sessions/{session_id}/teams/{team_id}/members/{player_id}",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Remove a player from a team",
    )
    async def remove_team_member(
        session_id: str, team_id: str, player_id: str,
    ) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.remove_team_member(session_id, team_id, player_id))

    @app.put(
        "/api/v1/sessions/{session_id}/mode",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Set game mode",
    )
    async def set_game_mode(session_id: str, body: SetGameModeRequest) -> Union[ActionResponse, JSONResponse]:
        """Switching to free-for-all drops the teams."""
        return respond(api_service.set_game_mode(session_id, body))

    @app.put(
        "/api/v1/sessions/{session_id}/duration",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Setup"],
        summary="Set game duration",
    )
    async def set_duration(session_id: str, body: SetDurationRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.set_duration(session_id, body))

    # =========================================================================
    # Challenge Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/challenges",
        response_model=ChallengeListResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="List challenge pools",
    )
    async def list_challenges(session_id: str) -> Union[ChallengeListResponse, JSONResponse]:
        return respond(api_service.list_challenges(session_id))

    @app.put(
        "/api/v1/sessions/{session_id}/challenges",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="Replace the standard challenge pool",
    )
    async def load_challenges(session_id: str, body: LoadChallengesRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.load_challenges(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/challenges",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="Add a standard challenge",
    )
    async def add_challenge(session_id: str, body: ChallengeInfo) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.add_challenge(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/custom-challenges",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="Add a custom challenge",
    )
    async def add_custom_challenge(session_id: str, body: ChallengeInfo) -> Union[ActionResponse, JSONResponse]:
        """Prebuilt challenges are filed under the standard pool."""
        return respond(api_service.add_custom_challenge(session_id, body))

    @app.put(
        "/api/v1/sessions/{session_id}/custom-challenges/{challenge_id}",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="Update a custom challenge",
    )
    async def update_custom_challenge(
        session_id: str, challenge_id: str, body: ChallengeInfo,
    ) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.update_custom_challenge(session_id, challenge_id, body))

    @app.delete(
        "/api/v1/sessions/{session_id}/custom-challenges/{challenge_id}",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Challenges"],
        summary="Remove a custom challenge",
    )
    async def remove_custom_challenge(session_id: str, challenge_id: str) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.remove_custom_challenge(session_id, challenge_id))

    # =========================================================================
    # Game Loop Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/start",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Start the game",
    )
    async def start_game(session_id: str) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.start_game(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/next",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Draw the next challenge",
    )
    async def next_challenge(session_id: str) -> Union[ActionResponse, JSONResponse]:
        """Ends the game when time is up or no challenge is left."""
        return respond(api_service.next_challenge(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/select",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Select a specific challenge",
    )
    async def select_challenge(session_id: str, body: SelectChallengeRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.select_challenge(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/result",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Record the result of the current challenge",
    )
    async def record_result(session_id: str, body: RecordResultRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.record_result(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/points",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Award live quiz points",
    )
    async def award_points(session_id: str, body: AwardPointsRequest) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.award_points(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/final-scores",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Reconcile final quiz totals",
    )
    async def set_final_scores(session_id: str, body: FinalScoresRequest) -> Union[ActionResponse, JSONResponse]:
        """Safe to repeat: the same totals are only applied once."""
        return respond(api_service.set_final_scores(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/end",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="End the game",
    )
    async def end_game(session_id: str) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.end_game(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/reset",
        response_model=ActionResponse,
        responses=error_responses,
        tags=["Game Loop"],
        summary="Reset to setup, keeping the challenge pools",
    )
    async def reset_game(session_id: str) -> Union[ActionResponse, JSONResponse]:
        return respond(api_service.reset_game(session_id))

    # =========================================================================
    # Results and Snapshots
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/standings",
        response_model=StandingsResponse,
        responses=error_responses,
        tags=["Results"],
        summary="Standings and winners",
    )
    async def get_standings(session_id: str) -> Union[StandingsResponse, JSONResponse]:
        return respond(api_service.get_standings(session_id))

    @app.get(
        "/api/v1/sessions/{session_id}/snapshot",
        response_model=SnapshotResponse,
        responses=error_responses,
        tags=["Results"],
        summary="Export the session snapshot",
    )
    async def export_snapshot(session_id: str) -> Union[SnapshotResponse, JSONResponse]:
        return respond(api_service.export_snapshot(session_id))

    @app.put(
        "/api/v1/sessions/{session_id}/snapshot",
        response_model=SnapshotResponse,
        responses=error_responses,
        tags=["Results"],
        summary="Import a snapshot",
    )
    async def import_snapshot(session_id: str, body: ImportSnapshotRequest) -> Union[SnapshotResponse, JSONResponse]:
        """Accepts current and legacy snapshots; returns migration warnings."""
        return respond(api_service.import_snapshot(session_id, body))

    # =========================================================================
    # System Endpoints
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(version=__version__, environment=GLASS_ENV)

    @app.get("/", tags=["System"])
    async def root():
        return {
            "name": "Glass Party Engine API",
            "version": __version__,
            "docs": "/api/docs",
        }

    return app


# Default app instance for uvicorn
app = create_app()
