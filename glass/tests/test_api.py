"""
Tests for the API layer.

Tests:
- APIService (framework-agnostic)
- REST endpoints through FastAPI's TestClient
- Error codes and status mapping
"""

import pytest
from fastapi.testclient import TestClient

from ..api.app import create_app
from ..api.schemas import (
    AddPlayerRequest,
    ChallengeInfo,
    CreateSessionRequest,
    ErrorCode,
    ErrorResponse,
    ImportSnapshotRequest,
    LoadChallengesRequest,
    RecordResultRequest,
    SelectChallengeRequest,
    SessionResponse,
)
from ..api.service import APIService, challenge_from_info, challenge_to_info
from ..engine_core.state import ChallengeTopology, GamePhase
from ..session import SessionManager


CHALLENGES = [
    {"id": "solo", "title": "Dance Move", "topology": "individual", "point_value": 2},
    {"id": "duel", "title": "Arm Wrestling", "topology": "oneOnOne"},
    {"id": "party", "title": "Never Have I Ever", "topology": "allVsAll"},
    {
        "id": "quiz",
        "title": "Music Quiz",
        "topology": "allVsAll",
        "settings": {"kind": "quiz", "data": {"questions": 5}},
    },
]


class TestAPIService:
    """Tests for APIService."""

    @pytest.fixture
    def service(self):
        return APIService(session_manager=SessionManager(seed=3))

    @pytest.fixture
    def session_id(self, service):
        session = service.create_session(CreateSessionRequest())
        for pid, name in (("a", "Ana"), ("b", "Ben"), ("c", "Cy")):
            service.add_player(session.session_id, AddPlayerRequest(name=name, player_id=pid))
        service.load_challenges(
            session.session_id,
            LoadChallengesRequest(challenges=[ChallengeInfo(**c) for c in CHALLENGES]),
        )
        return session.session_id

    def test_create_session(self, service):
        response = service.create_session(CreateSessionRequest(seed=1))
        assert isinstance(response, SessionResponse)
        assert response.phase == GamePhase.SETUP
        assert response.session_id in service.list_sessions()

    def test_get_nonexistent_session(self, service):
        response = service.get_session("nonexistent")
        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_end_session(self, service, session_id):
        assert service.end_session(session_id)
        assert not service.end_session(session_id)

    def test_play_a_round(self, service, session_id):
        service.start_game(session_id)
        selected = service.select_challenge(session_id, SelectChallengeRequest(challenge_id="solo"))
        assert selected.session.current_participants[0].participant_id == "a"

        recorded = service.record_result(session_id, RecordResultRequest(winner_id="a"))
        assert recorded.success
        assert recorded.session.players[0].score == 2
        assert recorded.session.current_turn_index == 1

        standings = service.get_standings(session_id)
        assert standings.standings[0].participant_id == "a"
        assert [w.participant_id for w in standings.winners] == ["a"]

    def test_engine_errors_become_error_responses(self, service, session_id):
        response = service.select_challenge(session_id, SelectChallengeRequest(challenge_id="solo"))
        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.INVALID_TRANSITION
        assert response.details["phase"] == "setup"

    def test_unknown_challenge(self, service, session_id):
        service.start_game(session_id)
        response = service.select_challenge(session_id, SelectChallengeRequest(challenge_id="ghost"))
        assert response.error_code == ErrorCode.UNKNOWN_ENTITY

    def test_next_challenge_outside_selecting(self, service, session_id):
        response = service.next_challenge(session_id)
        assert response.error_code == ErrorCode.INVALID_TRANSITION

    def test_import_invalid_snapshot(self, service, session_id):
        response = service.import_snapshot(session_id, ImportSnapshotRequest(snapshot={"version": 99}))
        assert response.error_code == ErrorCode.SNAPSHOT_INVALID

    def test_challenge_info_conversion(self):
        info = ChallengeInfo(**CHALLENGES[3])
        challenge = challenge_from_info(info)
        assert challenge.prebuilt
        assert challenge.settings.data == {"questions": 5}
        assert challenge.topology == ChallengeTopology.ALL_VS_ALL
        assert challenge_to_info(challenge) == info.model_copy(update={"prebuilt": True})

    def test_generated_challenge_id(self):
        challenge = challenge_from_info(ChallengeInfo(title="New", topology=ChallengeTopology.SOLO))
        assert challenge.id
        assert not challenge.prebuilt


class TestRestEndpoints:
    """End-to-end through the HTTP layer."""

    @pytest.fixture
    def client(self):
        service = APIService(session_manager=SessionManager(seed=3))
        return TestClient(create_app(service=service))

    @pytest.fixture
    def session_url(self, client):
        response = client.post("/api/v1/sessions", json={"seed": 3})
        assert response.status_code == 200
        url = f"/api/v1/sessions/{response.json()['session_id']}"
        for pid, name in (("a", "Ana"), ("b", "Ben"), ("c", "Cy")):
            assert client.post(f"{url}/players", json={"name": name, "player_id": pid}).status_code == 200
        assert client.put(f"{url}/challenges", json={"challenges": CHALLENGES}).status_code == 200
        return url

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/api/docs"

    def test_create_session_without_body(self, client):
        response = client.post("/api/v1/sessions")
        assert response.status_code == 200
        assert response.json()["phase"] == "setup"

    def test_list_and_delete_sessions(self, client, session_url):
        session_id = session_url.rsplit("/", 1)[-1]
        assert client.get("/api/v1/sessions").json()["sessions"] == [session_id]
        assert client.delete(session_url).json()["success"]
        assert client.get(session_url).status_code == 404

    def test_unknown_session(self, client):
        response = client.get("/api/v1/sessions/nope")
        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_full_round(self, client, session_url):
        assert client.post(f"{session_url}/start").status_code == 200

        response = client.post(f"{session_url}/select", json={"challenge_id": "duel"})
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["phase"] == "awaiting_result"
        pair = [p["participant_id"] for p in session["current_participants"]]
        assert pair[0] == "a"

        response = client.post(f"{session_url}/result", json={"winner_id": pair[1]})
        assert response.status_code == 200
        assert response.json()["session"]["results_count"] == 1

        standings = client.get(f"{session_url}/standings").json()
        assert standings["winners"][0]["participant_id"] == pair[1]
        assert standings["winners"][0]["score"] == 1

    def test_invalid_transition_is_409(self, client, session_url):
        response = client.post(f"{session_url}/select", json={"challenge_id": "solo"})
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_TRANSITION"

    def test_insufficient_participants_is_409(self, client, session_url):
        client.put(f"{session_url}/mode", json={"game_mode": "teams"})
        client.post(f"{session_url}/teams", json={"team_count": 1})
        client.post(f"{session_url}/start")
        response = client.post(f"{session_url}/select", json={"challenge_id": "duel"})
        assert response.status_code == 409
        assert response.json()["error_code"] == "INSUFFICIENT_PARTICIPANTS"

    def test_duplicate_player_is_400(self, client, session_url):
        response = client.post(f"{session_url}/players", json={"name": "Again", "player_id": "a"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_malformed_body_is_422(self, client, session_url):
        response = client.post(f"{session_url}/players", json={"name": ""})
        assert response.status_code == 422

    def test_unknown_winner_is_404(self, client, session_url):
        client.post(f"{session_url}/start")
        client.post(f"{session_url}/select", json={"challenge_id": "solo"})
        response = client.post(f"{session_url}/result", json={"winner_id": "ghost"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "UNKNOWN_ENTITY"

    def test_teams_setup(self, client, session_url):
        client.put(f"{session_url}/mode", json={"game_mode": "teams"})
        response = client.post(f"{session_url}/teams", json={"team_count": 2, "team_names": ["Red", "Blue"]})
        teams = response.json()["session"]["teams"]
        assert [t["name"] for t in teams] == ["Red", "Blue"]
        assert teams[0]["member_ids"] == ["a", "c"]

        blue = teams[1]["team_id"]
        response = client.post(f"{session_url}/teams/{blue}/members", json={"player_id": "a"})
        teams = response.json()["session"]["teams"]
        assert teams[1]["member_ids"] == ["b", "a"]

        response = client.delete(f"{session_url}/teams/{blue}/members/a")
        assert response.json()["session"]["players"][0]["team_id"] is None

        response = client.post(f"{session_url}/teams/randomize")
        assert sum(len(t["member_ids"]) for t in response.json()["session"]["teams"]) == 3

    def test_rename_and_remove_player(self, client, session_url):
        response = client.patch(f"{session_url}/players/b", json={"name": "Bea"})
        assert response.json()["session"]["players"][1]["name"] == "Bea"
        response = client.delete(f"{session_url}/players/b")
        assert [p["player_id"] for p in response.json()["session"]["players"]] == ["a", "c"]

    def test_challenge_pools(self, client, session_url):
        prebuilt = {"title": "Song Quiz", "topology": "allVsAll", "settings": {"kind": "spotifyMusicQuiz"}}
        custom = {"id": "mine", "title": "My Dare", "topology": "individual"}
        assert client.post(f"{session_url}/custom-challenges", json=prebuilt).status_code == 200
        assert client.post(f"{session_url}/custom-challenges", json=custom).status_code == 200

        pools = client.get(f"{session_url}/challenges").json()
        assert len(pools["challenges"]) == len(CHALLENGES) + 1
        assert [c["id"] for c in pools["custom_challenges"]] == ["mine"]
        assert "mine" in pools["available_ids"]

        edited = {"title": "Edited", "topology": "oneOnOne"}
        response = client.put(f"{session_url}/custom-challenges/mine", json=edited)
        assert response.status_code == 200
        pools = client.get(f"{session_url}/challenges").json()
        assert pools["custom_challenges"][0]["title"] == "Edited"

        assert client.delete(f"{session_url}/custom-challenges/mine").status_code == 200
        assert client.delete(f"{session_url}/custom-challenges/mine").status_code == 404

    def test_live_quiz_scoring(self, client, session_url):
        client.post(f"{session_url}/start")
        client.post(f"{session_url}/select", json={"challenge_id": "quiz"})
        client.post(f"{session_url}/points", json={"participant_id": "b", "points": 2})
        final = {"scores": {"a": 1, "b": 4}}
        client.post(f"{session_url}/final-scores", json=final)
        client.post(f"{session_url}/final-scores", json=final)
        response = client.post(f"{session_url}/result", json=final)

        players = {p["player_id"]: p["score"] for p in response.json()["session"]["players"]}
        assert players == {"a": 1, "b": 4, "c": 0}

    def test_next_until_count_reached(self, client, session_url):
        client.put(f"{session_url}/duration", json={"duration_mode": "challenges", "duration_value": 3})
        client.post(f"{session_url}/start")
        for _ in range(3):
            response = client.post(f"{session_url}/next")
            assert response.status_code == 200
            client.post(f"{session_url}/result", json={"completed": False})
        session = client.get(session_url).json()
        assert session["is_finished"]
        assert session["results_count"] == 3

    def test_end_and_reset(self, client, session_url):
        client.post(f"{session_url}/start")
        assert client.post(f"{session_url}/end").json()["session"]["phase"] == "finished"
        session = client.post(f"{session_url}/reset").json()["session"]
        assert session["phase"] == "setup"
        assert session["players"] == []
        assert session["challenge_count"] == len(CHALLENGES)

    def test_snapshot_export_and_import(self, client, session_url):
        client.post(f"{session_url}/start")
        snapshot = client.get(f"{session_url}/snapshot").json()["snapshot"]
        assert snapshot["phase"] == "selecting"

        other = client.post("/api/v1/sessions").json()["session_id"]
        response = client.put(f"/api/v1/sessions/{other}/snapshot", json={"snapshot": snapshot})
        assert response.status_code == 200
        assert response.json()["warnings"] == []
        assert client.get(f"/api/v1/sessions/{other}").json()["players"][0]["player_id"] == "a"

    def test_import_legacy_snapshot(self, client, session_url):
        legacy = {
            "gameStarted": True,
            "players": [{"id": "x", "name": "Xena", "score": 4}],
            "customChallenges": [
                {"id": "q", "title": "Quiz", "type": "allVsAll", "points": 1, "prebuiltType": "quiz"},
            ],
        }
        response = client.put(f"{session_url}/snapshot", json={"snapshot": legacy})
        assert response.status_code == 200
        codes = {w["code"] for w in response.json()["warnings"]}
        assert {"legacy_shape", "moved_to_standard_pool"} <= codes
        assert response.json()["snapshot"]["challenge_pool"][0]["id"] == "q"

    def test_import_bad_snapshot_is_400(self, client, session_url):
        response = client.put(f"{session_url}/snapshot", json={"snapshot": {"version": 99}})
        assert response.status_code == 400
        assert response.json()["error_code"] == "SNAPSHOT_INVALID"
