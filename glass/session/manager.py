"""
Session Manager - Creates and runs game sessions.

LIFECYCLE:
1. Host creates a session (in memory, optionally backed by a snapshot store)
2. Setup: players, teams, mode, duration, challenge pools
3. During game:
   - Draw or pick the next challenge
   - Engine assigns participants
   - Host records the outcome (winner, or quiz scores)
   - Engine updates scores, turn and round, and checks the end condition
4. Game ends -> snapshot deleted, final standings remain readable
5. Host can reset to play again with the same challenge pools

PERSISTENCE RULES:
- The reducer never touches storage
- After every successful change the session saves a snapshot while the
  game is active, and deletes it otherwise
- On startup a session can be resumed from the stored snapshot
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import random
import time
import uuid
from pathlib import Path

from ..engine_core.action import Action, ActionResult, ActionType
from ..engine_core.assignment import select_representatives, solo_representative
from ..engine_core.errors import ErrorCode, MigrationCode, MigrationWarning
from ..engine_core.pool import next_challenge
from ..engine_core.reducer import Reducer
from ..engine_core.rotation import current_participant, time_limit_seconds
from ..engine_core.scoring import Standing, compute_standings, determine_winners
from ..engine_core.state import (
    Challenge,
    ChallengeTopology,
    GamePhase,
    ParticipantRef,
    SessionState,
)
from ..snapshot import SnapshotError, SnapshotStore
from .timer import GameTimer

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    """
    One party game, from setup to final standings.

    Contains:
    - The authoritative SessionState
    - The reducer (with the session's seeded random source)
    - Optional snapshot store and wall-clock timer
    - Display-only picks: which player represents each team
    """
    session_id: str
    created_at: float
    reducer: Reducer
    state: SessionState = field(default_factory=SessionState)
    store: SnapshotStore | None = None
    timer: GameTimer = field(default_factory=GameTimer)

    @property
    def rng(self) -> random.Random:
        return self.reducer.rng

    @property
    def representatives(self) -> dict[str, str]:
        return self.state.representatives

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def dispatch(self, action: Action) -> ActionResult:
        """
        Apply an action. On success the new state replaces the old one,
        then the snapshot is written or removed.
        """
        result = self.reducer.apply(self.state, action)
        if not result.success:
            return result

        self.state = result.new_state
        self._after_change(action)
        return result

    def _after_change(self, action: Action):
        if action.action_type == ActionType.START_GAME:
            limit = time_limit_seconds(self.state)
            if limit is not None:
                self.timer.start(limit)
        if not self.state.is_active:
            self.timer.stop()
        self.persist()

    def persist(self):
        """Save while active, delete otherwise."""
        if self.store is None:
            return
        if self.state.is_active:
            self.store.save(self.state)
        else:
            self.store.delete()

    def select_challenge(self, challenge: Challenge) -> ActionResult:
        """
        Select a challenge for the next round.

        If the turn index points past the roster, the turn is reset to the
        first party and the selection is tried once more.
        """
        result = self.dispatch(Action.select_challenge(challenge))
        if result.error_code == ErrorCode.NO_CURRENT_PARTICIPANT:
            logger.warning(
                "No participant at turn %d for session %s, falling back to the first",
                self.state.current_turn_index, self.session_id,
            )
            reset = self.dispatch(Action.reset_turn())
            if reset.success:
                result = self.dispatch(Action.select_challenge(challenge))

        if result.success:
            self._pick_representatives(challenge)
        return result

    def _pick_representatives(self, challenge: Challenge):
        if not self.state.is_team_mode:
            return
        picks = {}
        if challenge.topology == ChallengeTopology.PAIRWISE:
            picks = select_representatives(self.state, challenge, self.rng)
        elif challenge.topology == ChallengeTopology.SOLO:
            team = self.state.current_challenge_participants[0].id
            player = solo_representative(self.state)
            if player:
                picks = {team: player}
        if picks:
            self.state = self.state._copy_with(representatives=picks)
            self.persist()

    def draw_next_challenge(self) -> ActionResult | None:
        """
        Draw a random playable challenge and select it.

        Ends the game when time is up or no challenge is left, in which
        case the END_GAME result is returned. Returns None when the game
        is not waiting for a challenge.
        """
        if self.state.phase != GamePhase.SELECTING:
            return None
        if self.check_time():
            return ActionResult.success_with_state(self.state, ["Time is up"])

        challenge = next_challenge(self.state, self.rng)
        if challenge is None:
            logger.info("Challenge pool exhausted for session %s", self.session_id)
            return self.dispatch(Action.end_game())
        return self.select_challenge(challenge)

    def record_result(
        self,
        winner_id: str | None = None,
        completed: bool = True,
        scores: dict[str, float] | None = None,
    ) -> ActionResult:
        """
        Record the outcome of the current challenge.

        The participants are the assigned ones plus any representative
        players who actually played.
        """
        challenge = self.state.current_challenge
        if challenge is None:
            return self.dispatch(Action.record_result("", completed, winner_id, scores=scores))

        participant_ids = [p.id for p in self.state.current_challenge_participants]
        for player_id in self.representatives.values():
            if player_id not in participant_ids:
                participant_ids.append(player_id)

        return self.dispatch(Action.record_result(
            challenge.id,
            completed,
            winner_id=winner_id,
            participant_ids=participant_ids,
            scores=scores,
        ))

    def check_time(self) -> bool:
        """End a time-limited game whose time is up. True if it ended."""
        if self.state.is_active and self.timer.expired():
            logger.info("Time limit reached for session %s", self.session_id)
            return self.dispatch(Action.end_game()).success
        return False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_finished(self) -> bool:
        return self.state.phase == GamePhase.FINISHED

    def current_participants(self) -> list[ParticipantRef]:
        """Who plays the current challenge, or whose turn it is between challenges."""
        if self.state.current_challenge is not None:
            return list(self.state.current_challenge_participants)
        current = current_participant(self.state)
        return current.participants if current.success else []

    def standings(self) -> list[Standing]:
        return compute_standings(self.state)

    def winners(self) -> list[Standing]:
        return determine_winners(self.state)

    def time_remaining(self) -> float | None:
        return self.timer.remaining()

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def resume(self) -> list[MigrationWarning]:
        """
        Replace the state with the stored snapshot, if there is one.

        Returns the migration warnings. A time-limited game restarts its
        timer with the full limit. A snapshot that cannot be restored is
        deleted and the session keeps its current state.
        """
        if self.store is None:
            return []
        try:
            restored = self.store.load()
        except SnapshotError as e:
            logger.warning("Session %s: discarding snapshot: %s", self.session_id, e)
            self.store.delete()
            return [MigrationWarning(MigrationCode.DISCARDED_SNAPSHOT, str(e))]
        if restored is None:
            return []

        self.state, warnings = restored
        if self.state.is_active:
            limit = time_limit_seconds(self.state)
            if limit is not None:
                self.timer.start(limit)
        else:
            self.store.delete()
        logger.info(
            "Session %s resumed in phase %s with %d warnings",
            self.session_id, self.state.phase.value, len(warnings),
        )
        return warnings


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Create sessions with their own random source and snapshot store
    - Track sessions
    - Clean up finished and stale sessions
    """

    def __init__(self, snapshot_dir: str | Path | None = None, seed: int | None = None):
        self._sessions: dict[str, GameSession] = {}
        self.snapshot_dir = Path(snapshot_dir) if snapshot_dir else None
        self.seed = seed

    def create_session(
        self,
        seed: int | None = None,
        session_id: str | None = None,
        timer: GameTimer | None = None,
    ) -> GameSession:
        """
        Create a new game session.

        Args:
            seed: Seed for the session's random source (falls back to the
                manager's seed, then to an unseeded source)
            session_id: Reuse a known ID, e.g. to resume its snapshot
            timer: Custom timer, mostly for tests

        Returns:
            New GameSession in SETUP, or resumed from its snapshot
        """
        session_id = session_id or str(uuid.uuid4())
        if seed is None:
            seed = self.seed

        store = None
        if self.snapshot_dir is not None:
            store = SnapshotStore(self.snapshot_dir, key=session_id)

        session = GameSession(
            session_id=session_id,
            created_at=time.time(),
            reducer=Reducer(rng=random.Random(seed)),
            store=store,
            timer=timer or GameTimer(),
        )
        session.resume()

        self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> GameSession | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str):
        """
        Remove a session and its snapshot.

        Called when the host leaves or the session goes stale.
        """
        session = self._sessions.pop(session_id, None)
        if session:
            session.timer.stop()
            if session.store:
                session.store.delete()

    def list_active_sessions(self) -> list[str]:
        """List IDs of sessions with a game in progress."""
        return [
            sid for sid, session in self._sessions.items()
            if session.state.is_active
        ]

    def list_sessions(self) -> list[str]:
        return list(self._sessions)

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600):
        """
        Clean up sessions older than max_age that are not in a game.

        Called periodically to free memory.
        """
        current_time = time.time()
        to_remove = [
            session_id
            for session_id, session in self._sessions.items()
            if current_time - session.created_at > max_age_seconds and not session.state.is_active
        ]
        for session_id in to_remove:
            self.end_session(session_id)
