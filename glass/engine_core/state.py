"""
Session State - Entities and the aggregate root of a party game.

Design principles:
- Immutable-friendly: all mutations return new state
- Serializable: the snapshot codec can save/restore every field
- Participants are explicit: every participant reference carries its kind
- Challenge content is opaque: settings are round-tripped, never interpreted
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
import uuid


DEFAULT_DURATION_VALUE = 20

TEAM_COLORS = (
    "pastel-blue",
    "pastel-pink",
    "pastel-yellow",
    "pastel-green",
    "pastel-purple",
    "pastel-orange",
)


def generate_id() -> str:
    """Generate a unique entity ID."""
    return str(uuid.uuid4())


def team_color(index: int) -> str:
    """Colour tag for the team at the given position."""
    return TEAM_COLORS[index % len(TEAM_COLORS)]


class GameMode(Enum):
    """How participants are grouped."""
    FREE_FOR_ALL = "freeForAll"
    TEAMS = "teams"


class ChallengeTopology(Enum):
    """Participation shape of a challenge."""
    SOLO = "individual"
    PAIRWISE = "oneOnOne"
    TEAM = "team"
    ALL_VS_ALL = "allVsAll"


class DurationMode(Enum):
    """How the end of a game is decided."""
    BY_CHALLENGE_COUNT = "challenges"
    BY_TIME = "time"  # duration_value is in minutes


class GamePhase(Enum):
    """Lifecycle phases of a session."""
    SETUP = "setup"
    SELECTING = "selecting"
    AWAITING_RESULT = "awaiting_result"
    FINISHED = "finished"

    @property
    def is_active(self) -> bool:
        return self in (GamePhase.SELECTING, GamePhase.AWAITING_RESULT)


class ParticipantKind(Enum):
    PLAYER = "player"
    TEAM = "team"


class PrebuiltKind(Enum):
    """Settings discriminators the engine knows about."""
    QUIZ = "quiz"
    SPOTIFY_MUSIC_QUIZ = "spotifyMusicQuiz"


QUIZ_LIKE_KINDS = frozenset({PrebuiltKind.QUIZ.value, PrebuiltKind.SPOTIFY_MUSIC_QUIZ.value})


@dataclass(frozen=True)
class ParticipantRef:
    """A participant ID tagged with whether it names a player or a team."""
    id: str
    kind: ParticipantKind

    @classmethod
    def player(cls, player_id: str) -> ParticipantRef:
        return cls(id=player_id, kind=ParticipantKind.PLAYER)

    @classmethod
    def team(cls, team_id: str) -> ParticipantRef:
        return cls(id=team_id, kind=ParticipantKind.TEAM)


@dataclass
class Player:
    """A registered player. Score is only changed by the scoring ledger."""
    id: str
    name: str
    score: float = 0
    team_id: str | None = None

    @classmethod
    def create(cls, name: str, player_id: str | None = None) -> Player:
        """Register a new player with a generated ID and a zero score."""
        return cls(id=player_id or generate_id(), name=name)


@dataclass
class Team:
    """
    A team of players.

    member_ids is ordered and duplicate-free. A player belongs to at most
    one team; the reducer keeps Player.team_id in sync with membership.
    """
    id: str
    name: str
    color_tag: str
    member_ids: list[str] = field(default_factory=list)
    score: float = 0

    @classmethod
    def create(cls, name: str, color_tag: str, team_id: str | None = None) -> Team:
        """Create an empty team with a generated ID and a zero score."""
        return cls(id=team_id or generate_id(), name=name, color_tag=color_tag)

    @property
    def size(self) -> int:
        return len(self.member_ids)

    def has_member(self, player_id: str) -> bool:
        return player_id in self.member_ids


@dataclass(frozen=True)
class ChallengeSettings:
    """
    Tagged settings payload of a prebuilt challenge.

    `kind` is the discriminator (see PrebuiltKind); `data` is opaque and is
    never inspected by the engine. Unknown kinds round-trip untouched.
    """
    kind: str
    data: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def is_known(self) -> bool:
        return self.kind in {k.value for k in PrebuiltKind}

    @property
    def is_quiz_like(self) -> bool:
        return self.kind in QUIZ_LIKE_KINDS


@dataclass(frozen=True)
class Challenge:
    """
    A challenge record. Immutable once selected into a round.

    `prebuilt` marks specially-typed challenges (those with a settings
    payload); they belong in the standard pool, never the custom one.
    """
    id: str
    title: str
    topology: ChallengeTopology
    point_value: int = 1
    reusable: bool = True
    description: str = ""
    difficulty: int = 1
    category: str | None = None
    max_reuse_count: int | None = None
    prebuilt: bool = False
    settings: ChallengeSettings | None = None

    @classmethod
    def create(
        cls,
        title: str,
        topology: ChallengeTopology,
        point_value: int = 1,
        reusable: bool = True,
        **kwargs: Any,
    ) -> Challenge:
        """Create a challenge with a generated ID."""
        challenge_id = kwargs.pop("challenge_id", None) or generate_id()
        kwargs.setdefault("prebuilt", kwargs.get("settings") is not None)
        return cls(
            id=challenge_id,
            title=title,
            topology=topology,
            point_value=point_value,
            reusable=reusable,
            **kwargs,
        )

    @property
    def is_quiz_like(self) -> bool:
        return self.settings is not None and self.settings.is_quiz_like


@dataclass(frozen=True)
class ChallengeResult:
    """
    Outcome of one completed or skipped challenge. Append-only.

    `scores` holds per-participant point totals for quiz-like challenges.
    `awarded` is filled in by the engine with the net points actually
    applied per participant ID while the challenge was current.
    """
    challenge_id: str
    completed: bool
    winner_id: str | None = None
    participant_ids: tuple[str, ...] = ()
    scores: dict[str, float] | None = field(default=None, hash=False)
    timestamp_millis: int = 0
    topology: ChallengeTopology | None = None
    awarded: dict[str, float] = field(default_factory=dict, hash=False)

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.participant_ids or participant_id == self.winner_id


@dataclass
class SessionState:
    """
    Complete session state at a point in time.

    This is the canonical state the engine operates on.
    All state changes go through the reducer.
    """
    phase: GamePhase = GamePhase.SETUP
    game_mode: GameMode = GameMode.FREE_FOR_ALL
    duration_mode: DurationMode = DurationMode.BY_CHALLENGE_COUNT
    duration_value: int = DEFAULT_DURATION_VALUE
    current_round: int = 0
    current_turn_index: int = 0

    # Rosters
    players: list[Player] = field(default_factory=list)
    teams: list[Team] = field(default_factory=list)

    # Challenge pools
    challenge_pool: list[Challenge] = field(default_factory=list)
    custom_challenges: list[Challenge] = field(default_factory=list)
    used_challenge_ids: list[str] = field(default_factory=list)  # ordered, most recent last

    # History
    results: list[ChallengeResult] = field(default_factory=list)

    # Current round
    current_challenge: Challenge | None = None
    current_challenge_participants: list[ParticipantRef] = field(default_factory=list)
    representatives: dict[str, str] = field(default_factory=dict)  # team id -> player who plays for it

    # Live quiz scoring for the current challenge
    pending_tally: dict[str, float] = field(default_factory=dict)
    pending_awarded: dict[str, float] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.phase.is_active

    @property
    def is_team_mode(self) -> bool:
        return self.game_mode == GameMode.TEAMS

    @property
    def roster_size(self) -> int:
        """Size of the collection the turn index points into."""
        return len(self.teams) if self.is_team_mode else len(self.players)

    @property
    def all_challenges(self) -> list[Challenge]:
        return [*self.challenge_pool, *self.custom_challenges]

    def get_player(self, player_id: str) -> Player | None:
        """Get player by ID."""
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def get_team(self, team_id: str) -> Team | None:
        """Get team by ID."""
        for t in self.teams:
            if t.id == team_id:
                return t
        return None

    def get_challenge(self, challenge_id: str) -> Challenge | None:
        for c in self.all_challenges:
            if c.id == challenge_id:
                return c
        if self.current_challenge and self.current_challenge.id == challenge_id:
            return self.current_challenge
        return None

    def resolve(self, participant_id: str) -> ParticipantRef | None:
        """Tag a bare participant ID with its kind, or None if it is unknown."""
        if self.get_team(participant_id):
            return ParticipantRef.team(participant_id)
        if self.get_player(participant_id):
            return ParticipantRef.player(participant_id)
        return None

    def team_of(self, player_id: str) -> Team | None:
        for t in self.teams:
            if t.has_member(player_id):
                return t
        return None

    def with_player(self, player: Player) -> SessionState:
        """Return new state with updated player."""
        new_players = [player if p.id == player.id else p for p in self.players]
        return self._copy_with(players=new_players)

    def with_team(self, team: Team) -> SessionState:
        """Return new state with updated team."""
        new_teams = [team if t.id == team.id else t for t in self.teams]
        return self._copy_with(teams=new_teams)

    def _copy_with(self, **kwargs: Any) -> SessionState:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def fresh(self) -> SessionState:
        """A new SETUP state that keeps only the configured challenge pools."""
        return SessionState(
            challenge_pool=list(self.challenge_pool),
            custom_challenges=list(self.custom_challenges),
        )
