"""
Engine Errors - Typed error values returned by core operations.

Core operations never raise for expected conditions. They return a result
carrying one of these values and leave the state untouched, so the caller
decides whether to retry with different input.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Machine-readable error codes."""
    INSUFFICIENT_PARTICIPANTS = "INSUFFICIENT_PARTICIPANTS"
    NO_CURRENT_PARTICIPANT = "NO_CURRENT_PARTICIPANT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    UNKNOWN_ENTITY = "UNKNOWN_ENTITY"
    VALIDATION_ERROR = "VALIDATION_ERROR"


@dataclass(frozen=True)
class EngineError:
    """An operation was refused. The state it was given is unchanged."""
    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def insufficient_participants(cls, message: str, **details: Any) -> EngineError:
        return cls(ErrorCode.INSUFFICIENT_PARTICIPANTS, message, details)

    @classmethod
    def no_current_participant(cls, message: str, **details: Any) -> EngineError:
        return cls(ErrorCode.NO_CURRENT_PARTICIPANT, message, details)

    @classmethod
    def invalid_transition(cls, message: str, **details: Any) -> EngineError:
        return cls(ErrorCode.INVALID_TRANSITION, message, details)

    @classmethod
    def unknown_entity(cls, message: str, **details: Any) -> EngineError:
        return cls(ErrorCode.UNKNOWN_ENTITY, message, details)

    @classmethod
    def validation(cls, message: str, **details: Any) -> EngineError:
        return cls(ErrorCode.VALIDATION_ERROR, message, details)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class MigrationCode(Enum):
    """What a snapshot migration step changed."""
    LEGACY_SHAPE = "legacy_shape"
    INFERRED_PREBUILT_FLAG = "inferred_prebuilt_flag"
    MOVED_TO_STANDARD_POOL = "moved_to_standard_pool"
    DROPPED_DUPLICATE = "dropped_duplicate"
    GENERATED_ID = "generated_id"
    FINISHED_SESSION = "finished_session"
    DANGLING_REFERENCE = "dangling_reference"
    INCONSISTENT_PHASE = "inconsistent_phase"
    DISCARDED_SNAPSHOT = "discarded_snapshot"


@dataclass(frozen=True)
class MigrationWarning:
    """Non-fatal note returned alongside a best-effort restored state."""
    code: MigrationCode
    message: str
    entity_id: str | None = None
