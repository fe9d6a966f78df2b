from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class Stage(str, Enum):
    UNSPECIFIED = "unspecified"
    CONFIGURATION = "configuration"
    PRECONDITION = "precondition"
    FETCH = "fetch"
    COMPARE = "compare"
    COMMIT = "commit"
    FOLLOW_UP = "follow_up"


class GuardError(Exception):
    """Base class for every failure raised while guarding an update."""

    stage: Stage = Stage.UNSPECIFIED
    retryable = False
    user_facing = False
    committed = False

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(GuardError):
    stage = Stage.CONFIGURATION


class PreconditionError(GuardError):
    stage = Stage.PRECONDITION


class FetchError(GuardError):
    stage = Stage.FETCH
    retryable = True


class ImmutabilityViolation(GuardError):
    """An update tried to change a protected attribute."""

    stage = Stage.COMPARE
    user_facing = True

    def __init__(self, attribute: str, record_id: str, *, reason: str = "immutable") -> None:
        super().__init__(f"Attempt to modify immutable field '{attribute}'.")
        self.attribute = attribute
        self.reason = reason
        self.record_id = record_id

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.attribute, "reason": self.reason, "recordId": self.record_id}


class CommitError(GuardError):
    stage = Stage.COMMIT
    retryable = True


class FollowUpError(GuardError):
    """The follow-up action failed after the update was already committed.

    The record change is durable at this point; callers must not read this
    error as "nothing changed".
    """

    stage = Stage.FOLLOW_UP
    committed = True
