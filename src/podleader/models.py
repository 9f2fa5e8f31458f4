from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable


class ElectionState(enum.Enum):
    """States of the lock acquisition state machine."""

    START = "start"
    READ_RECORD = "read_record"
    CHECK_SELF = "check_self"
    CREATE = "create"
    BACKOFF = "backoff"
    LEADER = "leader"
    FATAL = "fatal"
    ABORTED = "aborted"


class ElectionResult(enum.Enum):
    """Outcome of become / try_become."""

    LEADER = "leader"
    DISABLED = "disabled"


@dataclass(frozen=True, slots=True)
class OwnerReference:
    """Binds a lock record's lifetime to another object, normally the candidate pod."""

    name: str
    uid: str
    kind: str = "Pod"
    api_version: str = "v1"


@dataclass(frozen=True, slots=True)
class LockRecord:
    """The ConfigMap whose existence means a leader exists."""

    name: str
    namespace: str
    owner_references: tuple[OwnerReference, ...] = ()
    api_version: str = "v1"
    kind: str = "ConfigMap"

    @classmethod
    def for_owner(cls, name: str, namespace: str, owner: OwnerReference) -> LockRecord:
        return cls(name=name, namespace=namespace, owner_references=(owner,))


@dataclass(frozen=True, slots=True)
class RetryContext:
    """Context passed to RetryStrategy.next_delay_s."""

    attempt: int
    elapsed_s: float
    last_error: Exception | None = None


StateChangeCallback = Callable[[ElectionState, ElectionState], Any]
WaitingCallback = Callable[[RetryContext], Any]
