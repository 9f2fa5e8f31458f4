from podleader.engine import LockAcquirer
from podleader.errors import (
    ElectionAbortedError,
    FatalElectionError,
    MalformedOwnerError,
    NamespaceNotFoundError,
    PodLeaderError,
    RecordExistsError,
    RecordNotFoundError,
    RetriesExhaustedError,
)
from podleader.identity import IdentityResolver, PodIdentityResolver, StaticIdentityResolver
from podleader.leader import become, try_become
from podleader.models import (
    ElectionResult,
    ElectionState,
    LockRecord,
    OwnerReference,
    RetryContext,
    StateChangeCallback,
    WaitingCallback,
)
from podleader.recognition import is_own_record
from podleader.retry import (
    DecorrelatedJitter,
    ExponentialBackoff,
    FixedInterval,
    LimitedAttempts,
    RetryStrategy,
)
from podleader.store import KubernetesConfigMapStore, RecordStore

__all__ = [
    "become",
    "try_become",
    "LockAcquirer",
    "is_own_record",
    "ElectionResult",
    "ElectionState",
    "LockRecord",
    "OwnerReference",
    "RetryContext",
    "StateChangeCallback",
    "WaitingCallback",
    "IdentityResolver",
    "PodIdentityResolver",
    "StaticIdentityResolver",
    "RecordStore",
    "KubernetesConfigMapStore",
    "RetryStrategy",
    "FixedInterval",
    "ExponentialBackoff",
    "DecorrelatedJitter",
    "LimitedAttempts",
    "PodLeaderError",
    "RecordNotFoundError",
    "RecordExistsError",
    "NamespaceNotFoundError",
    "FatalElectionError",
    "MalformedOwnerError",
    "RetriesExhaustedError",
    "ElectionAbortedError",
]
