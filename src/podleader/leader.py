"""Entry points: become the leader, or find out leader election is disabled.

Leadership is held by the pod that created a ConfigMap named after the
election, with itself as the owner reference. Only one ConfigMap with a given
name can exist per namespace. When the leader pod is deleted the Kubernetes
garbage collector deletes the ConfigMap and a waiting candidate wins the next
create. There is no renewal and no step-down: once ``become`` returns, the
process is leader until it exits.

Example::

    async def main() -> None:
        await become("my-operator-lock")
        await run_operator()
"""

from __future__ import annotations

import asyncio

from podleader._logging import get_logger
from podleader.engine import LockAcquirer, SleepFn
from podleader.errors import FatalElectionError, NamespaceNotFoundError, PodLeaderError
from podleader.identity import IdentityResolver, PodIdentityResolver, PodReader
from podleader.models import ElectionResult
from podleader.retry import RetryStrategy
from podleader.store import KubernetesConfigMapStore, RecordStore

logger = get_logger("podleader")


async def become(
    name: str,
    *,
    resolver: IdentityResolver | None = None,
    store: RecordStore | None = None,
    retry_strategy: RetryStrategy | None = None,
    abort_event: asyncio.Event | None = None,
    sleep_fn: SleepFn | None = None,
    kubeconfig: str | None = None,
) -> ElectionResult:
    """Block until this process is the leader for ``name`` in its namespace.

    Without ``store`` a Kubernetes client is built from the in-cluster config
    (or ``kubeconfig``) after the namespace has been resolved. Without
    ``resolver`` the identity of the current pod is used, which requires the
    store to be able to read pods.

    Raises NamespaceNotFoundError if no namespace can be determined,
    FatalElectionError on any store failure that is not a routine
    not-found or conflict, and ElectionAbortedError if ``abort_event`` is set
    first.
    """
    return await _become(
        name,
        resolver=resolver,
        store=store,
        retry_strategy=retry_strategy,
        abort_event=abort_event,
        sleep_fn=sleep_fn,
        kubeconfig=kubeconfig,
        optional=False,
    )


async def try_become(
    name: str,
    *,
    resolver: IdentityResolver | None = None,
    store: RecordStore | None = None,
    retry_strategy: RetryStrategy | None = None,
    abort_event: asyncio.Event | None = None,
    sleep_fn: SleepFn | None = None,
    kubeconfig: str | None = None,
) -> ElectionResult:
    """Like become, but return DISABLED instead of raising when there is no namespace.

    Useful for a service that may run outside the cluster, e.g. during local
    development. Only a missing namespace disables the election; every other
    failure raises as in become.
    """
    return await _become(
        name,
        resolver=resolver,
        store=store,
        retry_strategy=retry_strategy,
        abort_event=abort_event,
        sleep_fn=sleep_fn,
        kubeconfig=kubeconfig,
        optional=True,
    )


async def _become(
    name: str,
    *,
    resolver: IdentityResolver | None,
    store: RecordStore | None,
    retry_strategy: RetryStrategy | None,
    abort_event: asyncio.Event | None,
    sleep_fn: SleepFn | None,
    kubeconfig: str | None,
    optional: bool,
) -> ElectionResult:
    log = logger.bind(name=name)
    log.info("trying_to_become_leader")

    if resolver is None:
        if store is not None and not isinstance(store, PodReader):
            log.error("no_pod_reader", store=type(store).__name__)
            raise FatalElectionError(
                f"{type(store).__name__} cannot read pods; pass a resolver to identify this process"
            )
        resolver = PodIdentityResolver(store)

    try:
        namespace = await resolver.resolve_namespace()
    except NamespaceNotFoundError:
        if not optional:
            raise
        log.warning("election_disabled", reason="no namespace was detected")
        return ElectionResult.DISABLED

    if store is not None:
        return await _elect(
            name, namespace, resolver, store,
            retry_strategy=retry_strategy, abort_event=abort_event, sleep_fn=sleep_fn,
        )

    async with KubernetesConfigMapStore.connect(kubeconfig) as k8s:
        if isinstance(resolver, PodIdentityResolver) and resolver.pods is None:
            resolver = resolver.with_pods(k8s)
        return await _elect(
            name, namespace, resolver, k8s,
            retry_strategy=retry_strategy, abort_event=abort_event, sleep_fn=sleep_fn,
        )


async def _elect(
    name: str,
    namespace: str,
    resolver: IdentityResolver,
    store: RecordStore,
    *,
    retry_strategy: RetryStrategy | None,
    abort_event: asyncio.Event | None,
    sleep_fn: SleepFn | None,
) -> ElectionResult:
    try:
        owner = await resolver.resolve_owner_ref(namespace)
    except NamespaceNotFoundError as exc:
        # the namespace was already resolved; this is not a "disabled" outcome
        logger.error("owner_resolution_failed", name=name, namespace=namespace, error=str(exc))
        raise FatalElectionError(f"could not resolve owner reference: {exc}") from exc
    except PodLeaderError:
        raise
    except Exception as exc:
        logger.error("owner_resolution_failed", name=name, namespace=namespace, error=str(exc))
        raise FatalElectionError(f"could not resolve owner reference: {exc}") from exc

    acquirer = LockAcquirer(
        store,
        retry_strategy=retry_strategy,
        sleep_fn=sleep_fn,
        abort_event=abort_event,
    )
    await acquirer.acquire(name, namespace, owner)
    return ElectionResult.LEADER
