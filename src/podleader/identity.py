from __future__ import annotations

import asyncio
import socket
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

from podleader._logging import get_logger
from podleader.errors import FatalElectionError, NamespaceNotFoundError
from podleader.models import OwnerReference

logger = get_logger("podleader.identity")

SERVICE_ACCOUNT_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


@runtime_checkable
class IdentityResolver(Protocol):
    """Supplies the partition and owner reference of the running candidate."""

    async def resolve_namespace(self) -> str:
        """Return the namespace, or raise NamespaceNotFoundError."""
        ...

    async def resolve_owner_ref(self, namespace: str) -> OwnerReference:
        ...


@runtime_checkable
class PodReader(Protocol):
    async def read_pod(self, name: str, namespace: str) -> OwnerReference: ...


class PodIdentityResolver:
    """Identity of the pod this process runs in.

    The namespace comes from the mounted service-account token directory and
    the pod name from the hostname, which Kubernetes sets to the pod name.
    """

    def __init__(
        self,
        pods: PodReader | None = None,
        *,
        namespace_path: str | Path = SERVICE_ACCOUNT_NAMESPACE_PATH,
        pod_name: str | None = None,
    ) -> None:
        self._pods = pods
        self._namespace_path = Path(namespace_path)
        self._pod_name = pod_name

    @property
    def pods(self) -> PodReader | None:
        return self._pods

    def with_pods(self, pods: PodReader) -> PodIdentityResolver:
        return PodIdentityResolver(pods, namespace_path=self._namespace_path, pod_name=self._pod_name)

    async def resolve_namespace(self) -> str:
        try:
            raw = await asyncio.to_thread(self._namespace_path.read_text)
        except FileNotFoundError as exc:
            raise NamespaceNotFoundError(
                "namespace not found for current environment"
            ) from exc
        namespace = raw.strip()
        if not namespace:
            raise NamespaceNotFoundError(f"namespace file {self._namespace_path} is empty")
        logger.info("found_namespace", namespace=namespace)
        return namespace

    async def resolve_owner_ref(self, namespace: str) -> OwnerReference:
        if self._pods is None:
            raise FatalElectionError("no pod reader configured to resolve the owner pod")
        pod_name = self._pod_name or socket.gethostname()
        logger.info("found_hostname", hostname=pod_name)
        owner = await self._pods.read_pod(pod_name, namespace)
        logger.info("found_pod", pod=owner.name, uid=owner.uid)
        return owner


class StaticIdentityResolver:
    """Fixed identity, for running outside a cluster and for tests.

    Without an explicit uid a random token is generated once per instance, so
    two resolvers never recognise each other's records.
    """

    def __init__(
        self,
        namespace: str | None,
        owner_name: str,
        *,
        uid: str | None = None,
        kind: str = "Pod",
        api_version: str = "v1",
    ) -> None:
        self._namespace = namespace
        self._owner = OwnerReference(
            name=owner_name,
            uid=uid if uid is not None else uuid.uuid4().hex,
            kind=kind,
            api_version=api_version,
        )

    async def resolve_namespace(self) -> str:
        if self._namespace is None:
            raise NamespaceNotFoundError("no namespace configured")
        return self._namespace

    async def resolve_owner_ref(self, namespace: str) -> OwnerReference:
        return self._owner
