from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.config.config_exception import ConfigException

from podleader._logging import get_logger
from podleader.errors import (
    FatalElectionError,
    MalformedOwnerError,
    RecordExistsError,
    RecordNotFoundError,
)
from podleader.models import LockRecord, OwnerReference

logger = get_logger("podleader.store")


@runtime_checkable
class RecordStore(Protocol):
    """Strongly-consistent store with atomic create-if-absent."""

    async def get(self, name: str, namespace: str) -> LockRecord:
        """Return the record, or raise RecordNotFoundError."""
        ...

    async def create(self, record: LockRecord) -> LockRecord:
        """Create the record, or raise RecordExistsError if the name is taken."""
        ...


def _owner_from_api(ref: Any) -> OwnerReference:
    return OwnerReference(
        name=ref.name or "",
        uid=ref.uid or "",
        kind=ref.kind or "",
        api_version=ref.api_version or "",
    )


def _record_from_config_map(cm: Any) -> LockRecord:
    meta = cm.metadata
    if meta is None:
        raise MalformedOwnerError("configmap returned without metadata")
    refs = tuple(_owner_from_api(ref) for ref in meta.owner_references or ())
    return LockRecord(name=meta.name, namespace=meta.namespace, owner_references=refs)


def _config_map_from_record(record: LockRecord) -> client.V1ConfigMap:
    return client.V1ConfigMap(
        api_version=record.api_version,
        kind=record.kind,
        metadata=client.V1ObjectMeta(
            name=record.name,
            namespace=record.namespace,
            owner_references=[
                client.V1OwnerReference(
                    api_version=ref.api_version,
                    kind=ref.kind,
                    name=ref.name,
                    uid=ref.uid,
                )
                for ref in record.owner_references
            ],
        ),
    )


class KubernetesConfigMapStore:
    """Lock records stored as ConfigMaps, garbage-collected with their owner pod."""

    def __init__(self, core_v1: client.CoreV1Api) -> None:
        self._core_v1 = core_v1

    @property
    def core_v1(self) -> client.CoreV1Api:
        return self._core_v1

    @classmethod
    @asynccontextmanager
    async def connect(cls, kubeconfig: str | None = None) -> AsyncIterator[KubernetesConfigMapStore]:
        """Build a store from in-cluster config, or from ``kubeconfig`` when given.

        The underlying ApiClient is closed when the context exits.
        """
        api_config = client.Configuration()
        try:
            if kubeconfig:
                await config.load_kube_config(config_file=kubeconfig, client_configuration=api_config)
            else:
                config.load_incluster_config(client_configuration=api_config)
        except ConfigException as exc:
            logger.error("client_config_failed", kubeconfig=kubeconfig or "in-cluster", error=str(exc))
            raise FatalElectionError(f"could not configure kubernetes client: {exc}") from exc
        async with client.ApiClient(configuration=api_config) as api:
            yield cls(client.CoreV1Api(api))

    async def get(self, name: str, namespace: str) -> LockRecord:
        try:
            cm = await self._core_v1.read_namespaced_config_map(name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise RecordNotFoundError(f"configmap {namespace}/{name} not found") from exc
            raise
        return _record_from_config_map(cm)

    async def create(self, record: LockRecord) -> LockRecord:
        try:
            cm = await self._core_v1.create_namespaced_config_map(
                namespace=record.namespace, body=_config_map_from_record(record)
            )
        except ApiException as exc:
            if exc.status == 409:
                raise RecordExistsError(
                    f"configmap {record.namespace}/{record.name} already exists"
                ) from exc
            raise
        return _record_from_config_map(cm)

    async def read_pod(self, name: str, namespace: str) -> OwnerReference:
        """Return an owner reference for the pod ``name``."""
        try:
            pod = await self._core_v1.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException:
            logger.error("failed_to_get_pod", pod=name, namespace=namespace)
            raise
        return OwnerReference(name=pod.metadata.name, uid=pod.metadata.uid, kind="Pod", api_version="v1")
