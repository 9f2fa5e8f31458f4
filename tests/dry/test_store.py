from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from kubernetes_asyncio import client
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.config.config_exception import ConfigException
from podleader.errors import (
    FatalElectionError,
    MalformedOwnerError,
    RecordExistsError,
    RecordNotFoundError,
)
from podleader.models import LockRecord, OwnerReference
from podleader.store import KubernetesConfigMapStore, RecordStore

OWNER = OwnerReference(name="operator-abc", uid="pod-uid-1")


def _config_map(name: str, namespace: str, *refs: client.V1OwnerReference) -> client.V1ConfigMap:
    return client.V1ConfigMap(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, owner_references=list(refs) or None)
    )


class FakeCoreV1Api:
    """Records calls; raises or returns whatever was scripted."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.read_result: object = None
        self.create_result: object = None
        self.pod_result: object = None

    def _answer(self, result):
        if isinstance(result, Exception):
            raise result
        return result

    async def read_namespaced_config_map(self, **kw):
        self.calls.append(("read_namespaced_config_map", kw))
        return self._answer(self.read_result)

    async def create_namespaced_config_map(self, **kw):
        self.calls.append(("create_namespaced_config_map", kw))
        if self.create_result is None:
            return kw["body"]
        return self._answer(self.create_result)

    async def read_namespaced_pod(self, **kw):
        self.calls.append(("read_namespaced_pod", kw))
        return self._answer(self.pod_result)


@pytest.fixture
def core_v1():
    return FakeCoreV1Api()


@pytest.fixture
def store(core_v1):
    return KubernetesConfigMapStore(core_v1)


class TestGet:
    async def test_found(self, store, core_v1):
        core_v1.read_result = _config_map(
            "app-lock",
            "ns",
            client.V1OwnerReference(api_version="v1", kind="Pod", name="operator-abc", uid="pod-uid-1"),
        )
        record = await store.get("app-lock", "ns")
        assert record == LockRecord(name="app-lock", namespace="ns", owner_references=(OWNER,))
        assert core_v1.calls == [("read_namespaced_config_map", {"name": "app-lock", "namespace": "ns"})]

    async def test_found_without_owners(self, store, core_v1):
        core_v1.read_result = _config_map("app-lock", "ns")
        record = await store.get("app-lock", "ns")
        assert record.owner_references == ()

    async def test_not_found(self, store, core_v1):
        core_v1.read_result = ApiException(status=404, reason="Not Found")
        with pytest.raises(RecordNotFoundError) as excinfo:
            await store.get("app-lock", "ns")
        assert isinstance(excinfo.value.__cause__, ApiException)

    async def test_other_errors_propagate(self, store, core_v1):
        core_v1.read_result = ApiException(status=403, reason="Forbidden")
        with pytest.raises(ApiException) as excinfo:
            await store.get("app-lock", "ns")
        assert excinfo.value.status == 403

    async def test_missing_metadata_is_malformed(self, store, core_v1):
        core_v1.read_result = client.V1ConfigMap()
        with pytest.raises(MalformedOwnerError):
            await store.get("app-lock", "ns")


class TestCreate:
    async def test_body_carries_owner_reference(self, store, core_v1):
        record = LockRecord.for_owner("app-lock", "ns", OWNER)
        created = await store.create(record)
        assert created == record

        (method, kw), = core_v1.calls
        assert method == "create_namespaced_config_map"
        assert kw["namespace"] == "ns"
        body = kw["body"]
        assert body.api_version == "v1"
        assert body.kind == "ConfigMap"
        assert body.data is None
        assert body.metadata.name == "app-lock"
        assert body.metadata.namespace == "ns"
        (ref,) = body.metadata.owner_references
        assert (ref.api_version, ref.kind, ref.name, ref.uid) == ("v1", "Pod", "operator-abc", "pod-uid-1")

    async def test_conflict(self, store, core_v1):
        core_v1.create_result = ApiException(status=409, reason="Conflict")
        with pytest.raises(RecordExistsError):
            await store.create(LockRecord.for_owner("app-lock", "ns", OWNER))

    async def test_other_errors_propagate(self, store, core_v1):
        core_v1.create_result = ApiException(status=500, reason="Internal Server Error")
        with pytest.raises(ApiException):
            await store.create(LockRecord.for_owner("app-lock", "ns", OWNER))


class TestReadPod:
    async def test_owner_reference_from_pod(self, store, core_v1):
        core_v1.pod_result = client.V1Pod(metadata=client.V1ObjectMeta(name="operator-abc", uid="pod-uid-1"))
        owner = await store.read_pod("operator-abc", "ns")
        assert owner == OWNER
        assert core_v1.calls == [("read_namespaced_pod", {"name": "operator-abc", "namespace": "ns"})]

    async def test_errors_propagate(self, store, core_v1):
        core_v1.pod_result = ApiException(status=404, reason="Not Found")
        with pytest.raises(ApiException):
            await store.read_pod("operator-abc", "ns")


class TestConnect:
    async def test_config_error_is_fatal(self, monkeypatch):
        def fail(**kw):
            raise ConfigException("Service host/port is not set.")

        monkeypatch.setattr("podleader.store.config.load_incluster_config", fail)
        with pytest.raises(FatalElectionError):
            async with KubernetesConfigMapStore.connect():
                pass

    async def test_kubeconfig_used_when_given(self, monkeypatch):
        seen: list[str] = []

        async def load_kube_config(config_file=None, client_configuration=None):
            seen.append(config_file)
            client_configuration.host = "https://127.0.0.1:6443"

        @asynccontextmanager
        async def fake_api_client(configuration=None):
            yield object()

        monkeypatch.setattr("podleader.store.config.load_kube_config", load_kube_config)
        monkeypatch.setattr("podleader.store.client.ApiClient", fake_api_client)
        monkeypatch.setattr("podleader.store.client.CoreV1Api", lambda api: FakeCoreV1Api())

        async with KubernetesConfigMapStore.connect("/tmp/kubeconfig") as store:
            assert isinstance(store.core_v1, FakeCoreV1Api)
        assert seen == ["/tmp/kubeconfig"]


def test_conforms_to_protocol(store):
    assert isinstance(store, RecordStore)
