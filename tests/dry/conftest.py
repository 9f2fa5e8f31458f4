from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

import pytest

from podleader.engine import LockAcquirer
from podleader.errors import RecordExistsError, RecordNotFoundError
from podleader.models import LockRecord, OwnerReference
from podleader.retry import FixedInterval

NAMESPACE = "operators"


class FakeRecordStore:
    """In-memory record store with serialisable create-if-absent.

    Every call yields to the event loop once before touching state, so
    concurrent candidates interleave; the check-and-insert in create never
    yields in between.
    """

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], LockRecord] = {}
        self.pods: dict[tuple[str, str], OwnerReference] = {}
        self.get_calls: list[tuple[str, str]] = []
        self.create_calls: list[LockRecord] = []
        self._get_errors: deque[Exception] = deque()
        self._create_errors: deque[Exception] = deque()

    def put(self, record: LockRecord) -> None:
        self.records[(record.namespace, record.name)] = record

    def remove(self, name: str, namespace: str = NAMESPACE) -> None:
        """Drop a record, as the garbage collector would after its owner is deleted."""
        self.records.pop((namespace, name), None)

    def fail_get(self, *errors: Exception) -> None:
        self._get_errors.extend(errors)

    def fail_create(self, *errors: Exception) -> None:
        self._create_errors.extend(errors)

    async def get(self, name: str, namespace: str) -> LockRecord:
        self.get_calls.append((name, namespace))
        await asyncio.sleep(0)
        if self._get_errors:
            raise self._get_errors.popleft()
        try:
            return self.records[(namespace, name)]
        except KeyError:
            raise RecordNotFoundError(f"{namespace}/{name}") from None

    async def create(self, record: LockRecord) -> LockRecord:
        self.create_calls.append(record)
        await asyncio.sleep(0)
        if self._create_errors:
            raise self._create_errors.popleft()
        key = (record.namespace, record.name)
        if key in self.records:
            raise RecordExistsError(f"{record.namespace}/{record.name}")
        self.records[key] = record
        return record

    async def read_pod(self, name: str, namespace: str) -> OwnerReference:
        return self.pods[(namespace, name)]


class RecordingSleeper:
    """Stands in for asyncio.sleep; records delays and runs queued hooks."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._hooks: deque[Callable[[], None]] = deque()

    def then(self, hook: Callable[[], None]) -> None:
        """Run ``hook`` during the next sleep."""
        self._hooks.append(hook)

    def abort_after(self, count: int, event: asyncio.Event) -> None:
        for _ in range(count - 1):
            self._hooks.append(lambda: None)
        self._hooks.append(event.set)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._hooks:
            self._hooks.popleft()()
        await asyncio.sleep(0)


@pytest.fixture
def fake_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def owner1() -> OwnerReference:
    return OwnerReference(name="operator-7d9f-abcde", uid="0f1e2d3c-0001")


@pytest.fixture
def owner2() -> OwnerReference:
    return OwnerReference(name="operator-7d9f-fghij", uid="0f1e2d3c-0002")


@pytest.fixture
def make_acquirer(fake_store: FakeRecordStore, sleeper: RecordingSleeper):
    """Factory to create a LockAcquirer wired to the fake store and sleeper."""

    def _make(
        *,
        retry_strategy=None,
        abort_event: asyncio.Event | None = None,
        sleep_fn=sleeper,
        store=None,
    ) -> LockAcquirer:
        return LockAcquirer(
            store or fake_store,
            retry_strategy=retry_strategy or FixedInterval(interval_s=1.0),
            sleep_fn=sleep_fn,
            abort_event=abort_event,
        )

    return _make


@pytest.fixture
def namespace() -> str:
    return NAMESPACE
