from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, NoReturn

from podleader._logging import get_logger
from podleader.errors import (
    ElectionAbortedError,
    FatalElectionError,
    RecordExistsError,
    RecordNotFoundError,
    RetriesExhaustedError,
)
from podleader.models import (
    ElectionState,
    LockRecord,
    OwnerReference,
    RetryContext,
    StateChangeCallback,
    WaitingCallback,
)
from podleader.recognition import is_own_record
from podleader.retry import FixedInterval, RetryStrategy
from podleader.store import RecordStore

logger = get_logger("podleader")

SleepFn = Callable[[float], Awaitable[Any]]


class LockAcquirer:
    """Becomes leader by creating a uniquely named lock record.

    Each pass reads the current record, returns immediately if it is already
    ours, and otherwise tries an atomic create. A conflict on create means
    another candidate holds the lock: the acquirer waits according to its
    retry strategy and starts over from the read. Any other store failure is
    fatal and raised to the caller without retrying.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        retry_strategy: RetryStrategy | None = None,
        sleep_fn: SleepFn | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> None:
        self._store = store
        self._retry_strategy: RetryStrategy = retry_strategy or FixedInterval()
        self._sleep_fn = sleep_fn
        self._abort_event = abort_event

        self._state = ElectionState.START

        self._on_state_change: list[StateChangeCallback] = []
        self._on_waiting: list[WaitingCallback] = []

        self._log = logger

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ElectionState:
        return self._state

    @property
    def is_leader(self) -> bool:
        return self._state == ElectionState.LEADER

    # ------------------------------------------------------------------
    # Event registration decorators
    # ------------------------------------------------------------------

    def on_state_change(self, fn: StateChangeCallback) -> StateChangeCallback:
        self._on_state_change.append(fn)
        return fn

    def on_waiting(self, fn: WaitingCallback) -> WaitingCallback:
        self._on_waiting.append(fn)
        return fn

    async def _fire(self, callbacks: list, *args: Any) -> None:
        for cb in callbacks:
            try:
                result = cb(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._log.exception("callback_error", callback=getattr(cb, "__name__", repr(cb)))

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def acquire(self, name: str, namespace: str, owner: OwnerReference) -> ElectionState:
        """Block until this candidate holds the lock ``name`` in ``namespace``.

        Returns ElectionState.LEADER. Raises FatalElectionError when the store
        fails with anything other than not-found or already-exists, and
        ElectionAbortedError when the abort event is set between attempts.
        """
        self._log = logger.bind(name=name, namespace=namespace)
        self._state = ElectionState.START
        record = LockRecord.for_owner(name, namespace, owner)
        attempt = 0
        first_conflict: float | None = None

        while True:
            if self._should_abort():
                await self._abort(attempt)

            if await self._inspect(name, namespace, owner):
                await self._transition(ElectionState.LEADER)
                return self._state

            await self._transition(ElectionState.CREATE)
            try:
                await self._store.create(record)
            except RecordExistsError as exc:
                attempt += 1
                if first_conflict is None:
                    first_conflict = time.monotonic()
                ctx = RetryContext(
                    attempt=attempt,
                    elapsed_s=time.monotonic() - first_conflict,
                    last_error=exc,
                )
                await self._backoff(ctx)
                continue
            except Exception as exc:
                await self._fail("create_failed", exc)

            self._log.info("became_leader", owner=owner.name, attempt=attempt + 1)
            await self._transition(ElectionState.LEADER)
            return self._state

    async def _inspect(self, name: str, namespace: str, owner: OwnerReference) -> bool:
        """Read the current lock; True if it already belongs to ``owner``."""
        await self._transition(ElectionState.READ_RECORD)
        try:
            existing = await self._store.get(name, namespace)
        except RecordNotFoundError:
            self._log.info("no_existing_lock")
            return False
        except Exception as exc:
            await self._fail("read_failed", exc)

        await self._transition(ElectionState.CHECK_SELF)
        try:
            mine = is_own_record(existing, owner)
        except FatalElectionError as exc:
            await self._fail("malformed_owner", exc)
        if mine:
            # restarted with the same identity before the old lock was collected
            self._log.info("existing_lock_is_mine", owner=owner.name, uid=owner.uid)
            return True
        self._log.info(
            "existing_lock_found",
            owners=",".join(ref.name for ref in existing.owner_references) or "-",
        )
        return False

    async def _backoff(self, ctx: RetryContext) -> None:
        delay = self._retry_strategy.next_delay_s(ctx)
        if delay is None:
            await self._fail(
                "retries_exhausted",
                RetriesExhaustedError(f"gave up after {ctx.attempt} attempts"),
            )
        delay = max(delay, 0.0)
        await self._transition(ElectionState.BACKOFF)
        self._log.info("not_leader_waiting", attempt=ctx.attempt, next_delay=delay)
        await self._fire(self._on_waiting, ctx)
        await self._sleep(delay)

    # ------------------------------------------------------------------
    # Terminal states
    # ------------------------------------------------------------------

    async def _fail(self, event: str, exc: Exception) -> NoReturn:
        await self._transition(ElectionState.FATAL)
        self._log.error(event, error=str(exc) or type(exc).__name__)
        if isinstance(exc, FatalElectionError):
            raise exc
        raise FatalElectionError(f"{event}: {exc}") from exc

    async def _abort(self, attempt: int) -> NoReturn:
        await self._transition(ElectionState.ABORTED)
        self._log.info("election_aborted", attempts=attempt)
        raise ElectionAbortedError("leader election aborted before the lock was acquired")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _transition(self, new_state: ElectionState) -> None:
        old = self._state
        self._state = new_state
        self._log.debug("state_change", **{"from": old.value, "to": new_state.value})
        await self._fire(self._on_state_change, old, new_state)

    def _should_abort(self) -> bool:
        return self._abort_event is not None and self._abort_event.is_set()

    async def _sleep(self, seconds: float) -> None:
        if self._sleep_fn is not None:
            await self._sleep_fn(seconds)
            return
        if self._abort_event is None:
            await asyncio.sleep(seconds)
            return
        if seconds <= 0:
            return
        abort_fut = asyncio.ensure_future(self._abort_event.wait())
        try:
            await asyncio.wait_for(abort_fut, timeout=seconds)
        except asyncio.TimeoutError:
            pass
        finally:
            if not abort_fut.done():
                abort_fut.cancel()
                try:
                    await abort_fut
                except asyncio.CancelledError:
                    pass
