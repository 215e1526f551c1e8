"""Concurrent fan-out with partial-failure semantics.

A view issues several independent remote queries at once. Each one settles
into a result-or-error, no failure cancels the rest of the batch, and the
view decides per resource whether a failure is critical (page-level error)
or not (empty result, logged). Retries are manual: a caller re-issues the
whole load, nothing here backs off or retries on its own.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Hashable

log = logging.getLogger(__name__)


class QueryError(Exception):
    """A remote query failed."""


class CriticalResourceError(Exception):
    """The designated critical resource of a view failed or came back empty."""

    def __init__(self, resource: str, reason: str):
        super().__init__(f"{resource}: {reason}")
        self.resource = resource
        self.reason = reason


class Deadline:
    """Absolute deadline shared by the requests of one load."""

    def __init__(self, seconds: float | None):
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @classmethod
    def after(cls, seconds: float | None) -> "Deadline":
        return cls(seconds)

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(self._expires_at - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


def _consume(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        log.debug(f"Late failure after deadline: {task.exception()}")


async def with_deadline(coro: Awaitable, deadline: Deadline | None, default: Any, label: str = "query") -> Any:
    """Race ``coro`` against ``deadline``; on expiry return ``default``.

    The underlying request keeps running, its late result is dropped.
    """
    if deadline is None or deadline.remaining() is None:
        return await coro
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=deadline.remaining())
    except asyncio.TimeoutError:
        log.warning(f"{label} timed out, using empty result")
        task.add_done_callback(_consume)
        return default


@dataclass
class Settled:
    label: str
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(requests: dict[str, Awaitable]) -> dict[str, Settled]:
    """Run all requests concurrently and collect one Settled per label."""
    labels = list(requests)
    results = await asyncio.gather(*requests.values(), return_exceptions=True)
    settled = {}
    for label, result in zip(labels, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            settled[label] = Settled(label, error=result)
        else:
            settled[label] = Settled(label, value=result)
    return settled


def value_or_empty(settled: Settled, empty: Any = None) -> Any:
    """Non-critical policy: a failure becomes the empty result."""
    if empty is None:
        empty = []
    if not settled.ok:
        log.warning(f"{settled.label} failed: {settled.error}")
        return empty
    return settled.value if settled.value is not None else empty


def require(settled: Settled, allow_empty: bool = False) -> Any:
    """Critical policy: a failure aborts the view, and so does an empty
    result unless ``allow_empty`` is set."""
    if not settled.ok:
        log.error(f"{settled.label} failed: {settled.error}")
        raise CriticalResourceError(settled.label, str(settled.error)) from settled.error
    if allow_empty:
        return settled.value if settled.value is not None else []
    if not settled.value:
        log.error(f"{settled.label} returned no data")
        raise CriticalResourceError(settled.label, "no data")
    return settled.value


class ViewGuard:
    """Tracks which identity a view is currently showing.

    A load takes a ticket when it starts; once the view moves on to another
    identity (or reloads the same one), older tickets stop being current and
    their results are discarded.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._current: tuple[int, Hashable] | None = None

    def begin(self, identity: Hashable) -> tuple[int, Hashable]:
        self._current = (next(self._counter), identity)
        return self._current

    def is_current(self, ticket: tuple[int, Hashable]) -> bool:
        return self._current == ticket

    @property
    def identity(self) -> Hashable | None:
        return None if self._current is None else self._current[1]
