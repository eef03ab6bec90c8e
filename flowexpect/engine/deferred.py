#!filepath: flowexpect/engine/deferred.py
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Generic, Optional, Protocol, TypeVar, runtime_checkable

from flowexpect.utils.errors import TaskDiscarded

T = TypeVar("T")

# automation-style methods that mark an opaque engine handle (element etc.)
HANDLE_METHODS = ("is_displayed", "is_present", "click", "send_keys", "find_element")


@runtime_checkable
class DeferredValue(Protocol):
    """
    Capability contract for "still pending" values.

    Anything with is_pending() and then(callback, errback) qualifies:
    Deferred from ControlFlow, or a matcher's own pseudo-future.
    """

    def is_pending(self) -> bool:
        ...

    def then(self, callback: Optional[Callable] = None, errback: Optional[Callable] = None) -> Any:
        ...


def is_deferred(value: Any) -> bool:
    # classes themselves carry the methods as plain functions
    return not isinstance(value, type) and isinstance(value, DeferredValue)


def looks_like_handle(value: Any) -> bool:
    """
    An engine handle (element reference etc.) that is not itself deferred.
    Comparing one directly is legal but usually a test-authoring slip.
    """
    if value is None or isinstance(value, type) or is_deferred(value):
        return False
    return any(callable(getattr(value, name, None)) for name in HANDLE_METHODS)


def resolve_value(value: Any) -> Awaitable[Any]:
    """
    Turn a DeferredValue (or any awaitable) into something awaitable on the
    running loop. Must be called with a loop running.
    """
    if isinstance(value, Deferred):
        return value._watch()
    if is_deferred(value):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def _ok(result):
            if not future.done():
                future.set_result(result)

        def _fail(error):
            if not future.done():
                if not isinstance(error, BaseException):
                    error = RuntimeError(error)
                future.set_exception(error)

        value.then(_ok, _fail)
        return future
    return asyncio.ensure_future(value)


class Deferred(Generic[T]):
    """
    Deferred (FINAL)

    Role:
    - The future type produced by ControlFlow.

    Invariants:
    - Resolved at most once; the value is cached, so reading it from two
      assertions never re-runs the underlying work.
    - is_pending() stays True until the flow actually ran the producer.
    - a rejection nobody chains, awaits or reads is reported by the flow
      once it goes idle (TaskDiscarded excepted)
    """

    def __init__(self, flow, description: str = ""):
        self.flow = flow
        self.description = description
        self._future: asyncio.Future = flow.loop.create_future()
        self._observed = False

    @classmethod
    def from_awaitable(cls, flow, awaitable: Awaitable, description: str = "") -> "Deferred":
        deferred = cls(flow, description)
        task = flow.loop.create_task(_await(awaitable))
        task.add_done_callback(deferred._copy_from)
        return deferred

    # --------------------------------------------------
    # DeferredValue
    # --------------------------------------------------
    def is_pending(self) -> bool:
        return not self._future.done()

    def then(self, callback: Optional[Callable] = None, errback: Optional[Callable] = None) -> "Deferred":
        """
        Chain a continuation. Returns a new Deferred for the continuation's
        result; the flow waits for it before reporting idle.
        """

        async def _chain():
            try:
                value = await self._future
            except Exception as exc:
                if errback is None:
                    raise
                result = errback(exc)
            else:
                result = callback(value) if callback is not None else value
            if is_deferred(result) or inspect.isawaitable(result):
                result = await resolve_value(result)
            return result

        self._observed = True
        child = Deferred(self.flow, f"{self.description}.then")
        task = self.flow.loop.create_task(_chain())
        task.add_done_callback(child._copy_from)
        self.flow.track(task)
        return child

    # --------------------------------------------------
    # settle
    # --------------------------------------------------
    def resolve(self, value: T) -> None:
        if not self._future.done():
            self._future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(error)
            if not isinstance(error, TaskDiscarded):
                self.flow.note_rejection(self)

    def result(self) -> T:
        """Resolved value (raises if rejected or still pending)."""
        self._observed = True
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        """Rejection reason, None when resolved."""
        self._observed = True
        return self._future.exception()

    @property
    def observed(self) -> bool:
        return self._observed

    def _watch(self) -> asyncio.Future:
        self._observed = True
        return self._future

    def _copy_from(self, task: asyncio.Future) -> None:
        if task.cancelled():
            self._future.cancel()
        elif task.exception() is not None:
            self.reject(task.exception())
        else:
            self.resolve(task.result())

    def __await__(self):
        return self._watch().__await__()

    def __repr__(self) -> str:
        state = "pending" if self.is_pending() else "settled"
        return f"<Deferred {self.description or '?'} {state}>"


async def _await(awaitable):
    return await awaitable
