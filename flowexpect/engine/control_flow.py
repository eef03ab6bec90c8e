#!filepath: flowexpect/engine/control_flow.py
from __future__ import annotations

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional, Set, Tuple

from flowexpect.engine.deferred import Deferred, is_deferred, resolve_value
from flowexpect.utils.errors import FlowExpectError, TaskDiscarded, TimeoutFailure, UnhandledRejection
from flowexpect.utils.logger import logs


@dataclass
class _Task:
    fn: Callable
    args: Tuple[Any, ...]
    deferred: Deferred
    description: str = field(default="task")


class ControlFlow:
    """
    ControlFlow = 单线程有序任务队列（Scheduler）

    设计铁律：
    - 所有 execute() 的任务按 FIFO 顺序执行，一次只跑一个
    - 任务运行期间再 execute() 的子任务进入该任务自己的 frame，
      在下一个兄弟任务之前跑完
    - 任务返回 deferred / awaitable 时，等它 settle 后才算完成
    - 同步代码（测试 body）只负责排队；run_until_idle() 才推进队列
    - 没人 then / await / 读取的 rejection，在 idle 时以 UnhandledRejection 抛出

    The loop is never run while a test body executes, so anything queued by
    the body stays pending until the host drives the flow.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._owns_loop = loop is None
        self.loop = loop if loop is not None else asyncio.new_event_loop()
        self._frames: List[Deque[_Task]] = [deque()]
        self._continuations: Set[asyncio.Future] = set()
        self._wakeup = asyncio.Event()
        self._rejections: List[Deferred] = []

    # --------------------------------------------------
    # scheduling primitives
    # --------------------------------------------------
    def execute(self, fn: Callable, *args, description: Optional[str] = None) -> Deferred:
        """Queue fn(*args); returns a Deferred for its (settled) result."""
        name = description or getattr(fn, "__name__", "task")
        deferred = Deferred(self, name)
        self._frames[-1].append(_Task(fn, args, deferred, name))
        self._wakeup.set()
        return deferred

    def timeout(self, seconds: float, description: str = "timeout") -> Deferred:
        """Queued delay: later tasks wait for it."""
        return self.execute(asyncio.sleep, seconds, description=f"{description}({seconds})")

    def delayed(self, seconds: float) -> Deferred:
        """Unqueued delay: a Deferred that resolves after `seconds`."""
        return Deferred.from_awaitable(self, asyncio.sleep(seconds), f"delayed({seconds})")

    def fulfilled(self, value: Any) -> Deferred:
        deferred = Deferred(self, "fulfilled")
        deferred.resolve(value)
        return deferred

    def rejected(self, error: BaseException) -> Deferred:
        deferred = Deferred(self, "rejected")
        deferred.reject(error)
        return deferred

    def track(self, task: asyncio.Future) -> None:
        """Register a continuation the flow must wait for before going idle."""
        self._continuations.add(task)
        task.add_done_callback(self._continuations.discard)
        task.add_done_callback(lambda _: self._wakeup.set())

    def note_rejection(self, deferred: Deferred) -> None:
        self._rejections.append(deferred)

    # --------------------------------------------------
    # inspection
    # --------------------------------------------------
    @property
    def pending(self) -> int:
        return sum(len(frame) for frame in self._frames)

    def is_idle(self) -> bool:
        return self.pending == 0 and not any(not t.done() for t in self._continuations)

    # --------------------------------------------------
    # driving
    # --------------------------------------------------
    @logs.timed("ControlFlow.run_until_idle")
    def run_until_idle(self, timeout: Optional[float] = None) -> None:
        """
        Drive the queue synchronously until nothing is queued and no tracked
        continuation is pending. Raises TimeoutFailure past `timeout`, then
        UnhandledRejection for failures nobody observed.
        """
        self._run(self._run_until_idle(), timeout)
        self.raise_unhandled()

    def run(self, awaitable, timeout: Optional[float] = None) -> Any:
        """
        Run an awaitable (e.g. an async test body) alongside the queue and
        return its result once both are done.
        """
        result = self._run(self._run_alongside(awaitable), timeout)
        self.raise_unhandled()
        return result

    def raise_unhandled(self) -> None:
        unhandled = [d for d in self._rejections if not d.observed]
        self._rejections.clear()
        if not unhandled:
            return
        errors = [(d.description, d.exception()) for d in unhandled]
        logs.warning(f"[ControlFlow] {len(errors)} rejection(s) nobody handled")
        raise UnhandledRejection(errors) from errors[0][1]

    def reset(self) -> int:
        """
        Drop every queued task, rejecting its Deferred with TaskDiscarded.
        Returns how many were dropped.
        """
        dropped = 0
        for frame in self._frames:
            while frame:
                task = frame.popleft()
                task.deferred.reject(TaskDiscarded(f"task '{task.description}' discarded"))
                dropped += 1
        del self._frames[1:]
        self._rejections.clear()
        if dropped:
            logs.debug(f"[ControlFlow] discarded {dropped} queued task(s)")
        return dropped

    def close(self) -> None:
        """Cancel leftovers and close the loop (only if this flow created it)."""
        self.reset()
        if self.loop.is_closed():
            return
        leftovers = [t for t in asyncio.all_tasks(self.loop) if not t.done()]
        for task in leftovers:
            task.cancel()
        if leftovers:
            self.loop.run_until_complete(asyncio.gather(*leftovers, return_exceptions=True))
        if self._owns_loop:
            self.loop.close()

    # --------------------------------------------------
    # internals
    # --------------------------------------------------
    def _run(self, coro, timeout: Optional[float]):
        if self.loop.is_running():
            coro.close()
            raise FlowExpectError("ControlFlow cannot be driven synchronously from inside its own loop")
        if timeout is not None:
            coro = asyncio.wait_for(coro, timeout)
        try:
            return self.loop.run_until_complete(coro)
        except asyncio.TimeoutError:
            pending = self.pending
            self.reset()
            logs.warning(f"[ControlFlow] timed out after {timeout}s, {pending} task(s) queued")
            raise TimeoutFailure(timeout, pending) from None

    async def _run_until_idle(self) -> None:
        root = self._frames[0]
        while True:
            await self._drain(root)
            waiting = {t for t in self._continuations if not t.done()}
            if not waiting:
                # one more turn so freshly-settled futures can fire callbacks
                await asyncio.sleep(0)
                if not root and not any(not t.done() for t in self._continuations):
                    return
                continue
            await self._wait_for(waiting)

    async def _run_alongside(self, awaitable) -> Any:
        main = asyncio.ensure_future(awaitable)
        self.track(main)
        await self._run_until_idle()
        return main.result()

    async def _drain(self, frame: Deque[_Task]) -> None:
        while frame:
            await self._run_task(frame.popleft())

    async def _run_task(self, task: _Task) -> None:
        frame: Deque[_Task] = deque()
        self._frames.append(frame)
        try:
            value = task.fn(*task.args)
            if is_deferred(value) or inspect.isawaitable(value):
                value = await self._settle(frame, value)
            else:
                await self._drain(frame)
        except Exception as exc:
            task.deferred.reject(exc)
        else:
            task.deferred.resolve(value)
        finally:
            while frame:
                orphan = frame.popleft()
                orphan.deferred.reject(
                    TaskDiscarded(f"task '{orphan.description}' discarded with parent '{task.description}'")
                )
            if self._frames and self._frames[-1] is frame:
                self._frames.pop()

    async def _settle(self, frame: Deque[_Task], value: Any) -> Any:
        future = asyncio.ensure_future(resolve_value(value))
        while True:
            await self._drain(frame)
            if future.done():
                return future.result()
            await self._wait_for({future})

    async def _wait_for(self, futures: Set[asyncio.Future]) -> None:
        self._wakeup.clear()
        waiter = asyncio.ensure_future(self._wakeup.wait())
        try:
            await asyncio.wait(futures | {waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
