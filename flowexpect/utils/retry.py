#!filepath: flowexpect/utils/retry.py
from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Callable, Optional

from flowexpect.engine.control_flow import ControlFlow
from flowexpect.runtime.scope import RunScope, activate, current_scope
from flowexpect.utils.errors import RetryExhausted, UserInputError
from flowexpect.utils.logger import logs


class RetryPhase(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXPIRED = "expired"


@dataclass
class RetryState:
    """
    Mutable state of one retrying test body.

    `attempt` is the current wait iteration (0 for the first run).
    """

    attempt: int = 0
    started_at: float = 0.0
    deadline: float = 0.0
    interval: float = 0.0
    last_error: Optional[BaseException] = None
    phase: RetryPhase = RetryPhase.RUNNING

    def begin(self, now: float, budget: float, interval: float) -> None:
        self.attempt = 0
        self.started_at = now
        self.deadline = now + budget
        self.interval = interval
        self.last_error = None
        self.phase = RetryPhase.RUNNING

    @property
    def attempts(self) -> int:
        return self.attempt + 1


class RetryRunner:
    """
    重试直到通过（deadline 驱动，不是次数驱动）

    State machine: RUNNING -> SUCCEEDED
                   RUNNING -> FAILED -> (poll delay) -> RUNNING
                   RUNNING -> EXPIRED  (raises RetryExhausted)

    - 只有 AssertionError 触发重试；TimeoutFailure 和其它异常直接抛出
    - 第一次 attempt 之前已记录的失败（fixture setup）直接抛出，不重试
    - 等待走 flow.timeout()，和队列里其它工作交错执行，不忙等
    - 中间失败只打 debug 日志，最后一次失败随 RetryExhausted 抛出
    """

    def __init__(
        self,
        flow: ControlFlow,
        timeout_budget: float = 5.0,
        poll_interval: float = 0.1,
        drain_timeout: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        if timeout_budget <= 0 or poll_interval <= 0:
            raise UserInputError(
                f"retry needs positive timeout/interval, got {timeout_budget}/{poll_interval}"
            )
        self.flow = flow
        self.timeout_budget = timeout_budget
        self.poll_interval = poll_interval
        self.drain_timeout = drain_timeout
        self.clock = clock if clock is not None else flow.loop.time

    def run(
        self,
        body: Callable,
        scope: RunScope,
        state: Optional[RetryState] = None,
        name: Optional[str] = None,
    ) -> RetryState:
        # work queued before the first attempt (fixture setup) is judged once, never retried
        self.flow.run_until_idle(self.drain_timeout)
        if scope.log is not None:
            scope.log.raise_for_failures()

        state = state if state is not None else RetryState()
        state.begin(self.clock(), self.timeout_budget, self.poll_interval)
        name = name or getattr(body, "__name__", "body")

        while True:
            log = scope.new_log()
            state.phase = RetryPhase.RUNNING
            try:
                outcome = body()
                if inspect.isawaitable(outcome):
                    self.flow.run(outcome, self.drain_timeout)
                else:
                    self.flow.run_until_idle(self.drain_timeout)
                log.raise_for_failures()

            except AssertionError as e:
                self.flow.reset()
                state.last_error = e
                now = self.clock()
                if now >= state.deadline:
                    state.phase = RetryPhase.EXPIRED
                    elapsed = now - state.started_at
                    logs.warning(
                        f"[Retry] {name} gave up after {state.attempts} attempt(s) ({elapsed:.2f}s)"
                    )
                    raise RetryExhausted(e, state.attempts, elapsed) from e

                state.phase = RetryPhase.FAILED
                logs.debug(
                    f"[Retry] {name} attempt {state.attempt} failed: {e}. "
                    f"{self.poll_interval:.2f}s 后重试..."
                )
                self.flow.timeout(self.poll_interval, description="retry-poll")
                self.flow.run_until_idle(self.drain_timeout)
                state.attempt += 1
                continue

            state.phase = RetryPhase.SUCCEEDED
            if state.attempt:
                logs.info(f"[Retry] {name} passed on attempt {state.attempts}")
            return state

    @staticmethod
    def decorator(
        timeout_budget: float = 5.0,
        poll_interval: float = 0.1,
        drain_timeout: Optional[float] = None,
    ):
        """
        装饰器版本：retry a test body outside the pytest marker.

        Uses the active scope's flow, or a private flow for the call.
        """

        def wrapper(func: Callable):
            @wraps(func)
            def inner(*args, **kwargs):
                scope = current_scope()
                if scope is not None and scope.flow is not None:
                    runner = RetryRunner(scope.flow, timeout_budget, poll_interval, drain_timeout)
                    runner.run(lambda: func(*args, **kwargs), scope, name=func.__name__)
                    return None

                flow = ControlFlow()
                try:
                    with activate(RunScope(flow=flow)) as own:
                        runner = RetryRunner(flow, timeout_budget, poll_interval, drain_timeout)
                        runner.run(lambda: func(*args, **kwargs), own, name=func.__name__)
                finally:
                    flow.close()

            return inner

        return wrapper
