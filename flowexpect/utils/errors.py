# flowexpect/utils/errors.py
from __future__ import annotations

from typing import Any, List, Optional, Tuple


class UserInputError(RuntimeError):
    """
    Raised for invalid user-provided values (levels, timeouts, etc).
    Should NOT print traceback.
    """


class FlowExpectError(Exception):
    """Base class for errors raised by the adapter itself."""


class AssertionFailure(AssertionError):
    """
    A matcher decided "fail".

    Reported to pytest as an ordinary test failure; the message is either
    the one the matcher set on its context or a generated one.
    """

    def __init__(
        self,
        message: str,
        *,
        matcher_name: str = "",
        actual: Any = None,
        expected: Any = None,
        negate: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.matcher_name = matcher_name
        self.actual = actual
        self.expected = expected
        self.negate = negate


class ResolutionError(AssertionFailure):
    """A deferred operand rejected while the resolver was waiting on it."""

    def __init__(self, role: str, reason: BaseException, *, matcher_name: str = ""):
        super().__init__(
            f"Failed to resolve {role} value for {matcher_name or 'matcher'}: {reason!r}",
            matcher_name=matcher_name,
        )
        self.role = role
        self.reason = reason


class RetryExhausted(AssertionError):
    """The retry budget elapsed; carries the last failure seen."""

    def __init__(self, last_error: Optional[BaseException], attempts: int, elapsed: float):
        super().__init__(
            f"Still failing after {attempts} attempt(s) in {elapsed:.2f}s: {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed = elapsed


class TimeoutFailure(FlowExpectError, TimeoutError):
    """The test's own timeout elapsed while the control flow was still busy."""

    def __init__(self, timeout: float, pending: int = 0):
        super().__init__(
            f"Timed out after {timeout:.2f}s waiting for the control flow "
            f"({pending} task(s) still queued)"
        )
        self.timeout = timeout
        self.pending = pending


class TaskDiscarded(FlowExpectError):
    """Rejection reason for queued tasks that were dropped before running."""


class LevelConfigurationError(FlowExpectError):
    """The detail level was written twice or after gating started."""


class UnknownMatcherError(FlowExpectError, AttributeError):
    """No matcher is registered under the requested name."""


class UnhandledRejection(FlowExpectError):
    """A queued task or continuation failed and nothing chained, awaited or read its Deferred."""

    def __init__(self, errors: List[Tuple[str, BaseException]]):
        lines = "\n".join(f"  {name}: {error!r}" for name, error in errors)
        super().__init__(f"{len(errors)} unhandled rejection(s) on the control flow:\n{lines}")
        self.errors = [error for _, error in errors]
