#!filepath: flowexpect/matchers/resolver.py
from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union

from flowexpect.engine.deferred import DeferredValue, is_deferred, looks_like_handle, resolve_value
from flowexpect.utils.errors import FlowExpectError, ResolutionError
from flowexpect.utils.logger import logs

Outcome = Union[bool, DeferredValue]


class PromiseResolver:
    """
    PromiseResolver (FINAL)

    Contract:
    - evaluate(actual, expected, matcher_fn, negate, extra_args) -> outcome
    - outcome is the *pass* flag: bool when nothing was deferred, otherwise
      a DeferredValue resolving to bool
    - only actual / expected are resolved; extra_args pass through untouched

    Invariants:
    - never waits on the calling thread; deferred operands are resolved
      inside one task queued on the control flow
    - a rejected operand becomes ResolutionError, never a silent False
    """

    def __init__(self, flow=None):
        self.flow = flow

    def evaluate(
        self,
        actual: Any,
        expected: Any,
        matcher_fn: Callable[..., Any],
        negate: bool = False,
        extra_args: Sequence[Any] = (),
        *,
        matcher_name: str = "",
    ) -> Outcome:
        if not (is_deferred(actual) or is_deferred(expected)):
            self._diagnose(actual, expected, matcher_name)
            result = matcher_fn(actual, expected, *extra_args)
            if is_deferred(result):
                return result.then(lambda value: bool(value) != negate)
            return bool(result) != negate

        flow = self._flow_for(actual, expected)
        return flow.execute(
            self._compare,
            actual,
            expected,
            matcher_fn,
            negate,
            tuple(extra_args),
            matcher_name,
            description=f"expect.{matcher_name or 'matcher'}",
        )

    # --------------------------------------------------
    async def _compare(self, actual, expected, matcher_fn, negate, extra_args, matcher_name):
        actual = await self._resolve(actual, "actual", matcher_name)
        expected = await self._resolve(expected, "expected", matcher_name)
        self._diagnose(actual, expected, matcher_name)

        result = matcher_fn(actual, expected, *extra_args)
        if is_deferred(result):
            result = await resolve_value(result)
        return bool(result) != negate

    @staticmethod
    async def _resolve(value: Any, role: str, matcher_name: str) -> Any:
        if not is_deferred(value):
            return value
        try:
            return await resolve_value(value)
        except Exception as exc:
            raise ResolutionError(role, exc, matcher_name=matcher_name) from exc

    def _flow_for(self, *operands):
        if self.flow is not None:
            return self.flow
        # fall back to the flow that produced one of the operands
        for value in operands:
            flow: Optional[Any] = getattr(value, "flow", None)
            if flow is not None and hasattr(flow, "execute"):
                return flow
        raise FlowExpectError("no control flow available to resolve deferred values")

    @staticmethod
    def _diagnose(actual: Any, expected: Any, matcher_name: str) -> None:
        for role, value in (("actual", actual), ("expected", expected)):
            if looks_like_handle(value):
                logs.warning(
                    f"[Resolver] {matcher_name or 'matcher'} got an engine handle as {role} "
                    f"({type(value).__name__}); comparing it directly, not its resolved state"
                )
