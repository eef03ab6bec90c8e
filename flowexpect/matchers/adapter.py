#!filepath: flowexpect/matchers/adapter.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from flowexpect.engine.deferred import is_deferred
from flowexpect.matchers.context import NOTHING, MatcherContext, PendingAssertion
from flowexpect.matchers.resolver import Outcome, PromiseResolver
from flowexpect.utils.errors import AssertionFailure, UnknownMatcherError, UserInputError
from flowexpect.utils.logger import logs

Predicate = Callable[..., Any]


class MatcherRegistry:
    """
    Named predicate table.

    A predicate is called as predicate(ctx, [expected], *extra, **kwargs)
    and returns bool or a DeferredValue resolving to bool. Child registries
    see their parent's matchers and may shadow them.
    """

    def __init__(self, parent: Optional["MatcherRegistry"] = None):
        self.parent = parent
        self._matchers: Dict[str, Predicate] = {}

    def register(self, name: str, predicate: Predicate) -> Predicate:
        if not name.isidentifier() or name.startswith("_"):
            raise UserInputError(f"invalid matcher name: {name!r}")
        if not callable(predicate):
            raise UserInputError(f"matcher {name!r} is not callable")
        self._matchers[name] = predicate
        return predicate

    def add_matchers(self, matchers: Optional[Mapping[str, Predicate]] = None, **predicates: Predicate) -> None:
        for name, predicate in {**(matchers or {}), **predicates}.items():
            self.register(name, predicate)

    def get(self, name: str) -> Predicate:
        registry: Optional[MatcherRegistry] = self
        while registry is not None:
            if name in registry._matchers:
                return registry._matchers[name]
            registry = registry.parent
        raise UnknownMatcherError(f"no matcher named {name!r}")

    def names(self) -> Iterable[str]:
        seen = set(self._matchers)
        if self.parent is not None:
            seen.update(self.parent.names())
        return sorted(seen)

    def child(self) -> "MatcherRegistry":
        return MatcherRegistry(parent=self)

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except UnknownMatcherError:
            return False
        return True


# process-wide table; built-ins are added by flowexpect.matchers.builtin
default_registry = MatcherRegistry()


def register_matcher(name: Optional[str] = None):
    """Decorator: add a predicate to the process-wide registry."""

    def decorator(predicate: Predicate) -> Predicate:
        return default_registry.register(name or predicate.__name__, predicate)

    return decorator


class MatcherAdapter:
    """
    MatcherAdapter（插件注册接口）

    职责：
      - table(): 给 host 一张 name -> 可调用断言 的表
      - wrap(): 把单个 predicate 包成「先 resolve、再判定、再记录」的断言
      - 判定结果只记录一次（pass 或 fail），记录到 AssertionLog

    No log means "raise on failure right away" (plain library use).
    """

    def __init__(self, registry: MatcherRegistry, resolver: PromiseResolver, log=None):
        self.registry = registry
        self.resolver = resolver
        self.log = log

    def table(self) -> Dict[str, Callable[..., Outcome]]:
        return {name: self.wrap(name, self.registry.get(name)) for name in self.registry.names()}

    def wrap(self, name: str, predicate: Predicate) -> Callable[..., Outcome]:
        def evaluate(actual: Any, *args: Any, negate: bool = False, **kwargs: Any) -> Outcome:
            expected = args[0] if args else NOTHING
            pending = PendingAssertion(actual, expected, name, negate, tuple(args[1:]))
            ctx = MatcherContext(name, negate=negate, actual=actual, expected=expected, flow=self.resolver.flow)

            def bound(resolved_actual, resolved_expected, *extra):
                ctx.actual = resolved_actual
                ctx.expected = resolved_expected
                call_args = extra if resolved_expected is NOTHING else (resolved_expected, *extra)
                return predicate(ctx, *call_args, **kwargs)

            try:
                outcome = self.resolver.evaluate(
                    actual, expected, bound, negate, pending.extra_args, matcher_name=name
                )
            except Exception as exc:
                self._reject(pending, exc)
                return False
            return self._judge(pending, ctx, outcome, kwargs)

        evaluate.__name__ = name
        return evaluate

    # --------------------------------------------------
    # judging
    # --------------------------------------------------
    def _judge(self, pending: PendingAssertion, ctx: MatcherContext, outcome: Outcome, kwargs) -> Outcome:
        if is_deferred(outcome):
            return outcome.then(
                lambda passed: self._settle(pending, ctx, passed, kwargs),
                lambda error: self._reject(pending, error),
            )
        return self._settle(pending, ctx, outcome, kwargs)

    def _settle(self, pending: PendingAssertion, ctx: MatcherContext, passed: bool, kwargs) -> bool:
        if passed:
            if self.log is not None:
                self.log.record_pass()
            return True
        self._fail(
            AssertionFailure(
                ctx.render_message() or default_message(pending, ctx, kwargs),
                matcher_name=pending.matcher_name,
                actual=ctx.actual,
                expected=None if ctx.expected is NOTHING else ctx.expected,
                negate=pending.negate,
            )
        )
        return False

    def _reject(self, pending: PendingAssertion, error: BaseException) -> bool:
        if isinstance(error, AssertionFailure):
            failure = error
        else:
            failure = AssertionFailure(
                f"{pending.matcher_name} raised {type(error).__name__}: {error}",
                matcher_name=pending.matcher_name,
                negate=pending.negate,
            )
            failure.__cause__ = error
        self._fail(failure)
        return False

    def _fail(self, failure: AssertionFailure) -> None:
        if self.log is None:
            raise failure
        logs.debug(f"[Matcher] {failure.matcher_name or '?'} failed: {failure}")
        self.log.record_failure(failure)


def humanize(name: str) -> str:
    return name.replace("_", " ")


def default_message(pending: PendingAssertion, ctx: MatcherContext, kwargs: Optional[dict] = None) -> str:
    parts = [f"Expected {ctx.actual!r}"]
    if pending.negate:
        parts.append("not")
    parts.append(humanize(pending.matcher_name))
    if ctx.expected is not NOTHING:
        parts.append(repr(ctx.expected))
    text = " ".join(parts)
    extras = [repr(a) for a in pending.extra_args] + [f"{k}={v!r}" for k, v in (kwargs or {}).items()]
    if extras:
        text += ", " + ", ".join(extras)
    return text + "."
