#!filepath: flowexpect/runtime/scope.py
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional

from flowexpect.engine.control_flow import ControlFlow
from flowexpect.matchers.adapter import MatcherAdapter, MatcherRegistry, Predicate, default_registry
from flowexpect.matchers.resolver import PromiseResolver
from flowexpect.runtime.assertion_log import AssertionLog
from flowexpect.utils.errors import FlowExpectError


@dataclass
class RunScope:
    """
    RunScope = 单个测试运行期上下文

    设计原则：
    - plugin 负责构造（flow fixture）
    - expect() / add_matchers() 只读当前 scope
    - log 每次 retry attempt 换新的
    """

    flow: Optional[ControlFlow] = None
    log: Optional[AssertionLog] = field(default_factory=AssertionLog)
    matchers: MatcherRegistry = field(default_factory=default_registry.child)

    def adapter(self) -> MatcherAdapter:
        return MatcherAdapter(self.matchers, PromiseResolver(self.flow), self.log)

    def new_log(self) -> AssertionLog:
        self.log = AssertionLog()
        return self.log

    def add_matchers(self, matchers: Optional[Mapping[str, Predicate]] = None, **predicates: Predicate) -> None:
        self.matchers.add_matchers(matchers, **predicates)


_current: ContextVar[Optional[RunScope]] = ContextVar("flowexpect_scope", default=None)


def current_scope() -> Optional[RunScope]:
    return _current.get()


@contextmanager
def activate(scope: RunScope) -> Iterator[RunScope]:
    token = _current.set(scope)
    try:
        yield scope
    finally:
        _current.reset(token)


def add_matchers(matchers: Optional[Mapping[str, Predicate]] = None, **predicates: Predicate) -> None:
    """Add matchers for the running test only."""
    scope = current_scope()
    if scope is None:
        raise FlowExpectError(
            "add_matchers() needs an active test scope (request the `flow` fixture); "
            "use register_matcher() for process-wide matchers"
        )
    scope.add_matchers(matchers, **predicates)
