#!filepath: flowexpect/matchers/expectation.py
from __future__ import annotations

from functools import partial
from typing import Any, Optional

from flowexpect.runtime.scope import RunScope, current_scope


class Expectation:
    """
    expect(actual).<matcher>(expected, *extra) / expect(actual).not_.<matcher>(...)

    Matchers are looked up by attribute name in the scope's registry; each
    call returns the outcome (bool, or a Deferred resolving to bool).
    """

    def __init__(self, actual: Any, scope: Optional[RunScope] = None, negate: bool = False):
        self._actual = actual
        self._scope = scope if scope is not None else _detached_scope()
        self._negate = negate

    @property
    def not_(self) -> "Expectation":
        return Expectation(self._actual, self._scope, not self._negate)

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        predicate = self._scope.matchers.get(name)
        evaluate = self._scope.adapter().wrap(name, predicate)
        return partial(evaluate, self._actual, negate=self._negate)

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._scope.matchers.names()))

    def __repr__(self) -> str:
        return f"<Expectation {'not ' if self._negate else ''}{self._actual!r}>"


def _detached_scope() -> RunScope:
    # no active test: no flow, no log -> failures raise immediately
    return current_scope() or RunScope(flow=None, log=None)


def expect(actual: Any) -> Expectation:
    return Expectation(actual)
