#!filepath: flowexpect/matchers/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Union

Message = Union[str, Callable[[], str], None]


class _Nothing:
    """Sentinel for "matcher called without an expected value"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOTHING"

    def __bool__(self) -> bool:
        return False


NOTHING = _Nothing()


@dataclass(frozen=True)
class PendingAssertion:
    """One expect(x).<matcher>(...) call; consumed immediately."""

    actual: Any
    expected: Any
    matcher_name: str
    negate: bool = False
    extra_args: Tuple[Any, ...] = ()


@dataclass
class MatcherContext:
    """
    Explicit receiver handed to every predicate.

    actual (and expected) are filled with the *resolved* values right
    before the predicate runs; a predicate may set `message` to a string
    or a zero-arg callable.
    """

    matcher_name: str
    negate: bool = False
    actual: Any = None
    expected: Any = NOTHING
    flow: Any = None
    message: Message = field(default=None)

    def render_message(self) -> Optional[str]:
        if self.message is None:
            return None
        return self.message() if callable(self.message) else str(self.message)
