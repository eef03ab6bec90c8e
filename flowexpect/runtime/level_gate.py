#!filepath: flowexpect/runtime/level_gate.py
"""
LevelGate (FINAL / FROZEN)

Role:
- Decide whether a test tagged with a detail level takes part in the run.

Rule:
- level <= current  =>  run.  current unset == +infinity (run everything).

Two styles, with deliberately different visibility in reports:
- runtime-gated (@pytest.mark.detail_level(n)): the test is collected and
  reported as *skipped*; its body never runs.
- registration-gated (detail_block(n) / detail_enabled(n)): the block is
  never entered, so its tests are never collected and do not appear in the
  report at all.

The current level is a write-once cell. It freezes at the first gating
decision (or when collection starts); writing it afterwards is a
configuration error.
"""
from __future__ import annotations

from typing import Callable, List, Optional, TypeVar

from flowexpect.utils.errors import LevelConfigurationError, UserInputError
from flowexpect.utils.logger import logs

T = TypeVar("T")


def validate_level(level) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or level < 0:
        raise UserInputError(f"detail level must be an int >= 0, got {level!r}")
    return level


class DetailLevel:
    """Write-once cell holding the run's current detail level."""

    def __init__(self, value: Optional[int] = None):
        self._value: Optional[int] = None
        self._written = False
        self._frozen = False
        if value is not None:
            self.set(value)

    @property
    def value(self) -> Optional[int]:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._written

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set(self, value: int) -> None:
        value = validate_level(value)
        if self._frozen:
            raise LevelConfigurationError(
                f"detail level cannot change to {value} after tests started registering or running"
            )
        if self._written:
            raise LevelConfigurationError(
                f"detail level already set to {self._value}; it may only be set once per run"
            )
        self._value = value
        self._written = True

    def freeze(self) -> None:
        self._frozen = True

    def __repr__(self) -> str:
        return f"DetailLevel({self._value!r}, frozen={self._frozen})"


class LevelGate:
    def __init__(self, level: Optional[DetailLevel] = None):
        self.level = level if level is not None else DetailLevel()

    def allows(self, level: int) -> bool:
        level = validate_level(level)
        self.level.freeze()
        current = self.level.value
        return current is None or level <= current

    # --------------------------------------------------
    # runtime-gated
    # --------------------------------------------------
    def check(self, level: int, skip: Callable[[str], None]) -> bool:
        """
        Call the host's skip primitive when `level` is above the current
        level. Returns True when the test may run.
        """
        if self.allows(level):
            return True
        reason = f"detail level {level} > current level {self.level.value}"
        logs.debug(f"[LevelGate] skip: {reason}")
        skip(reason)
        return False

    # --------------------------------------------------
    # registration-gated
    # --------------------------------------------------
    def define(self, level: int, block: Callable[[], None]) -> bool:
        """Run the test-defining `block` only if `level` is allowed."""
        if not self.allows(level):
            logs.debug(f"[LevelGate] block at level {level} not registered")
            return False
        block()
        return True


# --------------------------------------------------
# active gate (pushed by the pytest plugin per run)
# --------------------------------------------------
_ACTIVE: List[LevelGate] = []


def push_gate(gate: LevelGate) -> LevelGate:
    _ACTIVE.append(gate)
    return gate


def pop_gate(gate: LevelGate) -> None:
    if gate in _ACTIVE:
        _ACTIVE.remove(gate)


def current_gate() -> LevelGate:
    """The gate of the running pytest session, or an unset one."""
    return _ACTIVE[-1] if _ACTIVE else LevelGate()


def set_detail_level(level: int) -> None:
    if not _ACTIVE:
        raise LevelConfigurationError("no test run is being configured; nothing to set the detail level on")
    _ACTIVE[-1].level.set(level)


def detail_enabled(level: int) -> bool:
    """For `if detail_enabled(2):` blocks that define tests at import time."""
    return current_gate().allows(level)


def detail_block(level: int) -> Callable[[T], Optional[T]]:
    """
    Registration-time gate for a test class or function::

        @detail_block(2)
        class TestDeepChecks:
            ...

    Returns None for disallowed levels, so pytest never collects the name.
    """
    validate_level(level)

    def decorator(obj: T) -> Optional[T]:
        return obj if detail_enabled(level) else None

    return decorator
