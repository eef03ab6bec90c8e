#!filepath: tests/runtime/test_level_gate.py
import pytest

from flowexpect.runtime import level_gate
from flowexpect.runtime.level_gate import (
    DetailLevel,
    LevelGate,
    current_gate,
    detail_block,
    detail_enabled,
    pop_gate,
    push_gate,
    set_detail_level,
)
from flowexpect.utils.errors import LevelConfigurationError, UserInputError


@pytest.fixture
def no_active_gate(monkeypatch):
    """隔离本次 pytest 运行自己的 gate"""
    monkeypatch.setattr(level_gate, "_ACTIVE", [])


# =============================
#   DetailLevel：写一次
# =============================
def test_level_unset_by_default():
    level = DetailLevel()
    assert level.value is None
    assert not level.is_set
    assert not level.frozen


def test_level_is_write_once():
    level = DetailLevel()
    level.set(1)
    assert level.value == 1

    with pytest.raises(LevelConfigurationError, match="already set"):
        level.set(2)
    assert level.value == 1


def test_level_cannot_change_after_freeze():
    level = DetailLevel()
    level.freeze()
    with pytest.raises(LevelConfigurationError, match="cannot change"):
        level.set(1)
    assert level.value is None


@pytest.mark.parametrize("bad", [-1, True, "1", 1.5, None])
def test_level_must_be_non_negative_int(bad):
    with pytest.raises(UserInputError):
        DetailLevel().set(bad)


# =============================
#   LevelGate
# =============================
@pytest.mark.parametrize(
    "level, allowed",
    [(0, True), (1, True), (2, False), (3, False)],
)
def test_gate_at_level_one(level, allowed):
    gate = LevelGate(DetailLevel(1))
    assert gate.allows(level) is allowed


def test_unset_gate_allows_everything():
    gate = LevelGate()
    assert all(gate.allows(n) for n in (0, 1, 2, 50))


def test_first_decision_freezes_the_level():
    gate = LevelGate()
    gate.allows(0)
    with pytest.raises(LevelConfigurationError):
        gate.level.set(1)


def test_check_calls_skip_for_deeper_levels():
    gate = LevelGate(DetailLevel(1))
    reasons = []

    assert gate.check(1, skip=reasons.append) is True
    assert gate.check(2, skip=reasons.append) is False
    assert reasons == ["detail level 2 > current level 1"]


def test_define_runs_block_only_when_allowed():
    gate = LevelGate(DetailLevel(1))
    defined = []

    assert gate.define(0, lambda: defined.append(0)) is True
    assert gate.define(1, lambda: defined.append(1)) is True
    assert gate.define(2, lambda: defined.append(2)) is False
    assert defined == [0, 1]


# =============================
#   active gate / registration gating
# =============================
def test_set_detail_level_needs_an_active_run(no_active_gate):
    with pytest.raises(LevelConfigurationError, match="no test run"):
        set_detail_level(1)


def test_set_detail_level_writes_the_active_gate(no_active_gate):
    gate = push_gate(LevelGate())
    set_detail_level(2)
    assert current_gate() is gate
    assert gate.level.value == 2

    pop_gate(gate)
    # 没有 active gate 时退回到一个不过滤的 gate
    assert current_gate() is not gate
    assert current_gate().level.value is None


def test_detail_block_drops_disallowed_definitions(no_active_gate):
    push_gate(LevelGate(DetailLevel(1)))

    @detail_block(1)
    def kept():
        pass

    @detail_block(2)
    class Dropped:
        pass

    assert kept is not None
    assert Dropped is None
    assert detail_enabled(0)
    assert not detail_enabled(3)


def test_detail_block_validates_level():
    with pytest.raises(UserInputError):
        detail_block(-1)
