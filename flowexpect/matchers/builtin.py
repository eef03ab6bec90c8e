#!filepath: flowexpect/matchers/builtin.py
"""
Built-in matchers.

Every predicate takes the MatcherContext first; `ctx.actual` is already
resolved when the predicate runs.
"""
from __future__ import annotations

import re
from typing import Any

from flowexpect.matchers.adapter import register_matcher

_PRIMITIVES = (int, float, complex, str, bytes, bool, type(None))


@register_matcher()
def to_be(ctx, expected) -> bool:
    actual = ctx.actual
    if actual is expected:
        return True
    # primitives compare by value (and type), objects by identity
    if isinstance(actual, _PRIMITIVES) and type(actual) is type(expected):
        return actual == expected
    return False


@register_matcher()
def to_equal(ctx, expected) -> bool:
    return ctx.actual == expected


@register_matcher()
def to_be_close_to(ctx, expected, precision: int = 2) -> bool:
    return abs(expected - ctx.actual) < (10 ** -precision) / 2


@register_matcher()
def to_be_defined(ctx) -> bool:
    return ctx.actual is not None


@register_matcher()
def to_be_none(ctx) -> bool:
    return ctx.actual is None


@register_matcher()
def to_be_truthy(ctx) -> bool:
    return bool(ctx.actual)


@register_matcher()
def to_be_falsy(ctx) -> bool:
    return not ctx.actual


@register_matcher()
def to_contain(ctx, expected) -> bool:
    return expected in ctx.actual


@register_matcher()
def to_match(ctx, pattern) -> bool:
    return re.search(pattern, str(ctx.actual)) is not None


@register_matcher()
def to_be_greater_than(ctx, expected) -> bool:
    return ctx.actual > expected


@register_matcher()
def to_be_less_than(ctx, expected) -> bool:
    return ctx.actual < expected


@register_matcher()
def to_throw(ctx, expected: Any = None) -> bool:
    """
    Calls the actual. `expected` may be an exception class, an exception
    instance (type and message must match) or a message string.
    """
    if not callable(ctx.actual):
        raise TypeError(f"to_throw needs a callable, got {type(ctx.actual).__name__}")
    try:
        ctx.actual()
    except Exception as exc:
        raised = exc
    else:
        ctx.message = lambda: "Expected function to throw an exception."
        return False

    ctx.message = lambda: (
        f"Expected function {'not ' if ctx.negate else ''}to throw "
        f"{expected!r}, but it threw {raised!r}."
    )
    if expected is None:
        return True
    if isinstance(expected, type) and issubclass(expected, BaseException):
        return isinstance(raised, expected)
    if isinstance(expected, BaseException):
        return type(raised) is type(expected) and str(raised) == str(expected)
    return str(raised) == str(expected)
