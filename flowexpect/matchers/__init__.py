from . import builtin  # noqa: F401  (registers the built-in matchers)
from .adapter import MatcherAdapter, MatcherRegistry, default_registry, register_matcher
from .context import NOTHING, MatcherContext, PendingAssertion
from .expectation import Expectation, expect
from .resolver import PromiseResolver

__all__ = [
    "MatcherAdapter",
    "MatcherRegistry",
    "default_registry",
    "register_matcher",
    "NOTHING",
    "MatcherContext",
    "PendingAssertion",
    "Expectation",
    "expect",
    "PromiseResolver",
]
