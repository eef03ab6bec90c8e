#!filepath: flowexpect/__init__.py

from .utils.logger import Logging, logs
from .utils.errors import (
    AssertionFailure,
    FlowExpectError,
    LevelConfigurationError,
    ResolutionError,
    RetryExhausted,
    TaskDiscarded,
    TimeoutFailure,
    UnknownMatcherError,
    UserInputError,
)
from .config import AppConfig
from .engine import ControlFlow, Deferred, DeferredValue, is_deferred
from .matchers import MatcherContext, expect, register_matcher
from .runtime.scope import RunScope, add_matchers, current_scope
from .runtime.level_gate import DetailLevel, LevelGate, detail_block, detail_enabled, set_detail_level
from .utils.retry import RetryRunner, RetryState

__version__ = "0.1.0"

# alias 简化调用
retry_until_pass = RetryRunner.decorator

__all__ = [
    "logs", "Logging",
    "AppConfig",
    "ControlFlow", "Deferred", "DeferredValue", "is_deferred",
    "expect", "register_matcher", "add_matchers", "MatcherContext",
    "RunScope", "current_scope",
    "DetailLevel", "LevelGate", "detail_block", "detail_enabled", "set_detail_level",
    "RetryRunner", "RetryState", "retry_until_pass",
    "AssertionFailure", "FlowExpectError", "LevelConfigurationError", "ResolutionError",
    "RetryExhausted", "TaskDiscarded", "TimeoutFailure", "UnknownMatcherError", "UserInputError",
]
