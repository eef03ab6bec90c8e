from .control_flow import ControlFlow
from .deferred import Deferred, DeferredValue, is_deferred, looks_like_handle, resolve_value

__all__ = [
    "ControlFlow",
    "Deferred",
    "DeferredValue",
    "is_deferred",
    "looks_like_handle",
    "resolve_value",
]
