#!filepath: flowexpect/utils/logger.py
import os
import sys
from functools import wraps
from time import perf_counter
from typing import Callable, Optional

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"


class Logging:
    """
    Adapter logging
    ---------------------------------------
    - stderr sink, resolved lazily (pytest swaps sys.stderr while capturing)
    - optional file sink with rotation / retention
    - timing decorator for slow paths
    ---------------------------------------
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        rotation: str = "1 day",
        retention: str = "30 days",
        log_level: str = "WARNING",
    ):
        self.log_dir = log_dir
        self.rotation = rotation
        self.retention = retention
        self.level = log_level

    @classmethod
    def from_config(cls, cfg) -> "Logging":
        return cls(
            log_dir=cfg.dir,
            rotation=cfg.rotation,
            retention=cfg.retention,
            log_level=cfg.level,
        )

    def configure(self, cfg=None) -> None:
        """
        Reset loguru sinks from a LogConfig (or the current attributes).
        """
        if cfg is not None:
            self.log_dir = cfg.dir
            self.rotation = cfg.rotation
            self.retention = cfg.retention
            self.level = cfg.level

        logger.remove()
        logger.add(
            lambda msg: sys.stderr.write(msg),
            level=self.level,
            format=_FORMAT,
        )

        if self.log_dir:
            os.makedirs(self.log_dir, exist_ok=True)
            logger.add(
                sink=f"{self.log_dir}/{{time:YYYY-MM-DD}}.log",
                rotation=self.rotation,
                retention=self.retention,
                level=self.level,
                format=_FORMAT,
                backtrace=True,
                diagnose=True,
            )

        logger.debug(f"[Logging] configured level={self.level} dir={self.log_dir}")

    # ----------- 日志方法 -----------
    def debug(self, msg: str, *args, **kwargs):
        logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        logger.exception(msg, *args, **kwargs)

    # ---------- 日志装饰器 ----------
    def timed(self, label: Optional[str] = None) -> Callable:
        """
        Log the wall time of a call at debug level, whether it returns or
        raises.
        """

        def decorator(func: Callable):
            name = label or func.__name__

            @wraps(func)
            def wrapper(*args, **kwargs):
                start = perf_counter()
                try:
                    return func(*args, **kwargs)
                finally:
                    logger.debug(f"[TIME] {name} took {perf_counter() - start:.4f}s")

            return wrapper

        return decorator


# 默认全局 logs（plugin 在 pytest_configure 时按配置重置）
logs = Logging()
