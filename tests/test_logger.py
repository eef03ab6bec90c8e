#!filepath: tests/test_logger.py
from loguru import logger

from flowexpect.config.log_config import LogConfig
from flowexpect.utils.logger import Logging


def test_configure_from_log_config(tmp_path):
    log_dir = tmp_path / "logs"
    log = Logging()

    log.configure(LogConfig(dir=str(log_dir), level="DEBUG", retention="7 days"))
    try:
        assert (log.log_dir, log.level, log.retention) == (str(log_dir), "DEBUG", "7 days")
        assert log_dir.is_dir()
    finally:
        logger.remove()


def test_timed_passes_through_result():
    log = Logging()

    @log.timed("double")
    def double(x):
        return x * 2

    assert double(4) == 8
    assert double.__name__ == "double"
