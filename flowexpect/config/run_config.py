#!filepath: flowexpect/config/run_config.py
from typing import Optional

from pydantic import BaseModel, Field


class RunConfig(BaseModel):
    """
    Per-run knobs.

    detail_level: None means "no filtering, run every level".
    default_timeout: seconds a test may spend draining its control flow.
    retry_timeout / poll_interval: defaults for @pytest.mark.retry.
    """

    detail_level: Optional[int] = Field(default=None, ge=0)
    default_timeout: float = Field(default=5.0, gt=0)
    retry_timeout: float = Field(default=5.0, gt=0)
    poll_interval: float = Field(default=0.1, gt=0)
