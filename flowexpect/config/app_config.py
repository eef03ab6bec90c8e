#!filepath: flowexpect/config/app_config.py
import os
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .run_config import RunConfig

# env var -> (section, key)
ENV_OVERRIDES = {
    "FLOWEXPECT_DETAIL_LEVEL": ("run", "detail_level"),
    "FLOWEXPECT_TIMEOUT": ("run", "default_timeout"),
    "FLOWEXPECT_LOG_LEVEL": ("log", "level"),
}


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @classmethod
    def load(cls, path: Optional[str] = None, env_file: Optional[str] = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - path 为 None 时只用默认值 + 环境变量
        - 环境变量覆盖 YAML（命令行选项由 plugin 再覆盖一次）
        """
        # 1) 先加载 .env（默认当前工作目录）
        if env_file is None:
            env_file = os.path.join(os.getcwd(), ".env")
        load_dotenv(env_file)

        # 2) 读取 YAML
        raw: dict = {}
        if path is not None:
            if not os.path.exists(path):
                raise FileNotFoundError(f"Config file not found: {path}")
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}

        # 3) 从 env 注入 override
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            raw.setdefault(section, {})
            raw[section][key] = value

        return cls(**raw)
