# l10n_hub/config.py
"""
本模块定义了 l10n-hub 的全部配置模型。

顶层配置 `L10nHubConfig` 通过 pydantic-settings 从环境变量（前缀 `L10N_HUB_`）
与 `.env` 文件加载；嵌套的子配置使用普通的 pydantic 模型。
"""

import os
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from l10n_hub.utils import validate_lang_codes


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "console"


class RetryPolicyConfig(BaseModel):
    """远端/LLM 提供者的重试策略：第 n 次重试前等待 `base_delay × n²` 秒。"""

    max_attempts: int = Field(default=2, ge=0)
    base_delay: float = Field(default=3.0, ge=0)


class SchedulerConfig(BaseModel):
    parallelism: int = Field(default=1, gt=0, description="每批并发执行的操作数")
    save_failed_jobs: bool = Field(
        default=False, description="提供者失败时将作业保存为 pending 以便稍后继续"
    )


class TMConfig(BaseModel):
    warmup_workers: int = Field(default=8, gt=0, description="TM 预热时的并发作业数")
    exact_match_cache_size: int = Field(default=1024, gt=0)


class L10nHubConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="L10N_HUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///l10n_hub_tm.db"
    jobs_dir: str = "jobs"
    source_lang: str = "en"
    target_langs: list[str] = Field(default_factory=list)
    regression: bool = Field(default=False, description="回归模式：固定时钟与作业 ID")

    provider_pipeline: list[str] = Field(default_factory=list)
    provider_configs: dict[str, Any] = Field(default_factory=dict)

    retry_policy: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    tm: TMConfig = Field(default_factory=TMConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("source_lang")
    @classmethod
    def validate_source_lang_code(cls, v: str) -> str:
        validate_lang_codes([v])
        return v

    @field_validator("target_langs")
    @classmethod
    def validate_target_lang_codes(cls, v: list[str]) -> list[str]:
        validate_lang_codes(v)
        return v

    @property
    def db_path(self) -> str:
        parsed_url = urlparse(self.database_url)
        if not parsed_url.scheme.startswith("sqlite"):
            raise ValueError("db_path 属性仅在 database_url 为 sqlite 类型时可用。")

        path = parsed_url.path
        # 移除 Windows 驱动器号前的斜杠 (例如, '/C:/...' -> 'C:/...')
        if os.name == "nt" and path.startswith("/") and len(path) > 2 and path[2] == ":":
            path = path[1:]
        # '///relative.db' 解析后为 '/relative.db'，'////abs.db' 为 '//abs.db'
        if path.startswith("//"):
            return path[1:]
        return path[1:] if path.startswith("/") else path
