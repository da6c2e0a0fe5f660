from __future__ import annotations
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.value_types import FaultMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TXRECORDS_", env_file=".env", env_file_encoding="utf-8", extra="ignore",
    )

    rpc_url: str | None = None
    parquet_dir: str | None = None
    default_mode: FaultMode = "tolerant"
    page_limit: int = Field(default=100, ge=1, le=10_000)

    rpc_timeout_s: int = 20
    rpc_max_connections: int = 64
    rpc_concurrency: int = 8

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
