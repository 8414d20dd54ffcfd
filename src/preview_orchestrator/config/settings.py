"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "preview-orchestrator"
    app_env: str = "dev"
    app_debug: bool = False
    database_url: str = ""

    drafts_dir: Path = PROJECT_ROOT / ".drafts"
    cache_dirname: str = ".template-cache"
    port_base: int = Field(default=3001, ge=1024, le=65000)
    port_span: int = Field(default=100, ge=1)
    preview_host: str = "127.0.0.1"

    max_workspace_age_hours: float = Field(default=12.0, gt=0)
    max_workspace_count: int = Field(default=5, ge=0)
    eviction_grace_minutes: float = Field(default=30.0, ge=0)

    install_command: str = "npm install --prefer-offline --no-audit --no-fund"
    install_timeout_s: float = Field(default=600.0, ge=1.0)
    dev_command: str = "npm run dev"
    process_output_limit_bytes: int = Field(default=65536, ge=1024)

    proxy_max_attempts: int = Field(default=5, ge=1)
    proxy_timeout_s: float = Field(default=10.0, ge=0.1)
    proxy_backoff_base_s: float = Field(default=1.0, ge=0.0)
    proxy_backoff_cap_s: float = Field(default=8.0, ge=0.0)

    events_poll_interval_s: float = Field(default=1.0, gt=0)
    cleanup_token: str = ""

    generator_mode: str = "deterministic"
    code_retry_budget: int = Field(default=1, ge=0)
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=120.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.5, ge=0.0)
    openai_api_key: str = ""

    model_config = SettingsConfigDict(
        env_prefix="PREVIEW_ORCHESTRATOR_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("ORCHESTRATOR_DATABASE_URL", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_cleanup_token(self) -> str:
        return self.cleanup_token or os.getenv("CRON_SECRET", "")

    @property
    def cache_dir(self) -> Path:
        return self.drafts_dir / self.cache_dirname


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
