from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration sourced from environment variables."""

    service_title: str = "RiskCheck Content Analysis Service"
    version: str = "1.0.0"

    # Minimum perceived latency: each stage is held at least this long.
    stage_interval_seconds: float = Field(default=0.75, ge=0.0)
    max_run_seconds: float = Field(default=30.0, gt=0.0)

    score_jitter: int = Field(default=15, ge=0)
    score_seed: int | None = None
    simulated_latency_seconds: float = Field(default=0.0, ge=0.0)
    indicator_terms_path: str | None = None

    scoring_backend_url: str | None = None
    scoring_backend_timeout: float = Field(default=20.0, gt=0.0)

    max_upload_bytes: int = 200 * 1024 * 1024
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "case_sensitive": False,
    }


@lru_cache(1)
def get_settings() -> Settings:
    return Settings()
