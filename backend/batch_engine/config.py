import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_config_logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)
_STORE_BACKENDS = frozenset({"database", "file"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Batch Content Engine API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///data/batch_engine.db"
    cors_origins: list[str] = ["http://localhost:3020"]

    # OpenRouter configuration (generation capability)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_name: str = "Batch Content Engine"
    openrouter_timeout_seconds: float = 120.0

    # Job store: "database" (key_value_entries table) or "file" (single JSON document)
    job_store_backend: str = "database"
    job_store_path: str = "data/job_store.json"
    job_store_key: str = "batch_engine.current_job"

    # Batch run policy
    batch_max_items: int = 50
    batch_item_delay_seconds: float = 2.0
    batch_average_seconds_per_item: float = 30.0

    # Default generation settings for new jobs
    default_provider: str = "groq"
    default_model: str = "llama-3.3-70b-versatile"
    default_style: str = "casual"
    default_length: str = "medium"
    default_temperature: float = 0.7

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine — SQL queries
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_batch: str = "INFO"            # batch controller / executor / store
    log_level_openrouter: str = "INFO"       # OpenRouter client + content generator

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Fall back to the database store when an unknown backend is configured."""
        if self.job_store_backend not in _STORE_BACKENDS:
            _config_logger.warning(
                "Unknown job_store_backend %r, using 'database'", self.job_store_backend
            )
            object.__setattr__(self, "job_store_backend", "database")


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
