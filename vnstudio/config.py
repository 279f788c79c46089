import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


class Settings(BaseSettings):
    app_name: str = "vn_studio"
    env: str = "dev"
    log_level: str = "INFO"

    history_capacity: int = Field(default=100, ge=1)
    max_instant_steps: int = Field(default=10_000, ge=1)
    background_generate_prefix: str = "generate:"
    strict_references: bool = True

    cluster_separator: str = Field(default="_", min_length=1)
    default_cluster: str = "global"
    graph_label_max_chars: int = Field(default=25, ge=1)

    session_capacity: int = Field(default=64, ge=1)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _resolve_log_level(raw: str | None) -> int:
    candidate = str(raw or "").strip().upper()
    level = logging.getLevelName(candidate)
    if isinstance(level, int):
        return level
    return logging.INFO


@lru_cache(maxsize=1)
def configure_logging() -> None:
    root = logging.getLogger("vnstudio")
    root.setLevel(_resolve_log_level(settings.log_level))
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


settings = Settings()
