import sys
from functools import lru_cache
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    app_name: str = Field(default="vrm-bridge")
    log_level: str = Field(default="INFO")
    work_dir: Path = Field(default=Path("/tmp/vrm-bridge"))
    avatars_dir: Path = Field(default=Path.home() / ".vrm-bridge" / "avatars")
    target_height: float = Field(default=1.6, gt=0)
    default_author: str = Field(default="Engine")

    model_config = {
        "env_file": (".env", ".env.local", str(Path(__file__).parent.parent.parent / ".env")),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached application settings."""

    settings = AppSettings()
    settings.work_dir.mkdir(parents=True, exist_ok=True)
    return settings


def configure_logging(settings: AppSettings) -> None:
    """Route loguru output to stderr at the configured level."""

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())
