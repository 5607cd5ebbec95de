"""Application configuration via environment variables."""

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """nitterwatch configuration, loaded from env or .env file."""

    model_config = SettingsConfigDict(
        env_prefix="NITTERWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- Feed source ---
    endpoint: str = "https://nitter.cz"
    interval: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=15.0, gt=0)
    user_agent: str = _DEFAULT_USER_AGENT
    http_proxy: str = ""
    verify_on_subscribe: bool = True

    # --- Rendering ---
    image: bool = True
    show_original_link: bool = True
    original_link_base: str = "https://x.com"
    viewport_width: int = Field(default=3840, ge=320, le=7680)
    viewport_height: int = Field(default=2160, ge=240, le=4320)
    render_timeout: float = Field(default=30.0, gt=0)

    # --- Telegram ---
    telegram_bot_token: SecretStr = SecretStr("")
    telegram_allowed_users: list[int] = Field(default_factory=list)

    # --- Runtime ---
    data_dir: str = "./data"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator("endpoint", "original_link_base")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            msg = f"must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v

    @property
    def db_path(self) -> str:
        return str(Path(self.data_dir) / "nitterwatch.db")
