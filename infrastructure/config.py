from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Only ever used when DEBUG is on and SECRET_KEY is unset.
_DEV_SECRET_KEY = "grindlog-dev-secret-change-me"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Runtime configuration shared by every entry point.

    Values come from the process environment, after `.env` has been loaded.
    """

    db_path: str = "grindlog.db"
    secret_key: str = _DEV_SECRET_KEY
    token_max_age_days: int = 30
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"
    discord_token: Optional[str] = None
    telegram_token: Optional[str] = None

    @property
    def token_max_age_seconds(self) -> int:
        return self.token_max_age_days * 24 * 60 * 60

    @classmethod
    def from_env(cls, dotenv: bool = True, require_secret: bool = True) -> "Settings":
        """
        Build settings from the environment.

        The chat bots never issue tokens, so they pass `require_secret=False`.
        """

        if dotenv:
            load_dotenv()

        debug = _env_flag("DEBUG")
        secret_key = os.environ.get("SECRET_KEY")
        if not secret_key:
            if require_secret and not debug:
                raise RuntimeError("SECRET_KEY environment variable is not set.")
            if require_secret:
                logger.warning("SECRET_KEY is not set; using the development key.")
            secret_key = _DEV_SECRET_KEY

        return cls(
            db_path=os.environ.get("DB_PATH", "grindlog.db"),
            secret_key=secret_key,
            token_max_age_days=int(os.environ.get("TOKEN_MAX_AGE_DAYS", "30")),
            host=os.environ.get("HOST", "127.0.0.1"),
            port=int(os.environ.get("PORT", "3000")),
            debug=debug,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            discord_token=os.environ.get("DISCORD_TOKEN"),
            telegram_token=os.environ.get("TELEGRAM_TOKEN"),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
