from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when required configuration is missing."""


class Settings:
    """Centralized configuration for the calorie tracker backend."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        repo_root = base_dir.parent
        data_root_default = repo_root / "data"

        self.environment: str = (os.environ.get("APP_ENV") or "development").strip().lower()
        self.version: str = os.environ.get("APP_VERSION") or "1.0.0"

        # ---- Storage ----
        self.data_root: Path = Path(
            os.environ.get("CALORIE_TRACKER_DATA_ROOT") or data_root_default
        ).expanduser()
        self.app_db_path: Path = Path(
            os.environ.get("CALORIE_TRACKER_DB_PATH") or (self.data_root / "calorie_tracker.db")
        ).expanduser()

        # ---- Sessions ----
        # In production you MUST set SESSION_SECRET.
        self.session_secret: str = os.environ.get("SESSION_SECRET") or "dev-secret-change-me"
        self.session_store: str = (os.environ.get("SESSION_STORE") or "sqlite").strip().lower()
        self.session_max_age_seconds: int = int(os.environ.get("SESSION_COOKIE_MAX_AGE") or "604800")
        self.cookie_secure: bool = (os.environ.get("SESSION_COOKIE_SECURE") or "").strip() in {"1", "true", "True"}

        # ---- LLM providers ----
        self.llm_provider: str = (os.environ.get("LLM_PROVIDER") or "openai").strip().lower()
        self.openai_api_key: str | None = os.environ.get("OPENAI_API_KEY") or None
        self.openai_base_url: str = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.openai_model: str = os.environ.get("OPENAI_MODEL", "gpt-3.5-turbo")
        self.deepseek_api_key: str | None = os.environ.get("DEEPSEEK_API_KEY") or None
        self.deepseek_base_url: str = os.environ.get("DEEPSEEK_BASE_URL", "https://api.deepseek.com")
        self.deepseek_model: str = os.environ.get("DEEPSEEK_MODEL", "deepseek-chat")
        self.llm_max_tokens: int = int(os.environ.get("LLM_MAX_TOKENS", "1000"))
        self.llm_temperature: float = float(os.environ.get("LLM_TEMPERATURE", "0.3"))
        self.llm_timeout: float = float(os.environ.get("LLM_TIMEOUT", "30"))

        # ---- Application limits ----
        self.max_search_history_per_session: int = int(os.environ.get("MAX_SEARCH_HISTORY") or "50")
        self.max_food_input_length: int = int(os.environ.get("MAX_FOOD_INPUT_LENGTH") or "500")
        self.max_body_bytes: int = int(os.environ.get("MAX_BODY_BYTES") or str(10 * 1024 * 1024))

        cors = os.environ.get("CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [
                origin.strip() for origin in cors.split(",") if origin.strip()
            ]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def active_api_key(self) -> str | None:
        if self.llm_provider == "deepseek":
            return self.deepseek_api_key
        return self.openai_api_key

    def validate_config(self) -> None:
        """Fail fast in production when the selected provider has no key."""
        if self.environment == "production":
            missing = []
            if not self.active_api_key:
                missing.append(f"{self.llm_provider.upper()}_API_KEY is required in production")
            if self.session_secret == "dev-secret-change-me":
                missing.append("SESSION_SECRET is required in production")
            if missing:
                raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        elif self.is_development and not self.active_api_key:
            logger.info(
                "Tip: set %s_API_KEY to enable nutrition analysis features",
                self.llm_provider.upper(),
            )


settings = Settings()
