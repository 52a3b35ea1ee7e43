"""Configuration Module

Centralizes the settings of the embedding sync pipeline. Values come from the
process environment (or a local ``.env``) through pydantic-settings and are
handed to the pipeline explicitly at construction time, so nothing below the
entry point reads ``os.environ`` on its own.

Environment variables:
  OPENAI_API_KEY: Secret for the embedding API; its absence disables syncing
  DATABASE_URL: SQLAlchemy URL of the vector store
  EMBEDDING_MODEL: OpenAI embedding model (default: text-embedding-3-small)
  EMBEDDING_LOCALES: Ordered, comma-separated locale list (default: en,sv,de)
  EMBEDDING_FALLBACK_LOCALE: Locale used when a translation is missing
  RICH_TEXT_CHAR_LIMIT: Max characters extracted from a rich-text description
  MAX_EMBEDDING_CHARS: Max characters sent to the model per document
  USE_FAKE_EMBEDDINGS: Set to '1' to use zero vectors instead of the API
  EMBEDDING_PARALLEL_LOCALES: Set to '1' to process locales in threads
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOCALES = ("en", "sv", "de")
DEFAULT_FALLBACK_LOCALE = "en"
DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


class Settings(BaseSettings):
    """Pipeline settings loaded from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    OPENAI_API_KEY: Optional[str] = None
    DATABASE_URL: str = DEFAULT_DATABASE_URL

    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_LOCALES: str = ",".join(DEFAULT_LOCALES)
    EMBEDDING_FALLBACK_LOCALE: str = DEFAULT_FALLBACK_LOCALE
    EMBEDDING_BATCH_SIZE: int = 50
    EMBEDDING_MAX_RETRIES: int = 5
    EMBEDDING_PARALLEL_LOCALES: bool = False

    RICH_TEXT_CHAR_LIMIT: int = 2000
    MAX_EMBEDDING_CHARS: int = 8000
    USE_FAKE_EMBEDDINGS: bool = False

    @field_validator("EMBEDDING_LOCALES")
    @classmethod
    def _locales_not_empty(cls, value: str) -> str:
        if not [part for part in value.split(",") if part.strip()]:
            raise ValueError("EMBEDDING_LOCALES must name at least one locale")
        return value

    @property
    def locales(self) -> List[str]:
        """Supported locales in configured order, without duplicates."""
        seen: List[str] = []
        for part in self.EMBEDDING_LOCALES.split(","):
            locale = part.strip()
            if locale and locale not in seen:
                seen.append(locale)
        return seen

    @property
    def credentials_present(self) -> bool:
        return bool(self.OPENAI_API_KEY and self.OPENAI_API_KEY.strip())


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, with keyword overrides on top.

    Example:
        >>> settings = load_settings(OPENAI_API_KEY=None)
        >>> settings.credentials_present
        False
    """
    return Settings(**overrides)
