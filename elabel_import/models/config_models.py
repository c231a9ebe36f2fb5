from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the e-label importer.

Produced by elabel_import.config.loader.load_config(); every value has a
default so the tool also runs without a config file.
"""

DEFAULT_SUBMIT_TIMEOUT_SECONDS = 30.0
DEFAULT_LOGS_DIRECTORY = "./logs"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    user_id: str | None = None  # CLI / 環境変数が優先
    submit_timeout_seconds: float = DEFAULT_SUBMIT_TIMEOUT_SECONDS
    null_sentinels: frozenset[str] = frozenset()  # 大文字化済
    logs_directory: str = DEFAULT_LOGS_DIRECTORY
