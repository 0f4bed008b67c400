"""Application configuration primitives."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load the .env file once for the process."""

    if getattr(_load_env, "_loaded", False):  # type: ignore[attr-defined]
        return

    load_dotenv(dotenv_path)
    setattr(_load_env, "_loaded", True)  # type: ignore[attr-defined]


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class DatabaseSettings:
    """Configuration for the relational database."""

    driver: str = "mysql+pymysql"
    user: str = "payequity"
    password: str = "payequity"
    host: str = "127.0.0.1"
    port: int = 3306
    name: str = "payequity"
    url_override: str | None = None

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """Instantiate settings using environment overrides when present."""

        defaults = cls()
        return cls(
            driver=os.getenv("DB_DRIVER", defaults.driver),
            user=os.getenv("DB_USER", defaults.user),
            password=os.getenv("DB_PASSWORD", defaults.password),
            host=os.getenv("DB_HOST", defaults.host),
            port=int(os.getenv("DB_PORT", defaults.port)),
            name=os.getenv("DB_NAME", defaults.name),
            url_override=os.getenv("DATABASE_URL") or None,
        )

    @property
    def sqlalchemy_url(self) -> str:
        """Return a SQLAlchemy compatible URL."""

        if self.url_override:
            return self.url_override
        return f"{self.driver}://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"

    @property
    def masked_url(self) -> str:
        if self.url_override:
            return self.url_override.split("@")[-1]
        pwd = "***" if self.password else ""
        return f"{self.driver}://{self.user}:{pwd}@{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class LLMSettings:
    """Text-generation collaborator used for mapping assist and narrative reports."""

    enabled: bool = True
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    openai_api_key: str = ""
    claude_api_key: str = ""
    ollama_base_url: str = "http://127.0.0.1:11434"
    max_tokens: int = 1024
    mapping_timeout_seconds: float = 60.0
    report_timeout_seconds: float = 300.0
    report_min_length: int = 50

    @classmethod
    def from_env(cls) -> "LLMSettings":
        defaults = cls()
        return cls(
            enabled=_env_flag("LLM_ENABLED", "1"),
            provider=os.getenv("LLM_PROVIDER", defaults.provider).strip().lower(),
            model=os.getenv("LLM_MODEL", defaults.model),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            claude_api_key=os.getenv("CLAUDE_API_KEY", ""),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", defaults.ollama_base_url),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", defaults.max_tokens)),
            mapping_timeout_seconds=float(
                os.getenv("LLM_MAPPING_TIMEOUT_SECONDS", defaults.mapping_timeout_seconds)
            ),
            report_timeout_seconds=float(
                os.getenv("LLM_REPORT_TIMEOUT_SECONDS", defaults.report_timeout_seconds)
            ),
            report_min_length=int(os.getenv("LLM_REPORT_MIN_LENGTH", defaults.report_min_length)),
        )


@dataclass(frozen=True)
class ImportSettings:
    """File handling options for the import pipeline."""

    upload_dir: Path = Path("uploads")
    sample_size: int = 5

    @classmethod
    def from_env(cls) -> "ImportSettings":
        defaults = cls()
        return cls(
            upload_dir=Path(os.getenv("UPLOAD_DIR", str(defaults.upload_dir))),
            sample_size=int(os.getenv("IMPORT_SAMPLE_SIZE", defaults.sample_size)),
        )


@dataclass(frozen=True)
class RiskSettings:
    """Polling bounds for the synchronous risk-run wrapper."""

    poll_interval_seconds: float = 0.5
    poll_attempts: int = 120

    @classmethod
    def from_env(cls) -> "RiskSettings":
        defaults = cls()
        return cls(
            poll_interval_seconds=float(
                os.getenv("RISK_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds)
            ),
            poll_attempts=int(os.getenv("RISK_POLL_ATTEMPTS", defaults.poll_attempts)),
        )


@dataclass(frozen=True)
class Settings:
    """Container for application configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    background_workers: int = 4
    sqlalchemy_echo: bool = False

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Settings":
        """Build ``Settings`` using environment variables (optionally from ``.env``)."""

        _load_env(dotenv_path)

        sqlalchemy_echo = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"

        return cls(
            database=DatabaseSettings.from_env(),
            llm=LLMSettings.from_env(),
            imports=ImportSettings.from_env(),
            risk=RiskSettings.from_env(),
            background_workers=int(os.getenv("BACKGROUND_WORKERS", "4")),
            sqlalchemy_echo=sqlalchemy_echo,
        )


@lru_cache()
def get_settings(dotenv_path: Optional[Path] = None) -> Settings:
    """Return a cached settings instance."""

    return Settings.from_env(dotenv_path=dotenv_path)
