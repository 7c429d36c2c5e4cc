"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables with validation.

Settings are loaded once at startup with ``load_settings()`` and passed to
the components that need them; nothing re-reads the environment later.
"""
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from mailgun_exporter.common.exceptions import ConfigurationError

# Load .env file into os.environ so all nested BaseSettings pick up values
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


class MailgunSettings(BaseSettings):
    """Mailgun API access and scrape configuration"""
    scrape_domains: str
    mg_api_key: str
    api_base: Optional[str] = Field(default=None)
    api_timeout_seconds: float = Field(default=30.0, gt=0)
    scrape_concurrency: int = Field(default=1, ge=1)

    class Config:
        env_prefix = ""
        frozen = True

    @field_validator("scrape_domains")
    @classmethod
    def require_domains(cls, value: str) -> str:
        if not [d for d in value.split(",") if d.strip()]:
            raise ValueError("at least one domain is required")
        return value

    @field_validator("mg_api_key")
    @classmethod
    def require_api_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("API key must not be empty")
        return value

    @field_validator("api_base")
    @classmethod
    def blank_api_base_is_default(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def domains(self) -> List[str]:
        """Configured domains, trimmed, in configured order."""
        return [d.strip() for d in self.scrape_domains.split(",") if d.strip()]


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: str = Field(default="INFO")
    format: str = Field(default="json")

    class Config:
        env_prefix = "LOG_"
        frozen = True

    @field_validator("level")
    @classmethod
    def known_level(cls, value: str) -> str:
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return value.upper()

    @field_validator("format")
    @classmethod
    def known_format(cls, value: str) -> str:
        if value.lower() not in ("json", "text"):
            raise ValueError(f"unknown log format {value!r}")
        return value.lower()


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections"""
    mailgun: MailgunSettings = Field(default_factory=MailgunSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        extra = "ignore"
        frozen = True


_ENV_NAMES = {"level": "LOG_LEVEL", "format": "LOG_FORMAT"}


def _describe_errors(exc: ValidationError) -> List[str]:
    problems = []
    for error in exc.errors():
        field = str(error["loc"][-1]) if error["loc"] else "?"
        variable = _ENV_NAMES.get(field, field.upper())
        if error["type"] == "missing":
            problems.append(f"required environment variable {variable} not defined")
        else:
            problems.append(f"invalid environment variable {variable}: {error['msg']}")
    return problems


def load_settings() -> Settings:
    """
    Load and validate settings from the environment.

    Every section is validated before failing so that all problems are
    reported at once.

    Returns:
        Immutable Settings instance

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    sections = {}
    problems: List[str] = []
    for name, section_cls in (("mailgun", MailgunSettings), ("logging", LoggingSettings)):
        try:
            sections[name] = section_cls()
        except ValidationError as e:
            problems.extend(_describe_errors(e))

    if problems:
        raise ConfigurationError("; ".join(problems))

    return Settings(**sections)
