"""Package configuration with validation."""

from enum import Enum
from string import Formatter
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Environment(str, Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Platform(str, Enum):
    """Client platform; selects how denial notices are presented."""
    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


class ConfigurationError(Exception):
    """Raised when configuration is invalid for the environment."""
    pass


DEFAULT_DENIAL_TEMPLATE = "You don't have access to {label}. Ask the primary parent to enable it."


def check_denial_template(template: str) -> str:
    """Return *template* if {label} is its only placeholder, else raise ValueError."""
    try:
        fields = {name for _, name, _, _ in Formatter().parse(template) if name is not None}
        if fields == {"label"}:
            template.format(label="")
    except ValueError as exc:
        raise ValueError(f"Malformed denial template: {exc}") from exc
    if fields != {"label"}:
        raise ValueError("denial_message_template must use {label} as its only placeholder")
    return template


class Settings(BaseSettings):
    """
    Settings for the access engine and its API adapter.

    Every field can be overridden with a ``COMPANION_ACCESS_`` prefixed
    environment variable or a ``.env`` file entry.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMPANION_ACCESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development/production)"
    )

    # Parent-companion API
    api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the parent-companion REST API"
    )
    api_timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds"
    )
    api_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per request before a transient failure is surfaced"
    )

    # Denial notices
    platform: Platform = Field(
        default=Platform.WEB,
        description="Client platform (android shows a toast, others an alert)"
    )
    denial_message_template: str = Field(
        default=DEFAULT_DENIAL_TEMPLATE,
        description="Denial notice text; must contain {label}"
    )
    default_permission_label: str = Field(
        default="this feature",
        description="Label used when a gated action does not name its permission"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @field_validator('api_url')
    @classmethod
    def normalize_api_url(cls, v: str) -> str:
        v = v.strip().rstrip('/')
        if not v:
            raise ValueError("api_url cannot be empty")
        return v

    @field_validator('denial_message_template')
    @classmethod
    def validate_denial_template(cls, v: str) -> str:
        return check_denial_template(v)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    def validate_production_config(self) -> None:
        """Validate configuration for the production environment.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        # Bearer tokens must not travel in clear text
        if not self.api_url.startswith("https://"):
            errors.append(
                f"COMPANION_ACCESS_API_URL is not HTTPS: {self.api_url}. "
                "Access tokens would be sent unencrypted."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )


# Global settings instance
settings = Settings()
