"""
Configuration module for Social Link Bot.

This module provides a centralized configuration system with validation
and support for different environments (development, testing, production).
Values are read from environment variables (optionally from a .env file) and
validated by a pydantic model before any service is constructed.
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator, model_validator


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class Provider(str, Enum):
    """Identity providers a Discord account can be linked to."""

    TWITTER = "twitter"
    GOOGLE = "google"
    ETHEREUM = "ethereum"
    GITHUB = "github"
    DISCORD = "discord"


KNOWN_PROVIDERS: List[str] = [provider.value for provider in Provider]
DEFAULT_SUPPORTED_PROVIDERS: List[str] = ["twitter", "google", "ethereum", "github"]
DEFAULT_SERVER_PROVIDERS: List[str] = ["twitter", "google", "ethereum"]
SENSITIVE_FIELDS = frozenset({"bot_token", "database_url", "webhook_secret"})


class BotConfig(BaseModel):
    """
    Validated configuration for the bot.

    Required values are the Discord credentials and the database connection
    string. Everything else has a default suitable for a single-process
    deployment. Sensitive values are marked so they can be left out of logs.
    """

    environment: Environment = Field(
        Environment.DEVELOPMENT, description="Deployment environment"
    )

    # Bot settings
    bot_token: str = Field(
        ..., description="Discord bot token", json_schema_extra={"sensitive": True}
    )
    client_id: str = Field(..., description="Discord application id")
    developer_id: Optional[int] = Field(
        None, description="User id allowed to run gated commands anywhere"
    )
    presence_text: str = Field(
        "www.social-link.xyz", description="Activity shown in the bot's presence"
    )

    # Logging
    logging_level: int = Field(logging.INFO, description="Logging level")
    logfile: str = Field("social_link", description="Log file name")
    log_format: LogFormat = Field(
        LogFormat.CONSOLE, description="Log output format (json or console)"
    )

    # Database
    database_url: str = Field(
        ...,
        description="SQLAlchemy database URL",
        json_schema_extra={"sensitive": True},
    )
    db_pool_size: int = Field(10, description="Database connection pool size")

    # Webhook listener
    webhook_host: str = Field("0.0.0.0", description="Webhook listener host")
    webhook_port: int = Field(8080, description="Webhook listener port")
    webhook_secret: Optional[str] = Field(
        None,
        description="Shared secret expected in X-Webhook-Secret",
        json_schema_extra={"sensitive": True},
    )

    # Providers and verification policy
    supported_providers: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_PROVIDERS),
        description="Providers this deployment accepts",
    )
    default_providers: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SERVER_PROVIDERS),
        description="Providers required by a server until an admin changes them",
    )
    github_required_scopes: List[str] = Field(
        default_factory=list, description="OAuth scopes a GitHub token must keep"
    )
    fail_open: bool = Field(
        False,
        description="Treat a user as fully linked when their links cannot be read",
    )

    # Verification sweep
    sweep_interval_minutes: float = Field(
        20, description="Minutes between scheduled verification sweeps"
    )
    sweep_concurrency: int = Field(
        10, description="Maximum provider checks in flight during a sweep"
    )
    reconcile_after_sweep: bool = Field(
        True, description="Recompute roles for users whose links were revoked"
    )

    # Outbound HTTP
    http_timeout: float = Field(10.0, description="Provider API timeout in seconds")

    @field_validator("bot_token", "client_id", "database_url")
    @classmethod
    def must_not_be_empty(cls, v, info):
        """Validate that required settings are not empty."""
        if not v:
            raise ValueError(f"{info.field_name} must not be empty")
        return v

    @field_validator("client_id")
    @classmethod
    def client_id_must_be_numeric(cls, v):
        if not v.isdigit():
            raise ValueError("client_id must be a Discord snowflake")
        return v

    @field_validator("supported_providers", "default_providers")
    @classmethod
    def providers_must_be_known(cls, v, info):
        """Validate that every configured provider is one the bot knows about."""
        unknown = [provider for provider in v if provider not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown providers in {info.field_name}: {', '.join(unknown)}"
            )
        if not v:
            raise ValueError(f"{info.field_name} must not be empty")
        return v

    @field_validator("sweep_interval_minutes", "sweep_concurrency", "http_timeout")
    @classmethod
    def must_be_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @model_validator(mode="after")
    def defaults_must_be_supported(self) -> "BotConfig":
        """Servers cannot default to requiring a provider nobody can link."""
        missing = [
            provider
            for provider in self.default_providers
            if provider not in self.supported_providers
        ]
        if missing:
            raise ValueError(
                f"Default providers are not supported: {', '.join(missing)}"
            )
        return self

    @classmethod
    def get_sensitive_fields(cls) -> Set[str]:
        """Get the set of sensitive field names that should be handled securely."""
        return set(SENSITIVE_FIELDS)

    def safe_dict(self) -> Dict[str, Any]:
        """Dump the configuration without sensitive values, for logging."""
        return self.model_dump(exclude=self.get_sensitive_fields())


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid {name} value: {value}. Must be true or false.")


def load_from_env() -> BotConfig:
    """
    Load configuration from environment variables.

    Values are read after loading a .env file, if present. Environment
    specific overrides are applied on top of the parsed values.

    Returns:
        BotConfig: A validated configuration object

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    from dotenv import load_dotenv

    load_dotenv()

    missing_vars = []

    def get_env(name, default=None, required=False):
        value = os.getenv(name, default)
        if required and (value is None or value == ""):
            missing_vars.append(name)
        return value

    bot_token = get_env("BOT_TOKEN", "", required=True)
    client_id = get_env("CLIENT_ID", "", required=True)
    database_url = get_env("DATABASE_URL", "", required=True)

    if missing_vars:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing_vars)}"
        )

    environment = get_env("ENVIRONMENT", Environment.DEVELOPMENT.value)
    try:
        environment = Environment(environment)
    except ValueError:
        raise ValueError(f"Unknown environment: {environment}")

    values: Dict[str, Any] = {
        "environment": environment,
        "bot_token": bot_token,
        "client_id": client_id,
        "database_url": database_url,
        "webhook_host": get_env("WEBHOOK_HOST", "0.0.0.0"),
        "webhook_secret": get_env("WEBHOOK_SECRET") or None,
        "logfile": get_env("LOGFILE", "social_link"),
        "log_format": LogFormat(get_env("LOG_FORMAT", LogFormat.CONSOLE.value)),
        "presence_text": get_env("PRESENCE_TEXT", "www.social-link.xyz"),
    }

    numeric = {
        "WEBHOOK_PORT": ("webhook_port", int),
        "DB_POOL_SIZE": ("db_pool_size", int),
        "SWEEP_INTERVAL_MINUTES": ("sweep_interval_minutes", float),
        "SWEEP_CONCURRENCY": ("sweep_concurrency", int),
        "HTTP_TIMEOUT": ("http_timeout", float),
        "DEVELOPER_ID": ("developer_id", int),
    }
    for env_name, (field_name, cast) in numeric.items():
        raw = get_env(env_name)
        if raw is None or raw == "":
            continue
        try:
            values[field_name] = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid {env_name} value: {raw}. Must be a number.")

    for env_name, field_name in (
        ("RECONCILE_AFTER_SWEEP", "reconcile_after_sweep"),
        ("FAIL_OPEN", "fail_open"),
    ):
        raw = get_env(env_name)
        if raw:
            values[field_name] = _parse_bool(env_name, raw)

    for env_name, field_name in (
        ("SUPPORTED_PROVIDERS", "supported_providers"),
        ("DEFAULT_PROVIDERS", "default_providers"),
        ("GITHUB_REQUIRED_SCOPES", "github_required_scopes"),
    ):
        raw = get_env(env_name)
        if raw is not None:
            values[field_name] = _split_csv(raw)

    level_name = get_env("LOGGING_LEVEL")
    if level_name:
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Invalid LOGGING_LEVEL value: {level_name}")
        values["logging_level"] = level

    try:
        config = BotConfig(**values)
    except ValueError as e:
        raise ValueError(f"Configuration validation error: {e}")

    if config.environment == Environment.TESTING:
        config.logfile = "test"
        config.logging_level = logging.DEBUG
    elif config.environment == Environment.PRODUCTION and not level_name:
        config.logging_level = logging.WARNING

    if not config.webhook_secret:
        logging.warning(
            "No WEBHOOK_SECRET provided. The webhook listener accepts unauthenticated requests."
        )

    return config
