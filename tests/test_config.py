"""
Tests for configuration loading and validation.
"""

import logging
import os
import sys
from unittest.mock import patch

import pytest
from pydantic import ValidationError

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from config import BotConfig, Environment, load_from_env

REQUIRED_ENV = {
    "BOT_TOKEN": "test-token",
    "CLIENT_ID": "1234567890",
    "DATABASE_URL": "postgresql+asyncpg://bot:pw@localhost/links",
}


def load(**env):
    values = {**REQUIRED_ENV, **env}
    with patch.dict(os.environ, values, clear=True), patch("dotenv.load_dotenv"):
        return load_from_env()


def test_defaults():
    config = load()

    assert config.environment == Environment.DEVELOPMENT
    assert config.supported_providers == ["twitter", "google", "ethereum", "github"]
    assert config.default_providers == ["twitter", "google", "ethereum"]
    assert config.sweep_interval_minutes == 20
    assert config.sweep_concurrency == 10
    assert config.reconcile_after_sweep is True
    assert config.fail_open is False
    assert config.webhook_port == 8080
    assert config.webhook_secret is None
    assert config.developer_id is None


def test_missing_required_values():
    with patch.dict(os.environ, {}, clear=True), patch("dotenv.load_dotenv"):
        with pytest.raises(ValueError) as exc_info:
            load_from_env()

    assert "BOT_TOKEN" in str(exc_info.value)
    assert "DATABASE_URL" in str(exc_info.value)


def test_values_are_parsed():
    config = load(
        SUPPORTED_PROVIDERS="twitter, github",
        DEFAULT_PROVIDERS="github",
        GITHUB_REQUIRED_SCOPES="read:user,user:email",
        SWEEP_INTERVAL_MINUTES="5",
        SWEEP_CONCURRENCY="3",
        FAIL_OPEN="true",
        RECONCILE_AFTER_SWEEP="no",
        DEVELOPER_ID="42",
        WEBHOOK_PORT="9000",
        WEBHOOK_SECRET="s3cret",
        LOGGING_LEVEL="debug",
    )

    assert config.supported_providers == ["twitter", "github"]
    assert config.default_providers == ["github"]
    assert config.github_required_scopes == ["read:user", "user:email"]
    assert config.sweep_interval_minutes == 5
    assert config.sweep_concurrency == 3
    assert config.fail_open is True
    assert config.reconcile_after_sweep is False
    assert config.developer_id == 42
    assert config.webhook_port == 9000
    assert config.webhook_secret == "s3cret"
    assert config.logging_level == logging.DEBUG


@pytest.mark.parametrize(
    "env",
    [
        {"SUPPORTED_PROVIDERS": "twitter,myspace"},
        {"SUPPORTED_PROVIDERS": "twitter", "DEFAULT_PROVIDERS": "google"},
        {"SWEEP_CONCURRENCY": "0"},
        {"SWEEP_INTERVAL_MINUTES": "soon"},
        {"FAIL_OPEN": "maybe"},
        {"LOGGING_LEVEL": "chatty"},
        {"CLIENT_ID": "not-a-snowflake"},
    ],
)
def test_invalid_values_are_rejected(env):
    with pytest.raises(ValueError):
        load(**env)


def test_production_defaults_to_warning():
    assert load(ENVIRONMENT="production").logging_level == logging.WARNING


def test_safe_dict_hides_secrets():
    config = BotConfig(
        bot_token="test-token",
        client_id="1234567890",
        database_url="postgresql+asyncpg://bot:pw@localhost/links",
        webhook_secret="s3cret",
    )

    safe = config.safe_dict()

    assert "bot_token" not in safe
    assert "database_url" not in safe
    assert "webhook_secret" not in safe
    assert safe["client_id"] == "1234567890"


def test_model_rejects_empty_token():
    with pytest.raises(ValidationError):
        BotConfig(bot_token="", client_id="1", database_url="sqlite+aiosqlite://")
