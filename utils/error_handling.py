"""
Error handling utilities for Social Link Bot.

This module provides the decorator that wraps every slash command and the
global application command error handler. Both map exceptions to a single
user-facing reply and log the failure with sensitive values redacted.
"""

import functools
import logging
import re
import traceback
from typing import Any, Callable, Coroutine, Dict, List, Pattern, TypeVar

import discord

from utils.exceptions import (
    DatabaseError,
    ExternalServiceError,
    GuildError,
    PermissionError,
    SocialLinkError,
    UserInputError,
    ValidationError,
)

CommandT = TypeVar("CommandT", bound=Callable[..., Coroutine[Any, Any, Any]])

logger = logging.getLogger("error_handling")

GENERIC_ERROR_MESSAGE = "An error occurred while processing your command."

# Patterns for sensitive information that should be redacted
SENSITIVE_PATTERNS: List[Pattern] = [
    # API keys and tokens
    re.compile(
        r'(api[_-]?key|token|secret|password|auth)[=:]\s*["\'`]?([a-zA-Z0-9_\-\.]{20,})["\'`]?',
        re.IGNORECASE,
    ),
    # Bearer credentials in headers
    re.compile(r"(Bearer)\s+[A-Za-z0-9_\-\.=]+", re.IGNORECASE),
    # Discord tokens
    re.compile(r"[MN][A-Za-z\d]{23}\.[\w-]{6}\.[\w-]{27}"),
    # Database connection strings
    re.compile(r"(postgres(?:ql)?(?:\+asyncpg)?|sqlite(?:\+aiosqlite)?)://[^\s]+", re.IGNORECASE),
]

# Error types whose messages never reach the user verbatim
SENSITIVE_ERROR_TYPES = (DatabaseError, ExternalServiceError)

# Ordered from most to least specific
ERROR_RESPONSES: Dict[type, Dict[str, Any]] = {
    ValidationError: {"message": "{error.message}", "log_level": logging.INFO},
    UserInputError: {"message": "{error.message}", "log_level": logging.INFO},
    PermissionError: {"message": "{error.message}", "log_level": logging.WARNING},
    GuildError: {"message": "{error.message}", "log_level": logging.INFO},
    DatabaseError: {
        "message": "The database is currently unavailable. Please try again later.",
        "log_level": logging.ERROR,
    },
    ExternalServiceError: {
        "message": "An external service is currently unavailable. Please try again later.",
        "log_level": logging.ERROR,
    },
    discord.app_commands.CheckFailure: {
        "message": "You do not have permission to do this",
        "log_level": logging.WARNING,
    },
    SocialLinkError: {"message": "Error: {error.message}", "log_level": logging.ERROR},
    Exception: {"message": GENERIC_ERROR_MESSAGE, "log_level": logging.ERROR},
}


def detect_sensitive_info(text: str) -> bool:
    """Return True if ``text`` matches any sensitive pattern."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in SENSITIVE_PATTERNS)


def redact_sensitive_info(text: str) -> str:
    """
    Redact sensitive information from a string.

    Args:
        text: The text to redact

    Returns:
        The redacted text
    """
    if not text:
        return text

    redacted_text = text
    for pattern in SENSITIVE_PATTERNS:
        if pattern.groups:
            redacted_text = pattern.sub(r"\1: [REDACTED]", redacted_text)
        else:
            redacted_text = pattern.sub("[REDACTED]", redacted_text)
    return redacted_text


def get_user_message(error: Exception) -> tuple[str, int]:
    """Pick the reply text and log level for an exception.

    Args:
        error: The exception raised by a command.

    Returns:
        A tuple of the message to send and the level to log at.
    """
    for error_type, response in ERROR_RESPONSES.items():
        if isinstance(error, error_type):
            try:
                message = response["message"].format(error=error)
            except (KeyError, AttributeError):
                message = GENERIC_ERROR_MESSAGE
            if not isinstance(error, SENSITIVE_ERROR_TYPES) and detect_sensitive_info(
                message
            ):
                message = GENERIC_ERROR_MESSAGE
            return message, response["log_level"]
    return GENERIC_ERROR_MESSAGE, logging.ERROR


def log_error(
    error: Exception,
    command_name: str,
    user_id: int | None,
    log_level: int = logging.ERROR,
    guild_id: int | None = None,
) -> None:
    """Log an error with standardized format.

    Unexpected errors (anything outside the bot's own hierarchy) also get
    their traceback logged.
    """
    error_type = type(error).__name__
    error_message = redact_sensitive_info(getattr(error, "message", str(error)))
    logger.log(
        log_level,
        f"{error_type} in {command_name}: {error_message} | User: {user_id} | Guild: {guild_id}",
    )

    if not isinstance(error, (SocialLinkError, discord.app_commands.CheckFailure)):
        error_details = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        logger.log(
            log_level,
            f"Traceback for {error_type} in {command_name}:\n{redact_sensitive_info(error_details)}",
        )


async def send_error_reply(interaction: discord.Interaction, message: str) -> None:
    """Send ``message`` as the interaction's one reply, or as a followup."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.HTTPException as e:
        logger.error(f"Failed to send error message to user: {e}")


def handle_interaction_errors(func: CommandT) -> CommandT:
    """Decorator for application command callbacks to standardize error handling.

    Exceptions raised by the callback are answered with one ephemeral reply
    chosen by exception type and then logged.

    Args:
        func: The application command callback to decorate

    Returns:
        The decorated function
    """

    @functools.wraps(func)
    async def wrapper(self, interaction: discord.Interaction, *args, **kwargs):
        try:
            return await func(self, interaction, *args, **kwargs)
        except Exception as error:
            user_message, log_level = get_user_message(error)
            await send_error_reply(interaction, user_message)
            log_error(
                error=error,
                command_name=func.__name__,
                user_id=interaction.user.id if interaction.user else None,
                log_level=log_level,
                guild_id=interaction.guild.id if interaction.guild else None,
            )

    return wrapper


async def handle_global_app_command_error(
    interaction: discord.Interaction, error: discord.app_commands.AppCommandError
) -> None:
    """Global error handler for application command errors.

    Catches whatever escapes the per-command decorator, for example check
    failures raised before the callback runs.
    """
    original = getattr(error, "original", error)
    command_name = interaction.command.name if interaction.command else "unknown"

    user_message, log_level = get_user_message(original)
    await send_error_reply(interaction, user_message)
    log_error(
        error=original,
        command_name=command_name,
        user_id=interaction.user.id if interaction.user else None,
        log_level=log_level,
        guild_id=interaction.guild.id if interaction.guild else None,
    )
