"""Custom exception hierarchy for Social Link Bot.

These exceptions are raised by command handlers and services and caught in
one place by the error handling decorators, which turn them into a single
user-facing reply.
"""


class SocialLinkError(Exception):
    """Base exception for all bot errors."""

    def __init__(self, message: str = "An error occurred", *args, **kwargs) -> None:
        self.message = message
        super().__init__(message, *args, **kwargs)


# Input Validation Errors


class UserInputError(SocialLinkError):
    """Errors caused by invalid user input."""

    def __init__(self, message: str = "Invalid user input", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


class ValidationError(UserInputError):
    """Errors caused by input validation failures."""

    def __init__(self, field: str = None, message: str = None, *args, **kwargs) -> None:
        self.field = field
        if field and not message:
            message = f"Invalid value for {field}"
        elif not message:
            message = "Validation failed"
        super().__init__(message, *args, **kwargs)


# External Service Errors


class ExternalServiceError(SocialLinkError):
    """Errors from external services (provider APIs, Discord)."""

    def __init__(
        self,
        service_name: str = "external service",
        message: str = None,
        *args,
        **kwargs,
    ) -> None:
        self.service_name = service_name
        if message is None:
            message = f"Error communicating with {service_name}"
        super().__init__(message, *args, **kwargs)


# Permission Errors


class PermissionError(SocialLinkError):
    """Errors related to permissions."""

    def __init__(
        self,
        message: str = "You do not have permission to do this",
        *args,
        **kwargs,
    ) -> None:
        super().__init__(message, *args, **kwargs)


class RolePermissionError(PermissionError):
    """The invoking member lacks a required guild permission."""

    def __init__(
        self, required_permission: str = None, message: str = None, *args, **kwargs
    ) -> None:
        self.required_permission = required_permission
        super().__init__(message or "You do not have permission to do this", *args, **kwargs)


# Database Errors


class DatabaseError(SocialLinkError):
    """Errors related to database operations."""

    def __init__(self, message: str = "Database operation failed", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


# Discord-specific Errors


class GuildError(SocialLinkError):
    """Errors related to guild operations."""

    def __init__(
        self,
        message: str = "This command can only be used in a server",
        *args,
        **kwargs,
    ) -> None:
        super().__init__(message, *args, **kwargs)
