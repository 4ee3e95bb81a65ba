"""Repository package for the link store."""

from utils.repositories.account_repository import AccountRepository
from utils.repositories.provider_link_repository import (
    CheckableLink,
    ProviderLinkRepository,
)
from utils.repositories.server_settings_repository import ServerSettingsRepository

__all__ = [
    "AccountRepository",
    "CheckableLink",
    "ProviderLinkRepository",
    "ServerSettingsRepository",
]
