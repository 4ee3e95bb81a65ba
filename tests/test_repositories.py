"""
Tests for the provider link and server settings repositories.

These run against an in-memory SQLite database.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from models.tables import Account
from utils.repositories import ProviderLinkRepository, ServerSettingsRepository

SUPPORTED = ["twitter", "google", "ethereum", "github"]


class TestProviderLinkRepository:
    @pytest.mark.asyncio
    async def test_linked_providers_only_includes_active_links(
        self, link_repository, test_data
    ):
        await test_data.add_link("111", "twitter", "tw-1")
        await test_data.add_link("111", "google", "g-1", revoked_at=datetime(2024, 1, 1))
        await test_data.add_link("222", "ethereum", "0xabc")

        linked = await link_repository.get_linked_providers("111", SUPPORTED)

        assert linked == {"twitter": "tw-1"}

    @pytest.mark.asyncio
    async def test_linked_providers_filters_to_requested_providers(
        self, link_repository, test_data
    ):
        await test_data.add_link("111", "twitter", "tw-1")
        await test_data.add_link("111", "discord", "d-1")

        linked = await link_repository.get_linked_providers("111", ["twitter"])

        assert linked == {"twitter": "tw-1"}

    @pytest.mark.asyncio
    async def test_first_active_link_wins(self, link_repository, test_data):
        earlier = datetime(2024, 1, 1)
        await test_data.add_link("111", "ethereum", "0xsecond", linked_at=earlier + timedelta(days=1))
        await test_data.add_link("111", "ethereum", "0xfirst", linked_at=earlier)

        linked = await link_repository.get_linked_providers("111", SUPPORTED)

        assert linked == {"ethereum": "0xfirst"}

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_links(self, link_repository):
        assert await link_repository.get_linked_providers("999", SUPPORTED) == {}

    @pytest.mark.asyncio
    async def test_read_failure_returns_none(self, failing_session_factory):
        repository = ProviderLinkRepository(failing_session_factory)

        assert await repository.get_linked_providers("111", SUPPORTED) is None
        assert await repository.get_checkable_links(["twitter"]) is None
        assert await repository.find_discord_id("ethereum", "0xabc") is None

    @pytest.mark.asyncio
    async def test_find_discord_id_by_address(self, link_repository, test_data):
        await test_data.add_link("111", "ethereum", "0xabc")
        await test_data.add_link("222", "ethereum", "0xold", revoked_at=datetime(2024, 1, 1))

        assert await link_repository.find_discord_id("ethereum", "0xabc") == "111"
        assert await link_repository.find_discord_id("ethereum", "0xold") is None
        assert await link_repository.find_discord_id("twitter", "0xabc") is None

    @pytest.mark.asyncio
    async def test_checkable_links_carry_credentials(self, link_repository, test_data):
        user, account, _ = await test_data.add_identity("111", "twitter", "tw-1", "secret")
        await test_data.add_link("222", "twitter", "tw-orphan")
        await test_data.add_link("333", "twitter", "tw-gone", revoked_at=datetime(2024, 1, 1))
        await test_data.add_identity("444", "google", "g-1")

        links = await link_repository.get_checkable_links(["twitter"])

        by_id = {link.provider_id: link for link in links}
        assert set(by_id) == {"tw-1", "tw-orphan"}
        assert by_id["tw-1"].access_token == "secret"
        assert by_id["tw-1"].account_id == account.id
        assert by_id["tw-1"].user_id == user.id
        assert by_id["tw-orphan"].access_token is None
        assert by_id["tw-orphan"].account_id is None

    @pytest.mark.asyncio
    async def test_checkable_links_do_not_join_across_providers(
        self, link_repository, test_data
    ):
        await test_data.add_identity("111", "github", "42", "gh-token")
        await test_data.add_link("222", "twitter", "42")

        links = await link_repository.get_checkable_links(["twitter"])

        assert len(links) == 1
        assert links[0].discord_id == "222"
        assert links[0].access_token is None

    @pytest.mark.asyncio
    async def test_no_checkable_providers_means_no_query(self, failing_session_factory):
        repository = ProviderLinkRepository(failing_session_factory)

        assert await repository.get_checkable_links([]) == []

    @pytest.mark.asyncio
    async def test_duplicate_accounts_yield_one_link(self, link_repository, test_data):
        user, account, _ = await test_data.add_identity("111", "twitter", "tw-1", "first")
        await test_data.add(
            Account(
                user_id=user.id,
                provider="twitter",
                provider_account_id="tw-1",
                access_token="second",
            )
        )

        links = await link_repository.get_checkable_links(["twitter"])

        assert len(links) == 1
        assert links[0].account_id == account.id
        assert links[0].access_token == "first"


class TestServerSettingsRepository:
    @pytest.mark.asyncio
    async def test_unconfigured_guild(self, settings_repository):
        assert await settings_repository.get_by_guild_id(1) is None
        assert await settings_repository.get_role_id(1) is None
        assert await settings_repository.get_providers(1) is None

    @pytest.mark.asyncio
    async def test_set_role_creates_settings_with_default_providers(
        self, settings_repository
    ):
        settings = await settings_repository.set_role(1, 555)

        assert settings.role_id == 555
        assert settings.providers == ["twitter", "google", "ethereum"]
        assert await settings_repository.get_role_id(1) == 555

    @pytest.mark.asyncio
    async def test_settings_rows_get_timestamps(self, test_data):
        settings = await test_data.add_settings(7, 555, ["twitter"])

        assert settings.created_at is not None
        assert settings.updated_at is not None

    @pytest.mark.asyncio
    async def test_set_providers_keeps_role(self, settings_repository):
        await settings_repository.set_role(1, 555)

        await settings_repository.set_providers(1, ["github", "twitter"])

        assert await settings_repository.get_role_id(1) == 555
        assert await settings_repository.get_providers(1) == ["github", "twitter"]

    @pytest.mark.asyncio
    async def test_set_providers_before_role(self, settings_repository):
        await settings_repository.set_providers(1, ["ethereum"])

        settings = await settings_repository.get_by_guild_id(1)
        assert settings.role_id is None
        assert settings.providers == ["ethereum"]

    @pytest.mark.asyncio
    async def test_settings_are_per_guild(self, settings_repository):
        await settings_repository.set_role(1, 555)
        await settings_repository.set_role(2, 666)

        assert await settings_repository.get_role_id(1) == 555
        assert await settings_repository.get_role_id(2) == 666

    @pytest.mark.asyncio
    async def test_write_failure_returns_none(self, failing_session_factory):
        repository = ServerSettingsRepository(failing_session_factory, ["twitter"])

        assert await repository.set_role(1, 555) is None
        assert await repository.get_by_guild_id(1) is None
