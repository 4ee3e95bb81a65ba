"""
Tests for the verification sweep.
"""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from models.tables import ProviderLink
from services.provider_verifier import ProviderVerifier
from services.providers import ProviderRegistry, ProviderStrategy
from services.verification_sweep import SweepReport, VerificationOutcome, VerificationSweep
from utils.repositories import CheckableLink, ProviderLinkRepository

SUPPORTED = ["twitter", "google", "ethereum", "github"]


class StubStrategy(ProviderStrategy):
    def __init__(self, name, valid_tokens=()):
        self.name = name
        self.valid_tokens = set(valid_tokens)

    async def is_still_authorized(self, access_token, provider_id):
        return access_token in self.valid_tokens


def make_link(discord_id, provider="twitter", provider_id=None, token="token"):
    return CheckableLink(
        discord_id=discord_id,
        provider=provider,
        provider_id=provider_id or f"{provider}-{discord_id}",
        access_token=token,
        account_id=None,
        user_id=None,
    )


def make_links_repository(links):
    repository = MagicMock(spec=ProviderLinkRepository)
    repository.get_checkable_links = AsyncMock(return_value=links)
    return repository


def make_registry():
    return ProviderRegistry([StubStrategy("twitter"), StubStrategy("github")])


@pytest.mark.asyncio
async def test_one_failing_check_does_not_stop_the_others():
    links = [make_link("1"), make_link("2"), make_link("3")]
    verifier = MagicMock(spec=ProviderVerifier)

    async def verify(provider, access_token, provider_id):
        if provider_id == "twitter-2":
            raise RuntimeError("boom")
        return True

    verifier.verify_credential = AsyncMock(side_effect=verify)
    sweep = VerificationSweep(
        make_links_repository(links), verifier, make_registry(), SUPPORTED
    )

    report = await sweep.run_sweep()

    assert report.success
    assert [outcome.verified for outcome in report.outcomes] == [True, False, True]
    assert report.outcomes[1].error == "boom"
    assert verifier.verify_credential.await_count == 3


@pytest.mark.asyncio
async def test_query_failure_reports_failure():
    verifier = MagicMock(spec=ProviderVerifier)
    verifier.verify_credential = AsyncMock()
    sweep = VerificationSweep(
        make_links_repository(None), verifier, make_registry(), SUPPORTED
    )

    report = await sweep.run_sweep()

    assert not report.success
    assert report.outcomes == []
    verifier.verify_credential.assert_not_awaited()
    assert sweep.last_report is report


@pytest.mark.asyncio
async def test_only_providers_with_strategies_are_queried():
    links_repository = make_links_repository([])
    sweep = VerificationSweep(
        links_repository, MagicMock(spec=ProviderVerifier), make_registry(), SUPPORTED
    )

    report = await sweep.run_sweep()

    assert report.success
    links_repository.get_checkable_links.assert_awaited_once_with(["twitter", "github"])


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    async def verify(provider, access_token, provider_id):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return True

    verifier = MagicMock(spec=ProviderVerifier)
    verifier.verify_credential = AsyncMock(side_effect=verify)
    links = [make_link(str(i)) for i in range(12)]
    sweep = VerificationSweep(
        make_links_repository(links), verifier, make_registry(), SUPPORTED, concurrency=3
    )

    report = await sweep.run_sweep()

    assert len(report.outcomes) == 12
    assert 1 < peak <= 3


@pytest.mark.asyncio
async def test_revoked_users_are_reconciled_once():
    links = [
        make_link("1", "twitter", token="bad"),
        make_link("1", "github", token="bad"),
        make_link("2", "twitter", token="good"),
    ]
    verifier = MagicMock(spec=ProviderVerifier)
    verifier.verify_credential = AsyncMock(
        side_effect=lambda provider, access_token, provider_id: access_token == "good"
    )
    reconciler = MagicMock()
    reconciler.reconcile_user = AsyncMock(return_value={})
    sweep = VerificationSweep(
        make_links_repository(links),
        verifier,
        make_registry(),
        SUPPORTED,
        reconciler=reconciler,
    )

    report = await sweep.run_sweep()

    assert report.revoked_discord_ids == ["1"]
    reconciler.reconcile_user.assert_awaited_once_with("1")


@pytest.mark.asyncio
async def test_reconciliation_errors_do_not_fail_the_sweep():
    verifier = MagicMock(spec=ProviderVerifier)
    verifier.verify_credential = AsyncMock(return_value=False)
    reconciler = MagicMock()
    reconciler.reconcile_user = AsyncMock(side_effect=RuntimeError("discord down"))
    sweep = VerificationSweep(
        make_links_repository([make_link("1"), make_link("2")]),
        verifier,
        make_registry(),
        SUPPORTED,
        reconciler=reconciler,
    )

    report = await sweep.run_sweep()

    assert report.success
    assert reconciler.reconcile_user.await_count == 2


@pytest.mark.asyncio
async def test_sweep_against_database(session_factory, test_data, link_repository):
    await test_data.add_identity("1", "twitter", "tw-1", "good")
    _, _, stale = await test_data.add_identity("2", "twitter", "tw-2", "stale")
    _, _, google = await test_data.add_identity("3", "google", "g-1", "whatever")
    registry = ProviderRegistry(
        [StubStrategy("twitter", valid_tokens={"good"}), StubStrategy("github")]
    )
    verifier = ProviderVerifier(session_factory, registry)
    sweep = VerificationSweep(link_repository, verifier, registry, SUPPORTED)

    report = await sweep.run_sweep()

    assert report.success
    assert sorted((o.discord_id, o.verified) for o in report.outcomes) == [
        ("1", True),
        ("2", False),
    ]
    assert (await test_data.get(ProviderLink, stale.id)).revoked_at is not None
    assert (await test_data.get(ProviderLink, google.id)).revoked_at is None


def test_report_deduplicates_revoked_users():
    report = SweepReport(
        success=True,
        outcomes=[
            VerificationOutcome("2", "twitter", "a", False),
            VerificationOutcome("1", "twitter", "b", True),
            VerificationOutcome("2", "github", "c", False),
            VerificationOutcome("3", "github", "d", False),
        ],
    )

    assert report.revoked_discord_ids == ["2", "3"]
