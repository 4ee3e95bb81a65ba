"""Periodic re-verification of every active, checkable provider link."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from services.provider_verifier import ProviderVerifier
from services.providers import ProviderRegistry
from services.role_reconciler import RoleReconciler
from utils.logging import RequestContext, TimingContext
from utils.repositories import CheckableLink, ProviderLinkRepository


@dataclass(frozen=True)
class VerificationOutcome:
    discord_id: str
    provider: str
    provider_id: str
    verified: bool
    error: str | None = None


@dataclass
class SweepReport:
    """Result of one sweep. ``success`` is False only if the links could not be loaded."""

    success: bool
    outcomes: list[VerificationOutcome] = field(default_factory=list)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(UTC).replace(tzinfo=None)
    )

    @property
    def revoked_discord_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for outcome in self.outcomes:
            if not outcome.verified:
                seen.setdefault(outcome.discord_id, None)
        return list(seen)


class VerificationSweep:
    """Runs the provider verifier over every active link that can be re-checked.

    Links are checked concurrently, at most ``concurrency`` at a time. One
    link failing never affects the others. When ``reconciler`` is given, every
    user who lost a link gets their roles recomputed once the batch is done.
    """

    def __init__(
        self,
        links: ProviderLinkRepository,
        verifier: ProviderVerifier,
        registry: ProviderRegistry,
        supported_providers: Sequence[str],
        concurrency: int = 10,
        reconciler: RoleReconciler | None = None,
    ) -> None:
        self.links = links
        self.verifier = verifier
        self.registry = registry
        self.supported_providers = list(supported_providers)
        self.concurrency = concurrency
        self.reconciler = reconciler
        self.last_report: SweepReport | None = None
        self.logger = structlog.get_logger("services.sweep")

    @property
    def checkable_providers(self) -> list[str]:
        return self.registry.checkable(self.supported_providers)

    async def run_sweep(self) -> SweepReport:
        """Re-verify every active link for the checkable providers.

        Returns:
            The sweep report.
        """
        async with RequestContext(self.logger, "verification_sweep"):
            async with TimingContext(self.logger, "verification_sweep") as timing:
                providers = self.checkable_providers
                links = await self.links.get_checkable_links(providers)
                if links is None:
                    self.logger.error("sweep_query_failed", providers=providers)
                    report = SweepReport(success=False)
                    timing.add_info(success=False)
                    self.last_report = report
                    return report

                outcomes = await self._check_all(links)
                report = SweepReport(success=True, outcomes=outcomes)
                self.last_report = report
                timing.add_info(
                    success=True,
                    checked=len(outcomes),
                    revoked=sum(1 for outcome in outcomes if not outcome.verified),
                )

            if self.reconciler is not None:
                await self._reconcile_revoked(report)
            return report

    async def _check_all(self, links: Sequence[CheckableLink]) -> list[VerificationOutcome]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def check(link: CheckableLink) -> VerificationOutcome:
            async with semaphore:
                verified = await self.verifier.verify_credential(
                    link.provider, link.access_token, link.provider_id
                )
            return VerificationOutcome(
                discord_id=link.discord_id,
                provider=link.provider,
                provider_id=link.provider_id,
                verified=verified,
            )

        results = await asyncio.gather(
            *(check(link) for link in links), return_exceptions=True
        )

        outcomes = []
        for link, result in zip(links, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self.logger.error(
                    "link_verification_failed",
                    discord_id=link.discord_id,
                    provider=link.provider,
                    provider_id=link.provider_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                result = VerificationOutcome(
                    discord_id=link.discord_id,
                    provider=link.provider,
                    provider_id=link.provider_id,
                    verified=False,
                    error=str(result),
                )
            outcomes.append(result)
        return outcomes

    async def _reconcile_revoked(self, report: SweepReport) -> None:
        for discord_id in report.revoked_discord_ids:
            try:
                await self.reconciler.reconcile_user(discord_id)
            except Exception as e:
                self.logger.error(
                    "sweep_reconciliation_failed",
                    discord_id=discord_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
