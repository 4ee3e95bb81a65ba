"""Per-provider credential checks.

Each provider that can revoke a session gets a strategy answering one
question: is this stored access token still authorized? The verifier looks
strategies up by provider name, so supporting a new provider means
registering a new strategy here.
"""

from collections.abc import Iterable, Sequence

import structlog

from utils.http_client import HTTPClient

logger = structlog.get_logger("services.providers")


class ProviderStrategy:
    """Base class for provider credential checks."""

    name: str = ""

    async def is_still_authorized(self, access_token: str | None, provider_id: str) -> bool:
        raise NotImplementedError


class BearerTokenStrategy(ProviderStrategy):
    """Checks a token by calling an identity endpoint with it as a bearer credential."""

    url: str = ""

    def __init__(self, http_client: HTTPClient) -> None:
        self.http_client = http_client

    def headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def is_still_authorized(self, access_token: str | None, provider_id: str) -> bool:
        if not access_token:
            logger.info("credential_missing", provider=self.name, provider_id=provider_id)
            return False

        result = await self.http_client.get(self.url, headers=self.headers(access_token))
        if result.status != 200:
            logger.info(
                "credential_rejected",
                provider=self.name,
                provider_id=provider_id,
                status=result.status,
            )
            return False
        return self.accepts(result.headers, result.data, provider_id)

    def accepts(self, headers: dict[str, str], data, provider_id: str) -> bool:
        """Extra checks on a successful response. Accepts by default."""
        return True


class TwitterStrategy(BearerTokenStrategy):
    """Twitter/X: the token is valid while ``/2/users/me`` answers 200."""

    name = "twitter"
    url = "https://api.twitter.com/2/users/me"


class GithubStrategy(BearerTokenStrategy):
    """GitHub: the token must still work and still carry the required scopes."""

    name = "github"
    url = "https://api.github.com/user"

    def __init__(
        self, http_client: HTTPClient, required_scopes: Sequence[str] = ()
    ) -> None:
        super().__init__(http_client)
        self.required_scopes = [scope.strip() for scope in required_scopes if scope.strip()]

    def headers(self, access_token: str) -> dict[str, str]:
        return {
            **super().headers(access_token),
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def accepts(self, headers: dict[str, str], data, provider_id: str) -> bool:
        if not self.required_scopes:
            return True

        raw_scopes = next(
            (value for key, value in headers.items() if key.lower() == "x-oauth-scopes"),
            "",
        )
        granted = {scope.strip() for scope in raw_scopes.split(",") if scope.strip()}
        missing = [scope for scope in self.required_scopes if scope not in granted]
        if missing:
            logger.info(
                "credential_scope_missing",
                provider=self.name,
                provider_id=provider_id,
                missing=missing,
            )
            return False
        return True


class ProviderRegistry:
    """Maps provider names to the strategy that checks their credentials."""

    def __init__(self, strategies: Iterable[ProviderStrategy] = ()) -> None:
        self._strategies: dict[str, ProviderStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: ProviderStrategy) -> None:
        if not strategy.name:
            raise ValueError("Provider strategies must have a name")
        self._strategies[strategy.name] = strategy

    def get(self, provider: str) -> ProviderStrategy | None:
        return self._strategies.get(provider)

    def checkable(self, supported: Sequence[str]) -> list[str]:
        """Supported providers that also have a registered strategy, in supported order."""
        return [provider for provider in supported if provider in self._strategies]

    def __contains__(self, provider: str) -> bool:
        return provider in self._strategies


def build_default_registry(
    http_client: HTTPClient, github_required_scopes: Sequence[str] = ()
) -> ProviderRegistry:
    """Registry with the providers that have revocable sessions: Twitter and GitHub.

    Google and Ethereum links are never re-checked.
    """
    return ProviderRegistry(
        [
            TwitterStrategy(http_client),
            GithubStrategy(http_client, github_required_scopes),
        ]
    )
