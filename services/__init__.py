"""Verification services: credential checks, the sweep and role reconciliation."""

from services.provider_verifier import ProviderVerifier
from services.providers import (
    GithubStrategy,
    ProviderRegistry,
    ProviderStrategy,
    TwitterStrategy,
    build_default_registry,
)
from services.role_reconciler import (
    ReconcileOutcome,
    RoleReconciler,
    is_policy_satisfied,
    normalize_discord_id,
)
from services.verification_sweep import (
    SweepReport,
    VerificationOutcome,
    VerificationSweep,
)

__all__ = [
    "GithubStrategy",
    "ProviderRegistry",
    "ProviderStrategy",
    "ProviderVerifier",
    "ReconcileOutcome",
    "RoleReconciler",
    "SweepReport",
    "TwitterStrategy",
    "VerificationOutcome",
    "VerificationSweep",
    "build_default_registry",
    "is_policy_satisfied",
    "normalize_discord_id",
]
