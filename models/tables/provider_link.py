"""SQLAlchemy model for provider_links table."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class ProviderLink(Base):
    """Model for provider_links table.

    Each row claims that a Discord user owns an identity at a provider. Rows
    are never deleted: revoking a link stamps ``revoked_at`` and every query
    for active links must filter on it being NULL.
    """

    __tablename__ = "provider_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    discord_id: Mapped[str] = mapped_column(String(32), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Weak reference to users.id, cleaned up explicitly by the verifier
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    linked_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )

    __table_args__ = (
        Index("ix_provider_links_discord_id", "discord_id"),
        Index("ix_provider_links_provider_provider_id", "provider", "provider_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderLink(discord_id={self.discord_id}, provider={self.provider}, "
            f"provider_id={self.provider_id}, revoked_at={self.revoked_at})>"
        )
