"""SQLAlchemy model for accounts table."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.tables.provider_link import utcnow


class Account(Base):
    """Model for accounts table.

    Holds the OAuth credential that was issued when a link was created. An
    account belongs to a row in ``users`` and is hard deleted together with
    it once the provider reports the credential as no longer authorized.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)

    access_token: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    __table_args__ = (
        Index(
            "ix_accounts_provider_provider_account_id",
            "provider",
            "provider_account_id",
        ),
    )
