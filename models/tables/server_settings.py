"""SQLAlchemy model for server_settings table."""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from config import DEFAULT_SERVER_PROVIDERS
from models.base import Base
from models.tables.provider_link import utcnow


class ServerSettings(Base):
    """Model for server_settings table.

    This table stores the verified role and the providers a member must have
    linked before the role is granted, one row per guild.
    """

    __tablename__ = "server_settings"

    # Primary key
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, nullable=False)

    # Optional until an admin runs /setrole
    role_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)

    providers: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_SERVER_PROVIDERS)
    )
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=utcnow
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=utcnow
    )
