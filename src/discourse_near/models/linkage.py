"""Persisted NEAR account to Discourse account linkages."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from discourse_near.db.session import Base
from discourse_near.db.time import utcnow


class NearLinkage(Base):
    """A verified link; one row per NEAR account, overwritten on relink."""

    __tablename__ = "near_linkages"

    near_account: Mapped[str] = mapped_column(String(64), primary_key=True)
    discourse_username: Mapped[str] = mapped_column(String(255), nullable=False)
    discourse_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Secret; never leaves the linkage store through read views.
    user_api_key: Mapped[str] = mapped_column(Text, nullable=False)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
