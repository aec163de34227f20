"""Storage of verified NEAR to Discourse linkages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from discourse_near.models import NearLinkage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkageView:
    """Read-facing projection of a linkage; carries no credential."""

    near_account: str
    discourse_username: str
    verified_at: datetime


@dataclass(frozen=True)
class Linkage:
    """Verified mapping from a NEAR account to a Discourse account."""

    near_account: str
    discourse_username: str
    discourse_user_id: int
    user_api_key: str = field(repr=False)
    verified_at: datetime

    def view(self) -> LinkageView:
        return LinkageView(
            near_account=self.near_account,
            discourse_username=self.discourse_username,
            verified_at=self.verified_at,
        )


class LinkageStore(Protocol):
    """Keyed by ``near_account``; last write wins."""

    def put(self, linkage: Linkage) -> None: ...

    def get(self, near_account: str) -> Linkage | None: ...

    def count(self) -> int: ...


class InMemoryLinkageStore:
    """Volatile linkage store; contents are lost on restart."""

    def __init__(self) -> None:
        self._linkages: dict[str, Linkage] = {}
        self._lock = Lock()

    def put(self, linkage: Linkage) -> None:
        with self._lock:
            self._linkages[linkage.near_account] = linkage
        logger.info("Stored linkage %s -> %s", linkage.near_account, linkage.discourse_username)

    def get(self, near_account: str) -> Linkage | None:
        with self._lock:
            linkage = self._linkages.get(near_account)
        logger.debug("Linkage lookup %s: %s", near_account, "found" if linkage else "not found")
        return linkage

    def count(self) -> int:
        with self._lock:
            return len(self._linkages)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class DatabaseLinkageStore:
    """SQLAlchemy-backed linkage store."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def put(self, linkage: Linkage) -> None:
        with self._session_factory() as db:
            row = db.get(NearLinkage, linkage.near_account)
            if row is None:
                row = NearLinkage(near_account=linkage.near_account)
                db.add(row)
            row.discourse_username = linkage.discourse_username
            row.discourse_user_id = linkage.discourse_user_id
            row.user_api_key = linkage.user_api_key
            row.verified_at = linkage.verified_at
            db.commit()
        logger.info("Stored linkage %s -> %s", linkage.near_account, linkage.discourse_username)

    def get(self, near_account: str) -> Linkage | None:
        with self._session_factory() as db:
            row = db.get(NearLinkage, near_account)
            if row is None:
                logger.debug("Linkage lookup %s: not found", near_account)
                return None
            return Linkage(
                near_account=row.near_account,
                discourse_username=row.discourse_username,
                discourse_user_id=row.discourse_user_id,
                user_api_key=row.user_api_key,
                verified_at=_as_utc(row.verified_at),
            )

    def count(self) -> int:
        with self._session_factory() as db:
            return int(db.scalar(select(func.count()).select_from(NearLinkage)) or 0)
