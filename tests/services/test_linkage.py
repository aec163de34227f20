"""Tests for the linkage stores."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from discourse_near.db.session import create_session_factory
from discourse_near.services.linkage import (
    DatabaseLinkageStore,
    InMemoryLinkageStore,
    Linkage,
)

VERIFIED_AT = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _linkage(username: str = "alice", key: str = "secret-key", **overrides) -> Linkage:
    values = {
        "near_account": "alice.near",
        "discourse_username": username,
        "discourse_user_id": 7,
        "user_api_key": key,
        "verified_at": VERIFIED_AT,
    }
    values.update(overrides)
    return Linkage(**values)


@pytest.fixture(params=["memory", "database"])
def store(request):
    if request.param == "memory":
        return InMemoryLinkageStore()
    return DatabaseLinkageStore(create_session_factory("sqlite://"))


def test_get_missing_returns_none(store) -> None:
    assert store.get("nobody.near") is None
    assert store.count() == 0


def test_put_then_get(store) -> None:
    store.put(_linkage())
    linkage = store.get("alice.near")

    assert linkage is not None
    assert linkage.discourse_username == "alice"
    assert linkage.discourse_user_id == 7
    assert linkage.user_api_key == "secret-key"
    assert linkage.verified_at == VERIFIED_AT


def test_last_write_wins(store) -> None:
    store.put(_linkage())
    later = VERIFIED_AT + timedelta(hours=1)
    store.put(_linkage(username="alice2", key="new-key", discourse_user_id=8, verified_at=later))

    linkage = store.get("alice.near")
    assert linkage is not None
    assert (linkage.discourse_username, linkage.user_api_key) == ("alice2", "new-key")
    assert linkage.verified_at == later
    assert store.count() == 1


def test_independent_accounts(store) -> None:
    store.put(_linkage())
    store.put(_linkage(near_account="bob.near", username="bob"))
    assert store.count() == 2
    assert store.get("bob.near").discourse_username == "bob"


def test_view_never_carries_credential() -> None:
    linkage = _linkage()
    view = linkage.view()

    assert not hasattr(view, "user_api_key")
    assert "secret-key" not in repr(view)
    assert "secret-key" not in repr(linkage)
