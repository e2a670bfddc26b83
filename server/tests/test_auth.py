from __future__ import annotations

import asyncio

import pytest

from conftest import FakeRows
from typhon_relay.errors import AuthError, ValidationError
from typhon_relay.services.auth import AuthService, PinDirectory, TokenStore, UserIdentity, extract_token


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


ROWS = [
    ["pin", "name", "id"],
    ["123456", "Alice", "u1"],
    ["654321", "", "u2"],
    ["12", "Too Short", "u3"],
]


def test_extract_token_prefers_bearer():
    assert extract_token("Bearer abc", "xyz") == "abc"
    assert extract_token("Basic abc", "xyz") == "xyz"
    assert extract_token(None, "  xyz ") == "xyz"
    assert extract_token("Bearer ", None) is None
    assert extract_token(None, None) is None


def test_token_store_issue_verify_revoke():
    store = TokenStore(ttl_seconds=60)
    issued = store.issue(UserIdentity(name="Alice"))

    assert store.verify(issued.token) == UserIdentity(name="Alice")
    assert store.verify("unknown") is None
    assert store.revoke(issued.token) is True
    assert store.verify(issued.token) is None
    assert store.revoke(issued.token) is False


def test_expired_tokens_are_rejected():
    store = TokenStore(ttl_seconds=0)
    issued = store.issue(UserIdentity(name="Alice"))
    assert store.verify(issued.token) is None


def test_pin_directory_reads_sheet_once():
    rows = FakeRows(ROWS)
    directory = PinDirectory(rows, "Users")

    async def scenario():  # noqa: ANN202
        return await directory.lookup("123456"), await directory.lookup("654321"), await directory.lookup("12")

    alice, second, short = _run(scenario())

    assert alice == UserIdentity(name="Alice", id="u1", pin="123456")
    assert second == UserIdentity(name=None, id="u2", pin="654321")
    assert short is None
    assert rows.reads == ["Users!A:C"]


def test_login_issues_token_for_known_pin():
    auth = AuthService(PinDirectory(FakeRows(ROWS), "Users"), TokenStore())

    issued = _run(auth.login("123456"))

    assert issued.user.name == "Alice"
    assert auth.verify(issued.token) == issued.user


def test_login_rejects_malformed_and_unknown_pins():
    auth = AuthService(PinDirectory(FakeRows(ROWS), "Users"), TokenStore())

    with pytest.raises(ValidationError):
        _run(auth.login("12ab56"))
    with pytest.raises(ValidationError):
        _run(auth.login(None))
    with pytest.raises(AuthError):
        _run(auth.login("999999"))


def test_identity_display_fields():
    assert UserIdentity(name="Alice", id="u1").entry_id == "u1"
    assert UserIdentity(pin="123456").player_name == "User-123456"
    assert UserIdentity(id="u2", pin="1").as_dict() == {"id": "u2", "pin": "1"}


def test_issue_purges_abandoned_expired_tokens():
    store = TokenStore(ttl_seconds=0)
    store.issue(UserIdentity(name="Alice"))
    store.issue(UserIdentity(name="Bob"))
    assert len(store) == 1
    assert store.purge_expired() == 1
    assert len(store) == 0


def test_pin_directory_reloads_on_unknown_pin():
    rows = FakeRows([["123456", "Alice", "u1"]])
    directory = PinDirectory(rows, "Users", miss_refresh_seconds=0)

    async def scenario():  # noqa: ANN202
        assert await directory.lookup("123456") is not None
        rows.rows = rows.rows + [["777777", "Carol", "u7"]]
        return await directory.lookup("777777")

    carol = _run(scenario())

    assert carol == UserIdentity(name="Carol", id="u7", pin="777777")
    assert rows.reads == ["Users!A:C", "Users!A:C"]


def test_pin_directory_throttles_reloads():
    rows = FakeRows([["123456", "Alice", "u1"]])
    directory = PinDirectory(rows, "Users", miss_refresh_seconds=3600)

    async def scenario() -> None:
        await directory.lookup("123456")
        await directory.lookup("999999")
        await directory.lookup("888888")

    _run(scenario())
    assert rows.reads == ["Users!A:C"]
