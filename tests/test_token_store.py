"""Tests for the byte hand-off store."""

import pytest

from redaction_auditor import token_store
from redaction_auditor.token_store import (
    TokenStore, TokenError, MissingTokenError, ExpiredTokenError,
)


def test_take_returns_bytes_once():
    store = TokenStore()
    token = store.put(b"%PDF-1.7")
    assert token in store

    assert store.take(token) == b"%PDF-1.7"
    assert token not in store
    with pytest.raises(ExpiredTokenError):
        store.take(token)


def test_tokens_are_unique():
    store = TokenStore()
    assert store.put(b"a") != store.put(b"a")
    assert len(store) == 2


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(token):
    with pytest.raises(MissingTokenError):
        TokenStore().take(token)


def test_unknown_token():
    with pytest.raises(ExpiredTokenError):
        TokenStore().take("deadbeef")


def test_errors_share_a_base_class():
    assert issubclass(MissingTokenError, TokenError)
    assert issubclass(ExpiredTokenError, TokenError)


def test_entry_expires_after_ttl(monkeypatch):
    clock = iter([100.0, 200.0])
    monkeypatch.setattr(token_store.time, "monotonic", lambda: next(clock))

    store = TokenStore(ttl=30)
    token = store.put(b"data")
    with pytest.raises(ExpiredTokenError):
        store.take(token)
    assert token not in store


def test_entry_within_ttl(monkeypatch):
    clock = iter([100.0, 110.0])
    monkeypatch.setattr(token_store.time, "monotonic", lambda: next(clock))

    store = TokenStore(ttl=30)
    token = store.put(b"data")
    assert store.take(token) == b"data"


def test_discard():
    store = TokenStore()
    token = store.put(b"x")
    store.discard(token)
    store.discard(token)
    assert len(store) == 0
