"""Tests for credential hashing and sessions."""

from pointmarket.security import CredentialHasher
from pointmarket.sessions import SessionRegistry


def test_hash_and_verify():
    hasher = CredentialHasher(iterations=1_000)
    password_hash, salt = hasher.hash("hunter2")

    assert len(password_hash) == 128
    assert hasher.verify("hunter2", password_hash, salt)
    assert not hasher.verify("hunter3", password_hash, salt)


def test_fresh_salt_each_time():
    hasher = CredentialHasher(iterations=1_000)

    first_hash, first_salt = hasher.hash("same")
    second_hash, second_salt = hasher.hash("same")

    assert first_salt != second_salt
    assert first_hash != second_hash


def test_corrupt_stored_hash_does_not_verify():
    hasher = CredentialHasher(iterations=1_000)

    assert not hasher.verify("anything", "not-hex", "salt")


def test_sessions_create_resolve_revoke():
    sessions = SessionRegistry()
    token = sessions.create("bob")

    assert sessions.resolve(token) == "bob"
    assert len(sessions) == 1

    sessions.revoke(token)
    assert sessions.resolve(token) is None

    # Revoking again, or revoking nothing, is fine
    sessions.revoke(token)
    sessions.revoke(None)
    assert len(sessions) == 0


def test_tokens_are_unique():
    sessions = SessionRegistry(token_bytes=24)
    tokens = {sessions.create("bob") for _ in range(20)}

    assert len(tokens) == 20
    assert all(len(t) == 48 for t in tokens)
