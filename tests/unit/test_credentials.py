import json
from pathlib import Path

import pytest

from tradejournal.auth import (
    CredentialStore,
    InMemoryCredentialStore,
    StoredUser,
    check_password,
    hash_password,
)
from tradejournal.utils.exceptions import AuthenticationError, ConfigError


@pytest.fixture
def store() -> InMemoryCredentialStore:
    """Store with one user whose password is 'correct horse'."""
    return InMemoryCredentialStore(
        [
            StoredUser(
                id="user-ada",
                username="Ada",
                display_name="Ada L.",
                email="ada@example.test",
                password_hash=hash_password("correct horse", iterations=1000),
            )
        ]
    )


def test_hash_password_is_salted() -> None:
    first = hash_password("secret", iterations=1000)
    second = hash_password("secret", iterations=1000)
    assert first != second
    assert first.startswith("pbkdf2_sha256$1000$")
    assert "secret" not in first


def test_check_password() -> None:
    stored = hash_password("secret", salt="abc", iterations=1000)
    assert check_password("secret", stored)
    assert not check_password("Secret", stored)
    assert not check_password("secret", "plain-text")
    assert not check_password("secret", "md5$1000$abc$ff")


def test_verify_normalizes_username(store: InMemoryCredentialStore) -> None:
    identity = store.verify("  ADA ", "correct horse")
    assert identity.id == "user-ada"
    assert identity.display_name == "Ada L."


@pytest.mark.parametrize("username, password", [("ada", "wrong"), ("bob", "correct horse"), ("", "")])
def test_verify_rejects(store: InMemoryCredentialStore, username: str, password: str) -> None:
    with pytest.raises(AuthenticationError, match="Invalid username or password"):
        store.verify(username, password)


def test_get_by_id(store: InMemoryCredentialStore) -> None:
    assert store.get("user-ada").username == "Ada"
    assert store.get("user-bob") is None


def test_satisfies_protocol(store: InMemoryCredentialStore) -> None:
    assert isinstance(store, CredentialStore)


def test_from_file(tmp_path: Path) -> None:
    path = tmp_path / "users.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "user-1",
                    "username": "trader",
                    "displayName": "Trader",
                    "email": "trader@example.test",
                    "passwordHash": hash_password("pw", iterations=1000),
                }
            ]
        ),
        encoding="utf-8",
    )
    store = InMemoryCredentialStore.from_file(path)

    assert len(store) == 1
    assert store.verify("trader", "pw").email == "trader@example.test"


def test_from_file_rejects_plaintext_entries(tmp_path: Path) -> None:
    path = tmp_path / "users.json"
    path.write_text(json.dumps([{"id": "u", "username": "x", "password": "pw"}]), encoding="utf-8")
    with pytest.raises(ConfigError):
        InMemoryCredentialStore.from_file(path)


def test_from_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="cannot read"):
        InMemoryCredentialStore.from_file(tmp_path / "missing.json")
