"""
Credential Store - Verifies logins against salted password hashes.
"""
import hashlib
import hmac
import json
import secrets
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tradejournal.models import UserIdentity
from tradejournal.utils.exceptions import AuthenticationError, ConfigError


HASH_ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 260_000


def hash_password(password: str, salt: str | None = None, iterations: int = DEFAULT_ITERATIONS) -> str:
    """
    Hash a password into the stored form `pbkdf2_sha256$<iterations>$<salt>$<hex digest>`.
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def check_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False

    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds)
    return hmac.compare_digest(digest.hex(), expected)


@runtime_checkable
class CredentialStore(Protocol):
    def verify(self, username: str, password: str) -> UserIdentity:
        ...

    def get(self, user_id: str) -> Optional[UserIdentity]:
        ...


class StoredUser(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    display_name: str = ""
    email: str = ""
    password_hash: str = Field(min_length=1)

    def identity(self) -> UserIdentity:
        return UserIdentity(
            id=self.id,
            username=self.username,
            display_name=self.display_name or self.username,
            email=self.email,
        )


def _normalize(username: str) -> str:
    return username.strip().lower()


class InMemoryCredentialStore:
    """Credential store backed by a fixed set of users with hashed passwords."""

    def __init__(self, users: Iterable[StoredUser] = ()):
        self._by_username: dict[str, StoredUser] = {}
        self._by_id: dict[str, StoredUser] = {}
        for user in users:
            self._by_username[_normalize(user.username)] = user
            self._by_id[user.id] = user

    def __len__(self) -> int:
        return len(self._by_id)

    def verify(self, username: str, password: str) -> UserIdentity:
        user = self._by_username.get(_normalize(username))
        if user is None or not check_password(password, user.password_hash):
            logger.info(f"Rejected login for '{username.strip()}'")
            raise AuthenticationError()
        return user.identity()

    def get(self, user_id: str) -> Optional[UserIdentity]:
        user = self._by_id.get(user_id)
        return user.identity() if user else None

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryCredentialStore":
        """
        Load users from a JSON list of
        `{id, username, displayName, email, passwordHash}` objects.

        Raises:
            ConfigError: if the file is missing or malformed
        """
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"cannot read credentials file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"credentials file {path} is not valid JSON: {exc.msg}") from exc

        if not isinstance(document, list):
            raise ConfigError(f"credentials file {path} must contain a list of users")

        try:
            users = [StoredUser.model_validate(entry) for entry in document]
        except ValidationError as exc:
            raise ConfigError(f"credentials file {path} has an invalid entry: {exc}") from exc

        logger.info(f"Loaded {len(users)} users from {path}")
        return cls(users)
