from tradejournal.auth.credentials import (
    CredentialStore,
    InMemoryCredentialStore,
    StoredUser,
    check_password,
    hash_password,
)

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "StoredUser",
    "check_password",
    "hash_password",
]
