"""
Adapters to systems outside the portal process.
"""

from .credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    PostgresCredentialStore,
    UserRecord,
)

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "PostgresCredentialStore",
    "UserRecord",
]
