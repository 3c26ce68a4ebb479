"""Durable credential storage (in-memory and JSON-file backends)."""

from .credential_store import ALL_KEYS, PENDING_KEYS, CredentialStore
from .key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore

__all__ = [
    "CredentialStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "ALL_KEYS",
    "PENDING_KEYS",
]
