"""
Storage: key-value backends and the account repository over them.

trading-core never imports from here; the ledger receives a repository.
"""

from storage.kv_store import InMemoryKVStore, KeyValueStore, SqliteKVStore
from storage.repository import AccountRepository, storage_key

__all__ = [
    "AccountRepository",
    "InMemoryKVStore",
    "KeyValueStore",
    "SqliteKVStore",
    "open_store",
    "storage_key",
]


def open_store(backend: str, path: str) -> KeyValueStore:
    """Build the configured backend ("sqlite" or "memory")."""
    if backend == "memory":
        return InMemoryKVStore()
    if backend == "sqlite":
        return SqliteKVStore(path)
    raise ValueError(f"Unknown storage backend: {backend!r} (use 'sqlite' or 'memory')")
