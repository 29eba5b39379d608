"""
Storage Services Package

Provides the abstract ledger store interface and its implementations.
The JSON data file is the production backend; the in-memory store is
used in tests.
"""

from grantledger.services.storage.interface import (
    AuditStorageInterface,
    Entity,
    LedgerStoreInterface,
)
from grantledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from grantledger.services.storage.json_file import (
    JsonFileLedgerStore,
    open_ledger,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Entity",
    "LedgerStoreInterface",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    "open_ledger",
]
