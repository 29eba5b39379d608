"""Services package."""

from grantledger.services.llm import GeminiLanguageModel, LanguageModelInterface
from grantledger.services.platform import (
    FileChooser,
    LocalPlatform,
    PlatformServices,
    UnavailablePlatform,
)
from grantledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    LedgerStoreInterface,
    open_ledger,
)

__all__ = [
    # Language model
    "GeminiLanguageModel",
    "LanguageModelInterface",
    # Platform
    "FileChooser",
    "LocalPlatform",
    "PlatformServices",
    "UnavailablePlatform",
    # Storage
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "JsonFileLedgerStore",
    "LedgerStoreInterface",
    "open_ledger",
]
