"""
Abstract Platform Interface

DESIGN DECISION: File dialogs and file access belong to the shell the
ledger runs in (desktop window, test harness, headless script), so the
ledger only ever talks to this interface. When no shell is present the
ledger gets an implementation that raises FeatureUnavailableError, and
the affected feature is switched off instead of crashing the app.

Every method is async and fallible.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class PlatformServices(ABC):
    """File dialogs and file access provided by the host shell."""

    @abstractmethod
    async def select_save_path(self, suggested_name: str) -> Optional[Path]:
        """
        Ask where to save a file.

        Returns None if the user cancelled.
        """
        pass

    @abstractmethod
    async def open_file(self) -> Optional[Path]:
        """
        Ask which file to open.

        Returns None if the user cancelled.
        """
        pass

    @abstractmethod
    async def read_file(self, path: Path) -> Optional[bytes]:
        """File contents, or None if the file does not exist."""
        pass

    @abstractmethod
    async def write_file(self, path: Path, data: bytes) -> bool:
        """Write bytes to a path. Returns True on success."""
        pass

    @abstractmethod
    async def save_attachment(self, data: bytes, suggested_name: str) -> str:
        """
        Store an attachment (e.g., a receipt image).

        Returns:
            The stored path, to be kept on the expenditure as receipt_url
        """
        pass
