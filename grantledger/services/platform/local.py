"""
Local Filesystem Platform

LocalPlatform serves files from local directories. Dialog answers come
from an optional FileChooser, which a desktop shell provides; without
one, saves go straight into the export directory and "open" is
unavailable.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

from grantledger.errors import ExternalServiceError, FeatureUnavailableError
from grantledger.services.platform.interface import PlatformServices


class FileChooser(ABC):
    """The two questions only a person can answer."""

    @abstractmethod
    def choose_save_path(self, suggested: Path) -> Optional[Path]:
        pass

    @abstractmethod
    def choose_open_path(self) -> Optional[Path]:
        pass


def _safe_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(name).name).strip("._")
    return cleaned or "attachment"


class LocalPlatform(PlatformServices):
    """
    Platform backed by the local filesystem.

    Args:
        base_dir: Where saved files (backups, exports) go by default
        attachments_dir: Where receipt images are stored.
                        Defaults to base_dir/attachments.
        chooser: Answers save/open dialogs, if a shell provides one
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        attachments_dir: Optional[Union[str, Path]] = None,
        chooser: Optional[FileChooser] = None,
    ):
        self._base_dir = Path(base_dir)
        self._attachments_dir = (
            Path(attachments_dir) if attachments_dir else self._base_dir / "attachments"
        )
        self._chooser = chooser

    async def select_save_path(self, suggested_name: str) -> Optional[Path]:
        suggested = self._base_dir / _safe_name(suggested_name)
        if self._chooser is None:
            return suggested
        return await asyncio.to_thread(self._chooser.choose_save_path, suggested)

    async def open_file(self) -> Optional[Path]:
        if self._chooser is None:
            raise FeatureUnavailableError("open file dialog")
        return await asyncio.to_thread(self._chooser.choose_open_path)

    async def read_file(self, path: Path) -> Optional[bytes]:
        path = Path(path)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ExternalServiceError("platform", f"could not read {path}: {e}") from e

    async def write_file(self, path: Path, data: bytes) -> bool:
        path = Path(path)
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except OSError:
            return False
        return True

    async def save_attachment(self, data: bytes, suggested_name: str) -> str:
        target = self._attachments_dir / f"{uuid4().hex[:8]}_{_safe_name(suggested_name)}"
        if not await self.write_file(target, data):
            raise ExternalServiceError("platform", f"could not store attachment {suggested_name}")
        return str(target)


class UnavailablePlatform(PlatformServices):
    """Stand-in used when no shell is present. Every call is unavailable."""

    async def select_save_path(self, suggested_name: str) -> Optional[Path]:
        raise FeatureUnavailableError("save dialog")

    async def open_file(self) -> Optional[Path]:
        raise FeatureUnavailableError("open file dialog")

    async def read_file(self, path: Path) -> Optional[bytes]:
        raise FeatureUnavailableError("file access")

    async def write_file(self, path: Path, data: bytes) -> bool:
        raise FeatureUnavailableError("file access")

    async def save_attachment(self, data: bytes, suggested_name: str) -> str:
        raise FeatureUnavailableError("attachment storage")
