"""
JSON Data File Storage Implementation

DESIGN DECISION: The whole ledger lives in one UTF-8 JSON file because:
1. Small nonprofits can open, back up and diff it with ordinary tools
2. No database setup required
3. One process, one user, one file - last write wins

TRADEOFFS:
- Every mutation rewrites the whole file (fine at nonprofit scale)
- No transactions (the poster orders its writes so a partial failure
  only ever loses the derived entry)

Writes go to a temp file in the same directory and are moved into place
with os.replace, so a crash mid-write never leaves a truncated data file.
"""

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grantledger.errors import PersistenceError
from grantledger.models.snapshot import LedgerSnapshot
from grantledger.services.storage.memory import InMemoryLedgerStore


class JsonFileLedgerStore(InMemoryLedgerStore):
    """
    Ledger store backed by a single JSON data file.

    Call load() once at startup before using the store.
    """

    def __init__(self, path: Union[str, Path], retries: int = 3):
        super().__init__()
        self._path = Path(path)
        self._retries = retries

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> LedgerSnapshot:
        """
        Read the data file into memory.

        A missing file starts a fresh ledger with the default templates
        and writes it immediately, so the file exists from first launch.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        if not self._path.exists():
            await self.restore(LedgerSnapshot.empty())
            return await self.snapshot()

        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            state = LedgerSnapshot.model_validate_json(text)
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"load {self._path}", str(e)) from e
        except PydanticValidationError as e:
            raise PersistenceError(
                f"load {self._path}",
                f"data file is not a valid ledger ({e.error_count()} problems)",
            ) from e

        self._state = state
        return await self.snapshot()

    async def _write(self, state: LedgerSnapshot) -> None:
        stamped = state.model_copy(update={"timestamp": datetime.now(timezone.utc)})
        payload = stamped.to_json()
        await asyncio.to_thread(self._write_with_retry, payload)

    def _write_with_retry(self, payload: str) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=0.1, max=2),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self._replace_file(payload)

    def _replace_file(self, payload: str) -> None:
        target_dir = self._path.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        # Temp file in the same directory so os.replace stays atomic
        fd, tmp = tempfile.mkstemp(prefix=".grant_ledger_", suffix=".json", dir=target_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)


async def open_ledger(path: Union[str, Path], retries: Optional[int] = None) -> JsonFileLedgerStore:
    """Create a file-backed store and load it."""
    store = JsonFileLedgerStore(path, retries=retries or 3)
    await store.load()
    return store
