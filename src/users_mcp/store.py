"""JSON-file persistence for user records.

The whole collection lives in one JSON array. Every create reads the
full document, appends, and rewrites it atomically (temp file + rename),
serialized behind an asyncio.Lock so concurrent tool calls cannot lose
writes.

Contract:
- Inputs: NewUser fields (name, email, address, phone)
- Outputs: UserRecord with id = previous count + 1
- Side Effects: rewrites the data file on append
- Errors: PersistenceFailed for unreadable documents and failed writes
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from .errors import PersistenceFailed

logger = logging.getLogger(__name__)


class NewUser(BaseModel):
    """Fields supplied when creating a user."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str
    email: str
    address: str
    phone: str


class UserRecord(BaseModel):
    """A stored user."""

    id: int
    name: str
    email: str
    address: str
    phone: str


_records_adapter = TypeAdapter(list[UserRecord])


class UserStore:
    """User collection backed by a single JSON document."""

    def __init__(self, path: Path | str) -> None:
        """Initialize with the data file path.

        Args:
            path: JSON file holding the user array; created on first write
        """
        self.path = Path(path)
        self._lock = asyncio.Lock()
        # Held by the worker thread for the whole read-modify-write
        self._file_lock = threading.Lock()

    async def list(self) -> list[UserRecord]:
        """All users in stored order."""
        return await asyncio.to_thread(self._read)

    async def get(self, user_id: int) -> UserRecord | None:
        """Look up a user by id, None if absent."""
        for record in await self.list():
            if record.id == user_id:
                return record
        return None

    async def count(self) -> int:
        return len(await self.list())

    async def append(self, user: NewUser) -> UserRecord:
        """Store a new user.

        The record is on disk before this returns.

        Raises:
            PersistenceFailed: If the document cannot be read or written
        """
        async with self._lock:
            record = await asyncio.to_thread(self._append, user)
            logger.info(f"Stored user {record.id} in {self.path}")
            return record

    # =========================================================================
    # File access
    # =========================================================================

    def _read(self) -> list[UserRecord]:
        if not self.path.exists():
            return []
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceFailed(f"Cannot read {self.path}: {e}") from e
        if not content.strip():
            return []
        try:
            return _records_adapter.validate_json(content)
        except ValidationError as e:
            raise PersistenceFailed(f"Malformed user data in {self.path}: {e}") from e

    def _append(self, user: NewUser) -> UserRecord:
        with self._file_lock:
            records = self._read()
            record = UserRecord(id=len(records) + 1, **user.model_dump())
            self._write([*records, record])
            return record

    def _write(self, records: list[UserRecord]) -> None:
        payload = json.dumps([r.model_dump() for r in records], indent=2, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload + "\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceFailed(f"Cannot write {self.path}: {e}") from e
