"""Lock file management.

Tracks installed cognitives with their provenance and content hash so later
runs can detect drift.

One manager instance owns one lock file. Every call (mutations and reads)
runs through a single FIFO asyncio.Lock, so overlapping add/remove calls
linearize without lost updates and a read issued after a write completes
observes it. A call that fails releases the lock; later calls run normally.
Cross-process locking is not attempted.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

from .events import LockReadPayload
from .events import LockWritePayload
from .events import NullEventBus
from .exceptions import FileWriteError
from .exceptions import LockReadError
from .exceptions import LockWriteError
from .fileops import atomic_write
from .fs import LocalFileSystem
from .migration import read_with_migration
from .models import CognitiveType
from .paths import project_store_root
from .protocols import EventEmitter
from .protocols import FileSystemProtocol
from .schema import LockEntry
from .schema import LockFile
from .schema import create_empty_lock_file

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE_NAME = "cognit-lock.json"


@dataclass(frozen=True)
class SourceGroup:
    """Lock entries sharing one source identifier."""

    names: list[str]
    entry: LockEntry


class LockManager:
    """
    Lock file manager (with injected lock path and filesystem).

    Example:
        >>> lock = LockManager.for_project(Path("/work/app"))
        >>> await lock.add_entry("react-hooks", source="owner/repo", source_type="github",
        ...                      cognitive_type="skill")
    """

    def __init__(
        self,
        lock_path: Path,
        fs: FileSystemProtocol | None = None,
        events: EventEmitter | None = None,
    ):
        """Initialize lock manager with app-provided lock path.

        Args:
            lock_path: Path to lock file (app determines location)
            fs: Filesystem adapter (defaults to the local disk)
            events: Event sink for lock:read/write/migrate
        """
        self.lock_path = Path(lock_path)
        self.fs = fs or LocalFileSystem()
        self.events = events or NullEventBus()
        self._mutex = asyncio.Lock()

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        lock_file_name: str = DEFAULT_LOCK_FILE_NAME,
        fs: FileSystemProtocol | None = None,
        events: EventEmitter | None = None,
    ) -> "LockManager":
        """Manager for `<project_root>/.agents/cognit/<lock_file_name>`."""
        return cls(project_store_root(project_root) / lock_file_name, fs=fs, events=events)

    # -- unlocked primitives (callers hold self._mutex) -------------------

    async def _load(self) -> Any:
        """Parsed JSON of the lock file, or None when there is no file.

        Raises:
            LockReadError: If the file exists but cannot be read or parsed
        """
        try:
            if not await self.fs.exists(self.lock_path):
                return None
            return json.loads(await self.fs.read_text(self.lock_path))
        except (OSError, ValueError) as e:
            raise LockReadError(self.lock_path) from e

    async def _read(self) -> LockFile:
        self.events.emit("lock:read", LockReadPayload(path=str(self.lock_path)))

        try:
            data = await self._load()
        except LockReadError as e:
            logger.warning(f"{e.message}, treating as empty: {e.__cause__}")
            return create_empty_lock_file()

        if data is None:
            return create_empty_lock_file()
        return read_with_migration(data, self.events)

    async def _write(self, lock: LockFile) -> None:
        try:
            await atomic_write(self.lock_path, lock.to_json(), self.fs)
        except FileWriteError as e:
            raise LockWriteError(self.lock_path) from e

        self.events.emit("lock:write", LockWritePayload(path=str(self.lock_path), entry_count=len(lock.cognitives)))
        logger.debug(f"Saved lock file with {len(lock.cognitives)} cognitives")

    # -- public API -------------------------------------------------------

    async def read(self) -> LockFile:
        """Current ledger; absent, unreadable or unparsable files read as empty."""
        async with self._mutex:
            return await self._read()

    async def write(self, lock: LockFile) -> None:
        """Persist `lock` atomically.

        Raises:
            LockWriteError: If the file could not be written
        """
        async with self._mutex:
            await self._write(lock)

    async def add_entry(
        self,
        name: str,
        *,
        source: str,
        source_type: str,
        cognitive_type: CognitiveType,
        source_url: str = "",
        content_hash: str = "",
        category: str | None = None,
        cognitive_path: str | None = None,
    ) -> LockEntry:
        """
        Add or update a cognitive in the lock file.

        Re-adding an existing name keeps its original `installed_at`.

        Returns:
            The stored entry
        """
        if not name or not name.strip():
            raise ValueError("lock entry name must be non-empty")

        async with self._mutex:
            lock = await self._read()
            now = datetime.now(UTC).isoformat()
            previous = lock.cognitives.get(name)

            entry = LockEntry(
                source=source,
                source_type=source_type,
                source_url=source_url,
                content_hash=content_hash,
                cognitive_type=cognitive_type,
                category=category,
                cognitive_path=cognitive_path,
                installed_at=previous.installed_at if previous else now,
                updated_at=now,
            )
            cognitives = {**lock.cognitives, name: entry}
            await self._write(lock.model_copy(update={"cognitives": cognitives}))

        logger.debug(f"Added {name} to lock file")
        return entry

    async def remove_entry(self, name: str) -> bool:
        """
        Remove a cognitive from the lock file.

        Returns:
            True if the entry existed and was removed
        """
        async with self._mutex:
            lock = await self._read()
            if name not in lock.cognitives:
                return False

            cognitives = {key: value for key, value in lock.cognitives.items() if key != name}
            await self._write(lock.model_copy(update={"cognitives": cognitives}))

        logger.debug(f"Removed {name} from lock file")
        return True

    async def get_entry(self, name: str) -> LockEntry | None:
        async with self._mutex:
            lock = await self._read()
        return lock.cognitives.get(name)

    async def get_all_entries(self) -> dict[str, LockEntry]:
        async with self._mutex:
            lock = await self._read()
        return dict(lock.cognitives)

    async def is_installed(self, name: str) -> bool:
        return await self.get_entry(name) is not None

    async def get_by_source(self) -> dict[str, SourceGroup]:
        """
        Group entry names by source identifier.

        Returns:
            Mapping of source identifier to its names (lock order) and the
            first entry seen for that source
        """
        groups: dict[str, SourceGroup] = {}
        for name, entry in (await self.get_all_entries()).items():
            group = groups.get(entry.source)
            if group is None:
                groups[entry.source] = SourceGroup(names=[name], entry=entry)
            else:
                group.names.append(name)
        return groups

    async def get_last_selected_targets(self) -> list[str] | None:
        async with self._mutex:
            lock = await self._read()
        return lock.last_selected_targets

    async def save_last_selected_targets(self, targets: list[str]) -> None:
        async with self._mutex:
            lock = await self._read()
            await self._write(lock.model_copy(update={"last_selected_targets": list(targets)}))
