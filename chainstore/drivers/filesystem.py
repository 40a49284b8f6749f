"""
FileDriver - filesystem-backed fallback driver.
"""

import asyncio
import logging
import os
import shutil
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Any

from chainstore.drivers.base import Driver
from chainstore.models.record_log import RecordLog
from chainstore.models.value import Value

logger = logging.getLogger(__name__)


class FileDriver(Driver):
    """
    Stores one logical database per directory under storage_dir.

    Layout:
        <storage_dir>/<name>/records.log

    The log is append-only. Opening a store replays it into an
    insertion-ordered dict of serialized values, and every read decodes a
    fresh copy. When superseded frames dominate the log it is compacted on
    open.
    """

    NAME = "localfs"

    LOG_FILENAME = "records.log"

    # Compact when the log holds this many frames per live record
    COMPACTION_RATIO = 4
    COMPACTION_MIN_ENTRIES = 1000

    def __init__(self, name: str, directory: str, fsync_interval_ms: int = 0) -> None:
        """
        Initialize the driver. Use open() to get a ready instance.

        Args:
            name: Logical database name.
            directory: Directory holding this store's files.
            fsync_interval_ms: Milliseconds between log fsyncs (0 = always).
        """
        super().__init__(name)
        self._directory = directory
        self._log = RecordLog(os.path.join(directory, self.LOG_FILENAME))
        self._log.set_fsync_interval(fsync_interval_ms)
        self._records: dict[str, Value] = {}
        self._write_lock = asyncio.Lock()

    @property
    def directory(self) -> str:
        return self._directory

    @classmethod
    async def open(
        cls,
        name: str,
        storage_dir: str = "data/",
        fsync_interval_ms: int = 0,
        **options: Any,
    ) -> "FileDriver":
        """
        Open or create the store called name under storage_dir.

        Raises:
            LogCorruptionError: If the record log fails checksum validation.
        """
        if not name or not name.strip():
            raise ValueError("store name cannot be empty")
        if os.sep in name or (os.altsep and os.altsep in name) or name in (".", ".."):
            raise ValueError(f"store name cannot contain path separators: {name!r}")

        directory = os.path.join(os.path.abspath(storage_dir), name)
        driver = cls(name, directory, fsync_interval_ms)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, driver._load)
        return driver

    def _load(self) -> None:
        """Replay the record log into memory (runs in thread pool)."""
        Path(self._directory).mkdir(parents=True, exist_ok=True)
        self._cleanup_temp_files()

        records: dict[str, Value] = {}
        for record in self._log.replay():
            if record.value.is_tombstone():
                records.pop(record.key, None)
            else:
                records[record.key] = record.value
        self._records = records

        if self._log.truncate_partial_tail():
            logger.warning(f"Discarded incomplete trailing frame in {self._log.file_path}")

        if self._needs_compaction():
            logger.debug(
                f"Compacting {self.name}: {self._log.entry_count} frames, "
                f"{len(self._records)} live records"
            )
            self._log.rewrite(self._records.items())

        self._log.open()

    def _needs_compaction(self) -> bool:
        count = self._log.entry_count
        if count < self.COMPACTION_MIN_ENTRIES:
            return False
        return count >= self.COMPACTION_RATIO * max(len(self._records), 1)

    def _cleanup_temp_files(self) -> None:
        """Remove temp files left behind by an interrupted compaction."""
        for filename in os.listdir(self._directory):
            if filename.endswith(".tmp"):
                tmp_path = os.path.join(self._directory, filename)
                try:
                    os.remove(tmp_path)
                except OSError as e:
                    logger.warning(f"Failed to remove temp file {tmp_path}: {e}")

    async def get_item(self, key: str) -> Any | None:
        entry = self._records.get(key)
        return None if entry is None else entry.decode()

    async def set_item(self, key: str, value: Any) -> None:
        # Serialise before touching state so unencodable values leave no trace
        entry = Value.regular(value)
        async with self._write_lock:
            await self._log.append(key, entry)
            self._records[key] = entry

    async def set_items(self, items: Mapping[str, Any]) -> None:
        entries = [(key, Value.regular(value)) for key, value in items.items()]
        if not entries:
            return
        async with self._write_lock:
            await self._log.batch_append(entries)
            for key, entry in entries:
                self._records[key] = entry

    async def remove_item(self, key: str) -> None:
        async with self._write_lock:
            if key not in self._records:
                return
            await self._log.append(key, Value.tombstone())
            del self._records[key]

    async def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        for key in list(self._records):
            entry = self._records.get(key)
            if entry is not None:
                yield key, entry.decode()

    async def length(self) -> int:
        return len(self._records)

    async def drop_instance(self) -> None:
        async with self._write_lock:
            self._log.close()
            self._records = {}
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None, lambda: shutil.rmtree(self._directory, ignore_errors=True)
            )

    async def close(self) -> None:
        async with self._write_lock:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._log.close)
