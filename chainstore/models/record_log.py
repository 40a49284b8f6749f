import asyncio
import os
import struct
import time
import zlib
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO, NamedTuple

from chainstore.models.exceptions import LogCorruptionError
from chainstore.models.value import Value

# [payload_len:4][crc32(payload):4] ahead of every payload
_FRAME_HEADER = struct.Struct(">II")
# payload = [seq:8][key_len:4][key][value]
_ENTRY_HEADER = struct.Struct(">QI")


class LogRecord(NamedTuple):
    """A single set (regular value) or delete (tombstone) in the log."""

    seq: int
    key: str
    value: Value

    def encode(self) -> bytes:
        key_bytes = self.key.encode("utf-8")
        payload = _ENTRY_HEADER.pack(self.seq, len(key_bytes)) + key_bytes + bytes(self.value)
        return _FRAME_HEADER.pack(len(payload), zlib.crc32(payload)) + payload

    @classmethod
    def decode(cls, payload: bytes) -> "LogRecord":
        seq, key_len = _ENTRY_HEADER.unpack_from(payload)
        start = _ENTRY_HEADER.size
        key = payload[start : start + key_len].decode("utf-8")
        return cls(seq, key, Value.from_bytes(payload[start + key_len :]))


def _read_frames(file_path: str) -> Iterator[tuple[int, LogRecord]]:
    """
    Yield (end_offset, record) for each complete frame, oldest first.

    A frame cut short at the end of the file is an interrupted append and
    ends the scan quietly.

    Raises:
        LogCorruptionError: If a complete frame fails its checksum.
    """
    if not os.path.exists(file_path):
        return
    offset = 0
    with open(file_path, "rb") as f:
        while True:
            header = f.read(_FRAME_HEADER.size)
            if len(header) < _FRAME_HEADER.size:
                return
            length, expected = _FRAME_HEADER.unpack(header)
            payload = f.read(length)
            if len(payload) < length:
                return

            actual = zlib.crc32(payload)
            if actual != expected:
                raise LogCorruptionError(expected=expected, actual=actual, entry_offset=offset)

            offset += _FRAME_HEADER.size + length
            yield offset, LogRecord.decode(payload)


class RecordLog:
    """
    Append-only record log backing the filesystem driver.

    Every set and delete is appended as a checksummed frame. Replaying the
    log front to back rebuilds the current state of the store.
    """

    def __init__(self, file_path: str) -> None:
        """
        Initialize the record log.

        Args:
            file_path: Path to the log file.
        """
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._seq: int = 0
        self._entry_count: int = 0
        self._valid_length: int = 0

        # Periodic fsync configuration
        self._fsync_interval_ms: int = 0  # 0 = always fsync (default)
        self._last_fsync_time: float = 0.0  # time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def seq(self) -> int:
        return self._seq

    @property
    def entry_count(self) -> int:
        """Number of frames currently in the log, live or superseded."""
        return self._entry_count

    def set_fsync_interval(self, fsync_interval_ms: int) -> None:
        """
        Configure fsync interval.

        Args:
            fsync_interval_ms: Milliseconds between fsyncs.
                              0 = always fsync (default).
                              Max 10000 (10 seconds).
        """
        if fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {fsync_interval_ms}")
        if fsync_interval_ms > 10000:
            raise ValueError(f"fsync_interval_ms cannot exceed 10000ms, got {fsync_interval_ms}")
        self._fsync_interval_ms = fsync_interval_ms

    def open(self) -> None:
        """Open the log file for appending, creating it if needed."""
        Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.file_path, "ab+")

    def replay(self) -> Iterator[LogRecord]:
        """
        Iterate over every entry in the log, oldest first.

        Also brings the sequence counter and entry count up to date.

        Raises:
            LogCorruptionError: If a frame fails its checksum.
        """
        self._entry_count = 0
        self._valid_length = 0
        for end_offset, record in _read_frames(self.file_path):
            self._entry_count += 1
            self._valid_length = end_offset
            self._seq = max(self._seq, record.seq + 1)
            yield record

    def truncate_partial_tail(self) -> bool:
        """
        Cut off a trailing frame left incomplete by an interrupted append.

        Must run after replay() and before open().

        Returns:
            True if the file was truncated.
        """
        if not os.path.exists(self.file_path):
            return False
        if os.path.getsize(self.file_path) <= self._valid_length:
            return False
        with open(self.file_path, "r+b") as f:
            f.truncate(self._valid_length)
        return True

    def _should_flush(self) -> bool:
        if self._fsync_interval_ms == 0:
            return True

        current_time = time.monotonic()
        elapsed_ms = (current_time - self._last_fsync_time) * 1000

        if elapsed_ms >= self._fsync_interval_ms:
            self._last_fsync_time = current_time
            return True
        return False

    async def _attempt_flush(self) -> None:
        if self._should_flush():
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._perform_flush)

    def _perform_flush(self) -> None:
        """Push buffered frames from user space to the OS and then to disk."""
        self._file.flush()
        # Use fdatasync if available (Linux), fallback to fsync (macOS/Windows)
        _sync_data = getattr(os, "fdatasync", os.fsync)
        _sync_data(self._file.fileno())

    async def append(self, key: str, value: Value) -> None:
        """
        Append a single set or delete to the log.

        Raises:
            RuntimeError: If the log is not open.
        """
        await self.batch_append([(key, value)])

    async def batch_append(self, items: list[tuple[str, Value]]) -> None:
        """
        Append several sets or deletes with a single fsync.

        Raises:
            RuntimeError: If the log is not open.
        """
        if self._file is None:
            raise RuntimeError("Record log is not open")

        async with self._lock:
            frames = b"".join(
                LogRecord(self._seq + i, key, value).encode()
                for i, (key, value) in enumerate(items)
            )
            self._file.write(frames)
            self._seq += len(items)
            self._entry_count += len(items)

        await self._attempt_flush()

    def rewrite(self, records: Iterable[tuple[str, Value]]) -> None:
        """
        Replace the log with one frame per live record.

        Writes to a temp file and atomically renames it over the log, so an
        interrupted rewrite leaves the previous log intact.
        """
        temp_path = f"{self.file_path}.tmp"
        count = 0
        with open(temp_path, "wb") as f:
            for key, value in records:
                f.write(LogRecord(count, key, value).encode())
                count += 1
            f.flush()
            # Ensure durability before rename
            os.fsync(f.fileno())

        was_open = self._file is not None
        self.close()
        os.replace(temp_path, self.file_path)
        self._seq = count
        self._entry_count = count
        if was_open:
            self.open()

    def close(self) -> None:
        """Close the log file, flushing pending frames."""
        if self._file:
            self._perform_flush()
            self._file.close()
            self._file = None
