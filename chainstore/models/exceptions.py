"""
Custom exceptions for the storage layer.
"""


class StorageError(Exception):
    """Base class for every error raised by chainstore."""


class ValidationError(StorageError, ValueError):
    """
    Raised when an operation is called with malformed input.

    Raised synchronously, before any backend I/O happens.
    """

    def __init__(self, operation: str, field: str, message: str | None = None):
        self.operation = operation
        self.field = field
        super().__init__(message or f"{operation}: missing required field '{field}'")


class BackendWriteError(StorageError):
    """Raised by WriteResult.raise_for_error() for a failed write."""

    def __init__(self, operation: str, database: str, key: str | None = None):
        self.operation = operation
        self.database = database
        self.key = key
        target = f"{database}/{key}" if key is not None else database
        super().__init__(f"{operation} failed for {target}")


class DriverNotDefinedError(StorageError, KeyError):
    """Raised when a driver name has not been defined with the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Driver not defined: {name}")

    def __str__(self) -> str:
        return self.args[0]


class LogCorruptionError(StorageError):
    """
    Raised when record log corruption is detected via checksum mismatch.

    This is a fail-fast error indicating data integrity issues.
    """

    def __init__(self, expected: int, actual: int, entry_offset: int):
        """
        Initialize corruption error.

        Args:
            expected: Expected CRC32 checksum.
            actual: Actual CRC32 checksum computed.
            entry_offset: File offset where corruption detected.
        """
        self.expected = expected
        self.actual = actual
        self.entry_offset = entry_offset
        super().__init__(
            f"Record log corruption detected at offset {entry_offset}: "
            f"expected CRC32 0x{expected:08x}, got 0x{actual:08x}"
        )
