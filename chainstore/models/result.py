"""
Outcome of a write against a logical database.
"""

from dataclasses import dataclass

from chainstore.models.exceptions import BackendWriteError


@dataclass
class WriteResult:
    """
    Result of store, store_bulk, update or remove.

    Backend faults on the write path are not raised. They are logged and
    carried here so callers can inspect them or opt into raising.

    Attributes:
        operation: Name of the engine operation that produced this result.
        database: Logical database written to.
        key: Key written, None for bulk writes.
        error: The backend fault, None on success.
    """

    operation: str
    database: str
    key: str | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> None:
        """Raise BackendWriteError chained to the backend fault, if any."""
        if self.error is not None:
            raise BackendWriteError(self.operation, self.database, self.key) from self.error
