"""
Value and ValueType for representing stored records in the record log.
"""

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ValueType(IntEnum):
    """Type of value stored in the record log."""

    REGULAR = 0  # Normal value
    TOMBSTONE = 1  # Deletion marker


@dataclass
class Value:
    """
    Represents a record value as written to the record log.

    Attributes:
        data: The record value (None for tombstones). Must be JSON-serialisable.
        type: Whether this is a regular value or a tombstone.
    """

    data: Any
    type: ValueType = ValueType.REGULAR
    _cached_bytes: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Cache the serialized bytes on initialization."""
        type_byte = self.type.to_bytes(1, "big")
        if self.type == ValueType.REGULAR:
            data_bytes = json.dumps(self.data, separators=(",", ":")).encode("utf-8")
        else:
            data_bytes = b""

        # Format: [type:1][data_len:4][data]
        self._cached_bytes = type_byte + len(data_bytes).to_bytes(4, "big") + data_bytes

    @classmethod
    def regular(cls, data: Any) -> "Value":
        return cls(data=data, type=ValueType.REGULAR)

    @classmethod
    def tombstone(cls) -> "Value":
        return cls(data=None, type=ValueType.TOMBSTONE)

    def is_tombstone(self) -> bool:
        return self.type == ValueType.TOMBSTONE

    def __bytes__(self) -> bytes:
        return self._cached_bytes

    def decode(self) -> Any:
        """Return a fresh copy of data, decoded from the serialized form."""
        if self.type == ValueType.TOMBSTONE:
            return None
        return json.loads(self._cached_bytes[5:])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Value":
        """Deserialize from bytes."""
        value_type = ValueType(data[0])
        data_len = int.from_bytes(data[1:5], "big")
        if value_type == ValueType.TOMBSTONE:
            return cls.tombstone()
        return cls.regular(json.loads(data[5 : 5 + data_len].decode("utf-8")))
