"""
Typed query specification: selectors, sort keys and query results.
"""

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

Scalar = str | int | float | bool | None
FilterFn = Callable[[Any, str, int], Any]

_RADIX_PREFIXES = ("0x", "0o", "0b")


def as_number(value: Any) -> float | None:
    """
    Return value as a float if it is numeric-like, None otherwise.

    Numbers, strings that parse as a float and 0x/0o/0b prefixed integer
    strings count as numeric-like. Booleans, None, empty strings, NaN and
    strings with digit-group underscores do not.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if "_" in text:
            return None
        try:
            if text[:2].lower() in _RADIX_PREFIXES:
                number = float(int(text, 0))
            else:
                number = float(text)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    return None if math.isnan(number) else number


def field_value(record: Any, name: str) -> Any:
    """Look up a field on a record value, None when absent."""
    if isinstance(record, Mapping):
        return record.get(name)
    return None


@dataclass(frozen=True)
class Selector:
    """
    Flat equality-only filter over record fields.

    Each predicate is a (field, expected) pair. A record matches when every
    field equals its expected scalar. Values that are both numeric-like are
    compared numerically, so {"amount": "5"} matches a record {"amount": 5}.
    """

    predicates: tuple[tuple[str, Scalar], ...] = ()

    @classmethod
    def of(cls, selector: "Selector | Mapping[str, Scalar] | None") -> "Selector":
        if selector is None:
            return cls()
        if isinstance(selector, Selector):
            return selector
        if not isinstance(selector, Mapping):
            raise TypeError(f"selector must be a mapping, got {type(selector).__name__}")
        for name, expected in selector.items():
            if not isinstance(name, str) or not name:
                raise ValueError(f"selector field names must be non-empty strings, got {name!r}")
            if isinstance(expected, (Mapping, list, tuple, set)):
                raise ValueError(f"selector value for '{name}' must be a scalar")
        return cls(tuple(selector.items()))

    def matches(self, record: Any) -> bool:
        for name, expected in self.predicates:
            actual = field_value(record, name)
            expected_num = as_number(expected)
            actual_num = as_number(actual)
            if expected_num is not None and actual_num is not None:
                if actual_num != expected_num:
                    return False
            elif actual != expected:
                return False
        return True

    def __len__(self) -> int:
        return len(self.predicates)


@dataclass(frozen=True)
class SortKey:
    """A single sort pass: the field to sort on and its direction."""

    field: str
    ascending: bool = True

    @classmethod
    def of(cls, spec: "SortKey | Mapping[str, Any] | tuple") -> "SortKey":
        """
        Build a SortKey from a SortKey, a (field, direction) tuple or a mapping.

        Directions may be a bool (True = ascending) or "asc"/"desc".
        Mappings use "field" plus either "ascending" or "order".
        """
        if isinstance(spec, SortKey):
            return spec
        if isinstance(spec, tuple):
            if len(spec) != 2:
                raise ValueError(f"sort tuple must be (field, direction), got {spec!r}")
            name, direction = spec
        elif isinstance(spec, Mapping):
            if "field" not in spec:
                raise ValueError("sort entry missing 'field'")
            name = spec["field"]
            direction = spec.get("ascending", spec.get("order", True))
        else:
            raise TypeError(f"unsupported sort entry: {spec!r}")

        if not isinstance(name, str) or not name:
            raise ValueError(f"sort field must be a non-empty string, got {name!r}")
        return cls(field=name, ascending=_parse_direction(direction))


def _parse_direction(direction: Any) -> bool:
    if isinstance(direction, bool):
        return direction
    if isinstance(direction, str):
        normalized = direction.strip().lower()
        if normalized in ("asc", "ascending"):
            return True
        if normalized in ("desc", "descending"):
            return False
    raise ValueError(f"sort direction must be a bool, 'asc' or 'desc', got {direction!r}")


DEFAULT_SORT: tuple[SortKey, ...] = (SortKey("blockNumber", ascending=False),)


def build_sort(sort: Iterable | None) -> tuple[SortKey, ...]:
    """Build the sort passes for a query, defaulting to blockNumber descending."""
    if not sort:
        return DEFAULT_SORT
    if isinstance(sort, (SortKey, Mapping)) or (
        isinstance(sort, tuple) and sort and isinstance(sort[0], str)
    ):
        sort = [sort]
    return tuple(SortKey.of(entry) for entry in sort)


@dataclass
class QuerySpec:
    """
    Everything read_all and find need to select, page and order records.

    Attributes:
        selector: Equality predicates records must satisfy.
        sort: Sort passes applied in order; the last one dominates.
        limit: Maximum records returned. None uses the configured window.
        offset: Number of matching records to skip before collecting.
        include_total: Scan the whole store and report the match count.
        filter_fn: Optional predicate(value, key, ordinal) applied after
            the selector; records for which it is truthy are kept.
    """

    selector: Selector = field(default_factory=Selector)
    sort: tuple[SortKey, ...] = DEFAULT_SORT
    limit: int | None = None
    offset: int = 0
    include_total: bool = False
    filter_fn: FilterFn | None = None

    def __post_init__(self) -> None:
        self.selector = Selector.of(self.selector)
        self.sort = build_sort(self.sort)

        if self.limit is not None:
            if isinstance(self.limit, bool) or not isinstance(self.limit, int):
                raise ValueError(f"limit must be an integer, got {self.limit!r}")
            if self.limit <= 0:
                raise ValueError(f"limit must be positive, got {self.limit}")
        if isinstance(self.offset, bool) or not isinstance(self.offset, int):
            raise ValueError(f"offset must be an integer, got {self.offset!r}")
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.filter_fn is not None and not callable(self.filter_fn):
            raise ValueError("filter_fn must be callable")

    def accepts(self, value: Any, key: str, ordinal: int) -> bool:
        if not self.selector.matches(value):
            return False
        if self.filter_fn is None:
            return True
        return bool(self.filter_fn(value, key, ordinal))


@dataclass
class QueryResult:
    """Page of records plus the number of matches across the whole store."""

    total: int
    data: list[Any]
