"""
Tests for QueryEngine CRUD, iteration, read_all and find.
"""

import pytest
import pytest_asyncio

from chainstore.drivers.memory import MemoryDriver
from chainstore.engine.instance_pool import InstancePool
from chainstore.engine.query_engine import QueryEngine
from chainstore.engine.sorting import sort_records
from chainstore.models.exceptions import ValidationError
from chainstore.models.query import QueryResult, QuerySpec, SortKey

DB = "engine_test"


@pytest.fixture
def engine(any_context):
    return any_context.engine


@pytest_asyncio.fixture
async def numbered(engine, numbered_records):
    """Engine with records "1".."10" stored in order."""
    for key, value in numbered_records.items():
        await engine.store(DB, key, value)
    return engine


class TestCrud:
    """store, update, read and remove."""

    async def test_store_then_read(self, engine):
        """Test a stored value reads back."""
        value = {"field": "value", "nested": {"a": [1, 2]}}
        result = await engine.store(DB, "test", value)

        assert result.ok
        assert result.operation == "store"
        assert await engine.read(DB, "test") == [value]

    async def test_read_absent_key(self, engine):
        """Test reading a missing key returns an empty list."""
        assert await engine.read(DB, "missing") == []

    async def test_update_overwrites(self, engine):
        """Test update replaces the value."""
        await engine.store(DB, "k", {"v": 1})
        result = await engine.update(DB, "k", {"v": 2})

        assert result.ok
        assert await engine.read(DB, "k") == [{"v": 2}]

    async def test_store_overwrites(self, engine):
        """Test store replaces the value."""
        await engine.store(DB, "k", {"v": 1})
        await engine.store(DB, "k", {"v": 2})
        assert await engine.read(DB, "k") == [{"v": 2}]

    async def test_remove_then_read(self, engine):
        """Test a removed key reads back empty."""
        await engine.store(DB, "test", {"field": "value"})
        result = await engine.remove(DB, "test")

        assert result.ok
        assert await engine.read(DB, "test") == []

    async def test_remove_absent_key(self, engine):
        """Test removing a missing key succeeds."""
        result = await engine.remove(DB, "missing")
        assert result.ok

    async def test_store_bulk(self, engine):
        """Test bulk store."""
        result = await engine.store_bulk(DB, {"a": {"n": 1}, "b": {"n": 2}})

        assert result.ok
        assert result.key is None
        assert await engine.read(DB, "a") == [{"n": 1}]
        assert await engine.read(DB, "b") == [{"n": 2}]

    async def test_databases_are_isolated(self, engine):
        """Test databases do not share records."""
        await engine.store("first", "k", {"v": 1})
        assert await engine.read("second", "k") == []

    async def test_remove_database(self, engine):
        """Test removing a database deletes its records."""
        await engine.store(DB, "a", {"n": 1})
        await engine.store(DB, "b", {"n": 2})
        await engine.remove_database(DB)

        assert await engine.read(DB, "a") == []
        assert await engine.read_all(DB) == []

        await engine.store(DB, "c", {"n": 3})
        assert await engine.read_all(DB) == [{"n": 3}]


class TestValidation:
    """Malformed input fails before any I/O."""

    @pytest.mark.parametrize(
        "call, field",
        [
            (lambda e: e.store(DB, "", {"v": 1}), "key"),
            (lambda e: e.store(DB, "k", None), "data"),
            (lambda e: e.update(DB, None, {"v": 1}), "key"),
            (lambda e: e.read(DB, ""), "key"),
            (lambda e: e.remove(DB, None), "key"),
            (lambda e: e.store_bulk(DB, None), "items"),
            (lambda e: e.store_bulk(DB, {"": 1}), "key"),
            (lambda e: e.find(DB, None), "spec"),
            (lambda e: e.read("", "k"), "database"),
        ],
    )
    async def test_missing_field(self, engine, call, field):
        """Test missing arguments raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            await call(engine)
        assert exc_info.value.field == field
        assert field in str(exc_info.value)

    async def test_store_bulk_requires_mapping(self, engine):
        """Test store_bulk requires items."""
        with pytest.raises(ValidationError):
            await engine.store_bulk(DB, [("a", 1)])

    async def test_iterate_requires_callable(self, engine):
        """Test iterate requires a callable."""
        with pytest.raises(ValidationError, match="callback"):
            await engine.iterate(DB, "not callable")

    async def test_validation_happens_before_open(self):
        """Test validation fails before any store is opened."""
        calls = []

        async def factory(name):
            calls.append(name)
            return await MemoryDriver.open(name)

        engine = QueryEngine(InstancePool(factory))
        with pytest.raises(ValidationError):
            await engine.store(DB, "", {"v": 1})
        assert calls == []

    def test_invalid_query_size_limit(self):
        """Test a non-positive query size limit is rejected."""
        with pytest.raises(ValueError):
            QueryEngine(InstancePool(MemoryDriver.open), query_size_limit=0)


class FailingDriver(MemoryDriver):
    """Memory driver whose writes always fail."""

    async def set_item(self, key, value):
        raise OSError("disk full")

    async def set_items(self, items):
        raise OSError("disk full")

    async def remove_item(self, key):
        raise OSError("disk full")

    async def get_item(self, key):
        raise OSError("read failed")


class TestWriteFaults:
    """Write faults are returned, read faults propagate."""

    @pytest.fixture
    def failing_engine(self, environment):
        async def factory(name):
            return FailingDriver(name, environment)

        return QueryEngine(InstancePool(factory))

    async def test_store_failure_returned(self, failing_engine, caplog):
        """Test a store failure comes back as a failed result."""
        result = await failing_engine.store(DB, "k", {"v": 1})

        assert not result.ok
        assert isinstance(result.error, OSError)
        assert "Problem storing to engine_test" in caplog.text

    async def test_update_store_bulk_remove_failures_returned(self, failing_engine):
        """Test update, bulk store and remove failures come back as results."""
        assert not (await failing_engine.update(DB, "k", {"v": 1})).ok
        assert not (await failing_engine.store_bulk(DB, {"k": {"v": 1}})).ok
        assert not (await failing_engine.remove(DB, "k")).ok

    async def test_read_failure_propagates(self, failing_engine):
        """Test a read failure is raised."""
        with pytest.raises(OSError, match="read failed"):
            await failing_engine.read(DB, "k")

    async def test_open_failure_propagates(self):
        """Test an open failure is raised."""
        async def factory(name):
            raise PermissionError("no access")

        engine = QueryEngine(InstancePool(factory))
        with pytest.raises(PermissionError):
            await engine.store(DB, "k", {"v": 1})


class TestIterate:
    """iterate(callback)."""

    async def test_visits_all_records_with_ordinals(self, numbered):
        """Test every record is visited with its ordinal."""
        seen = []

        def callback(value, key, ordinal):
            seen.append((key, ordinal, value["n"]))

        result = await numbered.iterate(DB, callback)
        assert result is None
        assert seen == [(str(n), n, n) for n in range(1, 11)]

    async def test_early_return(self, numbered):
        """Test a non-None return stops iteration."""
        seen = []

        def callback(value, key, ordinal):
            seen.append(key)
            if value["n"] == 3:
                return value

        assert await numbered.iterate(DB, callback) == {"n": 3}
        assert seen == ["1", "2", "3"]

    async def test_falsy_non_none_return_stops(self, numbered):
        """Test a falsy non-None return stops iteration."""
        assert await numbered.iterate(DB, lambda value, key, ordinal: 0) == 0

    async def test_async_callback(self, numbered):
        """Test an async callback is awaited."""
        async def callback(value, key, ordinal):
            if ordinal == 2:
                return key

        assert await numbered.iterate(DB, callback) == "2"


class TestReadAll:
    """read_all(spec)."""

    async def test_default_sort_is_block_number_descending(self, engine):
        """Test read_all sorts by blockNumber descending by default."""
        for n in (3, 1, 2):
            await engine.store(DB, str(n), {"blockNumber": n})

        records = await engine.read_all(DB)
        assert [r["blockNumber"] for r in records] == [3, 2, 1]

    async def test_limit_counts_collected_records(self, numbered):
        """Test the limit counts accepted records only."""
        spec = QuerySpec(limit=3, sort=[("n", "asc")], filter_fn=lambda v, k, i: v["n"] % 2 == 0)
        records = await numbered.read_all(DB, spec)
        assert [r["n"] for r in records] == [2, 4, 6]

    async def test_default_limit_from_settings(self, engine):
        """Test the default limit is the query size limit."""
        engine.query_size_limit = 4
        for n in range(10):
            await engine.store(DB, str(n), {"n": n})

        assert len(await engine.read_all(DB)) == 4

    async def test_filter_fn_receives_key_and_ordinal(self, numbered):
        """Test filter_fn gets the value, key and ordinal."""
        calls = []

        def keep_all(value, key, ordinal):
            calls.append((key, ordinal))
            return True

        await numbered.read_all(DB, QuerySpec(filter_fn=keep_all))
        assert calls[:3] == [("1", 1), ("2", 2), ("3", 3)]

    async def test_empty_database(self, engine):
        """Test read_all on an empty database."""
        assert await engine.read_all("empty") == []


class TestFind:
    """find(spec): selector, paging, totals."""

    async def test_window_scenario(self, numbered):
        """Test offset and limit select the expected window."""
        spec = QuerySpec(selector={}, sort=[SortKey("n", ascending=True)], limit=3, offset=4)
        records = await numbered.find(DB, spec)
        assert [r["n"] for r in records] == [5, 6, 7]

    async def test_selector_numeric_coercion(self, engine):
        """Test selectors coerce numeric strings."""
        await engine.store(DB, "a", {"amount": 5})
        await engine.store(DB, "b", {"amount": 6})

        records = await engine.find(DB, QuerySpec(selector={"amount": "5"}))
        assert records == [{"amount": 5}]

    async def test_selector_matches_hex_strings(self, engine):
        """Test a numeric selector matches hex string fields."""
        await engine.store(DB, "a", {"blockNumber": "0x1a"})
        await engine.store(DB, "b", {"blockNumber": "0x1b"})

        records = await engine.find(DB, QuerySpec(selector={"blockNumber": 26}))
        assert records == [{"blockNumber": "0x1a"}]

    @pytest.mark.parametrize("offset, limit", [(0, 3), (2, 3), (7, 5), (10, 2), (0, 50)])
    async def test_total_independent_of_window(self, engine, offset, limit):
        """Test the total ignores offset and limit."""
        for n in range(20):
            await engine.store(DB, str(n), {"n": n, "kind": "even" if n % 2 == 0 else "odd"})

        spec = QuerySpec(selector={"kind": "even"}, limit=limit, offset=offset, include_total=True)
        result = await engine.find(DB, spec)

        everything = await engine.read_all(DB, QuerySpec(limit=1000))
        expected_total = sum(1 for r in everything if r["kind"] == "even")
        assert isinstance(result, QueryResult)
        assert result.total == expected_total == 10
        assert len(result.data) == min(limit, max(0, 10 - offset))

    @pytest.mark.parametrize("page_size", [1, 3, 4, 7])
    async def test_consecutive_pages_cover_matches(self, engine, page_size):
        """Test consecutive pages cover every match once."""
        for n in range(15):
            await engine.store(DB, f"k{n}", {"n": n, "keep": n % 3 != 0})

        sort = [("n", "asc")]
        first = await engine.find(DB, QuerySpec(selector={"keep": True}, sort=sort, limit=page_size))
        second = await engine.find(
            DB, QuerySpec(selector={"keep": True}, sort=sort, limit=page_size, offset=page_size)
        )
        both = await engine.find(
            DB, QuerySpec(selector={"keep": True}, sort=sort, limit=2 * page_size)
        )

        assert [r["n"] for r in first + second] == [r["n"] for r in both]
        assert not {r["n"] for r in first} & {r["n"] for r in second}

    async def test_offset_past_end(self, numbered):
        """Test an offset past the end returns nothing."""
        result = await numbered.find(DB, QuerySpec(offset=20, include_total=True))
        assert result.total == 10
        assert result.data == []

    async def test_without_total_returns_list(self, numbered):
        """Test find returns a list without include_total."""
        records = await numbered.find(DB, QuerySpec(limit=2))
        assert isinstance(records, list)
        assert len(records) == 2

    async def test_stops_early_without_total(self, numbered):
        """Test find stops scanning once the window is full."""
        visited = []

        def spy(value, key, ordinal):
            visited.append(ordinal)
            return True

        await numbered.find(DB, QuerySpec(limit=2, filter_fn=spy))
        assert visited == [1, 2]

    async def test_scans_everything_with_total(self, numbered):
        """Test find scans every record with include_total."""
        visited = []

        def spy(value, key, ordinal):
            visited.append(ordinal)
            return True

        result = await numbered.find(DB, QuerySpec(limit=2, include_total=True, filter_fn=spy))
        assert visited == list(range(1, 11))
        assert result.total == 10

    async def test_window_sorted_not_whole_store(self, numbered):
        """Test only the collected window is sorted."""
        # The window is the first three matches in store order, then sorted
        records = await numbered.find(DB, QuerySpec(sort=[("n", "desc")], limit=3))
        assert [r["n"] for r in records] == [3, 2, 1]

    async def test_multi_key_sort(self, engine):
        """Test the last sort key dominates."""
        rows = [
            {"a": 2, "b": 1},
            {"a": 1, "b": 2},
            {"a": 3, "b": 1},
            {"a": 1, "b": 1},
            {"a": 2, "b": 2},
        ]
        for i, row in enumerate(rows):
            await engine.store(DB, str(i), row)

        spec = QuerySpec(sort=[{"field": "a", "ascending": True}, {"field": "b", "ascending": False}])
        records = await engine.find(DB, spec)
        assert [(r["b"], r["a"]) for r in records] == [(2, 1), (2, 2), (1, 1), (1, 2), (1, 3)]


class TestSortRecords:
    """Repeated stable sorts."""

    def test_last_key_dominates(self):
        """Test the last key is the primary order."""
        records = [{"a": 1, "b": "y"}, {"a": 2, "b": "x"}, {"a": 0, "b": "y"}]
        sort_records(records, [SortKey("a"), SortKey("b")])
        assert records == [{"a": 2, "b": "x"}, {"a": 0, "b": "y"}, {"a": 1, "b": "y"}]

    def test_ties_keep_iteration_order(self):
        """Test ties keep their original order."""
        records = [{"k": 1, "id": "first"}, {"k": 1, "id": "second"}, {"k": 0, "id": "third"}]
        sort_records(records, [SortKey("k", ascending=False)])
        assert [r["id"] for r in records] == ["first", "second", "third"]

    def test_mixed_types_do_not_raise(self):
        """Test mixed value types sort without error."""
        records = [{"v": "b"}, {"v": 2}, {}, {"v": None}, {"v": 1.5}, {"v": "a"}]
        sort_records(records, [SortKey("v")])
        assert [r.get("v") for r in records] == [None, None, 1.5, 2, "a", "b"]

    def test_returns_same_list(self):
        """Test the list is sorted in place."""
        records = [{"v": 2}, {"v": 1}]
        assert sort_records(records, [SortKey("v")]) is records
