"""Tests for table-level statistics and the statistics registry."""

import threading
import unittest

from joinopt import ComparisonOperator, FieldType, InMemoryCatalog, StatisticsError, TupleSchema
from joinopt import stats as st
from joinopt.stats import StaleStatisticsWarning, StatisticsRegistry, TableStatistics
from joinopt.util import StateError

from tests import regression_suite

Op = ComparisonOperator


class _BrokenStorage:
    """Storage that cannot open the tables in `broken`, but delegates all other tables to the catalog."""

    def __init__(self, catalog: InMemoryCatalog, broken: set[int]) -> None:
        self._catalog = catalog
        self._broken = broken

    def page_count(self, table_id: int) -> int:
        return self._catalog.page_count(table_id)

    def scan(self, table_id: int):
        if table_id in self._broken:
            raise OSError(f"Cannot open heap file of table {table_id}")
        return self._catalog.scan(table_id)


class TableStatisticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = regression_suite.build_catalog({"A": 1000, "B": 5000}, primary_keys={"A": "id"})

    def _stats(self, table: str, **kwargs) -> TableStatistics:
        table_id = self.catalog.table_id(table)
        return TableStatistics(table_id, catalog=self.catalog, storage=self.catalog, **kwargs)

    def test_page_count(self) -> None:
        # 504 tuples of 8 bytes fit on a 4096 byte page
        self.assertEqual(self._stats("A").page_count, 2)
        self.assertEqual(self._stats("B").page_count, 10)

    def test_scan_cost(self) -> None:
        self.assertEqual(self._stats("A").estimate_scan_cost(), 2000)
        self.assertEqual(self._stats("B").estimate_scan_cost(), 10000)

    def test_custom_io_cost(self) -> None:
        table_id = self.catalog.table_id("A")
        stats = TableStatistics(table_id, 10, catalog=self.catalog, storage=self.catalog)
        self.assertEqual(stats.estimate_scan_cost(), 20)

    def test_table_cardinality(self) -> None:
        stats = self._stats("A")
        self.assertEqual(stats.total_tuples(), 1000)
        self.assertEqual(stats.estimate_table_cardinality(1.0), 1000)
        self.assertEqual(stats.estimate_table_cardinality(0.5), 500)
        self.assertEqual(stats.estimate_table_cardinality(0.0), 0)

    def test_table_cardinality_rounds_half_up(self) -> None:
        catalog = regression_suite.build_catalog({"C": 10})
        stats = TableStatistics(catalog.table_id("C"), catalog=catalog, storage=catalog)
        self.assertEqual(stats.estimate_table_cardinality(0.25), 3)
        self.assertEqual(stats.estimate_table_cardinality(0.125), 1)

    def test_min_max_values(self) -> None:
        stats = self._stats("A")
        self.assertEqual(stats.min_value("id"), 0)
        self.assertEqual(stats.max_value("id"), 999)
        self.assertEqual(stats.min_value("val"), 0)
        self.assertEqual(stats.max_value(1), 9)

    def test_selectivity(self) -> None:
        stats = self._stats("A")
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 500), 0.5)
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.GreaterEqual, 0), 1.0)
        self.assertAlmostEqual(stats.estimate_selectivity("val", Op.Equal, 3), 0.1)

    def test_selectivity_unknown_field(self) -> None:
        stats = self._stats("A")
        with self.assertRaises(KeyError):
            stats.estimate_selectivity("foo", Op.Equal, 42)
        with self.assertRaises(IndexError):
            stats.estimate_selectivity(5, Op.Equal, 42)

    def test_avg_selectivity(self) -> None:
        self.assertEqual(self._stats("A").avg_selectivity("id", Op.Equal), 1.0)

    def test_string_field(self) -> None:
        catalog = InMemoryCatalog()
        schema = TupleSchema.of(("id", FieldType.Integer), ("name", FieldType.String))
        table_id = catalog.add_table("people", schema, [(1, "alice"), (2, "bob"), (3, "carol"), (4, "dave")])
        stats = TableStatistics(table_id, catalog=catalog, storage=catalog)
        self.assertIsNone(stats.min_value("name"))
        self.assertAlmostEqual(stats.estimate_selectivity("name", Op.Less, ""), 0.0)
        self.assertAlmostEqual(stats.estimate_selectivity("name", Op.GreaterEqual, ""), 1.0)

    def test_empty_table(self) -> None:
        catalog = InMemoryCatalog()
        table_id = catalog.add_table("empty", regression_suite.IntPair)
        stats = TableStatistics(table_id, catalog=catalog, storage=catalog)
        self.assertEqual(stats.total_tuples(), 0)
        self.assertEqual(stats.estimate_scan_cost(), 0)
        self.assertIsNone(stats.min_value("id"))
        self.assertEqual(stats.estimate_selectivity("id", Op.Equal, 0), 0.0)

    def test_histograms_rebuilt_by_default(self) -> None:
        catalog = regression_suite.build_catalog({"A": 100})
        stats = TableStatistics(catalog.table_id("A"), catalog=catalog, storage=catalog)
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 50), 0.5)
        catalog.insert("A", [(0, 0)] * 100)
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 50), 0.75)

    def test_histogram_cache(self) -> None:
        catalog = regression_suite.build_catalog({"A": 100})
        stats = TableStatistics(catalog.table_id("A"), catalog=catalog, storage=catalog, cache_histograms=True)
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 50), 0.5)
        catalog.insert("A", [(0, 0)] * 100)
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 50), 0.5)
        stats.clear_histogram_cache()
        self.assertAlmostEqual(stats.estimate_selectivity("id", Op.Less, 50), 0.75)

    def test_stale_statistics(self) -> None:
        catalog = regression_suite.build_catalog({"A": 100})
        stats = TableStatistics(catalog.table_id("A"), catalog=catalog, storage=catalog)
        catalog.insert("A", [(1000, 0)])
        with self.assertWarns(StaleStatisticsWarning):
            selectivity = stats.estimate_selectivity("id", Op.Less, 50)
        self.assertAlmostEqual(selectivity, 0.5)

    def test_scan_failure(self) -> None:
        storage = _BrokenStorage(self.catalog, broken={self.catalog.table_id("A")})
        with self.assertRaises(StatisticsError) as context:
            TableStatistics(self.catalog.table_id("A"), catalog=self.catalog, storage=storage)
        self.assertIsInstance(context.exception, StateError)
        self.assertIsInstance(context.exception.__cause__, OSError)


class StatisticsRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = regression_suite.build_catalog({"A": 1000, "B": 5000, "C": 10})

    def test_compute_all(self) -> None:
        registry = StatisticsRegistry()
        registry.compute_all(self.catalog, self.catalog)
        self.assertEqual(len(registry), 3)
        self.assertIn("B", registry)
        self.assertEqual(registry.get("B").total_tuples(), 5000)
        self.assertIsNone(registry.get("D"))

    def test_compute_all_passes_options(self) -> None:
        registry = StatisticsRegistry()
        registry.compute_all(self.catalog, self.catalog, io_cost_per_page=1, num_buckets=5)
        self.assertEqual(registry.get("A").estimate_scan_cost(), 2)

    def test_failed_computation_keeps_previous_statistics(self) -> None:
        registry = StatisticsRegistry()
        registry.compute_all(self.catalog, self.catalog)
        previous = registry.snapshot()

        storage = _BrokenStorage(self.catalog, broken={self.catalog.table_id("C")})
        with self.assertRaises(StatisticsError):
            registry.compute_all(self.catalog, storage)
        self.assertEqual(registry.snapshot(), previous)

    def test_set_single_table(self) -> None:
        registry = StatisticsRegistry()
        stats = TableStatistics(self.catalog.table_id("C"), catalog=self.catalog, storage=self.catalog)
        registry.set("C", stats)
        self.assertIs(registry.get("C"), stats)

    def test_replace_all(self) -> None:
        registry = StatisticsRegistry()
        registry.compute_all(self.catalog, self.catalog)
        stats = TableStatistics(self.catalog.table_id("C"), catalog=self.catalog, storage=self.catalog)
        registry.replace_all({"C": stats})
        self.assertEqual(len(registry), 1)
        self.assertNotIn("A", registry)

    def test_snapshot_is_not_updated(self) -> None:
        # Readers that keep a snapshot continue to use the old statistics after a re-computation. This is intended for the
        # duration of a single optimization, but long-lived readers never observe updated statistics.
        registry = StatisticsRegistry()
        registry.compute_all(self.catalog, self.catalog)
        snapshot = registry.snapshot()
        old_stats = snapshot["A"]

        self.catalog.insert("A", [(i, 0) for i in range(1000, 2000)])
        registry.compute_all(self.catalog, self.catalog)
        self.assertIs(snapshot["A"], old_stats)
        self.assertEqual(snapshot["A"].total_tuples(), 1000)
        self.assertEqual(registry.get("A").total_tuples(), 2000)

    def test_concurrent_recomputation_is_atomic(self) -> None:
        small_catalog = regression_suite.build_catalog({"A": 10})
        large_catalog = regression_suite.build_catalog({"A": 20, "B": 20, "C": 20})
        registry = StatisticsRegistry()
        registry.compute_all(small_catalog, small_catalog)

        observed: list[frozenset[str]] = []
        stop = threading.Event()

        def read_snapshots() -> None:
            while not stop.is_set():
                observed.append(frozenset(registry.snapshot()))

        reader = threading.Thread(target=read_snapshots)
        reader.start()
        try:
            for __ in range(20):
                registry.compute_all(large_catalog, large_catalog)
                registry.compute_all(small_catalog, small_catalog)
        finally:
            stop.set()
            reader.join()

        valid_states = {frozenset({"A"}), frozenset({"A", "B", "C"})}
        self.assertTrue(observed)
        self.assertTrue(all(state in valid_states for state in observed))


class DefaultRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._previous = st.stats_map()

    def tearDown(self) -> None:
        st.set_stats_map(self._previous)

    def test_module_level_functions(self) -> None:
        catalog = regression_suite.build_catalog({"A": 100, "B": 200})
        st.compute_statistics(catalog, catalog)
        self.assertIs(st.default_registry().get("A"), st.get_table_stats("A"))
        self.assertEqual(set(st.stats_map()), {"A", "B"})

        st.set_stats_map({})
        self.assertIsNone(st.get_table_stats("A"))

        stats = TableStatistics(catalog.table_id("B"), catalog=catalog, storage=catalog)
        st.set_table_stats("B", stats)
        self.assertIs(st.get_table_stats("B"), stats)


if __name__ == "__main__":
    unittest.main()
