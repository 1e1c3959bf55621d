"""Table-level statistics and the process-wide registry that stores them.

`TableStatistics` are computed by a single sequential scan over the table. They provide the basic estimates required by
the join optimizer: the cost of a sequential scan, the number of tuples that remain after a filter with a known
selectivity was applied, and the selectivity of filters on individual columns.

Statistics are never updated automatically. If the underlying data changes, the statistics have to be recomputed
explicitly, e.g. by calling `compute_statistics` again.
"""

from __future__ import annotations

import threading
import warnings
from collections.abc import Iterator, Mapping
from typing import Any, Optional

from .. import util
from .._core import ComparisonOperator, FieldType
from ..catalog import Catalog, TableStorage
from ..errors import StatisticsError
from .histogram import Histogram, OrdinalHistogram

IoCostPerPage = 1000
"""The default cost to read a single page from disk."""

NumHistogramBins = 100
"""The default number of buckets to use for column histograms."""


class TableStatistics:
    """Keeps track of statistics about the tuples of a single table.

    When the statistics are created, all tuples of the table are scanned once to determine the number of tuples, as well as
    the minimum and maximum value of each integer column.

    Histograms to estimate the selectivity of filter predicates are built on demand, i.e. each call to
    `estimate_selectivity` scans the table once more. If `cache_histograms` is enabled, each histogram is only built once and
    re-used for all subsequent estimates on the same column. This assumes that the data does not change for as long as the
    statistics are used.

    Parameters
    ----------
    table_id : int
        The table for which statistics should be computed
    io_cost_per_page : float, optional
        The cost of reading a single page. This does not differentiate between sequential I/O and disk seeks.
    catalog : Catalog
        Provides the schema of the table
    storage : TableStorage
        Provides access to the tuples and the page count of the table
    num_buckets : int, optional
        The number of buckets to use for column histograms. Defaults to `NumHistogramBins`.
    cache_histograms : bool, optional
        Whether histograms should be re-used across selectivity estimates. Disabled by default.

    Raises
    ------
    StatisticsError
        If the table cannot be scanned. In this case, no statistics are available for the table.
    """

    def __init__(
        self,
        table_id: int,
        io_cost_per_page: float = IoCostPerPage,
        *,
        catalog: Catalog,
        storage: TableStorage,
        num_buckets: int = NumHistogramBins,
        cache_histograms: bool = False,
    ) -> None:
        self._table_id = table_id
        self._io_cost_per_page = io_cost_per_page
        self._storage = storage
        self._num_buckets = num_buckets
        self._cache_histograms = cache_histograms
        self._histograms: dict[int, Histogram | OrdinalHistogram] = {}

        self._schema = catalog.schema(table_id)
        self._page_count = storage.page_count(table_id)
        self._tuple_count = 0
        self._min_values: dict[int, int] = {}
        self._max_values: dict[int, int] = {}

        int_fields = [
            idx
            for idx, (__, field_type) in enumerate(self._schema.fields)
            if field_type == FieldType.Integer
        ]
        for tup in self._scan():
            self._tuple_count += 1
            for idx in int_fields:
                value = tup[idx]
                if idx not in self._min_values or value < self._min_values[idx]:
                    self._min_values[idx] = value
                if idx not in self._max_values or value > self._max_values[idx]:
                    self._max_values[idx] = value

    @property
    def table_id(self) -> int:
        return self._table_id

    @property
    def io_cost_per_page(self) -> float:
        return self._io_cost_per_page

    @property
    def page_count(self) -> int:
        return self._page_count

    def estimate_scan_cost(self) -> float:
        """Estimates the cost of sequentially scanning the entire table.

        We assume that no pages are cached in the buffer pool and that only entire pages can be read. Therefore, reading the
        last page is just as expensive as reading any other page, no matter how many tuples it contains.
        """
        return self._page_count * self._io_cost_per_page

    def estimate_table_cardinality(self, selectivity: float) -> int:
        """Estimates the number of tuples that remain after a filter with the given selectivity was applied.

        Parameters
        ----------
        selectivity : float
            The selectivity of the filter predicates on the table

        Returns
        -------
        int
            The estimated number of tuples, rounded to the nearest integer (ties round up).
        """
        return int(self._tuple_count * selectivity + 0.5)

    def total_tuples(self) -> int:
        return self._tuple_count

    def min_value(self, field: str | int) -> Optional[int]:
        """Provides the smallest value of an integer field. *None* if the table is empty or the field is not an integer."""
        return self._min_values.get(self._schema.index_of(field))

    def max_value(self, field: str | int) -> Optional[int]:
        """Provides the largest value of an integer field. *None* if the table is empty or the field is not an integer."""
        return self._max_values.get(self._schema.index_of(field))

    def estimate_selectivity(self, field: str | int, op: ComparisonOperator, constant: Any) -> float:
        """Estimates the selectivity of the predicate *field op constant* on this table.

        Parameters
        ----------
        field : str | int
            The name or the position of the field that the predicate restricts
        op : ComparisonOperator
            The comparison operator of the predicate
        constant : Any
            The value that the field is compared against. Must be an *int* for integer fields and a *str* for string fields.

        Returns
        -------
        float
            The estimated fraction of tuples that satisfy the predicate

        Raises
        ------
        KeyError
            If the table does not contain a field with the given name
        UnsupportedOperatorError
            If the histogram cannot handle the operator
        StatisticsError
            If the table cannot be scanned to build the histogram
        """
        field_idx = self._schema.index_of(field)
        histogram = self._histograms.get(field_idx)
        if histogram is None:
            histogram = self._build_histogram(field_idx)
            if self._cache_histograms:
                self._histograms[field_idx] = histogram
        return histogram.estimate_selectivity(op, constant)

    def avg_selectivity(self, field: str | int, op: ComparisonOperator) -> float:
        """Provides the expected selectivity of a predicate on a field when the comparison value is not known.

        This is not needed by the join optimizer and always returns 1.
        """
        self._schema.index_of(field)
        return 1.0

    def clear_histogram_cache(self) -> None:
        self._histograms.clear()

    def _build_histogram(self, field_idx: int) -> Histogram | OrdinalHistogram:
        if self._schema.field_type(field_idx) == FieldType.String:
            histogram = OrdinalHistogram(self._num_buckets)
            for tup in self._scan():
                histogram.add_value(tup[field_idx])
            return histogram

        # empty tables do not have any bounds, but an empty histogram still produces valid (zero) estimates
        min_value = self._min_values.get(field_idx, 0)
        max_value = self._max_values.get(field_idx, 0)
        histogram = Histogram(self._num_buckets, min_value, max_value)
        for tup in self._scan():
            value = tup[field_idx]
            if value < min_value or value > max_value:
                warnings.warn(
                    f"Value {value} of table {self._table_id} outside of the range observed when creating the statistics. "
                    "Statistics are probably stale.",
                    category=StaleStatisticsWarning,
                )
                continue
            histogram.add_value(value)
        return histogram

    def _scan(self) -> Iterator[Any]:
        try:
            yield from self._storage.scan(self._table_id)
        except OSError as e:
            raise StatisticsError(self._table_id, f"Could not scan table {self._table_id}: {e}") from e

    def __json__(self) -> dict:
        return {
            "table_id": self._table_id,
            "pages": self._page_count,
            "tuples": self._tuple_count,
            "io_cost_per_page": self._io_cost_per_page,
            "min_values": {self._schema.names[idx]: value for idx, value in self._min_values.items()},
            "max_values": {self._schema.names[idx]: value for idx, value in self._max_values.items()},
        }

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"TableStatistics(table={self._table_id}, pages={self._page_count}, tuples={self._tuple_count})"


class StaleStatisticsWarning(UserWarning):
    """Indicates that the data of a table changed since its statistics were computed."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


class StatisticsRegistry:
    """Maps table names to their statistics.

    The registry is the only piece of shared mutable state of the optimizer. Individual entries can be set and looked up at
    any time. Bulk updates (`replace_all` and `compute_all`) first create the complete new mapping and then swap it in
    atomically. Notice that the mapping returned by `snapshot` is a copy that does not reflect later changes. Optimizers
    should use such a snapshot for an entire optimization run, since the statistics could otherwise change in between.
    """

    def __init__(self, stats: Optional[Mapping[str, TableStatistics]] = None) -> None:
        self._lock = threading.Lock()
        self._stats: dict[str, TableStatistics] = dict(stats) if stats else {}

    def get(self, table_name: str) -> Optional[TableStatistics]:
        return self._stats.get(table_name)

    def set(self, table_name: str, stats: TableStatistics) -> None:
        with self._lock:
            updated = dict(self._stats)
            updated[table_name] = stats
            self._stats = updated

    def replace_all(self, stats: Mapping[str, TableStatistics]) -> None:
        """Drops all current statistics and uses the given ones instead."""
        replacement = dict(stats)
        with self._lock:
            self._stats = replacement

    def snapshot(self) -> dict[str, TableStatistics]:
        return dict(self._stats)

    def compute_all(
        self,
        catalog: Catalog,
        storage: TableStorage,
        *,
        io_cost_per_page: float = IoCostPerPage,
        verbose: bool = False,
        **kwargs,
    ) -> None:
        """(Re-)computes the statistics of all tables in the catalog.

        Additional keyword arguments are passed to the `TableStatistics` constructor.

        Raises
        ------
        StatisticsError
            If any of the tables cannot be scanned. In this case, the registry keeps its current state.
        """
        log = util.make_logger(verbose, prefix=util.timestamp)
        log("Computing table stats.")
        computed: dict[str, TableStatistics] = {}
        for table_id in catalog.table_ids():
            table_name = catalog.table_name(table_id)
            computed[table_name] = TableStatistics(
                table_id, io_cost_per_page, catalog=catalog, storage=storage, **kwargs
            )
            log("Computed", computed[table_name], "for", table_name)
        self.replace_all(computed)
        log("Done.")

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._stats

    def __len__(self) -> int:
        return len(self._stats)

    def __repr__(self) -> str:
        return f"StatisticsRegistry({sorted(self._stats)})"


_DefaultRegistry = StatisticsRegistry()


def default_registry() -> StatisticsRegistry:
    """Provides the process-wide statistics registry."""
    return _DefaultRegistry


def get_table_stats(table_name: str) -> Optional[TableStatistics]:
    return _DefaultRegistry.get(table_name)


def set_table_stats(table_name: str, stats: TableStatistics) -> None:
    _DefaultRegistry.set(table_name, stats)


def set_stats_map(stats: Mapping[str, TableStatistics]) -> None:
    _DefaultRegistry.replace_all(stats)


def stats_map() -> dict[str, TableStatistics]:
    """Provides a snapshot of all statistics in the process-wide registry."""
    return _DefaultRegistry.snapshot()


def compute_statistics(catalog: Catalog, storage: TableStorage, **kwargs) -> None:
    """Computes the statistics of all tables in the catalog and stores them in the process-wide registry.

    See `StatisticsRegistry.compute_all` for details.
    """
    _DefaultRegistry.compute_all(catalog, storage, **kwargs)
