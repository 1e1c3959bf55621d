"""joinopt - Cost-based join order optimization for a small relational database engine.

The package computes left-deep join orders for a set of join predicates. It consists of two layers:

- the `stats` package collects statistics about the base tables. For each table, a `TableStatistics` object knows the
  number of tuples and pages, as well as the value ranges of its integer columns. Selectivities of filter predicates are
  estimated through equi-width histograms. Statistics are usually computed once for all tables of a catalog and then
  registered in a `StatisticsRegistry`.
- the `optimizer` package uses these statistics to order joins. The `JoinOrderOptimizer` implements a Selinger-style dynamic
  programming algorithm over sets of join predicates, based on a simple nested-loop cost model and primary key-based
  cardinality heuristics.

The database system itself is not part of this package. Instead, the `catalog` module defines the interfaces that a system
has to provide in order to be optimized (table metadata and sequential scans). The `InMemoryCatalog` is a small reference
implementation of both interfaces.

A typical optimization looks like this:

    catalog = InMemoryCatalog()
    catalog.add_table("A", TupleSchema.of(("id", FieldType.Integer)), [(i,) for i in range(10)], primary_key="id")
    catalog.add_table("B", TupleSchema.of(("a_id", FieldType.Integer)), [(i % 10,) for i in range(50)])
    stats = StatisticsRegistry()
    stats.compute_all(catalog, catalog)
    optimizer = JoinOrderOptimizer([JoinPredicate.parse("A.id", "=", "B.a_id")], catalog=catalog)
    optimizer.order_joins(stats.snapshot())

All errors are located in the `errors` module. General-purpose utilities such as logging or JSON export are contained in the
`util` package.
"""

from . import catalog, errors, optimizer, stats, util
from ._core import Cardinality, ComparisonOperator, Cost, FieldType
from .catalog import Catalog, InMemoryCatalog, TableStorage, TupleSchema
from .errors import (
    InvalidRangeError,
    JoinOrderOptimizationError,
    NoFeasiblePlanError,
    StatisticsError,
    UnknownTableError,
    UnsupportedOperatorError,
)
from .optimizer import (
    JoinOperator,
    JoinOrderOptimizer,
    JoinPredicate,
    PlanCache,
    PlanExplanation,
    SubplanJoinPredicate,
)
from .stats import Histogram, OrdinalHistogram, StatisticsRegistry, TableStatistics
from .util import LogicError, StateError

__version__ = "0.1.0"

__all__ = [
    "catalog",
    "errors",
    "optimizer",
    "stats",
    "util",
    "Cardinality",
    "ComparisonOperator",
    "Cost",
    "FieldType",
    "Catalog",
    "InMemoryCatalog",
    "TableStorage",
    "TupleSchema",
    "InvalidRangeError",
    "JoinOrderOptimizationError",
    "NoFeasiblePlanError",
    "StatisticsError",
    "UnknownTableError",
    "UnsupportedOperatorError",
    "JoinOperator",
    "JoinOrderOptimizer",
    "JoinPredicate",
    "PlanCache",
    "PlanExplanation",
    "SubplanJoinPredicate",
    "Histogram",
    "OrdinalHistogram",
    "StatisticsRegistry",
    "TableStatistics",
    "LogicError",
    "StateError",
]
