"""Statistics about base tables that are used to estimate costs and cardinalities."""

from .histogram import Histogram, OrdinalHistogram, ordinal_value
from .tablestats import (
    IoCostPerPage,
    NumHistogramBins,
    StaleStatisticsWarning,
    StatisticsRegistry,
    TableStatistics,
    compute_statistics,
    default_registry,
    get_table_stats,
    set_stats_map,
    set_table_stats,
    stats_map,
)

__all__ = [
    "Histogram",
    "OrdinalHistogram",
    "ordinal_value",
    "IoCostPerPage",
    "NumHistogramBins",
    "StaleStatisticsWarning",
    "StatisticsRegistry",
    "TableStatistics",
    "compute_statistics",
    "default_registry",
    "get_table_stats",
    "set_stats_map",
    "set_table_stats",
    "stats_map",
]
