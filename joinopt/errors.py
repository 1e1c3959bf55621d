"""Errors that are raised while collecting statistics and optimizing join orders."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from .util._errors import StateError


class InvalidRangeError(ValueError):
    """Indicates that a histogram should be created for an empty value domain, i.e. with *max < min*."""

    def __init__(self, min_value: Any, max_value: Any, message: str = "") -> None:
        super().__init__(
            message
            if message
            else f"Invalid histogram domain [{min_value}, {max_value}]: max must not be smaller than min"
        )
        self.min_value = min_value
        self.max_value = max_value


class UnsupportedOperatorError(ValueError):
    """Indicates that a selectivity estimate was requested for an operator that the estimator cannot handle."""

    def __init__(self, operator: Any) -> None:
        super().__init__(f"Unsupported operator: {operator}")
        self.operator = operator


class StatisticsError(StateError):
    """Indicates that the statistics of a table could not be collected.

    This is a fatal error for the affected table: no partial statistics are published.
    """

    def __init__(self, table: Any, message: str = "") -> None:
        super().__init__(
            f"Could not compute statistics for table {table}" if not message else message
        )
        self.table = table


class JoinOrderOptimizationError(RuntimeError):
    """Error to indicate that something went wrong while optimizing the join order.

    Callers typically report this as a failure of the query planning phase, or fall back to an unoptimized join order.

    Parameters
    ----------
    message : str, optional
        A message containing more details about the specific error.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message if message else "Join order optimization failed")


class UnknownTableError(JoinOrderOptimizationError):
    """Indicates that a join predicate references a table for which no catalog entry, statistics or selectivity exists."""

    def __init__(self, table: Optional[str], message: str = "") -> None:
        super().__init__(message if message else f"Unknown table {table}")
        self.table = table


class NoFeasiblePlanError(JoinOrderOptimizationError):
    """Indicates that the join predicates cannot be ordered without introducing a cross product.

    Parameters
    ----------
    components : Iterable[Iterable[str]]
        The connected components of the join graph, i.e. groups of table aliases that are connected through the join
        predicates but not among each other.
    """

    def __init__(self, components: Iterable[Iterable[str]]) -> None:
        self.components = [frozenset(component) for component in components]
        components_str = " | ".join(
            ", ".join(sorted(component)) for component in self.components
        )
        super().__init__(
            f"No join order without cross products exists. Disconnected tables: {components_str}"
        )
