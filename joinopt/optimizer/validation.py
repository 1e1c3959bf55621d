"""Pre-checks make sure that a set of join predicates can be optimized at all.

The checks should prevent the optimization of inputs that reference unknown tables or that cannot be joined without cross
products. Each check produces a `PreCheckResult`, which can be turned into the appropriate error via `ensure_all_passed`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx

from .. import util
from ..catalog import Catalog
from ..errors import NoFeasiblePlanError, UnknownTableError
from .predicates import JoinPredicate, tables_of

UnknownTableFailure = "UNKNOWN_TABLE"
CrossProductFailure = "CROSS_PRODUCT"


@dataclass
class PreCheckResult:
    """Wrapper for a validation result.

    `passed` indicates whether the predicates can be optimized. If they cannot, `failure_reason` describes what went wrong
    and `offending` contains the problematic items: the unknown table aliases for `UnknownTableFailure`, or the connected
    components of the join graph for `CrossProductFailure`.
    """

    passed: bool = True
    failure_reason: str = ""
    offending: list[Any] = field(default_factory=list)

    @staticmethod
    def with_all_passed() -> PreCheckResult:
        return PreCheckResult()

    def ensure_all_passed(self) -> None:
        """Raises the error that corresponds to the failure reason, if the check did not pass."""
        if self.passed:
            return
        if self.failure_reason == UnknownTableFailure:
            raise UnknownTableError(
                self.offending[0] if len(self.offending) == 1 else None,
                f"Unknown tables: {', '.join(str(alias) for alias in self.offending)}",
            )
        elif self.failure_reason == CrossProductFailure:
            raise NoFeasiblePlanError(self.offending)
        raise util.LogicError(f"Unexpected failure reason: {self.failure_reason}")


def join_graph(predicates: Iterable[JoinPredicate]) -> nx.Graph:
    """Builds the join graph of a set of predicates.

    Each table alias becomes a node. Two nodes are connected if at least one predicate joins them. The predicates are stored
    in the *predicates* attribute of the edges. Joins with subplans only contribute their base table.
    """
    graph = nx.Graph()
    for predicate in predicates:
        if predicate.is_subplan_join():
            graph.add_node(predicate.left_alias)
            continue
        left, right = predicate.left_alias, predicate.right_alias
        if graph.has_edge(left, right):
            graph.edges[left, right]["predicates"].append(predicate)
        else:
            graph.add_edge(left, right, predicates=[predicate])
    return graph


def connected_components(predicates: Iterable[JoinPredicate]) -> list[frozenset[str]]:
    """Provides groups of tables that are connected through join predicates but not among each other.

    The components are sorted by their smallest table alias to obtain a deterministic result.
    """
    graph = join_graph(predicates)
    components = [frozenset(component) for component in nx.connected_components(graph)]
    return sorted(components, key=lambda component: min(component))


def check_connected(predicates: Iterable[JoinPredicate]) -> PreCheckResult:
    """Checks that all predicates can be ordered without introducing a cross product."""
    predicates = list(predicates)
    if not predicates:
        return PreCheckResult.with_all_passed()
    components = connected_components(predicates)
    if len(components) == 1:
        return PreCheckResult.with_all_passed()
    return PreCheckResult(False, CrossProductFailure, components)


def check_known_tables(
    predicates: Iterable[JoinPredicate],
    *,
    catalog: Catalog,
    stats: Mapping[str, Any],
    filter_selectivities: Optional[Mapping[str, float]] = None,
) -> PreCheckResult:
    """Checks that all tables of the predicates are known to the catalog and have statistics as well as filter selectivities.

    If no `filter_selectivities` are given, only the catalog and the statistics are checked.
    """
    unknown: list[str] = []
    for alias in sorted(tables_of(predicates)):
        table_id = catalog.table_id_for_alias(alias)
        if table_id is None or catalog.table_name(table_id) not in stats:
            unknown.append(alias)
        elif filter_selectivities is not None and alias not in filter_selectivities:
            unknown.append(alias)
    if not unknown:
        return PreCheckResult.with_all_passed()
    return PreCheckResult(False, UnknownTableFailure, unknown)
