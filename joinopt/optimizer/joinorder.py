"""Dynamic programming-based optimization of left-deep join orders.

The optimizer receives a set of join predicates and determines the order in which they should be executed. It works
bottom-up on sets of predicates: for each set of *k* predicates, the cheapest plan is derived from the cheapest plans of all
its subsets of *k - 1* predicates by adding the one missing predicate as the last join. Sub-plans are memoized in a
`PlanCache`, such that each set has to be optimized just once. Cross products are never considered, i.e. a predicate can only
be added to a plan that already contains one of its tables.

Costs and cardinalities are estimated according to the models in the `costs` module, using the `TableStatistics` of the base
tables and the selectivities of the filters that are applied to them.
"""

from __future__ import annotations

import itertools
import math
import warnings
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Optional

from .. import util
from .._base import T
from .._core import Cardinality, Cost
from ..catalog import Catalog
from ..errors import NoFeasiblePlanError, UnknownTableError
from ..stats import TableStatistics
from . import costs, validation
from .explain import PlanExplanation, build_explanation
from .plancache import CostCard, JoinSet, PlanCache
from .predicates import JoinPredicate, tables_of


class DuplicateJoinWarning(UserWarning):
    """Warning that is issued if the same join predicate is passed to the optimizer more than once."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


def enumerate_subsets(items: Sequence[T], size: int) -> Iterator[frozenset[T]]:
    """Provides all subsets of the given size.

    Each subset is produced exactly once, i.e. for *n* distinct items there are *C(n, size)* subsets. The items themselves
    have to be hashable and should not contain duplicates.
    """
    if size < 0:
        raise ValueError(f"Subset size must not be negative, but was {size}")
    return (frozenset(subset) for subset in itertools.combinations(items, size))


def _deduplicate(joins: Iterable[JoinPredicate]) -> tuple[list[JoinPredicate], dict[JoinPredicate, JoinPredicate]]:
    """Removes predicates that were already specified before, possibly in a different orientation.

    Returns the unique predicates along with a mapping from each orientation of a predicate to its unique version.
    """
    unique: list[JoinPredicate] = []
    origins: dict[JoinPredicate, JoinPredicate] = {}
    for join in joins:
        if join in origins:
            warnings.warn(f"Ignoring duplicate join predicate {join}", category=DuplicateJoinWarning)
            continue
        unique.append(join)
        origins[join] = join
        origins[join.swapped()] = join
    return unique, origins


class JoinOrderOptimizer:
    """Selinger-style optimizer for left-deep join orders.

    Parameters
    ----------
    joins : Iterable[JoinPredicate]
        The join predicates of the query. Predicates that occur multiple times (also in swapped orientation) are only
        considered once.
    catalog : Catalog
        Catalog to resolve the table aliases of the predicates and to determine the primary keys of the tables
    verbose : bool, optional
        Whether progress information should be logged, by default *False*
    non_equi_fraction : float, optional
        The fraction of the cross product that is assumed to pass joins other than equality, by default
        `costs.NonEquiJoinFraction`

    Attributes
    ----------
    last_plan_cache : Optional[PlanCache]
        The plan cache of the most recent call to `order_joins`. This is only kept to explain the plan afterwards and is
        never re-used by the optimizer itself.
    last_explanation : Optional[PlanExplanation]
        The explanation of the most recent call to `order_joins`, if one was requested.
    """

    def __init__(
        self,
        joins: Iterable[JoinPredicate],
        *,
        catalog: Catalog,
        verbose: bool = False,
        non_equi_fraction: float = costs.NonEquiJoinFraction,
    ) -> None:
        self._joins, self._origins = _deduplicate(joins)
        self._catalog = catalog
        self._non_equi_fraction = non_equi_fraction
        self._verbose = verbose
        self._log = util.make_logger(verbose, prefix=util.timestamp)

        self.last_plan_cache: Optional[PlanCache] = None
        self.last_explanation: Optional[PlanExplanation] = None
        self._last_order: Optional[list[JoinPredicate]] = None
        self._last_scan_estimates: dict[str, tuple[Cost, Cardinality]] = {}

    @property
    def joins(self) -> list[JoinPredicate]:
        """The (unique) join predicates that are ordered by this optimizer."""
        return list(self._joins)

    def order_joins(
        self,
        stats: Mapping[str, TableStatistics],
        filter_selectivities: Optional[Mapping[str, float]] = None,
        explain: bool = False,
    ) -> list[JoinPredicate]:
        """Computes the cheapest left-deep order of all join predicates.

        Parameters
        ----------
        stats : Mapping[str, TableStatistics]
            The statistics of all base tables, indexed by table name (not by alias). Use a snapshot of the statistics registry
            if statistics might be re-computed concurrently.
        filter_selectivities : Optional[Mapping[str, float]], optional
            The selectivity of the filters on each table, indexed by alias. If this is omitted, no filters are assumed.
            Otherwise, all joined tables must have an entry.
        explain : bool, optional
            Whether an explanation of the final plan should be constructed and logged. It is available as
            `last_explanation` afterwards.

        Returns
        -------
        list[JoinPredicate]
            The join predicates in the order in which they should be executed. Each predicate has the orientation that was
            selected by the optimizer, i.e. its left-hand side is the outer relation of the join.

        Raises
        ------
        UnknownTableError
            If a joined table is unknown to the catalog, or if statistics or filter selectivities for it are missing
        NoFeasiblePlanError
            If the predicates cannot be ordered without a cross product
        """
        self.last_plan_cache = None
        self.last_explanation = None
        self._last_order = None
        self._last_scan_estimates = {}
        if not self._joins:
            self._log("No joins to optimize")
            self.last_plan_cache = PlanCache()
            self._last_order = []
            if explain:
                self.last_explanation = self.explain_plan()
            return []

        validation.check_known_tables(
            self._joins, catalog=self._catalog, stats=stats, filter_selectivities=filter_selectivities
        ).ensure_all_passed()
        validation.check_connected(self._joins).ensure_all_passed()

        filter_selectivities = (
            filter_selectivities
            if filter_selectivities is not None
            else {alias: 1.0 for alias in tables_of(self._joins)}
        )

        n_joins = len(self._joins)
        self._log("Optimizing", n_joins, "joins")
        plan_cache = PlanCache()
        for size in range(1, n_joins + 1):
            n_plans = 0
            for join_set in enumerate_subsets(self._joins, size):
                best_plan: Optional[CostCard] = None
                for join in join_set:
                    best_cost = best_plan.cost if best_plan else math.inf
                    candidate = self.compute_cost_and_card_of_subplan(
                        stats, filter_selectivities, join, join_set, best_cost, plan_cache
                    )
                    if candidate is not None:
                        best_plan = candidate
                if best_plan is not None:
                    plan_cache.add_plan(join_set, best_plan.cost, best_plan.cardinality, best_plan.plan)
                    n_plans += 1
            self._log("Found plans for", n_plans, "sets of", size, "joins")

        self.last_plan_cache = plan_cache
        final_plan = plan_cache.get(self._joins)
        if final_plan is None:
            raise NoFeasiblePlanError(validation.connected_components(self._joins))

        self._last_order = list(final_plan.plan)
        self._last_scan_estimates = {
            alias: self._scan_estimate(alias, stats, filter_selectivities) for alias in tables_of(self._joins)
        }
        self._log("Selected join order", [str(join) for join in final_plan.plan], "with cost", final_plan.cost)

        if explain:
            self.last_explanation = self.explain_plan()
            explain_log = util.make_logger(True)
            explain_log(self.last_explanation.inspect())
        return list(final_plan.plan)

    def compute_cost_and_card_of_subplan(
        self,
        stats: Mapping[str, TableStatistics],
        filter_selectivities: Mapping[str, float],
        join_to_add: JoinPredicate,
        join_set: JoinSet,
        best_cost_so_far: Cost,
        plan_cache: PlanCache,
    ) -> Optional[CostCard]:
        """Computes the cheapest plan for a set of joins which executes a specific join last.

        All subsets of `join_set` that are one join smaller must already be optimized and present in the `plan_cache` (unless
        they contain a cross product).

        Parameters
        ----------
        stats : Mapping[str, TableStatistics]
            The statistics of all base tables, indexed by table name
        filter_selectivities : Mapping[str, float]
            The filter selectivities of all base tables, indexed by alias
        join_to_add : JoinPredicate
            The join that should be executed last. It has to be part of the `join_set`.
        join_set : JoinSet
            All joins of the plan
        best_cost_so_far : Cost
            The cost of the cheapest plan that is known for the `join_set` so far
        plan_cache : PlanCache
            The optimized sub-plans

        Returns
        -------
        Optional[CostCard]
            The plan, or *None* if it would contain a cross product or would not be cheaper than `best_cost_so_far`
        """
        join = join_to_add
        remaining_joins = join_set - {join_to_add}

        if not remaining_joins:
            previous_order: list[JoinPredicate] = []
            left_cost, left_card = self._scan_estimate(join.left_alias, stats, filter_selectivities)
            left_pkey = self._is_pkey(join.left_alias, join.left_field)
            right_cost, right_card, right_pkey = self._inner_estimate(join, stats, filter_selectivities)
        else:
            previous_plan = plan_cache.get(remaining_joins)
            if previous_plan is None:
                # the remaining joins cannot be ordered without a cross product
                return None
            previous_order = list(previous_plan.plan)

            if self._does_join(previous_order, join.left_alias):
                left_cost, left_card = previous_plan.cost, previous_plan.cardinality
                left_pkey = self._has_pkey(previous_order)
                right_cost, right_card, right_pkey = self._inner_estimate(join, stats, filter_selectivities)
            elif not join.is_subplan_join() and self._does_join(previous_order, join.right_alias):
                right_cost, right_card = previous_plan.cost, previous_plan.cardinality
                right_pkey = self._has_pkey(previous_order)
                left_cost, left_card = self._scan_estimate(join.left_alias, stats, filter_selectivities)
                left_pkey = self._is_pkey(join.left_alias, join.left_field)
            else:
                return None

        cost = self.estimate_join_cost(join, left_card, right_card, left_cost, right_cost)

        # subqueries are always evaluated as the inner relation
        if not join.is_subplan_join():
            swapped_join = join.swapped()
            swapped_cost = self.estimate_join_cost(swapped_join, right_card, left_card, right_cost, left_cost)
            if swapped_cost < cost:
                join, cost = swapped_join, swapped_cost
                left_card, right_card = right_card, left_card
                left_pkey, right_pkey = right_pkey, left_pkey

        if cost >= best_cost_so_far:
            return None

        card = self.estimate_join_cardinality(join, left_card, right_card, left_pkey, right_pkey, stats)
        return CostCard(cost, card, tuple(previous_order + [join]))

    def estimate_join_cost(
        self, join: JoinPredicate, outer_card: Cardinality, inner_card: Cardinality, outer_cost: Cost, inner_cost: Cost
    ) -> Cost:
        """Estimates the cost of a join. See `costs.estimate_join_cost` for details."""
        return costs.estimate_join_cost(join, outer_card, inner_card, outer_cost, inner_cost)

    def estimate_join_cardinality(
        self,
        join: JoinPredicate,
        left_card: Cardinality,
        right_card: Cardinality,
        left_pkey: bool,
        right_pkey: bool,
        stats: Mapping[str, TableStatistics],
    ) -> Cardinality:
        """Estimates the number of tuples produced by a join.

        For joins with a subquery, the cardinality of the left-hand side is used. All other joins are estimated according to
        `costs.estimate_table_join_cardinality`, based on the total number of tuples in the joined tables.
        """
        if join.is_subplan_join():
            return left_card
        left_total = self._table_stats(join.left_alias, stats).total_tuples()
        right_total = self._table_stats(join.right_alias, stats).total_tuples()
        return costs.estimate_table_join_cardinality(
            join.operator,
            left_card,
            right_card,
            left_pkey,
            right_pkey,
            left_total,
            right_total,
            non_equi_fraction=self._non_equi_fraction,
        )

    def explain_plan(self) -> PlanExplanation:
        """Describes the join order of the most recent call to `order_joins` along with its estimates.

        Raises
        ------
        StateError
            If `order_joins` has not been called successfully before
        """
        if self._last_order is None or self.last_plan_cache is None:
            raise util.StateError("No join order has been computed yet")

        step_estimates: list[tuple[Cost, Cardinality]] = []
        for step in range(1, len(self._last_order) + 1):
            prefix = frozenset(self._origins[join] for join in self._last_order[:step])
            sub_plan = self.last_plan_cache.get(prefix)
            if sub_plan is None:
                raise util.LogicError("No cached plan for join order prefix", prefix)
            step_estimates.append((sub_plan.cost, sub_plan.cardinality))

        return build_explanation(self._last_order, step_estimates, self._last_scan_estimates)

    def _scan_estimate(
        self, alias: str, stats: Mapping[str, TableStatistics], filter_selectivities: Mapping[str, float]
    ) -> tuple[Cost, Cardinality]:
        if alias not in filter_selectivities:
            raise UnknownTableError(alias, f"No filter selectivity for table {alias}")
        table_stats = self._table_stats(alias, stats)
        return table_stats.estimate_scan_cost(), table_stats.estimate_table_cardinality(filter_selectivities[alias])

    def _inner_estimate(
        self, join: JoinPredicate, stats: Mapping[str, TableStatistics], filter_selectivities: Mapping[str, float]
    ) -> tuple[Cost, Cardinality, bool]:
        """Determines cost, cardinality and primary key status of the (freshly scanned) right-hand side of a join."""
        if join.is_subplan_join():
            return 0.0, 0, False
        cost, card = self._scan_estimate(join.right_alias, stats, filter_selectivities)
        return cost, card, self._is_pkey(join.right_alias, join.right_field)

    def _table_stats(self, alias: str, stats: Mapping[str, TableStatistics]) -> TableStatistics:
        table_id = self._catalog.table_id_for_alias(alias)
        if table_id is None:
            raise UnknownTableError(alias)
        table_name = self._catalog.table_name(table_id)
        table_stats = stats.get(table_name)
        if table_stats is None:
            raise UnknownTableError(alias, f"No statistics for table {table_name} (alias {alias})")
        return table_stats

    def _does_join(self, joins: Iterable[JoinPredicate], alias: Optional[str]) -> bool:
        """Checks, whether any of the joins involves the given table."""
        return alias is not None and any(join.joins_table(alias) for join in joins)

    def _is_pkey(self, alias: Optional[str], field: Optional[str]) -> bool:
        """Checks, whether the field is the primary key of the table with the given alias."""
        if alias is None or field is None:
            return False
        table_id = self._catalog.table_id_for_alias(alias)
        if table_id is None:
            raise UnknownTableError(alias)
        return self._catalog.primary_key_field(table_id) == field

    def _has_pkey(self, joins: Iterable[JoinPredicate]) -> bool:
        """Checks, whether any of the joins involves a primary key field."""
        return any(
            self._is_pkey(join.left_alias, join.left_field) or self._is_pkey(join.right_alias, join.right_field)
            for join in joins
        )

    def __repr__(self) -> str:
        return f"JoinOrderOptimizer(joins={len(self._joins)}, verbose={self._verbose})"
