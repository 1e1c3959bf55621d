"""The cost model and the cardinality model of the join order optimizer.

Costs assume that all joins are executed as nested-loop joins: the outer relation is computed once and for each of its
tuples, the inner relation is scanned once more. Evaluating the join predicate for a pair of tuples has unit cost.

Join cardinalities are estimated using simple heuristics based on primary keys. Notice that the estimate for equi-joins
on non-key columns (the larger table size of both join partners) is a coarse upper bound rather than a statistically
grounded estimate.
"""

from __future__ import annotations

from .._core import Cardinality, ComparisonOperator, Cost
from .predicates import JoinPredicate

NonEquiJoinFraction = 0.3
"""The fraction of the cross product that is assumed to pass a join predicate other than equality."""


def estimate_join_cost(
    predicate: JoinPredicate, outer_card: Cardinality, inner_card: Cardinality, outer_cost: Cost, inner_cost: Cost
) -> Cost:
    """Estimates the cost of a join.

    Parameters
    ----------
    predicate : JoinPredicate
        The join that should be performed. The left-hand side of the predicate is the outer relation.
    outer_card : Cardinality
        The estimated cardinality of the outer relation
    inner_card : Cardinality
        The estimated cardinality of the inner relation
    outer_cost : Cost
        The cost of computing the outer relation once
    inner_cost : Cost
        The cost of a full scan of the inner relation

    Returns
    -------
    Cost
        The total cost of the join, including the cost of its inputs
    """
    if predicate.is_subplan_join():
        return outer_card + outer_cost + inner_cost

    io_cost = outer_cost + outer_card * inner_cost
    cpu_cost = outer_card * inner_card
    return io_cost + cpu_cost


def estimate_table_join_cardinality(
    operator: ComparisonOperator,
    left_card: Cardinality,
    right_card: Cardinality,
    left_pkey: bool,
    right_pkey: bool,
    left_total: Cardinality,
    right_total: Cardinality,
    *,
    non_equi_fraction: float = NonEquiJoinFraction,
) -> Cardinality:
    """Estimates the number of tuples produced by a join between two base tables.

    Parameters
    ----------
    operator : ComparisonOperator
        The join operator
    left_card : Cardinality
        The estimated cardinality of the left join partner
    right_card : Cardinality
        The estimated cardinality of the right join partner
    left_pkey : bool
        Whether the left join partner is joined on a primary key
    right_pkey : bool
        Whether the right join partner is joined on a primary key
    left_total : Cardinality
        The total number of tuples in the left base table, i.e. before any filters are applied
    right_total : Cardinality
        The total number of tuples in the right base table, i.e. before any filters are applied
    non_equi_fraction : float, optional
        The fraction of the cross product that passes non-equality joins

    Returns
    -------
    Cardinality
        The estimated join cardinality
    """
    if operator == ComparisonOperator.Equal:
        if left_pkey and right_pkey:
            return min(left_card, right_card)
        elif left_pkey:
            # each tuple of the right side has at most one join partner
            return right_card
        elif right_pkey:
            return left_card
        return max(left_total, right_total)

    fixed_fraction = int(left_card * right_card * non_equi_fraction)
    return max(fixed_fraction, max(left_total, right_total))
