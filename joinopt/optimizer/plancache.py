"""Memoization of optimal sub-plans during the join order optimization."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Optional

from .._core import Cardinality, Cost
from ..util.jsonize import jsondict
from .predicates import JoinPredicate

JoinSet = frozenset[JoinPredicate]
"""An unordered set of join predicates. This is the key of the plan cache."""


@dataclass(frozen=True)
class CostCard:
    """Cost and cardinality of a (partial) left-deep join order.

    Attributes
    ----------
    cost : Cost
        The estimated cost of executing all joins of the plan
    cardinality : Cardinality
        The estimated number of tuples produced by the last join of the plan
    plan : tuple[JoinPredicate, ...]
        The joins in the order in which they are executed. Each join uses the orientation that was selected by the optimizer.
    """

    cost: Cost
    cardinality: Cardinality
    plan: tuple[JoinPredicate, ...]

    def __json__(self) -> jsondict:
        return {"cost": self.cost, "cardinality": self.cardinality, "plan": list(self.plan)}


class PlanCache:
    """Stores the best known join order for sets of join predicates.

    A set is only contained in the cache once the optimal order for it has been determined. Missing sets either have not
    been computed yet, or cannot be joined without a cross product. In either case, there is no valid plan for them.

    The plan cache is owned by a single optimization run and must not be shared among concurrent optimizations.
    """

    def __init__(self) -> None:
        self._plans: dict[JoinSet, CostCard] = {}

    def add_plan(
        self, joins: Iterable[JoinPredicate], cost: Cost, cardinality: Cardinality, order: Sequence[JoinPredicate]
    ) -> None:
        """Stores the best order for a set of joins, replacing any previous entry for the same set."""
        self._plans[frozenset(joins)] = CostCard(cost, cardinality, tuple(order))

    def get(self, joins: Iterable[JoinPredicate]) -> Optional[CostCard]:
        return self._plans.get(frozenset(joins))

    def get_order(self, joins: Iterable[JoinPredicate]) -> Optional[list[JoinPredicate]]:
        entry = self.get(joins)
        return list(entry.plan) if entry else None

    def get_cost(self, joins: Iterable[JoinPredicate]) -> Optional[Cost]:
        entry = self.get(joins)
        return entry.cost if entry else None

    def get_card(self, joins: Iterable[JoinPredicate]) -> Optional[Cardinality]:
        entry = self.get(joins)
        return entry.cardinality if entry else None

    def clear(self) -> None:
        self._plans.clear()

    def __contains__(self, joins: object) -> bool:
        if not isinstance(joins, Iterable):
            return False
        return frozenset(joins) in self._plans

    def __len__(self) -> int:
        return len(self._plans)

    def __iter__(self) -> Iterator[JoinSet]:
        return iter(self._plans)

    def __repr__(self) -> str:
        return f"PlanCache(entries={len(self._plans)})"
