"""Selection of physical join operators for an optimized join order.

The join order optimization itself always assumes nested-loop joins. When the join order is turned into an executable plan,
equi-joins can be computed more efficiently using a hash join, if the execution layer provides one.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Optional

from .predicates import JoinPredicate


class JoinOperator(Enum):
    """The join operators that the execution layer can provide."""

    NestedLoopJoin = "NLJ"
    HashJoin = "Hash Join"

    def __json__(self) -> str:
        return self.value


def select_join_operator(
    predicate: JoinPredicate, *, supported_ops: Optional[Iterable[JoinOperator]] = None
) -> JoinOperator:
    """Determines the physical operator that should be used to compute a join.

    Equality joins are computed as hash joins, all other joins fall back to nested-loop joins. If the execution layer does
    not support hash joins (as indicated by `supported_ops`), nested-loop joins are used for all joins.
    """
    supported_ops = set(supported_ops) if supported_ops is not None else set(JoinOperator)
    if predicate.operator.is_equality() and JoinOperator.HashJoin in supported_ops:
        return JoinOperator.HashJoin
    return JoinOperator.NestedLoopJoin


def select_join_operators(
    join_order: Sequence[JoinPredicate], *, supported_ops: Optional[Iterable[JoinOperator]] = None
) -> list[tuple[JoinPredicate, JoinOperator]]:
    """Determines the physical operator for each join of a join order. The order of the joins is retained."""
    supported_ops = set(supported_ops) if supported_ops is not None else None
    return [(join, select_join_operator(join, supported_ops=supported_ops)) for join in join_order]
