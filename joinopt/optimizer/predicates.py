"""Join predicates are the input of the join order optimization.

Each predicate describes a single join condition of the form *left_alias.left_field op right_alias.right_field*. Predicates
are immutable and compare by value, such that sets of predicates can be used as keys of the plan cache.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .._core import ComparisonOperator
from ..util.jsonize import jsondict


def _split_quantified_name(name: str) -> tuple[str, str]:
    alias, sep, field = name.partition(".")
    if not sep or not alias or not field:
        raise ValueError(f"Not a quantified field name: '{name}'. Expected format is 'alias.field'")
    return alias, field


@dataclass(frozen=True)
class JoinPredicate:
    """A join condition between two base tables.

    Attributes
    ----------
    left_alias : str
        The alias of the table on the left-hand side of the comparison. If the table does not have an alias, this is the
        name of the table.
    left_field : str
        The (pure) name of the field on the left-hand side
    operator : ComparisonOperator
        The comparison operator
    right_alias : str
        The alias of the table on the right-hand side
    right_field : str
        The (pure) name of the field on the right-hand side
    """

    left_alias: str
    left_field: str
    operator: ComparisonOperator
    right_alias: Optional[str]
    right_field: Optional[str]

    @staticmethod
    def parse(left: str, operator: str | ComparisonOperator, right: str) -> JoinPredicate:
        """Creates a new predicate from quantified field names, e.g. ``JoinPredicate.parse("t.id", "=", "mc.movie_id")``.

        Raises
        ------
        ValueError
            If a field name is not quantified by its table alias, or the operator is unknown
        """
        left_alias, left_field = _split_quantified_name(left)
        right_alias, right_field = _split_quantified_name(right)
        if not isinstance(operator, ComparisonOperator):
            operator = ComparisonOperator.from_symbol(operator)
        return JoinPredicate(left_alias, left_field, operator, right_alias, right_field)

    @property
    def left_quantified_name(self) -> str:
        return f"{self.left_alias}.{self.left_field}"

    @property
    def right_quantified_name(self) -> str:
        return f"{self.right_alias}.{self.right_field}"

    def is_subplan_join(self) -> bool:
        return False

    def tables(self) -> frozenset[str]:
        """Provides the aliases of all tables that are joined by this predicate."""
        return frozenset(alias for alias in (self.left_alias, self.right_alias) if alias is not None)

    def joins_table(self, alias: str) -> bool:
        return alias in self.tables()

    def swapped(self) -> JoinPredicate:
        """Provides an equivalent predicate with the sides exchanged.

        The operator is mirrored accordingly, e.g. *a.x < b.y* becomes *b.y > a.x*. The current predicate is not modified.
        """
        return JoinPredicate(
            self.right_alias,
            self.right_field,
            self.operator.mirror(),
            self.left_alias,
            self.left_field,
        )

    def __json__(self) -> jsondict:
        return {
            "left": self.left_quantified_name,
            "operator": self.operator,
            "right": self.right_quantified_name,
        }

    def __str__(self) -> str:
        return f"{self.left_quantified_name} {self.operator} {self.right_quantified_name}"


@dataclass(frozen=True)
class SubplanJoinPredicate(JoinPredicate):
    """A join condition between a base table and the result of a subquery that has already been planned.

    The subquery side is not resolved against the catalog. Therefore, the right alias and field are typically *None* and
    only serve to identify the subquery in explanations. Since the subquery is always evaluated as the inner relation,
    swapping the predicate does not change it.
    """

    right_alias: Optional[str] = None
    right_field: Optional[str] = None

    @staticmethod
    def of(left: str, operator: str | ComparisonOperator, *, subquery: Optional[str] = None) -> SubplanJoinPredicate:
        """Creates a new subplan predicate for the quantified field name on the left-hand side."""
        left_alias, left_field = _split_quantified_name(left)
        if not isinstance(operator, ComparisonOperator):
            operator = ComparisonOperator.from_symbol(operator)
        return SubplanJoinPredicate(left_alias, left_field, operator, None, subquery)

    def is_subplan_join(self) -> bool:
        return True

    def tables(self) -> frozenset[str]:
        return frozenset([self.left_alias])

    def swapped(self) -> SubplanJoinPredicate:
        return self

    def __json__(self) -> jsondict:
        return {
            "left": self.left_quantified_name,
            "operator": self.operator,
            "subplan": self.right_field if self.right_field else "",
        }

    def __str__(self) -> str:
        subplan = f"({self.right_field})" if self.right_field else "(subplan)"
        return f"{self.left_quantified_name} {self.operator} {subplan}"


def tables_of(predicates: Iterable[JoinPredicate]) -> set[str]:
    """Provides the aliases of all tables that are joined by any of the predicates."""
    return set().union(*(predicate.tables() for predicate in predicates))
