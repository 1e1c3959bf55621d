"""Explanations describe an optimized join order as a tree, annotated with the cost and cardinality estimates.

The explanation is a plain data structure. It can be rendered as indented text (`PlanExplanation.inspect`), exported as
JSON (via `util.to_json`) or as a data frame with one row per join (`PlanExplanation.to_df`).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from .. import util
from .._core import Cardinality, Cost
from ..util.jsonize import jsondict
from .physops import JoinOperator, select_join_operator
from .predicates import JoinPredicate


@dataclass
class ExplainNode:
    """A single node of the explanation tree.

    Join nodes have a `predicate`, an `operator` and their inputs as children. This is a single child if the predicate only
    references tables that were already joined, or fields of a single table. Scan nodes only have a `table` and no children.
    Joins with subplans use a scan node without a table for the subplan.
    """

    label: str
    cost: Cost
    cardinality: Cardinality
    predicate: Optional[JoinPredicate] = None
    operator: Optional[JoinOperator] = None
    table: Optional[str] = None
    children: list[ExplainNode] = field(default_factory=list)

    def is_join(self) -> bool:
        return self.predicate is not None

    def is_scan(self) -> bool:
        return self.predicate is None

    def iternodes(self) -> Iterator[ExplainNode]:
        """Provides all nodes of the subtree in pre-order."""
        yield self
        for child in self.children:
            yield from child.iternodes()

    def __json__(self) -> jsondict:
        if self.is_scan():
            return {"table": self.table, "cost": self.cost, "cardinality": self.cardinality}
        return {
            "join": self.predicate,
            "operator": self.operator,
            "cost": self.cost,
            "cardinality": self.cardinality,
            "children": self.children,
        }


@dataclass
class PlanExplanation:
    """The explanation of an entire join order.

    Attributes
    ----------
    join_order : list[JoinPredicate]
        The optimized join order
    root : Optional[ExplainNode]
        The last join of the join order. *None* if there are no joins.
    steps : list[ExplainNode]
        The join nodes in execution order
    """

    join_order: list[JoinPredicate]
    root: Optional[ExplainNode]
    steps: list[ExplainNode] = field(default_factory=list)

    @property
    def cost(self) -> Cost:
        return self.root.cost if self.root else 0.0

    @property
    def cardinality(self) -> Cardinality:
        return self.root.cardinality if self.root else 0

    def joins(self) -> list[ExplainNode]:
        """Provides the join nodes in execution order."""
        return list(self.steps)

    def to_df(self) -> pd.DataFrame:
        rows = [
            {
                "step": step,
                "join": str(node.predicate),
                "operator": node.operator.value,
                "cost": node.cost,
                "cardinality": node.cardinality,
            }
            for step, node in enumerate(self.joins())
        ]
        return util.as_df(rows, columns=["step", "join", "operator", "cost", "cardinality"])

    def inspect(self) -> str:
        """Provides a human-readable representation of the join tree."""
        if not self.root:
            return "No joins in plan."
        lines: list[str] = []
        self._inspect_node(self.root, 0, lines)
        return "\n".join(lines)

    def _inspect_node(self, node: ExplainNode, indentation: int, lines: list[str]) -> None:
        prefix = "  " * indentation + ("-> " if indentation else "")
        lines.append(f"{prefix}{node.label} (cost={node.cost}, card={node.cardinality})")
        for child in node.children:
            self._inspect_node(child, indentation + 1, lines)

    def __json__(self) -> jsondict:
        return {"join_order": self.join_order, "plan": self.root}

    def __str__(self) -> str:
        return self.inspect()


def build_explanation(
    join_order: Sequence[JoinPredicate],
    step_estimates: Sequence[tuple[Cost, Cardinality]],
    scan_estimates: Mapping[str, tuple[Cost, Cardinality]],
) -> PlanExplanation:
    """Constructs the explanation tree for a left-deep join order.

    Parameters
    ----------
    join_order : Sequence[JoinPredicate]
        The joins in execution order
    step_estimates : Sequence[tuple[Cost, Cardinality]]
        The cost and cardinality of the join order after the first *i + 1* joins have been executed, for each position *i*
    scan_estimates : Mapping[str, tuple[Cost, Cardinality]]
        The scan cost and the (filtered) cardinality of each base table, indexed by alias

    Returns
    -------
    PlanExplanation
        The explanation
    """
    if len(join_order) != len(step_estimates):
        raise ValueError("Estimates required for each join")

    # maps each table alias to the subtree that currently contains it
    subtrees: dict[str, ExplainNode] = {}
    root: Optional[ExplainNode] = None
    steps: list[ExplainNode] = []

    for join, (cost, card) in zip(join_order, step_estimates):
        node = ExplainNode(
            f"Join {join}", cost, card, predicate=join, operator=select_join_operator(join)
        )
        connected = False
        sides = [join.left_alias] if join.is_subplan_join() else [join.left_alias, join.right_alias]
        # a predicate on two fields of the same table only has a single input
        for alias in dict.fromkeys(sides):
            subtree = subtrees.get(alias)
            if subtree is None:
                scan_cost, scan_card = scan_estimates[alias]
                subtree = ExplainNode(alias, scan_cost, scan_card, table=alias)
            elif any(child is subtree for child in node.children):
                # both tables were already joined before
                subtrees[alias] = node
                continue
            else:
                connected = True
            node.children.append(subtree)
            subtrees[alias] = node
        if join.is_subplan_join():
            node.children.append(ExplainNode("Subplan", 0.0, 0))

        # unless the join is disconnected from the previous ones, it now contains all tables that were joined so far
        if connected:
            for alias in subtrees:
                subtrees[alias] = node
        steps.append(node)
        root = node

    return PlanExplanation(list(join_order), root, steps)
