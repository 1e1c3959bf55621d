"""The optimizer package computes cost-based left-deep join orders.

The central entry point is the `JoinOrderOptimizer`, which orders a set of `JoinPredicate` instances based on the statistics
of the joined tables. Cost and cardinality models are located in the `costs` module, the selection of physical join
operators for the optimized order is provided by the `physops` module.
"""

from . import costs, physops, validation
from .costs import NonEquiJoinFraction, estimate_join_cost, estimate_table_join_cardinality
from .explain import ExplainNode, PlanExplanation, build_explanation
from .joinorder import DuplicateJoinWarning, JoinOrderOptimizer, enumerate_subsets
from .physops import JoinOperator, select_join_operator, select_join_operators
from .plancache import CostCard, JoinSet, PlanCache
from .predicates import JoinPredicate, SubplanJoinPredicate, tables_of

__all__ = [
    "costs",
    "physops",
    "validation",
    "NonEquiJoinFraction",
    "estimate_join_cost",
    "estimate_table_join_cardinality",
    "ExplainNode",
    "PlanExplanation",
    "build_explanation",
    "DuplicateJoinWarning",
    "JoinOrderOptimizer",
    "enumerate_subsets",
    "JoinOperator",
    "select_join_operator",
    "select_join_operators",
    "CostCard",
    "JoinSet",
    "PlanCache",
    "JoinPredicate",
    "SubplanJoinPredicate",
    "tables_of",
]
