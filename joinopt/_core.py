from __future__ import annotations

from enum import Enum

from .util.jsonize import jsondict

Cost = float
"""Type alias for a cost estimate."""

Cardinality = int
"""Type alias for a cardinality estimate, i.e. the (non-negative) number of tuples produced by some operation."""


class ComparisonOperator(Enum):
    """The comparison operators that can appear in join predicates and filters.

    Each operator is identified by its SQL symbol. Histograms support all operators except for `LIKE`, which is only
    included to model string predicates that are handled by the execution layer.
    """

    Equal = "="
    NotEqual = "<>"
    Less = "<"
    LessEqual = "<="
    Greater = ">"
    GreaterEqual = ">="
    Like = "LIKE"

    @staticmethod
    def from_symbol(symbol: str) -> ComparisonOperator:
        """Parses an operator from its textual representation.

        In addition to the canonical symbols, ``==`` and ``!=`` are accepted as aliases for equality and inequality.

        Raises
        ------
        ValueError
            If the symbol does not denote any operator
        """
        symbol = symbol.strip().upper()
        if symbol == "==":
            return ComparisonOperator.Equal
        if symbol == "!=":
            return ComparisonOperator.NotEqual
        return ComparisonOperator(symbol)

    def mirror(self) -> ComparisonOperator:
        """Provides the operator that has to be used if the operands of a comparison are exchanged.

        For example, *a < b* is equivalent to *b > a*. Symmetric operators such as equality are their own mirror.
        """
        return _MirroredOperators.get(self, self)

    def is_equality(self) -> bool:
        return self == ComparisonOperator.Equal

    def __json__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


_MirroredOperators = {
    ComparisonOperator.Less: ComparisonOperator.Greater,
    ComparisonOperator.LessEqual: ComparisonOperator.GreaterEqual,
    ComparisonOperator.Greater: ComparisonOperator.Less,
    ComparisonOperator.GreaterEqual: ComparisonOperator.LessEqual,
}


class FieldType(Enum):
    """The column types that the storage layer can persist.

    The value of each type corresponds to the number of bytes it occupies in the on-disk tuple layout. Strings are stored
    with a fixed payload of 128 bytes plus a 4 byte length prefix.
    """

    Integer = 4
    String = 132

    @property
    def size(self) -> int:
        return self.value

    def __json__(self) -> jsondict:
        return {"type": self.name, "size": self.value}
