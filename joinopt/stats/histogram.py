"""Equi-width histograms to estimate the selectivity of filter predicates on a single column.

The `Histogram` maintains counts for integer values. It splits the value domain *[min, max]* into a fixed number of
buckets with identical width. To answer a selectivity query, it assumes that the values within each bucket are spread
uniformly. Each integer value *v* is treated as covering the unit interval *[v, v + 1)* of its bucket. This keeps all
estimates in *[0, 1]*, makes complementary operators (e.g. *>* and *<=*) sum up to 1 and guarantees that range estimates
are monotonic in the comparison value.

String columns are handled by the `OrdinalHistogram`, which maps each string to an integer in an order-preserving
fashion and delegates to a normal histogram.
"""

from __future__ import annotations

import math

import numpy as np

from .._core import ComparisonOperator
from ..errors import InvalidRangeError, UnsupportedOperatorError


class Histogram:
    """A fixed-width histogram over a single integer-based column.

    The histogram uses space and update time that are constant with respect to the number of values added to it.

    Parameters
    ----------
    buckets : int
        The number of buckets to split the value domain into. If the domain contains fewer values than there are buckets,
        the number of buckets is reduced to the domain size, such that each bucket covers at least one value.
    min_value : int
        The smallest value that will ever be added to the histogram
    max_value : int
        The largest value that will ever be added to the histogram

    Raises
    ------
    InvalidRangeError
        If *max_value < min_value*
    ValueError
        If less than one bucket is requested
    """

    def __init__(self, buckets: int, min_value: int, max_value: int) -> None:
        if max_value < min_value:
            raise InvalidRangeError(min_value, max_value)
        if buckets < 1:
            raise ValueError(f"Histogram requires at least one bucket, not {buckets}")

        self._min = int(min_value)
        self._max = int(max_value)
        domain_size = self._max - self._min + 1
        self._n_buckets = min(buckets, domain_size)
        self._width = domain_size / self._n_buckets
        self._counts = np.zeros(self._n_buckets, dtype=np.int64)
        self._total = 0

    @property
    def min_value(self) -> int:
        return self._min

    @property
    def max_value(self) -> int:
        return self._max

    @property
    def n_buckets(self) -> int:
        """Get the actual number of buckets. This can be smaller than the number of requested buckets."""
        return self._n_buckets

    @property
    def bucket_width(self) -> float:
        return self._width

    @property
    def total_count(self) -> int:
        """Get the number of values that have been added to the histogram so far."""
        return self._total

    @property
    def counts(self) -> np.ndarray:
        """Get a (read-only) view on the bucket counts."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    def add_value(self, value: int) -> None:
        """Adds a single value to the histogram.

        Raises
        ------
        ValueError
            If the value lies outside of the value domain of the histogram
        """
        if value < self._min or value > self._max:
            raise ValueError(f"Value {value} outside of histogram domain [{self._min}, {self._max}]")
        self._counts[self._bucket_of(value)] += 1
        self._total += 1

    def add_values(self, values) -> None:
        for value in values:
            self.add_value(value)

    def estimate_selectivity(self, op: ComparisonOperator, value: int) -> float:
        """Estimates the fraction of values that satisfy the predicate *column op value*.

        Parameters
        ----------
        op : ComparisonOperator
            The comparison operator
        value : int
            The value that the column is compared against

        Returns
        -------
        float
            The estimated selectivity in *[0, 1]*. If no values have been added to the histogram so far, this is always 0.

        Raises
        ------
        UnsupportedOperatorError
            If the operator is not one of the basic comparison operators
        """
        if op not in _SupportedOperators:
            raise UnsupportedOperatorError(op)
        if not self._total:
            return 0.0

        match op:
            case ComparisonOperator.Equal:
                return self._equality_selectivity(value)
            case ComparisonOperator.NotEqual:
                return 1.0 - self._equality_selectivity(value)
            case ComparisonOperator.Greater:
                return self._greater_selectivity(value + 1)
            case ComparisonOperator.GreaterEqual:
                return self._greater_selectivity(value)
            case ComparisonOperator.Less:
                return self._less_selectivity(value)
            case ComparisonOperator.LessEqual:
                return self._less_selectivity(value + 1)

    def avg_selectivity(self) -> float:
        """Provides the average selectivity of this histogram.

        This is not needed by the join optimizer and always returns 1.
        """
        return 1.0

    def _bucket_of(self, value: float) -> int:
        # multiplication and division could produce an index just at the upper boundary for the maximum value
        return min(math.floor((value - self._min) / self._width), self._n_buckets - 1)

    def _left_edge(self, bucket: int) -> float:
        return self._min + bucket * self._width

    def _right_edge(self, bucket: int) -> float:
        return self._min + (bucket + 1) * self._width

    def _equality_selectivity(self, value: int) -> float:
        if value < self._min or value > self._max:
            return 0.0
        bucket = self._bucket_of(value)
        return float(self._counts[bucket] / self._width / self._total)

    def _greater_selectivity(self, boundary: float) -> float:
        """Estimates the fraction of values in *[boundary, max + 1)*."""
        if boundary <= self._min:
            return 1.0
        if boundary > self._max:
            return 0.0
        bucket = self._bucket_of(boundary)
        fraction = _clamp((self._right_edge(bucket) - boundary) / self._width)
        matching = fraction * self._counts[bucket] + self._counts[bucket + 1 :].sum()
        return float(matching / self._total)

    def _less_selectivity(self, boundary: float) -> float:
        """Estimates the fraction of values in *[min, boundary)*."""
        if boundary <= self._min:
            return 0.0
        if boundary > self._max:
            return 1.0
        bucket = self._bucket_of(boundary)
        fraction = _clamp((boundary - self._left_edge(bucket)) / self._width)
        matching = fraction * self._counts[bucket] + self._counts[:bucket].sum()
        return float(matching / self._total)

    def __len__(self) -> int:
        return self._n_buckets

    def __repr__(self) -> str:
        return (
            f"Histogram(buckets={self._n_buckets}, min_value={self._min}, "
            f"max_value={self._max}, total={self._total})"
        )

    def __str__(self) -> str:
        lines = [
            f"Buckets: {self._n_buckets}, Min: {self._min}, Max: {self._max}, Bucket width: {self._width:.2f}"
        ]
        for bucket, count in enumerate(self._counts.tolist()):
            lower = self._left_edge(bucket)
            upper = self._right_edge(bucket)
            lines.append(f"Bucket {bucket} [{lower:.2f}, {upper:.2f}): {'*' * min(count, 50)} ({count})")
        return "\n".join(lines)


_SupportedOperators = frozenset(
    {
        ComparisonOperator.Equal,
        ComparisonOperator.NotEqual,
        ComparisonOperator.Greater,
        ComparisonOperator.GreaterEqual,
        ComparisonOperator.Less,
        ComparisonOperator.LessEqual,
    }
)


def _clamp(fraction: float) -> float:
    return min(max(fraction, 0.0), 1.0)


OrdinalPrefixLength = 4
"""The number of leading characters that are used to map strings to integers."""

OrdinalBase = 256
"""Each character is mapped to a digit in this base. Characters with larger code points are clipped."""


def ordinal_value(text: str) -> int:
    """Maps a string to an integer, such that the lexicographic order of the strings is (mostly) preserved.

    Only the first `OrdinalPrefixLength` characters are considered and their code points are clipped to
    `OrdinalBase` - 1. Strings that share such a prefix are mapped to the same value. Shorter strings are padded with the
    smallest digit, such that a prefix is always ordered before its extensions.
    """
    value = 0
    for idx in range(OrdinalPrefixLength):
        digit = min(ord(text[idx]), OrdinalBase - 1) if idx < len(text) else 0
        value = value * OrdinalBase + digit
    return value


class OrdinalHistogram:
    """Histogram for string columns.

    All strings are mapped to integers using `ordinal_value` and then stored in a normal `Histogram` that spans the entire
    domain of the mapping.

    Parameters
    ----------
    buckets : int
        The number of buckets to use.
    """

    def __init__(self, buckets: int) -> None:
        self._histogram = Histogram(
            buckets,
            ordinal_value(""),
            ordinal_value(chr(OrdinalBase - 1) * OrdinalPrefixLength),
        )

    @property
    def histogram(self) -> Histogram:
        """Get the underlying integer histogram."""
        return self._histogram

    @property
    def total_count(self) -> int:
        return self._histogram.total_count

    def add_value(self, value: str) -> None:
        self._histogram.add_value(ordinal_value(value))

    def add_values(self, values) -> None:
        for value in values:
            self.add_value(value)

    def estimate_selectivity(self, op: ComparisonOperator, value: str) -> float:
        """Estimates the fraction of strings that satisfy *column op value*.

        See `Histogram.estimate_selectivity` for details.
        """
        return self._histogram.estimate_selectivity(op, ordinal_value(value))

    def avg_selectivity(self) -> float:
        return self._histogram.avg_selectivity()

    def __repr__(self) -> str:
        return f"OrdinalHistogram(buckets={self._histogram.n_buckets}, total={self.total_count})"

    def __str__(self) -> str:
        return str(self._histogram)
