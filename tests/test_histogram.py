"""Tests for the selectivity estimates of equi-width histograms."""

import unittest

import numpy as np

from joinopt import ComparisonOperator, InvalidRangeError, UnsupportedOperatorError
from joinopt.stats import Histogram, OrdinalHistogram, ordinal_value

Op = ComparisonOperator


def _uniform_histogram(buckets: int = 10, min_value: int = 0, max_value: int = 99) -> Histogram:
    histogram = Histogram(buckets, min_value, max_value)
    histogram.add_values(range(min_value, max_value + 1))
    return histogram


class HistogramConstructionTests(unittest.TestCase):
    def test_invalid_range(self) -> None:
        with self.assertRaises(InvalidRangeError):
            Histogram(10, 5, 4)

    def test_invalid_range_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            Histogram(10, 100, -100)

    def test_no_buckets(self) -> None:
        with self.assertRaises(ValueError):
            Histogram(0, 0, 10)

    def test_single_value_domain(self) -> None:
        histogram = Histogram(10, 7, 7)
        self.assertEqual(histogram.n_buckets, 1)
        histogram.add_value(7)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.Equal, 7), 1.0)

    def test_buckets_reduced_to_domain_size(self) -> None:
        histogram = Histogram(100, 0, 9)
        self.assertEqual(histogram.n_buckets, 10)
        self.assertAlmostEqual(histogram.bucket_width, 1.0)

    def test_add_value_outside_domain(self) -> None:
        histogram = Histogram(10, 0, 99)
        with self.assertRaises(ValueError):
            histogram.add_value(100)
        with self.assertRaises(ValueError):
            histogram.add_value(-1)

    def test_counts(self) -> None:
        histogram = _uniform_histogram()
        self.assertEqual(histogram.total_count, 100)
        np.testing.assert_array_equal(histogram.counts, np.full(10, 10))

    def test_counts_are_read_only(self) -> None:
        histogram = _uniform_histogram()
        with self.assertRaises(ValueError):
            histogram.counts[0] = 42

    def test_max_value_in_last_bucket(self) -> None:
        histogram = Histogram(3, 0, 9)
        histogram.add_value(9)
        self.assertEqual(histogram.counts[-1], 1)


class HistogramSelectivityTests(unittest.TestCase):
    def test_empty_histogram(self) -> None:
        histogram = Histogram(10, 0, 99)
        for op in (Op.Equal, Op.NotEqual, Op.Less, Op.LessEqual, Op.Greater, Op.GreaterEqual):
            self.assertEqual(histogram.estimate_selectivity(op, 50), 0.0, msg=f"Operator {op}")

    def test_unsupported_operator(self) -> None:
        histogram = _uniform_histogram()
        with self.assertRaises(UnsupportedOperatorError):
            histogram.estimate_selectivity(Op.Like, 42)

    def test_equality_for_populated_bucket(self) -> None:
        histogram = Histogram(10, 0, 99)
        histogram.add_values(range(0, 100, 2))
        self.assertEqual(histogram.total_count, 50)
        for value in range(100):
            bucket_count = histogram.counts[value // 10]
            self.assertAlmostEqual(histogram.estimate_selectivity(Op.Equal, value), bucket_count / (10 * 50))

    def test_equality_outside_domain(self) -> None:
        histogram = _uniform_histogram()
        self.assertEqual(histogram.estimate_selectivity(Op.Equal, -5), 0.0)
        self.assertEqual(histogram.estimate_selectivity(Op.Equal, 100), 0.0)

    def test_equality_and_inequality_complementary(self) -> None:
        histogram = Histogram(7, -20, 45)
        histogram.add_values([-20, -3, 0, 0, 1, 12, 12, 12, 30, 44, 45])
        for value in range(-25, 50):
            eq = histogram.estimate_selectivity(Op.Equal, value)
            neq = histogram.estimate_selectivity(Op.NotEqual, value)
            self.assertAlmostEqual(eq + neq, 1.0, msg=f"Value {value}")

    def test_greater_and_less_equal_complementary(self) -> None:
        histogram = Histogram(7, -20, 45)
        histogram.add_values([-20, -3, 0, 0, 1, 12, 12, 12, 30, 44, 45])
        for value in range(-25, 50):
            gt = histogram.estimate_selectivity(Op.Greater, value)
            le = histogram.estimate_selectivity(Op.LessEqual, value)
            self.assertAlmostEqual(gt + le, 1.0, msg=f"Value {value}")

    def test_less_and_greater_equal_complementary(self) -> None:
        histogram = _uniform_histogram(buckets=13)
        for value in range(-5, 105):
            lt = histogram.estimate_selectivity(Op.Less, value)
            ge = histogram.estimate_selectivity(Op.GreaterEqual, value)
            self.assertAlmostEqual(lt + ge, 1.0, msg=f"Value {value}")

    def test_range_estimates_monotonic(self) -> None:
        histogram = Histogram(10, 0, 99)
        histogram.add_values([1, 5, 5, 17, 23, 23, 23, 50, 51, 88, 99])
        previous_lt, previous_gt = 0.0, 1.0
        for value in range(-5, 105):
            lt = histogram.estimate_selectivity(Op.Less, value)
            gt = histogram.estimate_selectivity(Op.Greater, value)
            self.assertGreaterEqual(lt, previous_lt - 1e-12, msg=f"Value {value}")
            self.assertLessEqual(gt, previous_gt + 1e-12, msg=f"Value {value}")
            previous_lt, previous_gt = lt, gt

    def test_boundaries(self) -> None:
        histogram = _uniform_histogram()
        self.assertEqual(histogram.estimate_selectivity(Op.Greater, 99), 0.0)
        self.assertEqual(histogram.estimate_selectivity(Op.Less, 0), 0.0)
        self.assertEqual(histogram.estimate_selectivity(Op.Greater, -1), 1.0)
        self.assertEqual(histogram.estimate_selectivity(Op.LessEqual, 99), 1.0)
        self.assertEqual(histogram.estimate_selectivity(Op.GreaterEqual, 0), 1.0)

    def test_estimates_in_unit_interval(self) -> None:
        histogram = Histogram(4, 0, 10)
        histogram.add_values([0, 0, 0, 10])
        for op in (Op.Equal, Op.NotEqual, Op.Less, Op.LessEqual, Op.Greater, Op.GreaterEqual):
            for value in range(-3, 14):
                selectivity = histogram.estimate_selectivity(op, value)
                self.assertGreaterEqual(selectivity, 0.0)
                self.assertLessEqual(selectivity, 1.0)

    def test_uniform_range_estimates(self) -> None:
        histogram = _uniform_histogram()
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.Less, 50), 0.5)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.GreaterEqual, 50), 0.5)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.Greater, 24), 0.75)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.LessEqual, 9), 0.1)

    def test_exact_for_unit_width_buckets(self) -> None:
        # with at least one bucket per value, each bucket holds a single value and all estimates are exact
        comparisons = {
            Op.Equal: np.equal,
            Op.NotEqual: np.not_equal,
            Op.Less: np.less,
            Op.LessEqual: np.less_equal,
            Op.Greater: np.greater,
            Op.GreaterEqual: np.greater_equal,
        }
        min_value, max_value = -15, 40
        for seed in range(5):
            rng = np.random.default_rng(seed)
            values = rng.integers(min_value, max_value + 1, size=int(rng.integers(1, 300)))
            histogram = Histogram(max_value - min_value + 1 + seed, min_value, max_value)
            histogram.add_values(values.tolist())
            self.assertAlmostEqual(histogram.bucket_width, 1.0)

            for op, compare in comparisons.items():
                for value in range(min_value - 3, max_value + 4):
                    expected = np.count_nonzero(compare(values, value)) / len(values)
                    with self.subTest(seed=seed, op=op, value=value):
                        self.assertAlmostEqual(histogram.estimate_selectivity(op, value), expected)

    def test_avg_selectivity(self) -> None:
        self.assertEqual(_uniform_histogram().avg_selectivity(), 1.0)

    def test_string_representation(self) -> None:
        histogram = _uniform_histogram()
        self.assertIn("Buckets: 10", str(histogram))
        self.assertIn("total=100", repr(histogram))


class OrdinalHistogramTests(unittest.TestCase):
    def test_ordinal_values_preserve_order(self) -> None:
        words = ["", "a", "ab", "abc", "abd", "b", "ba", "zzzz"]
        ordinals = [ordinal_value(word) for word in words]
        self.assertEqual(ordinals, sorted(ordinals))
        self.assertEqual(len(set(ordinals)), len(words))

    def test_ordinal_value_uses_prefix(self) -> None:
        self.assertEqual(ordinal_value("abcdefg"), ordinal_value("abcdxyz"))

    def test_ordinal_value_clips_large_code_points(self) -> None:
        self.assertEqual(ordinal_value("€"), ordinal_value("ÿ"))

    def test_string_selectivities(self) -> None:
        histogram = OrdinalHistogram(100)
        histogram.add_values(["apple", "banana", "cherry", "date"])
        self.assertEqual(histogram.total_count, 4)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.Less, ""), 0.0)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.Greater, "zzzz"), 0.0)
        self.assertAlmostEqual(histogram.estimate_selectivity(Op.GreaterEqual, ""), 1.0)
        equal = histogram.estimate_selectivity(Op.Equal, "banana")
        not_equal = histogram.estimate_selectivity(Op.NotEqual, "banana")
        self.assertAlmostEqual(equal + not_equal, 1.0)

    def test_empty_string_histogram(self) -> None:
        histogram = OrdinalHistogram(10)
        self.assertEqual(histogram.estimate_selectivity(Op.Equal, "foo"), 0.0)


if __name__ == "__main__":
    unittest.main()
