"""
PURPOSE: Unit tests for outputs.py (OutcomeSet and derived statistics).

Tests cover:
1. Descriptive statistics against numpy/scipy reference values
2. Percentiles and confidence intervals
3. Probability queries, including complementary boundaries
4. VaR / CVaR sign convention
5. Histogram binning, including the degenerate single-value case
"""

import math
import unittest

import numpy as np
import pytest
from scipy import stats

from bizmath_internal.monte_carlo.errors import InvalidArgument, NumericError
from bizmath_internal.monte_carlo.outputs import HistogramBin, OutcomeSet


class TestOutcomeSetConstruction(unittest.TestCase):
    def test_values_are_copied_and_read_only(self):
        source = np.array([1.0, 2.0, 3.0])
        outcomes = OutcomeSet(source)
        source[0] = 99.0
        self.assertEqual(outcomes.values[0], 1.0)
        with self.assertRaises(ValueError):
            outcomes.values[0] = 5.0

    def test_empty_rejected(self):
        with self.assertRaises(InvalidArgument):
            OutcomeSet([])

    def test_two_dimensional_rejected(self):
        with self.assertRaises(InvalidArgument):
            OutcomeSet([[1.0, 2.0]])

    def test_len(self):
        self.assertEqual(len(OutcomeSet([1, 2, 3, 4])), 4)


class TestStatistics:
    def setup_method(self):
        self.values = np.random.default_rng(11).gamma(2.0, 3.0, size=5000)
        self.outcomes = OutcomeSet(self.values)

    def test_descriptive_statistics(self):
        s = self.outcomes.statistics
        assert s.count == 5000
        assert s.mean == pytest.approx(np.mean(self.values))
        assert s.median == pytest.approx(np.median(self.values))
        assert s.std_dev == pytest.approx(np.std(self.values, ddof=1))
        assert s.variance == pytest.approx(np.var(self.values, ddof=1))
        assert s.population_std_dev == pytest.approx(np.std(self.values))
        assert s.population_variance == pytest.approx(np.var(self.values))
        assert s.skewness == pytest.approx(stats.skew(self.values))
        assert s.min == self.values.min()
        assert s.max == self.values.max()

    def test_gamma_is_right_skewed(self):
        assert self.outcomes.statistics.skewness > 0

    def test_percentiles_are_ordered(self):
        p = self.outcomes.percentiles
        ordered = [p.p5, p.p10, p.p25, p.p50, p.p75, p.p90, p.p95, p.p99]
        assert ordered == sorted(ordered)
        assert p.p50 == pytest.approx(self.outcomes.statistics.median)
        assert p.interquartile_range == pytest.approx(p.p75 - p.p25)

    def test_percentile_matches_numpy_linear(self):
        assert self.outcomes.percentile(37.5) == pytest.approx(np.percentile(self.values, 37.5))

    def test_order_does_not_matter(self):
        shuffled = OutcomeSet(np.random.default_rng(1).permutation(self.values))
        assert shuffled.statistics.mean == pytest.approx(self.outcomes.statistics.mean)
        assert shuffled.percentiles == self.outcomes.percentiles

    def test_confidence_intervals(self):
        s = self.outcomes.statistics
        assert s.ci95.lower == pytest.approx(self.outcomes.percentile(2.5))
        assert s.ci95.upper == pytest.approx(self.outcomes.percentile(97.5))
        assert s.ci90.width < s.ci95.width < s.ci99.width
        assert self.outcomes.confidence_interval(0.5).lower == pytest.approx(self.outcomes.percentile(25))

    @pytest.mark.parametrize("level", [0, 1, 95, -0.1])
    def test_confidence_level_bounds(self, level):
        with pytest.raises(InvalidArgument):
            self.outcomes.confidence_interval(level)

    @pytest.mark.parametrize("p", [-1, 100.5, float("nan")])
    def test_percentile_bounds(self, p):
        with pytest.raises(InvalidArgument):
            self.outcomes.percentile(p)


class TestSmallSets(unittest.TestCase):
    def test_known_values(self):
        outcomes = OutcomeSet([1.0, 2.0, 3.0, 4.0, 5.0])
        s = outcomes.statistics
        self.assertEqual(s.mean, 3.0)
        self.assertEqual(s.median, 3.0)
        self.assertAlmostEqual(s.variance, 2.5)
        self.assertAlmostEqual(s.population_variance, 2.0)
        self.assertEqual(s.skewness, 0.0)
        self.assertEqual(outcomes.percentile(25), 2.0)
        self.assertAlmostEqual(outcomes.percentile(10), 1.4)

    def test_single_value(self):
        s = OutcomeSet([7.0]).statistics
        self.assertEqual(s.std_dev, 0.0)
        self.assertEqual(s.variance, 0.0)
        self.assertEqual(s.ci95.lower, 7.0)
        self.assertEqual(s.ci95.upper, 7.0)

    def test_constant_values(self):
        outcomes = OutcomeSet([1000.0] * 50)
        s = outcomes.statistics
        self.assertEqual(s.std_dev, 0.0)
        self.assertEqual(s.variance, 0.0)
        self.assertEqual(s.skewness, 0.0)
        for value in outcomes.percentiles.to_dict().values():
            self.assertEqual(value, 1000.0)

    def test_infinite_outcome_kept(self):
        outcomes = OutcomeSet([1.0, math.inf])
        self.assertEqual(outcomes.statistics.max, math.inf)
        self.assertEqual(outcomes.probability_above(1e300), 0.5)


class TestProbabilities:
    def setup_method(self):
        self.outcomes = OutcomeSet([1.0, 2.0, 2.0, 3.0, 4.0])

    def test_strict_above_and_below(self):
        assert self.outcomes.probability_above(2.0) == 0.4
        assert self.outcomes.probability_below(2.0) == 0.2
        assert self.outcomes.probability_of_loss() == 0.0

    def test_between_is_inclusive(self):
        assert self.outcomes.probability_between(2.0, 3.0) == 0.6
        assert self.outcomes.probability_between(2.0, 2.0) == 0.4

    def test_partition_sums_to_one(self):
        values = np.random.default_rng(8).normal(0, 1, size=10_000)
        outcomes = OutcomeSet(values)
        ordered = np.sort(values)
        # Thresholds that coincide with outcomes exercise the boundaries
        for t, u in [(-1.0, 1.0), (0.0, 0.0), (ordered[100], ordered[9000]), (ordered[5], ordered[5])]:
            total = outcomes.probability_below(t) + outcomes.probability_between(t, u) + outcomes.probability_above(u)
            assert total == pytest.approx(1.0, abs=1e-12)

    def test_reversed_bounds_rejected(self):
        with pytest.raises(InvalidArgument):
            self.outcomes.probability_between(3.0, 1.0)

    def test_threshold_must_be_number(self):
        with pytest.raises(InvalidArgument):
            self.outcomes.probability_above("high")


class TestValueAtRisk:
    def test_cvar_is_at_least_as_extreme_as_var(self):
        outcomes = OutcomeSet(np.random.default_rng(21).normal(0, 1000, size=100_000))
        for confidence in (0.90, 0.95, 0.99):
            var = outcomes.value_at_risk(confidence)
            cvar = outcomes.conditional_value_at_risk(confidence)
            assert var < 0
            assert cvar <= var
            assert abs(cvar) >= abs(var)

    def test_var_is_lower_tail_percentile(self):
        values = np.arange(1.0, 101.0)
        outcomes = OutcomeSet(values)
        assert outcomes.value_at_risk(0.95) == pytest.approx(np.percentile(values, 5))
        assert outcomes.conditional_value_at_risk(0.95) == pytest.approx(3.0)

    def test_default_confidence(self):
        outcomes = OutcomeSet(np.arange(100.0))
        assert outcomes.value_at_risk() == outcomes.value_at_risk(0.95)

    def test_confidence_bounds(self):
        with pytest.raises(InvalidArgument):
            OutcomeSet([1.0, 2.0]).value_at_risk(1.0)


class TestHistogram:
    def test_degenerate_single_bin(self):
        bins = OutcomeSet([5.0] * 100).histogram(10)
        assert bins == [HistogramBin(lower=5.0, upper=5.0, count=100)]

    def test_degenerate_auto_bins(self):
        bins = OutcomeSet([5.0] * 100).histogram()
        assert len(bins) == 1
        assert bins[0].count == 100

    def test_counts_cover_all_samples(self):
        values = np.random.default_rng(2).normal(0, 1, size=1000)
        bins = OutcomeSet(values).histogram(20)
        assert len(bins) == 20
        assert sum(b.count for b in bins) == 1000
        assert bins[0].lower == values.min()
        assert bins[-1].upper == values.max()
        widths = [b.upper - b.lower for b in bins]
        assert max(widths) == pytest.approx(min(widths))

    def test_auto_bin_count_is_bounded(self):
        values = np.random.default_rng(3).normal(0, 1, size=10_000)
        bins = OutcomeSet(values).histogram()
        assert 1 <= len(bins) <= 1000
        assert len(bins) >= 15  # Sturges for n = 10,000
        assert sum(b.count for b in bins) == 10_000

    @pytest.mark.parametrize("bins", [0, 1001, 2.5, True])
    def test_invalid_bin_count(self, bins):
        with pytest.raises(InvalidArgument):
            OutcomeSet([1.0, 2.0]).histogram(bins)

    def test_infinite_range_rejected(self):
        with pytest.raises(NumericError):
            OutcomeSet([1.0, math.inf]).histogram(5)

    @pytest.mark.parametrize("bins", [None, 10])
    def test_overflowing_range_rejected(self, bins):
        outcomes = OutcomeSet([-1e308, 0.0, 1e308])
        with pytest.raises(NumericError, match="too wide"):
            outcomes.histogram(bins)

    def test_wide_finite_range(self):
        bins = OutcomeSet([-1e307, 0.0, 1e307]).histogram()
        assert sum(b.count for b in bins) == 3


class TestToDict:
    def test_summary_keys(self):
        data = OutcomeSet([1.0, 2.0, 3.0]).to_dict()
        assert set(data) == {"statistics", "percentiles", "probability_of_loss"}
        assert data["statistics"]["ci95"] == [pytest.approx(1.05), pytest.approx(2.95)]
        assert "values" not in data

    def test_include_values(self):
        data = OutcomeSet([1.0, 2.0]).to_dict(include_values=True)
        assert data["values"] == [1.0, 2.0]
