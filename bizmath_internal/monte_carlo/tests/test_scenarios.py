"""
PURPOSE: Unit tests for scenarios.py.

Tests cover:
1. Fixed-value scenarios produce deterministic outcome sets
2. Best / worst selection per metric, ties by declaration order
3. Mixed fixed and sampled scenario inputs
4. Validation of vector lengths and names before any sampling
"""

import unittest

import numpy as np
import pytest

from bizmath_internal.monte_carlo.distributions import NormalDistribution, create_distribution
from bizmath_internal.monte_carlo.errors import FormulaError, InvalidArgument
from bizmath_internal.monte_carlo.scenarios import (
    Scenario,
    ScenarioComparator,
    ScenarioMetric,
    run_scenarios,
)


class TestFixedScenarios(unittest.TestCase):
    def setUp(self):
        self.comparison = run_scenarios(
            ["Revenue", "Costs"],
            "{0} - {1}",
            [
                Scenario("Base", (150, 50)),
                Scenario("Best", (200, 50)),
                Scenario("Worst", (100, 50)),
            ],
            iterations_per_scenario=10,
        )

    def test_results_keep_declaration_order(self):
        self.assertEqual(list(self.comparison.results), ["Base", "Best", "Worst"])

    def test_fixed_vector_repeats_scalar(self):
        outcomes = self.comparison["Best"]
        self.assertEqual(len(outcomes), 10)
        self.assertTrue(np.all(outcomes.values == 150.0))
        self.assertEqual(outcomes.statistics.std_dev, 0.0)

    def test_best_and_worst_by_mean(self):
        self.assertEqual(self.comparison.best_scenario(ScenarioMetric.MEAN).name, "Best")
        self.assertEqual(self.comparison.worst_scenario(ScenarioMetric.MEAN).name, "Worst")

    def test_metric_names_accepted(self):
        for metric in ("mean", "median", "p5", "p95", "stdDev", "std_dev", "var95", "cvar95"):
            self.comparison.best_scenario(metric)
        with self.assertRaises(InvalidArgument):
            self.comparison.best_scenario("sharpe")

    def test_rank_scenarios(self):
        ranked = self.comparison.rank_scenarios("median")
        self.assertEqual([r.name for r in ranked], ["Best", "Base", "Worst"])

    def test_rank_scenarios_ascending(self):
        ranked = self.comparison.rank_scenarios("median", ascending=True)
        self.assertEqual([r.name for r in ranked], ["Worst", "Base", "Best"])

    def test_risk_adjusted_ratio_zero_for_constant(self):
        self.assertEqual(self.comparison.risk_adjusted_ratios(), {"Base": 0.0, "Best": 0.0, "Worst": 0.0})

    def test_single_iteration(self):
        comparison = run_scenarios(["x"], "{0} * 2", [Scenario("only", [21])], iterations_per_scenario=1)
        self.assertEqual(comparison["only"].values.tolist(), [42.0])


class TestSampledScenarios:
    def setup_method(self):
        self.comparison = run_scenarios(
            ["Revenue", "Costs"],
            "{0} - {1}",
            [
                Scenario("Base", (NormalDistribution(mean=100, std_dev=10), 0)),
                Scenario("Best", (NormalDistribution(mean=150, std_dev=40), 0)),
                Scenario("Worst", (NormalDistribution(mean=50, std_dev=5), 0)),
            ],
            iterations_per_scenario=20_000,
            random_seed=31,
        )

    def test_best_and_worst_by_mean(self):
        assert self.comparison.best_scenario("mean").name == "Best"
        assert self.comparison.worst_scenario("mean").name == "Worst"

    def test_std_dev_ordering(self):
        assert self.comparison.best_scenario("stdDev").name == "Best"
        assert self.comparison.worst_scenario("stdDev").name == "Worst"

    def test_means_converge(self):
        assert self.comparison["Base"].statistics.mean == pytest.approx(100, abs=0.5)
        assert self.comparison["Best"].statistics.mean == pytest.approx(150, abs=2.0)

    def test_probability_above(self):
        probabilities = self.comparison.probability_above(100)
        assert probabilities["Worst"] == 0.0
        assert 0.4 < probabilities["Base"] < 0.6
        assert probabilities["Best"] > 0.8

    def test_summary_table(self):
        table = self.comparison.summary_table(["mean", "p5"])
        assert [row["scenario"] for row in table] == ["Base", "Best", "Worst"]
        assert set(table[0]) == {"scenario", "mean", "p5"}

    def test_to_dict(self):
        data = self.comparison.to_dict()
        assert data["best"]["mean"] == "Best"
        assert data["worst"]["mean"] == "Worst"
        assert list(data["scenarios"]) == ["Base", "Best", "Worst"]

    def test_seeded_runs_reproducible(self):
        scenarios = [Scenario("s", (create_distribution("uniform", {"min": 0, "max": 1}),))]
        a = run_scenarios(["x"], "{0}", scenarios, 100, random_seed=2)
        b = run_scenarios(["x"], "{0}", scenarios, 100, random_seed=2)
        np.testing.assert_array_equal(a["s"].values, b["s"].values)


class TestTies:
    def test_first_declared_wins(self):
        comparison = run_scenarios(
            ["x"], "{0}", [Scenario("A", [5]), Scenario("B", [5]), Scenario("C", [1])], 3
        )
        assert comparison.best_scenario().name == "A"
        assert comparison.worst_scenario().name == "C"
        assert [r.name for r in comparison.rank_scenarios()] == ["A", "B", "C"]
        assert [r.name for r in comparison.rank_scenarios(ascending=True)] == ["C", "A", "B"]


class TestScenarioValidation:
    def test_vector_length_mismatch(self):
        with pytest.raises(InvalidArgument, match="expected 2"):
            run_scenarios(["a", "b"], "{0} + {1}", [Scenario("short", [1])], 5)

    def test_mapping_scenarios(self):
        scenario = Scenario.from_mapping("m", {"b": 2, "a": 1}, ["a", "b"])
        assert scenario.values == (1.0, 2.0)
        assert scenario.is_deterministic

    def test_mapping_missing_input(self):
        with pytest.raises(InvalidArgument, match="missing"):
            Scenario.from_mapping("m", {"a": 1}, ["a", "b"])

    def test_mapping_unknown_input(self):
        with pytest.raises(InvalidArgument, match="unknown"):
            Scenario.from_mapping("m", {"a": 1, "b": 2, "c": 3}, ["a", "b"])

    def test_duplicate_scenario_names(self):
        with pytest.raises(InvalidArgument):
            run_scenarios(["a"], "{0}", [Scenario("s", [1]), Scenario("s", [2])], 1)

    def test_duplicate_input_names(self):
        with pytest.raises(InvalidArgument):
            run_scenarios(["a", "a"], "{0}", [Scenario("s", [1, 2])], 1)

    def test_no_scenarios(self):
        with pytest.raises(InvalidArgument):
            run_scenarios(["a"], "{0}", [], 1)

    def test_non_numeric_value(self):
        with pytest.raises(InvalidArgument):
            Scenario("s", ["high"])

    def test_formula_arity(self):
        with pytest.raises(FormulaError):
            run_scenarios(["a"], "{0} + {1}", [Scenario("s", [1])], 1)

    def test_iteration_bounds(self):
        with pytest.raises(InvalidArgument):
            ScenarioComparator(iterations_per_scenario=0)

    def test_tuple_and_dict_scenarios(self):
        comparison = run_scenarios(
            ["a", "b"],
            "{0} * {1}",
            [("t", [2, 3]), {"name": "d", "values": {"a": 4, "b": 5}}],
            1,
        )
        assert comparison["t"].values[0] == 6.0
        assert comparison["d"].values[0] == 20.0
