"""
PURPOSE: Unit tests for sensitivity.py (single-variable sweeps).

Tests cover:
1. Exact sensitivity factor for linear formulas
2. Sweep grid: step count, inclusive endpoints, even spacing
3. Percent and explicit ranges, and their wire forms
4. Validation of steps, ranges and formulas
5. Sweeping one named input of a multi-input formula
"""

import numpy as np
import pytest

from bizmath_internal.monte_carlo.errors import FormulaError, InvalidArgument
from bizmath_internal.monte_carlo.sensitivity import (
    ExplicitRange,
    MultiplierRange,
    PercentRange,
    SensitivityAnalyzer,
    SensitivityPoint,
    analyze_input_sensitivity,
    analyze_sensitivity,
    variable_range_from_mapping,
)


class TestSensitivityFactor:
    def test_linear_formula_is_exact(self):
        result = analyze_sensitivity(100.0, PercentRange(10), "{0}*2")
        assert result.sensitivity_factor == 2.0
        assert result.min_input == 90.0
        assert result.max_input == 110.0
        assert result.base_output == 200.0

    def test_negative_slope_uses_output_spread(self):
        result = analyze_sensitivity(50.0, ExplicitRange(0, 10), "100 - 3 * {0}")
        assert result.sensitivity_factor == pytest.approx(3.0)
        assert result.min_output == pytest.approx(70.0)
        assert result.max_output == pytest.approx(100.0)

    def test_non_monotonic_formula(self):
        # Symmetric parabola: the endpoints agree but the sweep still sees the dip
        result = analyze_sensitivity(0.0, ExplicitRange(-2, 2), "{0} * {0}", steps=5)
        assert result.min_output == 0.0
        assert result.max_output == 4.0
        assert result.sensitivity_factor == pytest.approx(1.0)

    def test_negative_base_value_window(self):
        result = analyze_sensitivity(-100.0, {"percentChange": 20}, "{0}")
        assert result.min_input == -120.0
        assert result.max_input == -80.0


class TestSweepGrid:
    def test_default_steps_and_endpoints(self):
        result = analyze_sensitivity(100.0, ExplicitRange(80, 120), "{0} + 1")
        assert len(result.points) == 11
        inputs = [p.input_value for p in result.points]
        assert inputs[0] == 80.0
        assert inputs[-1] == 120.0
        np.testing.assert_allclose(np.diff(inputs), 4.0)

    def test_custom_steps(self):
        result = SensitivityAnalyzer(steps=2).analyze(10.0, PercentRange(50), "{0}")
        assert [p.input_value for p in result.points] == [5.0, 15.0]

    def test_points_pair_inputs_and_outputs(self):
        result = analyze_sensitivity(10.0, ExplicitRange(1, 3), "{0} * 10", steps=3)
        assert result.points == (
            SensitivityPoint(1.0, 10.0),
            SensitivityPoint(2.0, 20.0),
            SensitivityPoint(3.0, 30.0),
        )

    def test_to_dict(self):
        data = analyze_sensitivity(100.0, PercentRange(10), "{0}*2").to_dict()
        assert data["sensitivity_factor"] == 2.0
        assert data["input_range"] == 20.0
        assert data["output_range"] == 40.0
        assert data["points"][0] == {"input": 90.0, "output": 180.0}


class TestRanges:
    def test_mapping_forms(self):
        assert variable_range_from_mapping({"percentChange": 15}) == PercentRange(15.0)
        assert variable_range_from_mapping({"min": 1, "max": 2}) == ExplicitRange(1.0, 2.0)
        assert variable_range_from_mapping({"minMultiplier": 0.8, "maxMultiplier": 1.2}) == MultiplierRange(0.8, 1.2)

    def test_mapping_requires_a_form(self):
        with pytest.raises(InvalidArgument):
            variable_range_from_mapping({"min": 1})

    @pytest.mark.parametrize("percent", [0, -5, float("inf")])
    def test_percent_must_be_positive(self, percent):
        with pytest.raises(InvalidArgument):
            PercentRange(percent)

    def test_explicit_requires_min_below_max(self):
        with pytest.raises(InvalidArgument):
            ExplicitRange(5, 5)

    def test_percent_window_around_zero_is_empty(self):
        with pytest.raises(InvalidArgument):
            analyze_sensitivity(0.0, PercentRange(10), "{0}")


class TestValidation:
    @pytest.mark.parametrize("steps", [0, 1, 2.5, True])
    def test_steps(self, steps):
        with pytest.raises(InvalidArgument):
            SensitivityAnalyzer(steps=steps)

    def test_formula_must_be_single_input(self):
        with pytest.raises(FormulaError):
            analyze_sensitivity(1.0, PercentRange(10), "{0} + {1}")

    def test_malformed_formula(self):
        with pytest.raises(FormulaError):
            analyze_sensitivity(1.0, PercentRange(10), "{0} *")

    def test_base_value_must_be_finite(self):
        with pytest.raises(InvalidArgument):
            analyze_sensitivity(float("nan"), PercentRange(10), "{0}")

    def test_multiplier_requires_low_below_high(self):
        with pytest.raises(InvalidArgument):
            MultiplierRange(1.2, 0.8)


class TestMultiplierRange:
    def test_bounds_scale_base(self):
        assert MultiplierRange(0.5, 1.5).bounds(100.0) == (50.0, 150.0)

    def test_negative_base_keeps_order(self):
        low, high = MultiplierRange(0.8, 1.2).bounds(-10.0)
        assert low == pytest.approx(-12.0)
        assert high == pytest.approx(-8.0)

    def test_zero_base_is_empty(self):
        with pytest.raises(InvalidArgument):
            analyze_sensitivity(0.0, MultiplierRange(0.5, 1.5), "{0}")


class TestAnalyzeInput:
    input_names = ["Price", "Volume"]
    formula = "{0} * {1} - 500"

    def test_sweeps_named_input_holding_others(self):
        result = analyze_input_sensitivity(
            self.input_names,
            {"Volume": 100, "Price": 10},
            "Volume",
            MultiplierRange(0.5, 1.5),
            self.formula,
            steps=3,
        )
        assert result.input_name == "Volume"
        assert result.base_value == 100.0
        assert result.base_output == 500.0
        assert [p.input_value for p in result.points] == [50.0, 100.0, 150.0]
        assert [p.output_value for p in result.points] == [0.0, 500.0, 1000.0]
        assert result.sensitivity_factor == 10.0
        assert result.to_dict()["input_name"] == "Volume"

    def test_base_values_in_input_order(self):
        result = SensitivityAnalyzer(steps=2).analyze_input(
            self.input_names, [10, 100], "Price", {"percentChange": 10}, self.formula
        )
        assert [p.output_value for p in result.points] == [400.0, 600.0]
        assert result.sensitivity_factor == 100.0

    def test_single_input_result_has_no_name(self):
        result = analyze_sensitivity(1.0, PercentRange(10), "{0}")
        assert result.input_name is None
        assert "input_name" not in result.to_dict()

    def test_unknown_input(self):
        with pytest.raises(InvalidArgument, match="Unknown input"):
            analyze_input_sensitivity(self.input_names, [10, 100], "Cost", PercentRange(10), self.formula)

    def test_missing_base_value(self):
        with pytest.raises(InvalidArgument, match="Volume"):
            analyze_input_sensitivity(self.input_names, {"Price": 10}, "Price", PercentRange(10), self.formula)

    def test_base_value_count_mismatch(self):
        with pytest.raises(InvalidArgument):
            analyze_input_sensitivity(self.input_names, [10], "Price", PercentRange(10), self.formula)

    def test_duplicate_input_names(self):
        with pytest.raises(InvalidArgument):
            analyze_input_sensitivity(["a", "a"], [1, 2], "a", PercentRange(10), "{0}")

    def test_placeholder_beyond_inputs(self):
        with pytest.raises(FormulaError):
            analyze_input_sensitivity(self.input_names, [10, 100], "Price", PercentRange(10), "{0} * {2}")
