"""
PURPOSE: Single-variable sensitivity sweeps.

Sweeps one input across a range (a percent window around its base value,
multipliers of it, or explicit bounds), evaluates the formula at equally
spaced points and reports a finite-difference sensitivity factor:

    sensitivity_factor = (max_output - min_output) / (max_input - min_input)

The factor approximates local responsiveness over the swept range only; it is
exact for linear formulas and is not an analytic derivative.

For a model with several inputs, analyze_input sweeps one named input while
the others stay at their base values.

SRP/DRY: Single responsibility = one-variable sweep.
         Multi-variable ranking lives in tornado.py.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DEFAULT_SENSITIVITY_STEPS, MIN_SENSITIVITY_STEPS
from .errors import InvalidArgument
from .expression import Formula, require_arity


def _finite(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgument(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgument(f"{name} must be finite, got {value}")
    return value


@dataclass(frozen=True)
class PercentRange:
    """Symmetric window base +/- |base| * percent / 100."""

    percent: float

    def __post_init__(self):
        percent = _finite("percentChange", self.percent)
        if percent <= 0:
            raise InvalidArgument(f"percentChange must be positive, got {percent}")
        object.__setattr__(self, "percent", percent)

    def bounds(self, base_value: float) -> Tuple[float, float]:
        delta = abs(base_value) * self.percent / 100.0
        return base_value - delta, base_value + delta


@dataclass(frozen=True)
class ExplicitRange:
    min: float
    max: float

    def __post_init__(self):
        low = _finite("min", self.min)
        high = _finite("max", self.max)
        if low >= high:
            raise InvalidArgument(f"Sensitivity range requires min < max, got min={low}, max={high}")
        object.__setattr__(self, "min", low)
        object.__setattr__(self, "max", high)

    def bounds(self, base_value: float) -> Tuple[float, float]:
        return self.min, self.max


@dataclass(frozen=True)
class MultiplierRange:
    """Window [base * low, base * high], e.g. 0.8 to 1.2 for -20% to +20%."""

    low: float
    high: float

    def __post_init__(self):
        low = _finite("minMultiplier", self.low)
        high = _finite("maxMultiplier", self.high)
        if low >= high:
            raise InvalidArgument(f"Multiplier range requires low < high, got low={low}, high={high}")
        object.__setattr__(self, "low", low)
        object.__setattr__(self, "high", high)

    def bounds(self, base_value: float) -> Tuple[float, float]:
        # A negative base flips the order
        first, second = base_value * self.low, base_value * self.high
        return min(first, second), max(first, second)


VariableRange = Union[PercentRange, ExplicitRange, MultiplierRange]


def variable_range_from_mapping(data: Mapping[str, Any]) -> VariableRange:
    """
    Build a range from its wire form.

    Accepted: ``{"percentChange": p}``, ``{"min": a, "max": b}`` or
    ``{"minMultiplier": a, "maxMultiplier": b}``.
    """
    if not isinstance(data, Mapping):
        raise InvalidArgument(f"Range must be an object, got {data!r}")
    if "percentChange" in data or "percent_change" in data:
        return PercentRange(data.get("percentChange", data.get("percent_change")))
    if "min" in data and "max" in data:
        return ExplicitRange(data["min"], data["max"])
    if "minMultiplier" in data and "maxMultiplier" in data:
        return MultiplierRange(data["minMultiplier"], data["maxMultiplier"])
    raise InvalidArgument(
        "Range requires 'percentChange', both 'min' and 'max', or both 'minMultiplier' and 'maxMultiplier'"
    )


@dataclass(frozen=True)
class SensitivityPoint:
    input_value: float
    output_value: float

    def to_dict(self) -> Dict[str, float]:
        return {"input": self.input_value, "output": self.output_value}


@dataclass(frozen=True)
class SensitivityResult:
    """Outcome of one sweep.

    Attributes:
        base_value (float): Input value the window is centred on.
        base_output (float): Formula evaluated with every input at its base value.
        points (tuple): SensitivityPoint per step, ascending input.
        input_name (str): Swept input, None for a single-input sweep.
    """

    base_value: float
    base_output: float
    points: Tuple[SensitivityPoint, ...]
    input_name: Optional[str] = None

    @property
    def min_input(self) -> float:
        return self.points[0].input_value

    @property
    def max_input(self) -> float:
        return self.points[-1].input_value

    @property
    def min_output(self) -> float:
        return float(np.min([p.output_value for p in self.points]))

    @property
    def max_output(self) -> float:
        return float(np.max([p.output_value for p in self.points]))

    @property
    def input_range(self) -> float:
        return self.max_input - self.min_input

    @property
    def output_range(self) -> float:
        return self.max_output - self.min_output

    @property
    def sensitivity_factor(self) -> float:
        return self.output_range / self.input_range

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "base_value": self.base_value,
            "base_output": self.base_output,
            "points": [p.to_dict() for p in self.points],
            "min_input": self.min_input,
            "max_input": self.max_input,
            "min_output": self.min_output,
            "max_output": self.max_output,
            "input_range": self.input_range,
            "output_range": self.output_range,
            "sensitivity_factor": self.sensitivity_factor,
        }
        if self.input_name is not None:
            data["input_name"] = self.input_name
        return data


def coerce_variable_range(value_range) -> VariableRange:
    if isinstance(value_range, Mapping):
        value_range = variable_range_from_mapping(value_range)
    if not isinstance(value_range, (PercentRange, ExplicitRange, MultiplierRange)):
        raise InvalidArgument(f"Unsupported range {value_range!r}")
    return value_range


def align_base_values(input_names: Sequence[str], base_values) -> List[float]:
    """Align base values (a mapping by name or a sequence in input order) to ``input_names``."""
    if isinstance(input_names, str) or not input_names:
        raise InvalidArgument("input_names must be a non-empty list of names")
    if len(set(input_names)) != len(input_names):
        raise InvalidArgument(f"Duplicate input names in {list(input_names)}")
    if isinstance(base_values, Mapping):
        missing = [name for name in input_names if name not in base_values]
        if missing:
            raise InvalidArgument(f"No base value for input(s): {', '.join(missing)}")
        return [_finite(f"baseValues.{name}", base_values[name]) for name in input_names]
    if isinstance(base_values, (str, bytes)) or not isinstance(base_values, Sequence):
        raise InvalidArgument(f"base_values must be a mapping or a sequence, got {base_values!r}")
    if len(base_values) != len(input_names):
        raise InvalidArgument(
            f"Expected {len(input_names)} base values for {list(input_names)}, got {len(base_values)}"
        )
    return [_finite(f"baseValues.{name}", value) for name, value in zip(input_names, base_values)]


class SensitivityAnalyzer:
    """Sweeps one input through a formula, holding any other inputs at their base values."""

    def __init__(self, steps: int = DEFAULT_SENSITIVITY_STEPS):
        if isinstance(steps, bool) or not isinstance(steps, int) or steps < MIN_SENSITIVITY_STEPS:
            raise InvalidArgument(f"steps must be an integer >= {MIN_SENSITIVITY_STEPS}, got {steps!r}")
        self.steps = steps

    def _sweep(
        self,
        parsed: Formula,
        base_vector: List[float],
        index: int,
        value_range: VariableRange,
        input_name: Optional[str] = None,
    ) -> SensitivityResult:
        base_value = base_vector[index]
        low, high = value_range.bounds(base_value)
        if not low < high:
            raise InvalidArgument(
                f"Sensitivity window around base value {base_value} is empty ({low}, {high})"
            )

        inputs = np.linspace(low, high, self.steps)
        columns = [np.full(self.steps, value) for value in base_vector]
        columns[index] = inputs
        outputs = parsed.evaluate_many(columns)
        points = tuple(
            SensitivityPoint(input_value=float(x), output_value=float(y))
            for x, y in zip(inputs, outputs)
        )
        return SensitivityResult(
            base_value=base_value,
            base_output=parsed.evaluate(base_vector),
            points=points,
            input_name=input_name,
        )

    def analyze(
        self,
        base_value: float,
        value_range: VariableRange,
        formula: Union[str, Formula],
    ) -> SensitivityResult:
        """
        Evaluate ``formula`` at ``steps`` evenly spaced inputs, both ends included.

        Raises:
            InvalidArgument: non-finite base value, or an empty window
            FormulaError: malformed formula or a placeholder other than {0}
        """
        base_value = _finite("baseValue", base_value)
        value_range = coerce_variable_range(value_range)
        parsed = require_arity(formula, 1)
        return self._sweep(parsed, [base_value], 0, value_range)

    def analyze_input(
        self,
        input_names: Sequence[str],
        base_values: Union[Mapping[str, float], Sequence[float]],
        input_name: str,
        value_range: VariableRange,
        formula: Union[str, Formula],
    ) -> SensitivityResult:
        """
        Sweep ``input_name`` of a multi-input formula.

        Args:
            input_names: Ordered inputs; input i binds to placeholder {i}
            base_values: Base value per input, by name or in input order
            input_name: The input to vary
            value_range: Window around that input's base value
            formula: Formula over all inputs

        Returns:
            SensitivityResult whose points pair the swept input with the output

        Raises:
            InvalidArgument: unknown input, missing or non-finite base values,
                             or an empty window
            FormulaError: malformed formula or a placeholder beyond the inputs
        """
        base_vector = align_base_values(input_names, base_values)
        if input_name not in input_names:
            raise InvalidArgument(f"Unknown input '{input_name}', expected one of {list(input_names)}")
        value_range = coerce_variable_range(value_range)
        parsed = require_arity(formula, len(input_names))
        index = list(input_names).index(input_name)
        return self._sweep(parsed, base_vector, index, value_range, input_name=input_name)


def analyze_sensitivity(
    base_value: float,
    value_range: Union[VariableRange, Mapping[str, Any]],
    formula: Union[str, Formula],
    steps: int = DEFAULT_SENSITIVITY_STEPS,
) -> SensitivityResult:
    return SensitivityAnalyzer(steps=steps).analyze(base_value, value_range, formula)


def analyze_input_sensitivity(
    input_names: Sequence[str],
    base_values: Union[Mapping[str, float], Sequence[float]],
    input_name: str,
    value_range: Union[VariableRange, Mapping[str, Any]],
    formula: Union[str, Formula],
    steps: int = DEFAULT_SENSITIVITY_STEPS,
) -> SensitivityResult:
    return SensitivityAnalyzer(steps=steps).analyze_input(input_names, base_values, input_name, value_range, formula)
