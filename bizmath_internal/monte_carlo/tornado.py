"""
PURPOSE: Tornado analysis - rank input variables by the output swing each one causes.

Each variable is moved to its low and then its high value while every other
variable stays at its base value. The absolute difference between the two
outputs is that variable's range; variables are returned widest range first.

SRP/DRY: Single responsibility = one-at-a-time perturbation and ranking.
         No sampling, no sweep (see sensitivity.py).
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import TOP_N_DRIVERS
from .errors import InvalidArgument
from .expression import Formula, require_arity
from .sensitivity import VariableRange, align_base_values, coerce_variable_range


def _finite(label: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgument(f"{label} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgument(f"{label} must be finite, got {value}")
    return value


@dataclass(frozen=True)
class TornadoVariable:
    name: str
    base: float
    low: float
    high: float

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgument(f"Variable name must be a non-empty string, got {self.name!r}")
        for field_name in ("base", "low", "high"):
            value = _finite(f"{self.name}.{field_name}", getattr(self, field_name))
            object.__setattr__(self, field_name, value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TornadoVariable":
        """Accepts name/base/low/high or name/baseValue/lowValue/highValue."""
        if not isinstance(data, Mapping):
            raise InvalidArgument(f"Variable must be an object, got {data!r}")
        values = {}
        for field_name in ("base", "low", "high"):
            for key in (field_name, f"{field_name}Value", f"{field_name}_value"):
                if key in data:
                    values[field_name] = data[key]
                    break
            else:
                raise InvalidArgument(f"Variable {data.get('name')!r} is missing '{field_name}'")
        return cls(name=data.get("name"), **values)


def variables_from_range(
    input_names: Sequence[str],
    base_values: Union[Mapping[str, float], Sequence[float]],
    value_range: Union[VariableRange, Mapping[str, Any]],
) -> List[TornadoVariable]:
    """Apply one range (e.g. multipliers 0.8 to 1.2) to every input's base value."""
    base_vector = align_base_values(input_names, base_values)
    value_range = coerce_variable_range(value_range)
    variables = []
    for name, base in zip(input_names, base_vector):
        low, high = value_range.bounds(base)
        variables.append(TornadoVariable(name, base, low, high))
    return variables


@dataclass(frozen=True)
class TornadoImpact:
    """Impact of a single variable on the output.

    Attributes:
        rank (int): Rank order (1 = widest swing).
        variable_name (str): Name of the variable.
        low_output (float): Output with the variable at its low value.
        high_output (float): Output with the variable at its high value.
        range (float): |high_output - low_output|.
        low_delta (float): low_output minus the base output.
        high_delta (float): high_output minus the base output.
        percent_of_base (float): range as a percentage of |base output|, NaN when the base output is 0.
    """

    rank: int
    variable_name: str
    low_output: float
    high_output: float
    range: float
    low_delta: float
    high_delta: float
    percent_of_base: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "rank": self.rank,
            "variable": self.variable_name,
            "low_output": self.low_output,
            "high_output": self.high_output,
            "range": self.range,
            "low_delta": self.low_delta,
            "high_delta": self.high_delta,
            "percent_of_base": self.percent_of_base,
        }


@dataclass(frozen=True)
class TornadoResult:
    base_output: float
    impacts: Tuple[TornadoImpact, ...]

    @property
    def variable_names(self) -> List[str]:
        return [impact.variable_name for impact in self.impacts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_output": self.base_output,
            "impacts": [impact.to_dict() for impact in self.impacts],
        }


class TornadoAnalyzer:
    """
    Ranks variables by the output range produced between their low and high bounds.

    Ties keep declaration order; a NaN range (e.g. 0/0 in the formula) ranks last.
    """

    def __init__(self, top_n: Optional[int] = TOP_N_DRIVERS):
        """
        Initialize analyzer.

        Args:
            top_n: Number of top variables to return (None = all).
        """
        if top_n is not None and (isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1):
            raise InvalidArgument(f"top_n must be a positive integer or None, got {top_n!r}")
        self.top_n = top_n

    def analyze(
        self,
        variables: Sequence[Union[TornadoVariable, Mapping[str, Any]]],
        formula: Union[str, Formula],
    ) -> TornadoResult:
        variables = [
            v if isinstance(v, TornadoVariable) else TornadoVariable.from_mapping(v)
            for v in (variables or [])
        ]
        if not variables:
            raise InvalidArgument("Tornado analysis requires at least one variable")
        names = [v.name for v in variables]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidArgument(f"Duplicate variable names: {', '.join(duplicates)}")
        parsed = require_arity(formula, len(variables))

        # Row 0 is the base case, rows 1..k put variable i low, rows k+1..2k put it high
        count = len(variables)
        columns = []
        for i, variable in enumerate(variables):
            column = np.full(2 * count + 1, variable.base)
            column[1 + i] = variable.low
            column[1 + count + i] = variable.high
            columns.append(column)
        outputs = parsed.evaluate_many(columns)
        base_output = float(outputs[0])

        swings = []
        for i, variable in enumerate(variables):
            low_output = float(outputs[1 + i])
            high_output = float(outputs[1 + count + i])
            swings.append((variable.name, low_output, high_output, abs(high_output - low_output)))

        swings.sort(key=lambda s: (math.isnan(s[3]), -s[3] if not math.isnan(s[3]) else 0.0))
        if self.top_n is not None:
            swings = swings[: self.top_n]

        impacts = []
        for rank, (name, low_output, high_output, swing) in enumerate(swings, 1):
            if base_output == 0:
                percent_of_base = float("nan")
            else:
                percent_of_base = swing / abs(base_output) * 100.0
            impacts.append(
                TornadoImpact(
                    rank=rank,
                    variable_name=name,
                    low_output=low_output,
                    high_output=high_output,
                    range=swing,
                    low_delta=low_output - base_output,
                    high_delta=high_output - base_output,
                    percent_of_base=percent_of_base,
                )
            )
        return TornadoResult(base_output=base_output, impacts=tuple(impacts))


def analyze_tornado(
    variables: Sequence[Union[TornadoVariable, Mapping[str, Any]]],
    formula: Union[str, Formula],
    top_n: Optional[int] = TOP_N_DRIVERS,
) -> TornadoResult:
    return TornadoAnalyzer(top_n=top_n).analyze(variables, formula)
