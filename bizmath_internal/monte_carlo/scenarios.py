"""
PURPOSE: Discrete scenario comparison ("what-if" cases).

Every scenario assigns one value to each declared input. A value is either a
fixed number or a Distribution; fixed-only scenarios repeat the same scalar
for every iteration, which is a valid (deterministic) outcome set.

RESPONSIBILITIES:
- Validate scenarios against the declared input names before any sampling
- Run each scenario through the formula
- Compare scenarios by a metric (best = highest value, worst = lowest)
- Single responsibility: comparison only, statistics come from outputs.py
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import NUM_RUNS, RANDOM_SEED
from .distributions import Distribution, RandomState, make_rng
from .errors import InvalidArgument, NumericError
from .expression import Formula, require_arity
from .outputs import OutcomeSet
from .simulation import validate_iterations

logger = logging.getLogger(__name__)

ScenarioValue = Union[float, Distribution]


class ScenarioMetric(str, Enum):
    MEAN = "mean"
    MEDIAN = "median"
    P5 = "p5"
    P95 = "p95"
    STD_DEV = "stdDev"
    VAR95 = "var95"
    CVAR95 = "cvar95"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.replace("_", "").lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None

    def of(self, outcomes: OutcomeSet) -> float:
        if self is ScenarioMetric.MEAN:
            return outcomes.statistics.mean
        if self is ScenarioMetric.MEDIAN:
            return outcomes.statistics.median
        if self is ScenarioMetric.P5:
            return outcomes.percentiles.p5
        if self is ScenarioMetric.P95:
            return outcomes.percentiles.p95
        if self is ScenarioMetric.STD_DEV:
            return outcomes.statistics.std_dev
        if self is ScenarioMetric.VAR95:
            return outcomes.value_at_risk(0.95)
        return outcomes.conditional_value_at_risk(0.95)


def resolve_metric(metric: Union[str, ScenarioMetric]) -> ScenarioMetric:
    try:
        return ScenarioMetric(metric)
    except ValueError:
        supported = ", ".join(m.value for m in ScenarioMetric)
        raise InvalidArgument(f"Unknown metric: {metric}. Supported: {supported}") from None


def _scenario_value(scenario_name: str, value) -> ScenarioValue:
    if isinstance(value, Distribution):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgument(
            f"Scenario '{scenario_name}' values must be numbers or distributions, got {value!r}"
        )
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgument(f"Scenario '{scenario_name}' has a non-finite value {value}")
    return value


@dataclass(frozen=True)
class Scenario:
    """A named, fully specified assignment of input values."""

    name: str
    values: Tuple[ScenarioValue, ...]

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgument(f"Scenario name must be a non-empty string, got {self.name!r}")
        if isinstance(self.values, (str, bytes)) or not isinstance(self.values, Iterable):
            raise InvalidArgument(f"Scenario '{self.name}' values must be a list, got {self.values!r}")
        object.__setattr__(
            self, "values", tuple(_scenario_value(self.name, v) for v in self.values)
        )

    @classmethod
    def from_mapping(cls, name: str, values: Mapping[str, Any], input_names: Sequence[str]) -> "Scenario":
        """Order a name-keyed mapping by ``input_names``."""
        if not isinstance(values, Mapping):
            raise InvalidArgument(f"Scenario '{name}' values must be an object, got {values!r}")
        missing = [n for n in input_names if n not in values]
        if missing:
            raise InvalidArgument(f"Scenario '{name}' is missing values for: {', '.join(missing)}")
        unknown = [k for k in values if k not in input_names]
        if unknown:
            raise InvalidArgument(f"Scenario '{name}' has unknown inputs: {', '.join(map(str, unknown))}")
        return cls(name=name, values=tuple(values[n] for n in input_names))

    @property
    def is_deterministic(self) -> bool:
        return not any(isinstance(v, Distribution) for v in self.values)

    def columns(self, rng: np.random.Generator, size: int) -> List[np.ndarray]:
        return [
            v.sample_many(rng, size) if isinstance(v, Distribution) else np.full(size, v)
            for v in self.values
        ]


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    outcomes: OutcomeSet

    def metric(self, metric: Union[str, ScenarioMetric]) -> float:
        return resolve_metric(metric).of(self.outcomes)


class ScenarioComparison:
    """Results of a scenario run, in declaration order."""

    def __init__(self, input_names: Sequence[str], formula: str, scenario_results: Sequence[ScenarioResult]):
        self.input_names = list(input_names)
        self.formula = formula
        self.scenario_results = list(scenario_results)

    @property
    def results(self) -> Dict[str, OutcomeSet]:
        return {r.name: r.outcomes for r in self.scenario_results}

    def __getitem__(self, name: str) -> OutcomeSet:
        for result in self.scenario_results:
            if result.name == name:
                return result.outcomes
        raise KeyError(name)

    def _scored(self, metric: Union[str, ScenarioMetric]) -> List[Tuple[ScenarioResult, float]]:
        metric = resolve_metric(metric)
        return [(r, metric.of(r.outcomes)) for r in self.scenario_results]

    def rank_scenarios(
        self,
        metric: Union[str, ScenarioMetric] = ScenarioMetric.MEAN,
        ascending: bool = False,
    ) -> List[ScenarioResult]:
        """
        Order scenarios by ``metric``, highest first unless ``ascending``.

        Ascending order suits risk metrics such as stdDev. Ties keep
        declaration order and NaN sorts last in either direction.
        """
        sign = 1.0 if ascending else -1.0
        scored = self._scored(metric)
        scored.sort(key=lambda s: (math.isnan(s[1]), sign * s[1] if not math.isnan(s[1]) else 0.0))
        return [r for r, _ in scored]

    def best_scenario(self, metric: Union[str, ScenarioMetric] = ScenarioMetric.MEAN) -> ScenarioResult:
        return self._extreme(metric, best=True)

    def worst_scenario(self, metric: Union[str, ScenarioMetric] = ScenarioMetric.MEAN) -> ScenarioResult:
        return self._extreme(metric, best=False)

    def _extreme(self, metric, best: bool) -> ScenarioResult:
        scored = [(r, v) for r, v in self._scored(metric) if not math.isnan(v)]
        if not scored:
            raise NumericError(f"No scenario has a defined {resolve_metric(metric).value}")
        # max/min return the first extremal element, so ties go to the earliest declared
        pick = max if best else min
        return pick(scored, key=lambda s: s[1])[0]

    def summary_table(self, metrics: Optional[Sequence[Union[str, ScenarioMetric]]] = None) -> List[Dict[str, Any]]:
        metrics = [resolve_metric(m) for m in (metrics or list(ScenarioMetric))]
        return [
            {"scenario": r.name, **{m.value: m.of(r.outcomes) for m in metrics}}
            for r in self.scenario_results
        ]

    def probability_above(self, threshold: float) -> Dict[str, float]:
        return {r.name: r.outcomes.probability_above(threshold) for r in self.scenario_results}

    def risk_adjusted_ratios(self) -> Dict[str, float]:
        """Mean divided by standard deviation; 0.0 for a zero-variance scenario."""
        ratios = {}
        for r in self.scenario_results:
            statistics = r.outcomes.statistics
            ratios[r.name] = 0.0 if statistics.std_dev == 0 else statistics.mean / statistics.std_dev
        return ratios

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_names": self.input_names,
            "formula": self.formula,
            "scenarios": {r.name: r.outcomes.to_dict() for r in self.scenario_results},
            "summary": self.summary_table(),
            "best": {m.value: self._name_or_none(m, True) for m in ScenarioMetric},
            "worst": {m.value: self._name_or_none(m, False) for m in ScenarioMetric},
            "risk_adjusted_ratios": self.risk_adjusted_ratios(),
        }

    def _name_or_none(self, metric: ScenarioMetric, best: bool) -> Optional[str]:
        try:
            return self._extreme(metric, best).name
        except NumericError:
            return None


def _coerce_scenario(item, input_names: Sequence[str]) -> Scenario:
    if isinstance(item, Scenario):
        return item
    if isinstance(item, Mapping):
        name = item.get("name")
        values = item.get("values", item.get("fixedValues"))
        if isinstance(values, Mapping):
            return Scenario.from_mapping(name, values, input_names)
        return Scenario(name=name, values=values)
    try:
        name, values = item
    except (TypeError, ValueError):
        raise InvalidArgument(f"Expected Scenario or (name, values), got {item!r}") from None
    if isinstance(values, Mapping):
        return Scenario.from_mapping(name, values, input_names)
    return Scenario(name=name, values=values)


class ScenarioComparator:
    """Runs every scenario through one formula with a shared random stream."""

    def __init__(self, iterations_per_scenario: int = NUM_RUNS, random_seed: RandomState = RANDOM_SEED):
        self.iterations_per_scenario = validate_iterations(iterations_per_scenario)
        self.rng = make_rng(random_seed)

    def run(
        self,
        input_names: Sequence[str],
        formula: Union[str, Formula],
        scenarios: Sequence[Any],
    ) -> ScenarioComparison:
        """
        Run all scenarios.

        Raises:
            InvalidArgument: bad or duplicate names, or a value vector whose
                             length differs from the number of input names
            FormulaError: malformed formula or placeholder without an input
        """
        if not input_names:
            raise InvalidArgument("At least one input name is required")
        input_names = list(input_names)
        for name in input_names:
            if not isinstance(name, str) or not name.strip():
                raise InvalidArgument(f"Input names must be non-empty strings, got {name!r}")
        if len(set(input_names)) != len(input_names):
            raise InvalidArgument("Input names must be unique")
        parsed = require_arity(formula, len(input_names))

        if not scenarios:
            raise InvalidArgument("At least one scenario is required")
        scenarios = [_coerce_scenario(item, input_names) for item in scenarios]
        seen = set()
        for scenario in scenarios:
            if len(scenario.values) != len(input_names):
                raise InvalidArgument(
                    f"Scenario '{scenario.name}' has {len(scenario.values)} values, "
                    f"expected {len(input_names)}"
                )
            if scenario.name in seen:
                raise InvalidArgument(f"Duplicate scenario name: {scenario.name}")
            seen.add(scenario.name)

        size = self.iterations_per_scenario
        results = []
        for scenario in scenarios:
            outcomes = parsed.evaluate_many(scenario.columns(self.rng, size), size=size)
            results.append(ScenarioResult(scenario.name, OutcomeSet(outcomes)))
        logger.info("Compared %d scenarios over %d iterations each", len(results), size)
        return ScenarioComparison(input_names, parsed.text, results)


def run_scenarios(
    input_names: Sequence[str],
    formula: Union[str, Formula],
    scenarios: Sequence[Any],
    iterations_per_scenario: int = NUM_RUNS,
    random_seed: RandomState = RANDOM_SEED,
) -> ScenarioComparison:
    return ScenarioComparator(iterations_per_scenario, random_seed).run(input_names, formula, scenarios)
