"""
Monte Carlo simulation, sensitivity and scenario-comparison engine.

PURPOSE:
    Quantify the uncertainty of a business formula by sampling its inputs from
    parametric distributions, then summarize the outcomes (percentiles,
    confidence intervals, VaR/CVaR, histograms) and explain them through
    one-variable sweeps, tornado rankings and discrete scenario comparisons.

RESPONSIBILITIES:
    - Validate distribution parameters and sample from an explicit Generator
    - Parse and evaluate placeholder formulas such as "{0} * (1 - {1})"
    - Run N independent iterations and aggregate the outcomes
    - Sweep, perturb and compare inputs around a base case

SRP/DRY CHECK:
    Each submodule has a single responsibility:
    - distributions.py: Parameter validation and sampling only
    - expression.py: Formula parsing and evaluation only
    - simulation.py: Iteration loop only
    - outputs.py: Outcome statistics only
    - sensitivity.py: One-variable sweep only
    - tornado.py: One-at-a-time perturbation ranking only
    - scenarios.py: Discrete scenario comparison only
"""

from .distributions import (
    Distribution,
    DistributionKind,
    create_distribution,
    make_rng,
)
from .errors import FormulaError, InvalidArgument, InvalidParameter, MonteCarloError, NumericError
from .expression import Formula, evaluate, parse_formula
from .outputs import HistogramBin, OutcomeSet, Percentiles, SimulationStatistics
from .scenarios import (
    Scenario,
    ScenarioComparator,
    ScenarioComparison,
    ScenarioMetric,
    run_scenarios,
)
from .sensitivity import (
    ExplicitRange,
    MultiplierRange,
    PercentRange,
    SensitivityAnalyzer,
    SensitivityPoint,
    SensitivityResult,
    analyze_input_sensitivity,
    analyze_sensitivity,
)
from .simulation import MonteCarloSimulation, SimulationInput, run_simulation
from .tornado import (
    TornadoAnalyzer,
    TornadoImpact,
    TornadoResult,
    TornadoVariable,
    analyze_tornado,
    variables_from_range,
)

__version__ = "0.1.0"

__all__ = [
    "Distribution",
    "DistributionKind",
    "create_distribution",
    "make_rng",
    "MonteCarloError",
    "InvalidArgument",
    "InvalidParameter",
    "FormulaError",
    "NumericError",
    "Formula",
    "evaluate",
    "parse_formula",
    "OutcomeSet",
    "SimulationStatistics",
    "Percentiles",
    "HistogramBin",
    "MonteCarloSimulation",
    "SimulationInput",
    "run_simulation",
    "SensitivityAnalyzer",
    "SensitivityResult",
    "SensitivityPoint",
    "PercentRange",
    "ExplicitRange",
    "MultiplierRange",
    "analyze_sensitivity",
    "analyze_input_sensitivity",
    "TornadoAnalyzer",
    "TornadoVariable",
    "TornadoImpact",
    "TornadoResult",
    "analyze_tornado",
    "variables_from_range",
    "Scenario",
    "ScenarioMetric",
    "ScenarioComparator",
    "ScenarioComparison",
    "run_scenarios",
]
