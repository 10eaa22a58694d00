"""
PURPOSE: In-process call boundary for the Monte Carlo engine.

Each handler takes a plain ``arguments`` dict, validates it with a pydantic
request model, calls the core and returns a JSON-compatible dict. Transport,
tool registration and text rendering belong to the caller.
"""

import logging
import math
from typing import Any, Callable

from pydantic import ValidationError

from bizmath_internal.monte_carlo.distributions import create_distribution, make_rng
from bizmath_internal.monte_carlo.errors import FormulaError, InvalidArgument, NumericError
from bizmath_internal.monte_carlo.outputs import OutcomeSet
from bizmath_internal.monte_carlo.scenarios import Scenario, run_scenarios
from bizmath_internal.monte_carlo.sensitivity import analyze_input_sensitivity, analyze_sensitivity
from bizmath_internal.monte_carlo.simulation import SimulationInput, run_simulation
from bizmath_internal.monte_carlo.tornado import TornadoVariable, analyze_tornado, variables_from_range
from bizmath_internal.tool_api.tool_models import (
    AnalyzeResultsRequest,
    AnalyzeScenariosRequest,
    CreateDistributionRequest,
    ErrorDetail,
    ErrorOutput,
    ProbabilityRequest,
    RunMonteCarloRequest,
    ScenarioInputSpec,
    SensitivityRequest,
    TornadoRequest,
    ValueAtRiskRequest,
)

logger = logging.getLogger(__name__)


def error_response(code: str, message: str) -> dict[str, Any]:
    return ErrorOutput(error=ErrorDetail(code=code, message=message)).model_dump()


def _summarize(outcomes: OutcomeSet, bins: int | None = None, include_values: bool = False) -> dict[str, Any]:
    response = outcomes.to_dict(include_values=include_values)
    response["count"] = len(outcomes)
    statistics = outcomes.statistics
    # An infinite outcome (e.g. x/0) or an overflowing span leaves no finite range to bin
    if math.isfinite(statistics.max - statistics.min):
        response["histogram"] = [b.to_dict() for b in outcomes.histogram(bins)]
    else:
        response["histogram"] = None
    response["risk"] = {
        "confidence_level": 0.95,
        "value_at_risk": outcomes.value_at_risk(0.95),
        "conditional_value_at_risk": outcomes.conditional_value_at_risk(0.95),
    }
    return response


def handle_create_distribution(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle create_distribution"""
    req = CreateDistributionRequest(**arguments)
    distribution = create_distribution(req.type, req.parameters)
    response = distribution.describe()
    response["expected_value"] = distribution.expected_value()
    response["variance"] = distribution.variance()
    if req.sample_size:
        samples = distribution.sample_many(make_rng(req.random_seed), req.sample_size)
        response["samples"] = samples.tolist()
        response["sample_statistics"] = OutcomeSet(samples).statistics.to_dict()
    return response


def handle_run_monte_carlo(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle run_monte_carlo"""
    req = RunMonteCarloRequest(**arguments)
    inputs = [SimulationInput.from_spec(spec.name, spec.distribution, spec.parameters) for spec in req.inputs]
    outcomes = run_simulation(inputs, req.formula, req.iterations, req.random_seed, req.workers)

    response = {
        "formula": req.formula,
        "iterations": req.iterations,
        "inputs": [{"name": item.name, **item.distribution.describe()} for item in inputs],
    }
    response.update(_summarize(outcomes, req.bins, req.include_values))
    if req.thresholds:
        response["threshold_probabilities"] = [
            {"threshold": t, "probability_above": outcomes.probability_above(t)} for t in req.thresholds
        ]
    return response


def handle_analyze_simulation_results(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle analyze_simulation_results"""
    req = AnalyzeResultsRequest(**arguments)
    response = {"label": req.label}
    response.update(_summarize(OutcomeSet(req.values), req.bins))
    return response


def handle_calculate_value_at_risk(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle calculate_value_at_risk"""
    req = ValueAtRiskRequest(**arguments)
    outcomes = OutcomeSet(req.values)
    return {
        "count": len(outcomes),
        "confidence_level": req.confidence_level,
        "value_at_risk": outcomes.value_at_risk(req.confidence_level),
        "conditional_value_at_risk": outcomes.conditional_value_at_risk(req.confidence_level),
        "probability_of_loss": outcomes.probability_of_loss(),
    }


def handle_calculate_probability(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle calculate_probability"""
    req = ProbabilityRequest(**arguments)
    outcomes = OutcomeSet(req.values)
    if req.query == "between":
        if req.lower is None or req.upper is None:
            raise InvalidArgument("'between' requires both 'lower' and 'upper'")
        probability = outcomes.probability_between(req.lower, req.upper)
        return {"type": req.query, "lower": req.lower, "upper": req.upper, "probability": probability}

    if req.threshold is None:
        raise InvalidArgument(f"'{req.query}' requires 'threshold'")
    if req.query == "above":
        probability = outcomes.probability_above(req.threshold)
    else:
        probability = outcomes.probability_below(req.threshold)
    return {"type": req.query, "threshold": req.threshold, "probability": probability}


def handle_sensitivity_analysis(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle sensitivity_analysis"""
    req = SensitivityRequest(**arguments)
    if req.input_names is not None:
        if req.base_values is None or req.input_name is None:
            raise InvalidArgument("'inputNames' requires 'baseValues' and 'inputName'")
        result = analyze_input_sensitivity(
            req.input_names, req.base_values, req.input_name, req.variable_range, req.formula, req.steps
        )
        return {"variable_name": req.input_name, **result.to_dict()}

    if req.base_value is None:
        raise InvalidArgument("'baseValue' is required, or 'inputNames' with 'baseValues' and 'inputName'")
    result = analyze_sensitivity(req.base_value, req.variable_range, req.formula, req.steps)
    return {"variable_name": req.variable_name, **result.to_dict()}


def handle_tornado_analysis(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle tornado_analysis"""
    req = TornadoRequest(**arguments)
    if req.variables is not None:
        variables = [TornadoVariable(v.name, v.base, v.low, v.high) for v in req.variables]
    elif req.input_names is not None and req.base_values is not None and req.variable_range is not None:
        variables = variables_from_range(req.input_names, req.base_values, req.variable_range)
    else:
        raise InvalidArgument("Provide 'variables', or 'inputNames' with 'baseValues' and 'range'")
    return analyze_tornado(variables, req.formula, top_n=req.top_n).to_dict()


def _scenario_entry(scenario_name: str, entry):
    if not isinstance(entry, ScenarioInputSpec):
        return entry
    if (entry.value is None) == (entry.distribution is None):
        raise InvalidArgument(
            f"Scenario '{scenario_name}' inputs need exactly one of 'value' or 'distribution'"
        )
    if entry.value is not None:
        return entry.value
    return create_distribution(entry.distribution.type, entry.distribution.parameter_mapping())


def handle_analyze_scenarios(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handle analyze_scenarios"""
    req = AnalyzeScenariosRequest(**arguments)
    scenarios = []
    for spec in req.scenarios:
        if isinstance(spec.inputs, dict):
            values = {k: _scenario_entry(spec.name, v) for k, v in spec.inputs.items()}
            scenarios.append(Scenario.from_mapping(spec.name, values, req.input_names))
        else:
            scenarios.append(Scenario(spec.name, tuple(_scenario_entry(spec.name, v) for v in spec.inputs)))

    comparison = run_scenarios(req.input_names, req.formula, scenarios, req.iterations, req.random_seed)
    response = comparison.to_dict()
    if req.metrics:
        response["summary"] = comparison.summary_table(req.metrics)
    if req.thresholds:
        response["threshold_probabilities"] = [
            {"threshold": t, "probability_above": comparison.probability_above(t)} for t in req.thresholds
        ]
    return response


TOOL_HANDLERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "create_distribution": handle_create_distribution,
    "run_monte_carlo": handle_run_monte_carlo,
    "analyze_simulation_results": handle_analyze_simulation_results,
    "calculate_value_at_risk": handle_calculate_value_at_risk,
    "calculate_probability": handle_calculate_probability,
    "sensitivity_analysis": handle_sensitivity_analysis,
    "tornado_analysis": handle_tornado_analysis,
    "analyze_scenarios": handle_analyze_scenarios,
}


def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    """Handle tool calls."""
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return error_response("INVALID_TOOL", f"Unknown tool: {name}")
    try:
        return handler(arguments or {})
    except ValidationError as e:
        return error_response("INVALID_ARGUMENT", str(e))
    except InvalidArgument as e:
        return error_response("INVALID_ARGUMENT", str(e))
    except FormulaError as e:
        return error_response("FORMULA_ERROR", str(e))
    except NumericError as e:
        return error_response("NUMERIC_ERROR", str(e))
    except Exception as e:
        logger.error(f"Error handling tool {name}: {e}", exc_info=True)
        return error_response("INTERNAL_ERROR", str(e))
