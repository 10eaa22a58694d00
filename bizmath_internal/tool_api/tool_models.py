from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from bizmath_internal.monte_carlo.config import (
    DEFAULT_SENSITIVITY_STEPS,
    DEFAULT_VAR_CONFIDENCE,
    DEFAULT_WORKERS,
    MAX_ITERATIONS,
    NUM_RUNS,
)

FORMULA_ALIASES = AliasChoices("calculation", "formula")
INPUT_NAMES_ALIASES = AliasChoices("inputNames", "input_names")
BASE_VALUES_ALIASES = AliasChoices("baseValues", "base_values")


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorOutput(BaseModel):
    error: ErrorDetail


class DistributionSpec(BaseModel):
    # Parameters may be nested under "parameters" or given inline next to "type"
    model_config = ConfigDict(extra="allow")

    type: str
    parameters: dict[str, Any] | None = None

    def parameter_mapping(self) -> dict[str, Any]:
        if self.parameters is not None:
            return self.parameters
        return dict(self.model_extra or {})


class CreateDistributionRequest(BaseModel):
    type: str
    parameters: dict[str, Any] = {}
    sample_size: int = Field(
        default=0, ge=0, le=MAX_ITERATIONS, validation_alias=AliasChoices("sampleSize", "sample_size")
    )
    random_seed: int | None = Field(default=None, validation_alias=AliasChoices("randomSeed", "random_seed"))


class SimulationInputSpec(BaseModel):
    name: str
    distribution: str = Field(validation_alias=AliasChoices("distribution", "type"))
    parameters: dict[str, Any] = {}


class RunMonteCarloRequest(BaseModel):
    inputs: list[SimulationInputSpec]
    formula: str = Field(validation_alias=FORMULA_ALIASES)
    iterations: int = NUM_RUNS
    random_seed: int | None = Field(default=None, validation_alias=AliasChoices("randomSeed", "random_seed"))
    workers: int = DEFAULT_WORKERS
    bins: int | None = None
    thresholds: list[float] = []
    include_values: bool = Field(default=False, validation_alias=AliasChoices("includeValues", "include_values"))


class AnalyzeResultsRequest(BaseModel):
    values: list[float]
    bins: int | None = None
    label: str = "Outcome"


class ValueAtRiskRequest(BaseModel):
    values: list[float]
    confidence_level: float = Field(
        default=DEFAULT_VAR_CONFIDENCE,
        validation_alias=AliasChoices("confidenceLevel", "confidence_level"),
    )


class ProbabilityRequest(BaseModel):
    values: list[float]
    query: Literal["above", "below", "between"] = Field(validation_alias=AliasChoices("type", "query"))
    threshold: float | None = None
    lower: float | None = None
    upper: float | None = None


class SensitivityRequest(BaseModel):
    # Either baseValue alone, or inputNames + baseValues + inputName for a multi-input formula
    base_value: float | None = Field(default=None, validation_alias=AliasChoices("baseValue", "base_value"))
    input_names: list[str] | None = Field(default=None, validation_alias=INPUT_NAMES_ALIASES)
    base_values: dict[str, float] | list[float] | None = Field(default=None, validation_alias=BASE_VALUES_ALIASES)
    input_name: str | None = Field(default=None, validation_alias=AliasChoices("inputName", "input_name"))
    variable_range: dict[str, Any] = Field(
        validation_alias=AliasChoices("variableRange", "range", "variable_range")
    )
    formula: str = Field(validation_alias=FORMULA_ALIASES)
    steps: int = DEFAULT_SENSITIVITY_STEPS
    variable_name: str = Field(default="Variable", validation_alias=AliasChoices("variableName", "variable_name"))


class TornadoVariableSpec(BaseModel):
    name: str
    base: float = Field(validation_alias=AliasChoices("baseValue", "base"))
    low: float = Field(validation_alias=AliasChoices("lowValue", "low"))
    high: float = Field(validation_alias=AliasChoices("highValue", "high"))


class TornadoRequest(BaseModel):
    # Either explicit variables, or inputNames + baseValues + one shared range
    variables: list[TornadoVariableSpec] | None = None
    input_names: list[str] | None = Field(default=None, validation_alias=INPUT_NAMES_ALIASES)
    base_values: dict[str, float] | list[float] | None = Field(default=None, validation_alias=BASE_VALUES_ALIASES)
    variable_range: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("variableRange", "range", "variable_range")
    )
    formula: str = Field(validation_alias=FORMULA_ALIASES)
    top_n: int | None = Field(default=None, validation_alias=AliasChoices("topN", "top_n"))


class ScenarioInputSpec(BaseModel):
    value: float | None = None
    distribution: DistributionSpec | None = None


class ScenarioSpec(BaseModel):
    name: str
    inputs: dict[str, float | ScenarioInputSpec] | list[float | ScenarioInputSpec] = Field(
        validation_alias=AliasChoices("inputs", "values", "fixedValues")
    )


class AnalyzeScenariosRequest(BaseModel):
    input_names: list[str] = Field(validation_alias=INPUT_NAMES_ALIASES)
    formula: str = Field(validation_alias=AliasChoices("model", "calculation", "formula"))
    scenarios: list[ScenarioSpec]
    iterations: int = NUM_RUNS
    random_seed: int | None = Field(default=None, validation_alias=AliasChoices("randomSeed", "random_seed"))
    thresholds: list[float] = []
    metrics: list[str] | None = None
