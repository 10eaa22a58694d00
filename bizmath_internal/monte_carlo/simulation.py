"""
PURPOSE: Core Monte Carlo engine.

Runs N independent iterations of a formula over sampled inputs and returns
the outcomes as an OutcomeSet.

SINGLE RESPONSIBILITY:
- Bind named inputs to distributions; list position fixes the placeholder index
- Draw one sample per input per iteration from an explicit Generator
- Evaluate the formula for every iteration
- Return raw outcomes (no I/O, no formatting)

CONSTRAINTS:
- All validation happens before the first draw
- No global random state; a seed or Generator is passed in
- workers > 1 splits iterations across independently seeded child streams
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DEFAULT_WORKERS, NUM_RUNS, RANDOM_SEED, get_iteration_bounds
from .distributions import Distribution, RandomState, create_distribution, make_rng
from .errors import InvalidArgument
from .expression import Formula, require_arity
from .outputs import OutcomeSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationInput:
    """A named uncertain input bound to one distribution."""

    name: str
    distribution: Distribution

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgument(f"Input name must be a non-empty string, got {self.name!r}")
        if not isinstance(self.distribution, Distribution):
            raise InvalidArgument(
                f"Input '{self.name}' needs a Distribution, got {type(self.distribution).__name__}"
            )

    @classmethod
    def from_spec(cls, name: str, kind: str, params: Mapping[str, Any]) -> "SimulationInput":
        return cls(name=name, distribution=create_distribution(kind, params))


def validate_iterations(iterations) -> int:
    low, high = get_iteration_bounds()
    if isinstance(iterations, bool) or not isinstance(iterations, (int, np.integer)):
        raise InvalidArgument(f"iterations must be an integer, got {iterations!r}")
    if not low <= iterations <= high:
        raise InvalidArgument(f"iterations must be in [{low}, {high}], got {iterations}")
    return int(iterations)


def validate_workers(workers: int) -> int:
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise InvalidArgument(f"workers must be a positive integer, got {workers!r}")
    return workers


def validate_inputs(inputs: Sequence[Union[SimulationInput, Tuple[str, Distribution]]]) -> List[SimulationInput]:
    if inputs is None or len(inputs) == 0:
        raise InvalidArgument("At least one simulation input is required")
    validated = []
    seen = set()
    for item in inputs:
        if not isinstance(item, SimulationInput):
            try:
                name, distribution = item
            except (TypeError, ValueError):
                raise InvalidArgument(f"Expected SimulationInput or (name, distribution), got {item!r}") from None
            item = SimulationInput(name, distribution)
        if item.name in seen:
            raise InvalidArgument(f"Duplicate input name: {item.name}")
        seen.add(item.name)
        validated.append(item)
    return validated


def _run_chunk(inputs: Sequence[SimulationInput], formula: Formula, rng: np.random.Generator, size: int) -> np.ndarray:
    columns = [item.distribution.sample_many(rng, size) for item in inputs]
    return formula.evaluate_many(columns, size=size)


def _chunk_sizes(iterations: int, workers: int) -> List[int]:
    base, extra = divmod(iterations, workers)
    return [base + (1 if i < extra else 0) for i in range(workers)]


def run_simulation(
    inputs: Sequence[Union[SimulationInput, Tuple[str, Distribution]]],
    formula: Union[str, Formula],
    iterations: int = NUM_RUNS,
    random_seed: RandomState = RANDOM_SEED,
    workers: int = DEFAULT_WORKERS,
) -> OutcomeSet:
    """
    Execute a Monte Carlo simulation.

    Args:
        inputs: Ordered inputs; input i binds to placeholder {i}
        formula: Formula text or parsed Formula
        iterations: Number of iterations in [1, 1_000_000]
        random_seed: int seed, existing Generator, or None for fresh entropy
        workers: Number of threads; each gets an independent child stream

    Returns:
        OutcomeSet with exactly ``iterations`` values

    Raises:
        InvalidArgument: empty or duplicate inputs, bad iteration or worker count
        FormulaError: malformed formula or placeholder without an input
        NumericError: a sampler produced a non-finite draw
    """
    inputs = validate_inputs(inputs)
    iterations = validate_iterations(iterations)
    workers = validate_workers(workers)
    parsed = require_arity(formula, len(inputs))
    rng = make_rng(random_seed)

    logger.debug(
        "Running %d iterations of %r over inputs %s",
        iterations, parsed.text, [item.name for item in inputs],
    )

    workers = min(workers, iterations)
    if workers == 1:
        outcomes = _run_chunk(inputs, parsed, rng, iterations)
    else:
        streams = rng.spawn(workers)
        sizes = _chunk_sizes(iterations, workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            chunks = list(executor.map(
                lambda args: _run_chunk(inputs, parsed, *args),
                zip(streams, sizes),
            ))
        outcomes = np.concatenate(chunks)

    result = OutcomeSet(outcomes)
    logger.info("Simulation finished: %d outcomes for %r", len(result), parsed.text)
    return result


class MonteCarloSimulation:
    """
    Monte Carlo simulation engine.

    Inputs are registered in order with :meth:`add_input`; the formula passed
    to :meth:`run` refers to them as {0}, {1}, ...
    """

    def __init__(
        self,
        iterations: int = NUM_RUNS,
        random_seed: RandomState = RANDOM_SEED,
        workers: int = DEFAULT_WORKERS,
    ):
        """
        Initialize simulation engine.

        Args:
            iterations: Number of iterations per run (default 10,000)
            random_seed: Seed or Generator for reproducibility (None = random)
            workers: Threads used per run (default 1)
        """
        self.iterations = validate_iterations(iterations)
        self.workers = validate_workers(workers)
        # One Generator for the engine's lifetime, so repeated runs continue the stream
        self.rng = make_rng(random_seed)
        self.inputs: List[SimulationInput] = []

    def add_input(
        self,
        name: str,
        distribution: Union[Distribution, str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> SimulationInput:
        """Register an input from a Distribution or from a type name and parameters."""
        if isinstance(distribution, str):
            distribution = create_distribution(distribution, params)
        elif params is not None:
            raise InvalidArgument("params are only accepted with a distribution type name")
        item = SimulationInput(name, distribution)
        if any(existing.name == item.name for existing in self.inputs):
            raise InvalidArgument(f"Duplicate input name: {item.name}")
        self.inputs.append(item)
        return item

    def run(self, formula: Union[str, Formula]) -> OutcomeSet:
        return run_simulation(self.inputs, formula, self.iterations, self.rng, self.workers)
