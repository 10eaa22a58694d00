"""
PURPOSE: Simulation configuration and analysis defaults for the Monte Carlo engine.

RESPONSIBILITIES:
- Define simulation hyperparameters (iteration bounds, default run size, random seed)
- Percentile and confidence-interval levels reported for every outcome set
- Sensitivity, tornado and histogram defaults
- Single responsibility: configuration only, no simulation logic
"""

# Simulation Parameters
NUM_RUNS = 10000  # Standard Monte Carlo sample size
MIN_ITERATIONS = 1
MAX_ITERATIONS = 1_000_000  # Sole latency bound on a single request
RANDOM_SEED = None  # Set to int for reproducibility, None for random
DEFAULT_WORKERS = 1  # >1 splits iterations across independently seeded threads

# Percentile Outputs
PERCENTILES = [5, 10, 25, 50, 75, 90, 95, 99]
CONFIDENCE_LEVELS = [0.90, 0.95, 0.99]  # ci90, ci95, ci99

# Risk Analysis
DEFAULT_VAR_CONFIDENCE = 0.95

# Formula Parsing
MAX_FORMULA_NESTING = 100  # Parenthesis levels
MAX_FORMULA_DEPTH = 400  # Operator tree depth, e.g. terms in one long sum

# Histogram (bin count is chosen from the data when not given)
MAX_HISTOGRAM_BINS = 1000

# Sensitivity Analysis
DEFAULT_SENSITIVITY_STEPS = 11
MIN_SENSITIVITY_STEPS = 2

# Sensitivity Analysis (Tornado Chart)
TOP_N_DRIVERS = None  # None keeps every variable in the ranking


def get_iteration_bounds():
    """Return the inclusive (min, max) iteration count accepted by the engine."""
    return MIN_ITERATIONS, MAX_ITERATIONS


def get_confidence_levels():
    """Return the confidence levels summarized for every outcome set."""
    return list(CONFIDENCE_LEVELS)
