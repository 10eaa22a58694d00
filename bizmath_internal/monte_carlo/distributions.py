"""
PURPOSE: Distribution catalog for uncertain simulation inputs.

RESPONSIBILITIES:
- Closed set of parametric families, one frozen dataclass per family
- Validate parameters at construction (never at sample time)
- Draw samples from an explicit numpy Generator handle
- Expose textbook moments through scipy.stats frozen distributions
- Single responsibility: only sampling, no I/O or aggregation
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, Union

import numpy as np
from scipy import stats

from .errors import InvalidArgument, NumericError

RandomState = Union[np.random.Generator, int, None]


def make_rng(random_state: RandomState = None) -> np.random.Generator:
    """Return a Generator, reusing one that is passed in."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    if isinstance(random_state, bool):
        raise InvalidArgument(f"random_seed must be an integer, got {random_state!r}")
    try:
        return np.random.default_rng(random_state)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"Invalid random_seed {random_state!r}: {exc}") from exc


class DistributionKind(str, Enum):
    NORMAL = "normal"
    UNIFORM = "uniform"
    TRIANGULAR = "triangular"
    EXPONENTIAL = "exponential"
    LOGNORMAL = "lognormal"
    BETA = "beta"
    GAMMA = "gamma"
    WEIBULL = "weibull"
    CHI_SQUARED = "chisquared"
    F = "f"
    T = "t"
    PARETO = "pareto"
    LOGISTIC = "logistic"
    GEOMETRIC = "geometric"
    RAYLEIGH = "rayleigh"


KIND_ALIASES = {
    "gaussian": DistributionKind.NORMAL,
    "log_normal": DistributionKind.LOGNORMAL,
    "chi_squared": DistributionKind.CHI_SQUARED,
    "chi-squared": DistributionKind.CHI_SQUARED,
    "student_t": DistributionKind.T,
}


def _as_number(label: str, name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgument(f"{label} parameter '{name}' must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgument(f"{label} parameter '{name}' must be finite, got {value}")
    return value


def _positive(label: str, name: str, value: Any) -> float:
    value = _as_number(label, name, value)
    if value <= 0:
        raise InvalidArgument(f"{label} parameter '{name}' must be positive, got {value}")
    return value


def _non_negative(label: str, name: str, value: Any) -> float:
    value = _as_number(label, name, value)
    if value < 0:
        raise InvalidArgument(f"{label} parameter '{name}' must be non-negative, got {value}")
    return value


@dataclass(frozen=True)
class Distribution:
    """Base of the closed family of input distributions.

    Subclasses declare ``kind``, ``label`` and ``param_keys``: a tuple of
    ``(field_name, accepted_keys)`` where the first accepted key is the wire
    name reported by :meth:`parameters`.
    """

    kind: ClassVar[DistributionKind]
    label: ClassVar[str]
    param_keys: ClassVar[Tuple[Tuple[str, Tuple[str, ...]], ...]]

    def _set(self, name: str, value: float) -> None:
        object.__setattr__(self, name, value)

    def _draw(self, rng: np.random.Generator, size: int) -> np.ndarray:
        raise NotImplementedError

    def frozen(self):
        """Return the equivalent scipy.stats frozen distribution."""
        raise NotImplementedError

    def sample(self, rng: RandomState = None) -> float:
        """Draw one value, advancing the generator."""
        return float(self.sample_many(rng, 1)[0])

    def sample_many(self, rng: RandomState, size: int) -> np.ndarray:
        """Draw ``size`` independent values as a float64 array."""
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)) or size < 0:
            raise InvalidArgument(f"size must be a non-negative integer, got {size!r}")
        draws = np.asarray(self._draw(make_rng(rng), size), dtype=float)
        if not np.all(np.isfinite(draws)):
            raise NumericError(
                f"{self.label} sampler produced a non-finite value for parameters {self.parameters()}"
            )
        return draws

    def expected_value(self) -> float:
        return float(self.frozen().mean())

    def variance(self) -> float:
        return float(self.frozen().var())

    def parameters(self) -> Dict[str, float]:
        return {keys[0]: getattr(self, name) for name, keys in self.param_keys}

    def describe(self) -> Dict[str, Any]:
        """JSON-compatible description of the distribution."""
        return {"type": self.kind.value, "parameters": self.parameters()}


@dataclass(frozen=True)
class NormalDistribution(Distribution):
    mean: float
    std_dev: float

    kind: ClassVar[DistributionKind] = DistributionKind.NORMAL
    label: ClassVar[str] = "Normal"
    param_keys: ClassVar = (("mean", ("mean",)), ("std_dev", ("stdDev", "std_dev")))

    def __post_init__(self):
        self._set("mean", _as_number(self.label, "mean", self.mean))
        self._set("std_dev", _non_negative(self.label, "stdDev", self.std_dev))

    def _draw(self, rng, size):
        return rng.normal(self.mean, self.std_dev, size=size)

    def frozen(self):
        return stats.norm(loc=self.mean, scale=self.std_dev)

    # scipy rejects scale=0, the degenerate case is handled directly
    def expected_value(self):
        return self.mean

    def variance(self):
        return self.std_dev ** 2


@dataclass(frozen=True)
class UniformDistribution(Distribution):
    min: float
    max: float

    kind: ClassVar[DistributionKind] = DistributionKind.UNIFORM
    label: ClassVar[str] = "Uniform"
    param_keys: ClassVar = (("min", ("min",)), ("max", ("max",)))

    def __post_init__(self):
        low = _as_number(self.label, "min", self.min)
        high = _as_number(self.label, "max", self.max)
        if low >= high:
            raise InvalidArgument(f"Uniform distribution requires min < max, got min={low}, max={high}")
        self._set("min", low)
        self._set("max", high)

    def _draw(self, rng, size):
        return rng.uniform(self.min, self.max, size=size)

    def frozen(self):
        return stats.uniform(loc=self.min, scale=self.max - self.min)


@dataclass(frozen=True)
class TriangularDistribution(Distribution):
    min: float
    max: float
    mode: float

    kind: ClassVar[DistributionKind] = DistributionKind.TRIANGULAR
    label: ClassVar[str] = "Triangular"
    param_keys: ClassVar = (("min", ("min",)), ("max", ("max",)), ("mode", ("mode",)))

    def __post_init__(self):
        low = _as_number(self.label, "min", self.min)
        high = _as_number(self.label, "max", self.max)
        mode = _as_number(self.label, "mode", self.mode)
        if low >= high:
            raise InvalidArgument(f"Triangular distribution requires min < max, got min={low}, max={high}")
        if not low <= mode <= high:
            raise InvalidArgument(
                f"Invalid triangular params: min={low}, mode={mode}, max={high}"
            )
        self._set("min", low)
        self._set("max", high)
        self._set("mode", mode)

    def _draw(self, rng, size):
        return rng.triangular(self.min, self.mode, self.max, size=size)

    def frozen(self):
        # Scipy triangular requires normalized parameters: c = (mode - a) / (b - a)
        c = (self.mode - self.min) / (self.max - self.min)
        return stats.triang(c, loc=self.min, scale=self.max - self.min)


@dataclass(frozen=True)
class ExponentialDistribution(Distribution):
    rate: float

    kind: ClassVar[DistributionKind] = DistributionKind.EXPONENTIAL
    label: ClassVar[str] = "Exponential"
    param_keys: ClassVar = (("rate", ("rate",)),)

    def __post_init__(self):
        self._set("rate", _positive(self.label, "rate", self.rate))

    def _draw(self, rng, size):
        return rng.exponential(scale=1.0 / self.rate, size=size)

    def frozen(self):
        return stats.expon(scale=1.0 / self.rate)


@dataclass(frozen=True)
class LogNormalDistribution(Distribution):
    """Lognormal parameterized in log space: log(X) ~ Normal(mean, std_dev)."""

    mean: float
    std_dev: float

    kind: ClassVar[DistributionKind] = DistributionKind.LOGNORMAL
    label: ClassVar[str] = "LogNormal"
    param_keys: ClassVar = (("mean", ("mean",)), ("std_dev", ("stdDev", "std_dev")))

    def __post_init__(self):
        self._set("mean", _as_number(self.label, "mean", self.mean))
        self._set("std_dev", _non_negative(self.label, "stdDev", self.std_dev))

    @classmethod
    def from_moments(cls, mean: float, std_dev: float) -> "LogNormalDistribution":
        """Build from the arithmetic mean and standard deviation of X."""
        mu, sigma = compute_lognormal_params(mean, std_dev)
        return cls(mean=mu, std_dev=sigma)

    def _draw(self, rng, size):
        return rng.lognormal(mean=self.mean, sigma=self.std_dev, size=size)

    def frozen(self):
        return stats.lognorm(s=self.std_dev, scale=math.exp(self.mean))

    def expected_value(self):
        if self.std_dev == 0:
            return math.exp(self.mean)
        return super().expected_value()

    def variance(self):
        if self.std_dev == 0:
            return 0.0
        return super().variance()


@dataclass(frozen=True)
class BetaDistribution(Distribution):
    alpha: float
    beta: float

    kind: ClassVar[DistributionKind] = DistributionKind.BETA
    label: ClassVar[str] = "Beta"
    param_keys: ClassVar = (("alpha", ("alpha",)), ("beta", ("beta",)))

    def __post_init__(self):
        self._set("alpha", _positive(self.label, "alpha", self.alpha))
        self._set("beta", _positive(self.label, "beta", self.beta))

    def _draw(self, rng, size):
        return rng.beta(self.alpha, self.beta, size=size)

    def frozen(self):
        return stats.beta(self.alpha, self.beta)


@dataclass(frozen=True)
class GammaDistribution(Distribution):
    shape: float
    scale: float

    kind: ClassVar[DistributionKind] = DistributionKind.GAMMA
    label: ClassVar[str] = "Gamma"
    param_keys: ClassVar = (("shape", ("shape",)), ("scale", ("scale",)))

    def __post_init__(self):
        self._set("shape", _positive(self.label, "shape", self.shape))
        self._set("scale", _positive(self.label, "scale", self.scale))

    def _draw(self, rng, size):
        return rng.gamma(self.shape, self.scale, size=size)

    def frozen(self):
        return stats.gamma(self.shape, scale=self.scale)


@dataclass(frozen=True)
class WeibullDistribution(Distribution):
    shape: float
    scale: float

    kind: ClassVar[DistributionKind] = DistributionKind.WEIBULL
    label: ClassVar[str] = "Weibull"
    param_keys: ClassVar = (("shape", ("shape",)), ("scale", ("scale",)))

    def __post_init__(self):
        self._set("shape", _positive(self.label, "shape", self.shape))
        self._set("scale", _positive(self.label, "scale", self.scale))

    def _draw(self, rng, size):
        return self.scale * rng.weibull(self.shape, size=size)

    def frozen(self):
        return stats.weibull_min(self.shape, scale=self.scale)


@dataclass(frozen=True)
class ChiSquaredDistribution(Distribution):
    degrees_of_freedom: float

    kind: ClassVar[DistributionKind] = DistributionKind.CHI_SQUARED
    label: ClassVar[str] = "Chi-Squared"
    param_keys: ClassVar = (("degrees_of_freedom", ("degreesOfFreedom", "degrees_of_freedom", "df")),)

    def __post_init__(self):
        self._set(
            "degrees_of_freedom",
            _positive(self.label, "degreesOfFreedom", self.degrees_of_freedom),
        )

    def _draw(self, rng, size):
        return rng.chisquare(self.degrees_of_freedom, size=size)

    def frozen(self):
        return stats.chi2(self.degrees_of_freedom)


@dataclass(frozen=True)
class FDistribution(Distribution):
    df1: float
    df2: float

    kind: ClassVar[DistributionKind] = DistributionKind.F
    label: ClassVar[str] = "F"
    param_keys: ClassVar = (("df1", ("df1",)), ("df2", ("df2",)))

    def __post_init__(self):
        self._set("df1", _positive(self.label, "df1", self.df1))
        self._set("df2", _positive(self.label, "df2", self.df2))

    def _draw(self, rng, size):
        return rng.f(self.df1, self.df2, size=size)

    def frozen(self):
        return stats.f(self.df1, self.df2)


@dataclass(frozen=True)
class StudentTDistribution(Distribution):
    degrees_of_freedom: float

    kind: ClassVar[DistributionKind] = DistributionKind.T
    label: ClassVar[str] = "T"
    param_keys: ClassVar = (("degrees_of_freedom", ("degreesOfFreedom", "degrees_of_freedom", "df")),)

    def __post_init__(self):
        self._set(
            "degrees_of_freedom",
            _positive(self.label, "degreesOfFreedom", self.degrees_of_freedom),
        )

    def _draw(self, rng, size):
        return rng.standard_t(self.degrees_of_freedom, size=size)

    def frozen(self):
        return stats.t(self.degrees_of_freedom)


@dataclass(frozen=True)
class ParetoDistribution(Distribution):
    """Classical (type I) Pareto with support [scale, inf)."""

    scale: float
    shape: float

    kind: ClassVar[DistributionKind] = DistributionKind.PARETO
    label: ClassVar[str] = "Pareto"
    param_keys: ClassVar = (("scale", ("scale",)), ("shape", ("shape",)))

    def __post_init__(self):
        self._set("scale", _positive(self.label, "scale", self.scale))
        self._set("shape", _positive(self.label, "shape", self.shape))

    def _draw(self, rng, size):
        # numpy draws the Lomax (Pareto II) form, shifted by one
        return self.scale * (rng.pareto(self.shape, size=size) + 1.0)

    def frozen(self):
        return stats.pareto(self.shape, scale=self.scale)


@dataclass(frozen=True)
class LogisticDistribution(Distribution):
    """Logistic parameterized by its mean and standard deviation."""

    mean: float
    std_dev: float

    kind: ClassVar[DistributionKind] = DistributionKind.LOGISTIC
    label: ClassVar[str] = "Logistic"
    param_keys: ClassVar = (("mean", ("mean",)), ("std_dev", ("stdDev", "std_dev")))

    def __post_init__(self):
        self._set("mean", _as_number(self.label, "mean", self.mean))
        self._set("std_dev", _positive(self.label, "stdDev", self.std_dev))

    @property
    def scale(self) -> float:
        return self.std_dev * math.sqrt(3.0) / math.pi

    def _draw(self, rng, size):
        return rng.logistic(self.mean, self.scale, size=size)

    def frozen(self):
        return stats.logistic(loc=self.mean, scale=self.scale)


@dataclass(frozen=True)
class GeometricDistribution(Distribution):
    """Number of trials up to and including the first success."""

    p: float

    kind: ClassVar[DistributionKind] = DistributionKind.GEOMETRIC
    label: ClassVar[str] = "Geometric"
    param_keys: ClassVar = (("p", ("p", "probability")),)

    def __post_init__(self):
        p = _as_number(self.label, "p", self.p)
        if not 0 < p <= 1:
            raise InvalidArgument(f"Geometric parameter 'p' must be in (0, 1], got {p}")
        self._set("p", p)

    def _draw(self, rng, size):
        return rng.geometric(self.p, size=size)

    def frozen(self):
        return stats.geom(self.p)


@dataclass(frozen=True)
class RayleighDistribution(Distribution):
    scale: float

    kind: ClassVar[DistributionKind] = DistributionKind.RAYLEIGH
    label: ClassVar[str] = "Rayleigh"
    # "mean" is the historical wire name for the scale parameter
    param_keys: ClassVar = (("scale", ("scale", "mean", "sigma")),)

    def __post_init__(self):
        self._set("scale", _positive(self.label, "scale", self.scale))

    def _draw(self, rng, size):
        return rng.rayleigh(self.scale, size=size)

    def frozen(self):
        return stats.rayleigh(scale=self.scale)


DISTRIBUTION_FAMILIES: Dict[DistributionKind, Type[Distribution]] = {
    family.kind: family
    for family in (
        NormalDistribution,
        UniformDistribution,
        TriangularDistribution,
        ExponentialDistribution,
        LogNormalDistribution,
        BetaDistribution,
        GammaDistribution,
        WeibullDistribution,
        ChiSquaredDistribution,
        FDistribution,
        StudentTDistribution,
        ParetoDistribution,
        LogisticDistribution,
        GeometricDistribution,
        RayleighDistribution,
    )
}


def resolve_kind(kind: Union[str, DistributionKind]) -> DistributionKind:
    if isinstance(kind, DistributionKind):
        return kind
    if not isinstance(kind, str):
        raise InvalidArgument(f"Distribution type must be a string, got {kind!r}")
    key = kind.strip().lower()
    if key in KIND_ALIASES:
        return KIND_ALIASES[key]
    try:
        return DistributionKind(key)
    except ValueError:
        supported = ", ".join(k.value for k in DistributionKind)
        raise InvalidArgument(f"Unknown distribution type: {kind}. Supported: {supported}") from None


def create_distribution(
    kind: Union[str, DistributionKind],
    params: Optional[Mapping[str, Any]] = None,
) -> Distribution:
    """
    Build a validated distribution from a type name and a parameter mapping.

    Args:
        kind: Family name such as "normal" or "triangular"
        params: Mapping of parameter names (wire names like "stdDev" or
                snake_case field names) to numbers

    Returns:
        Immutable Distribution instance

    Raises:
        InvalidArgument: Unknown type, missing parameter, or parameter outside its domain
    """
    family = DISTRIBUTION_FAMILIES[resolve_kind(kind)]
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise InvalidArgument(f"{family.label} parameters must be an object, got {params!r}")

    values = {}
    missing = []
    for field_name, keys in family.param_keys:
        for key in keys:
            if key in params:
                values[field_name] = params[key]
                break
        else:
            missing.append(keys[0])
    if missing:
        required = " and ".join(f"'{keys[0]}'" for _, keys in family.param_keys)
        raise InvalidArgument(
            f"{family.label} distribution requires {required} (missing: {', '.join(missing)})"
        )
    return family(**values)


def compute_lognormal_params(mean, std_dev):
    """Compute lognormal parameters (mu, sigma) from mean and std dev.

    Given E[X]=mean and SD[X]=std_dev, compute mu and sigma for Lognormal(mu, sigma).

    Raises:
        InvalidArgument: if mean is not positive or std_dev is negative
    """
    mean = _as_number("LogNormal", "mean", mean)
    std_dev = _as_number("LogNormal", "stdDev", std_dev)
    if mean <= 0 or std_dev < 0:
        raise InvalidArgument("mean must be positive and std_dev must be non-negative")

    cv = std_dev / mean  # coefficient of variation
    sigma = math.sqrt(math.log(cv ** 2 + 1))  # exact relationship
    mu = math.log(mean) - sigma ** 2 / 2
    return mu, sigma
