"""
PURPOSE: Outcome sets and the statistics derived from them.

An OutcomeSet owns the scalar results of one simulation run. Descriptive
statistics, percentiles, confidence intervals, probability queries, VaR/CVaR
and histograms are all computed on demand from an immutable copy of the
values; none of them depend on the order of the outcomes.

SIGN CONVENTION:
    Outcomes are taken as-is, so a loss is a negative outcome.
    value_at_risk(c) is the (1 - c) percentile and conditional_value_at_risk(c)
    is the mean of all outcomes at or below it. CVaR <= VaR as signed numbers.

SRP/DRY: Single responsibility = aggregation only.
         No sampling, no formula evaluation, no text formatting.
"""

import math
from dataclasses import asdict, dataclass
from functools import cached_property
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from scipy import stats

from .config import DEFAULT_VAR_CONFIDENCE, MAX_HISTOGRAM_BINS, PERCENTILES, get_confidence_levels
from .errors import InvalidArgument, NumericError


@dataclass(frozen=True)
class ConfidenceInterval:
    level: float
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def to_dict(self) -> Dict[str, float]:
        return {"level": self.level, "lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class Percentiles:
    """Fixed percentile set reported for every outcome set."""

    p5: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float
    p99: float

    @property
    def interquartile_range(self) -> float:
        return self.p75 - self.p25

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class SimulationStatistics:
    """Descriptive statistics of an outcome set.

    Attributes:
        count (int): Number of outcomes.
        mean (float): Arithmetic mean.
        median (float): 50th percentile.
        std_dev (float): Sample standard deviation (n - 1 denominator).
        variance (float): Sample variance.
        population_std_dev (float): Standard deviation with n denominator.
        population_variance (float): Variance with n denominator.
        skewness (float): Third standardized moment, 0.0 for constant outcomes.
        min (float): Smallest outcome.
        max (float): Largest outcome.
        ci90, ci95, ci99 (ConfidenceInterval): Central percentile intervals.
    """

    count: int
    mean: float
    median: float
    std_dev: float
    variance: float
    population_std_dev: float
    population_variance: float
    skewness: float
    min: float
    max: float
    ci90: ConfidenceInterval
    ci95: ConfidenceInterval
    ci99: ConfidenceInterval

    @property
    def coefficient_of_variation(self) -> float:
        if self.mean == 0:
            return float("nan")
        return self.std_dev / abs(self.mean)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        for name in ("ci90", "ci95", "ci99"):
            interval = getattr(self, name)
            data[name] = [interval.lower, interval.upper]
        return data


@dataclass(frozen=True)
class HistogramBin:
    lower: float
    upper: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"lower": self.lower, "upper": self.upper, "count": self.count}


def _check_confidence(confidence) -> float:
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float, np.floating)):
        raise InvalidArgument(f"confidence must be a number, got {confidence!r}")
    confidence = float(confidence)
    if not 0.0 < confidence < 1.0:
        raise InvalidArgument(f"confidence must be in (0, 1), got {confidence}")
    return confidence


def _check_threshold(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgument(f"{name} must be a number, got {value!r}")
    value = float(value)
    if math.isnan(value):
        raise InvalidArgument(f"{name} must not be NaN")
    return value


class OutcomeSet:
    """
    Scalar results of N simulation iterations.

    The values are copied into a read-only float64 array on construction.
    Infinite and NaN outcomes (e.g. from division by zero) are kept.
    """

    def __init__(self, values: Iterable[float]):
        try:
            array = np.array(values, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(f"Outcomes must be numbers: {exc}") from exc
        if array.ndim != 1:
            raise InvalidArgument(f"Outcomes must be one-dimensional, got shape {array.shape}")
        if array.size == 0:
            raise InvalidArgument("An outcome set needs at least one value")
        array.setflags(write=False)
        self._values = array

    @property
    def values(self) -> np.ndarray:
        return self._values

    def __len__(self) -> int:
        return self._values.size

    def __repr__(self):
        return f"OutcomeSet(count={len(self)})"

    @cached_property
    def sorted_values(self) -> np.ndarray:
        ordered = np.sort(self._values)
        ordered.setflags(write=False)
        return ordered

    def percentile(self, p: float) -> float:
        """Linear-interpolated percentile, p in [0, 100]."""
        p = _check_threshold("percentile", p)
        if not 0.0 <= p <= 100.0:
            raise InvalidArgument(f"percentile must be in [0, 100], got {p}")
        return float(np.percentile(self.sorted_values, p))

    def confidence_interval(self, level: float) -> ConfidenceInterval:
        """Central interval holding ``level`` of the outcomes, e.g. 0.95 -> [p2.5, p97.5]."""
        level = _check_confidence(level)
        tail = (100.0 - 100.0 * level) / 2.0
        return ConfidenceInterval(
            level=level,
            lower=self.percentile(tail),
            upper=self.percentile(100.0 - tail),
        )

    @cached_property
    def percentiles(self) -> Percentiles:
        values = np.percentile(self.sorted_values, PERCENTILES)
        return Percentiles(**{f"p{p}": float(v) for p, v in zip(PERCENTILES, values)})

    @cached_property
    def statistics(self) -> SimulationStatistics:
        values = self._values
        count = values.size
        population_variance = float(np.var(values))
        variance = float(np.var(values, ddof=1)) if count > 1 else 0.0
        population_std_dev = math.sqrt(population_variance) if population_variance >= 0 else float("nan")
        if population_std_dev == 0.0:
            skewness = 0.0
        else:
            skewness = float(stats.skew(values, bias=True))
        ci90, ci95, ci99 = (self.confidence_interval(level) for level in get_confidence_levels())
        return SimulationStatistics(
            count=count,
            mean=float(np.mean(values)),
            median=float(np.median(values)),
            std_dev=math.sqrt(variance) if variance >= 0 else float("nan"),
            variance=variance,
            population_std_dev=population_std_dev,
            population_variance=population_variance,
            skewness=skewness,
            min=float(np.min(values)),
            max=float(np.max(values)),
            ci90=ci90,
            ci95=ci95,
            ci99=ci99,
        )

    def probability_above(self, threshold: float) -> float:
        """Fraction of outcomes strictly greater than ``threshold``."""
        threshold = _check_threshold("threshold", threshold)
        return np.count_nonzero(self._values > threshold) / self._values.size

    def probability_below(self, threshold: float) -> float:
        """Fraction of outcomes strictly less than ``threshold``."""
        threshold = _check_threshold("threshold", threshold)
        return np.count_nonzero(self._values < threshold) / self._values.size

    def probability_between(self, lower: float, upper: float) -> float:
        """Fraction of outcomes in the closed interval [lower, upper]."""
        lower = _check_threshold("lower", lower)
        upper = _check_threshold("upper", upper)
        if lower > upper:
            raise InvalidArgument(f"lower must not exceed upper, got lower={lower}, upper={upper}")
        inside = (self._values >= lower) & (self._values <= upper)
        return np.count_nonzero(inside) / self._values.size

    def probability_of_loss(self) -> float:
        return self.probability_below(0.0)

    def value_at_risk(self, confidence: float = DEFAULT_VAR_CONFIDENCE) -> float:
        confidence = _check_confidence(confidence)
        return self.percentile(100.0 - 100.0 * confidence)

    def conditional_value_at_risk(self, confidence: float = DEFAULT_VAR_CONFIDENCE) -> float:
        """Expected shortfall: mean of the outcomes at or below the VaR cutoff."""
        cutoff = self.value_at_risk(confidence)
        tail = self._values[self._values <= cutoff]
        if tail.size == 0:
            return float("nan")
        return float(np.mean(tail))

    def _auto_bin_count(self, span: float) -> int:
        # Larger of Sturges and Freedman-Diaconis, as numpy's "auto" rule
        count = self._values.size
        sturges = int(math.ceil(math.log2(count))) + 1 if count > 1 else 1
        iqr = self.percentiles.interquartile_range
        fd = 0
        if iqr > 0:
            width = 2.0 * iqr / count ** (1.0 / 3.0)
            if width > 0:
                fd = int(math.ceil(min(span / width, MAX_HISTOGRAM_BINS)))
        return max(1, min(max(sturges, fd), MAX_HISTOGRAM_BINS))

    def histogram(self, bins: Optional[int] = None) -> List[HistogramBin]:
        """
        Partition [min, max] into equal-width bins and count membership.

        Args:
            bins: Bin count in [1, MAX_HISTOGRAM_BINS], or None to choose one
                  from the data

        Returns:
            List of HistogramBin; the last bin is closed on the right. When
            every outcome is identical a single bin holds all of them.

        Raises:
            InvalidArgument: bins is not a positive integer within bounds
            NumericError: min, max or their distance is not finite, or the
                range is too narrow to split into the requested bins
        """
        if bins is not None:
            if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)):
                raise InvalidArgument(f"bins must be an integer, got {bins!r}")
            if not 1 <= bins <= MAX_HISTOGRAM_BINS:
                raise InvalidArgument(f"bins must be in [1, {MAX_HISTOGRAM_BINS}], got {bins}")

        low = float(np.min(self._values))
        high = float(np.max(self._values))
        if not (math.isfinite(low) and math.isfinite(high)):
            raise NumericError(f"Cannot build a histogram over a non-finite range [{low}, {high}]")
        span = high - low
        if not math.isfinite(span):
            raise NumericError(f"Histogram range [{low}, {high}] is too wide to partition")

        if low == high:
            return [HistogramBin(lower=low, upper=high, count=int(self._values.size))]

        if bins is None:
            bins = self._auto_bin_count(span)
        try:
            counts, edges = np.histogram(self._values, bins=int(bins), range=(low, high))
        except ValueError as exc:
            raise NumericError(f"Cannot split [{low}, {high}] into {bins} bins: {exc}") from exc
        return [
            HistogramBin(lower=float(edges[i]), upper=float(edges[i + 1]), count=int(counts[i]))
            for i in range(len(counts))
        ]

    def to_dict(self, include_values: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            "statistics": self.statistics.to_dict(),
            "percentiles": self.percentiles.to_dict(),
            "probability_of_loss": self.probability_of_loss(),
        }
        if include_values:
            data["values"] = self._values.tolist()
        return data
