"""
Katz Back-off Smoothing

This module implements the two halves of Katz smoothing:

* ``fit_smoother`` fits a log-linear curve to the count-of-counts histogram
  (how many distinct events were seen exactly c times) and tabulates the
  smoothed bucket sizes used for Good-Turing discounting.
* ``normalize_katz`` discounts the low counts of one distribution with that
  table, reserves the removed mass for events the distribution never saw,
  and spreads it over them in proportion to a lower-order distribution.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Hashable, Iterable, List, Optional, Tuple, Union

from .counters import NestedWeightedMap, WeightedMap

logger = logging.getLogger(__name__)

# Histogram buckets at or below this size carry no regression point.
MIN_BUCKET_SUPPORT = 0.1


class SmoothingError(ValueError):
    """Raised when smoothing cannot produce well-defined probabilities."""


def check_value(value: float, what: str) -> float:
    """Reject NaN, infinite or negative values leaving a smoothing step."""
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise SmoothingError(f"{what} is not a valid non-negative number: {value!r}")
    return value


@dataclass(frozen=True)
class LogLinearFit:
    """
    A fitted log-linear model of the count-of-counts histogram.

    Attributes:
        slope: Fitted slope of ln(bucket size) against count
        intercept: Fitted intercept
        support: Counts that had a regression point, in increasing order
        table: Smoothed bucket sizes; ``table[i]`` is the fitted value for
            ``support[i]``, entries past ``len(support)`` are 0
        cutoff: Counts above this value are never discounted
    """
    slope: float
    intercept: float
    support: Tuple[int, ...]
    table: Tuple[float, ...]
    cutoff: int

    def smoothed(self, index: int) -> float:
        if 0 <= index < len(self.table):
            return self.table[index]
        return 0.0

    def discounted_count(self, count: float) -> float:
        """
        Good-Turing estimate c* = (c + 1) * table[c] / table[c - 1].

        The table is read by raw count even though it is laid out by
        regression point, so ``table[c]`` is 0 once ``c`` reaches the number
        of regression points and the estimate is 0. Counts above the cutoff,
        counts with a zero denominator, and estimates that would not shrink
        the count come back unchanged.
        """
        if count <= 0 or count > self.cutoff:
            return count
        index = int(count)
        numerator = self.smoothed(index)
        denominator = self.smoothed(index - 1)
        if denominator <= 0:
            return count
        adjusted = (count + 1) * numerator / denominator
        return adjusted if adjusted < count else count


def linear_regression(xs: List[float], ys: List[float]) -> Tuple[float, float]:
    """
    Ordinary least squares fit of ``ys`` on ``xs``.

    Returns:
        Tuple of (slope, intercept)

    Raises:
        SmoothingError: fewer than two points, or all x values equal
    """
    n = len(xs)
    if n != len(ys):
        raise SmoothingError("regression inputs differ in length")
    if n < 2:
        raise SmoothingError(f"need at least 2 regression points, got {n}")

    x_bar = sum(xs) / n
    y_bar = sum(ys) / n
    sxx = sum((x - x_bar) ** 2 for x in xs)
    sxy = sum((x - x_bar) * (y - y_bar) for x, y in zip(xs, ys))
    if sxx == 0:
        raise SmoothingError("regression points share a single x value")

    slope = sxy / sxx
    intercept = y_bar - slope * x_bar
    return slope, intercept


def _raw_counts(counts: Union[WeightedMap, NestedWeightedMap]) -> Iterable[float]:
    if isinstance(counts, NestedWeightedMap):
        return (weight for _, _, weight in counts.entries())
    return (weight for _, weight in counts.items())


def count_histogram(counts: Union[WeightedMap, NestedWeightedMap], cutoff: int) -> List[float]:
    """Number of distinct events seen exactly c times, for c in 0..cutoff."""
    histogram = [0.0] * (cutoff + 1)
    for count in _raw_counts(counts):
        if count < 0:
            raise SmoothingError(f"negative raw count: {count!r}")
        if count <= cutoff:
            histogram[int(count)] += 1
    return histogram


def fit_smoother(counts: Union[WeightedMap, NestedWeightedMap], cutoff: int) -> LogLinearFit:
    """
    Fit the log-linear smoothing curve for a table of raw counts.

    Args:
        counts: Raw counts, flat or nested by context
        cutoff: Largest count that will be discounted (K)

    Returns:
        LogLinearFit holding the smoothed bucket sizes

    Raises:
        SmoothingError: the histogram has fewer than two non-empty buckets
    """
    if cutoff < 1:
        raise SmoothingError(f"cutoff must be at least 1, got {cutoff}")

    histogram = count_histogram(counts, cutoff)
    support = [c for c in range(cutoff + 1) if histogram[c] > MIN_BUCKET_SUPPORT]
    log_sizes = [math.log(histogram[c]) for c in support]

    slope, intercept = linear_regression([float(c) for c in support], log_sizes)

    table = [0.0] * (cutoff + 1)
    for i, c in enumerate(support):
        table[i] = check_value(math.exp(slope * c + intercept), f"smoothed count for c={c}")

    logger.debug("log-linear fit: slope=%.4f intercept=%.4f over counts %s",
                 slope, intercept, support)
    return LogLinearFit(
        slope=slope,
        intercept=intercept,
        support=tuple(support),
        table=tuple(table),
        cutoff=cutoff,
    )


def normalize_katz(counts: WeightedMap, cutoff: int, fit: LogLinearFit,
                   lower_order=None, reserve: float = 0.0) -> float:
    """
    Turn one distribution's raw counts into Katz probabilities, in place.

    Events discounted all the way to 0 are treated like events the
    distribution never saw: they are filled from the lower order.

    Args:
        counts: Raw counts of a single distribution (one context)
        cutoff: Counts above this value keep their raw count
        fit: Smoothing table from ``fit_smoother``
        lower_order: Back-off distribution exposing ``get`` and ``total``;
            None when there is nothing to back off to
        reserve: Share of the probability mass taken from the observed
            events and handed to unseen ones when discounting frees
            nothing. 0 leaves such a distribution without back-off mass.

    Returns:
        Back-off weight of the distribution: the factor applied to the
        lower-order probability of any event ``counts`` holds no mass for.
        Entries already stored with weight 0 receive exactly that value.
    """
    if not 0 <= reserve < 1:
        raise SmoothingError(f"reserve must be in [0, 1), got {reserve!r}")
    subtotal = counts.total()
    if subtotal <= 0:
        return 0.0

    discounted_mass = 0.0
    observed_lower_mass = 0.0
    probabilities = {}
    candidates = []

    # All discounts are computed before any entry is rewritten, so the
    # result does not depend on the order keys are visited in.
    for key, count in counts.items():
        check_value(count, f"raw count of {key!r}")
        new_count = count if count > cutoff else fit.discounted_count(count)
        if new_count < count:
            discounted_mass += count - new_count
        if new_count == 0:
            candidates.append(key)
            continue
        probabilities[key] = new_count / subtotal
        if lower_order is not None:
            observed_lower_mass += lower_order.get(key)

    zero_mass = 0.0
    if lower_order is not None:
        zero_mass = lower_order.total() - observed_lower_mass
        if zero_mass < 1e-12:
            zero_mass = 0.0

    backoff = 0.0
    if zero_mass > 0:
        if discounted_mass > 0:
            backoff = discounted_mass / subtotal / subtotal / zero_mass
        elif reserve > 0:
            for key in probabilities:
                probabilities[key] *= 1.0 - reserve
            backoff = reserve / zero_mass

    for key in candidates:
        probabilities[key] = backoff * lower_order.get(key) if lower_order is not None else 0.0

    for key, probability in probabilities.items():
        counts.set(key, check_value(probability, f"probability of {key!r}"))

    return check_value(backoff, "back-off weight")


class BackoffDistribution:
    """
    One context's Katz distribution seen as a complete distribution.

    Events the context observed keep their stored probability; every other
    event gets ``backoff`` times its probability under ``lower_order``. Used
    as the lower-order distribution of the next order up.
    """

    def __init__(self, probabilities: WeightedMap, backoff: float, lower_order):
        self.probabilities = probabilities
        self.backoff = backoff
        self.lower_order = lower_order
        self._total: Optional[float] = None

    def get(self, key: Hashable) -> float:
        if key in self.probabilities:
            return self.probabilities.get(key)
        return self.backoff * self.lower_order.get(key)

    def total(self) -> float:
        if self._total is None:
            covered = sum(self.lower_order.get(key) for key in self.probabilities)
            unseen = max(self.lower_order.total() - covered, 0.0)
            self._total = self.probabilities.total() + self.backoff * unseen
        return self._total


def normalize_katz_nested(counts: NestedWeightedMap, cutoff: int, fit: LogLinearFit,
                          lower_order_for: Callable[[Hashable], Optional[object]],
                          reserve: float = 0.0) -> WeightedMap:
    """
    Apply ``normalize_katz`` to every context of a nested count table.

    Args:
        counts: Context -> raw continuation counts; normalized in place
        cutoff: Discounting cutoff
        fit: Smoothing table fitted on ``counts``
        lower_order_for: Returns the back-off distribution for a context
        reserve: Passed on to ``normalize_katz``

    Returns:
        WeightedMap from context to its back-off weight
    """
    backoffs = WeightedMap()
    for context, submap in counts.items():
        backoffs.set(context, normalize_katz(submap, cutoff, fit, lower_order_for(context),
                                             reserve=reserve))
    logger.debug("normalized %d contexts", len(backoffs))
    return backoffs
