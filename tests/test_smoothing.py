import math

import pytest

from katzlm.counters import NestedWeightedMap, WeightedMap
from katzlm.smoothing import (
    BackoffDistribution, SmoothingError, check_value, count_histogram, fit_smoother,
    linear_regression, normalize_katz, normalize_katz_nested
)

SLOPE = -math.log(5) / 2
INTERCEPT = (math.log(5) + math.log(3)) / 3 + math.log(5)


def histogram_counts():
    """Five events seen once, three seen twice, one seen three times."""
    counts = WeightedMap()
    for key in "abcde":
        counts.set(key, 1.0)
    for key in "fgh":
        counts.set(key, 2.0)
    counts.set("i", 3.0)
    return counts


def test_linear_regression_closed_form():
    slope, intercept = linear_regression([1.0, 2.0, 3.0], [math.log(5), math.log(3), math.log(1)])
    assert slope == pytest.approx(SLOPE)
    assert intercept == pytest.approx(INTERCEPT)


def test_linear_regression_rejects_degenerate_input():
    with pytest.raises(SmoothingError):
        linear_regression([1.0], [0.0])
    with pytest.raises(SmoothingError):
        linear_regression([2.0, 2.0], [0.0, 1.0])
    with pytest.raises(SmoothingError):
        linear_regression([1.0, 2.0], [0.0])


def test_check_value():
    assert check_value(0.5, "p") == 0.5
    for bad in (float("nan"), float("inf"), -0.1):
        with pytest.raises(SmoothingError):
            check_value(bad, "p")


def test_count_histogram():
    histogram = count_histogram(histogram_counts(), cutoff=5)
    assert histogram == [0.0, 5.0, 3.0, 1.0, 0.0, 0.0]


def test_count_histogram_of_nested_counts_and_cutoff():
    nested = NestedWeightedMap()
    nested.increment("the", "cat")
    nested.increment("the", "dog", 2.0)
    nested.increment("a", "cat", 9.0)
    assert count_histogram(nested, cutoff=2) == [0.0, 1.0, 1.0]


def test_fit_smoother_tabulates_regression_points():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    assert fit.support == (1, 2, 3)
    assert fit.slope == pytest.approx(SLOPE)
    assert fit.intercept == pytest.approx(INTERCEPT)
    assert len(fit.table) == 6
    for i, c in enumerate(fit.support):
        assert fit.table[i] == pytest.approx(math.exp(SLOPE * c + INTERCEPT))
    assert fit.table[3:] == (0.0, 0.0, 0.0)


def test_fit_smoother_needs_two_support_points():
    counts = WeightedMap({"a": 1.0, "b": 1.0, "c": 1.0})
    with pytest.raises(SmoothingError):
        fit_smoother(counts, cutoff=5)
    with pytest.raises(SmoothingError):
        fit_smoother(histogram_counts(), cutoff=0)


def test_discounted_count():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    # Consecutive table entries differ by a factor exp(slope) = 1 / sqrt(5).
    assert fit.discounted_count(1) == pytest.approx(2 / math.sqrt(5))
    assert fit.discounted_count(2) == pytest.approx(3 / math.sqrt(5))
    # table[3] is past the fitted entries: 4 * 0 / table[2].
    assert fit.discounted_count(3) == 0.0
    # table[3] is also the denominator for a count of 4.
    assert fit.discounted_count(4) == 4
    assert fit.discounted_count(6) == 6
    assert fit.discounted_count(0) == 0


def test_normalize_katz_without_lower_order():
    counts = histogram_counts()
    fit = fit_smoother(counts, cutoff=5)
    backoff = normalize_katz(counts, 5, fit)

    assert backoff == 0.0
    subtotal = 14.0
    assert counts.get("a") == pytest.approx(2 / math.sqrt(5) / subtotal)
    assert counts.get("f") == pytest.approx(3 / math.sqrt(5) / subtotal)
    # Discounted to nothing and nothing to back off to.
    assert counts.get("i") == 0.0
    assert "i" in counts
    assert counts.total() < 1.0
    assert all(p >= 0 for _, p in counts.items())


def test_normalize_katz_redistributes_to_zero_entries():
    counts = histogram_counts()
    fit = fit_smoother(counts, cutoff=5)
    counts.set("z", 0.0)
    lower = WeightedMap({key: 1.0 for key in "abcdefghizy"})
    lower.normalize()

    backoff = normalize_katz(counts, 5, fit, lower)

    # "i" (count 3) is discounted away and joins "z" and "y" as unseen.
    discounted = 5 * (1 - 2 / math.sqrt(5)) + 3 * (2 - 3 / math.sqrt(5)) + 3
    alpha = discounted / 14.0 / (3 / 11)
    assert backoff == pytest.approx(alpha / 14.0)
    assert counts.get("z") == pytest.approx(backoff / 11)
    assert counts.get("i") == pytest.approx(backoff / 11)
    assert "y" not in counts

    complete = BackoffDistribution(counts, backoff, lower)
    assert complete.get("y") == pytest.approx(backoff / 11)
    assert complete.total() <= 1.0 + 1e-9


def test_normalize_katz_ignores_iteration_order():
    forward = histogram_counts()
    backward = WeightedMap(dict(reversed(list(forward.items()))))
    fit = fit_smoother(forward, cutoff=5)
    lower = WeightedMap({key: 1.0 for key in "abcdefghixyz"})
    lower.normalize()

    assert normalize_katz(forward, 5, fit, lower) == pytest.approx(
        normalize_katz(backward, 5, fit, lower))
    for key in forward:
        assert forward.get(key) == pytest.approx(backward.get(key))


def test_normalize_katz_reserve_funds_unseen_events():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    # Both counts are above the cutoff, so discounting frees nothing.
    counts = WeightedMap({"a": 6.0, "b": 7.0})
    lower = WeightedMap({key: 1.0 for key in "abcd"})
    lower.normalize()

    backoff = normalize_katz(counts, 5, fit, lower, reserve=0.2)

    assert counts.get("a") == pytest.approx(6 / 13 * 0.8)
    assert counts.get("b") == pytest.approx(7 / 13 * 0.8)
    assert backoff == pytest.approx(0.2 / 0.5)
    assert BackoffDistribution(counts, backoff, lower).total() == pytest.approx(1.0)


def test_normalize_katz_without_reserve_keeps_observed_mass():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    counts = WeightedMap({"a": 6.0, "b": 7.0})
    lower = WeightedMap({key: 1.0 for key in "abcd"})
    assert normalize_katz(counts, 5, fit, lower) == 0.0
    assert counts.total() == pytest.approx(1.0)


@pytest.mark.parametrize("reserve", [-0.1, 1.0])
def test_normalize_katz_rejects_bad_reserve(reserve):
    fit = fit_smoother(histogram_counts(), cutoff=5)
    with pytest.raises(SmoothingError):
        normalize_katz(WeightedMap({"a": 1.0}), 5, fit, reserve=reserve)


def test_normalize_katz_empty_distribution():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    empty = WeightedMap()
    assert normalize_katz(empty, 5, fit, WeightedMap({"a": 1.0})) == 0.0
    assert empty.is_empty()


def test_normalize_katz_rejects_negative_counts():
    fit = fit_smoother(histogram_counts(), cutoff=5)
    with pytest.raises(SmoothingError):
        normalize_katz(WeightedMap({"a": 2.0, "b": -1.0}), 5, fit)


def test_normalize_katz_nested_returns_backoff_per_context():
    nested = NestedWeightedMap()
    for context in ("x", "y"):
        for key, weight in histogram_counts().items():
            nested.set(context, key, weight)
    lower = WeightedMap({key: 1.0 for key in "abcdefghiz"})
    lower.normalize()
    fit = fit_smoother(nested, cutoff=5)

    backoffs = normalize_katz_nested(nested, 5, fit, lambda _: lower)

    assert set(backoffs) == {"x", "y"}
    assert backoffs.get("x") == pytest.approx(backoffs.get("y"))
    assert backoffs.get("x") > 0
    for _, submap in nested.items():
        assert submap.total() <= 1.0
