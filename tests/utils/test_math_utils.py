import math

import numpy as np
import pandas as pd
import pytest

from elexconformal.utils import math_utils


def test_compute_mae():
    random_number_generator = np.random.RandomState(42)
    y_true = random_number_generator.exponential(size=100)
    y_pred = y_true + 180
    assert math_utils.compute_error(y_true, y_pred, type_="mae") == pytest.approx(180)


@pytest.mark.filterwarnings("ignore:divide by zero")
def test_compute_mape():
    random_number_generator = np.random.RandomState(42)
    y_true = random_number_generator.exponential(size=100)
    y_pred = 1.8 * y_true
    assert math_utils.compute_error(y_true, y_pred, type_="mape") == pytest.approx(0.8)

    # if multiple true values are zero
    y_true = pd.Series(np.asarray([0, 1, 4, 0, 5, 3]))
    y_pred = pd.Series(np.asarray([10, 4, 8, 20, 5, 8]))
    mape = (abs(1 - 4) / 1 + abs(4 - 8) / 4 + abs(5 - 5) / 5 + abs(3 - 8) / 3) / 4
    assert math_utils.compute_error(y_true, y_pred, type_="mape") == pytest.approx(mape)


@pytest.mark.filterwarnings("ignore:divide by zero", "ignore:invalid value", "ignore:Mean of empty slice")
def test_compute_mape_uncontested():
    # if all true values are zero
    y_true = pd.Series(np.asarray([0, 0, 0, 0, 0, 0]))
    y_pred = pd.Series(np.asarray([10, 4, 8, 20, 5, 8]))
    assert math.isnan(math_utils.compute_error(y_true, y_pred, type_="mape"))


def test_compute_error_invalid_type():
    with pytest.raises(ValueError):
        math_utils.compute_error(np.asarray([1]), np.asarray([1]), type_="rmse")


def test_compute_frac_within_pi():
    lower = np.asarray([0, 1, 4, 10, 5, 3])
    upper = np.asarray([10, 4, 8, 20, 5, 8])
    results = np.asarray([5, 8, 5, 10, 5, 9])
    assert math_utils.compute_frac_within_pi(lower, upper, results) == pytest.approx(4 / 6)


def test_compute_mean_pi_length():
    lower = np.asarray([90, 180, 0])
    upper = np.asarray([110, 220, 10])
    pred = np.asarray([100, 200, 5])
    assert math_utils.compute_mean_pi_length(lower, upper, pred) == pytest.approx((0.2 + 0.2 + 2) / 3)


def test_compute_conformal_quantile():
    assert math_utils.compute_conformal_quantile(0.8, 16) == pytest.approx(0.85)
    assert math_utils.compute_conformal_quantile(0.9, 9) == pytest.approx(1)
    assert math_utils.compute_conformal_quantile(0.9, 5) > 1


def test_compute_population_quantile_uniform_weights():
    """
    With equal weights the population quantile is the smallest score such that more than q of the scores
    are at or below it
    """
    scores = np.asarray([0.5, 0.1, 0.4, 0.2, 0.3])
    weights = np.ones(5) / 5
    assert math_utils.compute_population_quantile(scores, weights, 0.5) == pytest.approx(0.3)
    assert math_utils.compute_population_quantile(scores, weights, 0.7) == pytest.approx(0.4)
    assert math_utils.compute_population_quantile(scores, weights, 0.59) == pytest.approx(0.3)
    assert math_utils.compute_population_quantile(scores, weights, 0) == pytest.approx(0.1)


def test_compute_population_quantile_weighted():
    """
    Large units move the quantile towards their score
    """
    scores = np.asarray([0.1, 0.2, 0.3, 0.4])
    weights = np.asarray([0.1, 0.1, 0.7, 0.1])
    assert math_utils.compute_population_quantile(scores, weights, 0.25) == pytest.approx(0.3)
    assert math_utils.compute_population_quantile(scores, weights, 0.85) == pytest.approx(0.3)
    assert math_utils.compute_population_quantile(scores, weights, 0.95) == pytest.approx(0.4)

    weights = np.asarray([0.7, 0.1, 0.1, 0.1])
    assert math_utils.compute_population_quantile(scores, weights, 0.5) == pytest.approx(0.1)


def test_compute_population_quantile_top_end():
    """
    If no cumulative weight is larger than q we return the largest score
    """
    scores = np.asarray([0.3, 0.1, 0.2])
    weights = np.asarray([1 / 3, 1 / 3, 1 / 3])
    assert math_utils.compute_population_quantile(scores, weights, 1) == pytest.approx(0.3)
    assert math_utils.compute_population_quantile(scores, weights, 1.5) == pytest.approx(0.3)


def test_compute_population_quantile_ties():
    """
    Tied scores are ordered by the tie breaker, so the result does not depend on the input order
    """
    scores = np.asarray([0.2, 0.2, 0.1])
    weights = np.asarray([0.25, 0.5, 0.25])
    tie_breaker = np.asarray(["b", "a", "c"])
    q1 = math_utils.compute_population_quantile(scores, weights, 0.6, tie_breaker=tie_breaker)
    q2 = math_utils.compute_population_quantile(scores[::-1], weights[::-1], 0.6, tie_breaker=tie_breaker[::-1])
    assert q1 == q2 == pytest.approx(0.2)
