import numpy as np


def compute_error(true, pred, type_="mae"):
    """
    computes error. either mean absolute error or mean absolute percentage error
    """
    if type_ == "mae":
        return np.mean(np.abs(true - pred))
    if type_ == "mape":
        mask = true != 0
        # if all true values are zero the contest was uncontested and mape is nan
        return np.mean((np.abs((true - pred) / true))[mask])
    raise ValueError(f"Error type {type_} is not valid. Has to be either `mae` or `mape`.")


def compute_frac_within_pi(lower, upper, results):
    """
    computes coverage of prediction intervals.
    """
    return np.mean((upper >= results) & (lower <= results))


def compute_mean_pi_length(lower, upper, pred):
    """
    computes average relative length of prediction interval
    """
    return np.mean(np.abs(np.nan_to_num((upper - lower) / pred)))


def compute_conformal_quantile(alpha, n_conformalization):
    """
    Finite sample adjusted quantile of the conformity scores that we need to cover alpha-% of new units
    """
    return alpha * (1 + 1 / n_conformalization)


def compute_population_quantile(scores, weights, q, tie_breaker=None):
    """
    Returns the smallest score such that the weighted fraction of scores at or below it is larger than q.
    Weights are expected to sum to one. Ties between scores are ordered by tie_breaker (if given) so that the
    result does not depend on the order of the inputs.
    If no cumulative weight is larger than q (which happens when q is one) we return the largest score.
    """
    scores = np.asarray(scores, dtype="float64")
    weights = np.asarray(weights, dtype="float64")
    if tie_breaker is None:
        indices_sorted = np.argsort(scores, kind="stable")
    else:
        # lexsort sorts by the last key first
        # tie breakers are ranked first so that strings (ie. unit ids) work as well
        _, tie_breaker_rank = np.unique(np.asarray(tie_breaker).astype(str), return_inverse=True)
        indices_sorted = np.lexsort((tie_breaker_rank, scores))
    scores_sorted = scores[indices_sorted]
    weights_cumulative = np.cumsum(weights[indices_sorted])
    above_q = np.where(weights_cumulative > q)[0]
    if len(above_q) == 0:
        return scores_sorted[-1]
    return scores_sorted[above_q[0]]
