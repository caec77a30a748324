import logging
import math

import numpy as np
import pandas as pd

from elexconformal.exceptions import CalibrationException
from elexconformal.models.ConformalElectionModel import ConformalElectionModel, PredictionIntervals
from elexconformal.utils.math_utils import compute_conformal_quantile, compute_population_quantile

LOG = logging.getLogger(__name__)

# floating point slack when checking that the correction quantile is a valid quantile
QUANTILE_TOLERANCE = 1e-9


class NonparametricElectionModel(ConformalElectionModel):
    def __init__(self, model_settings: dict):
        super().__init__(model_settings)
        self.robust = model_settings.get("robust", False)
        self.conformalization_data_agg = None
        self.conformalization_data_unit = None
        self.corrections = {}

    def _compute_conf_frac(self, n_reporting_units: int, alpha: float) -> float:
        """
        Returns fraction of reporting units that the lower and upper models are trained on,
        the rest is the conformalization set. This is negative if there are too few reporting units for alpha.
        """
        return min(1 - (alpha / 0.05) / n_reporting_units, 0.9)

    def _is_enough_reporting_units(self, n_reporting_units: int, alpha: float) -> bool:
        conf_frac = self._compute_conf_frac(n_reporting_units, alpha)
        n_train = math.floor(n_reporting_units * conf_frac)
        n_conformalization = n_reporting_units - n_train
        if n_train < 1 or n_conformalization < 1:
            return False
        return compute_conformal_quantile(alpha, n_conformalization) <= 1

    def get_minimum_reporting_units(self, alpha: float) -> int:
        """
        Smallest number of reporting units for which we can both train the lower/upper models and have
        enough conformalization data to compute the correction for alpha.
        """
        n_reporting_units = 1
        while not self._is_enough_reporting_units(n_reporting_units, alpha):
            n_reporting_units += 1
        return n_reporting_units

    def _compute_correction_quantile(self, alpha: float, n_conformalization: int) -> float:
        # to cover alpha-% of new units we need a slightly larger quantile of the conformity scores
        correction_quantile = compute_conformal_quantile(alpha, n_conformalization)
        if correction_quantile > 1 + QUANTILE_TOLERANCE:
            raise CalibrationException(
                f"Correction quantile {correction_quantile} is larger than one, "
                f"{n_conformalization} conformalization units are too few for alpha {alpha}"
            )
        return min(correction_quantile, 1)

    def _compute_population_correction(
        self, conformalization_data: pd.DataFrame, scores: np.ndarray, correction_quantile: float
    ) -> float:
        """
        Compute population corrected conformalization correction.
        We care about larger units more than smaller units when computing aggregate prediction intervals.
        To accomplish this we weight the i-th conformalization score by the number of voters in that unit.
        """
        weights = conformalization_data["total_voters"] / conformalization_data["total_voters"].sum()
        return compute_population_quantile(
            scores, weights, correction_quantile, tie_breaker=conformalization_data["geographic_unit_fips"]
        )

    def get_unit_prediction_intervals(
        self, reporting_units: pd.DataFrame, nonreporting_units: pd.DataFrame, alpha: float
    ) -> PredictionIntervals:
        """
        Get unit prediction intervals for non-parametric model. Adjust nonreporting unit prediction intervals based
        on conformalization.
        Returns upper/lower unit bounds and conformalization data (since we need that for aggregation)
        """
        conf_frac = self._compute_conf_frac(reporting_units.shape[0], alpha)
        # compute unadjusted upper/lower unit bounds and get conformalization data
        prediction_intervals = self.get_unit_prediction_interval_bounds(
            reporting_units, nonreporting_units, conf_frac, alpha
        )
        conformalization_data = prediction_intervals.conformalization
        self.conformalization_data_unit = conformalization_data

        # compute conformity scores (e_j). This is how well the the lower/upper model cover the conformalization data.
        scores = np.maximum(conformalization_data["lower_bounds"].values, conformalization_data["upper_bounds"].values)

        correction_quantile = self._compute_correction_quantile(alpha, conformalization_data.shape[0])
        base_correction = np.quantile(scores, q=correction_quantile)

        # we care about larger units more than smaller units when computing aggregate
        # prediction intervals. To accomplish this, we weight the i-th score by the
        # number of voters in that unit
        population_correction = self._compute_population_correction(conformalization_data, scores, correction_quantile)
        if self.robust:
            correction = max(base_correction, population_correction)
        else:
            correction = population_correction

        LOG.debug(
            "alpha %s: base correction %s, population correction %s, using %s",
            alpha,
            base_correction,
            population_correction,
            correction,
        )
        self.corrections[alpha] = {
            "base_correction": base_correction,
            "population_correction": population_correction,
            "correction": correction,
            "n_conformalization": conformalization_data.shape[0],
        }

        # apply correction
        lower = prediction_intervals.lower - correction
        upper = prediction_intervals.upper + correction

        return PredictionIntervals(
            self._to_votes(lower, nonreporting_units),
            self._to_votes(upper, nonreporting_units),
            conformalization_data,
        )

    def get_all_conformalization_data_unit(self) -> pd.DataFrame:
        """
        Returns the conformalization data of the last unit level calibration
        """
        return self.conformalization_data_unit

    def get_all_conformalization_data_agg(self) -> pd.DataFrame:
        """
        Returns the corrections computed for every alpha
        """
        return self.conformalization_data_agg

    def get_aggregate_prediction_intervals(
        self,
        reporting_units: pd.DataFrame,
        nonreporting_units: pd.DataFrame,
        unexpected_units: pd.DataFrame,
        aggregate: list,
        alpha: float,
    ) -> PredictionIntervals:
        """
        Get aggregate prediction intervals. In the non-parametric case prediction intervals just sum.
        Compute results from reporting data and nonreporting data and then sum in the lower and upper prediction
        intervals from nonreporting data.
        """
        aggregate_votes = self._get_reporting_aggregate_votes(reporting_units, unexpected_units, aggregate)

        lower_string = f"lower_{alpha}"
        upper_string = f"upper_{alpha}"

        # prediction intervals sum. Technically this is a conservative approach, equivalent to perfect
        # correlation between units
        aggregate_prediction_intervals = self._get_nonreporting_aggregate_votes(
            nonreporting_units, aggregate, [lower_string, upper_string]
        ).rename(columns={lower_string: "pi_lower", upper_string: "pi_upper"})

        aggregate_data = (
            aggregate_votes.merge(aggregate_prediction_intervals, how="outer", on=aggregate)
            .fillna({"results": 0, "pi_lower": 0, "pi_upper": 0})
            .assign(
                lower=lambda x: x["pi_lower"] + x["results"],
                upper=lambda x: x["pi_upper"] + x["results"],
            )
            .sort_values(aggregate)[aggregate + ["lower", "upper"]]
            .reset_index(drop=True)
        )

        self.conformalization_data_agg = pd.DataFrame.from_dict(self.corrections, orient="index").rename_axis(
            "alpha"
        )
        return PredictionIntervals(aggregate_data.lower.round(decimals=0), aggregate_data.upper.round(decimals=0))
