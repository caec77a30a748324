import logging
import math
import warnings
from abc import ABC
from collections import namedtuple

import cvxpy
import numpy as np
import pandas as pd
from elexsolver.QuantileRegressionSolver import QuantileRegressionSolver

from elexconformal.exceptions import FittingException, ModelNotEnoughSubunitsException
from elexconformal.handlers.data.Featurizer import Featurizer
from elexconformal.models import BaseElectionModel

warnings.filterwarnings("error", category=UserWarning, module="cvxpy")

# elexsolver warns about this whenever there are fixed effects, see Featurizer._get_constraint_rows
INTERCEPT_WARNING = "fit_intercept=True and not all elements of the first columns? are 1s"

PredictionIntervals = namedtuple("PredictionIntervals", ["lower", "upper", "conformalization"], defaults=(None,) * 3)

LOG = logging.getLogger(__name__)


class ConformalElectionModel(BaseElectionModel.BaseElectionModel, ABC):
    def __init__(self, model_settings: dict):
        super(ConformalElectionModel, self).__init__(model_settings)
        self.lambda_ = model_settings.get("lambda_", 0)
        self.n_train = None

    def _compute_conf_frac(self, *args) -> float:
        """
        Compute the fraction of reporting units that we train the interval models on
        """
        raise NotImplementedError

    def fit_model(
        self,
        model: QuantileRegressionSolver,
        df_X: pd.DataFrame,
        df_y: pd.Series,
        tau: float,
        weights: pd.Series,
    ):
        """
        Fits the quantile regression for the model
        """
        X = df_X.values
        y = df_y.values
        weights = weights.values

        # the solver either throws a warning for inaccurate solution or breaks entirely. In both cases the
        # coefficients can't be trusted, so we don't make any predictions.
        try:
            with warnings.catch_warnings():
                # constraint rows have an intercept of zero, the intercept column is still not penalized
                warnings.filterwarnings("ignore", message=INTERCEPT_WARNING)
                model.fit(X, y, taus=tau, weights=weights, lambda_=self.lambda_, fit_intercept=True)
        except (UserWarning, cvxpy.error.SolverError) as e:
            raise FittingException(f"Quantile regression with tau {tau} did not solve: {e}") from e

    def _predict(self, model: QuantileRegressionSolver, df_X: pd.DataFrame) -> np.ndarray:
        if df_X.shape[0] == 0:
            return np.array([], dtype="float64")
        return model.predict(df_X.values).flatten()

    def _check_reporting_units(self, reporting_units: pd.DataFrame):
        if reporting_units.shape[0] == 0:
            raise ModelNotEnoughSubunitsException("There are no fully reporting units to fit on", stage="fitting")

    def _to_votes(self, normalized_residuals: np.ndarray, nonreporting_units: pd.DataFrame) -> np.ndarray:
        """
        Moves from normalized residuals to votes.
        """
        # multiply by total voters to get unnormalized residuals
        residuals = normalized_residuals * nonreporting_units["total_voters"].values
        # add in last election results to go from residual to number of votes in this election
        # max with results so that predictions are always at least as large as the number of votes counted so far
        # (fmax ignores units that have no results yet)
        votes = np.fmax(
            residuals + nonreporting_units["last_election_results"].values,
            nonreporting_units["results"].values.astype("float64"),
        )
        # round since we don't need the artificial precision
        return np.round(votes, decimals=0)

    def get_unit_predictions(self, reporting_units: pd.DataFrame, nonreporting_units: pd.DataFrame) -> np.ndarray:
        """
        Produces unit level predictions. Fits median quantile regression to the normalized residuals
        of reporting units, applies it to nonreporting units.
        """
        self._check_reporting_units(reporting_units)
        self.n_train = reporting_units.shape[0]

        featurizer = Featurizer(self.features, self.fixed_effects)
        reporting_units_features = featurizer.prepare_fitting_data(reporting_units)
        nonreporting_units_features = featurizer.generate_holdout_data(nonreporting_units)

        # larger units should count more, this is consistent with normalizing residuals by voters
        weights = reporting_units_features["total_voters"]
        reporting_units_residuals = reporting_units_features["residuals"] / weights

        qr = QuantileRegressionSolver()
        reporting_units_X = reporting_units_features[featurizer.complete_features]
        self.fit_model(qr, reporting_units_X, reporting_units_residuals, 0.5, weights)
        self.features_to_coefficients = dict(zip(featurizer.complete_features, np.asarray(qr.coefficients).flatten()))

        preds = self._predict(qr, nonreporting_units_features[featurizer.complete_features])
        return self._to_votes(preds, nonreporting_units)

    def _get_random_state(self, alpha: float):
        """
        Random state for the train / conformalization split of one alpha. None if there is no seed.
        """
        if self.seed is None:
            return None
        return np.random.default_rng([self.seed, round(alpha * 10**6)])

    def get_unit_prediction_interval_bounds(
        self,
        reporting_units: pd.DataFrame,
        nonreporting_units: pd.DataFrame,
        conf_frac: float,
        alpha: float,
    ) -> PredictionIntervals:
        """
        Get unadjusted unit prediction intervals. Splits reporting data into training data and conformalization data,
        fits lower and upper quantile regression using training data and apply to both conformalization data
        and nonreporting data to get conformalization lower/upper bounds and nonreporting lower/upper bounds.
        Returns unadjusted bounds for nonreporting data and conformalization data including bounds.
        Bounds are normalized residuals.
        """
        self._check_reporting_units(reporting_units)

        interval_featurizer = Featurizer(self.features, self.fixed_effects)
        reporting_units_features = interval_featurizer.prepare_fitting_data(reporting_units)
        nonreporting_units_features = interval_featurizer.generate_holdout_data(nonreporting_units)

        # the constraint rows have to be in the training data, so we take them out before splitting
        reporting_units_features, constraint_rows = interval_featurizer.split_constraint_rows(reporting_units_features)
        # keep the unit id, we break ties between conformity scores with it
        reporting_units_features["geographic_unit_fips"] = reporting_units["geographic_unit_fips"].values

        # split reporting data into training data and conformalization data
        # every alpha gets its own random state derived from the seed, so the splits of one run
        # are independent of each other but reproducible
        reporting_units_shuffled = reporting_units_features.sample(
            frac=1, random_state=self._get_random_state(alpha)
        ).reset_index(drop=True)

        upper_bound = (1 + alpha) / 2
        lower_bound = (1 - alpha) / 2

        n_reporting_units = reporting_units_shuffled.shape[0]
        train_rows = math.floor(n_reporting_units * conf_frac)
        if train_rows < 1 or train_rows >= n_reporting_units:
            raise ModelNotEnoughSubunitsException(
                f"Cannot split {n_reporting_units} reporting units into training and conformalization data "
                f"for alpha {alpha}"
            )
        train_data = reporting_units_shuffled[:train_rows]

        # since we split the reporting units, some fixed effect values might only be in the conformalization data
        # now. Those columns are all zero in the training data, so we drop them to avoid singular design issues.
        # The constraint rows are restricted to the remaining columns and added back in.
        active_features = interval_featurizer.filter_to_active_features(train_data)
        fitting_columns = active_features + ["total_voters", "residuals"]
        train_data = pd.concat(
            [train_data[fitting_columns], constraint_rows[fitting_columns]], axis=0, ignore_index=True
        )

        train_data_weights = train_data["total_voters"]
        train_data_residuals = train_data["residuals"] / train_data_weights

        # fit lower and upper model to training data
        lower_qr = QuantileRegressionSolver()
        self.fit_model(lower_qr, train_data[active_features], train_data_residuals, lower_bound, train_data_weights)

        upper_qr = QuantileRegressionSolver()
        self.fit_model(upper_qr, train_data[active_features], train_data_residuals, upper_bound, train_data_weights)

        # apply to conformalization data. Conformalization bounds will later tell us how much to adjust lower/upper
        # bounds for nonreporting data.
        conformalization_data = reporting_units_shuffled[train_rows:].reset_index(drop=True)
        conformalization_residuals = (
            conformalization_data["residuals"].values / conformalization_data["total_voters"].values
        )

        # we are interested in f(X) - r
        # since later conformity scores care about deviation of bounds from residuals
        conformalization_lower_bounds = (
            self._predict(lower_qr, conformalization_data[active_features]) - conformalization_residuals
        )
        conformalization_upper_bounds = (
            conformalization_residuals - self._predict(upper_qr, conformalization_data[active_features])
        )

        conformalization_data = conformalization_data[["geographic_unit_fips", "total_voters", "residuals"]].copy()
        conformalization_data["normalized_residuals"] = conformalization_residuals
        conformalization_data["lower_bounds"] = conformalization_lower_bounds
        conformalization_data["upper_bounds"] = conformalization_upper_bounds

        # apply lower/upper models to nonreporting data. This guarantees that the features
        # are the same accross train_data, conformalization_data and nonreporting_units
        nonreporting_lower_bounds = self._predict(lower_qr, nonreporting_units_features[active_features])
        nonreporting_upper_bounds = self._predict(upper_qr, nonreporting_units_features[active_features])

        return PredictionIntervals(nonreporting_lower_bounds, nonreporting_upper_bounds, conformalization_data)

    def get_all_conformalization_data_unit(self):
        """
        Returns conformalization data at the unit level
        """
        raise NotImplementedError

    def get_all_conformalization_data_agg(self):
        """
        Returns conformalization data at the aggregate level
        """
        raise NotImplementedError
