import logging
from abc import ABC
from collections import namedtuple

import numpy as np
import pandas as pd

from elexconformal.utils.constants import DEFAULT_SEED

LOG = logging.getLogger(__name__)

PredictionIntervals = namedtuple("PredictionIntervals", ["lower", "upper"], defaults=(None,) * 2)


class BaseElectionModel(ABC):
    def __init__(self, model_settings: dict):
        self.features = model_settings.get("features", [])
        self.fixed_effects = model_settings.get("fixed_effects", [])
        self.model_settings = model_settings
        self.features_to_coefficients = {}
        self.seed = model_settings.get("seed", DEFAULT_SEED)

    def get_minimum_reporting_units(self, alpha: float) -> int:
        """
        Returns the minimum number of units necessary to run the model
        """
        return 10

    def get_unit_predictions(self, reporting_units: pd.DataFrame, nonreporting_units: pd.DataFrame) -> np.ndarray:
        """
        Generates and returns unit level predictions
        """
        raise NotImplementedError

    def _get_reporting_aggregate_votes(
        self, reporting_units: pd.DataFrame, unexpected_units: pd.DataFrame, aggregate: list
    ) -> pd.DataFrame:
        """
        Aggregate reporting votes by aggregate (ie. postal_code, district etc.). This function
        adds reporting data and reporting unexpected data by aggregate.
        """
        reporting_units_known_votes = reporting_units.groupby(aggregate)["results"].sum().reset_index(drop=False)

        # we only know the postal code of unexpected units, not their district or county classification,
        # so we can only add their votes back in if we aggregate by a single attribute they have
        if len(aggregate) == 1 and set(aggregate).issubset(unexpected_units.columns):
            unexpected_units_known_votes = unexpected_units.groupby(aggregate)["results"].sum().reset_index(drop=False)

            # outer join to ensure that if entire states are unexpectedly present, we still have them.
            # Same reasoning to replace NA with zero, NA means there was no such unit so it doesn't add any votes
            aggregate_votes = (
                reporting_units_known_votes.merge(
                    unexpected_units_known_votes,
                    how="outer",
                    on=aggregate,
                    suffixes=("_expected", "_unexpected"),
                )
                .fillna({"results_expected": 0, "results_unexpected": 0})
                .assign(results=lambda x: x["results_expected"] + x["results_unexpected"])[aggregate + ["results"]]
            )
        else:
            aggregate_votes = reporting_units_known_votes[aggregate + ["results"]]

        return aggregate_votes

    def _get_nonreporting_aggregate_votes(
        self, nonreporting_units: pd.DataFrame, aggregate: list, columns: list
    ) -> pd.DataFrame:
        """
        Aggregate columns of nonreporting units by aggregate (ie. postal_code, district etc.).
        Unexpected units are handled in "_get_reporting_aggregate_votes" above
        """
        return nonreporting_units.groupby(aggregate)[columns].sum().reset_index(drop=False)

    def get_aggregate_predictions(
        self,
        reporting_units: pd.DataFrame,
        nonreporting_units: pd.DataFrame,
        unexpected_units: pd.DataFrame,
        aggregate: list,
    ) -> pd.DataFrame:
        """
        Aggregate predictions and results by aggregate (ie. postal_code, district etc.). Add results from reporting
        and reporting unexpected units and then sum in the predictions from nonreporting units.
        """
        # these are units that are already counted
        aggregate_votes = self._get_reporting_aggregate_votes(reporting_units, unexpected_units, aggregate)

        # these are units that are not fully counted yet
        aggregate_preds = self._get_nonreporting_aggregate_votes(
            nonreporting_units, aggregate, ["pred", "results"]
        ).rename(columns={"pred": "pred_only", "results": "results_only"})

        aggregate_data = (
            aggregate_votes.merge(aggregate_preds, how="outer", on=aggregate)
            .fillna({"results": 0, "pred_only": 0, "results_only": 0})
            .assign(
                # don't need to sum results_only for predictions since those are superceded by pred_only
                # preds can't be smaller than results, since we maxed between predictions and results for units.
                pred=lambda x: x["results"] + x["pred_only"],
                results=lambda x: x["results"] + x["results_only"],
            )
            .sort_values(aggregate)[aggregate + ["pred", "results"]]
            .reset_index(drop=True)
        )

        return aggregate_data

    def get_unit_prediction_intervals(
        self, reporting_units: pd.DataFrame, nonreporting_units: pd.DataFrame, alpha: float
    ) -> PredictionIntervals:
        """
        Generates and returns unit level prediction intervals
        """
        raise NotImplementedError

    def get_aggregate_prediction_intervals(
        self,
        reporting_units: pd.DataFrame,
        nonreporting_units: pd.DataFrame,
        unexpected_units: pd.DataFrame,
        aggregate: list,
        alpha: float,
    ) -> PredictionIntervals:
        """
        Generates and returns aggregate prediction intervals for arbitrary aggregates
        """
        raise NotImplementedError

    def get_coefficients(self) -> dict:
        """
        Returns a dictionary of feature/fixed effect names to the coefficients
        These coefficients are for the point prediction only.
        """
        return self.features_to_coefficients
