import numpy as np
import pandas as pd

from elexconformal.handlers import s3
from elexconformal.utils.file_utils import TARGET_BUCKET


class ModelResultsHandler:
    """
    Handler for model results
    """

    def __init__(
        self,
        aggregates,
        prediction_interval_alphas,
        reporting_units,
        nonreporting_units,
        unexpected_units,
    ):
        self.prediction_interval_alphas = prediction_interval_alphas
        self.include_unit_data = "unit" in aggregates
        self.estimates = {}
        self.aggregate_columns = {}
        self.unit_data = None
        self.final_results = {}

        self.reporting_units = reporting_units
        self.nonreporting_units = nonreporting_units
        self.unexpected_units = unexpected_units

    def add_unit_predictions(self, unit_predictions):
        """
        unit_predictions: array with predictions for nonreporting units, as produced by model.get_unit_predictions
        Reporting and unexpected units are fully counted, so their prediction is their result.
        """
        self.reporting_units["pred"] = self.reporting_units["results"]
        self.nonreporting_units["pred"] = unit_predictions
        self.unexpected_units["pred"] = self.unexpected_units["results"]

    def add_unit_intervals(self, prediction_intervals_unit):
        """
        prediction_intervals_unit: dict of the PredictionIntervals class as produced
            by model.get_unit_prediction_intervals(); keys are alphas (for prediction confidence intervals)
        """
        interval_cols = []
        for alpha in self.prediction_interval_alphas:
            lower_string = f"lower_{alpha}"
            upper_string = f"upper_{alpha}"
            interval_cols.extend([lower_string, upper_string])
            self.reporting_units[lower_string] = self.reporting_units["results"]
            self.reporting_units[upper_string] = self.reporting_units["results"]
            self.nonreporting_units[lower_string] = prediction_intervals_unit[alpha].lower
            self.nonreporting_units[upper_string] = prediction_intervals_unit[alpha].upper
            self.unexpected_units[lower_string] = self.unexpected_units["results"]
            self.unexpected_units[upper_string] = self.unexpected_units["results"]

        self.unit_data = (
            pd.concat([self.reporting_units, self.nonreporting_units, self.unexpected_units])
            .sort_values("geographic_unit_fips")[
                ["postal_code", "geographic_unit_fips", "pred"]
                + interval_cols
                + ["results", "reporting", "unit_category"]
            ]
            .reset_index(drop=True)
        )

    def add_agg_predictions(self, aggregate, estimates_df, agg_interval_predictions):
        """
        Adds a set of aggregate predictions

        aggregate: Aggregate, as produced by utils.aggregates.get_aggregate
        estimates_df: data frame with aggregate predictions, as produced by model.get_aggregate_predictions;
        agg_interval_predictions: dict of tuples of lower and upper prediction intervals as produced by
            model.get_aggregate_prediction_intervals(); keys are alphas (prediction interval)
        """
        # require that unit data already be added
        assert self.unit_data is not None, "Need to first add unit predictions with add_unit_intervals()"

        estimates_df = estimates_df.copy()
        for alpha in self.prediction_interval_alphas:
            estimates_df[f"lower_{alpha}"] = np.asarray(agg_interval_predictions[alpha][0])
            estimates_df[f"upper_{alpha}"] = np.asarray(agg_interval_predictions[alpha][1])
        # keep results as the last column, like the unit data
        columns = [column for column in estimates_df.columns if column != "results"] + ["results"]
        self.estimates[aggregate.label] = estimates_df[columns]
        self.aggregate_columns[aggregate.label] = aggregate.columns

    def process_final_results(self):
        """
        Create final data frames of results
        """
        for label, estimates_df in self.estimates.items():
            self.final_results[label] = estimates_df
        if self.include_unit_data:
            self.final_results["unit_data"] = self.unit_data

    def write_data(self, election_id, geographic_unit_type, keys=None):
        """
        Saves dataframe of estimates to S3
        Different file by aggregate level
        """
        if not self.final_results:
            self.process_final_results()
        s3_client = s3.S3CsvUtil(TARGET_BUCKET)
        for key, value in self.final_results.items():
            if keys is not None and key not in keys:
                continue
            path = s3_client.get_file_path(
                "predictions", {"election_id": election_id, "geographic_unit_type": geographic_unit_type, "key": key}
            )
            s3_client.put(path, value)
