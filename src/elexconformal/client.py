import logging

import pandas as pd

from elexconformal.exceptions import (  # noqa: F401
    AggregationException,
    CalibrationException,
    FeatureBuildingException,
    FittingException,
    InputParameterException,
    ModelClientException,
    ModelNotEnoughSubunitsException,
    PartitionException,
)
from elexconformal.handlers import s3
from elexconformal.handlers.config import ConfigHandler
from elexconformal.handlers.data.CombinedData import CombinedDataHandler
from elexconformal.handlers.data.ModelResults import ModelResultsHandler
from elexconformal.handlers.data.PreprocessedData import PreprocessedDataHandler
from elexconformal.logging import initialize_logging
from elexconformal.models.NonparametricElectionModel import NonparametricElectionModel
from elexconformal.utils.aggregates import get_aggregate
from elexconformal.utils.constants import (
    DEFAULT_AGGREGATES,
    DEFAULT_PREDICTION_INTERVALS,
    DEFAULT_SEED,
    VALID_AGGREGATES_MAPPING,
)
from elexconformal.utils.file_utils import APP_ENV, TARGET_BUCKET
from elexconformal.utils.math_utils import compute_error, compute_frac_within_pi, compute_mean_pi_length

initialize_logging()

LOG = logging.getLogger(__name__)


class ModelClient:
    """
    Client for generating vote estimates
    """

    def __init__(self):
        super().__init__()
        self.all_conformalization_data_unit_dict = {}
        self.all_conformalization_data_agg_dict = {}
        self.model = None
        self.results_handler = None
        self.election_id = None
        self.geographic_unit_type = None
        self.prediction_intervals = None
        self.save_results = None

    def _check_input_parameters(self, prediction_intervals, aggregates, model_settings, config_handler=None):
        if not isinstance(prediction_intervals, (list, tuple)):
            raise InputParameterException("prediction_intervals is not valid. Has to be a list.")
        for alpha in prediction_intervals:
            if isinstance(alpha, bool) or not isinstance(alpha, (float, int)) or not 0 < alpha < 1:
                raise InputParameterException(f"Prediction interval: {alpha} is not valid. Has to be in (0, 1).")
        if len(set(prediction_intervals)) != len(prediction_intervals):
            raise InputParameterException("prediction_intervals is not valid. Contains duplicates.")

        invalid_aggregates = [aggregate for aggregate in aggregates if aggregate not in VALID_AGGREGATES_MAPPING]
        if len(invalid_aggregates) > 0:
            raise InputParameterException(f"Aggregate(s): {invalid_aggregates} not valid.")

        if not isinstance(model_settings, dict):
            raise InputParameterException("model_settings is not valid. Has to be a dict.")
        for key in ["fixed_effects", "features"]:
            if key in model_settings and not isinstance(model_settings[key], (list, tuple)):
                raise InputParameterException(f"{key} is not valid. Has to be a list.")
        if "robust" in model_settings and not isinstance(model_settings["robust"], bool):
            raise InputParameterException("robust is not valid. Has to be a boolean.")
        if "seed" in model_settings and model_settings["seed"] is not None:
            seed = model_settings["seed"]
            if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
                raise InputParameterException("seed is not valid. Has to be a non-negative integer or None.")
        if "lambda_" in model_settings and (
            isinstance(model_settings["lambda_"], bool)
            or not isinstance(model_settings["lambda_"], (float, int))
            or model_settings["lambda_"] < 0
        ):
            raise InputParameterException("lambda is not valid. It has to be numeric and greater than zero.")

        if config_handler is not None:
            model_features = config_handler.get_features()
            invalid_features = [
                feature for feature in model_settings.get("features", []) if feature not in model_features
            ]
            if len(invalid_features) > 0:
                raise InputParameterException(f"Feature(s): {invalid_features} not valid. Please check config")

            model_fixed_effects = config_handler.get_fixed_effects()
            invalid_fixed_effects = [
                fixed_effect
                for fixed_effect in model_settings.get("fixed_effects", [])
                if fixed_effect not in model_fixed_effects
            ]
            if len(invalid_fixed_effects) > 0:
                raise InputParameterException(
                    f"Fixed effect(s): {invalid_fixed_effects} not valid. Please check config"
                )

            model_aggregates = config_handler.get_aggregates()
            invalid_aggregates = [aggregate for aggregate in aggregates if aggregate not in model_aggregates]
            if len(invalid_aggregates) > 0:
                raise InputParameterException(f"Aggregate(s): {invalid_aggregates} not valid. Please check config")

        return True

    def _get_aggregate_intervals(self, aggregate):
        """
        Returns the aggregate point estimates and prediction intervals for every alpha of the last run
        """
        estimates_df = self.model.get_aggregate_predictions(
            self.results_handler.reporting_units,
            self.results_handler.nonreporting_units,
            self.results_handler.unexpected_units,
            aggregate.columns,
        )
        alpha_to_agg_prediction_intervals = {}
        for alpha in self.prediction_intervals:
            alpha_to_agg_prediction_intervals[alpha] = self.model.get_aggregate_prediction_intervals(
                self.results_handler.reporting_units,
                self.results_handler.nonreporting_units,
                self.results_handler.unexpected_units,
                aggregate.columns,
                alpha,
            )
            self.all_conformalization_data_agg_dict[alpha] = self.model.get_all_conformalization_data_agg()
        return estimates_df, alpha_to_agg_prediction_intervals

    def get_aggregate_estimates(self, aggregate):
        """
        Aggregates the unit estimates of the last run to any other aggregate,
        ie. "district" or ["county_classification"]
        """
        if self.model is None or self.results_handler is None:
            raise ModelClientException("Must call the get_estimates() method before get_aggregate_estimates().")

        aggregate = get_aggregate(aggregate)
        missing_columns = [
            column for column in aggregate.columns if column not in self.results_handler.reporting_units.columns
        ]
        if len(missing_columns) > 0:
            raise AggregationException(f"Aggregate(s): {missing_columns} not in unit data")

        estimates_df, alpha_to_agg_prediction_intervals = self._get_aggregate_intervals(aggregate)
        for alpha in self.prediction_intervals:
            estimates_df[f"lower_{alpha}"] = alpha_to_agg_prediction_intervals[alpha].lower.values
            estimates_df[f"upper_{alpha}"] = alpha_to_agg_prediction_intervals[alpha].upper.values
        return estimates_df

    def get_estimates(
        self,
        current_data,  # list of lists or data frame
        election_id=None,
        prediction_intervals=DEFAULT_PREDICTION_INTERVALS,
        geographic_unit_type="county",
        raw_config=None,
        preprocessed_data=None,
        model_settings={},
        **kwargs,
    ):
        """
        Get model estimates for one election.
        If an election_id is passed we read the config for it (or use raw_config) and validate the model settings
        against it. Without an election_id the preprocessed data has to be passed in.
        """
        LOG.info("Getting estimates: %s", election_id)
        # If current_data isn't already a dataframe, convert to df
        if not isinstance(current_data, pd.DataFrame):
            # First element of current_data is list of column values
            column_values = current_data[0]
            current_data = pd.DataFrame(current_data[1:], columns=column_values)
        aggregates = kwargs.get("aggregates", DEFAULT_AGGREGATES)
        save_output = kwargs.get("save_output", [])
        self.save_results = "results" in save_output
        save_data = "data" in save_output
        save_config = "config" in save_output
        save_conformalization = "conformalization" in save_output

        if election_id is None and preprocessed_data is None:
            raise InputParameterException("Either an election_id or preprocessed_data is required.")
        if election_id is None and len(save_output) > 0:
            raise InputParameterException("Saving output requires an election_id.")

        config_handler = None
        if election_id is not None:
            LOG.info("Getting config: %s", election_id)
            config_handler = ConfigHandler(
                election_id, config=raw_config, s3_client=s3.S3JsonUtil(TARGET_BUCKET), save=save_config
            )

        self._check_input_parameters(prediction_intervals, aggregates, model_settings, config_handler=config_handler)
        self.election_id = election_id
        self.geographic_unit_type = geographic_unit_type
        self.prediction_intervals = list(prediction_intervals)

        settings = {
            "features": list(model_settings.get("features", [])),
            "fixed_effects": list(model_settings.get("fixed_effects", [])),
            "robust": model_settings.get("robust", False),
            "seed": model_settings.get("seed", DEFAULT_SEED),
            "lambda_": model_settings.get("lambda_", 0),
        }

        LOG.info("Getting preprocessed data: %s", self.election_id)
        preprocessed_data_handler = PreprocessedDataHandler(
            self.election_id,
            self.geographic_unit_type,
            data=preprocessed_data,
            s3_client=s3.S3CsvUtil(TARGET_BUCKET),
        )
        if config_handler is not None and config_handler.get_states() is not None:
            preprocessed_data_handler.data = preprocessed_data_handler.select_rows_in_states(
                preprocessed_data_handler.data, config_handler.get_states()
            )
            # units in other states would otherwise show up as unexpected units
            current_data = preprocessed_data_handler.select_rows_in_states(current_data, config_handler.get_states())
        preprocessed_data = preprocessed_data_handler.data
        if save_data:
            preprocessed_data_handler.save_data(preprocessed_data)

        LOG.info("Getting combined data")
        data = CombinedDataHandler(
            preprocessed_data,
            current_data,
            fixed_effects=settings["fixed_effects"],
            features=settings["features"],
            aggregates=aggregates,
        )
        (reporting_units, nonreporting_units, unexpected_units) = data.get_units()

        LOG.info(
            "Model parameters: \n prediction intervals: %s, aggregates: %s, model settings: %s",
            self.prediction_intervals,
            aggregates,
            settings,
        )
        self.model = NonparametricElectionModel(model_settings=settings)

        minimum_reporting_units_max = 0
        for alpha in self.prediction_intervals:
            minimum_reporting_units = self.model.get_minimum_reporting_units(alpha)
            if minimum_reporting_units > minimum_reporting_units_max:
                minimum_reporting_units_max = minimum_reporting_units

        n_reporting_expected_units = reporting_units.shape[0]
        LOG.info(
            "Running model. There are %s reporting and expected units, %s unexpected units, %s nonreporting units.",
            n_reporting_expected_units,
            unexpected_units.shape[0],
            nonreporting_units.shape[0],
        )
        if n_reporting_expected_units < minimum_reporting_units_max:
            raise ModelNotEnoughSubunitsException(
                f"Currently {n_reporting_expected_units} reporting, need at least {minimum_reporting_units_max}"
            )

        self.results_handler = ModelResultsHandler(
            aggregates, self.prediction_intervals, reporting_units, nonreporting_units, unexpected_units
        )

        unit_predictions = self.model.get_unit_predictions(reporting_units, nonreporting_units)
        self.results_handler.add_unit_predictions(unit_predictions)

        # gets prediction intervals for each alpha
        alpha_to_unit_prediction_intervals = {}
        for alpha in self.prediction_intervals:
            alpha_to_unit_prediction_intervals[alpha] = self.model.get_unit_prediction_intervals(
                self.results_handler.reporting_units, self.results_handler.nonreporting_units, alpha
            )
            self.all_conformalization_data_unit_dict[alpha] = self.model.get_all_conformalization_data_unit()

        self.results_handler.add_unit_intervals(alpha_to_unit_prediction_intervals)

        for aggregate_name in aggregates:
            if aggregate_name == "unit":
                continue
            aggregate = get_aggregate(aggregate_name)
            estimates_df, alpha_to_agg_prediction_intervals = self._get_aggregate_intervals(aggregate)
            self.results_handler.add_agg_predictions(aggregate, estimates_df, alpha_to_agg_prediction_intervals)

        self.results_handler.process_final_results()

        if APP_ENV != "local" and self.save_results:
            self.results_handler.write_data(self.election_id, self.geographic_unit_type)
        if APP_ENV != "local" and save_conformalization:
            self._write_conformalization_data()

        return self.results_handler.final_results

    def _write_conformalization_data(self):
        s3_client = s3.S3CsvUtil(TARGET_BUCKET)
        for alpha, conformalization_data in self.all_conformalization_data_unit_dict.items():
            path_info = {
                "election_id": self.election_id,
                "geographic_unit_type": self.geographic_unit_type,
                "key": f"conformalization_data_{alpha}",
            }
            s3_client.put(s3_client.get_file_path("predictions", path_info), conformalization_data)

    def compute_evaluation(self, estimates, results, merge_on, group_by):
        """
        Computes the error and prediction interval metrics of one table of estimates against the true results.
        group_by can be a list of columns or a lambda returning true to create one group.
        """
        intermed = estimates.merge(results, on=merge_on).groupby(group_by)
        error_df = intermed.apply(
            lambda x: pd.Series(
                {
                    "mae": compute_error(x["raw_results"], x["pred"], type_="mae"),
                    "mape": compute_error(x["raw_results"], x["pred"], type_="mape"),
                }
            ),
            include_groups=False,
        )

        for alpha in self.prediction_intervals:
            lower_string = f"lower_{alpha}"
            upper_string = f"upper_{alpha}"
            alpha_df = intermed.apply(
                lambda x: pd.Series(
                    {
                        f"frac_within_pi_{alpha}": compute_frac_within_pi(
                            x[lower_string], x[upper_string], x["raw_results"]
                        ),
                        f"mean_pi_length_{alpha}": compute_mean_pi_length(
                            x[lower_string], x[upper_string], x["pred"]
                        ),
                    }
                ),
                include_groups=False,
            )
            error_df = error_df.merge(alpha_df, left_index=True, right_index=True)

        return error_df.to_dict(orient="index")

    def evaluate_estimates(self, true_results):
        """
        Evaluates the estimates of the last run against the true results.
        true_results is a data frame with postal_code, geographic_unit_fips and raw_results for every unit.
        Reporting units are included, so the metrics are better than they would be for nonreporting units alone.
        """
        if self.results_handler is None:
            raise ModelClientException("Must call the get_estimates() method before evaluate_estimates().")

        evaluation = {}
        results_unit = true_results[["postal_code", "geographic_unit_fips", "raw_results"]]
        unit_data = self.results_handler.unit_data
        evaluation["unit_data"] = self.compute_evaluation(
            unit_data, results_unit, ["postal_code", "geographic_unit_fips"], lambda x: True
        )[True]

        units = pd.concat(
            [
                self.results_handler.reporting_units,
                self.results_handler.nonreporting_units,
                self.results_handler.unexpected_units,
            ]
        )
        for label, estimates_df in self.results_handler.estimates.items():
            aggregate_list = self.results_handler.aggregate_columns[label]
            results_aggregate = (
                units[list(dict.fromkeys(aggregate_list + ["postal_code", "geographic_unit_fips"]))]
                .merge(results_unit, on=["postal_code", "geographic_unit_fips"])
                .groupby(aggregate_list)["raw_results"]
                .sum()
                .reset_index(drop=False)
            )
            evaluation[label] = self.compute_evaluation(
                estimates_df, results_aggregate, aggregate_list, lambda x: True
            )[True]
        return evaluation


def estimate(
    current_data,
    preprocessed_data,
    model_settings=None,
    prediction_intervals=DEFAULT_PREDICTION_INTERVALS,
    aggregates=None,
):
    """
    Runs the model once for the current data and the preprocessed (baseline) data.
    Returns a dict of data frames, unit_data, state_data and one data frame per additional aggregate.
    """
    model_client = ModelClient()
    return model_client.get_estimates(
        current_data,
        prediction_intervals=prediction_intervals,
        preprocessed_data=preprocessed_data,
        model_settings=model_settings or {},
        aggregates=aggregates or DEFAULT_AGGREGATES,
        save_output=[],
    )
