import logging

import numpy as np
import pandas as pd

from elexconformal.exceptions import AggregationException, FeatureBuildingException, PartitionException
from elexconformal.utils.constants import CURRENT_REQUIRED_COLUMNS, FULLY_REPORTING_PCT, UNIT_KEYS
from elexconformal.utils.pandas_utils import anti_join, semi_join

LOG = logging.getLogger(__name__)


class CombinedDataHandler:
    """
    Combined data handler. Combines preprocessed (baseline) and current data
    """

    def __init__(self, preprocessed_data, current_data, fixed_effects=[], features=[], aggregates=[]):
        self.fixed_effects = list(fixed_effects)
        self.features = list(features)
        self.aggregates = [aggregate for aggregate in aggregates if aggregate != "unit"]

        self._check_preprocessed_data(preprocessed_data)
        current_data = self._format_current_data(current_data)

        # if we're running this for a past election the preprocessed data might have results,
        # we drop them so that we only use the numbers from current_data
        current_columns = [column for column in CURRENT_REQUIRED_COLUMNS if column not in UNIT_KEYS]
        preprocessed_data = preprocessed_data.drop(
            [column for column in current_columns if column in preprocessed_data.columns], axis=1
        )
        preprocessed_data[UNIT_KEYS] = preprocessed_data[UNIT_KEYS].astype(str)
        self.preprocessed_data = preprocessed_data
        self.current_data = current_data

        # left join onto the preprocessed data, so units we were not expecting are dropped here since we
        # have no covariates for them. We add them back in as unexpected units in get_units
        self.data = preprocessed_data.merge(current_data[CURRENT_REQUIRED_COLUMNS], how="left", on=UNIT_KEYS)

        units_by_count = self.data.groupby(UNIT_KEYS).size()
        duplicate_units = units_by_count[units_by_count > 1]
        if len(duplicate_units) > 0:
            raise PartitionException(f"At least one unit appears twice: {duplicate_units.index.tolist()}")

    def _check_preprocessed_data(self, preprocessed_data):
        missing_fixed_effects = [fe for fe in self.fixed_effects if fe not in preprocessed_data.columns]
        if len(missing_fixed_effects) > 0:
            raise FeatureBuildingException(f"Fixed effect(s): {missing_fixed_effects} not in preprocessed data")

        missing_features = [feature for feature in self.features if feature not in preprocessed_data.columns]
        if len(missing_features) > 0:
            raise FeatureBuildingException(f"Feature(s): {missing_features} not in preprocessed data")
        for feature in self.features:
            if not pd.api.types.is_numeric_dtype(preprocessed_data[feature]):
                raise FeatureBuildingException(f"Feature: {feature} is not numeric")
            if preprocessed_data[feature].isna().any():
                raise FeatureBuildingException(f"Feature: {feature} has missing values")

        missing_aggregates = [agg for agg in self.aggregates if agg not in preprocessed_data.columns]
        if len(missing_aggregates) > 0:
            raise AggregationException(f"Aggregate(s): {missing_aggregates} not in preprocessed data")

        # residuals are normalized by the number of voters, so this has to be positive for every unit
        total_voters = pd.to_numeric(preprocessed_data["total_voters"], errors="coerce")
        if (total_voters.isna() | (total_voters <= 0)).any():
            bad_units = preprocessed_data.loc[
                total_voters.isna() | (total_voters <= 0), "geographic_unit_fips"
            ].tolist()
            raise FeatureBuildingException(f"total_voters has to be positive, but is not for: {bad_units}")

        last_election_results = pd.to_numeric(preprocessed_data["last_election_results"], errors="coerce")
        if last_election_results.isna().any():
            bad_units = preprocessed_data.loc[last_election_results.isna(), "geographic_unit_fips"].tolist()
            raise FeatureBuildingException(f"last_election_results is missing for: {bad_units}")

    def _format_current_data(self, current_data):
        missing_columns = [column for column in CURRENT_REQUIRED_COLUMNS if column not in current_data.columns]
        if len(missing_columns) > 0:
            raise FeatureBuildingException(f"Current data is missing required column(s): {missing_columns}")
        current_data = current_data.copy()
        current_data["postal_code"] = current_data["postal_code"].astype(str)
        current_data["geographic_unit_fips"] = current_data["geographic_unit_fips"].astype(str)
        try:
            current_data["results"] = pd.to_numeric(current_data["results"])
            current_data["precincts_reporting_pct"] = pd.to_numeric(current_data["precincts_reporting_pct"])
        except (ValueError, TypeError) as e:
            raise FeatureBuildingException(f"Current data has non-numeric results: {e}") from e
        return current_data.reset_index(drop=True)

    def get_units(self):
        """
        Returns a tuple of:
        1. observed units. Expected units that are fully reporting.
        2. unobserved units. Expected units that are not fully reporting or have no results yet.
        3. unexpected units. Fully reporting units that are not in the preprocessed data, we have no
            covariates for them so we only add their results back in when aggregating.
        """
        observed_filter = (self.data.precincts_reporting_pct >= FULLY_REPORTING_PCT) & self.data.results.notna()

        observed_units = self.data[observed_filter].reset_index(drop=True)
        observed_units["residuals"] = observed_units["results"] - observed_units["last_election_results"]
        observed_units["reporting"] = int(1)
        observed_units["unit_category"] = "expected"

        unobserved_units = self.data[~observed_filter].reset_index(drop=True)
        unobserved_units["residuals"] = np.nan
        unobserved_units["reporting"] = int(0)
        unobserved_units["unit_category"] = "expected"

        unexpected_units = self._get_unexpected_units()

        self._check_partition(observed_units, unobserved_units, unexpected_units)

        LOG.info(
            "There are %s observed, %s unobserved and %s unexpected units",
            observed_units.shape[0],
            unobserved_units.shape[0],
            unexpected_units.shape[0],
        )
        return (observed_units, unobserved_units, unexpected_units)

    def _get_unexpected_units(self):
        fully_reporting = self.current_data[self.current_data.precincts_reporting_pct >= FULLY_REPORTING_PCT]
        # Note: this uses current_data because self.data drops unexpected units
        unexpected_units = (
            anti_join(fully_reporting, self.preprocessed_data, UNIT_KEYS).drop_duplicates(subset=UNIT_KEYS).copy()
        )
        unexpected_units["reporting"] = int(1)
        unexpected_units["unit_category"] = "unexpected"
        return unexpected_units.reset_index(drop=True)

    def _check_partition(self, observed_units, unobserved_units, unexpected_units):
        if observed_units.shape[0] + unobserved_units.shape[0] != self.data.shape[0]:
            raise PartitionException("Observed and unobserved units do not cover the expected units")
        if not semi_join(observed_units, unobserved_units, UNIT_KEYS).empty:
            raise PartitionException("A unit is both observed and unobserved")
        if not semi_join(unexpected_units, self.preprocessed_data, UNIT_KEYS).empty:
            raise PartitionException("A unit is unexpected but also in the preprocessed data")
