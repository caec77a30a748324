import math

import numpy as np
import pandas as pd

from elexconformal.exceptions import FeatureBuildingException
from elexconformal.handlers.data.BaseDataHandler import BaseDataHandler


class MockLiveDataHandler(BaseDataHandler):
    """
    Simulates current returns from the results of a past election. Used to run the model
    before election night and to measure how well it does.
    """

    def __init__(
        self,
        election_id,
        geographic_unit_type,
        data=None,
        s3_client=None,
        unexpected_units=0,
    ):
        self.unexpected_rows = unexpected_units

        self.shuffle_columns = [
            "postal_code",
            "county_classification",
            "county_fips",
        ]  # columns we may want to sample by
        self.shuffle_dataframe = None

        self.current_reporting_data = None

        super().__init__(election_id, geographic_unit_type, s3_client=s3_client, data=data)

    def load_data(self, data):
        columns_to_return = ["postal_code", "geographic_unit_fips", "results"]
        if "results" not in data.columns:
            raise FeatureBuildingException("Mock live data needs a results column to simulate returns from")

        shuffle_columns = [column for column in self.shuffle_columns if column in data.columns]
        self.shuffle_dataframe = data[shuffle_columns].copy().reset_index(drop=True)
        return data[columns_to_return].copy().reset_index(drop=True)

    def shuffle(self, seed=None, upweight={}, enforce=[]):
        """
        Function that allows for random shuffling of geographic units with upweights for certain
        types of counties this makes those geographic units more likely to be picked.
        Also allows a specific ordering by enforcing which geographic units come first.
        seed: int
        upweight: dict of dicts, from category to upweight by to geographic unit identifier to weight
            e.g. {"postal_code": {"AL": 3, "FL": 5}, "county_classification": {"urban": 1000, "rural": 0.3}}
            this would result in urban counties in Alabama being upweighted by 3000
        enforce: list of geographic unit fips that enforce those units to come first
            the order of enforced first elements is random
        """
        probabilities = np.ones((self.data.shape[0],))
        for category in upweight:
            weight = upweight[category]
            for value in weight:
                indices = self.data[self.shuffle_dataframe[category] == value].index
                probabilities[indices] = probabilities[indices] * weight[value]

        # weighted shuffle without replacement: every unit draws a key u^(1 / weight) and we sort by it.
        # Unlike DataFrame.sample this stays feasible however large a single weight is.
        rng = np.random.default_rng(seed)
        with np.errstate(divide="ignore"):
            keys = rng.random(self.data.shape[0]) ** (1 / probabilities)
        self.data = self.data.iloc[np.argsort(-keys, kind="stable")]

        # get indices of units that must come first
        mask = self.data.geographic_unit_fips.isin(enforce)
        first = self.data[mask]
        last = self.data[~mask]
        self.data = pd.concat([first, last]).reset_index(drop=True)

    def _convert_percent_to_n(self, percent, _round):
        frac = round(percent / 100.0, 2)
        if _round == "up":
            return math.ceil(frac * self.data.shape[0])
        if _round == "down":
            return math.floor(frac * self.data.shape[0])

    def get_percent_fully_reported(self, percent, _round="up"):
        n = self._convert_percent_to_n(percent, _round)
        return self.get_n_fully_reported(n)

    def _include_reporting_unexpected(self, seed=None):
        """
        Adds unexpected rows to the reporting data by repeating randomly selected rows and changing the unit ids
        (does NOT change the postal code or results)
        """
        fake_ids = [f"-unexpected-{i}" for i in range(self.unexpected_rows)]
        fake_data = self.data_reporting.sample(frac=1, random_state=seed).reset_index(drop=True).head(
            self.unexpected_rows
        )
        fake_data["geographic_unit_fips"] = fake_data["geographic_unit_fips"] + fake_ids[: fake_data.shape[0]]

        self.data_reporting = pd.concat([self.data_reporting, fake_data])

    def get_n_fully_reported(self, n, seed=None):
        """
        Return n "fully reported units".
        Returns the first n units as fully reported, if data has been shuffled then random.
        Units that are not fully reporting have counted zero votes so far.
        """
        expected_n = n - self.unexpected_rows
        self.data_reporting = self.data[:expected_n].copy()
        self.data_nonreporting = self.data[expected_n:].copy()

        self.data_reporting["raw_results"] = self.data_reporting["results"]
        self.data_nonreporting["raw_results"] = self.data_nonreporting["results"]
        self.data_nonreporting["results"] = 0
        self.data_reporting["precincts_reporting_pct"] = 100
        self.data_nonreporting["precincts_reporting_pct"] = 0
        if self.unexpected_rows > 0:
            self._include_reporting_unexpected(seed=seed)

        self.current_reporting_data = pd.concat([self.data_reporting, self.data_nonreporting]).reset_index(drop=True)
        return self.current_reporting_data
