import numpy as np
import pandas as pd

WEIGHTS_COLUMN = "total_voters"
RESIDUALS_COLUMN = "residuals"


class Featurizer:
    """
    Featurizer. Adds intercept, expands fixed effects into dummy variables and adds the constraint rows
    """

    def __init__(self, features: list, fixed_effects: list):
        self.features = list(features)
        self.fixed_effects = list(fixed_effects)

        # dummy variable columns per fixed effect. These are the fixed effect values that appear in the
        # fitting data, so they are the only ones we learn a coefficient for
        self.fixed_effect_columns = {}
        self.expanded_fixed_effects = []
        # complete features are intercept + features + expanded fixed effects
        self.complete_features = []
        # we add one constraint row per fixed effect
        self.n_constraint_rows = len(self.fixed_effects)

    def _expand_fixed_effect(self, df: pd.DataFrame, fixed_effect: str) -> pd.DataFrame:
        """
        Convert one fixed effect column into dummy variables, one column per value.
        """
        return pd.get_dummies(
            df[fixed_effect].astype(str), prefix=fixed_effect, prefix_sep="_", dtype=np.int64
        ).reset_index(drop=True)

    def _get_constraint_rows(self) -> pd.DataFrame:
        """
        Fixed effect dummies together with the intercept are colinear, so the design would be singular.
        To get around that we add a constraint row per fixed effect. A constraint row has no intercept,
        no features, no residual and a total voters of one. It sets the dummies of the fixed effect
        it was added for (and those of every later fixed effect) to one, which constrains the solution set.
        """
        constraint_rows = pd.DataFrame(
            0,
            index=range(self.n_constraint_rows),
            columns=self.complete_features + [WEIGHTS_COLUMN, RESIDUALS_COLUMN],
        )
        constraint_rows[WEIGHTS_COLUMN] = 1
        for i, fixed_effect in enumerate(self.fixed_effects):
            constraint_rows.loc[:i, self.fixed_effect_columns[fixed_effect]] = 1
        return constraint_rows

    def prepare_fitting_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Prepares the data we fit the model on (fully reporting expected units).
        Returns the complete features, total voters and residuals, the constraint rows are the last rows.
        """
        df = df.reset_index(drop=True)
        fitting_data = pd.DataFrame({"intercept": np.ones(df.shape[0], dtype=np.int64)})
        for feature in self.features:
            fitting_data[feature] = df[feature]

        self.expanded_fixed_effects = []
        for fixed_effect in self.fixed_effects:
            expanded_fixed_effect = self._expand_fixed_effect(df, fixed_effect)
            # "0" is the value that the constraint rows have for fixed effects that come
            # before them, so it is never a category of its own
            expanded_fixed_effect = expanded_fixed_effect.drop(columns=[f"{fixed_effect}_0"], errors="ignore")
            self.fixed_effect_columns[fixed_effect] = list(expanded_fixed_effect.columns)
            self.expanded_fixed_effects.extend(expanded_fixed_effect.columns)
            fitting_data = pd.concat([fitting_data, expanded_fixed_effect], axis=1)

        self.complete_features = ["intercept"] + self.features + self.expanded_fixed_effects

        fitting_data[WEIGHTS_COLUMN] = df[WEIGHTS_COLUMN]
        fitting_data[RESIDUALS_COLUMN] = df[RESIDUALS_COLUMN]
        if self.n_constraint_rows > 0:
            fitting_data = pd.concat([fitting_data, self._get_constraint_rows()], axis=0, ignore_index=True)

        return fitting_data[self.complete_features + [WEIGHTS_COLUMN, RESIDUALS_COLUMN]].astype("float64")

    def split_constraint_rows(self, df: pd.DataFrame) -> tuple:
        """
        Splits prepared fitting data into the unit rows and the constraint rows
        """
        n_units = df.shape[0] - self.n_constraint_rows
        return df.iloc[:n_units].reset_index(drop=True), df.iloc[n_units:].reset_index(drop=True)

    def filter_to_active_features(self, df: pd.DataFrame) -> list:
        """
        Returns the features that are not all zero in df. After splitting the units some fixed effect
        values might not appear in the training data anymore, we cannot learn a coefficient for those.
        """
        return ["intercept"] + [feature for feature in self.complete_features[1:] if (df[feature] != 0).any()]

    def generate_holdout_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Generate features for the holdout data (ie. data that we will predict on).
        Fixed effect values that only appear in the holdout data are dropped, since we do not have a coefficient
        for them. Fixed effect values that only appear in the fitting data are added as all zero columns.
        """
        df = df.reset_index(drop=True)
        holdout_data = pd.DataFrame({"intercept": np.ones(df.shape[0], dtype=np.int64)})
        for feature in self.features:
            holdout_data[feature] = df[feature]
        for fixed_effect in self.fixed_effects:
            expanded_fixed_effect = self._expand_fixed_effect(df, fixed_effect)
            holdout_data = pd.concat([holdout_data, expanded_fixed_effect], axis=1)

        holdout_data = holdout_data.reindex(columns=self.complete_features, fill_value=0)
        holdout_data[WEIGHTS_COLUMN] = df[WEIGHTS_COLUMN]
        return holdout_data.astype("float64")
