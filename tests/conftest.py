import logging
import sys

import numpy as np
import pandas as pd
import pytest

from elexconformal.client import ModelClient
from elexconformal.models import BaseElectionModel, ConformalElectionModel, NonparametricElectionModel

ELECTION_ID = "2024-11-05_XX_G"


@pytest.fixture(autouse=True, scope="session")
def setup_logging():
    LOG = logging.getLogger("elexconformal")
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s %(message)s"))
    LOG.addHandler(handler)


@pytest.fixture(scope="function")
def model_client():
    return ModelClient()


@pytest.fixture(scope="session")
def base_election_model():
    model_settings = {}
    return BaseElectionModel.BaseElectionModel(model_settings)


@pytest.fixture(scope="session")
def conformal_election_model():
    model_settings = {}
    return ConformalElectionModel.ConformalElectionModel(model_settings)


@pytest.fixture(scope="function")
def nonparametric_election_model():
    model_settings = {}
    return NonparametricElectionModel.NonparametricElectionModel(model_settings)


@pytest.fixture(scope="session")
def rng():
    seed = 1941
    return np.random.default_rng(seed=seed)


def make_preprocessed_data(n_units, rng, postal_codes=("AA", "BB"), noise=0.05):
    """
    Synthetic baseline data. Every unit has a county classification, a district and a numeric feature,
    results are last election's results plus a residual that is a linear function of the feature plus normal noise
    """
    total_voters = rng.integers(1000, 20000, size=n_units)
    turnout_last = rng.uniform(0.4, 0.7, size=n_units)
    last_election_results = np.round(total_voters * turnout_last)
    feature = rng.uniform(0, 1, size=n_units)
    normalized_residuals = 0.02 + 0.05 * feature + rng.normal(0, noise, size=n_units)
    results = np.round(np.maximum(last_election_results + normalized_residuals * total_voters, 0))
    return pd.DataFrame(
        {
            "postal_code": [postal_codes[i % len(postal_codes)] for i in range(n_units)],
            "geographic_unit_fips": [f"{i:05d}" for i in range(n_units)],
            "geographic_unit_name": [f"unit {i}" for i in range(n_units)],
            "county_classification": [["urban", "suburban", "rural"][i % 3] for i in range(n_units)],
            "district": [f"{i % 4}" for i in range(n_units)],
            "county_fips": [f"{i // 2:05d}" for i in range(n_units)],
            "feature": feature,
            "last_election_results": last_election_results,
            "total_voters": total_voters,
            "results": results,
        }
    )


def make_current_data(preprocessed_data, n_reporting):
    """
    The first n_reporting units are fully reporting, the others have not counted any votes yet
    """
    current_data = preprocessed_data[["postal_code", "geographic_unit_fips", "results"]].copy()
    current_data["precincts_reporting_pct"] = 0
    current_data.loc[: n_reporting - 1, "precincts_reporting_pct"] = 100
    current_data.loc[n_reporting:, "results"] = 0
    return current_data


@pytest.fixture(scope="function")
def synthetic_preprocessed_data():
    rng = np.random.default_rng(seed=2024)
    return make_preprocessed_data(200, rng)


@pytest.fixture(scope="function")
def synthetic_current_data(synthetic_preprocessed_data):
    return make_current_data(synthetic_preprocessed_data, 120)


@pytest.fixture(scope="function")
def three_unit_preprocessed_data():
    return pd.DataFrame(
        {
            "postal_code": ["XX", "XX", "XX"],
            "geographic_unit_fips": ["1", "2", "3"],
            "last_election_results": [1000, 2000, 3000],
            "total_voters": [1000, 2000, 3000],
        }
    )


@pytest.fixture(scope="function")
def three_unit_current_data():
    return pd.DataFrame(
        {
            "postal_code": ["XX", "XX", "XX"],
            "geographic_unit_fips": ["1", "2", "3"],
            "precincts_reporting_pct": [100, 100, 0],
            "results": [950, 2030, np.nan],
        }
    )


@pytest.fixture(scope="function")
def election_config():
    return {
        ELECTION_ID: {
            "states": ["AA", "BB"],
            "fixed_effects": ["postal_code", "county_classification"],
            "features": ["feature"],
            "aggregates": ["postal_code", "district", "county_classification", "unit"],
        }
    }


@pytest.fixture(scope="session")
def get_preprocessed_data():
    def _get_preprocessed_data(n_units, seed=2024, **kwargs):
        return make_preprocessed_data(n_units, np.random.default_rng(seed=seed), **kwargs)

    return _get_preprocessed_data


@pytest.fixture(scope="session")
def get_current_data():
    return make_current_data
