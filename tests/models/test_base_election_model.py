import numpy as np
import pandas as pd
import pytest

from elexconformal.models.BaseElectionModel import BaseElectionModel


def test_get_minimal_reporting_units(base_election_model):
    assert base_election_model.get_minimum_reporting_units(0.8) == 10


def test_get_unit_predictions(base_election_model):
    with pytest.raises(NotImplementedError):
        base_election_model.get_unit_predictions(None, None)


def test_get_unit_prediction_intervals(base_election_model):
    with pytest.raises(NotImplementedError):
        base_election_model.get_unit_prediction_intervals(None, None, None)


def test_get_aggregate_prediction_intervals(base_election_model):
    with pytest.raises(NotImplementedError):
        base_election_model.get_aggregate_prediction_intervals(None, None, None, None, None)


def test_get_coefficients(base_election_model):
    assert base_election_model.get_coefficients() == {}


def test_model_settings():
    model = BaseElectionModel({"features": ["a"], "fixed_effects": ["b"], "seed": 12})
    assert model.features == ["a"]
    assert model.fixed_effects == ["b"]
    assert model.seed == 12

    model = BaseElectionModel({})
    assert model.seed == 4191

    model = BaseElectionModel({"seed": None})
    assert model.seed is None


def test_aggregation_simple(base_election_model):
    """
    Basic test for aggregating reporting votes. Reporting votes and reporting unexpected votes (units that were
    not in the preprocessed data) are summed by aggregate.
    """
    df1 = pd.DataFrame({"c1": ["a", "a", "b", "b", "c"], "results": [1, 2, 3, 4, 5]})
    df2 = pd.DataFrame({"c1": ["a", "b", "d"], "results": [10, 20, 30]})

    aggregate_votes = base_election_model._get_reporting_aggregate_votes(df1, df2, ["c1"])
    assert aggregate_votes.c1.tolist() == ["a", "b", "c", "d"]
    assert aggregate_votes.results.tolist() == [13, 27, 5, 30]


def test_aggregation_unexpected_units_without_aggregate(base_election_model):
    """
    We only know the postal code of unexpected units, so they are not added for finer aggregates
    """
    df1 = pd.DataFrame({"postal_code": ["AA", "AA", "BB"], "district": ["1", "2", "1"], "results": [1, 2, 3]})
    df2 = pd.DataFrame({"postal_code": ["AA", "CC"], "results": [10, 20]})

    aggregate_votes = base_election_model._get_reporting_aggregate_votes(df1, df2, ["postal_code", "district"])
    assert aggregate_votes.results.tolist() == [1, 2, 3]

    aggregate_votes = base_election_model._get_reporting_aggregate_votes(df1, df2, ["district"])
    assert aggregate_votes.results.tolist() == [4, 2]


def test_aggregation_with_predictions(base_election_model):
    """
    Aggregate predictions are reporting results plus nonreporting predictions, groups that only exist
    in one of the data frames count zero for the other
    """
    reporting = pd.DataFrame({"c1": ["a", "a", "b"], "results": [5, 3, 9]})
    unexpected = pd.DataFrame({"c1": ["b", "d"], "results": [8, 4]})
    nonreporting = pd.DataFrame(
        {"c1": ["a", "c", "c", "e"], "pred": [10, 20, 30, 40], "results": [2, 4, np.nan, np.nan]}
    )

    estimates = base_election_model.get_aggregate_predictions(reporting, nonreporting, unexpected, ["c1"])

    assert estimates.columns.tolist() == ["c1", "pred", "results"]
    assert estimates.c1.tolist() == ["a", "b", "c", "d", "e"]
    assert estimates.pred.tolist() == [18, 17, 50, 4, 40]
    assert estimates.results.tolist() == [10, 17, 4, 4, 0]


def test_aggregation_sorted_by_all_keys(base_election_model):
    reporting = pd.DataFrame({"postal_code": ["BB", "AA", "AA"], "district": ["1", "2", "1"], "results": [1, 2, 3]})
    nonreporting = pd.DataFrame({"postal_code": ["AA"], "district": ["3"], "pred": [5], "results": [0]})
    unexpected = pd.DataFrame({"postal_code": [], "results": []})

    estimates = base_election_model.get_aggregate_predictions(
        reporting, nonreporting, unexpected, ["postal_code", "district"]
    )
    assert list(zip(estimates.postal_code, estimates.district)) == [("AA", "1"), ("AA", "2"), ("AA", "3"), ("BB", "1")]
    assert estimates.pred.tolist() == [3, 2, 5, 1]
