VALID_AGGREGATES_MAPPING = {
    "postal_code": "state_data",
    "county_fips": "county_data",
    "district": "district_data",
    "county_classification": "classification_data",
    "unit": "unit_data",
}

AGGREGATE_ORDER = ["postal_code", "district", "county_classification", "county_fips"]

DEFAULT_AGGREGATES = ["postal_code", "unit"]

DEFAULT_PREDICTION_INTERVALS = [0.8]

DEFAULT_SEED = 4191

UNIT_KEYS = ["postal_code", "geographic_unit_fips"]

PREPROCESSED_REQUIRED_COLUMNS = UNIT_KEYS + ["last_election_results", "total_voters"]

CURRENT_REQUIRED_COLUMNS = UNIT_KEYS + ["precincts_reporting_pct", "results"]

# units at or above this percent reporting are treated as fully observed
FULLY_REPORTING_PCT = 100
