import logging

from elexconformal.exceptions import FeatureBuildingException
from elexconformal.handlers.data.BaseDataHandler import BaseDataHandler
from elexconformal.utils.constants import PREPROCESSED_REQUIRED_COLUMNS
from elexconformal.utils.file_utils import ensure_parent_directory

LOG = logging.getLogger(__name__)


class PreprocessedDataHandler(BaseDataHandler):
    """
    Handler for the baseline data. One row per expected geographic unit with last election's results,
    the number of voters and any fixed effect, feature or aggregate columns.
    """

    def select_rows_in_states(self, data, states_with_election):
        data = data.query(
            "postal_code in @states_with_election"
        ).reset_index(  # make sure to return results for relevant states only
            drop=True
        )
        return data

    def load_data(self, data):
        """
        Load preprocessed data as df
        """
        LOG.info("Loading preprocessed data: %s, %s", self.election_id, self.geographic_unit_type)
        missing_columns = [column for column in PREPROCESSED_REQUIRED_COLUMNS if column not in data.columns]
        if len(missing_columns) > 0:
            raise FeatureBuildingException(f"Preprocessed data is missing required column(s): {missing_columns}")

        data = data.copy()
        data["postal_code"] = data["postal_code"].astype(str)
        data["geographic_unit_fips"] = data["geographic_unit_fips"].astype(str)
        return data.reset_index(drop=True)

    def save_data(self, preprocessed_data):
        ensure_parent_directory(self.file_path)
        preprocessed_data.to_csv(self.file_path, index=False)
