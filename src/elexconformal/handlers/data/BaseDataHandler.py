import abc
from io import StringIO
from pathlib import Path

import pandas as pd

from elexconformal.utils.file_utils import get_local_file_path

KEY_DTYPES = {"postal_code": str, "geographic_unit_fips": str, "county_fips": str, "district": str}


class BaseDataHandler(abc.ABC):
    """
    Abstract base handler for model data
    """

    def __init__(self, election_id, geographic_unit_type, s3_client=None, data=None):
        self.election_id = election_id
        self.geographic_unit_type = geographic_unit_type
        self.s3_client = s3_client
        self.file_path = self.get_data_path()

        if data is not None:
            self.data = self.load_data(data)
        else:
            self.data = self.get_data()

    def get_data_path(self):
        # data that is passed in directly does not need to belong to an election
        if self.election_id is None:
            return None
        return get_local_file_path("data", self.election_id, f"data_{self.geographic_unit_type}.csv")

    def get_data(self):
        # If local data file is not available, read data from s3
        if self.file_path is None or not Path(self.file_path).is_file():
            path_info = {
                "election_id": self.election_id,
                "geographic_unit_type": self.geographic_unit_type,
            }
            file_path = self.s3_client.get_file_path("preprocessed", path_info)

            csv_data = self.s3_client.get(file_path)
            # read data as a buffer
            preprocessed_data = StringIO(csv_data)
        else:
            # read data as a filepath
            preprocessed_data = self.file_path

        data = pd.read_csv(preprocessed_data, dtype=KEY_DTYPES)
        return self.load_data(data)

    @abc.abstractmethod
    def load_data(self, data):
        pass
