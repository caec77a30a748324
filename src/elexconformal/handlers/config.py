import json
import logging
from pathlib import Path

from elexconformal.utils.file_utils import ensure_parent_directory, get_local_file_path

LOG = logging.getLogger(__name__)


class ConfigHandler:
    """
    Handler for election config
    """

    def __init__(self, election_id, s3_client=None, config=None, save=False):
        """
        Initialize config. If not present, download from s3
        """
        self.election_id = election_id
        self.s3_client = s3_client
        self.local_file_path = self.get_config_file_path()
        if config:
            self.config = config
        else:
            self.config = self.get_config()
        if save:
            self.save()

    def get_config_file_path(self):
        return get_local_file_path("config", f"{self.election_id}.json")

    def get_config(self):
        """
        Read config from file
        """
        LOG.info("Loading config: %s", self.election_id)

        # Read local config file if available
        if Path(self.local_file_path).is_file():
            with open(self.local_file_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        # Else, get config from S3
        else:
            path_info = {"election_id": self.election_id}
            file_path = self.s3_client.get_file_path("config", path_info)
            config = self.s3_client.get(file_path)
        return config

    def _get_election_subconfig(self):
        return self.config.get(self.election_id, {})

    def get_states(self):
        """
        Get states that have an election. None means we keep every state in the baseline data
        """
        return self._get_election_subconfig().get("states")

    def get_features(self):
        return self._get_election_subconfig().get("features", [])

    def get_aggregates(self):
        return self._get_election_subconfig().get("aggregates", ["postal_code", "unit"])

    def get_fixed_effects(self):
        return self._get_election_subconfig().get("fixed_effects", [])

    def save(self):
        ensure_parent_directory(self.local_file_path)
        with open(self.local_file_path, "w", encoding="utf-8") as f:
            json.dump(self.config, f)
