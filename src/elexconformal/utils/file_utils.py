import logging
import os
import pathlib
from io import StringIO

LOG = logging.getLogger(__name__)

APP_ENV = os.getenv("APP_ENV")
DATA_ENV = os.getenv("DATA_ENV")
MODEL_S3_BUCKET = os.getenv("MODEL_S3_BUCKET")
TARGET_BUCKET = f"{MODEL_S3_BUCKET}-{DATA_ENV}"
S3_FILE_PATH = f"{os.getenv('MODEL_S3_PATH_ROOT')}-{DATA_ENV}"


def get_directory_path():
    # config/data directories live at the root we are run from, notebooks sit one level below it
    directory_path = pathlib.Path().absolute()
    if directory_path.name == "notebooks":
        directory_path = directory_path.parent
    return directory_path


def get_local_file_path(*parts):
    """
    Path of a config or data file below the directory root, ie. ("data", election_id, "data_county.csv")
    """
    return str(get_directory_path().joinpath(*parts))


def create_directory(path):
    LOG.info("Creating directory at %s", path)
    os.makedirs(path)


def ensure_parent_directory(file_path):
    parent = pathlib.Path(file_path).parent
    if not parent.exists():
        create_directory(str(parent))


def convert_df_to_csv(df):
    csv_buf = StringIO()
    df.to_csv(csv_buf, header=True, index=False)
    return csv_buf.getvalue()
