import os

import pandas as pd

from elexconformal.utils.file_utils import (
    convert_df_to_csv,
    create_directory,
    ensure_parent_directory,
    get_directory_path,
    get_local_file_path,
)


def test_get_directory_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert str(get_directory_path()) == str(tmp_path)


def test_get_directory_path_notebooks(tmp_path, monkeypatch):
    notebooks = tmp_path / "notebooks"
    notebooks.mkdir()
    monkeypatch.chdir(notebooks)
    assert str(get_directory_path()) == str(tmp_path)


def test_create_directory(tmp_path):
    path = os.path.join(tmp_path, "data", "2024-11-05_XX_G")
    create_directory(path)
    assert os.path.isdir(path)


def test_convert_df_to_csv():
    data = {"col1": [1, 2], "col2": [3, 4]}
    test_df = pd.DataFrame(data=data)
    test_csv = convert_df_to_csv(test_df)
    assert test_csv == "col1,col2\n1,3\n2,4\n"


def test_get_local_file_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = get_local_file_path("data", "2024-11-05_XX_G", "data_county.csv")
    assert path == os.path.join(str(tmp_path), "data", "2024-11-05_XX_G", "data_county.csv")


def test_ensure_parent_directory(tmp_path):
    file_path = os.path.join(tmp_path, "config", "2024-11-05_XX_G.json")
    ensure_parent_directory(file_path)
    assert os.path.isdir(os.path.join(tmp_path, "config"))
    # existing directories are fine
    ensure_parent_directory(file_path)
    assert not os.path.exists(file_path)
