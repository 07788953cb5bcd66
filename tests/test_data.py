import logging

import numpy as np
import pandas as pd
import pytest

from margpipe.data import load_table, time_index
from margpipe.exceptions import InvalidInputError


def test_time_index_follows_date_order():
    idx = time_index(["2020-01-03", "2020-01-01", "2020-01-02"])
    np.testing.assert_array_equal(idx, [3, 1, 2])
    assert idx.dtype == np.int64


def test_time_index_ties_keep_row_order():
    idx = time_index(["2020-01-03", "2020-01-01", "2020-01-02", "2020-01-01"])
    np.testing.assert_array_equal(idx, [4, 1, 3, 2])


def test_time_index_start_and_format():
    idx = time_index(["03/01/2021", "01/01/2021"], start=0, date_format="%d/%m/%Y")
    np.testing.assert_array_equal(idx, [1, 0])


@pytest.mark.parametrize("dates", [
    ["2020-01-01", "not a date"],
    ["2020-01-01", None],
])
def test_time_index_rejects_bad_dates(dates):
    with pytest.raises(InvalidInputError):
        time_index(dates)


@pytest.fixture
def climate_csv(tmp_path):
    path = tmp_path / "climate.csv"
    pd.DataFrame({
        "date": ["2016-01-02", "2016-01-01", "2016-01-04", "2016-01-03"],
        "temp": [11.2, 10.5, 9.8, 12.0],
    }).to_csv(path, index=False)
    return path


def test_load_table_plain(climate_csv, caplog):
    with caplog.at_level(logging.INFO, logger="margpipe.data"):
        df = load_table(climate_csv)
    assert list(df.columns) == ["date", "temp"]
    assert len(df) == 4
    assert "Loaded 4 rows" in caplog.text


def test_load_table_adds_time_index(climate_csv):
    df = load_table(climate_csv, date_column="date")
    assert list(df.columns) == ["date", "temp", "time"]
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert df["time"].tolist() == [2, 1, 4, 3]
    # sorting by the index puts the rows in date order
    assert df.sort_values("time")["date"].is_monotonic_increasing


def test_load_table_custom_index(climate_csv):
    df = load_table(climate_csv, date_column="date", index_column="t", start=0)
    assert df["t"].tolist() == [1, 0, 3, 2]


def test_load_table_errors(climate_csv):
    with pytest.raises(InvalidInputError):
        load_table(climate_csv, date_column="day")
    with pytest.raises(InvalidInputError):
        load_table(climate_csv, date_column="date", index_column="temp")


def test_load_table_semicolon(tmp_path):
    path = tmp_path / "obs.txt"
    path.write_text("y;x\n1.5;0.1\n2.5;0.2\n")
    df = load_table(path, sep=";")
    assert df["y"].tolist() == [1.5, 2.5]
