import pandas as pd
import pytest

from sheet_analyst.data_handler import DataHandler, frame_to_grid
from sheet_analyst.dataset import InvalidDatasetError


def test_load_csv_into_dataset(tmp_path):
    p = tmp_path / "sales.csv"
    p.write_text("Date,Revenue,Region\n2024-01,100,US\n2024-02,150,US\n2024-03,200,EU\n", encoding="utf-8")

    ds = DataHandler(str(p)).load_dataset()

    assert ds.sheet_name == "sales"
    assert ds.headers == ["Date", "Revenue", "Region"]
    assert ds.rows[0] == ["2024-01", 100, "US"]
    assert type(ds.rows[0][1]) is int


def test_missing_cells_become_empty(tmp_path):
    p = tmp_path / "gaps.csv"
    p.write_text("a,b\n1,\n2,3\n", encoding="utf-8")

    ds = DataHandler(str(p)).load_dataset()

    assert ds.rows[0] == [1, None]
    assert ds.rows[1] == [2, 3.0]


def test_each_load_reads_the_file_again(tmp_path):
    p = tmp_path / "live.csv"
    p.write_text("x\n1\n", encoding="utf-8")
    handler = DataHandler(str(p))

    first = handler.load_dataset()
    p.write_text("x\n1\n2\n", encoding="utf-8")
    second = handler.load_dataset()

    assert first.row_count == 1
    assert second.row_count == 2


def test_load_excel_sheet(tmp_path):
    p = tmp_path / "book.xlsx"
    with pd.ExcelWriter(p, engine="openpyxl") as writer:
        pd.DataFrame({"a": [1]}).to_excel(writer, sheet_name="Other", index=False)
        pd.DataFrame({"Month": ["Jan", "Feb"], "Units": [3, 4]}).to_excel(writer, sheet_name="Q1", index=False)

    ds = DataHandler(str(p), sheet_name="Q1").load_dataset()

    assert ds.sheet_name == "Q1"
    assert ds.headers == ["Month", "Units"]
    assert ds.column(1) == [3, 4]


def test_missing_file_without_url(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataHandler(str(tmp_path / "nope.csv")).load_dataset()


def test_unsupported_extension(tmp_path):
    p = tmp_path / "data.json"
    p.write_text("{}", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported"):
        DataHandler(str(p)).load_dataset()


def test_empty_file_is_invalid(tmp_path):
    p = tmp_path / "blank.csv"
    p.write_text("", encoding="utf-8")

    with pytest.raises(InvalidDatasetError):
        DataHandler(str(p)).load_dataset()


def test_frame_to_grid_blanks_unnamed_headers_and_converts_values():
    df = pd.DataFrame({"Unnamed: 0": [1.5], "when": [pd.Timestamp("2024-01-02")], "n": [float("nan")]})

    grid = frame_to_grid(df)

    assert grid[0] == [None, "when", "n"]
    assert grid[1] == [1.5, "2024-01-02T00:00:00", None]
