"""Loading spreadsheets into ``DataSet`` snapshots.

The ``DataHandler`` class reads a CSV or Excel workbook with pandas and
turns it into the raw grid the analysis code works on: the header row
followed by the data rows, with cell values converted to plain Python
types.  A new ``DataSet`` is built on every call to ``load_dataset``
because the file may change between questions.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .dataset import Cell, DataSet, InvalidDatasetError, is_empty

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}


def _to_cell(value: Any) -> Cell:
    """Convert a pandas/numpy value into a plain Python cell."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (float, str)) and is_empty(value):
        return None
    return value


def frame_to_grid(df: pd.DataFrame) -> List[List[Cell]]:
    """Return ``df`` as a grid whose first row holds the column labels.

    Blank header cells, which pandas labels "Unnamed: N", become empty.
    Missing cells come back from pandas as NaN and become ``None``.
    """
    headers: List[Cell] = []
    for col in df.columns:
        label = _to_cell(col)
        if isinstance(label, str) and label.startswith("Unnamed:"):
            label = None
        headers.append(label)
    grid: List[List[Cell]] = [headers]
    for record in df.itertuples(index=False, name=None):
        grid.append([_to_cell(value) for value in record])
    return grid


@dataclass
class DataHandler:
    """Reads a sheet from disk (or a URL) into a ``DataSet``.

    Parameters
    ----------
    dataset_path : str
        Local path to a CSV or Excel file.
    dataset_url : Optional[str], optional
        URL to read from when ``dataset_path`` does not exist locally.
    sheet_name : Optional[str], optional
        Worksheet to read from an Excel workbook.  The first sheet is used
        when omitted.  For CSV files the file name stands in as the sheet
        name.
    """

    dataset_path: str
    dataset_url: Optional[str] = None
    sheet_name: Optional[str] = None

    def _source(self) -> str:
        if os.path.exists(self.dataset_path):
            return self.dataset_path
        if not self.dataset_url:
            raise FileNotFoundError(f"Dataset not found at {self.dataset_path} and no URL provided.")
        logger.info("Local dataset missing; reading %s", self.dataset_url)
        return self.dataset_url

    def read_frame(self) -> pd.DataFrame:
        """Read the source into a DataFrame without further processing."""
        source = self._source()
        _, ext = os.path.splitext(source.split("?", 1)[0].lower())
        try:
            if ext in CSV_EXTENSIONS:
                return pd.read_csv(source)
            if ext in EXCEL_EXTENSIONS:
                return pd.read_excel(source, sheet_name=self.sheet_name or 0, engine="openpyxl")
        except pd.errors.EmptyDataError as exc:
            raise InvalidDatasetError(f"Sheet '{self.resolved_sheet_name()}' contains no data.") from exc
        raise ValueError(f"Unsupported dataset extension: {ext}")

    def resolved_sheet_name(self) -> str:
        if self.sheet_name:
            return self.sheet_name
        base = os.path.basename(self.dataset_path or self.dataset_url or "")
        return os.path.splitext(base)[0] or "Sheet1"

    def load_dataset(self) -> DataSet:
        """Read the sheet and return a fresh ``DataSet``.

        Raises
        ------
        FileNotFoundError
            If the file is missing and no URL was given.
        ValueError
            If the file extension is not supported.
        InvalidDatasetError
            If the sheet is empty or has no header row.
        """
        df = self.read_frame()
        grid = frame_to_grid(df)
        dataset = DataSet.from_grid(grid, sheet_name=self.resolved_sheet_name())
        logger.debug(
            "Loaded %s: %d rows x %d columns", dataset.sheet_name, dataset.row_count, dataset.column_count
        )
        return dataset
