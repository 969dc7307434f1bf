"""In-memory snapshot of a spreadsheet used for a single analysis request.

A grid is a list of rows whose first row holds the column headers.  Cells
are plain Python values: numbers (``int``/``float``), text (``str``),
booleans and ``None`` for empty cells.  ``DataSet.from_grid`` validates the
grid and splits it into headers and data rows; nothing downstream mutates
the result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, List, Sequence

import numpy as np

Cell = Any


class InvalidDatasetError(ValueError):
    """Raised when a grid cannot be turned into a ``DataSet``."""


def is_empty(value: Cell) -> bool:
    """Return True for ``None``, the empty string and NaN."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def is_boolean(value: Cell) -> bool:
    return isinstance(value, (bool, np.bool_))


def is_number(value: Cell) -> bool:
    """Return True if ``value`` is a real number that is not NaN.

    Booleans are excluded even though ``bool`` subclasses ``int``.
    """
    if is_boolean(value) or not isinstance(value, Real):
        return False
    return not math.isnan(value)


@dataclass
class DataSet:
    """Typed snapshot of a header row and its data rows.

    Parameters
    ----------
    sheet_name : str
        Name of the sheet (or file) the grid was read from.
    headers : list of str
        Column labels, one per column.  Empty labels are ``""``.
    rows : list of list
        Data rows, each exactly ``len(headers)`` cells long.
    """

    sheet_name: str
    headers: List[str]
    rows: List[List[Cell]] = field(default_factory=list)

    def __post_init__(self) -> None:
        width = len(self.headers)
        for index, row in enumerate(self.rows, start=1):
            if len(row) != width:
                raise InvalidDatasetError(
                    f"Row {index} has {len(row)} cells; expected {width} to match the header row."
                )

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column(self, index: int) -> List[Cell]:
        """Return the cells of column ``index`` in row order."""
        return [row[index] for row in self.rows]

    @classmethod
    def from_grid(cls, grid: Sequence[Sequence[Cell]], sheet_name: str = "Sheet1") -> "DataSet":
        """Build a ``DataSet`` from a raw grid whose first row is the header row.

        Raises
        ------
        InvalidDatasetError
            If the grid has no rows or the header row has no non-empty label.
        """
        if not grid:
            raise InvalidDatasetError(f"Sheet '{sheet_name}' contains no data.")
        headers = [_header_label(cell) for cell in grid[0]]
        if not any(label.strip() for label in headers):
            raise InvalidDatasetError(f"Sheet '{sheet_name}' has no header row.")
        rows = [list(row) for row in grid[1:]]
        return cls(sheet_name=sheet_name, headers=headers, rows=rows)


def _header_label(cell: Cell) -> str:
    if is_empty(cell):
        return ""
    if isinstance(cell, str):
        return cell
    # Integral floats show up when a loader widened an int header.
    if isinstance(cell, (float, np.floating)) and float(cell).is_integer():
        return str(int(cell))
    return str(cell)
