"""Pairwise Pearson correlation over fully numeric columns."""

from __future__ import annotations

import math
from typing import Dict, List

import numpy as np
import pandas as pd

from .dataset import DataSet, is_number


def fully_numeric_columns(dataset: DataSet) -> Dict[str, List[float]]:
    """Return the columns in which every row holds a valid number.

    A single text, boolean, blank or NaN cell excludes the whole column.  A
    dataset without rows has no fully numeric columns.  When headers repeat,
    the right-most column with that header decides, as in
    ``compute_column_stats``: if it is not fully numeric the header is left
    out even when an earlier column with the same name qualifies.
    """
    columns: Dict[str, List[float]] = {}
    if dataset.row_count == 0:
        return columns
    for index, header in enumerate(dataset.headers):
        cells = dataset.column(index)
        if all(is_number(cell) for cell in cells):
            columns[header] = [float(cell) for cell in cells]
        else:
            columns.pop(header, None)
    return columns


def pearson(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson's r from raw sums; 0.0 when either column has no variance."""
    n = len(x)
    # Identical values can leave a tiny non-zero variance term after rounding.
    if n == 0 or x.min() == x.max() or y.min() == y.max():
        return 0.0
    sum_x, sum_y = x.sum(), y.sum()
    numerator = n * (x * y).sum() - sum_x * sum_y
    var_x = n * (x * x).sum() - sum_x ** 2
    var_y = n * (y * y).sum() - sum_y ** 2
    if var_x <= 0 or var_y <= 0:
        return 0.0
    r = float(numerator / math.sqrt(var_x * var_y))
    return min(1.0, max(-1.0, r))


def compute_correlations(dataset: DataSet) -> pd.DataFrame:
    """Compute the correlation matrix of the fully numeric columns.

    Returns
    -------
    pd.DataFrame
        Square, symmetric frame indexed by header on both axes, with 1.0 on
        the diagonal.  Empty when no column qualifies.
    """
    columns = fully_numeric_columns(dataset)
    headers = list(columns)
    arrays = [np.asarray(columns[h], dtype=float) for h in headers]
    size = len(headers)
    matrix = np.eye(size, dtype=float)
    for i in range(size):
        for j in range(i + 1, size):
            matrix[i, j] = matrix[j, i] = pearson(arrays[i], arrays[j])
    return pd.DataFrame(matrix, index=headers, columns=headers)
