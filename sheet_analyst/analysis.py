"""Column typing and descriptive statistics.

Every function here is a pure function of a ``DataSet``: nothing is cached
between calls and the dataset is never modified.  Columns without numeric
values are not an error; their ``ColumnStats`` simply carry no numeric
fields.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Hashable, List, Optional

import numpy as np
from scipy import stats

from .dataset import Cell, DataSet, is_boolean, is_empty, is_number


@dataclass(frozen=True)
class ColumnStats:
    """Descriptive statistics for one column.

    ``mean``, ``min``, ``max``, ``median`` and ``std_dev`` are ``None`` when
    the column has no numeric cells.  ``std_dev`` is the population standard
    deviation.
    """

    count: int
    numeric_count: int
    unique_count: int
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    median: Optional[float] = None
    std_dev: Optional[float] = None

    @property
    def is_numeric(self) -> bool:
        return self.numeric_count > 0

    def to_dict(self) -> Dict[str, Any]:
        """Return the statistics as a dict, leaving out absent numeric fields."""
        return {key: value for key, value in asdict(self).items() if value is not None}


def _value_key(value: Cell) -> Hashable:
    """Key under which two cells count as the same value.

    Type is part of the key so that ``"1"``, ``1`` and ``True`` stay
    distinct while ``1`` and ``1.0`` collapse.
    """
    if is_empty(value):
        return ("empty",)
    if is_boolean(value):
        return ("boolean", bool(value))
    if is_number(value):
        return ("number", float(value))
    if isinstance(value, str):
        return ("text", value)
    try:
        hash(value)
    except TypeError:
        return ("other", repr(value))
    return ("other", value)


def numeric_values(cells: List[Cell]) -> List[float]:
    """Return the numeric subset of ``cells`` as floats, in order."""
    return [float(cell) for cell in cells if is_number(cell)]


def summarize_column(cells: List[Cell]) -> ColumnStats:
    """Compute ``ColumnStats`` for a single column of cells."""
    count = len(cells)
    unique_count = len({_value_key(cell) for cell in cells})
    values = numeric_values(cells)
    if not values:
        return ColumnStats(count=count, numeric_count=0, unique_count=unique_count)

    arr = np.asarray(values, dtype=float)
    lo = float(arr.min())
    hi = float(arr.max())
    # Float rounding can push the mean of identical values just outside [min, max].
    mean = min(max(float(arr.mean()), lo), hi)
    return ColumnStats(
        count=count,
        numeric_count=len(values),
        unique_count=unique_count,
        mean=mean,
        min=lo,
        max=hi,
        median=float(np.median(arr)),
        std_dev=float(arr.std(ddof=0)),
    )


def compute_column_stats(dataset: DataSet) -> Dict[str, ColumnStats]:
    """Compute statistics for every column of ``dataset``.

    Parameters
    ----------
    dataset : DataSet
        The dataset to summarise.

    Returns
    -------
    Dict[str, ColumnStats]
        Mapping from header to statistics.  Columns sharing a header are
        all computed, and the right-most one is the one kept in the mapping.
    """
    result: Dict[str, ColumnStats] = {}
    for index, header in enumerate(dataset.headers):
        result[header] = summarize_column(dataset.column(index))
    return result


def detect_anomalies(dataset: DataSet, header: str, z_thresh: float = 3.0) -> List[int]:
    """Detect outliers in a numeric column using the z-score.

    Parameters
    ----------
    dataset : DataSet
        Dataset holding the column.
    header : str
        Column to inspect.  With duplicate headers the right-most column is
        used, consistent with ``compute_column_stats``.
    z_thresh : float, optional
        Absolute z-score beyond which a value is considered an anomaly.
        Default is 3.0.

    Returns
    -------
    List[int]
        0-based indices into ``dataset.rows`` of the anomalous cells.
        Non-numeric cells are skipped; a zero-variance column has none.
    """
    if header not in dataset.headers:
        raise ValueError(f"Column '{header}' not found in dataset.")
    index = len(dataset.headers) - 1 - dataset.headers[::-1].index(header)
    positions: List[int] = []
    values: List[float] = []
    for row_index, cell in enumerate(dataset.column(index)):
        if is_number(cell):
            positions.append(row_index)
            values.append(float(cell))
    if len(values) < 2 or min(values) == max(values):
        return []
    z_scores = np.abs(stats.zscore(np.asarray(values, dtype=float)))
    return [positions[i] for i in np.where(z_scores > z_thresh)[0].tolist()]
