"""Textual digests of a dataset for inclusion in a model prompt.

The sample is always the first rows of the sheet so the same dataset gives
the same prompt.  Row and column counts are reported in full so the model
knows the sample is partial.
"""

from __future__ import annotations

from typing import List

from .analysis import compute_column_stats
from .correlation import compute_correlations
from .dataset import Cell, DataSet, is_empty

DEFAULT_SAMPLE_SIZE = 5


def render_cell(value: Cell) -> str:
    """Convert a cell to text the way a spreadsheet would display it."""
    if is_empty(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_row(headers: List[str], row: List[Cell]) -> str:
    return ", ".join(f"{header}: {render_cell(value)}" for header, value in zip(headers, row))


def build_context(dataset: DataSet, sample_size: int = DEFAULT_SAMPLE_SIZE) -> str:
    """Build the bounded dataset description handed to the model.

    Parameters
    ----------
    dataset : DataSet
        Dataset to describe.
    sample_size : int, optional
        Maximum number of leading rows to include.  Default is 5.

    Returns
    -------
    str
        Name, shape, headers and the first ``min(sample_size, row_count)``
        rows, one ``Row <n>: <header>: <value>, ...`` line each.
    """
    shown = max(0, min(sample_size, dataset.row_count))
    lines = [
        f"Dataset: {dataset.sheet_name}",
        f"Rows: {dataset.row_count}",
        f"Columns: {dataset.column_count}",
        f"Headers: {', '.join(dataset.headers)}",
        f"Sample (first {shown} of {dataset.row_count} rows):",
    ]
    for number, row in enumerate(dataset.rows[:shown], start=1):
        lines.append(f"Row {number}: {render_row(dataset.headers, row)}")
    return "\n".join(lines)


def _fmt(value: float) -> str:
    return f"{value:.6g}"


def build_statistics_context(dataset: DataSet) -> str:
    """Render column statistics and correlations as prompt text."""
    lines = ["Column statistics:"]
    for header, column in compute_column_stats(dataset).items():
        parts = [
            f"count={column.count}",
            f"numeric={column.numeric_count}",
            f"unique={column.unique_count}",
        ]
        if column.is_numeric:
            parts += [
                f"mean={_fmt(column.mean)}",
                f"median={_fmt(column.median)}",
                f"min={_fmt(column.min)}",
                f"max={_fmt(column.max)}",
                f"std={_fmt(column.std_dev)}",
            ]
        lines.append(f"- {header}: {', '.join(parts)}")

    matrix = compute_correlations(dataset)
    headers = list(matrix.columns)
    pairs = [
        f"- {headers[i]} / {headers[j]}: {matrix.iat[i, j]:.3f}"
        for i in range(len(headers))
        for j in range(i + 1, len(headers))
    ]
    if pairs:
        lines.append("Correlations (fully numeric columns):")
        lines.extend(pairs)
    else:
        lines.append("Correlations: fewer than two fully numeric columns.")
    return "\n".join(lines)
