"""Read spreadsheet rows as ordered column -> value mappings."""

import logging
from pathlib import Path
from typing import Any, List, Tuple, Union

import pandas as pd

from sheettrans.core.models import Row

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xls", ".csv")


def _cell_value(value: Any) -> Any:
    """NaN/NaT become None, numpy scalars become Python scalars."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # list-like cells
        return value
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        return value.item()
    return value


def read_table(path: Union[str, Path]) -> Tuple[List[Row], List[str]]:
    """
    Read the first sheet of a workbook (or a CSV file).

    The header row provides the column names in sheet order. Blank rows
    are skipped, empty cells read as None.

    Returns:
        (rows, headers)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported file type '{path.suffix}'. Expected one of: {', '.join(SUPPORTED_SUFFIXES)}"
        )

    if suffix == ".csv":
        frame = pd.read_csv(path, dtype=object)
    else:
        frame = pd.read_excel(path, sheet_name=0, dtype=object)

    frame = frame.dropna(how="all")
    headers = [str(column) for column in frame.columns]

    rows: List[Row] = []
    for record in frame.itertuples(index=False, name=None):
        rows.append({header: _cell_value(value) for header, value in zip(headers, record)})

    logger.info(f"Read {len(rows)} rows x {len(headers)} columns from {path.name}")
    return rows, headers
