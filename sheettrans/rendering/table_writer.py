"""Write translated rows back to a workbook."""

import io
import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from sheettrans.core.models import Row

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "TranslatedSheet"


def _frame(rows: List[Row], headers: List[str]) -> pd.DataFrame:
    return pd.DataFrame([[row.get(h) for h in headers] for row in rows], columns=headers)


def table_to_bytes(rows: List[Row], headers: List[str], sheet_name: str = DEFAULT_SHEET_NAME) -> bytes:
    """Serialize rows into .xlsx bytes with a single sheet."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _frame(rows, headers).to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def write_table(
    rows: List[Row],
    headers: List[str],
    path: Union[str, Path],
    sheet_name: str = DEFAULT_SHEET_NAME
) -> Path:
    """
    Write rows to an .xlsx file, columns in header order.

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(table_to_bytes(rows, headers, sheet_name))
    logger.info(f"Wrote {len(rows)} rows to {path}")
    return path


def translated_file_name(source_name: Optional[str], language: str) -> str:
    """`questions.xlsx` + `Hindi` -> `questions_Hindi.xlsx`."""
    stem = re.sub(r'\.(xlsx|xls|csv)$', '', Path(source_name or "").name, flags=re.IGNORECASE)
    return f"{stem or 'translated'}_{language}.xlsx"
