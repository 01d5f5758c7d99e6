"""Utilities for loading lead records from CSV files and Excel workbooks."""
from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import Any, List, MutableMapping, Optional, Union

import pandas as pd

from ..errors import CRMError
from ..io import read_csv_file, row_to_record
from ..models import CSV_HEADERS, Record

PathLike = Union[str, Path]

_CSV_SUFFIXES = {".csv"}
_EXCEL_SUFFIXES = {".xls", ".xlsx", ".xlsm", ".xlsb"}


class UnsupportedFileTypeError(CRMError, ValueError):
    """Raised when an unsupported file format is passed to the loader."""


def load_records(
    path: PathLike,
    *,
    sheet_name: Union[str, int] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[Record]:
    """Load unassigned records from a CSV file or an Excel sheet.

    CSV files go through the text codec so quoting rules match the export.
    Excel cells keep their native types until rendered as text: dates become
    ``YYYY-MM-DD`` and times ``HH:MM``. Only columns named in the CSV schema
    are applied, the rest are ignored.
    """

    path_obj = Path(path)
    suffix = path_obj.suffix.lower()

    if suffix in _CSV_SUFFIXES:
        return read_csv_file(path_obj)

    if suffix in _EXCEL_SUFFIXES:
        dataframe = _read_excel(path_obj, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
        return dataframe_to_records(dataframe)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")


def _read_excel(
    path: Path,
    *,
    sheet_name: Union[str, int],
    loader_kwargs: Optional[MutableMapping[str, Any]],
) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(path)
    loader_kwargs = dict(loader_kwargs or {})
    engine = loader_kwargs.pop("engine", None)
    if engine is None and path.suffix.lower() != ".xls":
        engine = "openpyxl"
    return pd.read_excel(
        path,
        sheet_name=sheet_name,
        engine=engine,
        dtype=object,
        keep_default_na=False,
        **loader_kwargs,
    )


def dataframe_to_records(dataframe: pd.DataFrame) -> List[Record]:
    columns = [str(column).strip() for column in dataframe.columns]
    dataframe = dataframe.set_axis(columns, axis=1)
    schema_columns = [column for column in columns if column in CSV_HEADERS]

    records: List[Record] = []
    for _, row in dataframe.iterrows():
        if _row_is_empty(row):
            continue
        records.append(row_to_record({column: _clean_text(row[column]) for column in schema_columns}))
    return records


def _row_is_empty(row: pd.Series) -> bool:
    return all(pd.isna(value) or (isinstance(value, str) and not value.strip()) for value in row.values)


def _clean_text(value: Any) -> str:
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if not isinstance(value, str) and pd.isna(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


__all__ = ["UnsupportedFileTypeError", "dataframe_to_records", "load_records"]
