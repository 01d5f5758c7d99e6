"""Export utilities writing lead records to CSV or Excel."""
from __future__ import annotations

from pathlib import Path
from typing import MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..io import write_csv_file
from ..models import CSV_HEADERS, Record
from .loaders import UnsupportedFileTypeError

PathLike = Union[str, Path]


def records_to_dataframe(records: Sequence[Record]) -> pd.DataFrame:
    """Convert records into a :class:`pandas.DataFrame` in schema column order."""

    return pd.DataFrame([record.schema_values() for record in records], columns=list(CSV_HEADERS))


def export_records(
    records: Sequence[Record],
    path: PathLike,
    *,
    sheet_name: str = "Records",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write records to ``path``; the file extension selects CSV or Excel."""

    output_path = Path(path)
    suffix = output_path.suffix.lower()

    if suffix == ".csv":
        return write_csv_file(output_path, records)

    if suffix in {".xlsx", ".xlsm"}:
        exporter_kwargs = dict(exporter_kwargs or {})
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        records_to_dataframe(records).to_excel(
            output_path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs
        )
        return output_path

    raise UnsupportedFileTypeError(f"Unsupported export file extension: {suffix}")


__all__ = ["export_records", "records_to_dataframe"]
