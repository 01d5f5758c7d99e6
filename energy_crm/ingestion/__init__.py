"""Spreadsheet ingestion and export for lead records."""
from __future__ import annotations

from .exporters import export_records, records_to_dataframe
from .loaders import UnsupportedFileTypeError, dataframe_to_records, load_records

__all__ = [
    "UnsupportedFileTypeError",
    "dataframe_to_records",
    "export_records",
    "load_records",
    "records_to_dataframe",
]
