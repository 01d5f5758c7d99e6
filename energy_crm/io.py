"""CSV codec mapping lead records to and from the fixed 18-column schema."""
from __future__ import annotations

import csv
import io
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import CSVFormatError
from .models import CSV_COLUMNS, CSV_HEADERS, DEFAULT_METER_TYPE, DEFAULT_STAGE, METER_TYPES, STAGES, Record
from .normalize import normalize_contract_end_date

LOGGER = logging.getLogger(__name__)

DEFAULT_EXPORT_PREFIX = "cardinal-crm"
TEMPLATE_FILENAME = "crm_template.csv"


def records_to_csv(records: Iterable[Record]) -> str:
    """Serialise records to CSV text; ``id``, ``ownerId`` and ``createdAt`` are omitted."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    # A bare carriage return is only quoted when it is part of the line terminator.
    quoted_writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for record in records:
        values = record.schema_values()
        row = ["" if values[header] is None else str(values[header]) for header in CSV_HEADERS]
        (quoted_writer if any("\r" in cell for cell in row) else writer).writerow(row)
    return buffer.getvalue()


def csv_template() -> str:
    """Return the header-only template file contents."""

    return ",".join(CSV_HEADERS) + "\n"


def export_filename(prefix: str = DEFAULT_EXPORT_PREFIX, *, today: Optional[date] = None) -> str:
    return f"{prefix}-{(today or date.today()).isoformat()}.csv"


def parse_csv(text: str) -> List[Record]:
    """Parse CSV text into new, unassigned records.

    Only schema columns named in the header are applied; the rest of each record
    keeps its defaults. Short rows are padded with empty cells and blank rows
    are skipped.
    """

    reader = csv.reader(io.StringIO(text or "", newline=""))
    try:
        rows = [row for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        raise CSVFormatError(f"Could not parse CSV at line {reader.line_num}: {exc}") from exc
    if not rows:
        return []

    header = [cell.strip() for cell in rows[0]]
    records: List[Record] = []
    for row_number, cells in enumerate(rows[1:], start=2):
        if len(cells) != len(header):
            LOGGER.warning(
                "CSV row %s has %s cells, expected %s; missing cells default to empty",
                row_number,
                len(cells),
                len(header),
            )
        mapped = {column: cells[index] if index < len(cells) else "" for index, column in enumerate(header)}
        records.append(row_to_record(mapped))
    return records


def row_to_record(row: Mapping[str, object]) -> Record:
    """Seed a fresh record and overwrite the schema fields present in ``row``."""

    record = Record(owner_id=None)
    values: Dict[str, str] = {}
    for header, attribute in CSV_COLUMNS:
        if header in row:
            cell = row[header]
            values[attribute] = "" if cell is None else str(cell)
    for attribute, value in values.items():
        setattr(record, attribute, value)

    if record.meter_type not in METER_TYPES:
        if record.meter_type:
            LOGGER.warning("Unknown meter type %r; using %s", record.meter_type, DEFAULT_METER_TYPE)
        record.meter_type = DEFAULT_METER_TYPE
    if record.stage not in STAGES:
        if record.stage:
            LOGGER.warning("Unknown stage %r; using %s", record.stage, DEFAULT_STAGE)
        record.stage = DEFAULT_STAGE
    record.ced = normalize_contract_end_date(record.ced)
    return record


def read_csv_file(path: str | Path) -> List[Record]:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)
    try:
        text = file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVFormatError(f"{file_path.name} is not UTF-8 text (byte {exc.start})") from exc
    return parse_csv(text)


def write_csv_file(path: str | Path, records: Iterable[Record]) -> Path:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("w", newline="", encoding="utf-8") as handle:
        handle.write(records_to_csv(records))
    return destination


__all__ = [
    "DEFAULT_EXPORT_PREFIX",
    "TEMPLATE_FILENAME",
    "csv_template",
    "export_filename",
    "parse_csv",
    "read_csv_file",
    "records_to_csv",
    "row_to_record",
    "write_csv_file",
]
