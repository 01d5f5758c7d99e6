import pandas as pd
import pytest

from energy_crm.ingestion.exporters import export_records, records_to_dataframe
from energy_crm.ingestion.loaders import UnsupportedFileTypeError, load_records
from energy_crm.models import CSV_HEADERS, Record


def _sample_records() -> list[Record]:
    return [
        Record(
            owner_id="owner-1",
            company="Analytical Engines",
            contact="Ada Lovelace",
            phone="07123 456789",
            supplier="Octopus",
            ced="2025-03-31",
            stage="Contracted",
        ),
        Record(company="Navy Yard", notes="first line\nsecond, line"),
    ]


def test_records_to_dataframe_uses_schema_columns():
    dataframe = records_to_dataframe(_sample_records())

    assert list(dataframe.columns) == list(CSV_HEADERS)
    assert dataframe.loc[0, "company"] == "Analytical Engines"
    assert dataframe.loc[1, "stage"] == "Prospect"


def test_export_records_to_csv_and_excel(tmp_path):
    records = _sample_records()

    csv_path = export_records(records, tmp_path / "records.csv")
    csv_frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    assert csv_frame.loc[0, "phone"] == "07123 456789"
    assert csv_frame.loc[1, "notes"] == "first line\nsecond, line"

    pytest.importorskip("openpyxl", reason="Excel export requires openpyxl")
    excel_path = export_records(records, tmp_path / "records.xlsx")
    reloaded = load_records(excel_path)
    assert [record.company for record in reloaded] == ["Analytical Engines", "Navy Yard"]
    assert reloaded[0].supplier == "Octopus"


def test_export_rejects_unknown_extension(tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        export_records(_sample_records(), tmp_path / "records.pdf")
