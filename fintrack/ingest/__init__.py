"""Import and export of transaction files."""

from fintrack.ingest.csv_files import (
    CsvImportError,
    export_csv,
    export_json,
    parse_generic_csv,
    parse_wechat_csv,
)

__all__ = [
    "CsvImportError",
    "export_csv",
    "export_json",
    "parse_generic_csv",
    "parse_wechat_csv",
]
