"""I/O utilities: snapshots, configuration and CSV import/export."""

from .export_csv import export_capacity_csv, export_violations_csv, write_shifts_csv
from .import_csv import read_shifts_csv
from .snapshot import engine_input_from_dict, load_engine_input

__all__ = [
    "export_capacity_csv",
    "export_violations_csv",
    "write_shifts_csv",
    "read_shifts_csv",
    "engine_input_from_dict",
    "load_engine_input",
]
