"""Table and key/value storage backends."""

from .kv_store import JsonFileStore, KeyValueStore
from .table_store import CsvTableStore, DataFrameTableStore, TableStore

__all__ = [
    "CsvTableStore",
    "DataFrameTableStore",
    "JsonFileStore",
    "KeyValueStore",
    "TableStore",
]
