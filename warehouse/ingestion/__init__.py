"""
Data Ingestion Module
"""
from .raw_loader import LoadResult, RawLoader, RawStore, conform_to_schema
from .schemas import RAW_TABLES, RawTableSpec

__all__ = [
    "LoadResult",
    "RawLoader",
    "RawStore",
    "conform_to_schema",
    "RAW_TABLES",
    "RawTableSpec",
]
