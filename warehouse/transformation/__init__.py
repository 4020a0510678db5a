"""
Data Transformation Module
"""
from .cleaners import CleaningStats, SilverCleaner, deduplicate_latest
from .dimensions import DimensionalAssembler
from .reconciliation import ReconciliationStats, reconcile_sales, sanitize_date_key
from .temporal import derive_validity_windows, find_start_date_conflicts
from .transformers import (
    BatchReport,
    BatchStatus,
    GoldLayer,
    SilverLayer,
    StageResult,
    StageStatus,
    WarehouseTransformer,
)

__all__ = [
    "CleaningStats",
    "SilverCleaner",
    "deduplicate_latest",
    "DimensionalAssembler",
    "ReconciliationStats",
    "reconcile_sales",
    "sanitize_date_key",
    "derive_validity_windows",
    "find_start_date_conflicts",
    "BatchReport",
    "BatchStatus",
    "GoldLayer",
    "SilverLayer",
    "StageResult",
    "StageStatus",
    "WarehouseTransformer",
]
