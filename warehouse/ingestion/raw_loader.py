"""
Raw Extract Loader

Bronze layer ingestion: reads the CRM and ERP CSV extracts into typed
polars frames without applying any business transformation.

Every load is a full refresh. A missing or unreadable extract fails the
whole load; there is no partial raw store.
"""

import hashlib
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import polars as pl
import structlog
from pydantic import BaseModel

from warehouse.config import get_settings
from warehouse.exceptions import RawStoreError
from .schemas import RAW_TABLES, RawTableSpec

logger = structlog.get_logger(__name__)

NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]


class LoadStatus(str, Enum):
    """Raw table load status"""
    COMPLETED = "completed"
    FAILED = "failed"


class LoadResult(BaseModel):
    """Result of loading one raw extract"""
    table: str
    file_path: str
    status: LoadStatus
    rows_loaded: int = 0
    error_message: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


@dataclass(frozen=True)
class RawStore:
    """The six raw tables of one batch, exactly as extracted"""
    crm_cust_info: pl.DataFrame
    crm_prd_info: pl.DataFrame
    crm_sales_details: pl.DataFrame
    erp_cust_az12: pl.DataFrame
    erp_loc_a101: pl.DataFrame
    erp_px_cat_g1v2: pl.DataFrame

    def tables(self) -> Dict[str, pl.DataFrame]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def row_counts(self) -> Dict[str, int]:
        return {name: df.height for name, df in self.tables().items()}


def conform_to_schema(df: pl.DataFrame, spec: RawTableSpec) -> pl.DataFrame:
    """
    Lower-case headers, require every declared column and cast to the declared types.

    A value that does not parse as its column's type raises RawStoreError,
    except in the table's lenient columns where it becomes null.
    """
    df = df.rename({c: c.strip().lower() for c in df.columns})
    missing = [c for c in spec.schema if c not in df.columns]
    if missing:
        raise RawStoreError(
            f"Extract for {spec.name} is missing columns: {missing}",
            details={"table": spec.name, "missing_columns": missing},
        )
    conformed = df.select([
        pl.col(name).cast(dtype, strict=False).alias(name)
        for name, dtype in spec.schema.items()
    ])

    for name in spec.schema:
        if name in spec.lenient_columns:
            continue
        lost = df[name].is_not_null() & conformed[name].is_null()
        if lost.any():
            bad_values = df.filter(lost)[name]
            raise RawStoreError(
                f"Malformed values in {spec.name}.{name}: {bad_values[0]!r}",
                details={
                    "table": spec.name,
                    "column": name,
                    "sample": str(bad_values[0]),
                    "malformed_rows": bad_values.len(),
                },
            )
    return conformed


class RawLoader:
    """
    Loads the bronze layer from CSV extracts.

    Example:
        loader = RawLoader("data/raw")
        raw, results = loader.load()
    """

    def __init__(
        self,
        raw_path: Optional[Union[str, Path]] = None,
        crm_dir: Optional[str] = None,
        erp_dir: Optional[str] = None,
        delimiter: str = ",",
        encoding: str = "utf8",
    ):
        settings = get_settings()
        self.raw_path = Path(raw_path or settings.data_lake.raw_path)
        self.source_dirs = {
            "crm": self.raw_path / (crm_dir or settings.data_lake.crm_dir),
            "erp": self.raw_path / (erp_dir or settings.data_lake.erp_dir),
        }
        self.delimiter = delimiter
        self.encoding = encoding

    def path_for(self, spec: RawTableSpec) -> Path:
        return self.source_dirs[spec.source] / spec.file_name

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of the extract for the audit trail"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, file_path: Path) -> pl.DataFrame:
        """Read every column as text; typing happens in conform_to_schema"""
        return pl.read_csv(
            file_path,
            separator=self.delimiter,
            encoding=self.encoding,
            null_values=NULL_VALUES,
            infer_schema_length=0,
        )

    def load_table(self, spec: RawTableSpec) -> tuple[pl.DataFrame, LoadResult]:
        """Load one raw extract, raising RawStoreError on any failure"""
        file_path = self.path_for(spec)
        started_at = datetime.utcnow()

        logger.info("Loading raw table", table=spec.name, file=str(file_path))

        if not file_path.exists():
            raise RawStoreError(
                f"Extract not found for {spec.name}: {file_path}",
                details={"table": spec.name, "file": str(file_path)},
            )

        try:
            df = conform_to_schema(self._read_csv(file_path), spec)
        except RawStoreError:
            raise
        except Exception as e:
            raise RawStoreError(
                f"Could not read extract for {spec.name}: {e}",
                details={"table": spec.name, "file": str(file_path)},
            ) from e

        completed_at = datetime.utcnow()
        result = LoadResult(
            table=spec.name,
            file_path=str(file_path),
            status=LoadStatus.COMPLETED,
            rows_loaded=df.height,
            started_at=started_at,
            completed_at=completed_at,
            load_duration_seconds=(completed_at - started_at).total_seconds(),
            file_hash=self._compute_file_hash(file_path),
        )

        logger.info(
            "Raw table loaded",
            table=spec.name,
            rows_loaded=result.rows_loaded,
            duration_seconds=result.load_duration_seconds,
        )
        return df, result

    def load(self) -> tuple[RawStore, List[LoadResult]]:
        """
        Load all six raw tables.

        Returns:
            The populated RawStore and one LoadResult per table
        """
        frames: Dict[str, pl.DataFrame] = {}
        results: List[LoadResult] = []

        for spec in RAW_TABLES:
            df, result = self.load_table(spec)
            frames[spec.name] = df
            results.append(result)

        logger.info(
            "Raw store loaded",
            tables=len(frames),
            total_rows=sum(r.rows_loaded for r in results),
        )
        return RawStore(**frames), results
