"""
Data Cleaning Module

Silver layer cleansing for the CRM and ERP extracts.
Handles:
- Dropping records without a natural key
- Deduplication (latest record wins, input order breaks ties)
- Whitespace trimming
- Code-to-label normalization
- Null defaulting for numeric fields

Cleansing only fills nulls. Negative costs and prices are left for the
quality gate to report.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from .codes import (
    CRM_GENDER,
    CRM_MARITAL_STATUS,
    CRM_PRODUCT_LINE,
    ERP_GENDER,
    UNKNOWN,
    normalize_code,
    normalize_country,
)
from .reconciliation import ReconciliationStats, reconcile_sales

logger = structlog.get_logger(__name__)

_ROW_NR = "_row_nr"


@dataclass
class CleaningStats:
    """Statistics from cleaning one entity type"""
    entity: str
    input_rows: int
    output_rows: int
    missing_keys_dropped: int
    duplicates_removed: int
    nulls_filled: int = 0
    codes_defaulted: int = 0

    @property
    def rows_dropped(self) -> int:
        return self.input_rows - self.output_rows


def deduplicate_latest(
    df: pl.DataFrame,
    key: str,
    order_by: Optional[str] = None,
) -> pl.DataFrame:
    """
    Keep one row per ``key``.

    The row with the greatest ``order_by`` value wins (nulls rank last);
    ties, and every duplicate when ``order_by`` is None, go to the first
    row in input order. Surviving rows keep their input order.
    """
    indexed = df.with_row_index(_ROW_NR)
    if order_by is not None:
        indexed = indexed.sort(
            [order_by, _ROW_NR],
            descending=[True, False],
            nulls_last=True,
        )
    return (
        indexed.unique(subset=[key], keep="first", maintain_order=True)
        .sort(_ROW_NR)
        .drop(_ROW_NR)
    )


def coerce_date(df: pl.DataFrame, column: str) -> pl.Expr:
    """Expression turning a text, datetime or date column into pl.Date"""
    dtype = df.schema[column]
    if dtype == pl.Date:
        return pl.col(column)
    if isinstance(dtype, pl.Datetime):
        return pl.col(column).dt.date()
    return (
        pl.col(column)
        .cast(pl.Utf8)
        .str.strip_chars()
        .str.slice(0, 10)
        .str.to_date("%Y-%m-%d", strict=False)
    )


class SilverCleaner:
    """
    Cleanses raw CRM/ERP tables into silver entities.

    Every ``clean_*`` method is a pure function of its input frame and
    returns the cleansed frame together with its CleaningStats.

    Example:
        cleaner = SilverCleaner(as_of=date(2024, 1, 1))
        customers, stats = cleaner.clean_customers(raw.crm_cust_info)
    """

    def __init__(self, as_of: Optional[date] = None):
        self.as_of = as_of or date.today()

    def _trim_strings(self, df: pl.DataFrame, columns: Optional[List[str]] = None) -> pl.DataFrame:
        """Trim whitespace from string columns"""
        string_cols = columns or [
            col for col, dtype in zip(df.columns, df.dtypes)
            if dtype == pl.Utf8
        ]
        return df.with_columns([
            pl.col(col).str.strip_chars().alias(col)
            for col in string_cols
            if col in df.columns
        ])

    def _fill_nulls(self, df: pl.DataFrame, fill_values: Dict[str, Any]) -> tuple[pl.DataFrame, int]:
        """Fill null values with specified defaults, returning the fill count"""
        filled = sum(df[col].null_count() for col in fill_values if col in df.columns)
        df = df.with_columns([
            pl.col(col).fill_null(value).alias(col)
            for col, value in fill_values.items()
            if col in df.columns
        ])
        return df, filled

    def _drop_missing_keys(self, df: pl.DataFrame, keys: List[str]) -> tuple[pl.DataFrame, int]:
        """Drop records whose natural key is null or blank"""
        condition = pl.lit(True)
        for key in keys:
            col = pl.col(key)
            if df.schema[key] == pl.Utf8:
                condition = condition & col.str.strip_chars().ne("").fill_null(False)
            else:
                condition = condition & col.is_not_null()
        kept = df.filter(condition)
        return kept, df.height - kept.height

    def _count_defaulted(self, df: pl.DataFrame, column: str, lookup: Dict[str, str]) -> int:
        """Codes present in the raw data that still resolved to UNKNOWN"""
        present = pl.col(column).cast(pl.Utf8).str.strip_chars().ne("").fill_null(False)
        return df.filter(present & (normalize_code(column, lookup) == UNKNOWN)).height

    def _finish(
        self,
        entity: str,
        input_rows: int,
        df: pl.DataFrame,
        missing: int,
        duplicates: int,
        nulls_filled: int = 0,
        codes_defaulted: int = 0,
    ) -> CleaningStats:
        stats = CleaningStats(
            entity=entity,
            input_rows=input_rows,
            output_rows=df.height,
            missing_keys_dropped=missing,
            duplicates_removed=duplicates,
            nulls_filled=nulls_filled,
            codes_defaulted=codes_defaulted,
        )
        if missing:
            logger.warning("Dropped records without natural key", entity=entity, rows=missing)
        logger.info(
            "Entity cleansed",
            entity=entity,
            input_rows=input_rows,
            output_rows=stats.output_rows,
            duplicates_removed=duplicates,
        )
        return stats

    def clean_customers(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats]:
        """CRM customer profiles, one row per cst_id (latest cst_create_date wins)"""
        input_rows = raw.height
        df, missing = self._drop_missing_keys(raw, ["cst_id"])
        df = df.with_columns(coerce_date(df, "cst_create_date").alias("cst_create_date"))

        before = df.height
        df = deduplicate_latest(df, key="cst_id", order_by="cst_create_date")
        duplicates = before - df.height

        codes_defaulted = (
            self._count_defaulted(df, "cst_marital_status", CRM_MARITAL_STATUS)
            + self._count_defaulted(df, "cst_gndr", CRM_GENDER)
        )
        df = self._trim_strings(df, ["cst_key", "cst_firstname", "cst_lastname"])
        df = df.select(
            pl.col("cst_id").cast(pl.Int64).alias("customer_id"),
            pl.col("cst_key").alias("customer_key"),
            pl.col("cst_firstname").alias("first_name"),
            pl.col("cst_lastname").alias("last_name"),
            normalize_code("cst_marital_status", CRM_MARITAL_STATUS).alias("marital_status"),
            normalize_code("cst_gndr", CRM_GENDER).alias("gender"),
            pl.col("cst_create_date").alias("created_at"),
        )

        stats = self._finish(
            "customers", input_rows, df, missing, duplicates, codes_defaulted=codes_defaulted
        )
        return df, stats

    def clean_products(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats]:
        """
        CRM product versions.

        The composite prd_key "CO-RF-FR-R92B-58" splits into the category
        id "CO_RF" and the product key "FR-R92B-58". The raw end date is
        dropped; validity windows are derived downstream.
        """
        input_rows = raw.height
        df, missing = self._drop_missing_keys(raw, ["prd_id", "prd_key"])

        before = df.height
        df = deduplicate_latest(df, key="prd_id")
        duplicates = before - df.height

        df = self._trim_strings(df, ["prd_key", "prd_nm"])
        df, nulls_filled = self._fill_nulls(df, {"prd_cost": 0.0})
        codes_defaulted = self._count_defaulted(df, "prd_line", CRM_PRODUCT_LINE)

        df = df.select(
            pl.col("prd_id").cast(pl.Int64).alias("product_id"),
            pl.col("prd_key").str.slice(0, 5).str.replace_all("-", "_").alias("category_id"),
            pl.col("prd_key").str.slice(6).alias("product_key"),
            pl.col("prd_nm").alias("product_name"),
            pl.col("prd_cost").cast(pl.Float64).alias("cost"),
            normalize_code("prd_line", CRM_PRODUCT_LINE).alias("product_line"),
            coerce_date(df, "prd_start_dt").alias("valid_from"),
        )

        stats = self._finish(
            "products", input_rows, df, missing, duplicates,
            nulls_filled=nulls_filled, codes_defaulted=codes_defaulted,
        )
        return df, stats

    def clean_sales(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats, ReconciliationStats]:
        """CRM sales lines with sanitized dates and reconciled amounts"""
        input_rows = raw.height
        df, missing = self._drop_missing_keys(raw, ["sls_ord_num"])
        df = self._trim_strings(df, ["sls_ord_num", "sls_prd_key"])

        df, reconciliation = reconcile_sales(df)
        df = df.select(
            pl.col("sls_ord_num").alias("order_number"),
            pl.col("sls_prd_key").alias("product_key"),
            pl.col("sls_cust_id").cast(pl.Int64).alias("customer_id"),
            "order_date",
            "ship_date",
            "due_date",
            "quantity",
            "unit_price",
            "line_amount",
        )

        stats = self._finish("sales", input_rows, df, missing, 0)
        return df, stats, reconciliation

    def clean_demographics(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats]:
        """ERP demographics keyed like CRM customer keys (NAS prefix removed)"""
        input_rows = raw.height
        df = raw.with_columns(
            pl.col("cid").str.strip_chars().str.replace(r"^NAS", "").alias("cid"),
        )
        df, missing = self._drop_missing_keys(df, ["cid"])

        before = df.height
        df = deduplicate_latest(df, key="cid")
        duplicates = before - df.height

        codes_defaulted = self._count_defaulted(df, "gen", ERP_GENDER)
        birth_date = coerce_date(df, "bdate")
        df = df.select(
            pl.col("cid").alias("customer_key"),
            pl.when(birth_date > pl.lit(self.as_of))
            .then(None)
            .otherwise(birth_date)
            .alias("birth_date"),
            normalize_code("gen", ERP_GENDER).alias("gender"),
        )

        stats = self._finish(
            "demographics", input_rows, df, missing, duplicates, codes_defaulted=codes_defaulted
        )
        return df, stats

    def clean_locations(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats]:
        """ERP customer locations with expanded country names"""
        input_rows = raw.height
        df = raw.with_columns(
            pl.col("cid").str.replace_all("-", "").str.strip_chars().alias("cid"),
        )
        df, missing = self._drop_missing_keys(df, ["cid"])

        before = df.height
        df = deduplicate_latest(df, key="cid")
        duplicates = before - df.height

        df = df.select(
            pl.col("cid").alias("customer_key"),
            normalize_country("cntry").alias("country"),
        )

        stats = self._finish("locations", input_rows, df, missing, duplicates)
        return df, stats

    def clean_categories(self, raw: pl.DataFrame) -> tuple[pl.DataFrame, CleaningStats]:
        """ERP product categories"""
        input_rows = raw.height
        df = self._trim_strings(raw, ["id", "cat", "subcat", "maintenance"])
        df, missing = self._drop_missing_keys(df, ["id"])

        before = df.height
        df = deduplicate_latest(df, key="id")
        duplicates = before - df.height

        df = df.select(
            pl.col("id").alias("category_id"),
            pl.col("cat").alias("category"),
            pl.col("subcat").alias("subcategory"),
            pl.col("maintenance"),
        )

        stats = self._finish("categories", input_rows, df, missing, duplicates)
        return df, stats
