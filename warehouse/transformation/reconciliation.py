"""
Sales Line Reconciliation

Sanitizes the integer-encoded dates of sales lines and enforces
``line_amount = quantity * unit_price``.

Amount and price are both computed from the raw (quantity, price, sales)
tuple of the same line, so correcting one never feeds into the other.
"""

from dataclasses import dataclass
from typing import Dict

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

DATE_KEY_COLUMNS: Dict[str, str] = {
    "sls_order_dt": "order_date",
    "sls_ship_dt": "ship_date",
    "sls_due_dt": "due_date",
}


@dataclass
class ReconciliationStats:
    """Counts of corrections applied to a sales batch"""
    total_rows: int
    amounts_recomputed: int
    prices_recomputed: int
    prices_undefined: int
    invalid_dates: int


def sanitize_date_key(column: str) -> pl.Expr:
    """
    Decode a YYYYMMDD integer into a date.

    Zero, negative, non-8-digit values and impossible calendar dates
    (e.g. 20230230) become null.
    """
    raw = pl.col(column).cast(pl.Int64, strict=False)
    text = raw.cast(pl.Utf8)
    return (
        pl.when((raw > 0) & (text.str.len_chars() == 8))
        .then(text.str.to_date("%Y%m%d", strict=False))
        .otherwise(None)
        .cast(pl.Date)
    )


def _raw_terms():
    quantity = pl.col("sls_quantity").cast(pl.Float64)
    price = pl.col("sls_price").cast(pl.Float64)
    sales = pl.col("sls_sales").cast(pl.Float64)
    return quantity, price, sales


def reconciled_amount() -> pl.Expr:
    """
    Line amount from the raw tuple.

    A positive raw amount is kept when it equals quantity * |price| or
    when the quantity is missing. Otherwise the amount is recomputed as
    quantity * |price|, except that a zero or missing price cannot
    override a positive raw amount.
    """
    quantity, price, sales = _raw_terms()
    price_usable = price.is_not_null() & (price != 0)
    amount_usable = sales.is_not_null() & (sales > 0)
    expected = quantity * price.abs()
    return (
        pl.when(amount_usable & (quantity.is_null() | (sales == expected)))
        .then(sales)
        .when(price_usable)
        .then(expected)
        .when(amount_usable)
        .then(sales)
        .otherwise(expected)
    )


def reconciled_price() -> pl.Expr:
    """
    Unit price from the raw tuple.

    Positive prices are kept. Otherwise the price is the reconciled amount
    divided by quantity, which is undefined (null) for a zero quantity.
    """
    quantity, price, sales = _raw_terms()
    safe_quantity = pl.when(quantity != 0).then(quantity)
    amount_usable = sales.is_not_null() & (sales > 0)
    return (
        pl.when(price > 0)
        .then(price)
        .when(price < 0)
        .then(quantity * price.abs() / safe_quantity)
        .when(amount_usable)
        .then(sales / safe_quantity)
        .otherwise(None)
    )


def reconcile_sales(df: pl.DataFrame) -> tuple[pl.DataFrame, ReconciliationStats]:
    """
    Reconcile raw sales lines.

    Args:
        df: Raw sales lines (sls_* columns)

    Returns:
        Frame with order/ship/due dates, quantity, unit_price and
        line_amount replacing the raw encodings, plus correction counts
    """
    quantity, price, sales = _raw_terms()

    reconciled = df.with_columns(
        [sanitize_date_key(raw).alias(clean) for raw, clean in DATE_KEY_COLUMNS.items()]
        + [
            reconciled_amount().alias("line_amount"),
            reconciled_price().alias("unit_price"),
            pl.col("sls_quantity").cast(pl.Int64).alias("quantity"),
        ]
    )

    flags = df.select(
        (sales.is_null() | (sales != reconciled_amount())).fill_null(True).alias("amount_changed"),
        (price.is_null() | (price <= 0)).alias("price_changed"),
        ((price.is_null() | (price <= 0)) & reconciled_price().is_null()).alias("price_undefined"),
        pl.sum_horizontal(
            [
                (pl.col(raw).is_not_null() & sanitize_date_key(raw).is_null()).cast(pl.Int64)
                for raw in DATE_KEY_COLUMNS
            ]
        ).alias("invalid_dates"),
    )

    stats = ReconciliationStats(
        total_rows=df.height,
        amounts_recomputed=int(flags["amount_changed"].sum()),
        prices_recomputed=int(flags["price_changed"].sum()),
        prices_undefined=int(flags["price_undefined"].sum()),
        invalid_dates=int(flags["invalid_dates"].sum()),
    )

    if stats.prices_undefined:
        logger.warning(
            "Unit price undefined for sales lines",
            rows=stats.prices_undefined,
        )

    logger.info(
        "Sales lines reconciled",
        rows=stats.total_rows,
        amounts_recomputed=stats.amounts_recomputed,
        prices_recomputed=stats.prices_recomputed,
        invalid_dates=stats.invalid_dates,
    )

    return reconciled.drop(list(DATE_KEY_COLUMNS) + ["sls_sales", "sls_price", "sls_quantity"]), stats
