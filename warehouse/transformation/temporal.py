"""
Validity Window Derivation

Closes the validity interval of each versioned record: within a business
key, a version ends the day before the next version starts, and the
latest version stays open (null end date).
"""

from typing import List, Tuple

import polars as pl
import structlog

from warehouse.exceptions import ValidityWindowConflict

logger = structlog.get_logger(__name__)

_ROW_NR = "_row_nr"


def find_start_date_conflicts(
    df: pl.DataFrame,
    key: str = "product_key",
    start: str = "valid_from",
) -> List[Tuple]:
    """Return the (key, start) pairs shared by more than one version."""
    dupes = (
        df.filter(pl.col(start).is_not_null())
        .group_by([key, start])
        .agg(pl.len().alias("versions"))
        .filter(pl.col("versions") > 1)
        .sort([key, start])
    )
    return list(zip(dupes[key].to_list(), dupes[start].to_list()))


def derive_validity_windows(
    df: pl.DataFrame,
    key: str = "product_key",
    start: str = "valid_from",
    end: str = "valid_to",
    strict: bool = True,
) -> pl.DataFrame:
    """
    Derive ``end`` from the next version's ``start`` within each ``key``.

    Versions are ordered by start date, then by input position. Two versions
    of one key sharing a start date raise ValidityWindowConflict in strict
    mode; otherwise the conflict is logged and input order decides.

    Args:
        df: Versioned records with a date-typed ``start`` column
        key: Business key grouping the versions
        start: Version start date column
        end: Column to (re)write with the derived end date
        strict: Raise on identical start dates instead of logging

    Returns:
        A new frame in the original row order with ``end`` filled in
    """
    conflicts = find_start_date_conflicts(df, key=key, start=start)
    if conflicts:
        if strict:
            raise ValidityWindowConflict(conflicts, key=key)
        logger.warning(
            "Versions share a start date; ordering by input position, "
            "earlier rows get a window that ends before it starts",
            key=key,
            conflicts=len(conflicts),
            sample=[str(c) for c in conflicts[:5]],
        )

    if end in df.columns:
        df = df.drop(end)

    return (
        df.with_row_index(_ROW_NR)
        .sort([key, start, _ROW_NR], nulls_last=False)
        .with_columns(
            pl.col(start)
            .shift(-1)
            .over(key)
            .dt.offset_by("-1d")
            .alias(end)
        )
        .sort(_ROW_NR)
        .drop(_ROW_NR)
    )
