"""
Code Lookups

Canonical labels for the abbreviated codes found in the CRM and ERP
extracts. Unrecognized or null codes always resolve to UNKNOWN.
"""

from enum import Enum
from typing import Dict

import polars as pl

UNKNOWN = "UNKNOWN"


class MaritalStatus(str, Enum):
    MARRIED = "MARRIED"
    SINGLE = "SINGLE"
    UNKNOWN = UNKNOWN


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    UNKNOWN = UNKNOWN


class ProductLine(str, Enum):
    MOUNTAIN = "MOUNTAIN"
    ROAD = "ROAD"
    OTHER_SALES = "OTHER_SALES"
    TOURING = "TOURING"
    UNKNOWN = UNKNOWN


# Keys are upper-cased, trimmed raw codes
CRM_MARITAL_STATUS: Dict[str, str] = {
    "M": MaritalStatus.MARRIED.value,
    "S": MaritalStatus.SINGLE.value,
    # Canonical labels map to themselves so re-cleansing is a no-op
    "MARRIED": MaritalStatus.MARRIED.value,
    "SINGLE": MaritalStatus.SINGLE.value,
}

CRM_GENDER: Dict[str, str] = {
    "M": Gender.MALE.value,
    "F": Gender.FEMALE.value,
    "MALE": Gender.MALE.value,
    "FEMALE": Gender.FEMALE.value,
}

ERP_GENDER: Dict[str, str] = {
    "M": Gender.MALE.value,
    "MALE": Gender.MALE.value,
    "F": Gender.FEMALE.value,
    "FEMALE": Gender.FEMALE.value,
}

CRM_PRODUCT_LINE: Dict[str, str] = {
    "M": ProductLine.MOUNTAIN.value,
    "R": ProductLine.ROAD.value,
    "S": ProductLine.OTHER_SALES.value,
    "T": ProductLine.TOURING.value,
}

# Countries not listed here pass through trimmed
ERP_COUNTRY: Dict[str, str] = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}


def normalize_code(column: str, lookup: Dict[str, str]) -> pl.Expr:
    """Map a raw code column through ``lookup``; anything else becomes UNKNOWN."""
    code = pl.col(column).cast(pl.Utf8).str.strip_chars().str.to_uppercase()
    return (
        code.replace_strict(lookup, default=UNKNOWN, return_dtype=pl.Utf8)
        .fill_null(UNKNOWN)
    )


def normalize_country(column: str) -> pl.Expr:
    """Expand country codes, keep other names trimmed, blank or null become UNKNOWN."""
    trimmed = pl.col(column).cast(pl.Utf8).str.strip_chars()
    return (
        pl.when(trimmed.is_null() | (trimmed == ""))
        .then(pl.lit(UNKNOWN))
        .otherwise(
            trimmed.str.to_uppercase().replace_strict(
                ERP_COUNTRY, default=trimmed, return_dtype=pl.Utf8
            )
        )
    ).alias(column)
