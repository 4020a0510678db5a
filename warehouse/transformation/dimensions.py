"""
Dimensional Assembler

Builds the gold star schema from silver entities:
- dim_customers: CRM profiles enriched with ERP demographics and location
- dim_products: currently active product versions with their category
- fact_sales: sales lines resolved to dimension surrogate keys

Surrogate keys are dense (1..N) and assigned from a total order, so the
same silver input always yields the same keys. Fact rows with no matching
dimension keep a null surrogate key instead of being dropped.
"""

import polars as pl
import structlog

from warehouse.exceptions import AssemblyError
from .codes import UNKNOWN

logger = structlog.get_logger(__name__)

_ROW_NR = "_row_nr"

CUSTOMER_DIMENSION_COLUMNS = [
    "customer_sk",
    "customer_id",
    "customer_number",
    "first_name",
    "last_name",
    "country",
    "marital_status",
    "gender",
    "birth_date",
    "created_at",
]

PRODUCT_DIMENSION_COLUMNS = [
    "product_sk",
    "product_id",
    "product_number",
    "product_name",
    "category_id",
    "category",
    "subcategory",
    "maintenance",
    "cost",
    "product_line",
    "valid_from",
]

SALES_FACT_COLUMNS = [
    "order_number",
    "product_sk",
    "customer_sk",
    "order_date",
    "ship_date",
    "due_date",
    "line_amount",
    "quantity",
    "unit_price",
]


def assign_surrogate_key(df: pl.DataFrame, name: str, order_by: list) -> pl.DataFrame:
    """Sort by ``order_by`` and number the rows 1..N into ``name``"""
    return (
        df.sort(order_by, maintain_order=True)
        .with_row_index(name, offset=1)
        .with_columns(pl.col(name).cast(pl.Int64))
    )


def _left_join(left: pl.DataFrame, right: pl.DataFrame, on: str, what: str) -> pl.DataFrame:
    """Left join that refuses to fan out rows of ``left``"""
    try:
        return left.join(right, on=on, how="left", validate="m:1")
    except pl.exceptions.PolarsError as e:
        dupes = (
            right.group_by(on).agg(pl.len().alias("n")).filter(pl.col("n") > 1)[on].to_list()
        )
        raise AssemblyError(
            f"{what} has duplicate {on} values: {dupes[:5]}",
            details={"join_key": on, "duplicates": dupes},
        ) from e


class DimensionalAssembler:
    """
    Assembles dimensions and the sales fact from silver entities.

    Example:
        assembler = DimensionalAssembler()
        customers = assembler.build_customer_dimension(profiles, demographics, locations)
        products = assembler.build_product_dimension(versions, categories)
        sales = assembler.build_sales_fact(lines, customers, products)
    """

    def build_customer_dimension(
        self,
        profiles: pl.DataFrame,
        demographics: pl.DataFrame,
        locations: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        One row per customer_id.

        Gender comes from the CRM profile unless it is UNKNOWN, then from
        the ERP demographics, then UNKNOWN. Country comes only from the
        location record.
        """
        demo = demographics.select(
            "customer_key",
            "birth_date",
            pl.col("gender").alias("_erp_gender"),
        )
        loc = locations.select("customer_key", "country")

        df = _left_join(profiles, demo, on="customer_key", what="Customer demographics")
        df = _left_join(df, loc, on="customer_key", what="Customer locations")

        df = df.with_columns(
            pl.when(pl.col("gender").fill_null(UNKNOWN) != UNKNOWN)
            .then(pl.col("gender"))
            .otherwise(pl.col("_erp_gender").fill_null(UNKNOWN))
            .alias("gender"),
            pl.col("country").fill_null(UNKNOWN),
        ).rename({"customer_key": "customer_number"})

        df = assign_surrogate_key(df, "customer_sk", ["customer_id"])
        df = df.select(CUSTOMER_DIMENSION_COLUMNS)

        logger.info("Customer dimension built", rows=df.height)
        return df

    def build_product_dimension(
        self,
        versions: pl.DataFrame,
        categories: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        One row per active product key (valid_to is null).

        Surrogate keys follow (valid_from, product_key).
        """
        active = versions.filter(pl.col("valid_to").is_null())

        collisions = (
            active.group_by(["valid_from", "product_key"])
            .agg(pl.len().alias("n"))
            .filter(pl.col("n") > 1)
        )
        if collisions.height:
            keys = collisions["product_key"].to_list()
            raise AssemblyError(
                f"Active product versions are not unique on (valid_from, product_key): {keys[:5]}",
                details={"product_keys": keys},
            )

        df = _left_join(active, categories, on="category_id", what="Product categories")
        df = df.rename({"product_key": "product_number"})
        df = assign_surrogate_key(df, "product_sk", ["valid_from", "product_number"])
        df = df.select(PRODUCT_DIMENSION_COLUMNS)

        logger.info(
            "Product dimension built",
            rows=df.height,
            historical_versions=versions.height - active.height,
        )
        return df

    def build_sales_fact(
        self,
        sales: pl.DataFrame,
        customer_dim: pl.DataFrame,
        product_dim: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        One fact row per silver sales line, in input order.

        Lines whose product or customer is not in a dimension keep a null
        surrogate key so the quality gate can report them.
        """
        products = product_dim.select(
            pl.col("product_number").alias("product_key"),
            "product_sk",
        )
        customers = customer_dim.select("customer_id", "customer_sk")

        df = sales.with_row_index(_ROW_NR)
        df = _left_join(df, products, on="product_key", what="Product dimension")
        df = _left_join(df, customers, on="customer_id", what="Customer dimension")
        df = df.sort(_ROW_NR).select(SALES_FACT_COLUMNS)

        if df.height != sales.height:
            raise AssemblyError(
                f"Sales fact has {df.height} rows for {sales.height} sales lines",
                details={"fact_rows": df.height, "sales_lines": sales.height},
            )

        orphans = df.filter(pl.col("product_sk").is_null() | pl.col("customer_sk").is_null()).height
        if orphans:
            logger.warning("Sales lines without matching dimension", rows=orphans)

        logger.info("Sales fact built", rows=df.height)
        return df
