"""
Raw Extract Schemas

Column layout of the six bronze tables as delivered by the CRM and ERP
exports. Header names are lower-cased on read.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import polars as pl


@dataclass(frozen=True)
class RawTableSpec:
    """Where a raw table comes from and how its columns are typed"""
    name: str
    source: str  # "crm" or "erp"
    file_name: str
    schema: Dict[str, pl.DataType]
    # Columns whose unparseable values are nulled downstream instead of rejected
    lenient_columns: Tuple[str, ...] = ()


CRM_CUST_INFO = RawTableSpec(
    name="crm_cust_info",
    source="crm",
    file_name="cust_info.csv",
    schema={
        "cst_id": pl.Int64,
        "cst_key": pl.Utf8,
        "cst_firstname": pl.Utf8,
        "cst_lastname": pl.Utf8,
        "cst_marital_status": pl.Utf8,
        "cst_gndr": pl.Utf8,
        "cst_create_date": pl.Utf8,
    },
)

CRM_PRD_INFO = RawTableSpec(
    name="crm_prd_info",
    source="crm",
    file_name="prd_info.csv",
    schema={
        "prd_id": pl.Int64,
        "prd_key": pl.Utf8,
        "prd_nm": pl.Utf8,
        "prd_cost": pl.Float64,
        "prd_line": pl.Utf8,
        "prd_start_dt": pl.Utf8,
        "prd_end_dt": pl.Utf8,
    },
)

CRM_SALES_DETAILS = RawTableSpec(
    name="crm_sales_details",
    source="crm",
    file_name="sales_details.csv",
    schema={
        "sls_ord_num": pl.Utf8,
        "sls_prd_key": pl.Utf8,
        "sls_cust_id": pl.Int64,
        "sls_order_dt": pl.Int64,
        "sls_ship_dt": pl.Int64,
        "sls_due_dt": pl.Int64,
        "sls_sales": pl.Float64,
        "sls_quantity": pl.Int64,
        "sls_price": pl.Float64,
    },
    lenient_columns=("sls_order_dt", "sls_ship_dt", "sls_due_dt"),
)

ERP_CUST_AZ12 = RawTableSpec(
    name="erp_cust_az12",
    source="erp",
    file_name="CUST_AZ12.csv",
    schema={
        "cid": pl.Utf8,
        "bdate": pl.Utf8,
        "gen": pl.Utf8,
    },
)

ERP_LOC_A101 = RawTableSpec(
    name="erp_loc_a101",
    source="erp",
    file_name="LOC_A101.csv",
    schema={
        "cid": pl.Utf8,
        "cntry": pl.Utf8,
    },
)

ERP_PX_CAT_G1V2 = RawTableSpec(
    name="erp_px_cat_g1v2",
    source="erp",
    file_name="PX_CAT_G1V2.csv",
    schema={
        "id": pl.Utf8,
        "cat": pl.Utf8,
        "subcat": pl.Utf8,
        "maintenance": pl.Utf8,
    },
)

RAW_TABLES = (
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_CUST_AZ12,
    ERP_LOC_A101,
    ERP_PX_CAT_G1V2,
)


def empty_frame(spec: RawTableSpec) -> pl.DataFrame:
    """Zero-row frame with the table's declared schema"""
    return pl.DataFrame(schema=spec.schema)
