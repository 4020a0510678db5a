"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from warehouse.config import Settings, get_settings
from warehouse.ingestion import RawStore
from warehouse.ingestion.schemas import (
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_CUST_AZ12,
    ERP_LOC_A101,
    ERP_PX_CAT_G1V2,
    RAW_TABLES,
)

AS_OF = date(2024, 1, 1)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
    )


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the lake at a temp dir and reset the settings cache per test"""
    monkeypatch.setenv("DATA_RAW_PATH", str(tmp_path / "raw"))
    monkeypatch.setenv("DATA_OUTPUT_PATH", str(tmp_path / "warehouse"))
    monkeypatch.setenv("PIPELINE_AS_OF_DATE", AS_OF.isoformat())
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def raw_customers() -> pl.DataFrame:
    """CRM customer rows: a re-extracted profile, a null id, messy codes"""
    return pl.DataFrame(
        {
            "cst_id": [1, 1, 2, None, 3],
            "cst_key": ["A1", "A1", " A2 ", "A9", "A3"],
            "cst_firstname": ["Jon ", " Jon", "Ana", "Ghost", None],
            "cst_lastname": ["Yang", "Yang", " Diaz ", "Row", "Lee"],
            "cst_marital_status": ["S", "m", None, "M", "X"],
            "cst_gndr": ["M", " m ", "F", "F", None],
            "cst_create_date": ["2023-01-01", "2023-06-01", "2023-02-10", "2023-03-01", None],
        },
        schema=CRM_CUST_INFO.schema,
    )


@pytest.fixture
def raw_products() -> pl.DataFrame:
    """CRM product versions: P1 has two versions, one row lacks a key"""
    return pl.DataFrame(
        {
            "prd_id": [210, 211, 212, 213],
            "prd_key": ["CO-RF-FR-R92B-58", "CO-RF-FR-R92B-58", "BI-RB-BK-R93R-62", None],
            "prd_nm": [" HL Road Frame ", "HL Road Frame", "Road-150 Red", "Lost"],
            "prd_cost": [12.0, None, 2171.29, 5.0],
            "prd_line": ["R ", "r", "S", "M"],
            "prd_start_dt": ["2021-01-01", "2022-01-01", "2021-07-01", "2021-01-01"],
            "prd_end_dt": ["2020-12-31", None, None, None],
        },
        schema=CRM_PRD_INFO.schema,
    )


@pytest.fixture
def raw_sales() -> pl.DataFrame:
    """CRM sales lines covering each reconciliation case"""
    return pl.DataFrame(
        {
            "sls_ord_num": ["SO1", " SO2", "SO3", "SO4", None, "SO5"],
            "sls_prd_key": ["FR-R92B-58", "BK-R93R-62", "FR-R92B-58", "BK-R93R-62", "X", "ZZ-MISSING"],
            "sls_cust_id": [1, 2, 1, 99, 1, 2],
            "sls_order_dt": [20220105, 0, 2022011, 20220230, 20220101, 20220110],
            "sls_ship_dt": [20220112, 20220112, 20220112, 20220112, 20220112, 20220117],
            "sls_due_dt": [20220117, 20220117, 20220117, 20220117, 20220117, 20220122],
            "sls_sales": [30.0, 50.0, 30.0, None, 1.0, 20.0],
            "sls_quantity": [3, 2, 3, 0, 1, 2],
            "sls_price": [0.0, -25.0, 10.0, None, 1.0, 10.0],
        },
        schema=CRM_SALES_DETAILS.schema,
    )


@pytest.fixture
def raw_demographics() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "cid": ["NASA1", "A2", "NASA3", None],
            "bdate": ["1980-04-02", "2050-01-01", "1975-09-30", "1990-01-01"],
            "gen": ["Male", "Female", " f ", "M"],
        },
        schema=ERP_CUST_AZ12.schema,
    )


@pytest.fixture
def raw_locations() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "cid": ["A-1", "A-2", "A-7"],
            "cntry": [" DE", "USA", "Australia "],
        },
        schema=ERP_LOC_A101.schema,
    )


@pytest.fixture
def raw_categories() -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": ["CO_RF", "BI_RB", "AC_HE"],
            "cat": ["Components", "Bikes ", "Accessories"],
            "subcat": ["Road Frames", "Road Bikes", "Helmets"],
            "maintenance": ["Yes", "Yes", "No"],
        },
        schema=ERP_PX_CAT_G1V2.schema,
    )


@pytest.fixture
def raw_store(
    raw_customers,
    raw_products,
    raw_sales,
    raw_demographics,
    raw_locations,
    raw_categories,
) -> RawStore:
    return RawStore(
        crm_cust_info=raw_customers,
        crm_prd_info=raw_products,
        crm_sales_details=raw_sales,
        erp_cust_az12=raw_demographics,
        erp_loc_a101=raw_locations,
        erp_px_cat_g1v2=raw_categories,
    )


@pytest.fixture
def raw_dir(tmp_path, raw_store):
    """The raw store written out in the on-disk extract layout"""
    root = tmp_path / "raw"
    tables = raw_store.tables()
    for spec in RAW_TABLES:
        directory = root / f"source_{spec.source}"
        directory.mkdir(parents=True, exist_ok=True)
        tables[spec.name].write_csv(directory / spec.file_name)
    return root
