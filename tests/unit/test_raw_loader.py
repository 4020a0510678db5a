"""
Unit Tests - Raw Extract Loading
"""
import pytest
import polars as pl

from warehouse.exceptions import RawStoreError
from warehouse.ingestion import RAW_TABLES, RawLoader, conform_to_schema
from warehouse.ingestion.raw_loader import LoadStatus
from warehouse.ingestion.schemas import CRM_CUST_INFO, CRM_SALES_DETAILS, ERP_LOC_A101


class TestConformToSchema:
    """Tests for conform_to_schema"""

    def test_headers_lower_cased_and_cast(self):
        df = pl.DataFrame({"CID": ["AW-1"], "CNTRY": [" DE"], "EXTRA": ["x"]})

        result = conform_to_schema(df, ERP_LOC_A101)

        assert result.columns == ["cid", "cntry"]
        # Whitespace is kept in the raw layer
        assert result["cntry"].to_list() == [" DE"]

    def test_missing_column_raises(self):
        df = pl.DataFrame({"cid": ["AW-1"]})

        with pytest.raises(RawStoreError) as exc_info:
            conform_to_schema(df, ERP_LOC_A101)

        assert exc_info.value.details["missing_columns"] == ["cntry"]

    @pytest.mark.parametrize("column,value", [("sls_quantity", "3.0"), ("sls_cust_id", "2x")])
    def test_unparseable_numbers_raise(self, column, value):
        df = pl.DataFrame({name: ["1"] for name in CRM_SALES_DETAILS.schema}).with_columns(
            pl.lit(value).alias(column)
        )

        with pytest.raises(RawStoreError) as exc_info:
            conform_to_schema(df, CRM_SALES_DETAILS)

        assert exc_info.value.details["table"] == "crm_sales_details"
        assert exc_info.value.details["column"] == column
        assert exc_info.value.details["sample"] == value

    def test_unparseable_sales_dates_become_null(self):
        df = pl.DataFrame({name: ["1"] for name in CRM_SALES_DETAILS.schema}).with_columns(
            pl.lit("n/a").alias("sls_order_dt")
        )

        result = conform_to_schema(df, CRM_SALES_DETAILS)

        assert result["sls_order_dt"].to_list() == [None]
        assert result.schema["sls_sales"] == pl.Float64

    def test_nulls_are_not_malformed(self):
        df = pl.DataFrame(
            {"cst_id": ["1", None], **{name: ["x", "y"] for name in CRM_CUST_INFO.schema if name != "cst_id"}}
        )

        result = conform_to_schema(df, CRM_CUST_INFO)

        assert result["cst_id"].to_list() == [1, None]


class TestRawLoader:
    """Tests for RawLoader"""

    def test_load_all_tables(self, raw_dir, raw_store):
        raw, results = RawLoader(raw_path=raw_dir).load()

        assert len(results) == len(RAW_TABLES)
        assert all(r.status == LoadStatus.COMPLETED for r in results)
        assert raw.row_counts() == raw_store.row_counts()

    def test_values_round_trip(self, raw_dir, raw_store):
        raw, _ = RawLoader(raw_path=raw_dir).load()

        assert raw.crm_cust_info["cst_key"].to_list() == raw_store.crm_cust_info["cst_key"].to_list()
        assert raw.crm_cust_info["cst_id"].to_list() == [1, 1, 2, None, 3]
        assert raw.crm_sales_details.schema == raw_store.crm_sales_details.schema

    def test_default_path_from_settings(self, raw_dir):
        # DATA_RAW_PATH points at the same temp directory
        raw, _ = RawLoader().load()

        assert raw.erp_px_cat_g1v2.height == 3

    def test_file_hash_recorded(self, raw_dir):
        _, results = RawLoader(raw_path=raw_dir).load()

        assert all(len(r.file_hash) == 32 for r in results)

    def test_missing_extract_raises(self, raw_dir):
        (raw_dir / "source_erp" / "LOC_A101.csv").unlink()

        with pytest.raises(RawStoreError) as exc_info:
            RawLoader(raw_path=raw_dir).load()

        assert exc_info.value.details["table"] == "erp_loc_a101"

    def test_malformed_id_fails_load(self, raw_dir):
        path = raw_dir / "source_crm" / "cust_info.csv"
        lines = path.read_text().splitlines()
        lines[3] = "2x" + lines[3][lines[3].index(","):]
        path.write_text("\n".join(lines) + "\n")

        with pytest.raises(RawStoreError) as exc_info:
            RawLoader(raw_path=raw_dir).load()

        assert exc_info.value.details["table"] == "crm_cust_info"
        assert exc_info.value.details["column"] == "cst_id"
        assert exc_info.value.details["sample"] == "2x"

    def test_upper_case_headers(self, tmp_path):
        loader = RawLoader(raw_path=tmp_path)
        path = loader.path_for(ERP_LOC_A101)
        path.parent.mkdir(parents=True)
        path.write_text("CID,CNTRY\nAW-00011000,Australia\nAW-00011001,\n")

        df, result = loader.load_table(ERP_LOC_A101)

        assert df["cid"].to_list() == ["AW-00011000", "AW-00011001"]
        assert df["cntry"].to_list() == ["Australia", None]
        assert result.rows_loaded == 2
