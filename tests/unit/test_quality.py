"""
Unit Tests - Data Quality
"""
from datetime import date

import pytest
import polars as pl

from warehouse.quality import DataValidator, QualityGate, ValidationSeverity, ValidationStatus
from warehouse.quality.validators import (
    create_customer_dimension_validator,
    create_sales_fact_validator,
    create_sales_line_validator,
)
from warehouse.transformation import WarehouseTransformer


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_pass(self):
        """Test not null check passes"""
        validator = DataValidator()
        validator.add_not_null_check("id")

        df = pl.DataFrame({"id": [1, 2, 3]})
        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1

    def test_not_null_check_fail(self):
        """Test not null check fails"""
        validator = DataValidator()
        validator.add_not_null_check("id")

        df = pl.DataFrame({"id": [1, None, 3]})
        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_composite_unique_check(self):
        validator = DataValidator().add_unique_check(["product_key", "valid_from"])

        df = pl.DataFrame({
            "product_key": ["P1", "P1", "P2"],
            "valid_from": [date(2021, 1, 1), date(2022, 1, 1), date(2021, 1, 1)],
        })

        assert validator.validate(df).status == ValidationStatus.PASSED

        dupes = pl.concat([df, df.head(1)])
        result = validator.validate(dupes)
        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 2

    def test_range_check(self):
        """Test range check"""
        validator = DataValidator()
        validator.add_range_check("cost", min_value=0, max_value=100)

        df = pl.DataFrame({"cost": [50.0, 150.0, -10.0, None]})
        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 2

    def test_enum_check(self):
        """Test enum check"""
        validator = DataValidator()
        validator.add_enum_check("gender", ["MALE", "FEMALE", "UNKNOWN"])

        df = pl.DataFrame({"gender": ["MALE", "F", None]})
        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 2

    def test_trimmed_check(self):
        validator = DataValidator().add_trimmed_check(["name"])

        df = pl.DataFrame({"name": ["ok", " padded", None]})
        result = validator.validate(df)

        assert result.checks[0].failed_rows == 1

    def test_date_order_check(self):
        validator = DataValidator().add_date_order_check("order_date", "ship_date")

        df = pl.DataFrame({
            "order_date": [date(2022, 1, 5), date(2022, 1, 9), None],
            "ship_date": [date(2022, 1, 8), date(2022, 1, 8), date(2022, 1, 8)],
        })
        result = validator.validate(df)

        assert result.checks[0].failed_rows == 1

    def test_referential_integrity_check(self):
        validator = DataValidator().add_referential_integrity_check(
            "customer_sk", pl.DataFrame({"customer_sk": [1, 2]}), "customer_sk", allow_null=False
        )

        df = pl.DataFrame({"customer_sk": [1, 3, None]})
        result = validator.validate(df)

        assert result.checks[0].failed_rows == 2

    def test_missing_column(self):
        validator = DataValidator().add_not_null_check("absent")

        result = validator.validate(pl.DataFrame({"id": [1]}))

        assert result.status == ValidationStatus.FAILED
        assert "not found" in result.checks[0].message

    def test_warning_is_partial(self):
        """Warnings alone do not fail the suite"""
        validator = DataValidator()
        validator.add_range_check("cost", min_value=0, severity=ValidationSeverity.WARNING)

        result = validator.validate(pl.DataFrame({"cost": [-1.0]}))

        assert result.status == ValidationStatus.PARTIAL
        assert result.warning_count == 1

    def test_strict_mode_fails_on_warning(self):
        validator = DataValidator(strict_mode=True)
        validator.add_range_check("cost", min_value=0, severity=ValidationSeverity.WARNING)

        result = validator.validate(pl.DataFrame({"cost": [-1.0]}))

        assert result.status == ValidationStatus.FAILED

    def test_custom_check_error_is_reported(self):
        validator = DataValidator().add_custom_check(
            "broken", lambda df: df["missing"].sum() > 0, "never"
        )

        result = validator.validate(pl.DataFrame({"id": [1]}))

        assert not result.checks[0].passed
        assert "error" in result.checks[0].message

    def test_success_rate(self):
        validator = DataValidator().add_not_null_check("a").add_not_null_check("b")

        result = validator.validate(pl.DataFrame({"a": [1], "b": [None]}))

        assert result.success_rate == pytest.approx(50.0)


class TestSuites:
    """Tests for the pre-built suites"""

    def test_sales_line_amount_check(self):
        df = pl.DataFrame({
            "order_number": ["SO1", "SO2"],
            "product_key": ["P1", "P1"],
            "order_date": [date(2022, 1, 1), date(2022, 1, 1)],
            "ship_date": [date(2022, 1, 8), date(2022, 1, 8)],
            "due_date": [date(2022, 1, 13), date(2022, 1, 13)],
            "quantity": [2, 1],
            "unit_price": [10.0, 5.0],
            "line_amount": [20.0, 7.0],
        })

        result = create_sales_line_validator().validate(df)

        failures = {c.name for c in result.failures()}
        assert failures == {"product_line_amount"}
        assert result.status == ValidationStatus.PARTIAL

    def test_duplicate_customer_dimension_rows(self):
        df = pl.DataFrame({
            "customer_sk": [1, 2],
            "customer_id": [7, 7],
            "gender": ["MALE", "MALE"],
            "country": ["Germany", "Germany"],
        })

        result = create_customer_dimension_validator().validate(df)

        assert result.status == ValidationStatus.FAILED
        assert {c.name for c in result.failures()} == {"unique_customer_id"}

    def test_null_fact_keys_count_as_orphans(self):
        customers = pl.DataFrame({"customer_sk": [1]})
        products = pl.DataFrame({"product_sk": [1]})
        fact = pl.DataFrame({"customer_sk": [1, None], "product_sk": [1, 1]})

        result = create_sales_fact_validator(customers, products).validate(fact)

        assert {c.name for c in result.failures()} == {"ref_integrity_customer_sk"}


class TestQualityGate:
    """Tests for QualityGate"""

    def test_gate_over_batch(self, raw_store, as_of):
        report = WarehouseTransformer(as_of=as_of).run(raw_store)

        quality = QualityGate(as_of=as_of).run(report.silver, report.gold)

        assert len(quality.results) == 9
        assert not quality.passed
        # Zero-quantity line and the two orphan fact rows
        assert quality.failed_suites == ["sales_lines", "fact_sales"]
        assert quality.result_for("dim_customers").status == ValidationStatus.PASSED
        assert quality.result_for("customer_locations").status == ValidationStatus.PARTIAL

    def test_summary(self, raw_store, as_of):
        report = WarehouseTransformer(as_of=as_of).run(raw_store)

        summary = QualityGate(as_of=as_of).run(report.silver, report.gold).summary()

        assert summary["passed"] is False
        assert "ref_integrity_customer_sk" in summary["suites"]["fact_sales"]["failures"]
