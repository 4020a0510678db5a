"""
Data Validation Module

Rule-based quality checks for the silver entities and the gold star
schema, in the spirit of Great Expectations.

Features:
- Null and uniqueness checks (single or composite keys)
- Range, domain and whitespace checks
- Date ordering and arithmetic consistency checks
- Referential integrity checks
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

from warehouse.transformation.codes import Gender, MaritalStatus, ProductLine

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Critical - fails the suite
    WARNING = "warning"  # Non-critical - logged but continues
    INFO = "info"  # Informational only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    suite: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


def _columns(column: Union[str, Sequence[str]]) -> List[str]:
    return [column] if isinstance(column, str) else list(column)


def _missing(df: pl.DataFrame, name: str, columns: List[str], severity: ValidationSeverity) -> Optional[ValidationCheck]:
    absent = [c for c in columns if c not in df.columns]
    if absent:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column(s) {absent} not found",
        )
    return None


class DataValidator:
    """
    Chainable validator for one table.

    Example:
        validator = DataValidator("dim_customers")
        validator.add_not_null_check("customer_id").add_unique_check("customer_id")
        result = validator.validate(df)
    """

    def __init__(self, suite: str = "default", strict_mode: bool = False):
        self.suite = suite
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    def _count_check(
        self,
        name: str,
        columns: List[str],
        violation: Callable[[pl.DataFrame], pl.Expr],
        severity: ValidationSeverity,
        describe: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "DataValidator":
        """Register a check that fails when any row matches ``violation``"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = _missing(df, name, columns, severity)
            if missing:
                return missing

            failed = df.filter(violation(df).fill_null(False)).height
            passed = failed == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"{failed} rows {describe}" if not passed else f"No rows {describe}",
                details={**(details or {}), "violations": failed},
                failed_rows=failed,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        return self._count_check(
            f"not_null_{column}",
            [column],
            lambda df: pl.col(column).is_null(),
            severity,
            f"have null {column}",
        )

    def add_unique_check(
        self,
        column: Union[str, Sequence[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that the (possibly composite) key has no duplicates"""
        columns = _columns(column)
        return self._count_check(
            f"unique_{'_'.join(columns)}",
            columns,
            lambda df: pl.struct(columns).is_duplicated(),
            severity,
            f"share a duplicated {'/'.join(columns)}",
        )

    def add_range_check(
        self,
        column: str,
        min_value: Optional[Any] = None,
        max_value: Optional[Any] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range (nulls are ignored)"""
        def violation(df: pl.DataFrame) -> pl.Expr:
            expr = pl.lit(False)
            if min_value is not None:
                expr = expr | (pl.col(column) < min_value)
            if max_value is not None:
                expr = expr | (pl.col(column) > max_value)
            return expr

        return self._count_check(
            f"range_{column}",
            [column],
            violation,
            severity,
            f"have {column} outside [{min_value}, {max_value}]",
            details={"min": min_value, "max": max_value},
        )

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for non-negative (or strictly positive) values"""
        if allow_zero:
            return self.add_range_check(column, min_value=0, severity=severity)
        return self._count_check(
            f"positive_{column}",
            [column],
            lambda df: pl.col(column).is_null() | (pl.col(column) <= 0),
            severity,
            f"have null, zero or negative {column}",
        )

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        return self._count_check(
            f"enum_{column}",
            [column],
            lambda df: pl.col(column).is_null() | ~pl.col(column).is_in(allowed_values),
            severity,
            f"have {column} outside {allowed_values}",
            details={"allowed_values": allowed_values},
        )

    def add_trimmed_check(
        self,
        columns: Sequence[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for leading or trailing whitespace"""
        columns = list(columns)

        def violation(df: pl.DataFrame) -> pl.Expr:
            expr = pl.lit(False)
            for col in columns:
                expr = expr | (pl.col(col) != pl.col(col).str.strip_chars())
            return expr

        return self._count_check(
            f"trimmed_{'_'.join(columns)}",
            columns,
            violation,
            severity,
            f"have untrimmed text in {columns}",
        )

    def add_not_blank_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null or empty strings"""
        return self._count_check(
            f"not_blank_{column}",
            [column],
            lambda df: pl.col(column).is_null() | (pl.col(column).str.strip_chars() == ""),
            severity,
            f"have blank {column}",
        )

    def add_date_order_check(
        self,
        earlier: str,
        later: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that ``earlier`` never falls after ``later`` where both are set"""
        return self._count_check(
            f"order_{earlier}_{later}",
            [earlier, later],
            lambda df: pl.col(earlier) > pl.col(later),
            severity,
            f"have {earlier} after {later}",
        )

    def add_product_check(
        self,
        total: str,
        factor_a: str,
        factor_b: str,
        tolerance: float = 0.01,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that ``total == factor_a * factor_b`` (any null counts as a violation)"""
        return self._count_check(
            f"product_{total}",
            [total, factor_a, factor_b],
            lambda df: (
                pl.col(total).is_null()
                | pl.col(factor_a).is_null()
                | pl.col(factor_b).is_null()
                | ((pl.col(total) - pl.col(factor_a) * pl.col(factor_b)).abs() > tolerance)
            ),
            severity,
            f"where {total} != {factor_a} * {factor_b}",
        )

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        allow_null: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that every value of ``column`` exists in the reference table"""
        ref_values = reference_df[reference_column].drop_nulls().unique()

        def violation(df: pl.DataFrame) -> pl.Expr:
            orphan = pl.col(column).is_not_null() & ~pl.col(column).is_in(ref_values.to_list())
            if allow_null:
                return orphan
            return orphan | pl.col(column).is_null()

        return self._count_check(
            f"ref_integrity_{column}",
            [column],
            violation,
            severity,
            f"have {column} missing from {reference_column}",
        )

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom validation check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = bool(check_func(df))
            except Exception as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {str(e)}",
                )
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        logger.info(f"Running {len(self._checks)} validation checks on {len(df)} rows", suite=self.suite)

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    suite=self.suite,
                    message=result.message,
                    severity=result.severity.value,
                )

        completed_at = datetime.utcnow()

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            suite=self.suite,
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )

        logger.info(
            f"Validation complete: {status.value}",
            suite=self.suite,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result


# =============================================================================
# SILVER SUITES
# =============================================================================

def _values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def create_customer_profile_validator() -> DataValidator:
    """Cleansed CRM customer profiles"""
    return (
        DataValidator("customer_profiles")
        .add_not_null_check("customer_id")
        .add_unique_check("customer_id")
        .add_trimmed_check(["customer_key", "first_name", "last_name"])
        .add_enum_check("marital_status", _values(MaritalStatus))
        .add_enum_check("gender", _values(Gender))
    )


def create_product_version_validator() -> DataValidator:
    """Cleansed CRM product versions with derived validity windows"""
    return (
        DataValidator("product_versions")
        .add_not_null_check("product_id")
        .add_unique_check("product_id")
        .add_trimmed_check(["product_name"])
        .add_not_null_check("cost")
        .add_range_check("cost", min_value=0, severity=ValidationSeverity.WARNING)
        .add_enum_check("product_line", _values(ProductLine))
        .add_date_order_check("valid_from", "valid_to")
        .add_custom_check(
            "one_active_version_per_product",
            lambda df: df.filter(pl.col("valid_to").is_null())["product_key"].is_duplicated().sum() == 0
            and df["product_key"].n_unique() == df.filter(pl.col("valid_to").is_null()).height,
            "Some product keys have zero or several open validity windows",
        )
    )


def create_sales_line_validator(
    min_date: date = date(1900, 1, 1),
    max_date: date = date(2050, 1, 1),
) -> DataValidator:
    """Reconciled CRM sales lines"""
    return (
        DataValidator("sales_lines")
        .add_trimmed_check(["order_number", "product_key"])
        .add_range_check("order_date", min_value=min_date, max_value=max_date)
        .add_date_order_check("order_date", "ship_date")
        .add_date_order_check("order_date", "due_date")
        .add_positive_check("quantity", allow_zero=False)
        .add_positive_check("unit_price", allow_zero=False, severity=ValidationSeverity.WARNING)
        .add_product_check("line_amount", "quantity", "unit_price", severity=ValidationSeverity.WARNING)
    )


def create_demographic_validator(
    as_of: Optional[date] = None,
    min_birth_date: date = date(1924, 1, 1),
) -> DataValidator:
    """Cleansed ERP demographics"""
    return (
        DataValidator("customer_demographics")
        .add_unique_check("customer_key")
        .add_range_check("birth_date", max_value=as_of or date.today())
        .add_range_check("birth_date", min_value=min_birth_date, severity=ValidationSeverity.WARNING)
        .add_enum_check("gender", _values(Gender))
    )


def create_location_validator(profiles: pl.DataFrame) -> DataValidator:
    """Cleansed ERP locations, keyed on CRM customer keys"""
    return (
        DataValidator("customer_locations")
        .add_unique_check("customer_key")
        .add_referential_integrity_check(
            "customer_key", profiles, "customer_key", severity=ValidationSeverity.WARNING
        )
        .add_not_blank_check("country")
        .add_trimmed_check(["country"])
    )


def create_category_validator() -> DataValidator:
    """Cleansed ERP product categories"""
    return (
        DataValidator("product_categories")
        .add_unique_check("category_id")
        .add_trimmed_check(["category", "subcategory", "maintenance"])
        .add_not_blank_check("category", severity=ValidationSeverity.WARNING)
        .add_not_blank_check("subcategory", severity=ValidationSeverity.WARNING)
        .add_not_blank_check("maintenance", severity=ValidationSeverity.WARNING)
    )


# =============================================================================
# GOLD SUITES
# =============================================================================

def create_customer_dimension_validator() -> DataValidator:
    """Customer dimension after joining CRM and ERP sources"""
    return (
        DataValidator("dim_customers")
        .add_not_null_check("customer_sk")
        .add_unique_check("customer_sk")
        .add_unique_check("customer_id")
        .add_enum_check("gender", _values(Gender))
        .add_not_null_check("country")
    )


def create_product_dimension_validator() -> DataValidator:
    """Product dimension restricted to active versions"""
    return (
        DataValidator("dim_products")
        .add_not_null_check("product_sk")
        .add_unique_check("product_sk")
        .add_unique_check("product_number")
        .add_not_null_check("category", severity=ValidationSeverity.WARNING)
    )


def create_sales_fact_validator(
    customer_dim: pl.DataFrame,
    product_dim: pl.DataFrame,
) -> DataValidator:
    """Sales fact foreign keys; an unresolved (null) key counts as an orphan"""
    return (
        DataValidator("fact_sales")
        .add_referential_integrity_check(
            "customer_sk", customer_dim, "customer_sk", allow_null=False
        )
        .add_referential_integrity_check(
            "product_sk", product_dim, "product_sk", allow_null=False
        )
    )
