"""
Quality Gate

Runs every validation suite over a freshly built silver and gold layer and
collects the results into one report.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from warehouse.transformation.transformers import GoldLayer, SilverLayer
from .validators import (
    ValidationResult,
    ValidationStatus,
    create_category_validator,
    create_customer_dimension_validator,
    create_customer_profile_validator,
    create_demographic_validator,
    create_location_validator,
    create_product_dimension_validator,
    create_product_version_validator,
    create_sales_fact_validator,
    create_sales_line_validator,
)

logger = structlog.get_logger(__name__)


@dataclass
class QualityReport:
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failed_suites

    @property
    def failed_suites(self) -> List[str]:
        return [r.suite for r in self.results if r.status == ValidationStatus.FAILED]

    def result_for(self, suite: str) -> Optional[ValidationResult]:
        for result in self.results:
            if result.suite == suite:
                return result
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "failed_suites": self.failed_suites,
            "suites": {
                r.suite: {
                    "status": r.status.value,
                    "passed_checks": r.passed_checks,
                    "failed_checks": r.failed_checks,
                    "warnings": r.warning_count,
                    "failures": [c.name for c in r.failures()],
                }
                for r in self.results
            },
        }


class QualityGate:
    """
    Post-load checks over both layers.

    Example:
        report = QualityGate().run(batch.silver, batch.gold)
        if not report.passed:
            ...
    """

    def __init__(self, as_of: Optional[date] = None):
        self.as_of = as_of

    def run(self, silver: SilverLayer, gold: GoldLayer) -> QualityReport:
        suites = [
            (create_customer_profile_validator(), silver.customer_profiles),
            (create_product_version_validator(), silver.product_versions),
            (create_sales_line_validator(), silver.sales_lines),
            (create_demographic_validator(as_of=self.as_of), silver.customer_demographics),
            (create_location_validator(silver.customer_profiles), silver.customer_locations),
            (create_category_validator(), silver.product_categories),
            (create_customer_dimension_validator(), gold.dim_customers),
            (create_product_dimension_validator(), gold.dim_products),
            (create_sales_fact_validator(gold.dim_customers, gold.dim_products), gold.fact_sales),
        ]

        report = QualityReport(results=[validator.validate(df) for validator, df in suites])

        if report.passed:
            logger.info("Quality gate passed", suites=len(report.results))
        else:
            logger.warning("Quality gate failed", failed_suites=report.failed_suites)
        return report
