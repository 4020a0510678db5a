"""
Warehouse Transformer

Batch orchestrator for the silver and gold layers. Runs every stage exactly
once, in dependency order:

    raw -> cleanse (customers, products, sales, demographics, locations,
    categories) -> validity windows -> dimensions -> sales fact

Each stage reports a StageResult. The first failing stage aborts the run;
the BatchReport then names that stage and its cause and carries no
layers, so nothing is published. Layers are published only from a
successful report.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import polars as pl
import structlog

from warehouse.config import get_settings
from warehouse.exceptions import StageFailure, ValidityWindowConflict, WarehouseError
from warehouse.ingestion import RawStore
from warehouse.storage import LayerStore
from .cleaners import SilverCleaner
from .dimensions import DimensionalAssembler
from .temporal import derive_validity_windows

logger = structlog.get_logger(__name__)


class Layer(str, Enum):
    """Medallion layers produced by the transformer"""
    SILVER = "silver"
    GOLD = "gold"


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class BatchStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one pipeline stage"""
    stage: str
    layer: Layer
    status: StageStatus
    input_rows: int
    output_rows: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def rows_dropped(self) -> int:
        return self.input_rows - self.output_rows


@dataclass(frozen=True)
class SilverLayer:
    """Cleansed entities, one frame per entity type"""
    customer_profiles: pl.DataFrame
    product_versions: pl.DataFrame
    sales_lines: pl.DataFrame
    customer_demographics: pl.DataFrame
    customer_locations: pl.DataFrame
    product_categories: pl.DataFrame

    def tables(self) -> Dict[str, pl.DataFrame]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class GoldLayer:
    """Star schema: two dimensions and the sales fact"""
    dim_customers: pl.DataFrame
    dim_products: pl.DataFrame
    fact_sales: pl.DataFrame

    def tables(self) -> Dict[str, pl.DataFrame]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class BatchReport:
    """Result of one full-refresh batch run"""
    run_id: str
    status: BatchStatus
    started_at: datetime
    completed_at: datetime
    stages: List[StageResult] = field(default_factory=list)
    silver: Optional[SilverLayer] = None
    gold: Optional[GoldLayer] = None
    failure: Optional[StageFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.status == BatchStatus.SUCCESS

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def failed_stage(self) -> Optional[str]:
        return self.failure.stage if self.failure else None

    def summary(self) -> Dict[str, Any]:
        """Plain-dict view for logs and schedulers"""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "failed_stage": self.failed_stage,
            "error": str(self.failure) if self.failure else None,
            "stages": [
                {
                    "stage": s.stage,
                    "layer": s.layer.value,
                    "status": s.status.value,
                    "input_rows": s.input_rows,
                    "output_rows": s.output_rows,
                    "duration_seconds": round(s.duration_seconds, 3),
                    **({"error": s.error} if s.error else {}),
                }
                for s in self.stages
            ],
        }


def _offending_key(error: Exception) -> Optional[Any]:
    if isinstance(error, ValidityWindowConflict):
        return error.conflicts[0][0]
    if isinstance(error, WarehouseError):
        for name in ("duplicates", "product_keys"):
            values = error.details.get(name)
            if values:
                return values[0]
    return None


class WarehouseTransformer:
    """
    Full-refresh orchestrator for the silver and gold layers.

    Example:
        transformer = WarehouseTransformer()
        report = transformer.run(raw_store)
        if report.succeeded:
            transformer.publish(report, LayerStore())
    """

    def __init__(
        self,
        as_of: Optional[date] = None,
        strict_validity_windows: Optional[bool] = None,
    ):
        settings = get_settings()
        if strict_validity_windows is None:
            strict_validity_windows = settings.pipeline.strict_validity_windows
        self.strict_validity_windows = strict_validity_windows
        self.cleaner = SilverCleaner(as_of=as_of or settings.pipeline.resolve_as_of())
        self.assembler = DimensionalAssembler()

    def _run_stage(
        self,
        results: List[StageResult],
        stage: str,
        layer: Layer,
        input_rows: int,
        func: Callable[[], Tuple[pl.DataFrame, Dict[str, Any]]],
    ) -> pl.DataFrame:
        """Run one stage, record its StageResult and wrap any error in StageFailure"""
        started_at = datetime.utcnow()
        logger.info("Stage started", stage=stage, layer=layer.value, input_rows=input_rows)

        try:
            output, details = func()
        except Exception as e:
            completed_at = datetime.utcnow()
            failure = StageFailure(stage, e, key=_offending_key(e))
            results.append(StageResult(
                stage=stage,
                layer=layer,
                status=StageStatus.FAILED,
                input_rows=input_rows,
                output_rows=0,
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=(completed_at - started_at).total_seconds(),
                error=failure.message,
            ))
            logger.error("Stage failed", stage=stage, error=failure.message, key=failure.key)
            raise failure from e

        completed_at = datetime.utcnow()
        result = StageResult(
            stage=stage,
            layer=layer,
            status=StageStatus.SUCCESS,
            input_rows=input_rows,
            output_rows=output.height,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            details=details,
        )
        results.append(result)
        logger.info(
            "Stage completed",
            stage=stage,
            output_rows=result.output_rows,
            rows_dropped=result.rows_dropped,
            duration_seconds=result.duration_seconds,
        )
        return output

    def load_silver(self, raw: RawStore, results: Optional[List[StageResult]] = None) -> SilverLayer:
        """Cleanse every raw table; raises StageFailure on the first failing stage"""
        results = results if results is not None else []
        cleaner = self.cleaner

        def cleanse(method: Callable, frame: pl.DataFrame):
            def run():
                df, stats = method(frame)
                return df, vars(stats)
            return run

        def cleanse_sales():
            df, stats, reconciliation = cleaner.clean_sales(raw.crm_sales_details)
            return df, {**vars(stats), "reconciliation": vars(reconciliation)}

        customers = self._run_stage(
            results, "cleanse_customers", Layer.SILVER, raw.crm_cust_info.height,
            cleanse(cleaner.clean_customers, raw.crm_cust_info),
        )
        products = self._run_stage(
            results, "cleanse_products", Layer.SILVER, raw.crm_prd_info.height,
            cleanse(cleaner.clean_products, raw.crm_prd_info),
        )
        products = self._run_stage(
            results, "derive_product_validity", Layer.SILVER, products.height,
            lambda: (
                derive_validity_windows(products, strict=self.strict_validity_windows),
                {"strict": self.strict_validity_windows},
            ),
        )
        sales = self._run_stage(
            results, "cleanse_sales", Layer.SILVER, raw.crm_sales_details.height,
            cleanse_sales,
        )
        demographics = self._run_stage(
            results, "cleanse_demographics", Layer.SILVER, raw.erp_cust_az12.height,
            cleanse(cleaner.clean_demographics, raw.erp_cust_az12),
        )
        locations = self._run_stage(
            results, "cleanse_locations", Layer.SILVER, raw.erp_loc_a101.height,
            cleanse(cleaner.clean_locations, raw.erp_loc_a101),
        )
        categories = self._run_stage(
            results, "cleanse_categories", Layer.SILVER, raw.erp_px_cat_g1v2.height,
            cleanse(cleaner.clean_categories, raw.erp_px_cat_g1v2),
        )

        return SilverLayer(
            customer_profiles=customers,
            product_versions=products,
            sales_lines=sales,
            customer_demographics=demographics,
            customer_locations=locations,
            product_categories=categories,
        )

    def load_gold(self, silver: SilverLayer, results: Optional[List[StageResult]] = None) -> GoldLayer:
        """Assemble the star schema; raises StageFailure on the first failing stage"""
        results = results if results is not None else []
        assembler = self.assembler

        dim_customers = self._run_stage(
            results, "build_customer_dimension", Layer.GOLD, silver.customer_profiles.height,
            lambda: (
                assembler.build_customer_dimension(
                    silver.customer_profiles,
                    silver.customer_demographics,
                    silver.customer_locations,
                ),
                {},
            ),
        )
        dim_products = self._run_stage(
            results, "build_product_dimension", Layer.GOLD, silver.product_versions.height,
            lambda: (
                assembler.build_product_dimension(silver.product_versions, silver.product_categories),
                {},
            ),
        )

        def build_fact():
            fact = assembler.build_sales_fact(silver.sales_lines, dim_customers, dim_products)
            return fact, {
                "orphan_customers": fact["customer_sk"].null_count(),
                "orphan_products": fact["product_sk"].null_count(),
            }

        fact_sales = self._run_stage(
            results, "build_sales_fact", Layer.GOLD, silver.sales_lines.height, build_fact,
        )

        return GoldLayer(
            dim_customers=dim_customers,
            dim_products=dim_products,
            fact_sales=fact_sales,
        )

    def run(self, raw: RawStore) -> BatchReport:
        """
        Run the full batch.

        Never raises for stage errors: a failure is reported in the returned
        BatchReport together with the stages that completed before it.
        """
        run_id = uuid.uuid4().hex
        started_at = datetime.utcnow()
        results: List[StageResult] = []
        structlog.contextvars.bind_contextvars(run_id=run_id)

        try:
            logger.info("Batch started", raw_rows=raw.row_counts())

            try:
                silver = self.load_silver(raw, results)
                gold = self.load_gold(silver, results)
            except StageFailure as failure:
                report = BatchReport(
                    run_id=run_id,
                    status=BatchStatus.FAILED,
                    started_at=started_at,
                    completed_at=datetime.utcnow(),
                    stages=results,
                    failure=failure,
                )
                logger.error(
                    "Batch failed",
                    failed_stage=failure.stage,
                    error=failure.message,
                    duration_seconds=report.duration_seconds,
                )
                return report

            report = BatchReport(
                run_id=run_id,
                status=BatchStatus.SUCCESS,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                stages=results,
                silver=silver,
                gold=gold,
            )
            logger.info(
                "Batch completed",
                stages=len(results),
                gold_rows={name: df.height for name, df in gold.tables().items()},
                duration_seconds=report.duration_seconds,
            )
            return report
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

    def publish(self, report: BatchReport, store: LayerStore) -> Dict[str, str]:
        """
        Write both layers of a successful run, replacing earlier output.

        Silver and gold are swapped in together; if either fails, both
        keep their previous contents.
        """
        if not report.succeeded:
            raise ValueError(f"Refusing to publish failed run {report.run_id}")
        paths = store.publish_layers({
            Layer.SILVER.value: report.silver.tables(),
            Layer.GOLD.value: report.gold.tables(),
        })
        return {layer: str(path) for layer, path in paths.items()}
