"""
Prefect Workflow Orchestration - Warehouse Batch Load

Scheduled full-refresh of the CRM/ERP warehouse:
- Load the raw extracts
- Rebuild silver and gold in memory
- Publish both layers
- Run the quality gate

A failed stage aborts the flow before anything is published. Tasks are not
retried: every run rebuilds from the raw extracts, so a rerun is the retry.
"""

from typing import Optional

from prefect import flow, task, get_run_logger

from warehouse.config import get_settings
from warehouse.ingestion import RawLoader, RawStore
from warehouse.quality import QualityGate
from warehouse.storage import LayerStore
from warehouse.transformation import BatchReport, WarehouseTransformer

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="load_raw_extracts",
    description="Load the six CRM/ERP extracts into the raw store",
)
def load_raw_extracts(raw_dir: Optional[str] = None) -> RawStore:
    logger = get_run_logger()

    raw, results = RawLoader(raw_path=raw_dir).load()

    logger.info(
        f"Raw load complete: {len(results)} tables, "
        f"{sum(r.rows_loaded for r in results)} rows"
    )
    return raw


@task(
    name="transform_layers",
    description="Build the silver and gold layers",
)
def transform_layers(raw: RawStore) -> BatchReport:
    logger = get_run_logger()

    report = WarehouseTransformer().run(raw)
    if not report.succeeded:
        raise report.failure

    logger.info(
        f"Transformation complete: {len(report.stages)} stages "
        f"in {report.duration_seconds:.2f}s"
    )
    return report


@task(
    name="publish_layers",
    description="Replace the published silver and gold layers",
)
def publish_layers(report: BatchReport, output_dir: Optional[str] = None) -> dict:
    logger = get_run_logger()

    paths = WarehouseTransformer().publish(report, LayerStore(output_dir))

    logger.info(f"Published layers: {paths}")
    return paths


@task(
    name="run_quality_gate",
    description="Run data quality suites over both layers",
)
def run_quality_gate(report: BatchReport) -> dict:
    logger = get_run_logger()

    quality = QualityGate(as_of=settings.pipeline.resolve_as_of()).run(report.silver, report.gold)

    if quality.passed:
        logger.info(f"Quality gate passed: {len(quality.results)} suites")
    else:
        logger.warning(f"Quality gate failed: {quality.failed_suites}")

    return quality.summary()


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="warehouse_batch_load",
    description="Full-refresh batch load of the CRM/ERP warehouse",
)
def warehouse_batch_load(
    raw_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    run_quality: Optional[bool] = None,
) -> dict:
    """
    Warehouse batch load.

    Steps:
    1. Load raw extracts
    2. Transform to silver and gold
    3. Publish both layers
    4. Run the quality gate
    """
    logger = get_run_logger()

    if run_quality is None:
        run_quality = settings.pipeline.run_quality_gate

    raw = load_raw_extracts(raw_dir)
    report = transform_layers(raw)
    paths = publish_layers(report, output_dir)

    results = {**report.summary(), "paths": paths}

    if run_quality:
        quality = run_quality_gate(report)
        results["quality"] = quality
        if not quality["passed"] and settings.pipeline.fail_on_quality_errors:
            raise RuntimeError(f"Quality gate failed: {quality['failed_suites']}")

    logger.info(f"Warehouse batch load finished: run {report.run_id}")
    return results


if __name__ == "__main__":
    warehouse_batch_load()
