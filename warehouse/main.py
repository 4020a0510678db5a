"""
Batch Load Entry Point

Loads the raw CRM/ERP extracts, rebuilds the silver and gold layers,
publishes them and runs the quality gate.

Usage:
    warehouse-load
    warehouse-load --raw-dir data/raw --output-dir data/warehouse
    warehouse-load --skip-quality --log-level DEBUG
"""

import argparse
import sys
from typing import List, Optional

import structlog

from warehouse.config import get_settings
from warehouse.config.logging import configure_logging
from warehouse.exceptions import WarehouseError
from warehouse.ingestion import RawLoader
from warehouse.quality import QualityGate
from warehouse.storage import LayerStore
from warehouse.transformation import WarehouseTransformer

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRM/ERP warehouse full-refresh load")
    parser.add_argument(
        "--raw-dir",
        default=None,
        help="Directory holding source_crm/ and source_erp/ (default: DATA_RAW_PATH)"
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory the silver and gold layers are published to (default: DATA_OUTPUT_PATH)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (DEBUG, INFO, WARNING, ERROR)"
    )
    parser.add_argument(
        "--skip-quality",
        action="store_true",
        help="Do not run the quality gate after publishing"
    )
    return parser


def run(
    raw_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    skip_quality: bool = False,
) -> int:
    """Run one full load and return the process exit code"""
    settings = get_settings()

    try:
        raw, _ = RawLoader(raw_path=raw_dir).load()
    except WarehouseError as e:
        logger.error("Raw load failed", error=e.message, details=e.details)
        return 1

    transformer = WarehouseTransformer()
    report = transformer.run(raw)
    if not report.succeeded:
        logger.error("Load aborted, nothing published", **report.summary())
        return 1

    paths = transformer.publish(report, LayerStore(output_dir))
    logger.info("Load published", run_id=report.run_id, paths=paths)

    if skip_quality or not settings.pipeline.run_quality_gate:
        return 0

    quality = QualityGate(as_of=settings.pipeline.resolve_as_of()).run(report.silver, report.gold)
    if not quality.passed and settings.pipeline.fail_on_quality_errors:
        logger.error("Quality gate failed", failed_suites=quality.failed_suites)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return run(
        raw_dir=args.raw_dir,
        output_dir=args.output_dir,
        skip_quality=args.skip_quality,
    )


if __name__ == "__main__":
    sys.exit(main())
