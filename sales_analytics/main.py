"""
Command Line Entry Point

Builds the sales reports from a star schema snapshot.
Usage:
    sales-reports --input-dir data/raw --output-dir data/curated
    sales-reports --as-of 2024-01-01 --format csv --analyses
"""

import argparse
import sys
from datetime import date
from typing import List, Optional

import structlog

from sales_analytics.config import get_settings
from sales_analytics.config.logging import bind_run_context, configure_logging
from sales_analytics.exceptions import InputValidationError, SalesAnalyticsError
from sales_analytics.ingestion import SnapshotLoader
from sales_analytics.transformation import ReportBuilder

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_REJECTED_INPUT = 2


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from e


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="sales-reports",
        description="Build product and customer reports from a sales star schema",
    )
    parser.add_argument(
        "--input-dir",
        default=settings.data_lake.raw_path,
        help="Directory holding fact_sales, dim_products and dim_customers",
    )
    parser.add_argument(
        "--output-dir",
        default=settings.data_lake.curated_path,
        help="Directory receiving the reports",
    )
    parser.add_argument(
        "--format",
        choices=["parquet", "csv"],
        default=settings.data_lake.default_format,
        help="Output file format",
    )
    parser.add_argument(
        "--as-of",
        type=_parse_date,
        default=settings.report.as_of_date,
        help="Reference date for age and recency (default: today)",
    )
    parser.add_argument(
        "--analyses",
        action="store_true",
        help="Also write trend, ranking and segment analyses",
    )
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=settings.report.strict_validation,
        help="Reject input on validation warnings (--no-strict overrides REPORT_STRICT_VALIDATION)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the pipeline and return a process exit code"""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    settings = get_settings()
    bind_run_context(
        app=settings.app_name,
        environment=settings.app_env,
        input_dir=str(args.input_dir),
        as_of=args.as_of.isoformat() if args.as_of else None,
        strict=args.strict,
    )

    try:
        schema = SnapshotLoader(args.input_dir, strict_validation=args.strict).load()
        builder = ReportBuilder(
            as_of=args.as_of,
            output_path=args.output_dir,
            output_format=args.format,
        )
        run = builder.run(schema, include_analyses=args.analyses)
    except InputValidationError as e:
        logger.error("Input rejected", table=e.table, error=str(e))
        return EXIT_REJECTED_INPUT
    except SalesAnalyticsError as e:
        logger.error("Report run failed", error=str(e))
        return EXIT_FAILED

    for path in run.output_paths:
        print(path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
