"""
Report Materializer

Builds the two wide report datasets consumed by BI tooling:
- gold_report_products: one row per sold product
- gold_report_customers: one row per purchasing customer

and writes them, with the optional companion analyses, to the curated zone.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import polars as pl
import structlog

from sales_analytics.config import get_settings
from sales_analytics.ingestion.snapshot_loader import StarSchema
from .aggregators import MetricAggregator, months_between
from .segmentation import (
    age_group,
    cost_range,
    cost_tier,
    count_customers_by_segment,
    count_products_by_cost_range,
    customer_segment,
    product_segment,
)
from .trends import TrendAnalyzer

logger = structlog.get_logger(__name__)

PRODUCT_REPORT = "gold_report_products"
CUSTOMER_REPORT = "gold_report_customers"

PRODUCT_REPORT_COLUMNS = [
    "product_key",
    "product_name",
    "category",
    "subcategory",
    "cost",
    "cost_tier",
    "cost_range",
    "last_sale_date",
    "recency_in_months",
    "product_segment",
    "lifespan",
    "total_orders",
    "total_sales",
    "total_quantity",
    "total_customers",
    "avg_selling_price",
    "avg_order_revenue",
    "avg_monthly_revenue",
]

CUSTOMER_REPORT_COLUMNS = [
    "customer_key",
    "customer_number",
    "customer_name",
    "age",
    "age_group",
    "customer_segment",
    "last_order_date",
    "recency",
    "total_orders",
    "total_sales",
    "total_quantity",
    "total_products",
    "lifespan",
    "avg_order_value",
    "avg_monthly_spend",
]


def cents(column: str) -> pl.Expr:
    """Monetary output column rounded to 2 decimals"""
    return pl.col(column).cast(pl.Float64).round(2)


def per_order(total_col: str = "total_sales", orders_col: str = "total_orders") -> pl.Expr:
    """total / orders rounded to cents, 0 when there are no orders"""
    return (
        pl.when(pl.col(orders_col) == 0)
        .then(0.0)
        .otherwise((pl.col(total_col) / pl.col(orders_col)).round(2))
    )


def per_month(total_col: str = "total_sales", lifespan_col: str = "lifespan") -> pl.Expr:
    """total / lifespan rounded to cents; a zero lifespan yields the total itself"""
    return (
        pl.when(pl.col(lifespan_col) == 0)
        .then(cents(total_col))
        .otherwise((pl.col(total_col) / pl.col(lifespan_col)).round(2))
    )


@dataclass
class ReportResult:
    """Result of materializing one report"""
    report_name: str
    input_rows: int
    output_rows: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    output_path: Optional[str] = None


@dataclass
class ReportRun:
    """All outputs of one pipeline run"""
    as_of: date
    reports: Dict[str, ReportResult] = field(default_factory=dict)
    analyses: Dict[str, str] = field(default_factory=dict)

    @property
    def output_paths(self) -> List[str]:
        paths = [r.output_path for r in self.reports.values() if r.output_path]
        return paths + list(self.analyses.values())


class ReportBuilder:
    """
    Joins per-entity rollups with segment tiers and derived ratios.

    Age and recency are measured against `as_of`, which defaults to the
    configured report date or today.

    Example:
        builder = ReportBuilder(as_of=date(2024, 1, 1))
        products = builder.build_product_report(sales_df, products_df)
    """

    def __init__(
        self,
        as_of: Optional[date] = None,
        output_path: Optional[Union[str, Path]] = None,
        output_format: Optional[str] = None,
        top_n: Optional[int] = None,
    ):
        settings = get_settings()
        self.as_of = as_of or settings.report.resolve_as_of()
        self.output_path = Path(output_path or settings.data_lake.curated_path)
        self.output_format = (output_format or settings.data_lake.default_format).lower()
        self.top_n = top_n or settings.report.top_n
        self.aggregator = MetricAggregator()
        self.analyzer = TrendAnalyzer(self.aggregator)

        if self.output_format not in ("parquet", "csv"):
            raise ValueError(f"Unsupported output format: {self.output_format}")

    def build_product_report(
        self,
        sales: pl.DataFrame,
        products: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Build the product report.

        Pipeline:
        1. Aggregate dated facts per product
        2. Left join product attributes (orphans keep null attributes)
        3. Classify cost tier and sales performance
        4. Derive recency and revenue ratios
        """
        as_of = pl.lit(self.as_of, dtype=pl.Date)
        report = (
            self.aggregator.product_metrics(sales)
            .join(products, on="product_key", how="left")
            .with_columns([
                cost_tier(),
                cost_range(),
                product_segment(),
                months_between(pl.col("last_sale_date"), as_of).alias("recency_in_months"),
                pl.col("avg_selling_price").round(1),
                per_order().alias("avg_order_revenue"),
                per_month().alias("avg_monthly_revenue"),
            ])
            # Tiers and ratios above read the exact sum
            .with_columns(cents("total_sales"))
            .select(PRODUCT_REPORT_COLUMNS)
            .sort("product_key", nulls_last=True)
        )

        logger.info("Product report built", rows=report.height, as_of=self.as_of.isoformat())
        return report

    def build_customer_report(
        self,
        sales: pl.DataFrame,
        customers: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Build the customer report.

        Pipeline:
        1. Aggregate dated facts per customer
        2. Left join customer attributes (orphans keep null attributes)
        3. Derive age, recency and spend ratios
        4. Classify age group and value segment
        """
        as_of = pl.lit(self.as_of, dtype=pl.Date)
        first = pl.col("first_name")
        last = pl.col("last_name")

        report = (
            self.aggregator.customer_metrics(sales)
            .join(customers, on="customer_key", how="left")
            .with_columns([
                pl.when(first.is_null() & last.is_null())
                .then(pl.lit(None, dtype=pl.Utf8))
                .otherwise(pl.concat_str([first, last], separator=" ", ignore_nulls=True))
                .alias("customer_name"),
                (pl.lit(self.as_of.year, dtype=pl.Int32) - pl.col("birthdate").dt.year().cast(pl.Int32))
                .alias("age"),
                months_between(pl.col("last_order_date"), as_of).alias("recency"),
            ])
            .with_columns([
                age_group(),
                customer_segment(),
                per_order().alias("avg_order_value"),
                per_month().alias("avg_monthly_spend"),
            ])
            .with_columns(cents("total_sales"))
            .select(CUSTOMER_REPORT_COLUMNS)
            .sort("customer_key", nulls_last=True)
        )

        logger.info("Customer report built", rows=report.height, as_of=self.as_of.isoformat())
        return report

    def build_analyses(self, schema: StarSchema) -> Dict[str, pl.DataFrame]:
        """Companion analyses published next to the reports"""
        sales, products, customers = schema.sales, schema.products, schema.customers
        customer_report = self.build_customer_report(sales, customers)

        return {
            "key_metrics": self.aggregator.key_metrics(sales, products, customers),
            "date_range": self.aggregator.date_range(sales),
            "sales_by_month": self.aggregator.sales_by_month(sales),
            "sales_by_year": self.aggregator.sales_by_year(sales),
            "cumulative_sales_yearly": self.analyzer.cumulative_analysis(sales, grain="year"),
            "cumulative_sales_monthly": self.analyzer.cumulative_analysis(sales, grain="month"),
            "product_performance": self.analyzer.performance_analysis(sales, products),
            "category_contribution": self.aggregator.category_contribution(sales, products),
            "top_products": self.aggregator.rank_products(sales, products, top_n=self.top_n),
            "bottom_products": self.aggregator.rank_products(
                sales, products, top_n=self.top_n, ascending=True
            ),
            "products_by_cost_range": count_products_by_cost_range(products),
            "customers_by_segment": count_customers_by_segment(customer_report),
        }

    def _write_output(self, df: pl.DataFrame, name: str) -> str:
        """Write a dataset to the curated zone"""
        self.output_path.mkdir(parents=True, exist_ok=True)
        output_file = self.output_path / f"{name}.{self.output_format}"

        if self.output_format == "csv":
            df.write_csv(output_file)
        else:
            df.write_parquet(output_file)
        logger.info(f"Written {len(df)} rows to {output_file}")

        return str(output_file)

    def _materialize(self, name: str, input_rows: int, build) -> ReportResult:
        started_at = datetime.now()
        logger.info(f"Starting {name} with {input_rows} fact rows")

        try:
            df = build()
            output_file = self._write_output(df, name)
        except Exception as e:
            logger.error(f"{name} failed: {e}")
            raise

        completed_at = datetime.now()
        return ReportResult(
            report_name=name,
            input_rows=input_rows,
            output_rows=len(df),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            output_path=output_file,
        )

    def run(self, schema: StarSchema, include_analyses: bool = False) -> ReportRun:
        """
        Build and write both reports.

        Args:
            schema: Validated star schema snapshot
            include_analyses: Also write the companion analyses

        Returns:
            ReportRun with one ReportResult per report
        """
        run = ReportRun(as_of=self.as_of)
        input_rows = schema.sales.height

        run.reports[PRODUCT_REPORT] = self._materialize(
            PRODUCT_REPORT,
            input_rows,
            lambda: self.build_product_report(schema.sales, schema.products),
        )
        run.reports[CUSTOMER_REPORT] = self._materialize(
            CUSTOMER_REPORT,
            input_rows,
            lambda: self.build_customer_report(schema.sales, schema.customers),
        )

        if include_analyses:
            for name, df in self.build_analyses(schema).items():
                run.analyses[name] = self._write_output(df, name)

        total_output = sum(r.output_rows for r in run.reports.values())
        total_duration = sum(r.duration_seconds for r in run.reports.values())
        logger.info(
            f"Reports complete: {input_rows} facts → {total_output} report rows, "
            f"duration: {total_duration:.2f}s",
            analyses=len(run.analyses),
        )

        return run


def build_reports(
    schema: StarSchema,
    as_of: Optional[date] = None,
) -> Dict[str, pl.DataFrame]:
    """
    Convenience function building both reports in memory.

    Same snapshot and as_of always yield the same rows in the same order.
    """
    builder = ReportBuilder(as_of=as_of)
    return {
        PRODUCT_REPORT: builder.build_product_report(schema.sales, schema.products),
        CUSTOMER_REPORT: builder.build_customer_report(schema.sales, schema.customers),
    }
