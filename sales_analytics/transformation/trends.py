"""
Trend Analysis Module

Ordered window computations over aggregated sales series.

Each window is a separate operation because the frames differ:
- running_total: prefix sum over periods 1..i
- moving_average: prefix (cumulative) mean over periods 1..i
- year_over_year: offset-by-one lag within a product partition
- deviation_from_mean: mean over the whole product partition
"""

from typing import Optional

import polars as pl
import structlog

from .aggregators import MetricAggregator

logger = structlog.get_logger(__name__)


def _ordered(
    series: pl.DataFrame,
    order_col: str,
    partition_col: Optional[str] = None,
) -> pl.DataFrame:
    by = [partition_col, order_col] if partition_col else [order_col]
    return series.sort(by, maintain_order=True, nulls_last=True)


def _direction(column: str, up: str, down: str, flat: str) -> pl.Expr:
    delta = pl.col(column)
    return (
        pl.when(delta > 0).then(pl.lit(up))
        .when(delta < 0).then(pl.lit(down))
        .when(delta == 0).then(pl.lit(flat))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
    )


class TrendAnalyzer:
    """
    Window analyses over time-ordered series.

    Series are stably sorted by their time key (and partition key where one
    applies) before any window is evaluated, so ties keep input order.

    Example:
        analyzer = TrendAnalyzer()
        yearly = analyzer.cumulative_analysis(sales_df, grain="year")
    """

    def __init__(self, aggregator: Optional[MetricAggregator] = None):
        self.aggregator = aggregator or MetricAggregator()

    def running_total(
        self,
        series: pl.DataFrame,
        value_col: str = "total_sales",
        order_col: str = "period",
        alias: str = "running_total_sales",
    ) -> pl.DataFrame:
        """Sum of value_col over periods 1..i in chronological order"""
        return _ordered(series, order_col).with_columns(
            pl.col(value_col).fill_null(0).cum_sum().alias(alias)
        )

    def moving_average(
        self,
        series: pl.DataFrame,
        value_col: str = "avg_price",
        order_col: str = "period",
        alias: str = "moving_average_price",
    ) -> pl.DataFrame:
        """
        Cumulative mean of value_col over periods 1..i.

        Null periods are skipped: they add nothing to the sum and are not
        counted. The result stays null until the first non-null period.
        """
        value = pl.col(value_col)
        seen = value.is_not_null().cast(pl.Int64).cum_sum()
        total = value.fill_null(0).cum_sum()
        return _ordered(series, order_col).with_columns(
            pl.when(seen > 0).then(total / seen).otherwise(None).alias(alias)
        )

    def year_over_year(
        self,
        series: pl.DataFrame,
        value_col: str = "current_sales",
        partition_col: str = "product_key",
        order_col: str = "order_year",
    ) -> pl.DataFrame:
        """
        Compare each period with the previous one of the same partition.

        Adds:
        - py_sales: value of the previous period (null for the first one)
        - diff_py: current minus previous (null without a previous period)
        - py_change: Increase / Decrease / No Change (null with diff_py)
        """
        return (
            _ordered(series, order_col, partition_col)
            .with_columns(
                pl.col(value_col).shift(1).over(partition_col).alias("py_sales")
            )
            .with_columns(
                (pl.col(value_col) - pl.col("py_sales")).alias("diff_py")
            )
            .with_columns(
                _direction("diff_py", "Increase", "Decrease", "No Change").alias("py_change")
            )
        )

    def deviation_from_mean(
        self,
        series: pl.DataFrame,
        value_col: str = "current_sales",
        partition_col: str = "product_key",
        order_col: str = "order_year",
    ) -> pl.DataFrame:
        """
        Compare each period with the mean of its whole partition.

        The mean covers every period of the partition regardless of row
        position.
        """
        return (
            _ordered(series, order_col, partition_col)
            .with_columns(
                pl.col(value_col).mean().over(partition_col).alias("avg_sales")
            )
            .with_columns(
                (pl.col(value_col) - pl.col("avg_sales")).alias("diff_avg")
            )
            .with_columns(
                _direction("diff_avg", "Above Avg", "Below Avg", "Avg").alias("avg_change")
            )
        )

    def cumulative_analysis(self, facts: pl.DataFrame, grain: str = "year") -> pl.DataFrame:
        """Running total of sales and cumulative average price per period"""
        series = self.aggregator.period_series(facts, grain=grain)
        series = self.running_total(series, value_col="total_sales", order_col="period")
        series = self.moving_average(series, value_col="avg_price", order_col="period")

        logger.info("Cumulative analysis complete", grain=grain, periods=series.height)
        return series

    def performance_analysis(
        self,
        facts: pl.DataFrame,
        products: pl.DataFrame,
    ) -> pl.DataFrame:
        """Yearly product sales against the product average and the previous year"""
        series = self.aggregator.yearly_product_sales(facts, products)
        series = self.deviation_from_mean(series)
        series = self.year_over_year(series)

        logger.info("Performance analysis complete", rows=series.height)
        return series.select([
            "order_year",
            "product_key",
            "product_name",
            "current_sales",
            "avg_sales",
            "diff_avg",
            "avg_change",
            "py_sales",
            "diff_py",
            "py_change",
        ])
