"""
Metric Aggregation Module

Rolls sales facts up by time bucket, product or customer.
Includes:
- Change over time (monthly / yearly sales)
- Per-product and per-customer rollups for the reports
- Yearly product sales series for performance analysis
- Business summary, date range, part-to-whole and ranking analyses

Facts without an order date never reach a group: they are removed before
any grouping happens.
"""

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

GRAINS = {"month": "1mo", "year": "1y"}


def months_between(start: pl.Expr, end: pl.Expr) -> pl.Expr:
    """Number of calendar month boundaries crossed from start to end."""
    years = end.dt.year().cast(pl.Int32) - start.dt.year().cast(pl.Int32)
    months = end.dt.month().cast(pl.Int32) - start.dt.month().cast(pl.Int32)
    return years * 12 + months


def distinct_count(column: str) -> pl.Expr:
    """COUNT(DISTINCT column): nulls are not counted"""
    return pl.col(column).drop_nulls().n_unique()


def unit_price() -> pl.Expr:
    """Per-line sales_amount / quantity, undefined (null) when quantity is 0"""
    return (
        pl.when(pl.col("quantity") != 0)
        .then(pl.col("sales_amount") / pl.col("quantity"))
        .otherwise(None)
    )


class MetricAggregator:
    """
    Groups sales facts and computes sums, distinct counts and averages.

    Every method returns exactly one row per distinct key value present in
    the dated facts, ordered by that key.

    Example:
        aggregator = MetricAggregator()
        monthly = aggregator.sales_by_month(sales_df)
    """

    def dated_sales(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Drop facts with a null order date"""
        dated = facts.filter(pl.col("order_date").is_not_null())
        dropped = facts.height - dated.height
        if dropped:
            logger.debug("Excluded undated facts", rows=dropped)
        return dated

    def sales_by_month(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Total sales, distinct customers and quantity per calendar month"""
        return (
            self.dated_sales(facts)
            .group_by(pl.col("order_date").dt.truncate("1mo").alias("order_month"))
            .agg([
                pl.col("sales_amount").sum().alias("total_sales"),
                distinct_count("customer_key").alias("total_customers"),
                pl.col("quantity").sum().alias("total_quantity"),
            ])
            .sort("order_month")
        )

    def sales_by_year(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Total sales, distinct customers and quantity per calendar year"""
        return (
            self.dated_sales(facts)
            .group_by(pl.col("order_date").dt.year().alias("order_year"))
            .agg([
                pl.col("sales_amount").sum().alias("total_sales"),
                distinct_count("customer_key").alias("total_customers"),
                pl.col("quantity").sum().alias("total_quantity"),
            ])
            .sort("order_year")
        )

    def period_series(self, facts: pl.DataFrame, grain: str = "year") -> pl.DataFrame:
        """
        Per-period total sales and average price.

        Args:
            facts: Sales facts
            grain: "year" or "month"; periods are keyed by their first day

        Returns:
            DataFrame with period, total_sales, avg_price
        """
        if grain not in GRAINS:
            raise ValueError(f"Unsupported grain: {grain}. Use one of {list(GRAINS)}")

        return (
            self.dated_sales(facts)
            .group_by(pl.col("order_date").dt.truncate(GRAINS[grain]).alias("period"))
            .agg([
                pl.col("sales_amount").sum().alias("total_sales"),
                pl.col("price").mean().alias("avg_price"),
            ])
            .sort("period")
        )

    def product_metrics(self, facts: pl.DataFrame) -> pl.DataFrame:
        """
        Per-product rollup used by the product report.

        Adds:
        - First and last sale date, lifespan in months
        - Distinct orders and customers
        - Total sales and quantity
        - Average selling price (mean unit price, zero-quantity lines excluded)
        """
        metrics = (
            self.dated_sales(facts)
            .group_by("product_key")
            .agg([
                pl.col("order_date").min().alias("first_order_date"),
                pl.col("order_date").max().alias("last_sale_date"),
                distinct_count("order_number").alias("total_orders"),
                distinct_count("customer_key").alias("total_customers"),
                pl.col("sales_amount").sum().alias("total_sales"),
                pl.col("quantity").sum().alias("total_quantity"),
                unit_price().mean().alias("avg_selling_price"),
            ])
            .with_columns(
                months_between(pl.col("first_order_date"), pl.col("last_sale_date"))
                .alias("lifespan")
            )
            .sort("product_key", nulls_last=True)
        )

        logger.info("Product metrics aggregated", products=metrics.height)
        return metrics

    def customer_metrics(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Per-customer rollup used by the customer report"""
        metrics = (
            self.dated_sales(facts)
            .group_by("customer_key")
            .agg([
                pl.col("order_date").min().alias("first_order_date"),
                pl.col("order_date").max().alias("last_order_date"),
                distinct_count("order_number").alias("total_orders"),
                pl.col("sales_amount").sum().alias("total_sales"),
                pl.col("quantity").sum().alias("total_quantity"),
                distinct_count("product_key").alias("total_products"),
            ])
            .with_columns(
                months_between(pl.col("first_order_date"), pl.col("last_order_date"))
                .alias("lifespan")
            )
            .sort("customer_key", nulls_last=True)
        )

        logger.info("Customer metrics aggregated", customers=metrics.height)
        return metrics

    def yearly_product_sales(
        self,
        facts: pl.DataFrame,
        products: pl.DataFrame,
    ) -> pl.DataFrame:
        """Sales per (order_year, product), product name carried along"""
        return (
            self.dated_sales(facts)
            .join(products.select(["product_key", "product_name"]), on="product_key", how="left")
            .group_by([
                pl.col("order_date").dt.year().alias("order_year"),
                "product_key",
                "product_name",
            ])
            .agg(pl.col("sales_amount").sum().alias("current_sales"))
            .sort(["product_key", "order_year"], nulls_last=True)
        )

    def key_metrics(
        self,
        facts: pl.DataFrame,
        products: pl.DataFrame,
        customers: pl.DataFrame,
    ) -> pl.DataFrame:
        """One-row business summary of the snapshot"""
        return self.dated_sales(facts).select([
            pl.col("sales_amount").sum().alias("total_sales"),
            pl.col("quantity").sum().alias("total_quantity"),
            pl.col("price").mean().alias("avg_price"),
            distinct_count("order_number").alias("total_orders"),
            pl.lit(products.height, dtype=pl.UInt32).alias("total_products"),
            pl.lit(customers.height, dtype=pl.UInt32).alias("total_customers"),
            distinct_count("customer_key").alias("customers_with_orders"),
        ])

    def date_range(self, facts: pl.DataFrame) -> pl.DataFrame:
        """First and last order date and the span between them in months"""
        return (
            self.dated_sales(facts)
            .select([
                pl.col("order_date").min().alias("first_order_date"),
                pl.col("order_date").max().alias("last_order_date"),
            ])
            .with_columns(
                months_between(pl.col("first_order_date"), pl.col("last_order_date"))
                .alias("order_range_months")
            )
        )

    def category_contribution(
        self,
        facts: pl.DataFrame,
        products: pl.DataFrame,
    ) -> pl.DataFrame:
        """Part-to-whole: each category's share of overall sales, in percent"""
        by_category = (
            self.dated_sales(facts)
            .join(products.select(["product_key", "category"]), on="product_key", how="left")
            .group_by("category")
            .agg(pl.col("sales_amount").sum().alias("total_sales"))
        )

        overall = pl.col("total_sales").sum()
        return (
            by_category
            .with_columns(overall.alias("overall_sales"))
            .with_columns(
                pl.when(pl.col("overall_sales") == 0)
                .then(0.0)
                .otherwise(pl.col("total_sales") / pl.col("overall_sales") * 100)
                .round(2)
                .alias("percentage_of_total")
            )
            .sort(["total_sales", "category"], descending=[True, False], nulls_last=True)
        )

    def rank_products(
        self,
        facts: pl.DataFrame,
        products: pl.DataFrame,
        top_n: int = 5,
        ascending: bool = False,
    ) -> pl.DataFrame:
        """
        Rank products by revenue.

        Args:
            facts: Sales facts
            products: Product dimension
            top_n: Number of ranks to keep
            ascending: Rank the worst performers first

        Returns:
            DataFrame with product_key, product_name, total_revenue, rank
        """
        revenue = (
            self.dated_sales(facts)
            .join(products.select(["product_key", "product_name"]), on="product_key", how="left")
            .group_by(["product_key", "product_name"])
            .agg(pl.col("sales_amount").sum().alias("total_revenue"))
        )

        return (
            revenue
            .with_columns(
                pl.col("total_revenue")
                .rank("dense", descending=not ascending)
                .alias("rank")
            )
            .filter(pl.col("rank") <= top_n)
            .sort(["rank", "product_key"], nulls_last=True)
        )


def aggregate_sales(facts: pl.DataFrame, grain: str = "month") -> pl.DataFrame:
    """
    Convenience function for change-over-time rollups.

    Args:
        facts: Sales facts
        grain: "month" or "year"
    """
    aggregator = MetricAggregator()
    if grain == "month":
        return aggregator.sales_by_month(facts)
    if grain == "year":
        return aggregator.sales_by_year(facts)
    raise ValueError(f"Unsupported grain: {grain}. Use one of {list(GRAINS)}")
