"""
Unit Tests - Metric Aggregation
"""
from datetime import date

import pytest
import polars as pl

from sales_analytics.transformation.aggregators import (
    MetricAggregator,
    aggregate_sales,
    months_between,
)


def _row(df: pl.DataFrame, column: str, value) -> dict:
    rows = df.filter(pl.col(column) == value).to_dicts()
    assert len(rows) == 1
    return rows[0]


class TestMonthsBetween:
    """Tests for calendar month arithmetic"""

    def test_counts_month_boundaries(self):
        """Only year and month parts matter"""
        df = pl.DataFrame({
            "start": [date(2023, 1, 31), date(2022, 1, 15), date(2023, 3, 1)],
            "end": [date(2023, 2, 1), date(2023, 2, 10), date(2023, 3, 31)],
        })

        result = df.select(months_between(pl.col("start"), pl.col("end")).alias("m"))

        assert result["m"].to_list() == [1, 13, 0]


class TestChangeOverTime:
    """Tests for monthly and yearly rollups"""

    def test_sales_by_month(self, sample_sales_df):
        """One row per month, undated facts excluded"""
        aggregator = MetricAggregator()

        result = aggregator.sales_by_month(sample_sales_df)

        assert result["order_month"].to_list() == [
            date(2022, 1, 1), date(2023, 2, 1), date(2023, 3, 1), date(2024, 1, 1),
        ]
        assert result["total_sales"].to_list() == [3700.0, 2400.0, 1100.0, 0.0]
        assert result["total_customers"].to_list() == [1, 1, 2, 1]
        assert result["total_quantity"].to_list() == [5, 2, 4, 0]

    def test_monthly_quantity_matches_dated_facts(self, sample_sales_df):
        """total_quantity(m) equals the quantity of dated facts in month m"""
        result = MetricAggregator().sales_by_month(sample_sales_df)

        dated = sample_sales_df.filter(pl.col("order_date").is_not_null())
        for row in result.iter_rows(named=True):
            month = row["order_month"]
            expected = dated.filter(
                (pl.col("order_date").dt.year() == month.year)
                & (pl.col("order_date").dt.month() == month.month)
            )["quantity"].sum()
            assert row["total_quantity"] == expected

    def test_sales_by_year(self, sample_sales_df):
        """One row per calendar year"""
        result = aggregate_sales(sample_sales_df, grain="year")

        assert result["order_year"].to_list() == [2022, 2023, 2024]
        assert result["total_sales"].to_list() == [3700.0, 3500.0, 0.0]
        assert result["total_customers"].to_list() == [1, 3, 1]

    def test_unknown_grain(self, sample_sales_df):
        """Only month and year grains exist"""
        with pytest.raises(ValueError):
            aggregate_sales(sample_sales_df, grain="week")

    def test_period_series(self, sample_sales_df):
        """Yearly periods keyed by their first day"""
        result = MetricAggregator().period_series(sample_sales_df, grain="year")

        assert result["period"].to_list() == [date(2022, 1, 1), date(2023, 1, 1), date(2024, 1, 1)]
        assert result["avg_price"][0] == pytest.approx(625.0)
        assert result["avg_price"][1] == pytest.approx(1750.0 / 3)


class TestEntityMetrics:
    """Tests for per-product and per-customer rollups"""

    def test_product_metrics(self, sample_sales_df):
        """Distinct counts, sums and lifespan per product"""
        result = MetricAggregator().product_metrics(sample_sales_df)

        assert result["product_key"].to_list() == [1, 2, 3, 9]

        bike = _row(result, "product_key", 1)
        assert bike["total_sales"] == 6000.0
        assert bike["total_orders"] == 2
        assert bike["total_customers"] == 1
        assert bike["total_quantity"] == 5
        assert bike["lifespan"] == 13
        assert bike["last_sale_date"] == date(2023, 2, 10)

        helmet = _row(result, "product_key", 2)
        # The undated SO5 line is not part of the rollup
        assert helmet["total_quantity"] == 4
        assert helmet["total_customers"] == 2
        assert helmet["lifespan"] == 14

    def test_avg_selling_price_excludes_zero_quantity(self, sample_sales_df):
        """A zero-quantity line is left out of the mean, not counted as zero"""
        facts = pl.concat([
            sample_sales_df,
            pl.DataFrame(
                [("SO7", 3, 1, date(2023, 5, 1), 0.0, 0, 500.0)],
                schema=sample_sales_df.schema,
                orient="row",
            ),
        ])

        result = MetricAggregator().product_metrics(facts)

        assert _row(result, "product_key", 3)["avg_selling_price"] == pytest.approx(500.0)
        assert _row(result, "product_key", 9)["avg_selling_price"] is None

    def test_distinct_counts_ignore_nulls(self):
        """Null order numbers are not counted as an order"""
        facts = pl.DataFrame({
            "order_number": ["SO1", None, "SO1"],
            "product_key": [1, 1, 1],
            "customer_key": [1, None, 1],
            "order_date": [date(2023, 1, 1)] * 3,
            "sales_amount": [10.0, 10.0, 10.0],
            "quantity": [1, 1, 1],
            "price": [10.0, 10.0, 10.0],
        })

        result = MetricAggregator().product_metrics(facts)

        assert result["total_orders"].to_list() == [1]
        assert result["total_customers"].to_list() == [1]

    def test_customer_metrics(self, sample_sales_df):
        """Customer rollups with lifespan in calendar months"""
        result = MetricAggregator().customer_metrics(sample_sales_df)

        assert result["customer_key"].to_list() == [1, 2, 3]

        first = _row(result, "customer_key", 1)
        assert first["total_sales"] == 100.0
        assert first["lifespan"] == 0

        second = _row(result, "customer_key", 2)
        assert second["total_orders"] == 2
        assert second["total_products"] == 2
        assert second["lifespan"] == 10

        third = _row(result, "customer_key", 3)
        assert third["total_sales"] == 6100.0
        assert third["total_quantity"] == 7
        assert third["lifespan"] == 13

    def test_lifespan_never_negative(self, sample_sales_df):
        """Last order is never before the first"""
        aggregator = MetricAggregator()

        assert aggregator.product_metrics(sample_sales_df)["lifespan"].min() >= 0
        assert aggregator.customer_metrics(sample_sales_df)["lifespan"].min() >= 0

    def test_yearly_product_sales(self, sample_sales_df, sample_products_df):
        """One row per product and year, orphans keep a null name"""
        result = MetricAggregator().yearly_product_sales(sample_sales_df, sample_products_df)

        assert result.select(["product_key", "order_year"]).rows() == [
            (1, 2022), (1, 2023), (2, 2022), (2, 2023), (3, 2023), (9, 2024),
        ]
        assert result["current_sales"].to_list() == [3600.0, 2400.0, 100.0, 100.0, 1000.0, 0.0]
        assert result["product_name"][-1] is None


class TestExploratoryAnalyses:
    """Tests for summary, part-to-whole and ranking analyses"""

    def test_key_metrics(self, sample_sales_df, sample_products_df, sample_customers_df):
        """One-row business summary"""
        result = MetricAggregator().key_metrics(
            sample_sales_df, sample_products_df, sample_customers_df
        )

        row = result.to_dicts()[0]
        assert result.height == 1
        assert row["total_sales"] == 7200.0
        assert row["total_quantity"] == 11
        assert row["total_orders"] == 5
        assert row["total_products"] == 4
        assert row["total_customers"] == 4
        assert row["customers_with_orders"] == 3

    def test_date_range(self, sample_sales_df):
        """Range of dated orders only"""
        row = MetricAggregator().date_range(sample_sales_df).to_dicts()[0]

        assert row["first_order_date"] == date(2022, 1, 15)
        assert row["last_order_date"] == date(2024, 1, 5)
        assert row["order_range_months"] == 24

    def test_category_contribution(self, sample_sales_df, sample_products_df):
        """Shares sum to 100 percent, largest category first"""
        result = MetricAggregator().category_contribution(sample_sales_df, sample_products_df)

        assert result["category"].to_list() == ["Bikes", "Components", "Accessories", None]
        assert result["percentage_of_total"].to_list() == [83.33, 13.89, 2.78, 0.0]
        assert result["overall_sales"].unique().to_list() == [7200.0]

    def test_top_products(self, sample_sales_df, sample_products_df):
        """Best sellers ranked by revenue"""
        result = MetricAggregator().rank_products(sample_sales_df, sample_products_df, top_n=2)

        assert result["product_key"].to_list() == [1, 3]
        assert result["rank"].to_list() == [1, 2]

    def test_bottom_products(self, sample_sales_df, sample_products_df):
        """Worst sellers ranked by revenue"""
        result = MetricAggregator().rank_products(
            sample_sales_df, sample_products_df, top_n=2, ascending=True
        )

        assert result["product_key"].to_list() == [9, 2]
        assert result["total_revenue"].to_list() == [0.0, 200.0]
