"""
Unit Tests - Trend Analysis
"""
from datetime import date

import pytest
import polars as pl

from sales_analytics.transformation.trends import TrendAnalyzer


@pytest.fixture
def yearly_series() -> pl.DataFrame:
    """Aggregated series given out of chronological order"""
    return pl.DataFrame({
        "period": [date(2023, 1, 1), date(2021, 1, 1), date(2022, 1, 1), date(2024, 1, 1)],
        "total_sales": [300.0, 100.0, 200.0, 400.0],
        "avg_price": [30.0, 10.0, None, 50.0],
    })


@pytest.fixture
def product_series() -> pl.DataFrame:
    """Yearly sales for two products"""
    return pl.DataFrame({
        "order_year": [2021, 2022, 2023, 2021, 2022],
        "product_key": [1, 1, 1, 2, 2],
        "current_sales": [100.0, 300.0, 300.0, 50.0, 20.0],
    })


class TestRunningTotal:
    """Tests for the prefix sum"""

    def test_running_total_in_chronological_order(self, yearly_series):
        """Output is sorted by period and accumulates"""
        result = TrendAnalyzer().running_total(yearly_series)

        assert result["period"].to_list() == sorted(yearly_series["period"].to_list())
        assert result["running_total_sales"].to_list() == [100.0, 300.0, 600.0, 1000.0]

    def test_running_total_recurrence(self, yearly_series):
        """Each total is the previous total plus the period value"""
        result = TrendAnalyzer().running_total(yearly_series)

        totals = result["running_total_sales"].to_list()
        values = result["total_sales"].to_list()
        assert totals[0] == values[0]
        for i in range(1, len(totals)):
            assert totals[i] == pytest.approx(totals[i - 1] + values[i])

    def test_ties_keep_input_order(self):
        """Equal period keys are not reordered"""
        series = pl.DataFrame({
            "period": [date(2022, 1, 1), date(2021, 1, 1), date(2022, 1, 1)],
            "total_sales": [5.0, 1.0, 7.0],
        })

        result = TrendAnalyzer().running_total(series)

        assert result["total_sales"].to_list() == [1.0, 5.0, 7.0]
        assert result["running_total_sales"].to_list() == [1.0, 6.0, 13.0]


class TestMovingAverage:
    """Tests for the cumulative mean"""

    def test_prefix_mean_skips_nulls(self, yearly_series):
        """Mean over periods 1..i, null periods not counted"""
        result = TrendAnalyzer().moving_average(yearly_series)

        assert result["moving_average_price"].to_list() == pytest.approx([10.0, 10.0, 20.0, 30.0])

    def test_is_cumulative_not_windowed(self):
        """The first period still weighs on the last one"""
        series = pl.DataFrame({
            "period": [date(2020 + i, 1, 1) for i in range(5)],
            "avg_price": [100.0, 0.0, 0.0, 0.0, 0.0],
        })

        result = TrendAnalyzer().moving_average(series)

        assert result["moving_average_price"][-1] == pytest.approx(20.0)

    def test_leading_null_stays_null(self):
        """No average before the first observed value"""
        series = pl.DataFrame({
            "period": [date(2021, 1, 1), date(2022, 1, 1)],
            "avg_price": [None, 4.0],
        })

        result = TrendAnalyzer().moving_average(series)

        assert result["moving_average_price"].to_list() == [None, 4.0]


class TestYearOverYear:
    """Tests for the lag comparison"""

    def test_lag_within_partition(self, product_series):
        """Previous year comes from the same product only"""
        result = TrendAnalyzer().year_over_year(product_series)

        assert result["product_key"].to_list() == [1, 1, 1, 2, 2]
        assert result["py_sales"].to_list() == [None, 100.0, 300.0, None, 50.0]
        assert result["diff_py"].to_list() == [None, 200.0, 0.0, None, -30.0]
        assert result["py_change"].to_list() == [None, "Increase", "No Change", None, "Decrease"]

    def test_lag_follows_time_order(self):
        """Rows given out of order are compared chronologically"""
        series = pl.DataFrame({
            "order_year": [2023, 2021, 2022],
            "product_key": [1, 1, 1],
            "current_sales": [30.0, 10.0, 20.0],
        })

        result = TrendAnalyzer().year_over_year(series)

        assert result["order_year"].to_list() == [2021, 2022, 2023]
        assert result["py_sales"].to_list() == [None, 10.0, 20.0]


class TestDeviationFromMean:
    """Tests for the whole-partition mean"""

    def test_mean_covers_whole_partition(self, product_series):
        """Every row of a product sees the same average"""
        result = TrendAnalyzer().deviation_from_mean(product_series)

        first = result.filter(pl.col("product_key") == 1)
        assert first["avg_sales"].to_list() == pytest.approx([700.0 / 3] * 3)
        assert first["avg_change"].to_list() == ["Below Avg", "Above Avg", "Above Avg"]

        second = result.filter(pl.col("product_key") == 2)
        assert second["avg_sales"].to_list() == [35.0, 35.0]

    def test_exact_mean_is_avg(self):
        """Zero deviation is labelled Avg"""
        series = pl.DataFrame({
            "order_year": [2021, 2022],
            "product_key": [1, 1],
            "current_sales": [100.0, 100.0],
        })

        result = TrendAnalyzer().deviation_from_mean(series)

        assert result["avg_change"].to_list() == ["Avg", "Avg"]

    def test_deviations_sum_to_zero(self, product_series):
        """Per product, deviations from the mean cancel out"""
        result = TrendAnalyzer().deviation_from_mean(product_series)

        sums = result.group_by("product_key").agg(pl.col("diff_avg").sum())
        for total in sums["diff_avg"].to_list():
            assert total == pytest.approx(0.0, abs=1e-9)


class TestCompositeAnalyses:
    """Tests for the analyses built from the sales facts"""

    def test_cumulative_analysis(self, sample_sales_df):
        """Running sales and cumulative average price per year"""
        result = TrendAnalyzer().cumulative_analysis(sample_sales_df, grain="year")

        assert result["running_total_sales"].to_list() == [3700.0, 7200.0, 7200.0]
        assert result["moving_average_price"].to_list() == pytest.approx([
            625.0,
            (625.0 + 1750.0 / 3) / 2,
            (625.0 + 1750.0 / 3 + 0.0) / 3,
        ])

    def test_performance_analysis(self, sample_sales_df, sample_products_df):
        """Yearly product performance against average and previous year"""
        result = TrendAnalyzer().performance_analysis(sample_sales_df, sample_products_df)

        bike = result.filter(pl.col("product_key") == 1)
        assert bike["product_name"].to_list() == ["Road-150 Red", "Road-150 Red"]
        assert bike["avg_change"].to_list() == ["Above Avg", "Below Avg"]
        assert bike["py_change"].to_list() == [None, "Decrease"]
        assert bike["diff_py"].to_list() == [None, -1200.0]

        helmet = result.filter(pl.col("product_key") == 2)
        assert helmet["avg_change"].to_list() == ["Avg", "Avg"]
        assert helmet["py_change"].to_list() == [None, "No Change"]
