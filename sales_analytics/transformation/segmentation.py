"""
Segmentation Rules

Fixed threshold rules that classify products and customers into tiers.
Rules are evaluated top to bottom and the first matching branch wins, so a
value sitting exactly on a boundary lands in the first tier whose bound
includes it. A null input always yields a null tier.

Canonical rule set:

    Product cost        < 100 Budget | <= 500 Mid-Range | <= 1000 Premium | else Luxury
    Product sales       > 50000 High Performer | >= 10000 Mid Range | else Low-Performer
    Customer age        < 20 | < 30 | < 40 | < 50 | else 50 and Above
    Customer value      lifespan >= 12 and spend > 5000 VIP
                        lifespan >= 12 and spend <= 5000 Regular
                        else New
"""

from typing import List, Tuple

import polars as pl

# Cost tiers: (upper bound, inclusive, tier, range label)
COST_TIERS: List[Tuple[float, bool, str, str]] = [
    (100, False, "Budget", "Below 100"),
    (500, True, "Mid-Range", "100-500"),
    (1000, True, "Premium", "500-1000"),
]
COST_TOP_TIER = ("Luxury", "Above 1000")

HIGH_PERFORMER_SALES = 50000
MID_RANGE_SALES = 10000

AGE_GROUPS: List[Tuple[int, str]] = [
    (20, "Under 20"),
    (30, "20-29"),
    (40, "30-39"),
    (50, "40-49"),
]
AGE_TOP_GROUP = "50 and Above"

VIP_MIN_LIFESPAN = 12
VIP_MIN_SPEND = 5000

PRODUCT_SEGMENTS = ["High Performer", "Mid Range", "Low-Performer"]
CUSTOMER_SEGMENTS = ["VIP", "Regular", "New"]


def _null_guard(value: pl.Expr):
    return pl.when(value.is_null()).then(pl.lit(None, dtype=pl.Utf8))


def _cost_rules(column: str, label_index: int) -> pl.Expr:
    cost = pl.col(column)
    expr = _null_guard(cost)
    for bound, inclusive, tier, range_label in COST_TIERS:
        condition = cost <= bound if inclusive else cost < bound
        expr = expr.when(condition).then(pl.lit((tier, range_label)[label_index]))
    return expr.otherwise(pl.lit(COST_TOP_TIER[label_index]))


def cost_tier(column: str = "cost") -> pl.Expr:
    """Budget / Mid-Range / Premium / Luxury by product cost"""
    return _cost_rules(column, 0).alias("cost_tier")


def cost_range(column: str = "cost") -> pl.Expr:
    """Range label matching cost_tier: Below 100 / 100-500 / 500-1000 / Above 1000"""
    return _cost_rules(column, 1).alias("cost_range")


def product_segment(column: str = "total_sales") -> pl.Expr:
    """High Performer / Mid Range / Low-Performer by total sales"""
    sales = pl.col(column)
    return (
        _null_guard(sales)
        .when(sales > HIGH_PERFORMER_SALES).then(pl.lit("High Performer"))
        .when(sales >= MID_RANGE_SALES).then(pl.lit("Mid Range"))
        .otherwise(pl.lit("Low-Performer"))
        .alias("product_segment")
    )


def age_group(column: str = "age") -> pl.Expr:
    """Ten-year age buckets, open-ended at both ends"""
    age = pl.col(column)
    expr = _null_guard(age)
    for upper, label in AGE_GROUPS:
        expr = expr.when(age < upper).then(pl.lit(label))
    return expr.otherwise(pl.lit(AGE_TOP_GROUP)).alias("age_group")


def customer_segment(
    lifespan_column: str = "lifespan",
    spend_column: str = "total_sales",
) -> pl.Expr:
    """VIP / Regular / New by customer lifespan (months) and total spend"""
    lifespan = pl.col(lifespan_column)
    spend = pl.col(spend_column)
    established = lifespan >= VIP_MIN_LIFESPAN
    return (
        _null_guard(lifespan)
        .when(established & (spend > VIP_MIN_SPEND)).then(pl.lit("VIP"))
        .when(established & (spend <= VIP_MIN_SPEND)).then(pl.lit("Regular"))
        .otherwise(pl.lit("New"))
        .alias("customer_segment")
    )


def count_products_by_cost_range(products: pl.DataFrame) -> pl.DataFrame:
    """Number of products per cost range, largest range first"""
    return (
        products
        .with_columns(cost_range())
        .group_by("cost_range")
        .agg(pl.len().alias("total_products"))
        .sort(["total_products", "cost_range"], descending=[True, False], nulls_last=True)
    )


def count_customers_by_segment(customer_report: pl.DataFrame) -> pl.DataFrame:
    """Number of customers per value segment, largest segment first"""
    return (
        customer_report
        .group_by("customer_segment")
        .agg(pl.len().alias("total_customers"))
        .sort(["total_customers", "customer_segment"], descending=[True, False], nulls_last=True)
    )
