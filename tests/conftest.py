"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from sales_analytics.ingestion.snapshot_loader import (
    DIM_CUSTOMERS_SCHEMA,
    DIM_PRODUCTS_SCHEMA,
    FACT_SALES_SCHEMA,
    StarSchema,
)

AS_OF = date(2024, 6, 15)


@pytest.fixture
def as_of() -> date:
    """Fixed report date so age and recency are reproducible"""
    return AS_OF


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Product dimension; product 4 has no sales"""
    return pl.DataFrame({
        "product_key": [1, 2, 3, 4],
        "product_name": ["Road-150 Red", "Sport-100 Helmet", "HL Road Frame", "Cycling Cap"],
        "category": ["Bikes", "Accessories", "Components", "Clothing"],
        "subcategory": ["Road Bikes", "Helmets", "Frames", "Caps"],
        "cost": [1200.0, 50.0, 500.0, 5.0],
    }, schema=DIM_PRODUCTS_SCHEMA)


@pytest.fixture
def sample_customers_df() -> pl.DataFrame:
    """Customer dimension; customer 4 has no sales"""
    return pl.DataFrame({
        "customer_key": [1, 2, 3, 4],
        "customer_number": ["AW00011000", "AW00011001", "AW00011002", "AW00011003"],
        "first_name": ["John", "Jane", "Bob", "Ann"],
        "last_name": ["Doe", "Smith", "Wilson", "Lee"],
        "birthdate": [date(1989, 3, 10), date(2008, 1, 1), date(1970, 5, 5), None],
    }, schema=DIM_CUSTOMERS_SCHEMA)


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """
    Sales facts.

    SO5 has no order date, SO6 references unknown product 9 with quantity 0.
    """
    return pl.DataFrame(
        [
            ("SO1", 1, 3, date(2022, 1, 15), 3600.0, 3, 1200.0),
            ("SO1", 2, 3, date(2022, 1, 15), 100.0, 2, 50.0),
            ("SO2", 1, 3, date(2023, 2, 10), 2400.0, 2, 1200.0),
            ("SO3", 2, 1, date(2023, 3, 5), 100.0, 2, 50.0),
            ("SO4", 3, 2, date(2023, 3, 20), 1000.0, 2, 500.0),
            ("SO5", 2, 1, None, 50.0, 1, 50.0),
            ("SO6", 9, 2, date(2024, 1, 5), 0.0, 0, 0.0),
        ],
        schema=FACT_SALES_SCHEMA,
        orient="row",
    )


@pytest.fixture
def sample_schema(sample_sales_df, sample_products_df, sample_customers_df) -> StarSchema:
    """Typed snapshot built from the sample tables"""
    return StarSchema(
        sales=sample_sales_df,
        products=sample_products_df,
        customers=sample_customers_df,
    )


@pytest.fixture
def write_snapshot(tmp_path):
    """Write source tables as CSV files and return the directory"""
    def _write(sales: pl.DataFrame, products: pl.DataFrame, customers: pl.DataFrame):
        raw = tmp_path / "raw"
        raw.mkdir(exist_ok=True)
        sales.write_csv(raw / "fact_sales.csv")
        products.write_csv(raw / "dim_products.csv")
        customers.write_csv(raw / "dim_customers.csv")
        return raw

    return _write
