"""
Synthetic Star Schema Generator

Generates a realistic sales star schema for demos and development.
Includes:
- Product dimension across categories and subcategories
- Customer dimension with birthdates
- Sales facts with multi-line orders spread over several years
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import polars as pl
from faker import Faker
import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = {
    "Bikes": ["Mountain Bikes", "Road Bikes", "Touring Bikes"],
    "Components": ["Frames", "Wheels", "Brakes", "Handlebars"],
    "Clothing": ["Jerseys", "Shorts", "Gloves", "Caps"],
    "Accessories": ["Helmets", "Bottles and Cages", "Tires and Tubes", "Locks"],
}

# Cost ranges per category (min, max)
CATEGORY_COST = {
    "Bikes": (300, 2200),
    "Components": (40, 900),
    "Clothing": (3, 60),
    "Accessories": (1, 120),
}


# =============================================================================
# GENERATORS
# =============================================================================

class StarSchemaGenerator:
    """
    Generate the three star schema tables.

    Example:
        generator = StarSchemaGenerator(seed=42)
        tables = generator.generate(n_products=200, n_customers=1000, n_orders=5000)
    """

    def __init__(
        self,
        seed: int = 42,
        start_date: date = date(2010, 12, 1),
        end_date: date = date(2014, 1, 31),
        null_date_rate: float = 0.001,
    ):
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.start_date = start_date
        self.end_date = end_date
        self.null_date_rate = null_date_rate

    def generate_products(self, n: int = 200) -> pl.DataFrame:
        """Generate n products"""
        categories = self.rng.choice(list(CATEGORIES), size=n)
        subcategories = [self.rng.choice(CATEGORIES[c]) for c in categories]
        costs = [
            float(round(self.rng.uniform(*CATEGORY_COST[c]))) for c in categories
        ]

        return pl.DataFrame({
            "product_key": list(range(1, n + 1)),
            "product_name": [
                f"{sub} {self.fake.word().title()}-{i:03d}"
                for i, sub in enumerate(subcategories, start=1)
            ],
            "category": [str(c) for c in categories],
            "subcategory": [str(s) for s in subcategories],
            "cost": costs,
        })

    def generate_customers(self, n: int = 1000) -> pl.DataFrame:
        """Generate n customers"""
        birthdates = [
            self.fake.date_of_birth(minimum_age=15, maximum_age=85)
            if self.rng.random() > 0.01 else None
            for _ in range(n)
        ]

        return pl.DataFrame({
            "customer_key": list(range(1, n + 1)),
            "customer_number": [f"AW{11000 + i:08d}" for i in range(n)],
            "first_name": [self.fake.first_name() for _ in range(n)],
            "last_name": [self.fake.last_name() for _ in range(n)],
            "birthdate": birthdates,
        }, schema_overrides={"birthdate": pl.Date})

    def generate_sales(
        self,
        products: pl.DataFrame,
        customers: pl.DataFrame,
        n_orders: int = 5000,
    ) -> pl.DataFrame:
        """Generate multi-line orders referencing the given dimensions"""
        product_keys = products["product_key"].to_numpy()
        # Selling price is a markup over cost
        prices = dict(zip(
            products["product_key"].to_list(),
            [max(1.0, float(round(c * 1.6))) for c in products["cost"].to_list()],
        ))
        customer_keys = customers["customer_key"].to_numpy()
        span_days = (self.end_date - self.start_date).days

        rows = []
        for i in range(n_orders):
            order_number = f"SO{43697 + i}"
            customer_key = int(self.rng.choice(customer_keys))
            if self.rng.random() < self.null_date_rate:
                order_date = None
            else:
                order_date = self.start_date + timedelta(days=int(self.rng.integers(0, span_days + 1)))

            for _ in range(int(self.rng.integers(1, 4))):
                product_key = int(self.rng.choice(product_keys))
                quantity = int(self.rng.choice([1, 1, 1, 2, 3]))
                price = prices[product_key]
                rows.append({
                    "order_number": order_number,
                    "product_key": product_key,
                    "customer_key": customer_key,
                    "order_date": order_date,
                    "sales_amount": price * quantity,
                    "quantity": quantity,
                    "price": price,
                })

        return pl.DataFrame(rows, schema={
            "order_number": pl.Utf8,
            "product_key": pl.Int64,
            "customer_key": pl.Int64,
            "order_date": pl.Date,
            "sales_amount": pl.Float64,
            "quantity": pl.Int64,
            "price": pl.Float64,
        })

    def generate(
        self,
        n_products: int = 200,
        n_customers: int = 1000,
        n_orders: int = 5000,
    ) -> Dict[str, pl.DataFrame]:
        """Generate all three tables keyed by table name"""
        products = self.generate_products(n_products)
        customers = self.generate_customers(n_customers)
        sales = self.generate_sales(products, customers, n_orders)

        logger.info(
            "Star schema generated",
            products=products.height,
            customers=customers.height,
            sales=sales.height,
        )
        return {
            "dim_products": products,
            "dim_customers": customers,
            "fact_sales": sales,
        }

    def write(
        self,
        output_dir: Union[str, Path],
        file_format: str = "csv",
        tables: Optional[Dict[str, pl.DataFrame]] = None,
    ) -> Dict[str, str]:
        """Write the tables to output_dir as csv or parquet"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        tables = tables or self.generate()

        paths = {}
        for name, df in tables.items():
            path = output_dir / f"{name}.{file_format}"
            if file_format == "parquet":
                df.write_parquet(path)
            else:
                df.write_csv(path)
            paths[name] = str(path)
            logger.info(f"Written {len(df)} rows to {path}")

        return paths
