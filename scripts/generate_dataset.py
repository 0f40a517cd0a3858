"""
Star Schema Dataset Generator
Writes fact_sales, dim_products and dim_customers for local report runs.

Usage:
    python scripts/generate_dataset.py --output-dir data/raw --orders 20000
"""

import argparse
from pathlib import Path

from sales_analytics.config.logging import configure_logging
from sales_analytics.data import StarSchemaGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic sales star schema")
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR))
    parser.add_argument("--format", choices=["csv", "parquet"], default="csv")
    parser.add_argument("--products", type=int, default=200)
    parser.add_argument("--customers", type=int, default=1000)
    parser.add_argument("--orders", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    configure_logging(log_format="text")

    generator = StarSchemaGenerator(seed=args.seed)
    tables = generator.generate(
        n_products=args.products,
        n_customers=args.customers,
        n_orders=args.orders,
    )
    paths = generator.write(args.output_dir, file_format=args.format, tables=tables)

    print("=" * 60)
    print("Star schema generated")
    print("=" * 60)
    for name, path in paths.items():
        print(f"   {name}: {tables[name].height:,} rows -> {path}")


if __name__ == "__main__":
    main()
