"""
Star Schema Snapshot Loader

Reads the three source tables of the sales star schema from CSV or Parquet
files and hands them over as typed, validated Polars DataFrames.
Supports:
- Format detection by file extension
- Schema coercion with hard rejection of invalid values
- Rule-based validation of each table
- Audit metadata (row counts, file hashes)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import hashlib

import polars as pl
from polars.exceptions import PolarsError
import structlog
from pydantic import BaseModel

from sales_analytics.config import get_settings
from sales_analytics.exceptions import InputValidationError, SourceNotFoundError
from sales_analytics.quality.validators import (
    coerce_schema,
    create_customers_validator,
    create_products_validator,
    create_sales_validator,
)

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    PARQUET = "parquet"


FACT_SALES = "fact_sales"
DIM_PRODUCTS = "dim_products"
DIM_CUSTOMERS = "dim_customers"

FACT_SALES_SCHEMA: Dict[str, pl.DataType] = {
    "order_number": pl.Utf8,
    "product_key": pl.Int64,
    "customer_key": pl.Int64,
    "order_date": pl.Date,
    "sales_amount": pl.Float64,
    "quantity": pl.Int64,
    "price": pl.Float64,
}

DIM_PRODUCTS_SCHEMA: Dict[str, pl.DataType] = {
    "product_key": pl.Int64,
    "product_name": pl.Utf8,
    "category": pl.Utf8,
    "subcategory": pl.Utf8,
    "cost": pl.Float64,
}

DIM_CUSTOMERS_SCHEMA: Dict[str, pl.DataType] = {
    "customer_key": pl.Int64,
    "customer_number": pl.Utf8,
    "first_name": pl.Utf8,
    "last_name": pl.Utf8,
    "birthdate": pl.Date,
}

TABLE_SCHEMAS = {
    FACT_SALES: FACT_SALES_SCHEMA,
    DIM_PRODUCTS: DIM_PRODUCTS_SCHEMA,
    DIM_CUSTOMERS: DIM_CUSTOMERS_SCHEMA,
}


@dataclass
class SourceFileConfig:
    """Configuration for reading one source table"""
    file_path: Union[str, Path]
    file_format: FileFormat
    table: str
    delimiter: str = ","
    encoding: str = "utf8"
    null_values: List[str] = field(default_factory=lambda: ["", "NULL", "null", "None", "NA", "N/A"])


class LoadResult(BaseModel):
    """Audit record of one table read"""
    file_path: str
    table: str
    rows_loaded: int = 0
    file_hash: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None


@dataclass
class StarSchema:
    """Typed snapshot of the three source tables"""
    sales: pl.DataFrame
    products: pl.DataFrame
    customers: pl.DataFrame
    load_results: List[LoadResult] = field(default_factory=list)


class SnapshotLoader:
    """
    Loads a read-only snapshot of the sales star schema.

    Example:
        loader = SnapshotLoader("data/raw")
        schema = loader.load()
        schema.sales.height
    """

    def __init__(
        self,
        source_path: Optional[Union[str, Path]] = None,
        strict_validation: Optional[bool] = None,
    ):
        settings = get_settings()
        self.source_path = Path(source_path or settings.data_lake.raw_path)
        self.strict_validation = (
            settings.report.strict_validation if strict_validation is None else strict_validation
        )

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file for audit"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, config: SourceFileConfig) -> pl.DataFrame:
        """Read CSV file with Polars"""
        return pl.read_csv(
            config.file_path,
            separator=config.delimiter,
            encoding=config.encoding,
            null_values=config.null_values,
            try_parse_dates=True,
            infer_schema_length=None,
        )

    def _read_parquet(self, config: SourceFileConfig) -> pl.DataFrame:
        """Read Parquet file"""
        return pl.read_parquet(config.file_path)

    def _read_file(self, config: SourceFileConfig) -> pl.DataFrame:
        """Read file based on format"""
        readers = {
            FileFormat.CSV: self._read_csv,
            FileFormat.PARQUET: self._read_parquet,
        }
        reader = readers.get(config.file_format)
        if not reader:
            raise ValueError(f"Unsupported file format: {config.file_format}")
        return reader(config)

    def locate(self, table: str) -> SourceFileConfig:
        """Find the file holding a table, preferring Parquet over CSV"""
        for file_format in (FileFormat.PARQUET, FileFormat.CSV):
            candidate = self.source_path / f"{table}.{file_format.value}"
            if candidate.exists():
                return SourceFileConfig(file_path=candidate, file_format=file_format, table=table)
        raise SourceNotFoundError(f"No source file for table '{table}' in {self.source_path}")

    def read_table(self, config: SourceFileConfig) -> pl.DataFrame:
        """
        Read one table and coerce it to its declared schema.

        Raises:
            SourceNotFoundError: if the file does not exist
            InputValidationError: if the file content cannot be typed
        """
        file_path = Path(config.file_path)
        if not file_path.exists():
            raise SourceNotFoundError(f"File not found: {file_path}")

        logger.info("Reading source table", table=config.table, file=str(file_path))

        try:
            df = self._read_file(config)
        except PolarsError as e:
            logger.error("Source table unreadable", table=config.table, error=str(e))
            raise InputValidationError(config.table, f"unreadable file content: {e}") from e

        return coerce_schema(df, TABLE_SCHEMAS[config.table], config.table)

    def _load_one(self, table: str) -> Tuple[pl.DataFrame, LoadResult]:
        started_at = datetime.now()
        config = self.locate(table)
        df = self.read_table(config)
        completed_at = datetime.now()

        result = LoadResult(
            file_path=str(config.file_path),
            table=table,
            rows_loaded=len(df),
            file_hash=self._compute_file_hash(Path(config.file_path)),
            load_duration_seconds=(completed_at - started_at).total_seconds(),
            started_at=started_at,
            completed_at=completed_at,
        )
        logger.info("Source table loaded", table=table, rows=len(df))
        return df, result

    def load(self) -> StarSchema:
        """
        Load and validate all three source tables.

        Returns:
            StarSchema with typed DataFrames

        Raises:
            SourceNotFoundError, InputValidationError
        """
        products, products_result = self._load_one(DIM_PRODUCTS)
        customers, customers_result = self._load_one(DIM_CUSTOMERS)
        sales, sales_result = self._load_one(FACT_SALES)

        return validate_star_schema(
            sales,
            products,
            customers,
            strict_mode=self.strict_validation,
            load_results=[products_result, customers_result, sales_result],
        )


def validate_star_schema(
    sales: pl.DataFrame,
    products: pl.DataFrame,
    customers: pl.DataFrame,
    strict_mode: bool = False,
    load_results: Optional[List[LoadResult]] = None,
) -> StarSchema:
    """
    Coerce and validate in-memory source tables.

    Orphaned fact keys are reported as warnings and kept.
    """
    products = coerce_schema(products, DIM_PRODUCTS_SCHEMA, DIM_PRODUCTS)
    customers = coerce_schema(customers, DIM_CUSTOMERS_SCHEMA, DIM_CUSTOMERS)
    sales = coerce_schema(sales, FACT_SALES_SCHEMA, FACT_SALES)

    create_products_validator(strict_mode).validate_or_raise(products, DIM_PRODUCTS)
    create_customers_validator(strict_mode).validate_or_raise(customers, DIM_CUSTOMERS)
    create_sales_validator(products, customers, strict_mode).validate_or_raise(sales, FACT_SALES)

    return StarSchema(
        sales=sales,
        products=products,
        customers=customers,
        load_results=load_results or [],
    )
