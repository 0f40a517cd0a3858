"""
Data Validation Module

Checks the star schema snapshot before any report is built.

Two stages:
- coerce_schema: every declared column present and castable to its type,
  otherwise the table is rejected
- DataValidator: row-level rules (key integrity, minimum values, orphaned
  foreign keys), each counted as the number of offending rows
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import polars as pl
from polars.exceptions import ComputeError, InvalidOperationError
import structlog

from sales_analytics.exceptions import InputValidationError

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Rejects the table
    WARNING = "warning"  # Logged; rejects only in strict mode


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Outcome of one rule"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Outcome of a validator run"""
    status: ValidationStatus
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def failures(self) -> List[ValidationCheck]:
        """Checks that did not pass"""
        return [c for c in self.checks if not c.passed]

    @property
    def failed_checks(self) -> int:
        return sum(1 for c in self.failures if c.severity == ValidationSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for c in self.failures if c.severity == ValidationSeverity.WARNING)


def _fractional_columns(df: pl.DataFrame, schema: Dict[str, pl.DataType]) -> List[str]:
    """Float columns declared as integers that hold non-whole values"""
    candidates = [
        col for col, dtype in schema.items()
        if dtype.is_integer() and df.schema[col].is_float()
    ]
    if not candidates:
        return []

    flags = df.select([
        (pl.col(col) != pl.col(col).floor()).any().alias(col) for col in candidates
    ]).row(0, named=True)
    return [col for col, fractional in flags.items() if fractional]


def coerce_schema(
    df: pl.DataFrame,
    schema: Dict[str, pl.DataType],
    table: str,
) -> pl.DataFrame:
    """
    Cast a source table to its declared schema.

    Every schema column must be present. Extra columns are dropped. A value
    that cannot be converted to the declared type rejects the whole table,
    including fractional numbers in integer columns.

    Raises:
        InputValidationError: on missing columns or uncastable values
    """
    missing = [col for col in schema if col not in df.columns]
    if missing:
        raise InputValidationError(table, f"missing required columns: {missing}")

    fractional = _fractional_columns(df, schema)
    if fractional:
        logger.error("Fractional values in integer columns", table=table, columns=fractional)
        raise InputValidationError(table, f"invalid value types: non-integer values in {fractional}")

    exprs = []
    for col, dtype in schema.items():
        current = df.schema[col]
        if current == dtype:
            exprs.append(pl.col(col))
        elif current == pl.Null:
            # Fully empty column read from CSV
            exprs.append(pl.col(col).cast(dtype))
        elif dtype == pl.Date and current == pl.Utf8:
            exprs.append(pl.col(col).str.to_date(strict=True))
        elif dtype == pl.Date and current == pl.Datetime:
            exprs.append(pl.col(col).dt.date())
        else:
            exprs.append(pl.col(col).cast(dtype, strict=True))

    try:
        return df.select(exprs)
    except (ComputeError, InvalidOperationError) as e:
        logger.error("Schema coercion failed", table=table, error=str(e))
        raise InputValidationError(table, f"invalid value types: {e}") from e


@dataclass
class ValidationRule:
    """A named boolean expression flagging offending rows"""
    name: str
    column: str
    violation: pl.Expr
    description: str
    severity: ValidationSeverity


class DataValidator:
    """
    Row-level rules evaluated in a single pass over the table.

    Example:
        validator = DataValidator().add_key_check("product_key")
        validator.validate_or_raise(products_df, "dim_products")
    """

    def __init__(self, strict_mode: bool = False):
        # Strict mode fails the run on warnings too
        self.strict_mode = strict_mode
        self._rules: List[ValidationRule] = []

    def _add(
        self,
        name: str,
        column: str,
        violation: pl.Expr,
        description: str,
        severity: ValidationSeverity,
    ) -> "DataValidator":
        self._rules.append(ValidationRule(name, column, violation, description, severity))
        return self

    def add_key_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Dimension key: present on every row and never repeated"""
        key = pl.col(column)
        return self._add(
            f"key_{column}", column, key.is_null() | key.is_duplicated(),
            "null or duplicate keys", severity,
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add(
            f"not_null_{column}", column, pl.col(column).is_null(), "null values", severity,
        )

    def add_min_check(
        self,
        column: str,
        min_value: float,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add(
            f"min_{column}", column, pl.col(column) < min_value,
            f"values below {min_value}", severity,
        )

    def add_reference_check(
        self,
        column: str,
        reference: pl.Series,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Foreign key values missing from the referenced dimension (nulls ignored)"""
        value = pl.col(column)
        return self._add(
            f"orphan_{column}", column,
            value.is_not_null() & ~value.is_in(reference.drop_nulls()),
            f"keys missing from {reference.name}", severity,
        )

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """Evaluate every rule and derive the overall status"""
        started_at = datetime.now()
        present = [r for r in self._rules if r.column in df.columns]

        counts: Dict[str, int] = {}
        if present:
            counts = df.select([
                r.violation.fill_null(False).sum().alias(r.name) for r in present
            ]).row(0, named=True)

        checks = []
        for rule in self._rules:
            if rule.column not in df.columns:
                checks.append(ValidationCheck(
                    name=rule.name,
                    passed=False,
                    severity=rule.severity,
                    message=f"Column '{rule.column}' not found",
                    total_rows=df.height,
                ))
                continue

            failed = counts[rule.name]
            checks.append(ValidationCheck(
                name=rule.name,
                passed=failed == 0,
                severity=rule.severity,
                message=f"'{rule.column}': {failed} rows with {rule.description}",
                failed_rows=failed,
                total_rows=df.height,
            ))

        result = ValidationResult(
            status=ValidationStatus.PASSED,
            checks=checks,
            started_at=started_at,
            completed_at=datetime.now(),
        )
        if result.failed_checks or (result.warning_count and self.strict_mode):
            result.status = ValidationStatus.FAILED
        elif result.warning_count:
            result.status = ValidationStatus.PARTIAL

        for check in result.failures:
            logger.warning(
                "Validation rule failed",
                rule=check.name,
                severity=check.severity.value,
                failed_rows=check.failed_rows,
            )
        logger.info(
            "Validation complete",
            status=result.status.value,
            rules=len(checks),
            rows=df.height,
        )
        return result

    def validate_or_raise(self, df: pl.DataFrame, table: str) -> ValidationResult:
        """Run all rules and reject the table if the run failed"""
        result = self.validate(df)
        if result.status == ValidationStatus.FAILED:
            messages = "; ".join(c.message for c in result.failures)
            raise InputValidationError(table, messages, checks=result.failures)
        return result


# Pre-built validators for the star schema tables
def create_sales_validator(
    products_df: Optional[pl.DataFrame] = None,
    customers_df: Optional[pl.DataFrame] = None,
    strict_mode: bool = False,
) -> DataValidator:
    """Fact rules: missing keys and negative quantities warn, orphans warn"""
    validator = DataValidator(strict_mode=strict_mode)
    for column in ("order_number", "product_key", "customer_key"):
        validator.add_not_null_check(column, severity=ValidationSeverity.WARNING)
    validator.add_min_check("quantity", 0, severity=ValidationSeverity.WARNING)

    if products_df is not None:
        validator.add_reference_check("product_key", products_df["product_key"])
    if customers_df is not None:
        validator.add_reference_check("customer_key", customers_df["customer_key"])
    return validator


def create_products_validator(strict_mode: bool = False) -> DataValidator:
    return (
        DataValidator(strict_mode=strict_mode)
        .add_key_check("product_key")
        .add_min_check("cost", 0, severity=ValidationSeverity.WARNING)
    )


def create_customers_validator(strict_mode: bool = False) -> DataValidator:
    return DataValidator(strict_mode=strict_mode).add_key_check("customer_key")
