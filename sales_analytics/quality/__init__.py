"""
Data Quality Module
"""
from .validators import (
    DataValidator,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
    coerce_schema,
    create_customers_validator,
    create_products_validator,
    create_sales_validator,
)

__all__ = [
    "DataValidator",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "coerce_schema",
    "create_customers_validator",
    "create_products_validator",
    "create_sales_validator",
]
