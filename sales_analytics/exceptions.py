"""
Custom exceptions for the reporting pipeline.
"""
from typing import List, Optional


class SalesAnalyticsError(Exception):
    """Base exception for reporting errors."""
    pass


class SourceNotFoundError(SalesAnalyticsError):
    """Raised when a source table file is missing or unreadable."""
    pass


class InputValidationError(SalesAnalyticsError):
    """Raised when a source table is rejected by validation."""

    def __init__(self, table: str, message: str, checks: Optional[List] = None):
        self.table = table
        self.checks = checks or []
        super().__init__(f"{table}: {message}")
