"""
Data Ingestion Module
"""
from .snapshot_loader import SnapshotLoader, StarSchema, validate_star_schema

__all__ = [
    "SnapshotLoader",
    "StarSchema",
    "validate_star_schema",
]
