"""
Sales Analytics Reports

Aggregation, trend analysis and segmentation over a sales star schema.
"""

__version__ = "1.0.0"
