"""
Report Transformation Module
"""
from .aggregators import MetricAggregator, aggregate_sales
from .trends import TrendAnalyzer
from .reports import ReportBuilder, ReportResult, ReportRun, build_reports

__all__ = [
    "MetricAggregator",
    "aggregate_sales",
    "TrendAnalyzer",
    "ReportBuilder",
    "ReportResult",
    "ReportRun",
    "build_reports",
]
