"""Analytics services for Task Insights."""

from .productivity import (
    PRODUCTIVITY_WEIGHTS,
    ProductivityMetrics,
    ProductivityResult,
    ProductivityScorer,
)
from .trends import (
    InMemoryTrendStore,
    MetricResult,
    SqliteTrendStore,
    StatTrend,
    TrendComparator,
    TrendDirection,
    TrendStore,
    compare,
)
from .causes import CauseAnalyzer, CauseIndicator, CauseRule, Severity
from .forecast import (
    ForecastEngine,
    ForecastResult,
    RiskLevel,
    TaskPrediction,
    predict_task_completion,
)
from .report import (
    Recommendation,
    ReportOrchestrator,
    ReportResult,
    ReportSummary,
    TaskSource,
)

__all__ = [
    "PRODUCTIVITY_WEIGHTS",
    "ProductivityMetrics",
    "ProductivityResult",
    "ProductivityScorer",
    "InMemoryTrendStore",
    "MetricResult",
    "SqliteTrendStore",
    "StatTrend",
    "TrendComparator",
    "TrendDirection",
    "TrendStore",
    "compare",
    "CauseAnalyzer",
    "CauseIndicator",
    "CauseRule",
    "Severity",
    "ForecastEngine",
    "ForecastResult",
    "RiskLevel",
    "TaskPrediction",
    "predict_task_completion",
    "Recommendation",
    "ReportOrchestrator",
    "ReportResult",
    "ReportSummary",
    "TaskSource",
]
