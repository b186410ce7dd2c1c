"""Progress report orchestration.

Resolves access, derives the comparison period, fetches both task snapshots
concurrently and composes the metric, cause and forecast components into one
``ReportResult``. Nothing is returned unless every step succeeded.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..access import AccessPolicy, AllowAllPolicy, Caller, EntityDirectory
from ..domain import EntityType, Period, Task, TaskFilter
from ..errors import AccessDenied, AnalyticsError, DataUnavailable, NotFound
from ..utils.datetime import now_utc
from . import metrics
from .causes import CauseAnalyzer, CauseIndicator, default_rules
from .forecast import ForecastEngine, ForecastResult, RiskLevel, TaskPrediction, predict_task_completion
from .productivity import ProductivityResult, ProductivityScorer
from .trends import MetricResult, StatTrend, TrendComparator, compare

logger = logging.getLogger(__name__)


class TaskSource(ABC):
    """Data collaborator supplying task snapshots."""

    @abstractmethod
    async def fetch_tasks(self, task_filter: TaskFilter, period_end: datetime) -> List[Task]:
        """Tasks of the entity created on or before ``period_end``, with their
        dependency and assignee data."""


@dataclass
class Recommendation:
    """Suggested follow-up action. Reports currently leave this list empty."""
    title: str
    description: str
    action_type: str = "generic"  # reassign, resolve_dep, reduce_wip, escalate, generic
    confidence: str = "medium"
    priority: str = "normal"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "actionType": self.action_type,
            "confidence": self.confidence,
            "priority": self.priority,
        }


@dataclass
class ReportSummary:
    velocity: MetricResult
    completion_rate: MetricResult
    blocked_ratio: MetricResult
    overdue_tasks: MetricResult
    overall_risk: RiskLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "velocity": self.velocity.to_dict(),
            "completionRate": self.completion_rate.to_dict(),
            "blockedRatio": self.blocked_ratio.to_dict(),
            "overdueTasks": self.overdue_tasks.to_dict(),
            "overallRisk": self.overall_risk.value,
        }


@dataclass
class ReportResult:
    """Complete progress report for one entity and period."""
    entity: TaskFilter
    period_a: Period
    period_b: Period
    summary: ReportSummary
    causes: List[CauseIndicator]
    forecast: ForecastResult
    actions: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": {
                "type": self.entity.entity_type.value,
                "id": self.entity.entity_id,
            },
            "periodA": self.period_a.to_dict(),
            "periodB": self.period_b.to_dict(),
            "summary": self.summary.to_dict(),
            "causes": [cause.to_dict() for cause in self.causes],
            "forecast": self.forecast.to_dict(),
            "actions": [action.to_dict() for action in self.actions],
        }


class ReportOrchestrator:
    """Entry point for productivity scores, progress reports and task forecasts."""

    def __init__(self, task_source: TaskSource,
                 access_policy: Optional[AccessPolicy] = None,
                 directory: Optional[EntityDirectory] = None,
                 trend_comparator: Optional[TrendComparator] = None,
                 final_statuses: Sequence[str] = (),
                 urgent_priority: str = "urgent"):
        self.task_source = task_source
        self.access_policy = access_policy or AllowAllPolicy()
        self.directory = directory
        self.trend_comparator = trend_comparator
        self.final_statuses = tuple(final_statuses)
        self.scorer = ProductivityScorer(self.final_statuses, urgent_priority)
        self.cause_analyzer = CauseAnalyzer(default_rules(urgent_priority))
        self.forecast_engine = ForecastEngine()

    def authorize(self, caller: Caller, entity_type: EntityType,
                  entity_id: Optional[Any]) -> TaskFilter:
        """Resolve the entity and confirm access, before any data is fetched."""
        if entity_type != EntityType.GLOBAL:
            if entity_id is None:
                raise AnalyticsError(f"{entity_type.value.capitalize()} ID required")
            if self.directory is not None and not self.directory.exists(entity_type, entity_id):
                raise NotFound(entity_type.value, entity_id)
        else:
            entity_id = None

        if not self.access_policy.can_access(caller, entity_type, entity_id):
            logger.info("Access denied: user %s -> %s %s", caller.user_id, entity_type.value, entity_id)
            raise AccessDenied(entity_type.value, entity_id)

        return TaskFilter(entity_type, entity_id)

    async def _fetch(self, task_filter: TaskFilter, period_end: datetime) -> List[Task]:
        try:
            return await self.task_source.fetch_tasks(task_filter, period_end)
        except AnalyticsError:
            raise
        except Exception as exc:
            logger.error("Fetching tasks for %s failed: %s", task_filter.key, exc)
            raise DataUnavailable() from exc

    async def build_report(self, caller: Caller, entity_type: EntityType,
                           entity_id: Optional[Any], period_a: Period,
                           now: Optional[datetime] = None) -> ReportResult:
        task_filter = self.authorize(caller, entity_type, entity_id)
        now = now or now_utc()
        period_b = period_a.previous()

        tasks_a, tasks_b = await asyncio.gather(
            self._fetch(task_filter, period_a.end),
            self._fetch(task_filter, period_b.end),
        )

        metrics_a = metrics.period_metrics(tasks_a, period_a, self.final_statuses)
        metrics_b = metrics.period_metrics(tasks_b, period_b, self.final_statuses)

        causes = self.cause_analyzer.analyze(tasks_a, period_a)
        forecast = self.forecast_engine.forecast(
            metrics_a.active_tasks,
            velocity_a=metrics_a.velocity,
            velocity_b=metrics_b.velocity,
            blocked_ratio=metrics_a.blocked_ratio,
            overdue_a=metrics_a.overdue_count,
            overdue_b=metrics_b.overdue_count,
            now=now,
        )

        summary = ReportSummary(
            velocity=compare(metrics_a.velocity, metrics_b.velocity, "hrs"),
            completion_rate=compare(metrics_a.completion_rate, metrics_b.completion_rate, "%"),
            blocked_ratio=compare(metrics_a.blocked_ratio, metrics_b.blocked_ratio, "%"),
            overdue_tasks=compare(metrics_a.overdue_count, metrics_b.overdue_count, "tasks"),
            overall_risk=forecast.risk_level,
        )

        logger.info("Report for %s: risk=%s, %d causes",
                    task_filter.key, forecast.risk_level.value, len(causes))
        return ReportResult(
            entity=task_filter,
            period_a=period_a,
            period_b=period_b,
            summary=summary,
            causes=causes,
            forecast=forecast,
            actions=[],
        )

    async def productivity(self, caller: Caller, entity_type: EntityType,
                           entity_id: Optional[Any], period: Period,
                           now: Optional[datetime] = None) -> ProductivityResult:
        task_filter = self.authorize(caller, entity_type, entity_id)
        tasks = await self._fetch(task_filter, period.end)
        return self.scorer.score(tasks, period, task_filter, now)

    async def score_many(self, caller: Caller, task_filters: Sequence[TaskFilter],
                         period: Period, now: Optional[datetime] = None
                         ) -> Dict[str, ProductivityResult]:
        """Score several entities concurrently; keyed by ``TaskFilter.key``.

        Access is checked for every entity before any fetch starts.
        """
        for task_filter in task_filters:
            self.authorize(caller, task_filter.entity_type, task_filter.entity_id)

        async def score_one(task_filter: TaskFilter) -> ProductivityResult:
            tasks = await self._fetch(task_filter, period.end)
            return self.scorer.score(tasks, period, task_filter, now)

        results = await asyncio.gather(*(score_one(f) for f in task_filters))
        return {f.key: result for f, result in zip(task_filters, results)}

    async def forecast_tasks(self, caller: Caller, task_ids: Sequence[Any],
                             entity_type: EntityType = EntityType.GLOBAL,
                             entity_id: Optional[Any] = None,
                             now: Optional[datetime] = None
                             ) -> Dict[Any, Optional[TaskPrediction]]:
        """Per-task completion predictions; unknown ids map to None."""
        task_filter = self.authorize(caller, entity_type, entity_id)
        now = now or now_utc()
        tasks = await self._fetch(task_filter, now)
        by_id = {task.id: task for task in tasks}
        return {
            task_id: (
                predict_task_completion(by_id[task_id], tasks, now, self.final_statuses)
                if task_id in by_id else None
            )
            for task_id in task_ids
        }

    def stat_trend(self, entity_type: EntityType, entity_id: Optional[Any],
                   stat_key: str, value: float) -> Optional[StatTrend]:
        """Record ``value`` and report its direction; None without a trend store."""
        if self.trend_comparator is None:
            return None
        return self.trend_comparator.get_stat_trend(entity_type.value, entity_id, stat_key, value)
