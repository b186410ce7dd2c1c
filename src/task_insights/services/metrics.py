"""Metric primitives computed from a task snapshot for one period.

Rate metrics return a percentage in ``[0, 100]``. Every primitive treats a
missing optional field as "not applicable" for that task, and an empty
population as vacuous success (100), so no task set can make them raise.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from ..domain import Period, Priority, Task
from ..utils.datetime import now_utc, same_utc_day

logger = logging.getLogger(__name__)

# (max whole hours from creation to start, score)
URGENT_RESPONSE_STEPS: Tuple[Tuple[int, float], ...] = (
    (2, 100.0),
    (4, 80.0),
    (8, 50.0),
    (24, 20.0),
)
URGENT_RESPONSE_FLOOR = 0.0

BLOCKING_PENALTY = 20.0


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 100.0


def completion_rate(tasks: Iterable[Task], period: Period,
                    final_statuses: Sequence[str] = ()) -> float:
    """Share of tasks due, planned or completed in the period that are done."""
    active = [
        t for t in tasks
        if period.contains(t.due_date)
        or period.contains(t.planned_date)
        or period.contains(t.completed_at)
    ]
    done = [t for t in active if t.is_done(final_statuses)]
    return _percentage(len(done), len(active))


def on_time_rate(tasks: Iterable[Task], period: Period,
                 final_statuses: Sequence[str] = ()) -> float:
    """Share of tasks completed in the period by their due date.

    A task without a due date counts as on time.
    """
    completed = [
        t for t in tasks
        if t.is_done(final_statuses) and period.contains(t.completed_at)
    ]
    on_time = [t for t in completed if t.due_date is None or t.completed_at <= t.due_date]
    return _percentage(len(on_time), len(completed))


def focus_rate(tasks: Iterable[Task], period: Period) -> float:
    """Share of tasks planned in the period completed on their planned UTC day."""
    planned = [t for t in tasks if period.contains(t.planned_date)]
    hits = [
        t for t in planned
        if t.completed_at is not None and same_utc_day(t.completed_at, t.planned_date)
    ]
    return _percentage(len(hits), len(planned))


def urgent_response_points(hours: int) -> float:
    """Step score for the whole hours between an urgent task's creation and start."""
    for limit, points in URGENT_RESPONSE_STEPS:
        if hours <= limit:
            return points
    return URGENT_RESPONSE_FLOOR


def urgent_response_rate(tasks: Iterable[Task], period: Period,
                         urgent_priority: str = Priority.URGENT) -> float:
    """Average response score over urgent tasks created in the period and started."""
    urgent = [
        t for t in tasks
        if t.priority == urgent_priority
        and period.contains(t.created_at)
        and t.started_at is not None
    ]
    if not urgent:
        return 100.0

    total = 0.0
    for task in urgent:
        # whole hours, truncated toward zero
        hours = int((task.started_at - task.created_at).total_seconds() / 3600)
        total += urgent_response_points(hours)
    return total / len(urgent)


def overdue_blocking_count(tasks: Iterable[Task], now: Optional[datetime] = None,
                           final_statuses: Sequence[str] = ()) -> int:
    """Open tasks past their due date that other tasks depend on."""
    now = now or now_utc()
    return sum(
        1 for t in tasks
        if not t.is_terminal(final_statuses)
        and t.due_date is not None
        and t.due_date < now
        and t.has_dependents
    )


def dependency_health(tasks: Iterable[Task], now: Optional[datetime] = None,
                      final_statuses: Sequence[str] = ()) -> float:
    """100 minus a fixed penalty per overdue blocking task, floored at 0."""
    blocking = overdue_blocking_count(tasks, now, final_statuses)
    return max(0.0, 100.0 - BLOCKING_PENALTY * blocking)


# Report metrics

def completed_in_period(tasks: Iterable[Task], period: Period,
                        final_statuses: Sequence[str] = ()) -> List[Task]:
    return [
        t for t in tasks
        if t.is_done(final_statuses) and period.contains(t.completed_at)
    ]


def velocity(tasks: Iterable[Task], period: Period,
             final_statuses: Sequence[str] = ()) -> float:
    """Estimated hours of the tasks completed within the period."""
    return sum(t.estimated_hours for t in completed_in_period(tasks, period, final_statuses))


def active_tasks(tasks: Iterable[Task], final_statuses: Sequence[str] = ()) -> List[Task]:
    """Tasks not yet done or cancelled."""
    return [t for t in tasks if not t.is_terminal(final_statuses)]


def blocked_ratio(tasks: Iterable[Task], final_statuses: Sequence[str] = ()) -> float:
    """Percentage of active tasks with at least one incomplete dependency.

    Unlike the rate metrics, an empty population scores 0 (nothing blocked).
    """
    active = active_tasks(tasks, final_statuses)
    if not active:
        return 0.0
    blocked = [t for t in active if t.has_incomplete_dependency(final_statuses)]
    return (len(blocked) / len(active)) * 100


def overdue_count(tasks: Iterable[Task], period: Period) -> int:
    """Tasks due before the period ends that were not completed by then."""
    return sum(
        1 for t in tasks
        if t.due_date is not None
        and t.due_date < period.end
        and (t.completed_at is None or t.completed_at > period.end)
    )


@dataclass
class PeriodMetrics:
    """Report figures for one period, compared across Period A and B."""
    velocity: float
    completion_rate: float
    blocked_ratio: float
    overdue_count: int
    active_tasks: List[Task] = field(default_factory=list, repr=False)


def period_metrics(tasks: Sequence[Task], period: Period,
                   final_statuses: Sequence[str] = ()) -> PeriodMetrics:
    """Compute the report figures for one period's snapshot."""
    metrics = PeriodMetrics(
        velocity=velocity(tasks, period, final_statuses),
        completion_rate=completion_rate(tasks, period, final_statuses),
        blocked_ratio=blocked_ratio(tasks, final_statuses),
        overdue_count=overdue_count(tasks, period),
        active_tasks=active_tasks(tasks, final_statuses),
    )
    logger.debug(
        "Period %s..%s: %d tasks, velocity=%.1f, blocked=%.1f%%, overdue=%d",
        period.start.date(), period.end.date(), len(tasks),
        metrics.velocity, metrics.blocked_ratio, metrics.overdue_count,
    )
    return metrics
