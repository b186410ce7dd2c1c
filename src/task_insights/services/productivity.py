"""Weighted productivity scoring for a project, user, team or the whole organisation."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from ..domain import Period, Priority, Task, TaskFilter
from ..utils.datetime import round_half_up
from . import metrics

logger = logging.getLogger(__name__)

PRODUCTIVITY_WEIGHTS: Dict[str, float] = {
    "completion": 0.30,
    "on_time": 0.25,
    "focus": 0.15,
    "dependency": 0.15,
    "urgent": 0.15,
}


@dataclass
class ProductivityMetrics:
    """Component metrics, each rounded to a whole number."""
    completion_rate: int
    on_time_rate: int
    focus_rate: int
    urgent_rate: int
    dependency_rate: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completionRate": self.completion_rate,
            "onTimeRate": self.on_time_rate,
            "focusRate": self.focus_rate,
            "urgentRate": self.urgent_rate,
            "dependencyRate": self.dependency_rate,
        }


@dataclass
class ProductivityResult:
    """Overall score (0-100) and its components."""
    score: int
    metrics: ProductivityMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "metrics": self.metrics.to_dict()}


class ProductivityScorer:
    """Scores any entity; the entity is chosen by a TaskFilter, not a code path."""

    def __init__(self, final_statuses: Sequence[str] = (),
                 urgent_priority: str = Priority.URGENT,
                 weights: Optional[Dict[str, float]] = None):
        self.final_statuses = tuple(final_statuses)
        self.urgent_priority = urgent_priority
        self.weights = dict(weights or PRODUCTIVITY_WEIGHTS)

    def score(self, tasks: Iterable[Task], period: Period,
              task_filter: Optional[TaskFilter] = None,
              now: Optional[datetime] = None) -> ProductivityResult:
        selected = (task_filter or TaskFilter.everything()).apply(tasks)

        completion = metrics.completion_rate(selected, period, self.final_statuses)
        on_time = metrics.on_time_rate(selected, period, self.final_statuses)
        focus = metrics.focus_rate(selected, period)
        urgent = metrics.urgent_response_rate(selected, period, self.urgent_priority)
        dependency = metrics.dependency_health(selected, now, self.final_statuses)

        weighted = (
            completion * self.weights["completion"]
            + on_time * self.weights["on_time"]
            + focus * self.weights["focus"]
            + dependency * self.weights["dependency"]
            + urgent * self.weights["urgent"]
        )

        result = ProductivityResult(
            score=int(round_half_up(weighted)),
            metrics=ProductivityMetrics(
                completion_rate=int(round_half_up(completion)),
                on_time_rate=int(round_half_up(on_time)),
                focus_rate=int(round_half_up(focus)),
                urgent_rate=int(round_half_up(urgent)),
                dependency_rate=int(round_half_up(dependency)),
            ),
        )
        logger.debug(
            "Scored %s over %d tasks: %d",
            (task_filter or TaskFilter.everything()).key, len(selected), result.score,
        )
        return result
