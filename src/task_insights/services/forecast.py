"""Completion forecasting and risk classification.

Both forecasts here are deterministic heuristics rather than statistical
models. ``confidence_score`` is a coarse signal (80 when there is any
velocity to extrapolate to a representable date, 0 otherwise), not a
probability.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain import Task
from ..utils.datetime import (
    add_business_days,
    business_days_between,
    now_utc,
    round_half_up,
    to_iso_string,
)

logger = logging.getLogger(__name__)

# Project forecast
ZERO_VELOCITY_RISK = 5
BLOCKED_RATIO_RISK = 3
GROWING_BACKLOG_RISK = 2
BLOCKED_RATIO_THRESHOLD = 10.0  # percent
HIGH_RISK_SCORE = 6
MEDIUM_RISK_SCORE = 3
DAYS_PER_WEEK = 7
VELOCITY_CONFIDENCE = 80

ZERO_VELOCITY_FACTOR = "Zero velocity - cannot predict completion"
BLOCKED_RATIO_FACTOR = "High blocked ratio (>10%)"
GROWING_BACKLOG_FACTOR = "Growing overdue backlog"
UNBOUNDED_FORECAST_FACTOR = "Velocity too low to predict completion"

# Per-task prediction
WORK_HOURS_PER_DAY = 8
HISTORY_SIZE = 10
DEFAULT_PESSIMISM = 1.2
BASE_TASK_CONFIDENCE = 85
DEPENDENCY_CONFIDENCE_PENALTY = 15
NO_ASSIGNEE_CONFIDENCE_PENALTY = 20
HIGH_DELAY_BUSINESS_DAYS = 2


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def risk_level_for(score: int) -> RiskLevel:
    if score >= HIGH_RISK_SCORE:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_SCORE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@dataclass
class ForecastResult:
    """Predicted completion of the remaining work."""
    predicted_completion_date: Optional[datetime]
    weeks_remaining: Optional[float]
    risk_level: RiskLevel
    confidence_score: int
    risk_factors: List[str] = field(default_factory=list)
    remaining_hours: float = 0.0
    average_velocity: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "predictedCompletionDate": to_iso_string(self.predicted_completion_date),
            "weeksRemaining": self.weeks_remaining,
            "riskLevel": self.risk_level.value,
            "confidenceScore": self.confidence_score,
            "riskFactors": list(self.risk_factors),
        }


class ForecastEngine:
    """Extrapolates remaining estimated hours at the average weekly velocity."""

    def forecast(self, active_tasks: Sequence[Task],
                 velocity_a: float, velocity_b: float,
                 blocked_ratio: float = 0.0,
                 overdue_a: int = 0, overdue_b: int = 0,
                 now: Optional[datetime] = None) -> ForecastResult:
        now = now or now_utc()
        remaining_hours = sum(task.estimated_hours for task in active_tasks)
        avg_velocity = (velocity_a + velocity_b) / 2

        weeks_remaining = None
        predicted_date = None
        risk_factors = []
        risk_score = 0

        if remaining_hours > 0:
            if avg_velocity > 0:
                weeks_remaining = remaining_hours / avg_velocity
                try:
                    predicted_date = now + timedelta(days=math.ceil(weeks_remaining * DAYS_PER_WEEK))
                except (OverflowError, ValueError):
                    # past datetime.max
                    weeks_remaining = None
                    risk_factors.append(UNBOUNDED_FORECAST_FACTOR)
                    risk_score += ZERO_VELOCITY_RISK
            else:
                risk_factors.append(ZERO_VELOCITY_FACTOR)
                risk_score += ZERO_VELOCITY_RISK

        if blocked_ratio > BLOCKED_RATIO_THRESHOLD:
            risk_factors.append(BLOCKED_RATIO_FACTOR)
            risk_score += BLOCKED_RATIO_RISK

        if overdue_a > overdue_b:
            risk_factors.append(GROWING_BACKLOG_FACTOR)
            risk_score += GROWING_BACKLOG_RISK

        risk_level = risk_level_for(risk_score)
        logger.debug(
            "Forecast: remaining=%.1fh avg_velocity=%.1fh risk_score=%d (%s)",
            remaining_hours, avg_velocity, risk_score, risk_level.value,
        )

        return ForecastResult(
            predicted_completion_date=predicted_date,
            weeks_remaining=(
                round_half_up(weeks_remaining, 1) if weeks_remaining is not None else None
            ),
            risk_level=risk_level,
            confidence_score=(
                VELOCITY_CONFIDENCE
                if avg_velocity > 0 and UNBOUNDED_FORECAST_FACTOR not in risk_factors else 0
            ),
            risk_factors=risk_factors,
            remaining_hours=remaining_hours,
            average_velocity=avg_velocity,
        )


@dataclass
class TaskPrediction:
    """Predicted completion of a single task."""
    task_id: Any
    predicted_date: datetime
    risk_level: RiskLevel
    confidence: int
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "predictedDate": to_iso_string(self.predicted_date),
            "riskLevel": self.risk_level.value,
            "confidence": self.confidence,
            "explanation": self.explanation,
        }


def recent_completions(task: Task, history: Iterable[Task],
                       limit: int = HISTORY_SIZE,
                       final_statuses: Sequence[str] = ()) -> List[Task]:
    """Most recently completed tasks sharing an assignee with ``task``."""
    assignees = set(task.assignees)
    completed = [
        t for t in history
        if t.id != task.id
        and t.is_done(final_statuses)
        and t.completed_at is not None
        and assignees.intersection(t.assignees)
    ]
    completed.sort(key=lambda t: t.completed_at, reverse=True)
    return completed[:limit]


def pessimism_factor(samples: Sequence[Task]) -> float:
    """Mean actual/estimated hours ratio, or the default when nothing is measurable."""
    ratios = [
        t.actual_hours / t.estimated_hours
        for t in samples
        if t.estimated_hours > 0 and t.actual_hours > 0
    ]
    if not ratios:
        return DEFAULT_PESSIMISM
    return sum(ratios) / len(ratios)


def predict_task_completion(task: Task, history: Iterable[Task] = (),
                            now: Optional[datetime] = None,
                            final_statuses: Sequence[str] = ()) -> TaskPrediction:
    """Predict when ``task`` will be done from its estimate, its assignees' track
    record and its open dependencies."""
    now = now or now_utc()

    work_days = task.estimated_hours / WORK_HOURS_PER_DAY if task.estimated_hours > 0 else 1.0
    if task.assignees:
        samples = recent_completions(task, history, final_statuses=final_statuses)
        if samples and task.estimated_hours > 0:
            work_days = task.estimated_hours * pessimism_factor(samples) / WORK_HOURS_PER_DAY

    start = now
    dependency_risk = False
    for dep in task.dependencies:
        if dep.is_done(final_statuses):
            continue
        dependency_risk = True
        dep_end = dep.due_date or now + timedelta(days=1)
        if dep_end > start:
            start = dep_end

    predicted = add_business_days(start, math.ceil(work_days))

    confidence = BASE_TASK_CONFIDENCE
    reasons = []
    if dependency_risk:
        confidence -= DEPENDENCY_CONFIDENCE_PENALTY
        reasons.append("Dependent on incomplete tasks")

    risk_level = RiskLevel.LOW
    if task.due_date is not None and predicted > task.due_date:
        reasons.append("Historical velocity suggests delay")
        delay = business_days_between(predicted, task.due_date)
        risk_level = RiskLevel.HIGH if delay > HIGH_DELAY_BUSINESS_DAYS else RiskLevel.MEDIUM

    if not task.assignees:
        confidence -= NO_ASSIGNEE_CONFIDENCE_PENALTY
        reasons.append("No assignee to gauge velocity")

    return TaskPrediction(
        task_id=task.id,
        predicted_date=predicted,
        risk_level=risk_level,
        confidence=confidence,
        explanation=", ".join(reasons) or "Based on average team velocity",
    )
