"""Tests for the completion forecast and per-task predictions."""

from datetime import datetime, timedelta, timezone

import pytest

from task_insights.domain import TaskDependency
from task_insights.services.forecast import (
    BLOCKED_RATIO_FACTOR,
    GROWING_BACKLOG_FACTOR,
    UNBOUNDED_FORECAST_FACTOR,
    ZERO_VELOCITY_FACTOR,
    ForecastEngine,
    RiskLevel,
    pessimism_factor,
    predict_task_completion,
    recent_completions,
    risk_level_for,
)

UTC = timezone.utc


class TestForecastEngine:
    """Test suite for ForecastEngine"""

    def test_nothing_remaining(self, now, make_task):
        result = ForecastEngine().forecast([make_task(estimated_hours=0)], 0, 0, now=now)

        assert result.predicted_completion_date is None
        assert result.weeks_remaining is None
        assert result.risk_factors == []
        assert result.risk_level == RiskLevel.LOW
        assert result.confidence_score == 0

    def test_extrapolates_average_velocity(self, now, make_task):
        tasks = [make_task(estimated_hours=25), make_task(estimated_hours=15)]
        result = ForecastEngine().forecast(tasks, velocity_a=12, velocity_b=8, now=now)

        assert result.weeks_remaining == 4.0
        assert result.predicted_completion_date == now + timedelta(days=28)
        assert result.confidence_score == 80
        assert result.risk_level == RiskLevel.LOW

    def test_partial_weeks_round_days_up(self, now, make_task):
        result = ForecastEngine().forecast([make_task(estimated_hours=10)], 3, 0, now=now)

        assert result.weeks_remaining == pytest.approx(6.7)
        assert result.predicted_completion_date == now + timedelta(days=47)

    def test_zero_velocity(self, now, make_task):
        result = ForecastEngine().forecast([make_task(estimated_hours=8)], 0, 0, now=now)

        assert result.predicted_completion_date is None
        assert result.risk_factors == [ZERO_VELOCITY_FACTOR]
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.confidence_score == 0

    def test_unrepresentable_date_is_treated_as_unpredictable(self, now, make_task):
        result = ForecastEngine().forecast([make_task(estimated_hours=5000)], 0.01, 0.01, now=now)

        assert result.predicted_completion_date is None
        assert result.weeks_remaining is None
        assert result.risk_factors == [UNBOUNDED_FORECAST_FACTOR]
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.confidence_score == 0
        assert result.to_dict()["predictedCompletionDate"] is None

    def test_all_risk_factors(self, now, make_task):
        result = ForecastEngine().forecast(
            [make_task(estimated_hours=8)], 0, 0,
            blocked_ratio=25, overdue_a=4, overdue_b=1, now=now,
        )
        assert result.risk_factors == [
            ZERO_VELOCITY_FACTOR, BLOCKED_RATIO_FACTOR, GROWING_BACKLOG_FACTOR,
        ]
        assert result.risk_level == RiskLevel.HIGH

    def test_blocked_ratio_threshold_is_exclusive(self, now, make_task):
        at_threshold = ForecastEngine().forecast([make_task(estimated_hours=8)], 4, 4,
                                                 blocked_ratio=10, now=now)
        above = ForecastEngine().forecast([make_task(estimated_hours=8)], 4, 4,
                                          blocked_ratio=10.5, now=now)
        assert at_threshold.risk_factors == []
        assert above.risk_factors == [BLOCKED_RATIO_FACTOR]
        assert above.risk_level == RiskLevel.MEDIUM

    def test_growing_backlog_alone_is_low_risk(self, now, make_task):
        result = ForecastEngine().forecast([make_task(estimated_hours=8)], 4, 4,
                                           overdue_a=3, overdue_b=2, now=now)
        assert result.risk_factors == [GROWING_BACKLOG_FACTOR]
        assert result.risk_level == RiskLevel.LOW

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW), (2, RiskLevel.LOW), (3, RiskLevel.MEDIUM),
        (5, RiskLevel.MEDIUM), (6, RiskLevel.HIGH), (10, RiskLevel.HIGH),
    ])
    def test_risk_levels(self, score, level):
        assert risk_level_for(score) == level

    def test_to_dict(self, now, make_task):
        data = ForecastEngine().forecast([make_task(estimated_hours=8)], 0, 0, now=now).to_dict()
        assert data == {
            "predictedCompletionDate": None,
            "weeksRemaining": None,
            "riskLevel": "medium",
            "confidenceScore": 0,
            "riskFactors": [ZERO_VELOCITY_FACTOR],
        }


class TestTaskPrediction:
    """Test suite for per-task completion predictions"""

    def test_unassigned_task(self, now, make_task):
        prediction = predict_task_completion(make_task(estimated_hours=16), now=now)

        # Friday + 2 business days
        assert prediction.predicted_date == datetime(2024, 5, 14, 12, tzinfo=UTC)
        assert prediction.confidence == 65
        assert prediction.risk_level == RiskLevel.LOW
        assert prediction.explanation == "No assignee to gauge velocity"

    def test_assignee_history_scales_estimate(self, now, at, make_task):
        history = [make_task(status="completed", assignees=[7], estimated_hours=4,
                             actual_hours=6, completed_at=at(-1))]
        task = make_task(estimated_hours=8, assignees=[7])
        prediction = predict_task_completion(task, history, now)

        # 8h * 1.5 = 1.5 days, rounded up to 2
        assert prediction.predicted_date == datetime(2024, 5, 14, 12, tzinfo=UTC)
        assert prediction.confidence == 85
        assert prediction.explanation == "Based on average team velocity"

    def test_default_pessimism_without_measured_history(self, now, at, make_task):
        history = [make_task(status="completed", assignees=[7], estimated_hours=4,
                             completed_at=at(-1))]
        task = make_task(estimated_hours=16, assignees=[7])
        prediction = predict_task_completion(task, history, now)

        # 16h * 1.2 = 2.4 days, rounded up to 3
        assert prediction.predicted_date == datetime(2024, 5, 15, 12, tzinfo=UTC)

    def test_waits_for_open_dependency(self, now, make_task):
        dep = TaskDependency(task_id=50, status="in_progress",
                             due_date=datetime(2024, 5, 16, 9, tzinfo=UTC))
        task = make_task(estimated_hours=8, assignees=[7], dependencies=[dep])
        prediction = predict_task_completion(task, now=now)

        assert prediction.predicted_date == datetime(2024, 5, 17, 9, tzinfo=UTC)
        assert prediction.confidence == 70
        assert prediction.explanation == "Dependent on incomplete tasks"

    def test_done_dependency_is_ignored(self, now, make_task):
        dep = TaskDependency(task_id=50, status="completed",
                             due_date=datetime(2024, 6, 1, tzinfo=UTC))
        task = make_task(estimated_hours=8, assignees=[7], dependencies=[dep])
        assert predict_task_completion(task, now=now).confidence == 85

    def test_dependency_in_configured_final_status_is_ignored(self, now, make_task):
        dep = TaskDependency(task_id=50, status="done",
                             due_date=datetime(2024, 6, 1, tzinfo=UTC))
        task = make_task(estimated_hours=8, assignees=[7], dependencies=[dep])

        assert predict_task_completion(task, now=now).confidence == 70
        prediction = predict_task_completion(task, now=now, final_statuses=["done"])
        assert prediction.confidence == 85
        assert prediction.predicted_date == datetime(2024, 5, 13, 12, tzinfo=UTC)

    def test_late_by_several_business_days_is_high_risk(self, now, make_task):
        task = make_task(estimated_hours=40, due_date=datetime(2024, 5, 13, tzinfo=UTC))
        prediction = predict_task_completion(task, now=now)

        assert prediction.predicted_date == datetime(2024, 5, 17, 12, tzinfo=UTC)
        assert prediction.risk_level == RiskLevel.HIGH
        assert prediction.explanation == (
            "Historical velocity suggests delay, No assignee to gauge velocity"
        )

    def test_slightly_late_is_medium_risk(self, now, make_task):
        task = make_task(estimated_hours=16, assignees=[1],
                         due_date=datetime(2024, 5, 14, tzinfo=UTC))
        assert predict_task_completion(task, now=now).risk_level == RiskLevel.MEDIUM

    def test_unestimated_task_takes_a_day(self, now, make_task):
        prediction = predict_task_completion(make_task(assignees=[1]), now=now)
        assert prediction.predicted_date == datetime(2024, 5, 13, 12, tzinfo=UTC)


class TestHistory:

    def test_recent_completions_share_an_assignee(self, at, make_task):
        task = make_task(assignees=[1, 2])
        history = [
            task,
            make_task(status="completed", assignees=[2], completed_at=at(-3)),
            make_task(status="completed", assignees=[1], completed_at=at(-1)),
            make_task(status="completed", assignees=[3], completed_at=at(-2)),
            make_task(status="pending", assignees=[1]),
        ]
        recent = recent_completions(task, history)
        assert [t.completed_at for t in recent] == [at(-1), at(-3)]

    def test_history_is_capped(self, at, make_task):
        task = make_task(assignees=[1])
        history = [make_task(status="completed", assignees=[1], completed_at=at(-i))
                   for i in range(1, 15)]
        assert len(recent_completions(task, history)) == 10

    def test_recent_completions_honour_configured_final_statuses(self, at, make_task):
        task = make_task(assignees=[1])
        history = [make_task(status="done", assignees=[1], completed_at=at(-1))]

        assert recent_completions(task, history) == []
        assert recent_completions(task, history, final_statuses=["done"]) == history

    def test_pessimism_factor(self, make_task):
        samples = [
            make_task(estimated_hours=4, actual_hours=6),
            make_task(estimated_hours=10, actual_hours=5),
            make_task(estimated_hours=0, actual_hours=3),
        ]
        assert pessimism_factor(samples) == pytest.approx(1.0)
        assert pessimism_factor([]) == 1.2
