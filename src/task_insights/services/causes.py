"""Root-cause indicators for disruptions in a reporting period.

Each rule inspects the period's task snapshot on its own and returns at most
one indicator. New rules are added to ``default_rules()`` (or passed to
``CauseAnalyzer``) without touching the existing ones.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..domain import Period, Priority, Task

logger = logging.getLogger(__name__)


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


@dataclass
class CauseIndicator:
    """A disruption pattern found in the period."""
    name: str
    description: str
    severity: Severity
    count: int
    impacted_metrics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "impactedMetrics": list(self.impacted_metrics),
            "count": self.count,
        }


class CauseRule(ABC):
    """One disruption check."""

    name: str = ""

    @abstractmethod
    def evaluate(self, tasks: Sequence[Task], period: Period) -> Optional[CauseIndicator]:
        """Return an indicator when the pattern is present, otherwise None."""


class DependencyDelayRule(CauseRule):
    """Tasks whose plan slipped because a dependency finished after the planned date."""

    name = "Dependency Delay"
    high_threshold = 3

    def evaluate(self, tasks, period):
        delayed = [
            task for task in tasks
            if task.planned_date is not None and any(
                dep.completed_at is not None and dep.completed_at > task.planned_date
                for dep in task.dependencies
            )
        ]
        if not delayed:
            return None

        count = len(delayed)
        return CauseIndicator(
            name=self.name,
            description=f"{count} tasks were delayed by upstream dependencies.",
            severity=Severity.HIGH if count > self.high_threshold else Severity.MEDIUM,
            count=count,
            impacted_metrics=["velocity", "blockedRatio"],
        )


class UrgentTaskLoadRule(CauseRule):
    """Urgent work injected during the period."""

    name = "Urgent Task Load"
    high_threshold = 2

    def __init__(self, urgent_priority: str = Priority.URGENT):
        self.urgent_priority = urgent_priority

    def evaluate(self, tasks, period):
        count = sum(
            1 for task in tasks
            if task.priority == self.urgent_priority and period.contains(task.created_at)
        )
        if count == 0:
            return None

        return CauseIndicator(
            name=self.name,
            description=f"{count} urgent tasks disrupted the flow.",
            severity=Severity.HIGH if count > self.high_threshold else Severity.MEDIUM,
            count=count,
            impacted_metrics=["velocity", "completionRate"],
        )


def default_rules(urgent_priority: str = Priority.URGENT) -> List[CauseRule]:
    return [DependencyDelayRule(), UrgentTaskLoadRule(urgent_priority)]


class CauseAnalyzer:
    """Runs every rule and ranks what they find, most severe first."""

    def __init__(self, rules: Optional[Sequence[CauseRule]] = None):
        self.rules = list(rules) if rules is not None else default_rules()

    def add_rule(self, rule: CauseRule) -> None:
        self.rules.append(rule)

    def analyze(self, tasks: Sequence[Task], period: Period) -> List[CauseIndicator]:
        indicators = []
        for rule in self.rules:
            indicator = rule.evaluate(tasks, period)
            if indicator is not None:
                logger.debug("Cause %s found (%d)", indicator.name, indicator.count)
                indicators.append(indicator)

        # sorted() is stable: equal severity and count keep rule order
        return sorted(
            indicators,
            key=lambda i: (SEVERITY_RANK[i.severity], -i.count),
        )
