"""Period comparison and cross-invocation trend tracking.

``compare`` is a pure period-A-versus-period-B comparison used inside
reports. ``TrendComparator`` answers "has this statistic gone up or down
since it was last computed" against a ``TrendStore``.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from ..utils.datetime import now_utc, parse_datetime, round_half_up, to_iso_string

logger = logging.getLogger(__name__)

TREND_DEAD_ZONE = 0.1


class TrendDirection(Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


def trend_direction(delta: float) -> TrendDirection:
    """Map a change to a direction, ignoring changes within the dead zone."""
    if delta > TREND_DEAD_ZONE:
        return TrendDirection.UP
    if delta < -TREND_DEAD_ZONE:
        return TrendDirection.DOWN
    return TrendDirection.NEUTRAL


def percent_change(current: float, baseline: float) -> int:
    """Whole-percent change from ``baseline``; 100 from a zero baseline, 0 if both are zero."""
    if baseline != 0:
        return int(round_half_up(((current - baseline) / abs(baseline)) * 100))
    return 100 if current != 0 else 0


@dataclass
class MetricResult:
    """A report figure with its change against the previous period."""
    value: float
    unit: str
    trend: TrendDirection
    delta: float
    percent_change: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "trend": self.trend.value,
            "delta": self.delta,
            "percentChange": self.percent_change,
        }


def compare(value_a: float, value_b: float, unit: str) -> MetricResult:
    """Compare period A's value against period B's."""
    delta = value_a - value_b
    return MetricResult(
        value=round_half_up(value_a, 1),
        unit=unit,
        trend=trend_direction(delta),
        delta=round_half_up(delta, 1),
        percent_change=percent_change(value_a, value_b),
    )


@dataclass
class TrendEntry:
    """Last recorded value of a statistic."""
    value: float
    recorded_at: datetime


class TrendStore(ABC):
    """Key-value store of the last value per (entity type, entity id, stat key)."""

    @abstractmethod
    def get_previous(self, entity_type: str, entity_id: Optional[Any],
                     stat_key: str) -> Optional[TrendEntry]:
        """Return the last recorded value, or None if never recorded."""

    @abstractmethod
    def set_current(self, entity_type: str, entity_id: Optional[Any],
                    stat_key: str, value: float) -> None:
        """Upsert the value for this key (last write wins)."""


def _entity_key(entity_id: Optional[Any]) -> str:
    return "" if entity_id is None else str(entity_id)


class InMemoryTrendStore(TrendStore):
    """Process-local store, mainly for tests and one-shot CLI runs."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str, str], TrendEntry] = {}
        self._lock = threading.Lock()

    def get_previous(self, entity_type, entity_id, stat_key):
        with self._lock:
            return self._entries.get((entity_type, _entity_key(entity_id), stat_key))

    def set_current(self, entity_type, entity_id, stat_key, value):
        entry = TrendEntry(value=float(value), recorded_at=now_utc())
        with self._lock:
            self._entries[(entity_type, _entity_key(entity_id), stat_key)] = entry

    def __len__(self) -> int:
        return len(self._entries)


class SqliteTrendStore(TrendStore):
    """Persistent trend store backed by a single SQLite table.

    Each write is one ``INSERT ... ON CONFLICT DO UPDATE`` on its own key, so
    callers recording different statistics never wait on a shared
    read-modify-write transaction.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=10)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self):
        """Initialize the SQLite database with the trend table."""
        try:
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS stat_trends (
                        entity_type TEXT NOT NULL,
                        entity_id TEXT NOT NULL,
                        stat_key TEXT NOT NULL,
                        previous_value REAL NOT NULL,
                        recorded_at TEXT NOT NULL,
                        PRIMARY KEY (entity_type, entity_id, stat_key)
                    )
                """)
                conn.commit()
                logger.debug("Initialized trend store at %s", self.db_path)
        except sqlite3.Error as e:
            logger.error("Failed to initialize trend store %s: %s", self.db_path, e)
            raise

    def get_previous(self, entity_type, entity_id, stat_key):
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT previous_value, recorded_at FROM stat_trends
                WHERE entity_type = ? AND entity_id = ? AND stat_key = ?
                """,
                (entity_type, _entity_key(entity_id), stat_key),
            ).fetchone()
        if row is None:
            return None
        return TrendEntry(value=row[0], recorded_at=parse_datetime(row[1]))

    def set_current(self, entity_type, entity_id, stat_key, value):
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO stat_trends
                    (entity_type, entity_id, stat_key, previous_value, recorded_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(entity_type, entity_id, stat_key) DO UPDATE SET
                    previous_value = excluded.previous_value,
                    recorded_at = excluded.recorded_at
                """,
                (entity_type, _entity_key(entity_id), stat_key,
                 float(value), to_iso_string(now_utc())),
            )
            conn.commit()

    def delete_entity(self, entity_type: str, entity_id: Optional[Any]) -> int:
        """Remove every statistic of an entity; returns the number of rows removed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM stat_trends WHERE entity_type = ? AND entity_id = ?",
                (entity_type, _entity_key(entity_id)),
            )
            conn.commit()
            return cursor.rowcount


@dataclass
class StatTrend:
    """Direction of a statistic since its previous observation."""
    direction: TrendDirection
    current: float
    previous: Optional[float]
    delta: float
    percent_change: int
    previous_recorded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "current": self.current,
            "previous": self.previous,
            "delta": self.delta,
            "percentChange": self.percent_change,
            "previousRecordedAt": to_iso_string(self.previous_recorded_at),
        }


class TrendComparator:
    """Compares a statistic with its last stored value, then stores the new one."""

    def __init__(self, store: TrendStore):
        self.store = store

    def get_stat_trend(self, entity_type: str, entity_id: Optional[Any],
                       stat_key: str, current_value: float) -> StatTrend:
        previous = self.store.get_previous(entity_type, entity_id, stat_key)
        self.store.set_current(entity_type, entity_id, stat_key, current_value)

        if previous is None:
            logger.debug("First observation of %s/%s/%s", entity_type, entity_id, stat_key)
            return StatTrend(
                direction=TrendDirection.NEUTRAL,
                current=current_value,
                previous=None,
                delta=0.0,
                percent_change=0,
            )

        delta = current_value - previous.value
        return StatTrend(
            direction=trend_direction(delta),
            current=current_value,
            previous=previous.value,
            delta=round_half_up(delta, 1),
            percent_change=percent_change(current_value, previous.value),
            previous_recorded_at=previous.recorded_at,
        )
