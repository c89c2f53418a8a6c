"""
models.py — Domain records shared by every engine module.

A StudentRecord owns an ordered tuple of ScoreSnapshots, one per exam period.
PeriodRow is the transient per-period view built by engine.snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

# Sorts unranked students after everybody else without dropping them.
UNRANKED = 9999


@dataclass(frozen=True)
class ScoreSnapshot:
    """One exam period's results for one student."""

    period: str
    scores: Mapping[str, float] = field(default_factory=dict)
    total_score: float = 0.0
    average_score: float = 0.0
    ranks: Mapping[str, int] = field(default_factory=dict)
    school_rank: Optional[int] = None
    status: Optional[str] = None
    is_complete: Optional[bool] = None

    def score(self, subject: str) -> Optional[float]:
        """Subject score, or None when the subject was not sat."""
        return self.scores.get(subject)

    def imported_rank(self, subject: str) -> Optional[int]:
        return self.ranks.get(subject)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "scores": dict(self.scores),
            "total_score": self.total_score,
            "average_score": self.average_score,
            "ranks": dict(self.ranks),
            "school_rank": self.school_rank,
            "status": self.status,
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True)
class StudentRecord:
    """Student identity plus chronological exam history."""

    id: str
    name: str
    class_name: str
    history: Tuple[ScoreSnapshot, ...] = ()
    scores: Mapping[str, float] = field(default_factory=dict)
    total_score: float = 0.0
    average_score: float = 0.0

    def snapshot_for(self, period: str) -> Optional[ScoreSnapshot]:
        for snap in self.history:
            if snap.period == period:
                return snap
        return None

    @property
    def periods(self) -> Tuple[str, ...]:
        return tuple(s.period for s in self.history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "class": self.class_name,
            "scores": dict(self.scores),
            "total_score": self.total_score,
            "average_score": self.average_score,
            "history": [s.to_dict() for s in self.history],
        }


@dataclass(frozen=True)
class PeriodRow:
    """A student's projection onto a single exam period."""

    id: str
    name: str
    class_name: str
    current_scores: Mapping[str, float]
    current_total: float
    current_average: float
    current_status: Optional[str]
    period_school_rank: int
    sat_period: bool = True

    def score(self, subject: str) -> Optional[float]:
        return self.current_scores.get(subject)

    def score_or_zero(self, subject: str) -> float:
        return self.current_scores.get(subject) or 0

    @property
    def is_ranked(self) -> bool:
        return 0 < self.period_school_rank < UNRANKED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "class": self.class_name,
            "current_scores": dict(self.current_scores),
            "current_total": self.current_total,
            "current_average": self.current_average,
            "current_status": self.current_status,
            "period_school_rank": self.period_school_rank,
            "sat_period": self.sat_period,
        }
