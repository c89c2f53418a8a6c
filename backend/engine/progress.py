"""
progress.py — Rank movement between periods.

Rank numbers go down as students improve, so a positive rank change or
coefficient means improvement.
"""

from typing import Any, Dict, List, Optional

from engine.models import StudentRecord
from engine.numeric import round_to
from engine.ranks import RankMap, SubjectRankMap


def calculate_progress_coefficient(rank_x: Optional[int], rank_y: Optional[int]) -> float:
    """Symmetric relative rank change from period x to period y."""
    if not rank_x or not rank_y or rank_x <= 0 or rank_y <= 0:
        return 0.0
    return round_to(2 * (rank_x - rank_y) / (rank_x + rank_y), 2)


def _history_slice(
    student: StudentRecord, start_period: Optional[str], end_period: Optional[str]
) -> List[str]:
    """Periods of the student's history between two periods, inclusive."""
    periods = list(student.periods)
    for bound in (start_period, end_period):
        if bound is not None and bound not in periods:
            return []
    start = periods.index(start_period) if start_period is not None else 0
    end = periods.index(end_period) + 1 if end_period is not None else len(periods)
    return periods[start:end]


def calculate_streak_info(
    student: StudentRecord,
    historical_ranks: RankMap,
    start_period: Optional[str] = None,
    end_period: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Latest run of consecutive rank improvements or declines.

    Walks back from the last ranked period (or `end_period`) while each
    step moves strictly in the same direction. Periods without a rank are
    skipped. Returns None with fewer than two ranked periods.
    """
    ranks = [
        historical_ranks[p][student.name]
        for p in _history_slice(student, start_period, end_period)
        if student.name in historical_ranks.get(p, {})
    ]
    if len(ranks) < 2:
        return None

    last, prev = ranks[-1], ranks[-2]
    if last == prev:
        return {"count": 0, "type": "stable", "total_change": 0, "steps": []}

    improving = last < prev
    count = 0
    total_change = 0
    steps: List[int] = []
    for i in range(len(ranks) - 1, 0, -1):
        diff = ranks[i - 1] - ranks[i]
        if (improving and diff > 0) or (not improving and diff < 0):
            count += 1
            total_change += diff
            steps.insert(0, diff)
        else:
            break

    return {
        "count": count,
        "type": "improvement" if improving else "decline",
        "total_change": total_change,
        "steps": steps,
    }


def get_progress_analysis_data(
    students: List[StudentRecord],
    period_x: str,
    period_y: str,
    historical_ranks: RankMap,
) -> List[Dict[str, Any]]:
    """Rank movement from period_x to period_y for students ranked in both."""
    ranks_x = historical_ranks.get(period_x, {})
    ranks_y = historical_ranks.get(period_y, {})

    rows = []
    for s in students:
        rank_x = ranks_x.get(s.name)
        rank_y = ranks_y.get(s.name)
        if not rank_x or not rank_y:
            continue

        streak = calculate_streak_info(s, historical_ranks, end_period=period_y)
        streak_count = 0
        if streak and streak["type"] == "improvement":
            streak_count = streak["count"]
        elif streak and streak["type"] == "decline":
            streak_count = -streak["count"]

        rows.append({
            "id": s.id,
            "name": s.name,
            "class": s.class_name,
            "rank_x": rank_x,
            "rank_y": rank_y,
            "rank_change": rank_x - rank_y,
            "coefficient": calculate_progress_coefficient(rank_x, rank_y),
            "streak_count": streak_count,
        })
    return rows


def get_student_subject_trend(
    student: StudentRecord, subject: str, subject_ranks: SubjectRankMap
) -> List[Dict[str, Any]]:
    """Subject rank per period, skipping periods without a rank."""
    trend = []
    for period in student.periods:
        rank = subject_ranks.get(period, {}).get(subject, {}).get(student.name)
        if rank:
            trend.append({"period": period, "rank": rank})
    return trend
