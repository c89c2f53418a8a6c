"""
snapshot.py — Project student histories onto a single exam period.
"""

from typing import Dict, List

from engine.models import UNRANKED, PeriodRow, StudentRecord
from engine.ranks import RankMap, all_periods


def get_period_snapshot(
    students: List[StudentRecord], period: str, historical_ranks: RankMap
) -> List[PeriodRow]:
    """
    One row per student for `period`, sorted ascending by resolved rank.

    Rank resolution: the period's rank map, then the snapshot's imported
    school rank, then UNRANKED. Students without data for the period still
    get a row (zero totals, no scores).
    """
    ranks = historical_ranks.get(period, {})
    rows = []
    for s in students:
        snap = s.snapshot_for(period)
        rank = ranks.get(s.name)
        if not rank and snap is not None and snap.school_rank and snap.school_rank > 0:
            rank = snap.school_rank
        rows.append(PeriodRow(
            id=s.id,
            name=s.name,
            class_name=s.class_name,
            current_scores=dict(snap.scores) if snap else {},
            current_total=snap.total_score if snap else 0,
            current_average=snap.average_score if snap else 0,
            current_status=snap.status if snap else None,
            period_school_rank=int(rank) if rank else UNRANKED,
            sat_period=snap is not None,
        ))
    rows.sort(key=lambda r: r.period_school_rank)
    return rows


def calculate_grade_averages(students: List[StudentRecord]) -> Dict[str, float]:
    """Mean total score per period over the students who sat it."""
    averages: Dict[str, float] = {}
    for period in all_periods(students):
        totals = [
            snap.total_score
            for snap in (s.snapshot_for(period) for s in students)
            if snap is not None
        ]
        if totals:
            averages[period] = sum(totals) / len(totals)
    return averages
