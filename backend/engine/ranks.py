"""
ranks.py — Per-period rank maps.

Computes, for every exam period:
- School-wide total-score ranks (imported ranks preferred)
- Class-wide total-score ranks (always recomputed)
- School-wide per-subject ranks (imported ranks preferred)

Ranks are ordinal: ties keep input order and never share a rank.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from scipy import stats as sp_stats

from engine.models import PeriodRow, ScoreSnapshot, StudentRecord

logger = logging.getLogger(__name__)

RankMap = Dict[str, Dict[str, int]]
SubjectRankMap = Dict[str, Dict[str, Dict[str, int]]]

Entry = Tuple[str, ScoreSnapshot]


# ── Helpers ─────────────────────────────────────────────────────────

def all_periods(students: Iterable[StudentRecord]) -> List[str]:
    """Distinct periods in first-seen order across all histories."""
    seen: Dict[str, None] = {}
    for s in students:
        for snap in s.history:
            seen.setdefault(snap.period, None)
    return list(seen)


def _period_entries(students: Iterable[StudentRecord], period: str) -> List[Entry]:
    entries = []
    for s in students:
        snap = s.snapshot_for(period)
        if snap is not None:
            entries.append((s.name, snap))
    return entries


def _ordinal_ranks(names: List[str], values: List[float]) -> Dict[str, int]:
    """Rank descending by value; equal values keep their input order."""
    if not names:
        return {}
    ranks = sp_stats.rankdata(-np.asarray(values, dtype="float64"), method="ordinal")
    return {name: int(r) for name, r in zip(names, ranks)}


def _rank_period(
    entries: List[Entry],
    score_of: Callable[[ScoreSnapshot], Optional[float]],
    imported_rank_of: Optional[Callable[[ScoreSnapshot], Optional[int]]] = None,
) -> Dict[str, int]:
    """
    Build one period's rank map for one scope.

    If any participant carries a positive imported rank, the map is built
    from imported values only and participants without one are left out.
    Otherwise participants with a score are ranked by descending score.
    """
    if imported_rank_of is not None:
        imported = {}
        for name, snap in entries:
            r = imported_rank_of(snap)
            if r is not None and r > 0:
                imported[name] = int(r)
        if imported:
            return imported

    names, values = [], []
    for name, snap in entries:
        v = score_of(snap)
        if v is None:
            continue
        names.append(name)
        values.append(float(v))
    return _ordinal_ranks(names, values)


# ── Rank Calculators ────────────────────────────────────────────────

def calculate_historical_ranks(students: List[StudentRecord]) -> RankMap:
    """School-wide total-score ranks: {period: {student_name: rank}}."""
    result: RankMap = {}
    for period in all_periods(students):
        entries = _period_entries(students, period)
        result[period] = _rank_period(
            entries,
            score_of=lambda snap: snap.total_score,
            imported_rank_of=lambda snap: snap.school_rank,
        )
    logger.debug("Ranked %d periods for %d students", len(result), len(students))
    return result


def calculate_class_historical_ranks(students: List[StudentRecord]) -> RankMap:
    """
    Class-wide total-score ranks, merged into one flat map per period.

    Always recomputed from totals: the data carries no imported class rank.
    """
    by_class: Dict[str, List[StudentRecord]] = {}
    for s in students:
        by_class.setdefault(s.class_name, []).append(s)

    result: RankMap = {period: {} for period in all_periods(students)}
    for members in by_class.values():
        for period in all_periods(members):
            entries = _period_entries(members, period)
            result[period].update(
                _rank_period(entries, score_of=lambda snap: snap.total_score)
            )
    return result


def calculate_subject_historical_ranks(
    students: List[StudentRecord], subjects: List[str]
) -> SubjectRankMap:
    """Per-subject ranks: {period: {subject: {student_name: rank}}}."""
    result: SubjectRankMap = {}
    for period in all_periods(students):
        entries = _period_entries(students, period)
        result[period] = {}
        for subject in subjects:
            result[period][subject] = _rank_period(
                entries,
                score_of=lambda snap, sub=subject: snap.score(sub),
                imported_rank_of=lambda snap, sub=subject: snap.imported_rank(sub),
            )
    return result


# ── Cohort Size ─────────────────────────────────────────────────────

def get_effective_cohort_size(
    period: str,
    period_rows: List[PeriodRow],
    historical_ranks: RankMap,
    subject: Optional[str] = None,
    subject_ranks: Optional[SubjectRankMap] = None,
) -> int:
    """
    Population used to convert percentage thresholds into ranks.

    The largest rank in the relevant map, which may exceed the local roster
    when ranks were imported from a wider reference population. Falls back
    to the number of rows.
    """
    if subject and subject_ranks is not None:
        rank_map = subject_ranks.get(period, {}).get(subject, {})
    else:
        rank_map = historical_ranks.get(period, {})
    max_rank = max(rank_map.values(), default=0)
    return max_rank or len(period_rows)
