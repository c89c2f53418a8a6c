"""
distribution.py — Cohort distributions and class aggregates for one period.

Computes:
- Admission-line distribution (imported statuses or rank bands)
- Per-subject line distribution and below-line student lists
- Subject averages, class summaries and the class leaderboard
- Class comparison matrices with per-row maxima for heatmaps
- Elite benchmarks (class vs grade subject maxima)
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from engine.models import PeriodRow, StudentRecord
from engine.numeric import safe_float
from engine.psychometrics import infer_full_score
from engine.ranks import SubjectRankMap
from engine.settings import ADMISSION_LABELS, NOT_ADMITTED
from engine.thresholds import (
    absolute_limits,
    effective_population,
    has_imported_status,
    status_matches,
    to_absolute_limit,
)


# ── Helpers ─────────────────────────────────────────────────────────

def _band_counts(ranks: Sequence[int], limits: List[Tuple[str, int]]) -> List[Tuple[str, int]]:
    """
    Count ranks per band between consecutive ascending cutoffs.

    A band covers (previous cutoff, cutoff]; ranks beyond the last cutoff
    land in NOT_ADMITTED.
    """
    ordered = sorted(limits, key=lambda item: item[1])
    bands = []
    prev = 0
    for label, limit in ordered:
        bands.append((label, sum(1 for r in ranks if prev < r <= limit)))
        prev = limit
    last = ordered[-1][1] if ordered else 0
    bands.append((NOT_ADMITTED, sum(1 for r in ranks if r > last)))
    return bands


def _rows_in_classes(period_rows: Sequence[PeriodRow], classes: Sequence[str]) -> List[PeriodRow]:
    wanted = set(classes)
    return [r for r in period_rows if r.class_name in wanted]


def _subject_rank_map(subject_ranks: SubjectRankMap, period: str, subject: str) -> Dict[str, int]:
    return subject_ranks.get(period, {}).get(subject, {})


# ── Admission Distribution ──────────────────────────────────────────

def get_admission_distribution(
    period_rows: Sequence[PeriodRow],
    thresholds: Mapping[str, float],
    threshold_type: str,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> List[Dict[str, Any]]:
    """Students per admission line; empty buckets are dropped."""
    if not period_rows:
        return []

    if has_imported_status(period_rows):
        tally = {label: 0 for label in labels}
        tally[NOT_ADMITTED] = 0
        for r in period_rows:
            bucket = next((l for l in labels if status_matches(r.current_status, l)), NOT_ADMITTED)
            tally[bucket] += 1
        counts = list(tally.items())
    else:
        population = effective_population(period_rows)
        limits = absolute_limits(thresholds, threshold_type, population, labels)
        counts = _band_counts([r.period_school_rank for r in period_rows], limits)

    return [{"name": name, "value": value} for name, value in counts if value > 0]


def count_above_line(
    period_rows: Sequence[PeriodRow],
    thresholds: Mapping[str, float],
    threshold_type: str,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> int:
    """Students at or above the loosest admission line."""
    if has_imported_status(period_rows):
        return sum(
            1 for r in period_rows
            if r.current_status and r.current_status != NOT_ADMITTED
            and any(status_matches(r.current_status, l) for l in labels)
        )
    if not labels:
        return 0
    limit = to_absolute_limit(
        thresholds.get(labels[-1]) or 0, threshold_type, effective_population(period_rows)
    )
    return sum(1 for r in period_rows if r.period_school_rank <= limit)


# ── Subject Distribution ────────────────────────────────────────────

def get_subject_distribution(
    period: str,
    subject: str,
    selected_classes: Sequence[str],
    period_rows: Sequence[PeriodRow],
    subject_ranks: SubjectRankMap,
    thresholds: Mapping[str, float],
    threshold_type: str,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> List[Dict[str, Any]]:
    """
    Subject-rank bands for the selected classes.

    Percentages are measured against the subject's own population so a
    subject sat by part of the cohort is not judged against the whole school.
    """
    if not period or not subject:
        return []

    rank_map = _subject_rank_map(subject_ranks, period, subject)
    population = max(rank_map.values(), default=0) or len(period_rows)
    limits = absolute_limits(thresholds, threshold_type, population, labels)

    ranks = [
        rank_map[r.name] for r in _rows_in_classes(period_rows, selected_classes)
        if rank_map.get(r.name)
    ]
    return [{"name": name, "count": count} for name, count in _band_counts(ranks, limits)]


def get_below_line_students(
    period: str,
    subject: str,
    selected_classes: Sequence[str],
    period_rows: Sequence[PeriodRow],
    subject_ranks: SubjectRankMap,
    pass_line: float,
    threshold_type: str = "rank",
) -> List[Dict[str, Any]]:
    """Students whose subject rank falls behind the pass line, best first."""
    if not period or not subject:
        return []

    rank_map = _subject_rank_map(subject_ranks, period, subject)
    population = max(rank_map.values(), default=0) or len(period_rows)
    limit = to_absolute_limit(pass_line, threshold_type, population) or 0

    below = [
        {"name": r.name, "rank": rank_map[r.name], "class": r.class_name}
        for r in _rows_in_classes(period_rows, selected_classes)
        if rank_map.get(r.name) and rank_map[r.name] > limit
    ]
    below.sort(key=lambda item: item["rank"])
    return below


# ── Averages & Classes ──────────────────────────────────────────────

def get_subject_averages(period_rows: Sequence[PeriodRow], subjects: Sequence[str]) -> List[Dict[str, Any]]:
    """Grade-wide mean per subject; missing scores count as 0."""
    n = len(period_rows)
    return [
        {
            "name": sub,
            "avg": safe_float(sum(r.score_or_zero(sub) for r in period_rows) / n) if n else 0,
        }
        for sub in subjects
    ]


def get_class_summaries(
    period_rows: Sequence[PeriodRow],
    selected_classes: Sequence[str],
    elite_cutoff: int = 10,
    bench_cutoff: int = 50,
) -> List[Dict[str, Any]]:
    """Average total and top-N head counts per selected class."""
    summaries = []
    for cls in selected_classes:
        members = [r for r in period_rows if r.class_name == cls]
        average = sum(r.current_total for r in members) / len(members) if members else 0
        summaries.append({
            "class_name": cls,
            "count": len(members),
            "average": safe_float(average),
            "elite_count": sum(1 for r in members if r.period_school_rank <= elite_cutoff),
            "bench_count": sum(1 for r in members if r.period_school_rank <= bench_cutoff),
        })
    return summaries


def get_class_leaderboard(class_summaries: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Best class by average, by elite head count and by bench head count."""
    if not class_summaries:
        return None
    return {
        "highest_average": max(class_summaries, key=lambda s: s["average"]),
        "most_elite": max(class_summaries, key=lambda s: s["elite_count"]),
        "most_bench": max(class_summaries, key=lambda s: s["bench_count"]),
    }


def calculate_heatmap_max_values(
    rows: Sequence[Mapping[str, Any]], selected_classes: Sequence[str]
) -> Dict[str, float]:
    """Per-row maximum over the selected class columns."""
    return {
        row["name"]: max((row.get(cls) or 0 for cls in selected_classes), default=0)
        for row in rows
    }


def get_class_comparison_matrix(
    period_rows: Sequence[PeriodRow],
    subjects: Sequence[str],
    selected_classes: Sequence[str],
    comparison_thresholds: Sequence[int],
) -> Dict[str, Any]:
    """Subject averages and top-N head counts per class, with row maxima."""
    by_class = {cls: [r for r in period_rows if r.class_name == cls] for cls in selected_classes}

    subject_matrix = []
    for sub in subjects:
        entry: Dict[str, Any] = {"name": sub}
        for cls, members in by_class.items():
            entry[cls] = (
                safe_float(sum(r.score_or_zero(sub) for r in members) / len(members))
                if members else 0
            )
        subject_matrix.append(entry)

    rank_matrix = []
    for bucket in sorted(comparison_thresholds):
        entry = {"name": f"Top {bucket}"}
        for cls, members in by_class.items():
            entry[cls] = sum(1 for r in members if r.period_school_rank <= bucket)
        rank_matrix.append(entry)

    return {
        "subject_matrix": subject_matrix,
        "rank_matrix": rank_matrix,
        "row_max": calculate_heatmap_max_values(subject_matrix + rank_matrix, selected_classes),
    }


# ── Benchmarks ──────────────────────────────────────────────────────

def get_elite_benchmarks(
    period_rows: Sequence[PeriodRow], subjects: Sequence[str], benchmark_class: str
) -> Dict[str, Any]:
    """Compare a class's best performances against the whole grade."""
    members = [r for r in period_rows if r.class_name == benchmark_class]
    class_first = max(members, key=lambda r: r.current_total) if members else None
    school_first = period_rows[0] if period_rows else None

    kings = [
        {
            "subject": sub,
            "class_max": max((r.score_or_zero(sub) for r in members), default=0),
            "grade_max": max((r.score_or_zero(sub) for r in period_rows), default=0),
        }
        for sub in subjects
    ]
    duel = [
        {
            "subject": sub,
            "class_first": class_first.score_or_zero(sub) if class_first else 0,
            "school_first": school_first.score_or_zero(sub) if school_first else 0,
        }
        for sub in subjects
    ]
    return {
        "kings": kings,
        "duel": duel,
        "class_first_name": class_first.name if class_first else None,
        "school_first_name": school_first.name if school_first else None,
    }


def get_student_radar_data(
    student: StudentRecord,
    period: str,
    subjects: Sequence[str],
    baseline: str,
    period_rows: Sequence[PeriodRow],
) -> List[Dict[str, Any]]:
    """A student's subject scores against the class or grade average."""
    snap = student.snapshot_for(period)
    source = (
        [r for r in period_rows if r.class_name == student.class_name]
        if baseline == "class" else list(period_rows)
    )

    radar = []
    for sub in subjects:
        baseline_avg = (
            sum(r.score_or_zero(sub) for r in source) / len(source) if source else 0
        )
        grade_max = max((r.score_or_zero(sub) for r in period_rows), default=0)
        radar.append({
            "subject": sub,
            "score": (snap.score(sub) or 0) if snap else 0,
            "baseline": safe_float(baseline_avg, 1),
            "full_mark": infer_full_score(grade_max),
        })
    return radar
