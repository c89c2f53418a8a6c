"""
thresholds.py — Admission-line resolution.

Admission lines come from one of two sources:
- Manual thresholds (absolute ranks or percentages of the cohort)
- Status labels imported with the exam data, turned into percentage lines

Lines are always evaluated tightest-first; the first line a rank clears wins.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from engine.models import PeriodRow
from engine.numeric import round_half_up, round_to
from engine.settings import ADMISSION_LABELS, NOT_ADMITTED, AnalysisSettings

# Cell categories for per-subject ranks, aligned with the admission lines.
RANK_CATEGORY_TYPES: Tuple[str, ...] = ("king", "elite", "high", "standard", "pass")
FAIL_CATEGORY = "fail"


# ── Helpers ─────────────────────────────────────────────────────────

def status_matches(status: Optional[str], label: str) -> bool:
    """True when an imported status names the given admission line."""
    if not status:
        return False
    return status == label or label in status


def has_imported_status(period_rows: Sequence[PeriodRow]) -> bool:
    return any((r.current_status or "").strip() for r in period_rows)


def effective_population(period_rows: Sequence[PeriodRow]) -> int:
    """Largest observed rank, or the row count when nobody is ranked."""
    max_rank = max((r.period_school_rank for r in period_rows if r.is_ranked), default=0)
    return max_rank or len(period_rows)


def to_absolute_limit(
    value: Optional[float], threshold_type: str, population: int
) -> Optional[int]:
    """Convert a configured line into an absolute rank cutoff."""
    if value is None:
        return None
    if threshold_type == "rank":
        return int(value)
    return round_half_up(value / 100 * population)


def absolute_limits(
    thresholds: Mapping[str, float],
    threshold_type: str,
    population: int,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> List[Tuple[str, int]]:
    """(label, cutoff) pairs in label order, skipping unconfigured lines."""
    limits = []
    for label in labels:
        limit = to_absolute_limit(thresholds.get(label), threshold_type, population)
        if limit is not None:
            limits.append((label, limit))
    return limits


# ── Imported Metadata ───────────────────────────────────────────────

def derive_thresholds_from_metadata(
    period_rows: Sequence[PeriodRow],
    labels: Sequence[str] = ADMISSION_LABELS,
    cohort_size: Optional[int] = None,
) -> Dict[str, float]:
    """
    Percentage lines inferred from imported admission statuses.

    Imported ranks may come from a wider reference population (for example
    a province-wide rank), so each line is the worst rank that reached it,
    as a percentage of the effective population.
    """
    ranked = [r for r in period_rows if r.is_ranked]
    max_rank = max((r.period_school_rank for r in ranked), default=0)
    if cohort_size is None:
        cohort_size = sum(1 for r in period_rows if r.sat_period)
    population = max(max_rank, cohort_size)

    derived: Dict[str, float] = {}
    for label in labels:
        matched = [r.period_school_rank for r in ranked if status_matches(r.current_status, label)]
        if matched and population > 0:
            derived[label] = round_to(max(matched) / population * 100, 4)
        else:
            derived[label] = 0
    return derived


def resolve_thresholds(
    period_rows: Sequence[PeriodRow],
    settings: AnalysisSettings,
    cohort_size: Optional[int] = None,
) -> Tuple[Dict[str, float], str]:
    """Effective (thresholds, threshold_type): imported statuses win over manual lines."""
    if has_imported_status(period_rows):
        return derive_thresholds_from_metadata(period_rows, settings.labels, cohort_size), "percent"
    return dict(settings.manual_thresholds), settings.threshold_type


# ── Classification ──────────────────────────────────────────────────

def get_admission_category(
    rank: int,
    thresholds: Mapping[str, float],
    threshold_type: str,
    total_students: int,
    imported_status: Optional[str] = None,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> str:
    """Admission line reached by `rank`; an imported status is returned verbatim."""
    status = (imported_status or "").strip()
    if status and status != NOT_ADMITTED:
        return status

    for label, limit in absolute_limits(thresholds, threshold_type, total_students, labels):
        if rank <= limit:
            return label
    return NOT_ADMITTED


def get_subject_rank_category(
    rank: int,
    thresholds: Mapping[str, float],
    threshold_type: str,
    participants: int,
    labels: Sequence[str] = ADMISSION_LABELS,
) -> str:
    """Styling category of a subject rank, evaluated like get_admission_category."""
    category_of = dict(zip(labels, RANK_CATEGORY_TYPES))
    for label, limit in absolute_limits(thresholds, threshold_type, participants, labels):
        if label in category_of and rank <= limit:
            return category_of[label]
    return FAIL_CATEGORY
