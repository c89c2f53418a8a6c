"""
Analyze routes — analysis engine API endpoints.

Every endpoint takes the full student collection in the request body:
    { "students": [...], "subjects": [...], "period": "...", "settings": {...} }
"""

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, HTTPException

from engine.distribution import (
    count_above_line,
    get_admission_distribution,
    get_below_line_students,
    get_class_comparison_matrix,
    get_class_leaderboard,
    get_class_summaries,
    get_elite_benchmarks,
    get_student_radar_data,
    get_subject_averages,
    get_subject_distribution,
)
from engine.models import StudentRecord
from engine.progress import (
    calculate_streak_info,
    get_progress_analysis_data,
    get_student_subject_trend,
)
from engine.psychometrics import calculate_exam_parameters
from engine.ranks import (
    all_periods,
    calculate_class_historical_ranks,
    calculate_historical_ranks,
    calculate_subject_historical_ranks,
    get_effective_cohort_size,
)
from engine.records import classes_of, students_from_payload, subjects_of
from engine.settings import AnalysisSettings
from engine.snapshot import calculate_grade_averages, get_period_snapshot
from engine.thresholds import (
    get_admission_category,
    get_subject_rank_category,
    resolve_thresholds,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ELITE_CUTOFF = int(os.getenv("ELITE_CUTOFF", "10"))
BENCH_CUTOFF = int(os.getenv("BENCH_CUTOFF", "50"))


def _context_from_payload(payload: dict) -> Tuple[List[StudentRecord], List[str], AnalysisSettings]:
    """Extract students, subjects and settings from request payload."""
    data = payload.get("students")
    if not data:
        raise HTTPException(400, "No students provided.")
    try:
        students = students_from_payload(data)
        settings = AnalysisSettings.from_dict(payload.get("settings"))
    except (TypeError, ValueError) as e:
        raise HTTPException(400, str(e))
    subjects = payload.get("subjects") or subjects_of(students)
    return students, subjects, settings


def _period(payload: dict, students: List[StudentRecord], key: str = "period") -> str:
    """Requested period, defaulting to the most recent one."""
    periods = all_periods(students)
    period = payload.get(key) or (periods[-1] if periods else "")
    if period not in periods:
        raise HTTPException(404, f"Period '{period}' not found.")
    return period


def _cutoff(payload: dict, key: str, default: int) -> int:
    """Positive integer rank cutoff from the payload, or the default."""
    value = payload.get(key)
    if value is None or value == "":
        return default
    try:
        cutoff = int(value)
    except (TypeError, ValueError):
        raise HTTPException(400, f"Invalid {key}: {value!r}.")
    if cutoff <= 0:
        raise HTTPException(400, f"Invalid {key}: {value!r}.")
    return cutoff


def _selected_classes(payload: dict, students: List[StudentRecord]) -> List[str]:
    return payload.get("classes") or classes_of(students)


@router.post("/ranks")
async def ranks(payload: dict):
    """School, class and subject rank maps for every period."""
    students, subjects, _ = _context_from_payload(payload)
    return {
        "periods": all_periods(students),
        "school": calculate_historical_ranks(students),
        "class": calculate_class_historical_ranks(students),
        "subject": calculate_subject_historical_ranks(students, subjects),
    }


@router.post("/snapshot")
async def snapshot(payload: dict):
    """One period's rows sorted by school rank."""
    students, _, _ = _context_from_payload(payload)
    period = _period(payload, students)
    rows = get_period_snapshot(students, period, calculate_historical_ranks(students))
    return {
        "period": period,
        "rows": [r.to_dict() for r in rows],
        "grade_averages": calculate_grade_averages(students),
    }


@router.post("/school")
async def school(payload: dict):
    """Admission-line distribution and subject averages for one period."""
    students, subjects, settings = _context_from_payload(payload)
    period = _period(payload, students)
    historical_ranks = calculate_historical_ranks(students)
    rows = get_period_snapshot(students, period, historical_ranks)

    cohort_size = get_effective_cohort_size(period, rows, historical_ranks)
    thresholds, threshold_type = resolve_thresholds(rows, settings, cohort_size)
    return {
        "period": period,
        "cohort_size": cohort_size,
        "thresholds": thresholds,
        "threshold_type": threshold_type,
        "admission_distribution": get_admission_distribution(
            rows, thresholds, threshold_type, settings.labels
        ),
        "above_line_count": count_above_line(rows, thresholds, threshold_type, settings.labels),
        "subject_averages": get_subject_averages(rows, subjects),
    }


@router.post("/subject")
async def subject_analysis(payload: dict):
    """Per-subject line distribution and below-line students for selected classes."""
    students, subjects, settings = _context_from_payload(payload)
    period = _period(payload, students)
    subject = payload.get("subject") or (subjects[0] if subjects else "")
    if subject not in subjects:
        raise HTTPException(404, f"Subject '{subject}' not found.")
    classes = _selected_classes(payload, students)

    historical_ranks = calculate_historical_ranks(students)
    subject_ranks = calculate_subject_historical_ranks(students, subjects)
    rows = get_period_snapshot(students, period, historical_ranks)
    thresholds, threshold_type = resolve_thresholds(rows, settings)
    pass_line = thresholds.get(settings.labels[-1], 0) if settings.labels else 0

    return {
        "period": period,
        "subject": subject,
        "distribution": get_subject_distribution(
            period, subject, classes, rows, subject_ranks,
            thresholds, threshold_type, settings.labels,
        ),
        "below_line": get_below_line_students(
            period, subject, classes, rows, subject_ranks, pass_line, threshold_type
        ),
    }


@router.post("/class-comparison")
async def class_comparison(payload: dict):
    """Class summaries, leaderboard, comparison matrices and benchmarks."""
    students, subjects, settings = _context_from_payload(payload)
    period = _period(payload, students)
    classes = _selected_classes(payload, students)
    rows = get_period_snapshot(students, period, calculate_historical_ranks(students))

    elite = _cutoff(payload, "elite_cutoff", ELITE_CUTOFF)
    bench = _cutoff(payload, "bench_cutoff", BENCH_CUTOFF)
    summaries = get_class_summaries(rows, classes, elite, bench)
    benchmark_class = payload.get("benchmark_class") or classes[0]

    return {
        "period": period,
        "summaries": summaries,
        "leaderboard": get_class_leaderboard(summaries),
        "matrix": get_class_comparison_matrix(
            rows, subjects, classes, settings.comparison_thresholds
        ),
        "benchmarks": get_elite_benchmarks(rows, subjects, benchmark_class),
    }


@router.post("/parameters")
async def parameters(payload: dict):
    """Difficulty, discrimination and reliability for one period."""
    students, subjects, _ = _context_from_payload(payload)
    period = _period(payload, students)
    rows = get_period_snapshot(students, period, calculate_historical_ranks(students))
    result = calculate_exam_parameters(rows, subjects, payload.get("full_scores"))
    return {"period": period, "parameters": result}


@router.post("/progress")
async def progress(payload: dict):
    """Rank movement between two periods."""
    students, _, _ = _context_from_payload(payload)
    periods = all_periods(students)
    if len(periods) < 2:
        raise HTTPException(400, "Progress analysis needs at least two periods.")
    period_x = _period({"period_x": payload.get("period_x") or periods[-2]}, students, "period_x")
    period_y = _period(payload, students, "period_y")
    classes = set(_selected_classes(payload, students))

    rows = get_progress_analysis_data(
        students, period_x, period_y, calculate_historical_ranks(students)
    )
    return {
        "period_x": period_x,
        "period_y": period_y,
        "rows": [r for r in rows if r["class"] in classes],
    }


@router.post("/student/{student_id}")
async def student_detail(student_id: str, payload: dict):
    """Streak, radar, subject rank trends and per-period admission lines."""
    students, subjects, settings = _context_from_payload(payload)
    student: Optional[StudentRecord] = next((s for s in students if s.id == student_id), None)
    if student is None:
        raise HTTPException(404, f"Student '{student_id}' not found.")
    period = _period(payload, students)

    historical_ranks = calculate_historical_ranks(students)
    subject_ranks = calculate_subject_historical_ranks(students, subjects)
    rows = get_period_snapshot(students, period, historical_ranks)

    ledger: List[Dict[str, Any]] = []
    for snap in student.history:
        rank = historical_ranks.get(snap.period, {}).get(student.name)
        period_rows = get_period_snapshot(students, snap.period, historical_ranks)
        thresholds, threshold_type = resolve_thresholds(period_rows, settings)
        population = get_effective_cohort_size(snap.period, period_rows, historical_ranks)
        subject_cells = {}
        for sub in subjects:
            sub_rank = subject_ranks.get(snap.period, {}).get(sub, {}).get(student.name)
            participants = get_effective_cohort_size(
                snap.period, period_rows, historical_ranks, sub, subject_ranks
            )
            subject_cells[sub] = {
                "rank": sub_rank,
                "category": get_subject_rank_category(
                    sub_rank, thresholds, threshold_type, participants, settings.labels
                ) if sub_rank else None,
            }
        ledger.append({
            "period": snap.period,
            "total_score": snap.total_score,
            "school_rank": rank,
            "line": get_admission_category(
                rank, thresholds, threshold_type, population, snap.status, settings.labels
            ) if rank else None,
            "subjects": subject_cells,
        })

    logger.debug("Built detail for student %s over %d periods", student_id, len(ledger))
    return {
        "student": student.to_dict(),
        "streak": calculate_streak_info(student, historical_ranks),
        "radar": get_student_radar_data(
            student, period, subjects, payload.get("radar_baseline", "class"), rows
        ),
        "subject_trends": {
            sub: get_student_subject_trend(student, sub, subject_ranks) for sub in subjects
        },
        "ledger": ledger,
    }
