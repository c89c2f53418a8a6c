"""
records.py — Build StudentRecords from already-parsed exam data.

Two entry points:
- students_from_payload: JSON-style dicts (the persisted/HTTP shape)
- students_from_frame: a wide DataFrame, one row per student per period,
  one column per subject

Both raise ValueError when nothing usable is found.
"""

from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from engine.models import ScoreSnapshot, StudentRecord
from engine.numeric import round_to

NAME_ALIASES = ["name", "student_name", "full_name", "student"]
CLASS_ALIASES = ["class", "class_name", "grade", "form", "stream"]
PERIOD_ALIASES = ["period", "term", "exam", "exam_name"]
ID_ALIASES = ["student_id", "studentid", "id", "adm_no", "admission_no"]
TOTAL_ALIASES = ["total", "total_score", "totalscore"]
AVERAGE_ALIASES = ["average", "average_score", "averagescore", "avg", "mean"]
SCHOOL_RANK_ALIASES = ["school_rank", "total_rank", "rank"]
STATUS_ALIASES = ["status", "admission_status"]
COMPLETE_ALIASES = ["is_complete", "complete"]

RANK_SUFFIX = "_rank"


# ── Helpers ─────────────────────────────────────────────────────────

def _find_col(df: pd.DataFrame, aliases: List[str]) -> Optional[str]:
    """Find the first column matching any alias (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    for a in aliases:
        if a.lower() in cols_lower:
            return cols_lower[a.lower()]
    return None


def _pick(data: Dict[str, Any], *keys: str, default=None):
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


def _number(val) -> Optional[float]:
    try:
        v = float(val)
    except (TypeError, ValueError):
        return None
    return None if np.isnan(v) or np.isinf(v) else v


def _positive_int(val) -> Optional[int]:
    v = _number(val)
    return int(v) if v is not None and v > 0 else None


def _clean_status(val) -> Optional[str]:
    if val is None:
        return None
    text = str(val).strip()
    return None if not text or text.lower() == "nan" else text


def _make_snapshot(
    period: str,
    scores: Dict[str, float],
    total: Optional[float] = None,
    average: Optional[float] = None,
    ranks: Optional[Dict[str, int]] = None,
    school_rank: Optional[int] = None,
    status: Optional[str] = None,
    is_complete: Optional[bool] = None,
) -> ScoreSnapshot:
    if total is None:
        total = sum(scores.values())
    if average is None:
        average = round_to(total / len(scores), 2) if scores else 0.0
    return ScoreSnapshot(
        period=str(period),
        scores=scores,
        total_score=total,
        average_score=average,
        ranks=ranks or {},
        school_rank=school_rank,
        status=status,
        is_complete=is_complete,
    )


def _make_student(sid: str, name: str, class_name: str, snapshots: Iterable[ScoreSnapshot]) -> StudentRecord:
    # One snapshot per period; a re-imported period replaces the earlier one in place.
    by_period: Dict[str, ScoreSnapshot] = {}
    for snap in snapshots:
        by_period[snap.period] = snap
    history = tuple(by_period.values())
    latest = history[-1] if history else None
    return StudentRecord(
        id=str(sid),
        name=str(name),
        class_name=str(class_name),
        history=history,
        scores=dict(latest.scores) if latest else {},
        total_score=latest.total_score if latest else 0.0,
        average_score=latest.average_score if latest else 0.0,
    )


# ── Payload ─────────────────────────────────────────────────────────

def snapshot_from_dict(data: Dict[str, Any]) -> ScoreSnapshot:
    scores = {
        str(k): v for k, v in ((k, _number(v)) for k, v in (data.get("scores") or {}).items())
        if v is not None
    }
    ranks = {
        str(k): r for k, r in ((k, _positive_int(v)) for k, v in (data.get("ranks") or {}).items())
        if r is not None
    }
    return _make_snapshot(
        period=_pick(data, "period", default=""),
        scores=scores,
        total=_number(_pick(data, "total_score", "totalScore")),
        average=_number(_pick(data, "average_score", "averageScore")),
        ranks=ranks,
        school_rank=_positive_int(_pick(data, "school_rank", "schoolRank")),
        status=_clean_status(_pick(data, "status")),
        is_complete=_pick(data, "is_complete", "isComplete"),
    )


def students_from_payload(items: Optional[List[Dict[str, Any]]]) -> List[StudentRecord]:
    """Parse student dicts ({id, name, class, history: [...]})."""
    students = []
    for item in items or []:
        name = _pick(item, "name")
        if not name:
            continue
        students.append(_make_student(
            sid=_pick(item, "id", "student_id", default=name),
            name=name,
            class_name=_pick(item, "class", "class_name", default=""),
            snapshots=[snapshot_from_dict(h) for h in item.get("history") or []],
        ))
    if not students:
        raise ValueError("No records found in the provided data.")
    return students


# ── DataFrame ───────────────────────────────────────────────────────

def _detect_subjects(df: pd.DataFrame, reserved: Iterable[Optional[str]]) -> List[str]:
    skip = {c for c in reserved if c}
    subjects = []
    for col in df.columns:
        if col in skip or str(col).lower().endswith(RANK_SUFFIX):
            continue
        if pd.to_numeric(df[col], errors="coerce").notna().any():
            subjects.append(str(col))
    return subjects


def students_from_frame(df: pd.DataFrame, subjects: Optional[List[str]] = None) -> List[StudentRecord]:
    """
    Merge a wide score table into per-student histories.

    Students are identified by (name, class) and keep their first-seen order;
    periods keep their row order.
    """
    df = df.copy()
    name_col = _find_col(df, NAME_ALIASES)
    period_col = _find_col(df, PERIOD_ALIASES)
    if not name_col or not period_col:
        raise ValueError("No name or period column found in data.")

    class_col = _find_col(df, CLASS_ALIASES)
    id_col = _find_col(df, ID_ALIASES)
    total_col = _find_col(df, TOTAL_ALIASES)
    average_col = _find_col(df, AVERAGE_ALIASES)
    rank_col = _find_col(df, SCHOOL_RANK_ALIASES)
    status_col = _find_col(df, STATUS_ALIASES)
    complete_col = _find_col(df, COMPLETE_ALIASES)

    df = df[df[name_col].notna() & (df[name_col].astype(str).str.strip() != "")].copy()
    if df.empty:
        raise ValueError("No records found in the provided data.")

    if subjects is None:
        reserved = [
            name_col, period_col, class_col, id_col,
            total_col, average_col, rank_col, status_col, complete_col,
        ]
        subjects = _detect_subjects(df, reserved)

    df["_class"] = df[class_col].astype(str).str.strip() if class_col else ""
    df["_name"] = df[name_col].astype(str).str.strip()

    students = []
    for (name, class_name), group in df.groupby(["_name", "_class"], sort=False):
        snapshots = []
        for _, row in group.iterrows():
            scores: Dict[str, float] = {}
            ranks: Dict[str, int] = {}
            for sub in subjects:
                v = _number(row.get(sub))
                if v is not None:
                    scores[sub] = v
                r = _positive_int(row.get(f"{sub}{RANK_SUFFIX}"))
                if r is not None:
                    ranks[sub] = r
            snapshots.append(_make_snapshot(
                period=str(row[period_col]).strip(),
                scores=scores,
                total=_number(row[total_col]) if total_col else None,
                average=_number(row[average_col]) if average_col else None,
                ranks=ranks,
                school_rank=_positive_int(row[rank_col]) if rank_col else None,
                status=_clean_status(row[status_col]) if status_col else None,
                is_complete=bool(row[complete_col]) if complete_col else None,
            ))
        sid = group.iloc[0][id_col] if id_col else name
        students.append(_make_student(sid, name, class_name, snapshots))
    return students


def subjects_of(students: Iterable[StudentRecord]) -> List[str]:
    """Subjects in first-seen order across all histories."""
    seen: Dict[str, None] = {}
    for s in students:
        for snap in s.history:
            for sub in snap.scores:
                seen.setdefault(sub, None)
    return list(seen)


def classes_of(students: Iterable[StudentRecord]) -> List[str]:
    seen: Dict[str, None] = {}
    for s in students:
        seen.setdefault(s.class_name, None)
    return list(seen)
