"""
psychometrics.py — Exam parameters per subject and exam reliability.

Computes:
- Descriptive stats (mean, median, mode, std, variance)
- Difficulty (mean / full score)
- Discrimination (top 27% vs bottom 27% mean gap / full score)
- Reliability across subjects (Cronbach's alpha on subject variances)
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from engine.models import PeriodRow
from engine.numeric import round_half_up, safe_float

GROUP_FRACTION = 0.27
MAX_MODES = 3


def infer_full_score(max_score: float) -> int:
    """
    Guess the maximum possible score from the best observed score.

    Exports carry no explicit full-score column, so the usual paper sizes
    (100, 120, 150) are assumed, rounding up to the next 10 beyond that.
    """
    if max_score > 150:
        return int(math.ceil(max_score / 10) * 10)
    if max_score > 120:
        return 150
    if max_score > 100:
        return 120
    return 100


def _modes(scores: np.ndarray) -> Dict[str, Any]:
    """Most frequent scores; None when every score is unique."""
    values, counts = np.unique(scores, return_counts=True)
    top = counts.max()
    if top == 1 and len(scores) > 1:
        return {"mode": None, "mode_truncated": False}
    tied = [float(v) for v, c in zip(values, counts) if c == top]
    return {"mode": tied[:MAX_MODES], "mode_truncated": len(tied) > MAX_MODES}


def _subject_parameters(subject: str, scores: np.ndarray, full_score: Optional[float]) -> Dict[str, Any]:
    n = len(scores)
    max_score = float(scores[-1])
    full = full_score or infer_full_score(max_score)

    mean = float(scores.mean())
    variance = float(scores.var())

    split = round_half_up(n * GROUP_FRACTION)
    top = scores[n - split:] if split else scores[:0]
    bottom = scores[:split]
    mean_top = float(top.mean()) if len(top) else 0.0
    mean_bottom = float(bottom.mean()) if len(bottom) else 0.0

    stats = {
        "subject": subject,
        "participants": n,
        "max": max_score,
        "full_score": full,
        "mean": safe_float(mean),
        "median": safe_float(np.median(scores)),
        "std_dev": safe_float(math.sqrt(variance)),
        "variance": variance,
        "difficulty": safe_float(mean / full),
        "discrimination": safe_float((mean_top - mean_bottom) / full),
    }
    stats.update(_modes(scores))
    return stats


def calculate_exam_parameters(
    period_rows: Sequence[PeriodRow],
    subjects: Sequence[str],
    full_scores: Optional[Mapping[str, float]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Per-subject exam parameters plus whole-exam reliability.

    Every row is a participant; a missing subject score counts as 0.
    `full_scores` overrides the inferred full score per subject.
    """
    if not period_rows:
        return None
    full_scores = full_scores or {}

    subject_stats: List[Dict[str, Any]] = []
    for sub in subjects:
        scores = np.sort(np.array([r.score_or_zero(sub) for r in period_rows], dtype="float64"))
        subject_stats.append(_subject_parameters(sub, scores, full_scores.get(sub)))

    k = len(subjects)
    totals = np.array([r.current_total for r in period_rows], dtype="float64")
    var_total = float(totals.var())
    sum_item_var = sum(s["variance"] for s in subject_stats)

    if k <= 1:
        reliability = 1.0
    elif var_total == 0:
        reliability = 0.0
    else:
        reliability = (k / (k - 1)) * (1 - sum_item_var / var_total)

    return {
        "subject_stats": subject_stats,
        "reliability": safe_float(reliability),
    }
