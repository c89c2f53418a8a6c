"""
Shared fixtures: small hand-built cohorts.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.models import ScoreSnapshot, StudentRecord  # noqa: E402


def build_student(name, class_name, history, sid=None):
    """history: list of dicts with period, scores and optional imported fields."""
    snaps = []
    for h in history:
        scores = dict(h.get("scores", {}))
        total = h.get("total", sum(scores.values()))
        snaps.append(ScoreSnapshot(
            period=h["period"],
            scores=scores,
            total_score=total,
            average_score=total / len(scores) if scores else 0,
            ranks=h.get("ranks", {}),
            school_rank=h.get("school_rank"),
            status=h.get("status"),
        ))
    latest = snaps[-1] if snaps else None
    return StudentRecord(
        id=sid or name,
        name=name,
        class_name=class_name,
        history=tuple(snaps),
        scores=dict(latest.scores) if latest else {},
        total_score=latest.total_score if latest else 0,
        average_score=latest.average_score if latest else 0,
    )


@pytest.fixture
def make_student():
    return build_student


@pytest.fixture
def cohort():
    """Five students, two classes, three periods; Eve skips P2."""
    return [
        build_student("Alice", "1A", [
            {"period": "P1", "scores": {"Math": 90, "English": 80}},
            {"period": "P2", "scores": {"Math": 85, "English": 82}},
            {"period": "P3", "scores": {"Math": 95, "English": 90}},
        ]),
        build_student("Brian", "1A", [
            {"period": "P1", "scores": {"Math": 60, "English": 70}},
            {"period": "P2", "scores": {"Math": 75, "English": 72}},
            {"period": "P3", "scores": {"Math": 88, "English": 85}},
        ]),
        build_student("Cathy", "1B", [
            {"period": "P1", "scores": {"Math": 70, "English": 90}},
            {"period": "P2", "scores": {"Math": 65, "English": 60}},
            {"period": "P3", "scores": {"Math": 50, "English": 55}},
        ]),
        build_student("David", "1B", [
            {"period": "P1", "scores": {"Math": 40, "English": 50}},
            {"period": "P2", "scores": {"Math": 80, "English": 70}},
            {"period": "P3", "scores": {"Math": 70, "English": 65}},
        ]),
        build_student("Eve", "1B", [
            {"period": "P1", "scores": {"Math": 30, "English": 35}},
            {"period": "P3", "scores": {"English": 40}},
        ]),
    ]
