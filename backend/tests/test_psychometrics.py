"""
Tests for engine/psychometrics.py — exam parameters and reliability.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.psychometrics import calculate_exam_parameters, infer_full_score
from engine.ranks import calculate_historical_ranks
from engine.snapshot import get_period_snapshot


def _rows(make_student, score_lists):
    """score_lists: {subject: [score per student]}"""
    n = len(next(iter(score_lists.values())))
    students = [
        make_student(f"S{i}", "1A", [{
            "period": "P1",
            "scores": {sub: scores[i] for sub, scores in score_lists.items()},
        }])
        for i in range(n)
    ]
    return get_period_snapshot(students, "P1", calculate_historical_ranks(students))


class TestInferFullScore:

    @pytest.mark.parametrize("max_score,expected", [
        (80, 100), (100, 100), (101, 120), (120, 120), (121, 150), (150, 150), (151, 160), (238, 240),
    ])
    def test_ladder(self, max_score, expected):
        assert infer_full_score(max_score) == expected


class TestSubjectParameters:

    def test_descriptive_stats(self, make_student):
        result = calculate_exam_parameters(_rows(make_student, {"Math": [60, 60, 60, 70, 80]}), ["Math"])
        stats = result["subject_stats"][0]
        assert stats["participants"] == 5
        assert stats["max"] == 80
        assert stats["full_score"] == 100
        assert stats["mean"] == 66
        assert stats["median"] == 60
        assert stats["variance"] == pytest.approx(64)
        assert stats["std_dev"] == 8
        assert stats["difficulty"] == 0.66
        assert stats["mode"] == [60]
        assert stats["mode_truncated"] is False

    def test_discrimination_uses_27_percent_groups(self, make_student):
        result = calculate_exam_parameters(_rows(make_student, {"Math": [60, 60, 60, 70, 80]}), ["Math"])
        # one student per group: (80 - 60) / 100
        assert result["subject_stats"][0]["discrimination"] == 0.2

    def test_no_mode_when_all_unique(self, make_student):
        result = calculate_exam_parameters(_rows(make_student, {"Math": [10, 20, 30]}), ["Math"])
        assert result["subject_stats"][0]["mode"] is None

    def test_mode_truncated_after_three(self, make_student):
        result = calculate_exam_parameters(
            _rows(make_student, {"Math": [1, 1, 2, 2, 3, 3, 4, 4]}), ["Math"]
        )
        stats = result["subject_stats"][0]
        assert stats["mode"] == [1, 2, 3]
        assert stats["mode_truncated"] is True

    def test_full_score_override(self, make_student):
        result = calculate_exam_parameters(
            _rows(make_student, {"Math": [60, 60, 60, 70, 80]}), ["Math"], full_scores={"Math": 150}
        )
        stats = result["subject_stats"][0]
        assert stats["full_score"] == 150
        assert stats["difficulty"] == 0.44

    def test_missing_score_counts_as_zero(self, cohort):
        rows = get_period_snapshot(cohort, "P3", calculate_historical_ranks(cohort))
        stats = calculate_exam_parameters(rows, ["Math"])["subject_stats"][0]
        assert stats["participants"] == 5
        assert stats["mean"] == 60.6


class TestReliability:

    def test_single_subject(self, make_student):
        result = calculate_exam_parameters(_rows(make_student, {"Math": [1, 2, 3]}), ["Math"])
        assert result["reliability"] == 1

    def test_perfectly_consistent_subjects(self, make_student):
        rows = _rows(make_student, {"Math": [1, 2, 3], "English": [1, 2, 3]})
        assert calculate_exam_parameters(rows, ["Math", "English"])["reliability"] == 1

    def test_zero_total_variance(self, make_student):
        rows = _rows(make_student, {"Math": [10, 20], "English": [20, 10]})
        assert calculate_exam_parameters(rows, ["Math", "English"])["reliability"] == 0

    def test_empty_snapshot(self):
        assert calculate_exam_parameters([], ["Math"]) is None
