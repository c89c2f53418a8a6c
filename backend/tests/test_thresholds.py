"""
Tests for engine/thresholds.py — admission-line resolution and classification.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.models import UNRANKED, PeriodRow
from engine.ranks import calculate_historical_ranks, get_effective_cohort_size
from engine.settings import ADMISSION_LABELS, NOT_ADMITTED, AnalysisSettings
from engine.snapshot import get_period_snapshot
from engine.thresholds import (
    derive_thresholds_from_metadata,
    effective_population,
    get_admission_category,
    get_subject_rank_category,
    resolve_thresholds,
    to_absolute_limit,
)

THRESHOLDS = {"QingBei": 5, "C9": 30, "HighScore": 100, "Prestige": 300, "TeKong": 600}


def _row(name, rank, status=None):
    return PeriodRow(
        id=name, name=name, class_name="1A", current_scores={},
        current_total=0, current_average=0, current_status=status,
        period_school_rank=rank,
    )


class TestToAbsoluteLimit:

    def test_rank_mode_uses_value(self):
        assert to_absolute_limit(30, "rank", 1000) == 30

    def test_percent_mode_rounds_half_up(self):
        assert to_absolute_limit(50, "percent", 3) == 2
        assert to_absolute_limit(50, "percent", 5) == 3

    def test_missing_value(self):
        assert to_absolute_limit(None, "rank", 10) is None


class TestDeriveThresholdsFromMetadata:

    def test_worst_matching_rank_as_percentage(self):
        rows = [_row("a", 2, "QingBei"), _row("b", 10, "C9"), _row("c", 40, "C9 line"), _row("d", 80)]
        derived = derive_thresholds_from_metadata(rows, ["QingBei", "C9", "TeKong"])
        assert derived["QingBei"] == 2.5
        assert derived["C9"] == 50.0
        assert derived["TeKong"] == 0

    def test_population_at_least_participant_count(self):
        rows = [_row("a", 1, "C9"), _row("b", 2)]
        derived = derive_thresholds_from_metadata(rows, ["C9"], cohort_size=10)
        assert derived["C9"] == 10.0

    def test_rounded_to_four_decimals(self):
        rows = [_row("a", 1, "C9"), _row("b", 2), _row("c", 3)]
        assert derive_thresholds_from_metadata(rows, ["C9"])["C9"] == 33.3333

    def test_absent_students_not_counted(self, make_student):
        students = [
            make_student(f"S{i}", "1A", [{"period": "P1", "scores": {"Math": 100 - i}, "status": "C9"}])
            for i in range(4)
        ]
        students.append(make_student("Away", "1A", [{"period": "P2", "scores": {"Math": 50}}]))
        ranks = calculate_historical_ranks(students)
        rows = get_period_snapshot(students, "P1", ranks)
        assert len(rows) == 5
        assert derive_thresholds_from_metadata(rows, ["C9"])["C9"] == 100.0
        cohort_size = get_effective_cohort_size("P1", rows, ranks)
        assert derive_thresholds_from_metadata(rows, ["C9"], cohort_size)["C9"] == 100.0

    def test_unranked_rows_ignored(self):
        rows = [_row("a", UNRANKED, "C9"), _row("b", 4)]
        assert derive_thresholds_from_metadata(rows, ["C9"])["C9"] == 0


class TestResolveThresholds:

    def test_imported_status_switches_to_percent(self):
        rows = [_row("a", 1, "C9"), _row("b", 2)]
        thresholds, threshold_type = resolve_thresholds(rows, AnalysisSettings(threshold_type="rank"))
        assert threshold_type == "percent"
        assert thresholds["C9"] == 50.0

    def test_manual_thresholds_without_status(self):
        settings = AnalysisSettings(manual_thresholds={"C9": 3}, threshold_type="rank")
        thresholds, threshold_type = resolve_thresholds([_row("a", 1)], settings)
        assert thresholds == {"C9": 3}
        assert threshold_type == "rank"

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            AnalysisSettings(threshold_type="score")


class TestGetAdmissionCategory:

    def test_tightest_line_first(self):
        assert get_admission_category(3, THRESHOLDS, "rank", 1000) == "QingBei"
        assert get_admission_category(30, THRESHOLDS, "rank", 1000) == "C9"
        assert get_admission_category(31, THRESHOLDS, "rank", 1000) == "HighScore"

    def test_below_all_lines(self):
        assert get_admission_category(601, THRESHOLDS, "rank", 1000) == NOT_ADMITTED

    def test_percent_mode(self):
        # 10% of 50 students -> rank 5
        assert get_admission_category(5, {"C9": 10}, "percent", 50, labels=["C9"]) == "C9"
        assert get_admission_category(6, {"C9": 10}, "percent", 50, labels=["C9"]) == NOT_ADMITTED

    def test_imported_status_wins(self):
        assert get_admission_category(900, THRESHOLDS, "rank", 1000, "Special Line") == "Special Line"

    def test_blank_or_not_admitted_status_ignored(self):
        assert get_admission_category(3, THRESHOLDS, "rank", 1000, "  ") == "QingBei"
        assert get_admission_category(3, THRESHOLDS, "rank", 1000, NOT_ADMITTED) == "QingBei"

    def test_monotonic_in_rank(self):
        order = list(ADMISSION_LABELS) + [NOT_ADMITTED]
        previous = 0
        for rank in range(1, 700):
            position = order.index(get_admission_category(rank, THRESHOLDS, "rank", 1000))
            assert position >= previous
            previous = position


class TestGetSubjectRankCategory:

    def test_categories_follow_lines(self):
        assert get_subject_rank_category(1, THRESHOLDS, "rank", 800) == "king"
        assert get_subject_rank_category(20, THRESHOLDS, "rank", 800) == "elite"
        assert get_subject_rank_category(100, THRESHOLDS, "rank", 800) == "high"
        assert get_subject_rank_category(250, THRESHOLDS, "rank", 800) == "standard"
        assert get_subject_rank_category(600, THRESHOLDS, "rank", 800) == "pass"
        assert get_subject_rank_category(601, THRESHOLDS, "rank", 800) == "fail"

    def test_uses_caller_participants(self):
        # 50% of 4 participants -> rank 2
        assert get_subject_rank_category(2, {"TeKong": 50}, "percent", 4) == "pass"
        assert get_subject_rank_category(3, {"TeKong": 50}, "percent", 4) == "fail"


class TestEffectivePopulation:

    def test_max_ranked(self):
        assert effective_population([_row("a", 3), _row("b", UNRANKED)]) == 3

    def test_fallback_to_rows(self):
        assert effective_population([_row("a", UNRANKED), _row("b", UNRANKED)]) == 2
