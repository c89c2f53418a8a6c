"""
Tests for the HTTP layer — analyze, state and report endpoints.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app

SETTINGS = {"manual_thresholds": {"QingBei": 1, "C9": 3}, "threshold_type": "rank"}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def payload(cohort):
    return {"students": [s.to_dict() for s in cohort], "settings": SETTINGS}


class TestMeta:

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_config_defaults(self, client):
        body = client.get("/api/config").json()
        assert body["labels"][0] == "QingBei"
        assert body["comparison_thresholds"] == [50, 100, 200, 400]


class TestAnalyzeRoutes:

    def test_ranks(self, client, payload):
        body = client.post("/api/analyze/ranks", json=payload).json()
        assert body["periods"] == ["P1", "P2", "P3"]
        assert body["school"]["P1"]["Alice"] == 1
        assert body["class"]["P1"]["Cathy"] == 1

    def test_snapshot_defaults_to_latest_period(self, client, payload):
        body = client.post("/api/analyze/snapshot", json=payload).json()
        assert body["period"] == "P3"
        assert [r["name"] for r in body["rows"]][:2] == ["Alice", "Brian"]

    def test_school_distribution(self, client, payload):
        body = client.post("/api/analyze/school", json={**payload, "period": "P1"}).json()
        assert body["threshold_type"] == "rank"
        assert body["admission_distribution"] == [
            {"name": "QingBei", "value": 1},
            {"name": "C9", "value": 2},
            {"name": "NotAdmitted", "value": 2},
        ]

    def test_subject_analysis(self, client, payload):
        body = client.post(
            "/api/analyze/subject", json={**payload, "period": "P3", "subject": "Math"}
        ).json()
        assert sum(d["count"] for d in body["distribution"]) == 4

    def test_class_comparison(self, client, payload):
        body = client.post("/api/analyze/class-comparison", json={**payload, "period": "P1"}).json()
        assert [s["class_name"] for s in body["summaries"]] == ["1A", "1B"]
        assert body["leaderboard"]["highest_average"]["class_name"] == "1A"

    def test_class_comparison_cutoffs(self, client, payload):
        body = client.post(
            "/api/analyze/class-comparison",
            json={**payload, "period": "P1", "elite_cutoff": 1, "bench_cutoff": 3},
        ).json()
        by_class = {s["class_name"]: s for s in body["summaries"]}
        assert by_class["1A"]["elite_count"] == 1
        assert by_class["1B"]["bench_count"] == 1

    def test_class_comparison_default_cutoffs(self, client, payload):
        body = client.post("/api/analyze/class-comparison", json={**payload, "period": "P1"}).json()
        by_class = {s["class_name"]: s for s in body["summaries"]}
        assert by_class["1B"]["elite_count"] == 3

    @pytest.mark.parametrize("cutoff", ["abc", -5, [1]])
    def test_invalid_cutoff(self, client, payload, cutoff):
        resp = client.post("/api/analyze/class-comparison", json={**payload, "elite_cutoff": cutoff})
        assert resp.status_code == 400

    def test_null_threshold_value(self, client, payload):
        settings = {"manual_thresholds": {"QingBei": None}, "threshold_type": "rank"}
        resp = client.post("/api/analyze/school", json={**payload, "settings": settings})
        assert resp.status_code == 400

    def test_parameters(self, client, payload):
        body = client.post("/api/analyze/parameters", json={**payload, "period": "P1"}).json()
        subjects = [s["subject"] for s in body["parameters"]["subject_stats"]]
        assert subjects == ["Math", "English"]

    def test_progress(self, client, payload):
        body = client.post(
            "/api/analyze/progress", json={**payload, "period_x": "P1", "period_y": "P3"}
        ).json()
        by_name = {r["name"]: r for r in body["rows"]}
        assert by_name["Brian"]["coefficient"] == 0.4

    def test_progress_defaults_to_last_two_periods(self, client, payload):
        body = client.post("/api/analyze/progress", json=payload).json()
        assert (body["period_x"], body["period_y"]) == ("P2", "P3")

    def test_student_detail(self, client, payload):
        body = client.post("/api/analyze/student/Brian", json=payload).json()
        assert body["streak"]["type"] == "improvement"
        assert [entry["period"] for entry in body["ledger"]] == ["P1", "P2", "P3"]
        assert body["ledger"][0]["subjects"]["Math"] == {"rank": 3, "category": "elite"}

    def test_unknown_student(self, client, payload):
        assert client.post("/api/analyze/student/Nobody", json=payload).status_code == 404

    def test_unknown_period(self, client, payload):
        resp = client.post("/api/analyze/snapshot", json={**payload, "period": "P9"})
        assert resp.status_code == 404

    def test_missing_students(self, client):
        assert client.post("/api/analyze/ranks", json={}).status_code == 400

    def test_invalid_threshold_type(self, client, payload):
        resp = client.post(
            "/api/analyze/school", json={**payload, "settings": {"threshold_type": "score"}}
        )
        assert resp.status_code == 400


class TestStateRoutes:

    @pytest.fixture(autouse=True)
    def data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

    def test_save_load_clear(self, client, payload):
        assert client.get("/api/state").status_code == 404
        assert client.put("/api/state", json=payload).json() == {"saved": 5}

        body = client.get("/api/state").json()
        assert len(body["students"]) == 5
        assert body["settings"]["manual_thresholds"] == {"QingBei": 1, "C9": 3}

        assert client.delete("/api/state").json() == {"cleared": True}
        assert client.get("/api/state").status_code == 404


class TestReportRoutes:

    def test_ledger_excel(self, client, payload):
        resp = client.post("/api/reports/ledger-excel", json=payload)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert len(resp.content) > 0
