"""
Tests for routes/ — grades and export endpoints through the FastAPI app.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app

NOW = "2025-03-01T00:00:00Z"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def payload():
    return {
        "course": {
            "title": "Intro to Biology",
            "groups": [{"name": "Homework", "weight": 70}, {"name": "Quizzes", "weight": 30}],
        },
        "assignments": [
            {"_id": "hw1", "title": "HW 1", "group": "Homework", "totalPoints": 100, "published": True},
            {"_id": "qz1", "title": "Quiz 1", "group": "Quizzes", "totalPoints": 20,
             "published": True, "dueDate": "2025-04-01T00:00:00Z"},
        ],
        "grades": {"s1": {"hw1": 85}},
        "submissionMap": {"s1_hw1": "sub-1"},
        "students": [{"_id": "s1", "firstName": "Alice", "lastName": "Kim", "email": "alice@example.edu"}],
        "now": NOW,
    }


class TestGradeRoutes:
    """Tests for /api/grades."""

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_student_grade(self, client, payload):
        resp = client.post("/api/grades/student/s1", json=payload)
        assert resp.status_code == 200
        body = resp.json()
        assert body["percent"] == pytest.approx(85.0)
        assert body["letter"] == "B"
        assert body["groups"][0]["assignments"][0]["submitted"] is True

    def test_missing_course_is_400(self, client, payload):
        payload.pop("course")
        resp = client.post("/api/grades/student/s1", json=payload)
        assert resp.status_code == 400

    def test_invalid_assignment_is_400(self, client, payload):
        payload["assignments"].append({"title": "no id"})
        resp = client.post("/api/grades/student/s1", json=payload)
        assert resp.status_code == 400

    def test_unparseable_due_date_still_grades(self, client, payload):
        payload["assignments"][1]["dueDate"] = "not-a-date"
        resp = client.post("/api/grades/student/s1", json=payload)
        assert resp.status_code == 200
        assert resp.json()["percent"] == pytest.approx(85.0)

    def test_what_if(self, client, payload):
        payload["overrides"] = {"qz1": 10}
        resp = client.post("/api/grades/what-if/s1", json=payload)
        assert resp.status_code == 200
        body = resp.json()
        assert body["current"]["percent"] == pytest.approx(85.0)
        assert body["projected"]["percent"] == pytest.approx(85 * 0.7 + 50 * 0.3)

    def test_letter(self, client):
        resp = client.post("/api/grades/letter", json={"percent": 89.999})
        assert resp.json()["letter"] == "B"

    def test_letter_requires_number(self, client):
        resp = client.post("/api/grades/letter", json={"percent": "90"})
        assert resp.status_code == 400

    def test_scale(self, client):
        resp = client.get("/api/grades/scale")
        assert [s["letter"] for s in resp.json()["grade_scale"]] == ["A", "B", "C", "D", "F"]


class TestExportRoutes:
    """Tests for /api/export."""

    def test_csv_download(self, client, payload):
        resp = client.post("/api/export/gradebook/csv", json=payload)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "gradebook_Intro_to_Biology_2025-03-01.csv" in resp.headers["content-disposition"]
        assert "Alice Kim,alice@example.edu,85,-,85.00,B" in resp.text

    def test_xlsx_download(self, client, payload):
        resp = client.post("/api/export/gradebook/xlsx", json=payload)
        assert resp.status_code == 200
        assert resp.content[:2] == b"PK"

    def test_summary(self, client, payload):
        resp = client.post("/api/export/gradebook/summary", json=payload)
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["student_count"] == 1
        assert body["students"][0]["rank"] == 1

    def test_missing_students_is_400(self, client, payload):
        payload["students"] = []
        resp = client.post("/api/export/gradebook/csv", json=payload)
        assert resp.status_code == 400
