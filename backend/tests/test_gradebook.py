"""
Tests for grading/gradebook.py — class gradebook, summary, CSV and Excel export.
"""

import io
import os
import sys
from datetime import date, datetime, timezone

import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from grading.gradebook import (
    assignment_columns,
    build_gradebook,
    gradebook_filename,
    gradebook_records,
    gradebook_to_csv,
    gradebook_to_xlsx,
    summarize_gradebook,
)
from grading.models import Assignment

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def course():
    return {
        "title": "Intro to Biology",
        "instructor": {"firstName": "Ada", "lastName": "Okafor", "email": "ada@example.edu"},
        "groups": [{"name": "Homework", "weight": 70}, {"name": "Quizzes", "weight": 30}],
    }


@pytest.fixture
def assignments():
    return [
        {"_id": "hw1", "title": "HW 1", "group": "Homework", "totalPoints": 100, "published": True},
        {"_id": "qz1", "title": "Quiz 1", "group": "Quizzes", "totalPoints": 20, "published": True},
    ]


@pytest.fixture
def students():
    return [
        {"_id": "s1", "firstName": "Alice", "lastName": "Kim", "email": "alice@example.edu"},
        {"_id": "s2", "firstName": "Brian", "lastName": "Otieno", "email": "brian@example.edu"},
        {"_id": "s3", "firstName": "Carla", "lastName": "Diaz", "email": "carla@example.edu"},
    ]


@pytest.fixture
def grades():
    return {
        "s1": {"hw1": 95, "qz1": 18},
        "s2": {"hw1": 72.5},
        "s3": {"hw1": "", "qz1": 0},
    }


@pytest.fixture
def gradebook(course, assignments, students, grades):
    return build_gradebook(course, assignments, students, grades, {}, NOW)


class TestBuildGradebook:
    """Tests for build_gradebook."""

    def test_one_row_per_student(self, gradebook):
        assert isinstance(gradebook, pd.DataFrame)
        assert list(gradebook["student_id"]) == ["s1", "s2", "s3"]

    def test_score_cells(self, gradebook):
        assert list(gradebook["HW 1"]) == ["95", "72.5", "-"]
        assert list(gradebook["Quiz 1"]) == ["18", "-", "0"]

    def test_percent_and_letter(self, gradebook):
        s1 = gradebook.iloc[0]
        assert s1["percent"] == pytest.approx(95 * 0.7 + 90 * 0.3)
        assert s1["letter"] == "A"
        s3 = gradebook.iloc[2]
        assert s3["percent"] == pytest.approx(0.0)
        assert s3["letter"] == "F"

    def test_rank_and_percentile(self, gradebook):
        assert list(gradebook["rank"]) == [1, 2, 3]
        assert gradebook.iloc[0]["percentile"] == pytest.approx(100.0)

    def test_empty_student_list(self, course, assignments):
        df = build_gradebook(course, assignments, [], {}, {}, NOW)
        assert df.empty
        assert "rank" in df.columns

    def test_duplicate_titles_get_ids(self):
        items = [Assignment(id="a", title="Lab"), Assignment(id="b", title="Lab")]
        assert assignment_columns(items) == {"a": "Lab (a)", "b": "Lab (b)"}

    def test_reserved_titles_get_ids(self):
        items = [Assignment(id="a", title="percent"), Assignment(id="b", title="Email")]
        assert assignment_columns(items) == {"a": "percent (a)", "b": "Email (b)"}

    def test_assignment_titled_like_result_column(self, course):
        items = [{"_id": "p1", "title": "percent", "group": "Homework", "totalPoints": 100, "published": True}]
        students = [{"_id": "s1", "firstName": "Alice", "lastName": "Kim"}]
        df = build_gradebook(course, items, students, {"s1": {"p1": 70}}, {}, NOW)
        assert df.iloc[0]["percent (p1)"] == "70"
        assert df.iloc[0]["percent"] == pytest.approx(70.0)
        assert df.iloc[0]["rank"] == 1
        text = gradebook_to_csv(course, df, date(2025, 3, 1))
        assert "Student Name,Email,percent (p1),Overall Grade,Letter Grade" in text


class TestSummarizeGradebook:
    """Tests for summarize_gradebook."""

    def test_summary_values(self, gradebook):
        summary = summarize_gradebook(gradebook)
        assert summary["student_count"] == 3
        assert summary["max"] == pytest.approx(93.5)
        assert summary["letter_distribution"]["A"] == 1
        assert summary["letter_distribution"]["F"] == 1
        assert summary["top_students"][0]["student_id"] == "s1"

    def test_empty_summary(self):
        summary = summarize_gradebook(pd.DataFrame())
        assert summary["student_count"] == 0
        assert summary["mean"] is None

    def test_records_are_plain_python(self, gradebook):
        records = gradebook_records(gradebook, ["student_id", "rank"])
        assert records[0] == {"student_id": "s1", "rank": 1}
        assert type(records[0]["rank"]) is int


class TestCsvExport:
    """Tests for gradebook_to_csv."""

    def test_header_block(self, course, gradebook):
        text = gradebook_to_csv(course, gradebook, date(2025, 3, 1))
        lines = text.split("\n")
        assert lines[0] == "Course: Intro to Biology"
        assert lines[1] == "Instructor: Ada Okafor (ada@example.edu)"
        assert lines[2] == "Export Date: 2025-03-01"
        assert lines[3] == ""
        assert lines[4] == "Student Name,Email,HW 1,Quiz 1,Overall Grade,Letter Grade"

    def test_rows_use_two_decimals(self, course, gradebook):
        text = gradebook_to_csv(course, gradebook, date(2025, 3, 1))
        lines = text.split("\n")
        assert lines[5] == "Alice Kim,alice@example.edu,95,18,93.50,A"
        assert lines[7].endswith(",0.00,F")

    def test_no_instructor(self, course, gradebook):
        course.pop("instructor")
        text = gradebook_to_csv(course, gradebook, date(2025, 3, 1))
        assert "Instructor: No Instructor Assigned" in text

    def test_filename(self, course):
        assert gradebook_filename(course, date(2025, 3, 1)) == "gradebook_Intro_to_Biology_2025-03-01.csv"


class TestExcelExport:
    """Tests for gradebook_to_xlsx."""

    def test_creates_workbook(self, course, gradebook, tmp_path):
        path = tmp_path / "gradebook.xlsx"
        gradebook_to_xlsx(course, gradebook, str(path), date(2025, 3, 1))
        assert path.exists() and path.stat().st_size > 0
        xl = pd.ExcelFile(path)
        sheet_names = xl.sheet_names
        xl.close()
        assert sheet_names == ["Gradebook", "Summary"]

    def test_writes_to_buffer(self, course, gradebook):
        buffer = io.BytesIO()
        gradebook_to_xlsx(course, gradebook, buffer)
        assert buffer.getvalue()[:2] == b"PK"
