"""
Grades routes — course grade computation endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, HTTPException
from pydantic import TypeAdapter, ValidationError

from grading.engine import compute_student_grade
from grading.letter_grades import grade_scale_thresholds, letter_for
from grading.models import Assignment, Course
from grading.what_if import simulate_what_if

router = APIRouter()

_NOW_ADAPTER = TypeAdapter(Optional[datetime])


def grading_inputs(payload: dict) -> Tuple[Course, List[Assignment], Dict[str, Any], Dict[str, Any], Optional[datetime]]:
    """
    Extract and validate engine inputs from a request payload.
    Expects: { "course": {...}, "assignments": [...], "grades": {...},
               "submissionMap": {...}, "now": "2025-01-01T00:00:00Z" (optional) }
    """
    course_data = payload.get("course")
    assignment_data = payload.get("assignments")
    if course_data is None:
        raise HTTPException(400, "No course provided.")
    if not isinstance(assignment_data, list):
        raise HTTPException(400, "Provide 'assignments' as a list.")

    grades = payload.get("grades") or {}
    submission_map = payload.get("submissionMap") or payload.get("submission_map") or {}
    if not isinstance(grades, dict) or not isinstance(submission_map, dict):
        raise HTTPException(400, "'grades' and 'submissionMap' must be objects.")

    try:
        course = Course.model_validate(course_data)
        assignments = [Assignment.model_validate(a) for a in assignment_data]
        now = _NOW_ADAPTER.validate_python(payload.get("now"))
    except ValidationError as e:
        raise HTTPException(400, f"Invalid grading payload: {e}")

    return course, assignments, grades, submission_map, now


@router.post("/student/{student_id}")
async def student_grade(student_id: str, payload: dict):
    """Weighted course grade for one student, with per-group breakdown."""
    course, assignments, grades, submission_map, now = grading_inputs(payload)
    result = compute_student_grade(student_id, course, assignments, grades, submission_map, now)
    return result.model_dump(mode="json")


@router.post("/what-if/{student_id}")
async def what_if(student_id: str, payload: dict):
    """
    Project the grade with hypothetical scores.
    Expects the grading payload plus { "overrides": { assignmentId: score } }.
    """
    course, assignments, grades, submission_map, now = grading_inputs(payload)
    overrides = payload.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise HTTPException(400, "'overrides' must be an object.")
    result = simulate_what_if(student_id, course, assignments, grades, overrides, submission_map, now)
    return result.model_dump(mode="json")


@router.post("/letter")
async def letter(payload: dict):
    """Map a percentage to a letter. Expects { "percent": 87.5, "gradeScale": [...] (optional) }."""
    percent = payload.get("percent")
    if isinstance(percent, bool) or not isinstance(percent, (int, float)):
        raise HTTPException(400, "Provide a numeric 'percent'.")
    scale = payload.get("gradeScale") or payload.get("grade_scale")
    return {"percent": percent, "letter": letter_for(percent, scale)}


@router.get("/scale")
async def default_scale():
    """Default letter grade scale."""
    return {"grade_scale": grade_scale_thresholds()}
