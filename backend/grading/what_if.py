"""
what_if.py — Project a student's grade under hypothetical scores.

Hypothetical scores are layered over the recorded ones for a single student;
the recorded grades map is never modified.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from grading.assignments import numeric_grade, utc_now
from grading.engine import AssignmentsInput, CourseInput, as_assignments, as_course, compute_student_grade
from grading.models import GradeResult
from grading.weighting import student_grades_for

logger = logging.getLogger(__name__)


class WhatIfResult(BaseModel):
    student_id: str
    current: GradeResult
    projected: GradeResult
    delta: float
    overrides: Dict[str, float] = Field(default_factory=dict)


def numeric_overrides(overrides: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """Hypothetical scores that are real numbers; anything else is dropped."""
    scores = {}
    for assignment_id, value in (overrides or {}).items():
        score = numeric_grade(value)
        if score is None:
            logger.debug("Dropping non-numeric what-if score for %s: %r", assignment_id, value)
            continue
        scores[str(assignment_id)] = score
    return scores


def apply_overrides(
    grades: Optional[Dict[str, Any]],
    student_id: Any,
    overrides: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """A new grades map with the student's row replaced by recorded + hypothetical scores."""
    merged = dict(grades) if isinstance(grades, dict) else {}
    row = dict(student_grades_for(grades, student_id))
    row.update(numeric_overrides(overrides))
    merged[str(student_id)] = row
    return merged


def simulate_what_if(
    student_id: Any,
    course: CourseInput,
    assignments: Optional[AssignmentsInput],
    grades: Optional[Dict[str, Any]],
    overrides: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> WhatIfResult:
    course = as_course(course)
    assignment_list = as_assignments(assignments)
    now = utc_now() if now is None else now

    current = compute_student_grade(student_id, course, assignment_list, grades, submission_map, now)
    projected_grades = apply_overrides(grades, student_id, overrides)
    projected = compute_student_grade(student_id, course, assignment_list, projected_grades, submission_map, now)

    return WhatIfResult(
        student_id=current.student_id,
        current=current,
        projected=projected,
        delta=projected.percent - current.percent,
        overrides=numeric_overrides(overrides),
    )
