"""
engine.py — Overall course grade for one student.

Pipeline: classify and resolve each assignment, apply the zero-fill policy
inside each group aggregate, redistribute idle group weight, compose the
weighted percentage and map it to a letter.

Every call is computed from scratch and touches no shared state. Callers
that render many students should cache results keyed on their own input
versions.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from grading.assignments import utc_now
from grading.letter_grades import FALLBACK_LETTER, letter_for
from grading.models import Assignment, Course, GradeResult, Group
from grading.weighting import aggregate_group, aggregate_other, compose, redistribute

logger = logging.getLogger(__name__)

CourseInput = Union[Course, Dict[str, Any]]
AssignmentsInput = Sequence[Union[Assignment, Dict[str, Any]]]


# ── Input coercion ──────────────────────────────────────────────────

def as_course(course: CourseInput) -> Course:
    if isinstance(course, Course):
        return course
    return Course.model_validate(course or {})


def as_assignments(assignments: Optional[AssignmentsInput]) -> List[Assignment]:
    return [
        a if isinstance(a, Assignment) else Assignment.model_validate(a)
        for a in (assignments or [])
    ]


def _declared_groups(course: Course) -> List[Group]:
    """Declared groups with duplicate names dropped (first one wins)."""
    seen = set()
    groups = []
    for group in course.groups:
        if group.name in seen:
            logger.warning("Ignoring duplicate assignment group %r", group.name)
            continue
        seen.add(group.name)
        groups.append(group)
    return groups


# ── Engine ──────────────────────────────────────────────────────────

def compute_student_grade(
    student_id: Any,
    course: CourseInput,
    assignments: Optional[AssignmentsInput],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> GradeResult:
    """Weighted percentage, letter and per-group breakdown for one student."""
    course = as_course(course)
    assignment_list = as_assignments(assignments)
    student_key = "" if student_id is None else str(student_id).strip()

    if not student_key:
        logger.warning("compute_student_grade called without a student id")
        return GradeResult(student_id="", percent=0.0, letter=letter_for(0.0, course.grade_scale))

    now = utc_now() if now is None else now
    groups = _declared_groups(course)

    group_results = [
        aggregate_group(student_key, g, assignment_list, grades, submission_map, now)
        for g in groups
    ]
    other = aggregate_other(student_key, groups, assignment_list, grades, submission_map, now)

    plan = redistribute(group_results, other)
    percent = compose(plan)
    letter = letter_for(percent, course.grade_scale)

    return GradeResult(
        student_id=student_key,
        percent=percent,
        letter=letter,
        groups=group_results,
        other=other,
        weights=plan.buckets,
    )


def compute_final_percent(
    student_id: Any,
    course: CourseInput,
    assignments: Optional[AssignmentsInput],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> float:
    return compute_student_grade(student_id, course, assignments, grades, submission_map, now).percent


def compute_letter_grade(
    student_id: Any,
    course: CourseInput,
    assignments: Optional[AssignmentsInput],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """The ``{percent, letter}`` pair consumers such as the gradebook export need."""
    result = compute_student_grade(student_id, course, assignments, grades, submission_map, now)
    return {"percent": result.percent, "letter": result.letter or FALLBACK_LETTER}
