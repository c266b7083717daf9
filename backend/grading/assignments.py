"""
assignments.py — Per-assignment grading rules.

For one student and one assignment:
- classify: does it count toward grading, may it be zero-filled, is it past due
- has_submission: submission-key lookup, or reply authorship for discussions
- contribution: earned / possible points under the zero-fill policy
- evaluate_assignment: all of the above as one breakdown row
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import numpy as np

from grading.models import (
    Assignment,
    AssignmentBreakdown,
    AssignmentKind,
    Classification,
    Contribution,
    Reply,
)

logger = logging.getLogger(__name__)

STATUS_GRADED = "graded"
STATUS_MISSING = "missing"
STATUS_SUBMITTED = "submitted"
STATUS_PENDING = "pending"
STATUS_UNPUBLISHED = "unpublished"


# ── Helpers ─────────────────────────────────────────────────────────

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def numeric_grade(value: Any) -> Optional[float]:
    """
    Return a recorded score as a float, or None when there is no usable grade.

    Only real numbers count. Strings (including the empty string sent by
    grade input fields), booleans, None, NaN and infinities all mean
    "no grade recorded". Nothing is parsed or coerced.
    """
    if isinstance(value, (bool, np.bool_)):
        return None
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return None
    v = float(value)
    if np.isnan(v) or np.isinf(v):
        return None
    return v


def submission_key(student_id: Any, assignment_id: Any) -> str:
    return f"{student_id}_{assignment_id}"


# ── Classifier ──────────────────────────────────────────────────────

def is_past_due(assignment: Assignment, now: Optional[datetime] = None) -> bool:
    if assignment.due_date is None:
        return False
    now = utc_now() if now is None else now
    return _as_utc(now) > _as_utc(assignment.due_date)


def classify(assignment: Assignment, now: Optional[datetime] = None) -> Classification:
    """Decide whether an assignment is gradable and whether zero-fill may apply."""
    kind = assignment.kind
    if kind is AssignmentKind.DISCUSSION:
        counts = True
    else:
        counts = bool(assignment.published)

    return Classification(
        counts_for_grading=counts,
        zero_fill_eligible=not assignment.is_offline_assignment,
        past_due=is_past_due(assignment, now),
    )


# ── Submission Resolver ─────────────────────────────────────────────

def has_reply_by(replies: Iterable[Reply], student_id: Any) -> bool:
    """True if any reply in the tree, at any depth, was authored by the student."""
    target = str(student_id)
    if not target:
        return False
    stack = list(replies or [])
    while stack:
        reply = stack.pop()
        if reply.author_id == target:
            return True
        stack.extend(reply.replies)
    return False


def has_submission(
    student_id: Any,
    assignment: Assignment,
    submission_map: Optional[Dict[str, Any]] = None,
) -> bool:
    if assignment.kind is AssignmentKind.DISCUSSION:
        return has_reply_by(assignment.replies, student_id)
    if not submission_map:
        return False
    return submission_key(student_id, assignment.id) in submission_map


# ── Zero-Fill Policy ────────────────────────────────────────────────

def contribution(
    student_id: Any,
    assignment: Assignment,
    grade: Any,
    submitted: bool = False,
    now: Optional[datetime] = None,
    classification: Optional[Classification] = None,
) -> Contribution:
    """
    Points an assignment contributes to its group.

    1. Not gradable (unpublished, non-discussion): nothing.
    2. Numeric grade: (grade, max), counts as graded.
    3. Past due, zero-fill eligible, no grade: (0, max), not counted as graded.
    4. Otherwise: nothing yet.

    ``submitted`` never changes the outcome; only a numeric grade silences
    zero-fill, so a late ungraded submission is treated like a missing one.
    """
    info = classification or classify(assignment, now)
    if not info.counts_for_grading:
        return Contribution()

    score = numeric_grade(grade)
    max_points = assignment.max_points
    if score is not None:
        return Contribution(earned=score, possible=max_points, counts_as_graded=True)

    if info.past_due and info.zero_fill_eligible:
        logger.debug(
            "Zero-filling overdue assignment %s for student %s (submitted=%s)",
            assignment.id, student_id, submitted,
        )
        return Contribution(earned=0.0, possible=max_points, counts_as_graded=False)

    return Contribution()


def assignment_status(
    classification: Classification,
    score: Optional[float],
    submitted: bool,
) -> str:
    if not classification.counts_for_grading:
        return STATUS_UNPUBLISHED
    if score is not None:
        return STATUS_GRADED
    if classification.past_due and classification.zero_fill_eligible:
        return STATUS_MISSING
    if submitted:
        return STATUS_SUBMITTED
    return STATUS_PENDING


def evaluate_assignment(
    student_id: Any,
    assignment: Assignment,
    student_grades: Optional[Dict[str, Any]] = None,
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> AssignmentBreakdown:
    """Run classifier, resolver and zero-fill policy for one assignment."""
    info = classify(assignment, now)
    raw_grade = (student_grades or {}).get(assignment.id)
    score = numeric_grade(raw_grade)
    submitted = has_submission(student_id, assignment, submission_map)
    points = contribution(student_id, assignment, raw_grade, submitted, now, classification=info)

    return AssignmentBreakdown(
        assignment_id=assignment.id,
        title=assignment.title,
        group=assignment.group,
        kind=assignment.kind,
        status=assignment_status(info, score, submitted),
        score=score,
        submitted=submitted,
        earned=points.earned,
        possible=points.possible,
        counts_as_graded=points.counts_as_graded,
    )
