"""
weighting.py — Group aggregation, weight redistribution and the final weighted mean.

Weight of groups with no graded work is handed to the graded groups in
proportion to their own weight. Assignments that belong to no declared
group form a virtual "Other" bucket that only receives the weight left over
after that redistribution.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from grading.assignments import evaluate_assignment
from grading.models import Assignment, Group, GroupAggregate, WeightedBucket, WeightPlan

logger = logging.getLogger(__name__)

OTHER_BUCKET = "Other"
FULL_WEIGHT = 100.0


# ── Helpers ─────────────────────────────────────────────────────────

def student_grades_for(grades: Optional[Dict[str, Any]], student_id: Any) -> Dict[str, Any]:
    """The grade row for one student; anything unusable becomes an empty row."""
    if not isinstance(grades, dict):
        return {}
    row = grades.get(str(student_id))
    if not isinstance(row, dict):
        return {}
    # assignment ids are strings everywhere else
    return {str(assignment_id): grade for assignment_id, grade in row.items()}


def _aggregate(
    name: str,
    weight: float,
    members: Sequence[Assignment],
    student_id: Any,
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]],
    now: Optional[datetime],
    is_other: bool = False,
) -> GroupAggregate:
    student_grades = student_grades_for(grades, student_id)
    rows = [
        evaluate_assignment(student_id, a, student_grades, submission_map, now)
        for a in members
    ]

    earned = float(sum(r.earned for r in rows))
    possible = float(sum(r.possible for r in rows))
    percent = earned / possible * 100 if possible > 0 else 0.0
    if not np.isfinite(percent):
        percent = 0.0
    has_grades = possible > 0 and any(r.counts_as_graded for r in rows)

    return GroupAggregate(
        name=name,
        weight=weight,
        is_other=is_other,
        earned=earned,
        possible=possible,
        percent=percent,
        has_grades=has_grades,
        assignments=rows,
    )


# ── Group Aggregator ────────────────────────────────────────────────

def aggregate_group(
    student_id: Any,
    group: Group,
    assignments: Sequence[Assignment],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> GroupAggregate:
    """Earned / possible / percent for one declared group."""
    members = [a for a in assignments if a.group == group.name]
    return _aggregate(group.name, group.weight, members, student_id, grades, submission_map, now)


def ungrouped_assignments(groups: Sequence[Group], assignments: Sequence[Assignment]) -> List[Assignment]:
    declared = {g.name for g in groups}
    return [a for a in assignments if a.group not in declared]


def aggregate_other(
    student_id: Any,
    groups: Sequence[Group],
    assignments: Sequence[Assignment],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Optional[GroupAggregate]:
    """Aggregate for assignments outside every declared group, or None if there are none."""
    members = ungrouped_assignments(groups, assignments)
    if not members:
        return None
    return _aggregate(OTHER_BUCKET, 0.0, members, student_id, grades, submission_map, now, is_other=True)


# ── Weight Redistributor ────────────────────────────────────────────

def redistribute(
    groups: Sequence[GroupAggregate],
    other: Optional[GroupAggregate] = None,
) -> WeightPlan:
    """
    Build the participating buckets and their adjusted weights.

    Graded groups keep their weight plus a share of the idle weight,
    proportional to their original weight. If every graded group has weight
    zero they split the full weight evenly. A graded Other bucket takes
    whatever remains below 100, and only if that remainder is positive.

    Finally the participating weights are rescaled to sum to 100, so
    declared weights that do not add up to 100 are normalized. The rescale
    never changes the composed percentage.
    """
    with_grades = [g for g in groups if g.has_grades]
    without_grades = [g for g in groups if not g.has_grades]
    weight_to_redistribute = float(sum(g.weight for g in without_grades))

    buckets: List[WeightedBucket] = []
    total_weight_with_grades = float(sum(g.weight for g in with_grades))

    if with_grades and total_weight_with_grades > 0:
        for g in with_grades:
            share = g.weight / total_weight_with_grades
            buckets.append(WeightedBucket(
                name=g.name,
                percent=g.percent,
                original_weight=g.weight,
                adjusted_weight=g.weight + weight_to_redistribute * share,
            ))
    elif with_grades:
        equal_weight = FULL_WEIGHT / len(with_grades)
        for g in with_grades:
            buckets.append(WeightedBucket(
                name=g.name,
                percent=g.percent,
                original_weight=g.weight,
                adjusted_weight=equal_weight,
            ))

    if other is not None and other.has_grades and other.possible > 0:
        other_weight = FULL_WEIGHT - sum(b.adjusted_weight for b in buckets)
        if other_weight > 0:
            buckets.append(WeightedBucket(
                name=other.name,
                is_other=True,
                percent=other.percent,
                original_weight=0.0,
                adjusted_weight=other_weight,
            ))
        else:
            logger.debug("Ungrouped work is graded but no weight remains for it (%.2f)", other_weight)

    total = float(sum(b.adjusted_weight for b in buckets))
    if total > 0 and np.isfinite(total) and total != FULL_WEIGHT:
        scale = FULL_WEIGHT / total
        buckets = [
            b.model_copy(update={"adjusted_weight": b.adjusted_weight * scale})
            for b in buckets
        ]

    logger.debug(
        "Redistributed %.2f weight from %d idle group(s) onto %d bucket(s)",
        weight_to_redistribute, len(without_grades), len(buckets),
    )
    return WeightPlan(buckets=buckets, weight_redistributed=weight_to_redistribute)


# ── Final Percentage Composer ───────────────────────────────────────

def compose(plan: WeightPlan) -> float:
    """Weighted mean of bucket percentages; 0 when nothing participates."""
    total = plan.total_weight
    if total <= 0 or not np.isfinite(total):
        return 0.0
    result = sum(b.percent * b.adjusted_weight for b in plan.buckets) / total
    return float(result) if np.isfinite(result) else 0.0
