"""
models.py — Course, assignment and result models for the grading engine.

Input models accept both the camelCase JSON the web client sends
(``totalPoints``, ``isDiscussion``, ``_id``) and snake_case keyword
arguments from Python callers. Result models are plain snake_case.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

_DATETIME = TypeAdapter(datetime)


# ── Helpers ─────────────────────────────────────────────────────────

def _coerce_number(value: Any, default: float = 0.0) -> float:
    """Best-effort numeric coercion for configuration values (weights, points)."""
    if value is None or isinstance(value, bool):
        return default
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return default if np.isnan(v) or np.isinf(v) else v


def _coerce_id(value: Any) -> Any:
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return str(value)
    return value


class _InputModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ── Course configuration ────────────────────────────────────────────

class Group(_InputModel):
    name: str
    weight: float = 0.0

    @field_validator("weight", mode="before")
    @classmethod
    def _weight_defaults_to_zero(cls, value):
        return max(0.0, _coerce_number(value))


class GradeScaleEntry(_InputModel):
    letter: str
    min: float
    max: Optional[float] = None  # display only


class Instructor(_InputModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""


class Course(_InputModel):
    title: Optional[str] = None
    instructor: Optional[Instructor] = None
    groups: List[Group] = Field(default_factory=list)
    grade_scale: Optional[List[GradeScaleEntry]] = None

    @field_validator("groups", mode="before")
    @classmethod
    def _groups_default(cls, value):
        return [] if value is None else value

    @field_validator("grade_scale", mode="before")
    @classmethod
    def _drop_malformed_scale_entries(cls, value):
        if value is None:
            return None
        if not isinstance(value, (list, tuple)):
            logger.warning("Ignoring grade scale that is not a list: %r", value)
            return None
        entries = []
        for raw in value:
            try:
                entries.append(raw if isinstance(raw, GradeScaleEntry) else GradeScaleEntry.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed grade scale entry: %r", raw)
        return entries

    @field_validator("instructor", mode="before")
    @classmethod
    def _unpopulated_instructor(cls, value):
        # an instructor reference that was never populated is just an id
        return value if isinstance(value, (dict, Instructor)) else None


class Student(_InputModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return _coerce_id(value)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.id


# ── Assignments ─────────────────────────────────────────────────────

class AssignmentKind(str, Enum):
    CONVENTIONAL = "conventional"
    DISCUSSION = "discussion"
    OFFLINE = "offline"


class Reply(_InputModel):
    """A discussion reply; ``author`` is an id or an object carrying ``_id``."""

    author: Any = None
    replies: List["Reply"] = Field(default_factory=list)

    @field_validator("replies", mode="before")
    @classmethod
    def _replies_default(cls, value):
        return [] if value is None else value

    @property
    def author_id(self) -> str:
        author = self.author
        if isinstance(author, dict):
            author = author.get("_id", author.get("id"))
        return "" if author is None else str(author)


Reply.model_rebuild()


class Question(_InputModel):
    points: float = 0.0

    @field_validator("points", mode="before")
    @classmethod
    def _points_default(cls, value):
        return _coerce_number(value)


class Assignment(_InputModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str = ""
    group: Optional[str] = None
    total_points: float = 0.0
    questions: List[Question] = Field(default_factory=list)
    is_discussion: bool = False
    published: bool = False
    is_offline_assignment: bool = False
    due_date: Optional[datetime] = None
    replies: List[Reply] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return _coerce_id(value)

    @field_validator("total_points", mode="before")
    @classmethod
    def _total_points_default(cls, value):
        return _coerce_number(value)

    @field_validator("is_discussion", "published", "is_offline_assignment", mode="before")
    @classmethod
    def _flags_default(cls, value):
        return False if value is None else value

    @field_validator("questions", "replies", mode="before")
    @classmethod
    def _lists_default(cls, value):
        return [] if value is None else value

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value):
        if value is None or isinstance(value, datetime):
            return value
        if isinstance(value, str) and not value.strip():
            return None
        try:
            return _DATETIME.validate_python(value)
        except ValidationError:
            # an unreadable due date is never past due
            logger.warning("Ignoring unparseable due date: %r", value)
            return None

    @property
    def kind(self) -> AssignmentKind:
        if self.is_discussion:
            return AssignmentKind.DISCUSSION
        if self.is_offline_assignment:
            return AssignmentKind.OFFLINE
        return AssignmentKind.CONVENTIONAL

    @property
    def max_points(self) -> float:
        """Total possible points: the question sum when questions exist."""
        if self.questions:
            return float(sum(q.points for q in self.questions))
        return self.total_points


# ── Engine results ──────────────────────────────────────────────────

class Classification(BaseModel):
    counts_for_grading: bool
    zero_fill_eligible: bool
    past_due: bool = False


class Contribution(BaseModel):
    earned: float = 0.0
    possible: float = 0.0
    counts_as_graded: bool = False


class AssignmentBreakdown(BaseModel):
    assignment_id: str
    title: str
    group: Optional[str] = None
    kind: AssignmentKind
    status: str
    score: Optional[float] = None
    submitted: bool = False
    earned: float = 0.0
    possible: float = 0.0
    counts_as_graded: bool = False


class GroupAggregate(BaseModel):
    name: str
    weight: float = 0.0
    is_other: bool = False
    earned: float = 0.0
    possible: float = 0.0
    percent: float = 0.0
    has_grades: bool = False
    assignments: List[AssignmentBreakdown] = Field(default_factory=list)


class WeightedBucket(BaseModel):
    name: str
    is_other: bool = False
    percent: float
    original_weight: float
    adjusted_weight: float


class WeightPlan(BaseModel):
    buckets: List[WeightedBucket] = Field(default_factory=list)
    weight_redistributed: float = 0.0

    @property
    def total_weight(self) -> float:
        return float(sum(b.adjusted_weight for b in self.buckets))


class GradeResult(BaseModel):
    student_id: str
    percent: float = 0.0
    letter: str = "F"
    groups: List[GroupAggregate] = Field(default_factory=list)
    other: Optional[GroupAggregate] = None
    weights: List[WeightedBucket] = Field(default_factory=list)

    @property
    def assignments(self) -> List[AssignmentBreakdown]:
        rows = [row for g in self.groups for row in g.assignments]
        if self.other is not None:
            rows.extend(self.other.assignments)
        return rows

    def summary(self) -> Dict[str, Any]:
        return {"student_id": self.student_id, "percent": self.percent, "letter": self.letter}
