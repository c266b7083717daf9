"""
Export routes — gradebook CSV / Excel downloads and class summary.
"""

import io
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from grading.gradebook import (
    build_gradebook,
    gradebook_filename,
    gradebook_records,
    gradebook_to_csv,
    gradebook_to_xlsx,
    summarize_gradebook,
)
from routes.grades import grading_inputs

router = APIRouter()
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _gradebook_from_payload(payload: dict):
    """Validate the grading payload plus { "students": [...] } and build the gradebook."""
    course, assignments, grades, submission_map, now = grading_inputs(payload)
    students = payload.get("students")
    if not isinstance(students, list) or not students:
        raise HTTPException(400, "No students provided.")
    try:
        df = build_gradebook(course, assignments, students, grades, submission_map, now)
    except ValidationError as e:
        raise HTTPException(400, f"Invalid student list: {e}")
    logger.info("Built gradebook for %d students x %d assignments", len(df), len(assignments))
    return course, df, now


@router.post("/gradebook/csv")
async def export_gradebook_csv(payload: dict):
    course, df, now = _gradebook_from_payload(payload)
    export_date = now.date() if now else None
    content = gradebook_to_csv(course, df, export_date)
    filename = gradebook_filename(course, export_date, "csv")
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/gradebook/xlsx")
async def export_gradebook_xlsx(payload: dict):
    course, df, now = _gradebook_from_payload(payload)
    export_date = now.date() if now else None
    output = io.BytesIO()
    gradebook_to_xlsx(course, df, output, export_date)
    output.seek(0)
    filename = gradebook_filename(course, export_date, "xlsx")
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/gradebook/summary")
async def gradebook_summary(payload: dict):
    """Class statistics: mean, median, spread and letter distribution."""
    course, df, _ = _gradebook_from_payload(payload)
    return {
        "course": course.title,
        "summary": summarize_gradebook(df, course.grade_scale),
        "students": gradebook_records(df, ["student_id", "student_name", "percent", "letter", "rank", "percentile"]),
    }
