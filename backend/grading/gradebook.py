"""
gradebook.py — Class-wide gradebook built from the grading engine.

Computes:
- One row per student (per-assignment scores, overall percent, letter)
- Class rank and percentile (scipy.stats.percentileofscore)
- Class summary statistics and letter distribution
- CSV export with a course header block
- Styled Excel export (openpyxl)
"""

import io
from datetime import date, datetime
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from scipy import stats as sp_stats

from grading.assignments import numeric_grade, utc_now
from grading.engine import AssignmentsInput, CourseInput, as_assignments, as_course, compute_student_grade
from grading.letter_grades import letter_distribution, resolve_scale
from grading.models import Assignment, Course, Student
from grading.weighting import student_grades_for

MISSING_SCORE = "-"
BASE_COLUMNS = ["student_id", "student_name", "email"]
RESULT_COLUMNS = ["percent", "letter", "rank", "percentile"]
EXPORT_COLUMNS = ["Student Name", "Email", "Overall Grade", "Letter Grade"]
RESERVED_COLUMNS = set(BASE_COLUMNS + RESULT_COLUMNS + EXPORT_COLUMNS)


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Convert to float or return None."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else round(v, 2)
    except (TypeError, ValueError):
        return None


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _format_score(value: Any) -> str:
    score = numeric_grade(value)
    if score is None:
        return MISSING_SCORE
    return str(int(score)) if score.is_integer() else str(score)


def assignment_columns(assignments: Sequence[Assignment]) -> Dict[str, str]:
    """Map assignment id → column label; repeated or reserved titles get the id appended."""
    titles = [a.title or a.id for a in assignments]
    labels = {}
    for a, title in zip(assignments, titles):
        clash = titles.count(title) > 1 or title in RESERVED_COLUMNS
        labels[a.id] = f"{title} ({a.id})" if clash else title
    return labels


def _as_students(students: Optional[Sequence[Union[Student, Dict[str, Any]]]]) -> List[Student]:
    return [s if isinstance(s, Student) else Student.model_validate(s) for s in (students or [])]


# ── Gradebook ───────────────────────────────────────────────────────

def build_gradebook(
    course: CourseInput,
    assignments: Optional[AssignmentsInput],
    students: Optional[Sequence[Union[Student, Dict[str, Any]]]],
    grades: Optional[Dict[str, Any]],
    submission_map: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """One row per student: scores per assignment, overall percent, letter, rank, percentile."""
    course = as_course(course)
    assignment_list = as_assignments(assignments)
    student_list = _as_students(students)
    now = utc_now() if now is None else now
    labels = assignment_columns(assignment_list)

    rows = []
    for student in student_list:
        result = compute_student_grade(student.id, course, assignment_list, grades, submission_map, now)
        student_grades = student_grades_for(grades, student.id)
        row: Dict[str, Any] = {
            "student_id": student.id,
            "student_name": student.display_name,
            "email": student.email,
        }
        for a in assignment_list:
            row[labels[a.id]] = _format_score(student_grades.get(a.id))
        row["percent"] = result.percent
        row["letter"] = result.letter
        rows.append(row)

    columns = BASE_COLUMNS + list(labels.values()) + ["percent", "letter"]
    df = pd.DataFrame(rows, columns=columns)

    if df.empty:
        df["rank"] = pd.Series(dtype=int)
        df["percentile"] = pd.Series(dtype=float)
        return df

    percents = df["percent"].astype(float)
    df["rank"] = percents.rank(ascending=False, method="min").astype(int)
    df["percentile"] = [
        round(float(sp_stats.percentileofscore(percents, p, kind="weak")), 2)
        for p in percents
    ]
    return df


def gradebook_records(df: pd.DataFrame, columns: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """JSON-safe row dicts, optionally restricted to ``columns``."""
    view = df[columns] if columns else df
    return _sanitize(view.to_dict(orient="records"))


def summarize_gradebook(df: pd.DataFrame, scale: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """Class statistics over the overall percentages of a gradebook."""
    if df.empty or "percent" not in df.columns:
        return {
            "student_count": 0,
            "mean": None,
            "median": None,
            "std": None,
            "min": None,
            "max": None,
            "letter_distribution": letter_distribution([], scale),
        }

    pct = pd.to_numeric(df["percent"], errors="coerce").dropna()
    summary = {
        "student_count": len(df),
        "mean": _safe_float(pct.mean()),
        "median": _safe_float(pct.median()),
        "std": _safe_float(pct.std()),
        "min": _safe_float(pct.min()),
        "max": _safe_float(pct.max()),
        "letter_distribution": letter_distribution(df["letter"].astype(str).tolist(), scale),
    }
    if "student_name" in df.columns and len(pct) > 0:
        ordered = df.loc[pct.sort_values(ascending=False).index]
        summary["top_students"] = [
            {"student_id": r["student_id"], "name": r["student_name"], "percent": _safe_float(r["percent"])}
            for _, r in ordered.head(5).iterrows()
        ]
    return _sanitize(summary)


# ── Export ──────────────────────────────────────────────────────────

def _instructor_line(course: Course) -> str:
    instructor = course.instructor
    if instructor is None or not (instructor.first_name or instructor.last_name or instructor.email):
        return "No Instructor Assigned"
    name = f"{instructor.first_name} {instructor.last_name}".strip()
    return f"{name} ({instructor.email})"


def export_table(df: pd.DataFrame) -> pd.DataFrame:
    """The exported columns: name, email, scores, two-decimal percent, letter."""
    score_columns = [c for c in df.columns if c not in BASE_COLUMNS + RESULT_COLUMNS]
    table = pd.DataFrame({
        "Student Name": df["student_name"],
        "Email": df["email"],
    })
    for col in score_columns:
        table[col] = df[col]
    table["Overall Grade"] = [f"{float(p):.2f}" for p in df["percent"]]
    table["Letter Grade"] = df["letter"]
    return table


def gradebook_to_csv(
    course: CourseInput,
    df: pd.DataFrame,
    export_date: Optional[date] = None,
) -> str:
    """CSV text: course / instructor / export date header block, blank line, then the table."""
    course = as_course(course)
    export_date = export_date or utc_now().date()
    header = "\n".join([
        f"Course: {course.title or 'Unknown Course'}",
        f"Instructor: {_instructor_line(course)}",
        f"Export Date: {export_date.isoformat()}",
        "",
    ])
    body = export_table(df).to_csv(index=False, lineterminator="\n")
    return f"{header}\n{body}"


def gradebook_filename(course: CourseInput, export_date: Optional[date] = None, ext: str = "csv") -> str:
    course = as_course(course)
    export_date = export_date or utc_now().date()
    title = "_".join((course.title or "Unknown_Course").split())
    return f"gradebook_{title}_{export_date.isoformat()}.{ext}"


def gradebook_to_xlsx(
    course: CourseInput,
    df: pd.DataFrame,
    output: Union[str, BinaryIO, io.BytesIO],
    export_date: Optional[date] = None,
) -> None:
    """Write the gradebook to an Excel workbook: a styled "Gradebook" sheet plus a "Summary" sheet."""
    course = as_course(course)
    export_date = export_date or utc_now().date()
    table = export_table(df)
    scale = resolve_scale(course.grade_scale)
    top_letter = scale[0].letter
    bottom_letter = scale[-1].letter

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    wb = Workbook()
    ws = wb.active
    ws.title = "Gradebook"
    ws.append(list(table.columns))
    for values in table.itertuples(index=False):
        ws.append(list(values))

    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        cell.border = thin_border

    letter_idx = len(table.columns)
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in row:
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")
        letter = row[letter_idx - 1].value
        if letter == top_letter:
            for cell in row:
                cell.fill = green_fill
        elif letter == bottom_letter:
            for cell in row:
                cell.fill = red_fill

    ws.freeze_panes = "A2"
    for col_cells in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    summary = summarize_gradebook(df, course.grade_scale)
    ws_sum = wb.create_sheet("Summary")
    ws_sum.append(["Course", course.title or "Unknown Course"])
    ws_sum.append(["Instructor", _instructor_line(course)])
    ws_sum.append(["Export Date", export_date.isoformat()])
    ws_sum.append([])
    for key in ("student_count", "mean", "median", "std", "min", "max"):
        ws_sum.append([key.replace("_", " ").title(), summary.get(key)])
    ws_sum.append([])
    ws_sum.append(["Letter", "Students"])
    for letter, count in summary["letter_distribution"].items():
        ws_sum.append([letter, count])
    for cell in ws_sum["A"]:
        cell.font = Font(bold=True)
    ws_sum.column_dimensions["A"].width = 18
    ws_sum.column_dimensions["B"].width = 40

    wb.save(output)
