"""
letter_grades.py — Letter grade scale helpers.

Classification is by minimum threshold only: scale entries are scanned from
the highest ``min`` downwards and the first one at or below the percentage
wins. ``max`` values are carried for display and never consulted.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from grading.models import GradeScaleEntry

logger = logging.getLogger(__name__)

FALLBACK_LETTER = "F"

# Default US scale (letter, min, max), ordered high to low.
DEFAULT_GRADE_SCALE = [
    ("A", 90.0, 100.0),
    ("B", 80.0, 89.0),
    ("C", 70.0, 79.0),
    ("D", 60.0, 69.0),
    ("F", 0.0, 59.0),
]


def default_grade_scale() -> List[GradeScaleEntry]:
    return [GradeScaleEntry(letter=letter, min=lo, max=hi) for letter, lo, hi in DEFAULT_GRADE_SCALE]


def resolve_scale(scale: Optional[Sequence[Any]] = None) -> List[GradeScaleEntry]:
    """
    Return usable scale entries sorted by ``min`` descending.

    Entries may be GradeScaleEntry models or plain dicts. Malformed entries
    are skipped; an empty or missing scale falls back to the default.
    """
    entries: List[GradeScaleEntry] = []
    for raw in scale or []:
        if isinstance(raw, GradeScaleEntry):
            entry = raw
        else:
            try:
                entry = GradeScaleEntry.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping malformed grade scale entry: %r", raw)
                continue
        if np.isnan(entry.min) or np.isinf(entry.min):
            logger.warning("Skipping grade scale entry with invalid minimum: %r", raw)
            continue
        entries.append(entry)

    if not entries:
        entries = default_grade_scale()
    return sorted(entries, key=lambda e: e.min, reverse=True)


def letter_for(percent: Any, scale: Optional[Sequence[Any]] = None) -> str:
    """Letter for a percentage clamped to [0, 100]: first entry, by ``min`` descending, with ``min <= percent``."""
    try:
        value = float(percent)
    except (TypeError, ValueError):
        return FALLBACK_LETTER
    if np.isnan(value) or np.isinf(value):
        return FALLBACK_LETTER
    value = float(np.clip(value, 0.0, 100.0))

    for entry in resolve_scale(scale):
        if value >= entry.min:
            return entry.letter
    return FALLBACK_LETTER


def grade_scale_thresholds(scale: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Ordered scale for legends: letter, min and max (max derived when absent)."""
    entries = resolve_scale(scale)
    thresholds = []
    for idx, entry in enumerate(entries):
        if entry.max is not None:
            upper = entry.max
        else:
            upper = 100.0 if idx == 0 else entries[idx - 1].min - 0.01
        thresholds.append({
            "letter": entry.letter,
            "min": entry.min,
            "max": round(upper, 2),
        })
    return thresholds


def letter_distribution(letters: Iterable[str], scale: Optional[Sequence[Any]] = None) -> Dict[str, int]:
    """Count of students per letter, in scale order; letters outside the scale are appended."""
    counts: Dict[str, int] = {entry.letter: 0 for entry in resolve_scale(scale)}
    for letter in letters:
        counts[letter] = counts.get(letter, 0) + 1
    return counts
