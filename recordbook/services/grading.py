"""Pure reporting math: percentages, grade scales, GPA and monthly trends."""
from __future__ import annotations

from collections import OrderedDict
from typing import Iterable, Optional

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Coarse buckets for dashboard summaries.
GRADE_BUCKETS: list[tuple[float, str]] = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

# Finer letter scale used for GPA: (minimum percentage, letter, grade points).
LETTER_SCALE: list[tuple[float, str, float]] = [
    (90, "O", 4.0),
    (85, "A+", 3.7),
    (80, "A", 3.3),
    (75, "B+", 3.0),
    (70, "B", 2.7),
    (65, "B-", 2.3),
    (60, "C+", 2.0),
    (55, "C", 1.7),
    (50, "C-", 1.3),
    (40, "D", 1.0),
]


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up. Inputs are non-negative percentages."""
    return int(value + 0.5)


def attendance_percentage(present: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(present / total * 100)


def score_percentage(marks_scored: float, total_marks: float) -> float:
    if total_marks <= 0:
        return 0.0
    return marks_scored / total_marks * 100


def grade_bucket(percentage: float) -> str:
    for threshold, letter in GRADE_BUCKETS:
        if percentage >= threshold:
            return letter
    return "F"


def grade_distribution(scores: Iterable[tuple[float, float]]) -> list[dict]:
    """Count (marks_scored, total_marks) pairs per A..F bucket."""
    counts = OrderedDict((letter, 0) for _, letter in GRADE_BUCKETS)
    counts["F"] = 0
    for marks_scored, total_marks in scores:
        counts[grade_bucket(score_percentage(marks_scored, total_marks))] += 1
    return [{"name": name, "count": count} for name, count in counts.items()]


def letter_grade(percentage: float) -> tuple[str, float]:
    for threshold, letter, points in LETTER_SCALE:
        if percentage >= threshold:
            return letter, points
    return "F", 0.0


def compute_gpa(courses: Iterable[tuple[float, Optional[int]]], default_credits: int = 4) -> float:
    """Credit-weighted GPA from (average percentage, credits) per course.

    Only pass courses with at least one recorded mark. Missing credits count
    as ``default_credits``.
    """
    weighted = 0.0
    credit_total = 0
    for percentage, credits in courses:
        credits = credits or default_credits
        _, points = letter_grade(percentage)
        weighted += points * credits
        credit_total += credits
    if credit_total == 0:
        return 0.0
    return round(weighted / credit_total, 2)


def base_exam_type(exam_type: str) -> str:
    """Exam type with any ``Reattempt-`` prefix removed."""
    return exam_type.removeprefix("Reattempt-")


def assessment_weightage(exam_type: str) -> int:
    if "Final" in exam_type:
        return 30
    if "Midterm" in exam_type:
        return 25
    if "Quiz" in exam_type or "Assignment" in exam_type or "Lab" in exam_type:
        return 15
    if "Attendance" in exam_type:
        return 10
    return 5


def monthly_trend(records: Iterable) -> list[dict]:
    """Present/absent counts per calendar month, oldest month first.

    ``records`` need ``date`` and ``status`` attributes.
    """
    buckets: dict[tuple[int, int], dict] = {}
    for record in records:
        key = (record.date.year, record.date.month)
        bucket = buckets.setdefault(
            key, {"month": MONTHS[record.date.month - 1], "year": record.date.year, "present": 0, "absent": 0}
        )
        if record.status == "Present":
            bucket["present"] += 1
        else:
            bucket["absent"] += 1
    return [buckets[key] for key in sorted(buckets)]
