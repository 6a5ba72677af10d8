"""Beanie document models and Pydantic schemas."""
from recordbook.models.academics import Course, Section, SectionCourseMapping, Semester, Student
from recordbook.models.attendance import (
    AttendanceEntry,
    AttendanceOut,
    AttendanceRecord,
    AttendanceStatus,
    BulkWriteCounts,
    DayAggregate,
)
from recordbook.models.marks import ExamType, MarksEntry, MarksRecord, MarksRow

DOCUMENT_MODELS = [
    AttendanceRecord,
    MarksRecord,
    Semester,
    Section,
    SectionCourseMapping,
    Course,
    Student,
]

__all__ = [
    "Course",
    "Section",
    "SectionCourseMapping",
    "Semester",
    "Student",
    "AttendanceEntry",
    "AttendanceOut",
    "AttendanceRecord",
    "AttendanceStatus",
    "BulkWriteCounts",
    "DayAggregate",
    "ExamType",
    "MarksEntry",
    "MarksRecord",
    "MarksRow",
    "DOCUMENT_MODELS",
]
