from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

import pymongo
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel


# Anything the date normalizer accepts for a per-entry day.
EntryDay = Union[datetime, date, str]


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"


class AttendanceRecord(Document):
    """One student's attendance for one course/section/faculty on one UTC day."""

    institution_domain: Indexed(str)
    section_id: str
    course_id: str
    faculty_id: str
    student_id: str
    date: datetime  # UTC midnight, see services.dates.to_day_key
    status: AttendanceStatus = AttendanceStatus.ABSENT
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendance_records"
        use_state_management = True
        indexes = [
            IndexModel(
                [
                    ("institution_domain", pymongo.ASCENDING),
                    ("section_id", pymongo.ASCENDING),
                    ("course_id", pymongo.ASCENDING),
                    ("faculty_id", pymongo.ASCENDING),
                    ("student_id", pymongo.ASCENDING),
                    ("date", pymongo.ASCENDING),
                ],
                name="attendance_identity",
                unique=True,
            ),
            IndexModel(
                [
                    ("institution_domain", pymongo.ASCENDING),
                    ("student_id", pymongo.ASCENDING),
                    ("date", pymongo.ASCENDING),
                ],
                name="attendance_by_student",
            ),
        ]


class AttendanceEntry(BaseModel):
    student_id: str
    status: AttendanceStatus
    date: Optional[EntryDay] = None  # overrides the batch date


class AttendanceOut(BaseModel):
    id: str
    section_id: str
    course_id: str
    faculty_id: str
    student_id: str
    date: datetime
    status: AttendanceStatus


class DayAggregate(BaseModel):
    day: datetime
    total_count: int
    present_count: int
    absent_count: int


class BulkWriteCounts(BaseModel):
    matched: int = 0
    modified: int = 0
    upserted: int = 0
