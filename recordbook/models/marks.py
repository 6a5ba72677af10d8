from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel


class ExamType(str, Enum):
    MIDTERM_1 = "Midterm-1"
    MIDTERM_2 = "Midterm-2"
    MIDTERM_3 = "Midterm-3"
    FINAL = "Final"
    QUIZ = "Quiz"
    ASSIGNMENT = "Assignment"
    LAB = "Lab"
    FINAL_LAB = "Final-Lab"
    OBSERVATION = "Observation"
    ATTENDANCE = "Attendance"
    REATTEMPT_MIDTERM_1 = "Reattempt-Midterm-1"
    REATTEMPT_MIDTERM_2 = "Reattempt-Midterm-2"
    REATTEMPT_MIDTERM_3 = "Reattempt-Midterm-3"
    REATTEMPT_FINAL = "Reattempt-Final"
    REATTEMPT_QUIZ = "Reattempt-Quiz"
    REATTEMPT_ASSIGNMENT = "Reattempt-Assignment"
    REATTEMPT_LAB = "Reattempt-Lab"
    REATTEMPT_FINAL_LAB = "Reattempt-Final-Lab"
    REATTEMPT_OBSERVATION = "Reattempt-Observation"
    REATTEMPT_ATTENDANCE = "Reattempt-Attendance"


class MarksRecord(Document):
    """Marks of one student for one exam type in a section/course/faculty batch."""

    institution_domain: Indexed(str)
    section_id: str
    course_id: str
    faculty_id: str
    student_id: str
    exam_type: ExamType
    total_marks: float
    passing_marks: float
    marks_scored: float
    remarks: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "marks_records"
        use_state_management = True
        indexes = [
            IndexModel(
                [
                    ("institution_domain", pymongo.ASCENDING),
                    ("section_id", pymongo.ASCENDING),
                    ("course_id", pymongo.ASCENDING),
                    ("faculty_id", pymongo.ASCENDING),
                    ("student_id", pymongo.ASCENDING),
                    ("exam_type", pymongo.ASCENDING),
                ],
                name="marks_identity",
                unique=True,
            ),
            IndexModel(
                [
                    ("institution_domain", pymongo.ASCENDING),
                    ("student_id", pymongo.ASCENDING),
                    ("course_id", pymongo.ASCENDING),
                ],
                name="marks_by_student",
            ),
        ]


class MarksEntry(BaseModel):
    student_id: str
    marks_scored: float


class MarksRow(BaseModel):
    id: str
    student_id: str
    student_name: Optional[str] = None
    roll_number: Optional[str] = None
    exam_type: ExamType
    total_marks: float
    passing_marks: float
    marks_scored: float
    passed: bool
    remarks: str = ""
