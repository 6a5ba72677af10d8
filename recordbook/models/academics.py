"""Reference documents owned by the CRUD layer. Read here, never written."""
from datetime import datetime
from typing import Optional

import pymongo
from beanie import Document, Indexed
from pydantic import Field
from pymongo import IndexModel


class Semester(Document):
    institution_domain: Indexed(str)
    name: str
    semester_code: Optional[str] = None
    department_id: Optional[str] = None
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "semesters"


class Section(Document):
    institution_domain: Indexed(str)
    name: str
    semester_id: str
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "sections"


class SectionCourseMapping(Document):
    """A (course, faculty) pair registered on a section."""

    institution_domain: Indexed(str)
    section_id: str
    course_id: str
    faculty_id: str
    position: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "section_course_mappings"
        indexes = [
            IndexModel(
                [
                    ("institution_domain", pymongo.ASCENDING),
                    ("section_id", pymongo.ASCENDING),
                    ("course_id", pymongo.ASCENDING),
                    ("faculty_id", pymongo.ASCENDING),
                ],
                name="mapping_identity",
                unique=True,
            ),
        ]


class Course(Document):
    institution_domain: Indexed(str)
    course_code: str
    name: str
    credits: Optional[int] = None
    department_id: Optional[str] = None

    class Settings:
        name = "courses"


class Student(Document):
    institution_domain: Indexed(str)
    first_name: str
    last_name: str
    roll_number: Optional[str] = None
    section_id: Optional[str] = None
    semester_id: Optional[str] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    class Settings:
        name = "students"
