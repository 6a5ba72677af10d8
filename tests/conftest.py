import os
import uuid

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from recordbook.models import DOCUMENT_MODELS
from recordbook.models.academics import Course, Section, SectionCourseMapping, Semester, Student

TENANT = "example.edu"
OTHER_TENANT = "other.edu"
FACULTY_ID = "faculty-1"


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    await init_beanie(
        database=client[f"recordbook_test_{uuid.uuid4().hex}"],
        document_models=DOCUMENT_MODELS,
    )
    yield client


@pytest.fixture
async def campus(db):
    """A semester with one section, two mapped courses and three students."""
    semester = Semester(
        institution_domain=TENANT,
        name="Semester 1",
        semester_code="S1-2024",
        start_date="2024-01-01",
        end_date="2024-06-30",
    )
    await semester.insert()
    section = Section(institution_domain=TENANT, name="A", semester_id=str(semester.id))
    await section.insert()

    algebra = Course(institution_domain=TENANT, course_code="MA101", name="Algebra", credits=4)
    physics = Course(institution_domain=TENANT, course_code="PH101", name="Physics", credits=3)
    await algebra.insert()
    await physics.insert()
    for position, course in enumerate([algebra, physics]):
        await SectionCourseMapping(
            institution_domain=TENANT,
            section_id=str(section.id),
            course_id=str(course.id),
            faculty_id=FACULTY_ID,
            position=position,
        ).insert()

    students = []
    for first, last, roll in [("Zoe", "Adams", "03"), ("Amir", "Khan", "01"), ("Mia", "Lopez", "02")]:
        student = Student(
            institution_domain=TENANT,
            first_name=first,
            last_name=last,
            roll_number=roll,
            section_id=str(section.id),
            semester_id=str(semester.id),
        )
        await student.insert()
        students.append(student)

    return {
        "semester": semester,
        "section_id": str(section.id),
        "algebra_id": str(algebra.id),
        "physics_id": str(physics.id),
        "faculty_id": FACULTY_ID,
        "student_ids": [str(s.id) for s in students],
    }
