"""Shared input validation and reference checks for the recorders."""
import logging
from typing import Any, Optional

from beanie import PydanticObjectId
from bson.errors import InvalidId

from recordbook.config import settings
from recordbook.errors import NotFoundError, ValidationError
from recordbook.models.academics import Course, Section, SectionCourseMapping, Semester, Student

logger = logging.getLogger(__name__)


def require_tenant(tenant: Optional[str]) -> str:
    if not tenant:
        raise ValidationError("Institution domain is required")
    return tenant


def require_ids(**ids: Optional[str]) -> None:
    """Raise when any of the named identifiers is empty."""
    missing = [name for name, value in ids.items() if not value]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def require_entries(entries: Any, label: str = "Entries") -> list:
    if not isinstance(entries, list) or not entries:
        raise ValidationError(f"{label} must be a non-empty array")
    return entries


def to_object_id(value: str, label: str) -> PydanticObjectId:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError, ValueError):
        raise ValidationError(f"Invalid {label} format")


async def get_section(tenant: str, section_id: str, session=None) -> Section:
    section = await Section.find_one(
        {"_id": to_object_id(section_id, "section ID"), "institution_domain": tenant},
        session=session,
    )
    if not section:
        raise NotFoundError("Section not found")
    return section


async def get_semester(tenant: str, semester_id: str) -> Semester:
    semester = await Semester.find_one(
        {"_id": to_object_id(semester_id, "semester ID"), "institution_domain": tenant}
    )
    if not semester:
        raise NotFoundError("Semester not found")
    return semester


async def ensure_mapping(tenant: str, section_id: str, course_id: str, faculty_id: str, session=None) -> None:
    """Check the section exists and, when enforced, that it maps this course to this faculty."""
    await get_section(tenant, section_id, session=session)
    if not settings.enforce_section_mappings:
        return
    mapping = await SectionCourseMapping.find_one(
        {
            "institution_domain": tenant,
            "section_id": section_id,
            "course_id": course_id,
            "faculty_id": faculty_id,
        },
        session=session,
    )
    if not mapping:
        logger.warning(
            "Rejected batch for unmapped course %s / faculty %s on section %s (%s)",
            course_id, faculty_id, section_id, tenant,
        )
        raise ValidationError("Course and faculty are not assigned to this section")


async def section_mappings(tenant: str, section_id: str) -> list[SectionCourseMapping]:
    return (
        await SectionCourseMapping.find(
            {"institution_domain": tenant, "section_id": section_id}
        )
        .sort("position")
        .to_list()
    )


async def get_student(tenant: str, student_id: str) -> Student:
    student = await Student.find_one(
        {"_id": to_object_id(student_id, "student ID"), "institution_domain": tenant}
    )
    if not student:
        raise NotFoundError("Student not found")
    return student


async def courses_by_id(tenant: str, course_ids: list[str]) -> dict[str, Course]:
    object_ids = [to_object_id(course_id, "course ID") for course_id in course_ids]
    if not object_ids:
        return {}
    courses = await Course.find(
        {"_id": {"$in": object_ids}, "institution_domain": tenant}
    ).to_list()
    return {str(c.id): c for c in courses}


async def students_by_id(tenant: str, student_ids: list[str]) -> dict[str, Student]:
    """Students of the tenant keyed by id; ids that are not ObjectIds are skipped."""
    object_ids = []
    for student_id in student_ids:
        try:
            object_ids.append(PydanticObjectId(student_id))
        except (InvalidId, TypeError):
            continue
    if not object_ids:
        return {}
    students = await Student.find(
        {"_id": {"$in": object_ids}, "institution_domain": tenant}
    ).to_list()
    return {str(s.id): s for s in students}
