"""Marks recorder: one batch per (section, course, faculty, exam type)."""
import logging
from datetime import datetime
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from pymongo import InsertOne, UpdateOne

from recordbook.db import batch_session, translate_storage_errors
from recordbook.errors import ConflictError, NotFoundError, ValidationError
from recordbook.models.attendance import BulkWriteCounts
from recordbook.models.marks import ExamType, MarksEntry, MarksRecord, MarksRow
from recordbook.services.references import (
    ensure_mapping,
    require_entries,
    require_ids,
    require_tenant,
    students_by_id,
)

logger = logging.getLogger(__name__)

ALREADY_ADDED = "Marks have already been added for this section, course, faculty, and exam type"
NO_BATCH = "No marks found for this section, course, faculty, and exam type"

EXAM_TYPE_ORDER = {exam_type.value: i for i, exam_type in enumerate(ExamType)}


def parse_exam_type(value: Union[str, ExamType, None]) -> ExamType:
    if not value:
        raise ValidationError("Exam type is required")
    try:
        return ExamType(value)
    except ValueError:
        raise ValidationError(f"Unknown exam type: {value}")


def validate_batch(
    exam_type: Union[str, ExamType, None],
    total_marks: Optional[float],
    passing_marks: Optional[float],
    entries,
) -> tuple[ExamType, list[MarksEntry]]:
    """Check the whole batch up front; nothing is written if any entry fails."""
    exam = parse_exam_type(exam_type)
    if total_marks is None or total_marks <= 0:
        raise ValidationError("Total marks must be greater than 0")
    if passing_marks is None or passing_marks < 0 or passing_marks > total_marks:
        raise ValidationError("Passing marks must be between 0 and total marks")

    require_entries(entries, "Marks data")
    rows: list[MarksEntry] = []
    seen: set[str] = set()
    for raw in entries:
        try:
            entry = raw if isinstance(raw, MarksEntry) else MarksEntry.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError("Invalid marks entry", details={"errors": e.errors()})
        if not entry.student_id:
            raise ValidationError("Each marks entry needs a student ID")
        if entry.marks_scored < 0 or entry.marks_scored > total_marks:
            raise ValidationError(
                f"Marks scored for student {entry.student_id} must be between 0 and {total_marks:g}"
            )
        if entry.student_id in seen:
            raise ValidationError(f"Student {entry.student_id} appears more than once in the batch")
        seen.add(entry.student_id)
        rows.append(entry)
    return exam, rows


def _batch_filter(tenant: str, section_id: str, course_id: str, faculty_id: str, exam: ExamType) -> dict:
    return {
        "institution_domain": tenant,
        "section_id": section_id,
        "course_id": course_id,
        "faculty_id": faculty_id,
        "exam_type": exam.value,
    }


async def add_batch(
    tenant: str,
    section_id: str,
    course_id: str,
    faculty_id: str,
    exam_type: Union[str, ExamType],
    total_marks: float,
    passing_marks: float,
    entries: list,
    remarks: Optional[str] = None,
) -> int:
    """Insert a new marks batch and return the number of rows inserted."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    exam, rows = validate_batch(exam_type, total_marks, passing_marks, entries)
    batch = _batch_filter(tenant, section_id, course_id, faculty_id, exam)

    with translate_storage_errors("Bulk marks add", ALREADY_ADDED):
        async with batch_session() as session:
            await ensure_mapping(tenant, section_id, course_id, faculty_id, session=session)
            if await MarksRecord.find_one(batch, session=session):
                logger.warning(
                    "%s marks already exist for section %s course %s (%s)",
                    exam.value, section_id, course_id, tenant,
                )
                raise ConflictError(ALREADY_ADDED)

            now = datetime.utcnow()
            ops = [
                InsertOne(
                    {
                        **batch,
                        "student_id": entry.student_id,
                        "total_marks": total_marks,
                        "passing_marks": passing_marks,
                        "marks_scored": entry.marks_scored,
                        "remarks": remarks or "",
                        "created_at": now,
                        "updated_at": now,
                    }
                )
                for entry in rows
            ]
            result = await MarksRecord.get_motor_collection().bulk_write(ops, ordered=True, session=session)

    logger.info(
        "Added %s marks for %d students in section %s course %s (%s)",
        exam.value, result.inserted_count, section_id, course_id, tenant,
    )
    return result.inserted_count


async def update_batch(
    tenant: str,
    section_id: str,
    course_id: str,
    faculty_id: str,
    exam_type: Union[str, ExamType],
    total_marks: float,
    passing_marks: float,
    entries: list,
    remarks: Optional[str] = None,
) -> BulkWriteCounts:
    """Rewrite rows of an existing batch.

    Students missing from the original batch are inserted, so late entries can
    be recorded without deleting the batch. ``remarks=None`` leaves stored
    remarks untouched.
    """
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    exam, rows = validate_batch(exam_type, total_marks, passing_marks, entries)
    batch = _batch_filter(tenant, section_id, course_id, faculty_id, exam)

    with translate_storage_errors("Bulk marks update", ALREADY_ADDED):
        async with batch_session() as session:
            await ensure_mapping(tenant, section_id, course_id, faculty_id, session=session)
            if not await MarksRecord.find_one(batch, session=session):
                logger.warning(
                    "No %s marks to update for section %s course %s (%s)",
                    exam.value, section_id, course_id, tenant,
                )
                raise NotFoundError(NO_BATCH)

            now = datetime.utcnow()
            shared = {"total_marks": total_marks, "passing_marks": passing_marks, "updated_at": now}
            on_insert = {"created_at": now}
            # omitted remarks keep whatever each row already has
            if remarks is None:
                on_insert["remarks"] = ""
            else:
                shared["remarks"] = remarks
            ops = [
                UpdateOne(
                    {**batch, "student_id": entry.student_id},
                    {
                        "$set": {**shared, "marks_scored": entry.marks_scored},
                        "$setOnInsert": on_insert,
                    },
                    upsert=True,
                )
                for entry in rows
            ]
            result = await MarksRecord.get_motor_collection().bulk_write(ops, ordered=True, session=session)

    logger.info(
        "Updated %s marks for %d students in section %s course %s (%s)",
        exam.value, len(rows), section_id, course_id, tenant,
    )
    return BulkWriteCounts(
        matched=result.matched_count,
        modified=result.modified_count,
        upserted=result.upserted_count,
    )


async def get_by_exam_type(
    tenant: str, section_id: str, course_id: str, faculty_id: str, exam_type: Union[str, ExamType]
) -> list[MarksRow]:
    """Rows of one batch ordered by student name, then student ID."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    exam = parse_exam_type(exam_type)
    records = await MarksRecord.find(
        _batch_filter(tenant, section_id, course_id, faculty_id, exam)
    ).to_list()
    students = await students_by_id(tenant, [r.student_id for r in records])

    rows = []
    for record in records:
        student = students.get(record.student_id)
        rows.append(
            MarksRow(
                id=str(record.id),
                student_id=record.student_id,
                student_name=student.full_name if student else None,
                roll_number=student.roll_number if student else None,
                exam_type=record.exam_type,
                total_marks=record.total_marks,
                passing_marks=record.passing_marks,
                marks_scored=record.marks_scored,
                passed=record.marks_scored >= record.passing_marks,
                remarks=record.remarks,
            )
        )
    rows.sort(key=lambda row: ((row.student_name or "").lower(), row.student_id))
    return rows


async def list_exam_types(tenant: str, section_id: str, course_id: str, faculty_id: str) -> list[str]:
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    values = await MarksRecord.get_motor_collection().distinct(
        "exam_type",
        {
            "institution_domain": tenant,
            "section_id": section_id,
            "course_id": course_id,
            "faculty_id": faculty_id,
        },
    )
    return sorted(values, key=lambda v: EXAM_TYPE_ORDER.get(v, len(EXAM_TYPE_ORDER)))


async def delete_by_exam_type(
    tenant: str, section_id: str, course_id: str, faculty_id: str, exam_type: Union[str, ExamType]
) -> int:
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    exam = parse_exam_type(exam_type)
    result = await MarksRecord.get_motor_collection().delete_many(
        _batch_filter(tenant, section_id, course_id, faculty_id, exam)
    )
    if result.deleted_count == 0:
        raise NotFoundError(NO_BATCH)
    logger.info(
        "Deleted %d %s marks in section %s course %s (%s)",
        result.deleted_count, exam.value, section_id, course_id, tenant,
    )
    return result.deleted_count
