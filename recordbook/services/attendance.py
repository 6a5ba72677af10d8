"""Attendance recorder: bulk mark/update and day-level queries.

Identity of a record is (tenant, section, course, faculty, student, day). ``mark``
refuses a day that already has records for the coordinate; ``update`` upserts
unconditionally so an already-marked day can be corrected.
"""
import logging
from datetime import date, datetime
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo import UpdateOne

from recordbook.config import settings
from recordbook.db import batch_session, translate_storage_errors
from recordbook.errors import ConflictError, ValidationError
from recordbook.models.attendance import (
    AttendanceEntry,
    AttendanceRecord,
    AttendanceStatus,
    BulkWriteCounts,
    DayAggregate,
)
from recordbook.services.dates import ONE_DAY, DayInput, day_range, parse_iso_day, to_day_key
from recordbook.services.references import (
    ensure_mapping,
    get_section,
    get_semester,
    require_entries,
    require_ids,
    require_tenant,
)

logger = logging.getLogger(__name__)

ALREADY_MARKED = "Attendance has already been marked for this day"


def _normalize_entries(entries, batch_date: DayInput) -> list[tuple[str, AttendanceStatus, datetime]]:
    require_entries(entries, "Attendance data")
    default_day = to_day_key(batch_date)
    rows = []
    seen = set()
    for raw in entries:
        try:
            entry = raw if isinstance(raw, AttendanceEntry) else AttendanceEntry.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError("Invalid attendance entry", details={"errors": e.errors()})
        if not entry.student_id:
            raise ValidationError("Each attendance entry needs a student ID")
        day = to_day_key(entry.date) if entry.date else default_day
        if (entry.student_id, day) in seen:
            raise ValidationError(
                f"Student {entry.student_id} appears more than once for {day.date().isoformat()}"
            )
        seen.add((entry.student_id, day))
        rows.append((entry.student_id, entry.status, day))
    return rows


def _coordinate(tenant: str, section_id: str, course_id: str, faculty_id: str) -> dict:
    return {
        "institution_domain": tenant,
        "section_id": section_id,
        "course_id": course_id,
        "faculty_id": faculty_id,
    }


async def _upsert_rows(coordinate: dict, rows, session) -> BulkWriteCounts:
    now = datetime.utcnow()
    ops = [
        UpdateOne(
            {**coordinate, "student_id": student_id, "date": day},
            {
                "$set": {"status": status.value, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
        for student_id, status, day in rows
    ]
    result = await AttendanceRecord.get_motor_collection().bulk_write(ops, ordered=True, session=session)
    return BulkWriteCounts(
        matched=result.matched_count,
        modified=result.modified_count,
        upserted=result.upserted_count,
    )


async def mark_batch(
    tenant: str,
    section_id: str,
    course_id: str,
    faculty_id: str,
    entries: list,
    date: DayInput = None,
) -> BulkWriteCounts:
    """Record a day's attendance for a section/course/faculty.

    Raises ConflictError, writing nothing, when any of the batch's days already
    has records for this coordinate.
    """
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    rows = _normalize_entries(entries, date)
    days = sorted({day for _, _, day in rows})
    coordinate = _coordinate(tenant, section_id, course_id, faculty_id)

    with translate_storage_errors("Bulk attendance mark", ALREADY_MARKED):
        async with batch_session() as session:
            await ensure_mapping(tenant, section_id, course_id, faculty_id, session=session)
            existing = await AttendanceRecord.find_one(
                {**coordinate, "date": {"$in": days}}, session=session
            )
            if existing:
                logger.warning(
                    "Attendance already marked for section %s course %s on %s (%s)",
                    section_id, course_id, existing.date.date().isoformat(), tenant,
                )
                raise ConflictError(ALREADY_MARKED)
            counts = await _upsert_rows(coordinate, rows, session)

    logger.info(
        "Marked attendance for %d students in section %s course %s (%s)",
        len(rows), section_id, course_id, tenant,
    )
    return counts


async def update_batch(
    tenant: str,
    section_id: str,
    course_id: str,
    faculty_id: str,
    entries: list,
    date: DayInput = None,
) -> BulkWriteCounts:
    """Upsert each entry's status; used to correct an already-marked day."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    rows = _normalize_entries(entries, date)
    coordinate = _coordinate(tenant, section_id, course_id, faculty_id)

    with translate_storage_errors("Bulk attendance update", ALREADY_MARKED):
        async with batch_session() as session:
            await ensure_mapping(tenant, section_id, course_id, faculty_id, session=session)
            counts = await _upsert_rows(coordinate, rows, session)

    logger.info(
        "Updated attendance for %d students in section %s course %s (%s)",
        len(rows), section_id, course_id, tenant,
    )
    return counts


async def is_marked(tenant: str, section_id: str, course_id: str, faculty_id: str) -> list[date]:
    """Days inside the section's semester window that have at least one record."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    section = await get_section(tenant, section_id)
    semester = await get_semester(tenant, section.semester_id)

    start = parse_iso_day(semester.start_date, settings.default_semester_start)
    end = parse_iso_day(semester.end_date, settings.default_semester_end) + ONE_DAY
    days = await AttendanceRecord.get_motor_collection().distinct(
        "date",
        {
            **_coordinate(tenant, section_id, course_id, faculty_id),
            "date": {"$gte": start, "$lt": end},
        },
    )
    return sorted({to_day_key(d).date() for d in days})


async def get_by_date(
    tenant: str,
    section_id: str,
    on: DayInput,
    course_id: Optional[str] = None,
    faculty_id: Optional[str] = None,
) -> list[AttendanceRecord]:
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id)
    start, end = day_range(on)
    query = {
        "institution_domain": tenant,
        "section_id": section_id,
        "date": {"$gte": start, "$lt": end},
    }
    if course_id:
        query["course_id"] = course_id
    if faculty_id:
        query["faculty_id"] = faculty_id
    return await AttendanceRecord.find(query).sort("student_id").to_list()


async def check_exists(tenant: str, section_id: str, course_id: str, faculty_id: str, on: DayInput) -> bool:
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    start, end = day_range(on)
    record = await AttendanceRecord.find_one(
        {
            **_coordinate(tenant, section_id, course_id, faculty_id),
            "date": {"$gte": start, "$lt": end},
        }
    )
    return record is not None


async def history(tenant: str, section_id: str, course_id: str, faculty_id: str) -> list[DayAggregate]:
    """Per-day totals for a coordinate, newest day first."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    pipeline = [
        {"$match": _coordinate(tenant, section_id, course_id, faculty_id)},
        {
            "$group": {
                "_id": "$date",
                "count": {"$sum": 1},
                "presentCount": {
                    "$sum": {"$cond": [{"$eq": ["$status", AttendanceStatus.PRESENT.value]}, 1, 0]}
                },
                "absentCount": {
                    "$sum": {"$cond": [{"$eq": ["$status", AttendanceStatus.ABSENT.value]}, 1, 0]}
                },
            }
        },
        {"$sort": {"_id": -1}},
    ]
    rows = await AttendanceRecord.aggregate(pipeline).to_list()
    return [
        DayAggregate(
            day=row["_id"],
            total_count=row["count"],
            present_count=row["presentCount"],
            absent_count=row["absentCount"],
        )
        for row in rows
    ]


def count_statuses(records: Iterable[AttendanceRecord]) -> tuple[int, int]:
    """(present, total) over a set of records."""
    present = total = 0
    for record in records:
        total += 1
        if record.status == AttendanceStatus.PRESENT:
            present += 1
    return present, total
