from typing import List, Literal, Optional

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from recordbook.api.deps import CurrentTenant
from recordbook.api.responses import envelope
from recordbook.errors import NotFoundError
from recordbook.models.attendance import AttendanceEntry, AttendanceOut, AttendanceRecord
from recordbook.services import attendance as recorder
from recordbook.services import reports

router = APIRouter()


class AttendanceBulkRequest(BaseModel):
    section_id: Optional[str] = None
    course_id: Optional[str] = None
    faculty_id: Optional[str] = None
    date: Optional[str] = None
    attendance: List[AttendanceEntry] = Field(default_factory=list)


def _serialize(record: AttendanceRecord) -> AttendanceOut:
    return AttendanceOut(
        id=str(record.id),
        section_id=record.section_id,
        course_id=record.course_id,
        faculty_id=record.faculty_id,
        student_id=record.student_id,
        date=record.date,
        status=record.status,
    )


@router.post("/bulk-mark")
async def bulk_mark_attendance(data: AttendanceBulkRequest, tenant: CurrentTenant):
    """Mark attendance for a section/course/faculty on one day. Fails if already marked."""
    counts = await recorder.mark_batch(
        tenant.institution_domain,
        data.section_id,
        data.course_id,
        data.faculty_id,
        data.attendance,
        date=data.date,
    )
    return envelope("Bulk attendance marked successfully", counts.model_dump())


@router.post("/bulk-update")
async def bulk_update_attendance(data: AttendanceBulkRequest, tenant: CurrentTenant):
    """Correct attendance that was already marked (upserts each entry)."""
    counts = await recorder.update_batch(
        tenant.institution_domain,
        data.section_id,
        data.course_id,
        data.faculty_id,
        data.attendance,
        date=data.date,
    )
    return envelope("Bulk attendance updated successfully", counts.model_dump())


@router.get("/check/{section_id}/course/{course_id}/faculty/{faculty_id}/date/{date_str}")
async def check_attendance_exists(
    section_id: str, course_id: str, faculty_id: str, date_str: str, tenant: CurrentTenant
):
    exists = await recorder.check_exists(tenant.institution_domain, section_id, course_id, faculty_id, date_str)
    return envelope("Attendance check completed", {"exists": exists})


@router.get("/section/{section_id}/course/{course_id}/faculty/{faculty_id}/date/{date_str}")
async def get_attendance_by_section_and_date(
    section_id: str, course_id: str, faculty_id: str, date_str: str, tenant: CurrentTenant
):
    records = await recorder.get_by_date(
        tenant.institution_domain, section_id, date_str, course_id=course_id, faculty_id=faculty_id
    )
    return envelope(
        "Attendance records retrieved successfully",
        {"attendance": [_serialize(r) for r in records]},
    )


@router.get("/section/{section_id}/date/{date_str}")
async def get_section_attendance_by_date(section_id: str, date_str: str, tenant: CurrentTenant):
    """All courses' attendance for a section on one day."""
    records = await recorder.get_by_date(tenant.institution_domain, section_id, date_str)
    return envelope(
        "Attendance records retrieved successfully",
        {"attendance": [_serialize(r) for r in records]},
    )


@router.get("/history/{section_id}/course/{course_id}/faculty/{faculty_id}")
async def get_attendance_history(section_id: str, course_id: str, faculty_id: str, tenant: CurrentTenant):
    days = await recorder.history(tenant.institution_domain, section_id, course_id, faculty_id)
    return envelope(
        "Attendance history retrieved successfully",
        {
            "attendanceDates": [
                {
                    "_id": d.day.date().isoformat(),
                    "count": d.total_count,
                    "presentCount": d.present_count,
                    "absentCount": d.absent_count,
                }
                for d in days
            ]
        },
    )


@router.get("/is-marked/{section_id}/section/{course_id}/course/{faculty_id}/faculty")
async def is_attendance_marked(section_id: str, course_id: str, faculty_id: str, tenant: CurrentTenant):
    """Days within the section's semester that already have attendance."""
    dates = await recorder.is_marked(tenant.institution_domain, section_id, course_id, faculty_id)
    return envelope(
        "Attendance dates retrieved successfully",
        {"dates": [d.isoformat() for d in dates]},
    )


@router.get("/summary/{section_id}/course/{course_id}/faculty/{faculty_id}")
async def get_section_attendance_summary(
    section_id: str, course_id: str, faculty_id: str, tenant: CurrentTenant
):
    students = await reports.section_attendance_summary(
        tenant.institution_domain, section_id, course_id, faculty_id
    )
    return envelope("Attendance summary retrieved successfully", {"students": students})


@router.get("/report")
async def download_attendance_report(
    section_id: str,
    from_date: str,
    to_date: str,
    tenant: CurrentTenant,
    course_id: Optional[str] = None,
    faculty_id: Optional[str] = None,
    format: Literal["csv", "excel"] = "csv",
):
    """Download attendance for a section and date range."""
    df = await reports.attendance_report_frame(
        tenant.institution_domain, section_id, from_date, to_date, course_id=course_id, faculty_id=faculty_id
    )
    if df.empty:
        raise NotFoundError("No records found for the given criteria")

    stream, media_type = reports.export_attendance_report(df, format)
    extension = "csv" if format == "csv" else "xlsx"
    return StreamingResponse(
        stream,
        media_type=media_type,
        headers={
            "Content-Disposition": f"attachment; filename=attendance_{section_id}_{from_date}_{to_date}.{extension}"
        },
    )
