"""Student dashboards: attendance and marks summaries."""
from fastapi import APIRouter

from recordbook.api.deps import CurrentTenant
from recordbook.api.responses import envelope
from recordbook.services import reports

router = APIRouter()


@router.get("/{student_id}/overview")
async def get_student_overview(student_id: str, tenant: CurrentTenant):
    overview = await reports.student_overview(tenant.institution_domain, student_id)
    return envelope("Overview data fetched successfully", overview)


@router.get("/{student_id}/attendance/courses")
async def get_course_wise_attendance(student_id: str, tenant: CurrentTenant):
    courses = await reports.course_wise_attendance(tenant.institution_domain, student_id)
    return envelope("Course-wise attendance fetched successfully", {"courses": courses})


@router.get("/{student_id}/attendance/monthly")
async def get_monthly_attendance(student_id: str, tenant: CurrentTenant):
    months = await reports.monthly_attendance(tenant.institution_domain, student_id)
    return envelope("Monthly attendance fetched successfully", {"months": months})


@router.get("/{student_id}/marks/gpa")
async def get_student_gpa(student_id: str, tenant: CurrentTenant):
    summary = await reports.student_gpa(tenant.institution_domain, student_id)
    return envelope("Marks data fetched successfully", summary)


@router.get("/{student_id}/attendance/date/{date_str}")
async def get_student_attendance_by_date(student_id: str, date_str: str, tenant: CurrentTenant):
    attendance = await reports.student_attendance_on(tenant.institution_domain, student_id, date_str)
    return envelope("Attendance data fetched successfully", {"attendance": attendance})


@router.get("/{student_id}/marks/courses")
async def get_course_marks(student_id: str, tenant: CurrentTenant):
    """Per-course assessments with weightage and letter grade."""
    courses = await reports.course_marks(tenant.institution_domain, student_id)
    return envelope("Course marks fetched successfully", {"courses": courses})


@router.get("/{student_id}/marks/progress")
async def get_semester_progress(student_id: str, tenant: CurrentTenant):
    progress = await reports.semester_progress(tenant.institution_domain, student_id)
    return envelope("Semester progress fetched successfully", {"progress": progress})


@router.get("/{student_id}/comparison")
async def get_section_comparison(student_id: str, tenant: CurrentTenant):
    comparison = await reports.section_comparison(tenant.institution_domain, student_id)
    return envelope("Comparison data fetched successfully", {"comparison": comparison})
