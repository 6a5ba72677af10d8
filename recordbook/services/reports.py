"""Read-side reporting over attendance and marks, scoped to one student or one section."""
import io
import logging
from typing import Optional

import pandas as pd

from recordbook.config import settings
from recordbook.errors import NotFoundError, ValidationError
from recordbook.models.academics import Student
from recordbook.models.attendance import AttendanceRecord, AttendanceStatus
from recordbook.models.marks import MarksRecord
from recordbook.services.attendance import count_statuses
from recordbook.services.dates import ONE_DAY, DayInput, day_range, to_day_key
from recordbook.services.grading import (
    assessment_weightage,
    attendance_percentage,
    base_exam_type,
    compute_gpa,
    grade_distribution,
    letter_grade,
    monthly_trend,
    round_half_up,
    score_percentage,
)
from recordbook.services.marks import EXAM_TYPE_ORDER
from recordbook.services.references import (
    courses_by_id,
    get_student,
    require_ids,
    require_tenant,
    section_mappings,
    students_by_id,
)

logger = logging.getLogger(__name__)


def attendance_summary(present: int, total: int) -> dict:
    return {
        "present": present,
        "absent": total - present,
        "total": total,
        "percentage": attendance_percentage(present, total),
    }


async def _student_attendance(tenant: str, student_id: str, course_id: Optional[str] = None) -> list[AttendanceRecord]:
    query = {"institution_domain": tenant, "student_id": student_id}
    if course_id:
        query["course_id"] = course_id
    return await AttendanceRecord.find(query).sort("date").to_list()


async def _student_marks(tenant: str, student_id: str, course_id: Optional[str] = None) -> list[MarksRecord]:
    query = {"institution_domain": tenant, "student_id": student_id}
    if course_id:
        query["course_id"] = course_id
    return await MarksRecord.find(query).to_list()


async def _student_courses(tenant: str, student_id: str):
    student = await get_student(tenant, student_id)
    if not student.section_id:
        raise NotFoundError("Section not found")
    mappings = await section_mappings(tenant, student.section_id)
    courses = await courses_by_id(tenant, list(dict.fromkeys(m.course_id for m in mappings)))
    # a course can be mapped to more than one faculty; report it once
    ordered = []
    seen = set()
    for mapping in mappings:
        if mapping.course_id in courses and mapping.course_id not in seen:
            seen.add(mapping.course_id)
            ordered.append(courses[mapping.course_id])
    return student, ordered


async def student_overview(tenant: str, student_id: str) -> dict:
    tenant = require_tenant(tenant)
    await get_student(tenant, student_id)
    present, total = count_statuses(await _student_attendance(tenant, student_id))
    marks = await _student_marks(tenant, student_id)
    return {
        "attendance": attendance_summary(present, total),
        "gradeDistribution": grade_distribution((m.marks_scored, m.total_marks) for m in marks),
    }


async def course_wise_attendance(tenant: str, student_id: str) -> list[dict]:
    tenant = require_tenant(tenant)
    _, courses = await _student_courses(tenant, student_id)
    rows = []
    for course in courses:
        records = await _student_attendance(tenant, student_id, str(course.id))
        present, total = count_statuses(records)
        rows.append({"courseId": str(course.id), "name": course.name, **attendance_summary(present, total)})
    return rows


async def monthly_attendance(tenant: str, student_id: str) -> list[dict]:
    tenant = require_tenant(tenant)
    await get_student(tenant, student_id)
    return monthly_trend(await _student_attendance(tenant, student_id))


async def student_gpa(tenant: str, student_id: str) -> dict:
    """Per-course average percentage and letter grade, credit-weighted GPA."""
    tenant = require_tenant(tenant)
    _, courses = await _student_courses(tenant, student_id)

    breakdown = []
    graded = []
    for course in courses:
        marks = await _student_marks(tenant, student_id, str(course.id))
        row = {
            "courseId": str(course.id),
            "name": course.name,
            "code": course.course_code,
            "credits": course.credits or settings.default_course_credits,
            "average": None,
            "grade": None,
            "gradePoints": None,
        }
        if marks:
            average = _average_percentage(marks)
            letter, points = letter_grade(average)
            graded.append((average, row["credits"]))
            row.update(average=round(average, 2), grade=letter, gradePoints=points)
        breakdown.append(row)

    semester_average = sum(avg for avg, _ in graded) / len(graded) if graded else 0.0
    return {
        "gpa": compute_gpa(graded, settings.default_course_credits),
        "totalCredits": sum((c.credits or settings.default_course_credits) for c in courses),
        "currentSemesterAverage": round(semester_average, 2),
        "courses": breakdown,
    }


def _exam_sort_key(exam_type: str) -> int:
    return EXAM_TYPE_ORDER.get(exam_type, len(EXAM_TYPE_ORDER))


def _average_percentage(marks: list[MarksRecord]) -> float:
    return sum(score_percentage(m.marks_scored, m.total_marks) for m in marks) / len(marks)


async def course_marks(tenant: str, student_id: str) -> list[dict]:
    """Assessments per mapped course with weightage, overall percentage and letter grade."""
    tenant = require_tenant(tenant)
    _, courses = await _student_courses(tenant, student_id)

    rows = []
    for course in courses:
        marks = await _student_marks(tenant, student_id, str(course.id))
        marks.sort(key=lambda m: _exam_sort_key(m.exam_type.value))
        assessments = [
            {
                "examType": m.exam_type.value,
                "name": m.exam_type.value.replace("-", " "),
                "maxMarks": m.total_marks,
                "weightage": assessment_weightage(m.exam_type.value),
                "marksScored": m.marks_scored,
            }
            for m in marks
        ]
        row = {
            "courseId": str(course.id),
            "name": course.name,
            "code": course.course_code,
            "credits": course.credits or settings.default_course_credits,
            "assessments": assessments,
            "percentage": 0,
            "grade": None,
            "gradePoints": None,
        }
        max_total = sum(m.total_marks for m in marks)
        if max_total > 0:
            percentage = round_half_up(sum(m.marks_scored for m in marks) / max_total * 100)
            letter, points = letter_grade(percentage)
            row.update(percentage=percentage, grade=letter, gradePoints=points)
        rows.append(row)
    return rows


async def semester_progress(tenant: str, student_id: str) -> list[dict]:
    """Average percentage per exam type across courses, in exam sequence order.

    Reattempts count towards their base exam type.
    """
    tenant = require_tenant(tenant)
    await get_student(tenant, student_id)
    grouped: dict[str, list[MarksRecord]] = {}
    for record in await _student_marks(tenant, student_id):
        grouped.setdefault(base_exam_type(record.exam_type.value), []).append(record)
    return [
        {"examType": exam_type, "average": round_half_up(_average_percentage(grouped[exam_type]))}
        for exam_type in sorted(grouped, key=_exam_sort_key)
    ]


async def section_comparison(tenant: str, student_id: str) -> list[dict]:
    """The student's average per course against the rest of the section.

    Courses without marks for the student are left out. Peers without marks
    in a course do not count towards its section average.
    """
    tenant = require_tenant(tenant)
    student, courses = await _student_courses(tenant, student_id)
    peers = await Student.find(
        {"institution_domain": tenant, "section_id": student.section_id, "_id": {"$ne": student.id}}
    ).to_list()
    peer_ids = [str(p.id) for p in peers]

    rows = []
    for course in courses:
        own = await _student_marks(tenant, student_id, str(course.id))
        if not own:
            continue
        peer_marks: dict[str, list[MarksRecord]] = {}
        if peer_ids:
            records = await MarksRecord.find(
                {"institution_domain": tenant, "course_id": str(course.id), "student_id": {"$in": peer_ids}}
            ).to_list()
            for record in records:
                peer_marks.setdefault(record.student_id, []).append(record)

        peer_averages = [_average_percentage(marks) for marks in peer_marks.values()]
        trend = []
        for mark in sorted(own, key=lambda m: _exam_sort_key(m.exam_type.value)):
            same_exam = [
                score_percentage(r.marks_scored, r.total_marks)
                for marks in peer_marks.values()
                for r in marks
                if r.exam_type == mark.exam_type
            ]
            trend.append(
                {
                    "examType": mark.exam_type.value,
                    "yourScore": round_half_up(score_percentage(mark.marks_scored, mark.total_marks)),
                    "sectionAverage": round_half_up(sum(same_exam) / len(same_exam)) if same_exam else 0,
                }
            )
        rows.append(
            {
                "courseId": str(course.id),
                "courseName": course.name,
                "courseCode": course.course_code,
                "yourScore": round_half_up(_average_percentage(own)),
                "sectionAverage": round_half_up(sum(peer_averages) / len(peer_averages)) if peer_averages else 0,
                "trend": trend,
            }
        )
    return rows


async def student_attendance_on(tenant: str, student_id: str, on: DayInput) -> list[dict]:
    """Every course's attendance for one student on one day."""
    tenant = require_tenant(tenant)
    await get_student(tenant, student_id)
    start, end = day_range(on)
    records = await AttendanceRecord.find(
        {"institution_domain": tenant, "student_id": student_id, "date": {"$gte": start, "$lt": end}}
    ).to_list()
    if not records:
        raise NotFoundError("No attendance record found for this date")
    courses = await courses_by_id(tenant, list({r.course_id for r in records}))

    rows = []
    for record in records:
        course = courses.get(record.course_id)
        rows.append(
            {
                "date": record.date.date(),
                "status": record.status.value,
                "courseId": record.course_id,
                "course": course.name if course else "Unknown Course",
            }
        )
    rows.sort(key=lambda r: (r["course"].lower(), r["courseId"]))
    return rows


async def section_attendance_summary(tenant: str, section_id: str, course_id: str, faculty_id: str) -> list[dict]:
    """Per-student attendance totals for one section/course/faculty."""
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id, course_id=course_id, faculty_id=faculty_id)
    pipeline = [
        {
            "$match": {
                "institution_domain": tenant,
                "section_id": section_id,
                "course_id": course_id,
                "faculty_id": faculty_id,
            }
        },
        {
            "$group": {
                "_id": "$student_id",
                "total": {"$sum": 1},
                "present": {
                    "$sum": {"$cond": [{"$eq": ["$status", AttendanceStatus.PRESENT.value]}, 1, 0]}
                },
            }
        },
    ]
    rows = await AttendanceRecord.aggregate(pipeline).to_list()
    students = await students_by_id(tenant, [row["_id"] for row in rows])
    summary = []
    for row in rows:
        student = students.get(row["_id"])
        summary.append(
            {
                "studentId": row["_id"],
                "studentName": student.full_name if student else None,
                "rollNumber": student.roll_number if student else None,
                **attendance_summary(row["present"], row["total"]),
            }
        )
    summary.sort(key=lambda r: ((r["studentName"] or "").lower(), r["studentId"]))
    return summary


async def attendance_report_frame(
    tenant: str,
    section_id: str,
    from_date: DayInput,
    to_date: DayInput,
    course_id: Optional[str] = None,
    faculty_id: Optional[str] = None,
) -> pd.DataFrame:
    tenant = require_tenant(tenant)
    require_ids(section_id=section_id)
    start = to_day_key(from_date)
    end = to_day_key(to_date) + ONE_DAY
    if end <= start:
        raise ValidationError("from_date must not be after to_date")

    query = {
        "institution_domain": tenant,
        "section_id": section_id,
        "date": {"$gte": start, "$lt": end},
    }
    if course_id:
        query["course_id"] = course_id
    if faculty_id:
        query["faculty_id"] = faculty_id
    records = await AttendanceRecord.find(query).sort("date").to_list()
    students = await students_by_id(tenant, list({r.student_id for r in records}))
    logger.info(
        "Attendance report for %s section %s: %d records between %s and %s",
        tenant,
        section_id,
        len(records),
        start.date(),
        (end - ONE_DAY).date(),
    )

    data = []
    for record in records:
        student = students.get(record.student_id)
        data.append(
            {
                "Date": record.date.date(),
                "Student ID": record.student_id,
                "Roll Number": student.roll_number if student else "",
                "Student Name": student.full_name if student else "Unknown",
                "Course ID": record.course_id,
                "Faculty ID": record.faculty_id,
                "Status": record.status.value,
            }
        )
    return pd.DataFrame(data)


def export_attendance_report(df: pd.DataFrame, format: str = "csv") -> tuple[io.IOBase, str]:
    """Serialize a report frame; returns (stream, media type)."""
    if format == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        stream.seek(0)
        return stream, "text/csv"
    if format == "excel":
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Attendance")
        output.seek(0)
        return output, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    raise ValidationError(f"Unsupported report format: {format}")
