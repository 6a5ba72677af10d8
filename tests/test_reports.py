from datetime import date

import pytest

from recordbook.errors import NotFoundError, ValidationError
from recordbook.services import attendance, marks, reports
from tests.conftest import OTHER_TENANT, TENANT


async def _mark_day(campus, on, statuses, course_key="algebra_id"):
    entries = [
        {"student_id": sid, "status": status}
        for sid, status in zip(campus["student_ids"], statuses)
    ]
    await attendance.mark_batch(
        TENANT, campus["section_id"], campus[course_key], campus["faculty_id"], entries, date=on
    )


async def _add_marks(campus, scores, exam_type="Midterm-1", total=50, passing=20, course_key="algebra_id"):
    await marks.add_batch(
        TENANT,
        campus["section_id"],
        campus[course_key],
        campus["faculty_id"],
        exam_type,
        total,
        passing,
        [{"student_id": sid, "marks_scored": score} for sid, score in zip(campus["student_ids"], scores)],
    )


async def test_overview_reports_rounded_attendance_and_grade_buckets(campus):
    statuses = ["Present"] * 8 + ["Absent"] * 2
    for day, status in enumerate(statuses, start=1):
        await _mark_day(campus, f"2024-03-{day:02d}", [status])
    await _add_marks(campus, [45, 30, 12])
    await _add_marks(campus, [9, 5, 2], exam_type="Quiz", total=10, passing=4)

    overview = await reports.student_overview(TENANT, campus["student_ids"][0])

    assert overview["attendance"] == {"present": 8, "absent": 2, "total": 10, "percentage": 80}
    assert overview["gradeDistribution"] == [
        {"name": "A", "count": 2},
        {"name": "B", "count": 0},
        {"name": "C", "count": 0},
        {"name": "D", "count": 0},
        {"name": "F", "count": 0},
    ]


async def test_overview_without_records_is_all_zero(campus):
    overview = await reports.student_overview(TENANT, campus["student_ids"][1])
    assert overview["attendance"]["percentage"] == 0
    assert sum(bucket["count"] for bucket in overview["gradeDistribution"]) == 0


async def test_overview_of_unknown_or_foreign_student(campus):
    with pytest.raises(NotFoundError):
        await reports.student_overview(OTHER_TENANT, campus["student_ids"][0])
    with pytest.raises(ValidationError):
        await reports.student_overview(TENANT, "not-an-object-id")


async def test_course_wise_attendance_follows_mapping_order(campus):
    await _mark_day(campus, "2024-03-05", ["Present"])
    await _mark_day(campus, "2024-03-06", ["Absent"])

    rows = await reports.course_wise_attendance(TENANT, campus["student_ids"][0])

    assert [r["name"] for r in rows] == ["Algebra", "Physics"]
    assert rows[0]["courseId"] == campus["algebra_id"]
    assert (rows[0]["present"], rows[0]["absent"], rows[0]["total"], rows[0]["percentage"]) == (1, 1, 2, 50)
    assert (rows[1]["total"], rows[1]["percentage"]) == (0, 0)


async def test_monthly_attendance_is_chronological(campus):
    await _mark_day(campus, "2024-03-05", ["Absent"])
    await _mark_day(campus, "2024-02-20", ["Present"])
    await _mark_day(campus, "2024-02-21", ["Present"], course_key="physics_id")

    months = await reports.monthly_attendance(TENANT, campus["student_ids"][0])

    assert months == [
        {"month": "Feb", "year": 2024, "present": 2, "absent": 0},
        {"month": "Mar", "year": 2024, "present": 0, "absent": 1},
    ]


async def test_student_gpa_weights_letter_points_by_credits(campus):
    await _add_marks(campus, [46, 30, 12])  # Algebra, 4 credits
    await _add_marks(campus, [34, 30, 12], course_key="physics_id")  # Physics, 3 credits

    result = await reports.student_gpa(TENANT, campus["student_ids"][0])

    assert result["gpa"] == 3.27
    assert result["totalCredits"] == 7
    assert result["currentSemesterAverage"] == 80.0
    algebra, physics = result["courses"]
    assert (algebra["grade"], algebra["gradePoints"], algebra["credits"]) == ("O", 4.0, 4)
    assert (physics["grade"], physics["gradePoints"], physics["credits"]) == ("B-", 2.3, 3)


async def test_student_gpa_skips_courses_without_marks(campus):
    await _add_marks(campus, [46, 30, 12])

    result = await reports.student_gpa(TENANT, campus["student_ids"][0])

    assert result["gpa"] == 4.0
    assert result["courses"][1]["grade"] is None
    assert result["courses"][1]["average"] is None


async def test_section_attendance_summary_is_sorted_by_name(campus):
    await _mark_day(campus, "2024-03-05", ["Present", "Absent", "Present"])
    await _mark_day(campus, "2024-03-06", ["Present", "Present", "Absent"])

    summary = await reports.section_attendance_summary(
        TENANT, campus["section_id"], campus["algebra_id"], campus["faculty_id"]
    )

    assert [row["studentName"] for row in summary] == ["Amir Khan", "Mia Lopez", "Zoe Adams"]
    assert [row["percentage"] for row in summary] == [50, 50, 100]
    assert summary[0]["rollNumber"] == "01"


async def test_report_frame_covers_inclusive_range(campus):
    await _mark_day(campus, "2024-03-04", ["Present", "Present", "Present"])
    await _mark_day(campus, "2024-03-05", ["Present", "Absent", "Present"])
    await _mark_day(campus, "2024-03-06", ["Absent", "Absent", "Absent"])

    df = await reports.attendance_report_frame(TENANT, campus["section_id"], "2024-03-05", "2024-03-06")

    assert len(df) == 6
    assert list(df.columns) == [
        "Date", "Student ID", "Roll Number", "Student Name", "Course ID", "Faculty ID", "Status",
    ]
    assert set(df["Status"]) == {"Present", "Absent"}


async def test_report_frame_rejects_reversed_range(campus):
    with pytest.raises(ValidationError):
        await reports.attendance_report_frame(TENANT, campus["section_id"], "2024-03-06", "2024-03-05")


async def test_report_frame_is_empty_for_other_tenant(campus):
    await _mark_day(campus, "2024-03-05", ["Present", "Absent", "Present"])
    df = await reports.attendance_report_frame(OTHER_TENANT, campus["section_id"], "2024-03-01", "2024-03-31")
    assert df.empty


async def test_export_csv_and_excel(campus):
    await _mark_day(campus, "2024-03-05", ["Present", "Absent", "Present"])
    df = await reports.attendance_report_frame(TENANT, campus["section_id"], "2024-03-05", "2024-03-05")

    stream, media_type = reports.export_attendance_report(df, "csv")
    text = stream.getvalue()
    assert media_type == "text/csv"
    assert text.splitlines()[0] == "Date,Student ID,Roll Number,Student Name,Course ID,Faculty ID,Status"
    assert "Amir Khan" in text

    stream, media_type = reports.export_attendance_report(df, "excel")
    assert media_type.endswith("spreadsheetml.sheet")
    assert stream.getvalue()[:2] == b"PK"

    with pytest.raises(ValidationError):
        reports.export_attendance_report(df, "pdf")


async def test_course_marks_lists_weighted_assessments(campus):
    await _add_marks(campus, [9, 5, 3], exam_type="Quiz", total=10, passing=4)
    await _add_marks(campus, [45, 30, 12])

    algebra, physics = await reports.course_marks(TENANT, campus["student_ids"][0])

    assert [a["examType"] for a in algebra["assessments"]] == ["Midterm-1", "Quiz"]
    assert algebra["assessments"][0] == {
        "examType": "Midterm-1",
        "name": "Midterm 1",
        "maxMarks": 50,
        "weightage": 25,
        "marksScored": 45,
    }
    assert algebra["assessments"][1]["weightage"] == 15
    assert (algebra["percentage"], algebra["grade"], algebra["gradePoints"]) == (90, "O", 4.0)
    assert physics["assessments"] == []
    assert (physics["percentage"], physics["grade"]) == (0, None)


async def test_semester_progress_folds_reattempts_into_their_exam(campus):
    await _add_marks(campus, [45, 30, 12])
    await _add_marks(campus, [34, 30, 12], course_key="physics_id")
    await _add_marks(campus, [9, 5, 3], exam_type="Quiz", total=10, passing=4)
    await marks.add_batch(
        TENANT,
        campus["section_id"],
        campus["algebra_id"],
        campus["faculty_id"],
        "Reattempt-Quiz",
        10,
        4,
        [{"student_id": campus["student_ids"][0], "marks_scored": 7}],
    )

    progress = await reports.semester_progress(TENANT, campus["student_ids"][0])

    assert progress == [
        {"examType": "Midterm-1", "average": 79},
        {"examType": "Quiz", "average": 80},
    ]


async def test_semester_progress_without_marks_is_empty(campus):
    assert await reports.semester_progress(TENANT, campus["student_ids"][1]) == []


async def test_section_comparison_excludes_the_student_from_the_average(campus):
    await _add_marks(campus, [45, 30, 12])
    await _add_marks(campus, [9, 5, 3], exam_type="Quiz", total=10, passing=4)

    comparison = await reports.section_comparison(TENANT, campus["student_ids"][0])

    assert len(comparison) == 1
    algebra = comparison[0]
    assert algebra["courseName"] == "Algebra"
    assert (algebra["yourScore"], algebra["sectionAverage"]) == (90, 41)
    assert algebra["trend"] == [
        {"examType": "Midterm-1", "yourScore": 90, "sectionAverage": 42},
        {"examType": "Quiz", "yourScore": 90, "sectionAverage": 40},
    ]


async def test_student_attendance_on_a_day_covers_every_course(campus):
    await _mark_day(campus, "2024-03-05", ["Present"])
    await _mark_day(campus, "2024-03-05", ["Absent"], course_key="physics_id")

    rows = await reports.student_attendance_on(TENANT, campus["student_ids"][0], "2024-03-05T15:00:00Z")

    assert [(r["course"], r["status"], r["date"]) for r in rows] == [
        ("Algebra", "Present", date(2024, 3, 5)),
        ("Physics", "Absent", date(2024, 3, 5)),
    ]
    with pytest.raises(NotFoundError):
        await reports.student_attendance_on(TENANT, campus["student_ids"][0], "2024-03-06")
