import pytest
from httpx import ASGITransport, AsyncClient

from recordbook.api.deps import TenantContext, create_access_token, get_tenant
from recordbook.main import app
from tests.conftest import TENANT


@pytest.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def as_faculty():
    app.dependency_overrides[get_tenant] = lambda: TenantContext(
        institution_domain=TENANT, user_id="faculty-1", role="faculty"
    )
    yield
    app.dependency_overrides.pop(get_tenant, None)


def _attendance_body(campus, statuses, on="2024-03-05"):
    return {
        "section_id": campus["section_id"],
        "course_id": campus["algebra_id"],
        "faculty_id": campus["faculty_id"],
        "date": on,
        "attendance": [
            {"student_id": sid, "status": status}
            for sid, status in zip(campus["student_ids"], statuses)
        ],
    }


def _marks_body(campus, scores, exam_type="Midterm-1"):
    return {
        "section_id": campus["section_id"],
        "course_id": campus["algebra_id"],
        "faculty_id": campus["faculty_id"],
        "exam_type": exam_type,
        "total_marks": 50,
        "passing_marks": 20,
        "marks": [
            {"student_id": sid, "marks_scored": score}
            for sid, score in zip(campus["student_ids"], scores)
        ],
    }


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_missing_token_is_unauthorized(client, campus):
    response = await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, ["Present"]))

    assert response.status_code == 401
    assert response.json() == {"message": "Not authenticated", "data": [], "code": 401}
    assert response.headers["www-authenticate"] == "Bearer"


async def test_token_without_domain_is_rejected(client):
    token = create_access_token("faculty-1", "")
    response = await client.get(
        "/api/students/65f000000000000000000000/overview",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 400


async def test_bearer_token_scopes_requests_to_its_tenant(client, campus):
    token = create_access_token("faculty-1", TENANT, role="faculty")
    headers = {"Authorization": f"Bearer {token}"}

    response = await client.post(
        "/api/attendance/bulk-mark", json=_attendance_body(campus, ["Present"] * 3), headers=headers
    )
    assert response.status_code == 200

    foreign = create_access_token("faculty-1", "other.edu")
    response = await client.get(
        f"/api/attendance/section/{campus['section_id']}/date/2024-03-05",
        headers={"Authorization": f"Bearer {foreign}"},
    )
    assert response.json()["data"] == {"attendance": []}


async def test_bulk_mark_then_conflict(client, campus, as_faculty):
    body = _attendance_body(campus, ["Present", "Absent", "Present"])

    first = await client.post("/api/attendance/bulk-mark", json=body)
    second = await client.post("/api/attendance/bulk-mark", json=body)

    assert first.status_code == 200
    assert first.json()["data"] == {"matched": 0, "modified": 0, "upserted": 3}
    assert second.status_code == 400
    assert second.json()["code"] == 400
    assert second.json()["data"] == []


async def test_bulk_update_and_reads(client, campus, as_faculty):
    await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, ["Present"] * 3))
    update = await client.post(
        "/api/attendance/bulk-update", json=_attendance_body(campus, ["Absent"], on="2024-03-05T20:00:00Z")
    )
    assert update.json()["data"] == {"matched": 1, "modified": 1, "upserted": 0}

    path = f"{campus['section_id']}/course/{campus['algebra_id']}/faculty/{campus['faculty_id']}"
    check = await client.get(f"/api/attendance/check/{path}/date/2024-03-05")
    assert check.json()["data"] == {"exists": True}

    records = await client.get(f"/api/attendance/section/{path}/date/2024-03-05")
    assert len(records.json()["data"]["attendance"]) == 3

    history = await client.get(f"/api/attendance/history/{path}")
    assert history.json()["data"]["attendanceDates"] == [
        {"_id": "2024-03-05", "count": 3, "presentCount": 2, "absentCount": 1}
    ]

    marked = await client.get(
        f"/api/attendance/is-marked/{campus['section_id']}/section/{campus['algebra_id']}/course/"
        f"{campus['faculty_id']}/faculty"
    )
    assert marked.json()["data"] == {"dates": ["2024-03-05"]}


async def test_invalid_status_is_a_400_envelope(client, campus, as_faculty):
    response = await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, ["Late"]))

    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "Invalid request"
    assert payload["data"]["errors"]


async def test_empty_attendance_is_rejected(client, campus, as_faculty):
    response = await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, []))
    assert response.status_code == 400


async def test_report_download(client, campus, as_faculty):
    await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, ["Present"] * 3))
    params = {"section_id": campus["section_id"], "from_date": "2024-03-01", "to_date": "2024-03-31"}

    response = await client.get("/api/attendance/report", params=params)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    empty = await client.get("/api/attendance/report", params={**params, "from_date": "2024-04-01", "to_date": "2024-04-30"})
    assert empty.status_code == 404

    unsupported = await client.get("/api/attendance/report", params={**params, "format": "pdf"})
    assert unsupported.status_code == 400
    assert unsupported.json()["message"] == "Invalid request"


async def test_marks_lifecycle(client, campus, as_faculty):
    path = f"{campus['section_id']}/course/{campus['algebra_id']}/faculty/{campus['faculty_id']}"

    missing = await client.put("/api/marks/bulk-update", json=_marks_body(campus, [40, 40, 40]))
    assert missing.status_code == 404

    added = await client.post("/api/marks/bulk-add", json=_marks_body(campus, [45, 30, 12]))
    assert added.json()["data"] == {"insertedCount": 3}

    again = await client.post("/api/marks/bulk-add", json=_marks_body(campus, [45, 30, 12]))
    assert again.status_code == 400

    too_high = await client.put("/api/marks/bulk-update", json=_marks_body(campus, [51]))
    assert too_high.status_code == 400

    updated = await client.put("/api/marks/bulk-update", json=_marks_body(campus, [50]))
    assert updated.json()["data"] == {"matched": 1, "modified": 1, "upserted": 0}

    rows = (await client.get(f"/api/marks/section/{path}/exam-type/Midterm-1")).json()["data"]["marks"]
    assert [r["student_name"] for r in rows] == ["Amir Khan", "Mia Lopez", "Zoe Adams"]
    assert rows[2]["marks_scored"] == 50

    exam_types = await client.get(f"/api/marks/exam-types/{path}")
    assert exam_types.json()["data"] == {"examTypes": ["Midterm-1"]}

    deleted = await client.delete(f"/api/marks/section/{path}/exam-type/Midterm-1")
    assert deleted.json()["data"] == {"deletedCount": 3}
    gone = await client.delete(f"/api/marks/section/{path}/exam-type/Midterm-1")
    assert gone.status_code == 404


async def test_student_reports(client, campus, as_faculty):
    await client.post("/api/attendance/bulk-mark", json=_attendance_body(campus, ["Present", "Absent", "Absent"]))
    await client.post("/api/marks/bulk-add", json=_marks_body(campus, [46, 30, 12]))
    student_id = campus["student_ids"][0]

    overview = (await client.get(f"/api/students/{student_id}/overview")).json()["data"]
    assert overview["attendance"]["percentage"] == 100

    courses = (await client.get(f"/api/students/{student_id}/attendance/courses")).json()["data"]["courses"]
    assert [c["name"] for c in courses] == ["Algebra", "Physics"]

    months = (await client.get(f"/api/students/{student_id}/attendance/monthly")).json()["data"]["months"]
    assert months == [{"month": "Mar", "year": 2024, "present": 1, "absent": 0}]

    gpa = (await client.get(f"/api/students/{student_id}/marks/gpa")).json()["data"]
    assert gpa["gpa"] == 4.0

    course_marks = (await client.get(f"/api/students/{student_id}/marks/courses")).json()["data"]["courses"]
    assert course_marks[0]["assessments"][0]["weightage"] == 25
    assert course_marks[0]["grade"] == "O"

    progress = (await client.get(f"/api/students/{student_id}/marks/progress")).json()["data"]["progress"]
    assert progress == [{"examType": "Midterm-1", "average": 92}]

    comparison = (await client.get(f"/api/students/{student_id}/comparison")).json()["data"]["comparison"]
    assert (comparison[0]["yourScore"], comparison[0]["sectionAverage"]) == (92, 42)

    on_day = await client.get(f"/api/students/{student_id}/attendance/date/2024-03-05")
    assert on_day.json()["data"]["attendance"] == [
        {"date": "2024-03-05", "status": "Present", "courseId": campus["algebra_id"], "course": "Algebra"}
    ]
    no_record = await client.get(f"/api/students/{student_id}/attendance/date/2024-03-06")
    assert no_record.status_code == 404

    missing = await client.get("/api/students/65f000000000000000000000/overview")
    assert missing.status_code == 404
