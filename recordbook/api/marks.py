from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from recordbook.api.deps import CurrentTenant
from recordbook.api.responses import envelope
from recordbook.models.marks import MarksEntry
from recordbook.services import marks as recorder

router = APIRouter()


class MarksBulkRequest(BaseModel):
    section_id: Optional[str] = None
    course_id: Optional[str] = None
    faculty_id: Optional[str] = None
    exam_type: Optional[str] = None
    total_marks: Optional[float] = None
    passing_marks: Optional[float] = None
    remarks: Optional[str] = None
    marks: List[MarksEntry] = Field(default_factory=list)


@router.post("/bulk-add")
async def bulk_add_marks(data: MarksBulkRequest, tenant: CurrentTenant):
    inserted = await recorder.add_batch(
        tenant.institution_domain,
        data.section_id,
        data.course_id,
        data.faculty_id,
        data.exam_type,
        data.total_marks,
        data.passing_marks,
        data.marks,
        remarks=data.remarks,
    )
    return envelope("Bulk marks added successfully", {"insertedCount": inserted})


@router.put("/bulk-update")
async def bulk_update_marks(data: MarksBulkRequest, tenant: CurrentTenant):
    counts = await recorder.update_batch(
        tenant.institution_domain,
        data.section_id,
        data.course_id,
        data.faculty_id,
        data.exam_type,
        data.total_marks,
        data.passing_marks,
        data.marks,
        remarks=data.remarks,
    )
    return envelope("Bulk marks updated successfully", counts.model_dump())


@router.get("/section/{section_id}/course/{course_id}/faculty/{faculty_id}/exam-type/{exam_type}")
async def get_marks_by_exam_type(
    section_id: str, course_id: str, faculty_id: str, exam_type: str, tenant: CurrentTenant
):
    rows = await recorder.get_by_exam_type(tenant.institution_domain, section_id, course_id, faculty_id, exam_type)
    return envelope("Marks records retrieved successfully", {"marks": [r.model_dump() for r in rows]})


@router.get("/exam-types/{section_id}/course/{course_id}/faculty/{faculty_id}")
async def get_exam_types(section_id: str, course_id: str, faculty_id: str, tenant: CurrentTenant):
    exam_types = await recorder.list_exam_types(tenant.institution_domain, section_id, course_id, faculty_id)
    return envelope("Exam types retrieved successfully", {"examTypes": exam_types})


@router.delete("/section/{section_id}/course/{course_id}/faculty/{faculty_id}/exam-type/{exam_type}")
async def delete_marks_by_exam_type(
    section_id: str, course_id: str, faculty_id: str, exam_type: str, tenant: CurrentTenant
):
    deleted = await recorder.delete_by_exam_type(
        tenant.institution_domain, section_id, course_id, faculty_id, exam_type
    )
    return envelope("Marks deleted successfully", {"deletedCount": deleted})
