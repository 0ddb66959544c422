"""
Student records and site/student password checks.
"""

from fastapi import APIRouter, Depends, Request, status

from app.core.dependencies import get_student_service
from app.core.rate_limiter import password_rate_limit
from app.schemas.student import (
    CreateStudentRequest,
    CreateStudentResponse,
    PasswordRequest,
    VerifyPasswordResponse,
)
from app.services.student_service import StudentService

router = APIRouter(prefix="/graduations/{graduation_id}", tags=["Students"])


@router.post("/students", response_model=CreateStudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    graduation_id: str,
    payload: CreateStudentRequest,
    service: StudentService = Depends(get_student_service),
):
    return await service.create_student(
        graduation_id,
        payload.student_name,
        payload.access_type,
        payload.password,
    )


@router.delete("/students/{student_id}")
async def delete_student(
    graduation_id: str,
    student_id: str,
    service: StudentService = Depends(get_student_service),
):
    await service.delete_student(graduation_id, student_id)
    return {"success": True}


@router.post("/students/{student_id}/verify-password", response_model=VerifyPasswordResponse)
@password_rate_limit()
async def verify_student_password(
    request: Request,
    graduation_id: str,
    student_id: str,
    payload: PasswordRequest,
    service: StudentService = Depends(get_student_service),
):
    valid = await service.verify_student_password(graduation_id, student_id, payload.password)
    return {"success": True, "valid": valid}


@router.put("/site-password")
async def set_site_password(
    graduation_id: str,
    payload: PasswordRequest,
    service: StudentService = Depends(get_student_service),
):
    await service.set_site_password(graduation_id, payload.password)
    return {"success": True, "message": "Password set successfully"}


@router.post("/site-password/verify", response_model=VerifyPasswordResponse)
@password_rate_limit()
async def verify_site_password(
    request: Request,
    graduation_id: str,
    payload: PasswordRequest,
    service: StudentService = Depends(get_student_service),
):
    valid = await service.verify_site_password(graduation_id, payload.password)
    return {"success": True, "valid": valid}
