from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class CreateStudentRequest(BaseModel):
    student_name: str = Field(..., alias="studentName")
    access_type: str = Field(default="public", alias="accessType")
    password: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CreateStudentResponse(BaseModel):
    success: bool = True
    studentId: str
    uniqueLinkId: Optional[str] = None
    generatedPassword: Optional[str] = None


class PasswordRequest(BaseModel):
    password: str = ""


class VerifyPasswordResponse(BaseModel):
    success: bool = True
    valid: bool
