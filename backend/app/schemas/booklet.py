from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List

from app.modules.booklet.assembler import KNOWN_SECTIONS


class GenerateBookletRequest(BaseModel):
    graduation_id: str = Field(..., alias="graduationId", min_length=1)
    custom_cover_url: Optional[str] = Field(default=None, alias="customCoverUrl")
    page_order: Optional[List[str]] = Field(default=None, alias="pageOrder")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("page_order")
    @classmethod
    def check_sections(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        unknown = [s for s in v if s not in KNOWN_SECTIONS]
        if unknown:
            raise ValueError(f"Unknown page order sections: {', '.join(unknown)}")
        if len(set(v)) != len(v):
            raise ValueError("Page order sections must not repeat")
        return v


class GenerateBookletResponse(BaseModel):
    success: bool = True
    bookletUrl: str
    pageCount: int
    studentCount: int
    totalStudents: int
    processedStudents: int
    skippedStudents: List[str]
    sizeMB: str
    message: str


class DownloadResponse(BaseModel):
    success: bool = True
    downloadUrl: str
    filename: str
    schoolName: Optional[str] = None
    graduationYear: Optional[str] = None

    @field_validator("graduationYear", mode="before")
    @classmethod
    def year_as_text(cls, v):
        return None if v is None else str(v)
