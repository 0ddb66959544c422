from pydantic import BaseModel, Field
from typing import List, Optional


class InviteEditorRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class EditorInfo(BaseModel):
    uid: str
    email: Optional[str] = None
    isCreator: bool = False
    error: bool = False


class EditorListResponse(BaseModel):
    success: bool = True
    editors: List[EditorInfo]
