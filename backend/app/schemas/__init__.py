# Pydantic schemas
from app.schemas.booklet import GenerateBookletRequest, GenerateBookletResponse, DownloadResponse
from app.schemas.student import CreateStudentRequest, CreateStudentResponse, PasswordRequest, VerifyPasswordResponse
from app.schemas.editor import InviteEditorRequest, EditorInfo, EditorListResponse
