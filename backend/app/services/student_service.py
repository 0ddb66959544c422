"""
Privileged student and site-password operations.

Password hashing only ever happens here, server side.
"""

from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging_config import logger
from app.core.security import generate_link_id, get_password_hash, strip_html, verify_password
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore
from app.services.graduation_repository import GraduationRepository, graduation_path
from app.services.student_repository import StudentRepository

ACCESS_TYPES = ("public", "password", "link")
_NAME_PUNCTUATION = set(" -'.")


def sanitize_student_name(name: Any) -> str:
    """Strip tags and whitespace; letters, spaces, hyphens, apostrophes and periods only"""
    if not isinstance(name, str):
        raise ValidationError("Student name is required", field="studentName")
    cleaned = strip_html(name).strip()
    if not 1 <= len(cleaned) <= 100:
        raise ValidationError("Student name must be between 1 and 100 characters", field="studentName")
    if not all(ch.isalpha() or ch.isspace() or ch in _NAME_PUNCTUATION for ch in cleaned):
        raise ValidationError("Student name contains invalid characters", field="studentName")
    return cleaned


class StudentService:
    def __init__(self, store: DocumentStore, students: Optional[StudentRepository] = None):
        self.store = store
        self.graduations = GraduationRepository(store)
        self.students = students or StudentRepository(store)

    async def create_student(
        self,
        graduation_id: str,
        name: str,
        access_type: str,
        password: Optional[str] = None,
    ) -> Dict[str, Any]:
        clean_name = sanitize_student_name(name)
        if access_type not in ACCESS_TYPES:
            raise ValidationError("Invalid access type", field="accessType")
        await self.graduations.require(graduation_id)

        data: Dict[str, Any] = {
            "name": clean_name,
            "accessType": access_type,
            "profilePdfUrl": None,
        }
        if access_type == "link":
            data["uniqueLinkId"] = generate_link_id()
        elif access_type == "password":
            if not password or len(password) < settings.STUDENT_PASSWORD_MIN_LENGTH:
                raise ValidationError(
                    f"Password must be at least {settings.STUDENT_PASSWORD_MIN_LENGTH} characters",
                    field="password",
                )
            data["passwordHash"] = get_password_hash(password)
            # Kept so the teacher can hand the password to the student
            data["passwordPlain"] = password

        student_id = await self.students.create(graduation_id, data)
        logger.info(f"[Students] Created {access_type} student {student_id} in {graduation_id}")
        return {
            "studentId": student_id,
            "uniqueLinkId": data.get("uniqueLinkId"),
            "generatedPassword": password if access_type == "password" else None,
        }

    async def verify_student_password(self, graduation_id: str, student_id: str, password: str) -> bool:
        if not password:
            raise ValidationError("Missing student ID or password", field="password")
        await self.graduations.require(graduation_id)
        student = await self.students.require(graduation_id, student_id)
        if student.get("accessType") != "password":
            raise ValidationError("Student does not use password access", field="accessType")
        return verify_password(password, student.get("passwordHash") or "")

    async def delete_student(self, graduation_id: str, student_id: str) -> None:
        await self.students.require(graduation_id, student_id)
        await self.students.delete(graduation_id, student_id)

    async def set_site_password(self, graduation_id: str, password: str) -> None:
        if not password:
            raise ValidationError("Missing password", field="password")
        if len(password) < settings.SITE_PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {settings.SITE_PASSWORD_MIN_LENGTH} characters",
                field="password",
            )
        await self.graduations.require(graduation_id)
        await self.store.update(graduation_path(graduation_id), {
            "config.sitePasswordHash": get_password_hash(password),
            "config.updatedAt": SERVER_TIMESTAMP,
        })
        logger.info(f"[Students] Site password set for {graduation_id}")

    async def verify_site_password(self, graduation_id: str, password: str) -> bool:
        if not password:
            raise ValidationError("Missing password", field="password")
        graduation = await self.graduations.require(graduation_id)
        stored_hash = (graduation.get("config") or {}).get("sitePasswordHash")
        if not stored_hash:
            raise ValidationError("No site password is set", field="password")
        is_valid = verify_password(password, stored_hash)
        logger.info(f"[Students] Site password verification for {graduation_id}: {'success' if is_valid else 'failed'}")
        return is_valid
