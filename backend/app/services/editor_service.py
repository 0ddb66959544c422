"""Invite, remove and list the editors of a graduation."""

from typing import Any, Dict, List, Optional

from app.core.exceptions import (
    AlreadyEditorError,
    LastEditorError,
    NotAnEditorError,
    UserNotFoundError,
    ValidationError,
)
from app.core.logging_config import logger
from app.services.document_store import DocumentStore
from app.services.graduation_repository import GraduationRepository, editors_of

USERS = "users"


class EditorService:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.graduations = GraduationRepository(store)

    async def _require_editor(self, graduation_id: str, requester_uid: str) -> Dict[str, Any]:
        graduation = await self.graduations.require(graduation_id)
        if requester_uid not in editors_of(graduation):
            raise NotAnEditorError(graduation_id, requester_uid)
        return graduation

    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        matches = await self.store.list(USERS, where=[("email", "==", email.strip().lower())])
        if not matches:
            return None
        return {"uid": matches[0].id, **matches[0].to_dict()}

    async def invite_editor(self, graduation_id: str, requester_uid: str, email: str) -> Dict[str, Any]:
        if not email:
            raise ValidationError("Invitee email is required", field="email")
        graduation = await self._require_editor(graduation_id, requester_uid)

        user = await self.find_user_by_email(email)
        if user is None:
            raise UserNotFoundError(email)
        if user["uid"] in editors_of(graduation):
            raise AlreadyEditorError(email)

        await self.graduations.add_editor(graduation_id, user["uid"])
        logger.info(f"[Editors] Invited {email} ({user['uid']}) to {graduation_id}")
        return {
            "message": f"{email} has been added as an editor",
            "inviteeUid": user["uid"],
            "inviteeEmail": email,
        }

    async def remove_editor(self, graduation_id: str, requester_uid: str, editor_uid: str) -> None:
        if not editor_uid:
            raise ValidationError("Editor UID to remove is required", field="editorUid")
        graduation = await self._require_editor(graduation_id, requester_uid)
        editors = editors_of(graduation)
        if len(editors) <= 1:
            raise LastEditorError()
        if editor_uid not in editors:
            raise ValidationError("User is not an editor of this project", field="editorUid")

        await self.graduations.remove_editor(graduation_id, editor_uid)
        logger.info(f"[Editors] Removed {editor_uid} from {graduation_id}")

    async def list_editors(self, graduation_id: str, requester_uid: str) -> List[Dict[str, Any]]:
        graduation = await self._require_editor(graduation_id, requester_uid)
        created_by = graduation.get("createdBy")

        editors = []
        for uid in editors_of(graduation):
            user = await self.store.get(f"{USERS}/{uid}")
            if user.exists:
                editors.append({"uid": uid, "email": user.get("email"), "isCreator": uid == created_by})
            else:
                logger.warning(f"[Editors] Could not find user {uid}")
                editors.append({"uid": uid, "email": "Unknown User", "isCreator": uid == created_by, "error": True})
        return editors
