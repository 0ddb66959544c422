"""Graduation records: the root aggregate owning students and content pages."""

from typing import Any, Dict, List, Optional

from app.core.exceptions import (
    DocumentNotFoundError,
    GraduationNotFoundError,
    LastEditorError,
    ValidationError,
)
from app.core.logging_config import logger
from app.services.document_store import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
)

GRADUATIONS = "graduations"


def graduation_path(graduation_id: str) -> str:
    return f"{GRADUATIONS}/{graduation_id}"


def students_collection(graduation_id: str) -> str:
    return f"{GRADUATIONS}/{graduation_id}/students"


def content_collection(graduation_id: str) -> str:
    return f"{GRADUATIONS}/{graduation_id}/contentPages"


def to_record(snapshot: DocumentSnapshot) -> Dict[str, Any]:
    return {"id": snapshot.id, **snapshot.to_dict()}


def editors_of(graduation: Dict[str, Any]) -> List[str]:
    """Editors list, falling back to the legacy single owner"""
    editors = graduation.get("editors")
    if editors:
        return list(editors)
    owner = graduation.get("ownerUid")
    return [owner] if owner else []


class GraduationRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, data: Dict[str, Any], created_by: str) -> str:
        if not created_by:
            raise ValidationError("Creator is required", field="createdBy")
        body = {k: v for k, v in data.items() if k not in ("id", "editors", "createdBy")}
        body.update({
            "editors": [created_by],
            "createdBy": created_by,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        })
        graduation_id = await self.store.add(GRADUATIONS, body)
        logger.info(f"[GraduationRepo] Created graduation {graduation_id} for {created_by}")
        return graduation_id

    async def get(self, graduation_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.store.get(graduation_path(graduation_id))
        return to_record(snapshot) if snapshot.exists else None

    async def require(self, graduation_id: str) -> Dict[str, Any]:
        graduation = await self.get(graduation_id)
        if graduation is None:
            raise GraduationNotFoundError(graduation_id)
        return graduation

    async def update(self, graduation_id: str, updates: Dict[str, Any]) -> None:
        """Update fields and stamp updatedAt"""
        if "createdBy" in updates:
            raise ValidationError("createdBy cannot be changed", field="createdBy")
        if "editors" in updates and isinstance(updates["editors"], list) and not updates["editors"]:
            raise LastEditorError()
        try:
            await self.store.update(graduation_path(graduation_id), {
                **updates,
                "updatedAt": SERVER_TIMESTAMP,
            })
        except DocumentNotFoundError:
            raise GraduationNotFoundError(graduation_id)

    async def get_config(self, graduation_id: str) -> Dict[str, Any]:
        graduation = await self.require(graduation_id)
        return graduation.get("config") or {}

    async def update_config(self, graduation_id: str, config: Dict[str, Any]) -> None:
        await self.update(graduation_id, {"config": config})

    async def list_for_editor(self, uid: str) -> List[Dict[str, Any]]:
        """Graduations the user can edit, including legacy ownerUid records"""
        by_editors = await self.store.list(GRADUATIONS, where=[("editors", "array-contains", uid)])
        by_owner = await self.store.list(GRADUATIONS, where=[("ownerUid", "==", uid)])

        results = [to_record(s) for s in by_editors]
        seen = {r["id"] for r in results}
        for snapshot in by_owner:
            if snapshot.id not in seen:
                results.append(to_record(snapshot))
        return results

    async def get_editors(self, graduation_id: str) -> List[str]:
        return editors_of(await self.require(graduation_id))

    async def add_editor(self, graduation_id: str, editor_uid: str) -> None:
        graduation = await self.require(graduation_id)
        if graduation.get("editors"):
            await self.update(graduation_id, {"editors": ArrayUnion(editor_uid)})
            return
        # Legacy single-owner record: the owner stays an editor
        editors = editors_of(graduation)
        if editor_uid not in editors:
            editors.append(editor_uid)
        await self.update(graduation_id, {"editors": editors})

    async def remove_editor(self, graduation_id: str, editor_uid: str) -> None:
        editors = await self.get_editors(graduation_id)
        if editor_uid in editors and len(editors) <= 1:
            raise LastEditorError()
        await self.update(graduation_id, {"editors": ArrayRemove(editor_uid)})

    async def record_booklet(self, graduation_id: str, booklet_url: str, stats: Dict[str, Any]) -> None:
        """
        Persist the generated booklet URL and stats.

        Does not touch updatedAt so open editors don't see a conflict.
        """
        await self.store.update(graduation_path(graduation_id), {
            "generatedBookletUrl": booklet_url,
            "bookletGeneratedAt": SERVER_TIMESTAMP,
            "bookletStats": stats,
        })
