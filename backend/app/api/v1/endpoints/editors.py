"""
Editor management. The caller identifies itself with ``X-Editor-Id`` and
must already be an editor of the graduation.
"""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_editor_service, get_requester_id
from app.schemas.editor import EditorListResponse, InviteEditorRequest
from app.services.editor_service import EditorService

router = APIRouter(prefix="/graduations/{graduation_id}/editors", tags=["Editors"])


@router.get("", response_model=EditorListResponse)
async def list_editors(
    graduation_id: str,
    requester_id: str = Depends(get_requester_id),
    service: EditorService = Depends(get_editor_service),
):
    editors = await service.list_editors(graduation_id, requester_id)
    return {"success": True, "editors": editors}


@router.post("")
async def invite_editor(
    graduation_id: str,
    payload: InviteEditorRequest,
    requester_id: str = Depends(get_requester_id),
    service: EditorService = Depends(get_editor_service),
):
    result = await service.invite_editor(graduation_id, requester_id, payload.email)
    return {"success": True, **result}


@router.delete("/{editor_uid}")
async def remove_editor(
    graduation_id: str,
    editor_uid: str,
    requester_id: str = Depends(get_requester_id),
    service: EditorService = Depends(get_editor_service),
):
    await service.remove_editor(graduation_id, requester_id, editor_uid)
    return {"success": True, "message": "Editor removed successfully"}
