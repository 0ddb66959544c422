"""
FastAPI dependencies.

The document store, asset store and HTTP client are created once in the
application lifespan and stored on ``app.state``; routes reach them through
these functions so tests can swap them.
"""

from typing import Optional

import httpx
from fastapi import Header, Request

from app.core.exceptions import ValidationError
from app.modules.booklet import BookletAssembler
from app.services.asset_store import AssetStore
from app.services.document_store import DocumentStore
from app.services.editor_service import EditorService
from app.services.student_service import StudentService
from app.services.student_repository import StudentRepository
from app.services.asset_cleanup import AssetCleanup


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_assets(request: Request) -> AssetStore:
    return request.app.state.assets


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_assembler(request: Request) -> BookletAssembler:
    return BookletAssembler(get_store(request), get_assets(request), get_http_client(request))


def get_student_service(request: Request) -> StudentService:
    store = get_store(request)
    cleanup = AssetCleanup(store, get_assets(request))
    return StudentService(store, students=StudentRepository(store, cleanup=cleanup))


def get_editor_service(request: Request) -> EditorService:
    return EditorService(get_store(request))


async def get_requester_id(x_editor_id: Optional[str] = Header(default=None)) -> str:
    """Identity of the calling editor"""
    if not x_editor_id or not x_editor_id.strip():
        raise ValidationError("X-Editor-Id header is required", field="X-Editor-Id")
    return x_editor_id.strip()
