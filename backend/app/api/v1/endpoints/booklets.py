"""
Booklet generation and download endpoints.
"""

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_assembler, get_store
from app.core.logging_config import logger, set_graduation_id
from app.core.rate_limiter import download_rate_limit, generate_rate_limit
from app.modules.booklet import BookletAssembler
from app.modules.booklet.assembler import validate_graduation_id
from app.schemas.booklet import DownloadResponse, GenerateBookletRequest, GenerateBookletResponse
from app.services.document_store import DocumentStore
from app.services.download_gate import check_download
from app.services.graduation_repository import GraduationRepository

router = APIRouter(prefix="/booklets", tags=["Booklets"])


@router.post("/generate", response_model=GenerateBookletResponse)
@generate_rate_limit()
async def generate_booklet(
    request: Request,
    payload: GenerateBookletRequest,
    assembler: BookletAssembler = Depends(get_assembler),
):
    """
    Merge cover, content sections and student PDFs into one booklet.

    Errors: 400 validation / no PDFs, 404 unknown graduation,
    413 booklet too large, 500 anything else.
    """
    set_graduation_id(payload.graduation_id)
    logger.info(f"[Booklet] Generation requested for {payload.graduation_id}")
    result = await assembler.generate(
        payload.graduation_id,
        custom_cover_url=payload.custom_cover_url,
        page_order=payload.page_order,
    )
    return result.to_response()


@router.get("/{graduation_id}/download", response_model=DownloadResponse)
@download_rate_limit()
async def download_booklet(
    request: Request,
    graduation_id: str,
    store: DocumentStore = Depends(get_store),
):
    """Booklet URL, or 403 with a countdown while the download is scheduled"""
    validate_graduation_id(graduation_id)
    graduation = await GraduationRepository(store).get(graduation_id)
    return check_download(graduation_id, graduation)
