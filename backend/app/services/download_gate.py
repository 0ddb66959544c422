"""
Scheduled download gating for generated booklets.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from app.core.exceptions import BookletNotGeneratedError, DownloadNotAvailableError, GraduationNotFoundError
from app.core.logging_config import logger
from app.utils.timestamps import to_datetime, to_iso, to_millis, utc_now

DEFAULT_DOWNLOAD_MESSAGE = "This booklet is not available for download yet."


def booklet_filename(graduation: Dict[str, Any]) -> str:
    return f"{graduation.get('schoolName')}-{graduation.get('graduationYear')}-Booklet.pdf"


def check_download(
    graduation_id: str,
    graduation: Optional[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Decide whether a graduation's booklet may be downloaded at ``now``.

    Raises:
        GraduationNotFoundError: no such graduation
        BookletNotGeneratedError: nothing generated yet
        DownloadNotAvailableError: scheduling is on and the date is in the future
    """
    if graduation is None:
        raise GraduationNotFoundError(graduation_id)
    booklet_url = graduation.get("generatedBookletUrl")
    if not booklet_url:
        raise BookletNotGeneratedError(graduation_id)

    config = graduation.get("config") or {}
    if config.get("enableDownloadScheduling"):
        available_at = to_datetime(config.get("downloadableAfterDate"))
        now = now or utc_now()
        if available_at is not None and now < available_at:
            logger.info(f"[Download] {graduation_id} scheduled for {to_iso(available_at)}")
            raise DownloadNotAvailableError(
                config.get("downloadMessage") or DEFAULT_DOWNLOAD_MESSAGE,
                available_at=to_iso(available_at),
                remaining_ms=to_millis(available_at) - to_millis(now),
            )

    logger.info(f"[Download] Access granted for {graduation_id}")
    return {
        "success": True,
        "downloadUrl": booklet_url,
        "filename": booklet_filename(graduation),
        "schoolName": graduation.get("schoolName"),
        "graduationYear": graduation.get("graduationYear"),
    }
