"""
Automatic deletion of old graduations.

Graduations whose ``config.autoDeleteEnabled`` is true and which were created
more than ``AUTO_DELETE_AFTER_DAYS`` ago are removed together with their
students, content pages and stored assets. Asset deletion is best effort; the
documents are deleted even when an asset cannot be.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.logging_config import graduation_log_context, logger
from app.services.asset_store import AssetStore
from app.services.document_store import DocumentStore
from app.services.graduation_repository import (
    GRADUATIONS,
    content_collection,
    graduation_path,
    students_collection,
    to_record,
)
from app.utils.timestamps import to_datetime, utc_now


class GraduationCleanupService:
    def __init__(
        self,
        store: DocumentStore,
        assets: AssetStore,
        retention_days: int = settings.AUTO_DELETE_AFTER_DAYS,
    ):
        self.store = store
        self.assets = assets
        self.retention = timedelta(days=retention_days)

    async def _delete_asset(self, url: Optional[str], label: str) -> bool:
        if not url:
            return False
        key = self.assets.key_from_url(url)
        if not key:
            logger.warning(f"[Cleanup] Skipping {label}: not a stored asset ({url})")
            return False
        try:
            return await self.assets.delete(key)
        except Exception as e:
            logger.warning(f"[Cleanup] Failed to delete {label} ({key}): {e}")
            return False

    async def delete_graduation(self, graduation_id: str, graduation: Dict[str, Any]) -> Dict[str, Any]:
        """Remove one graduation and everything stored under it"""
        school = graduation.get("schoolName") or "Unknown"
        logger.info(f"[Cleanup] Deleting graduation {school} ({graduation_id})")

        deleted_files = 0
        students = await self.store.list(students_collection(graduation_id))
        for student in students:
            if await self._delete_asset(student.get("profilePdfUrl"), f"PDF of {student.get('name')}"):
                deleted_files += 1
        deleted_students = await self.store.delete_collection(students_collection(graduation_id))
        deleted_pages = await self.store.delete_collection(content_collection(graduation_id))

        config = graduation.get("config") or {}
        project_assets = [
            ("school logo", config.get("schoolLogoUrl")),
            ("custom cover", config.get("customCoverUrl")),
            ("generated booklet", graduation.get("generatedBookletUrl")),
        ]
        for label, url in project_assets:
            if await self._delete_asset(url, label):
                deleted_files += 1

        await self.store.delete(graduation_path(graduation_id))
        logger.info(
            f"[Cleanup] Deleted {school}: {deleted_students} students, "
            f"{deleted_pages} pages, {deleted_files} files"
        )
        return {
            "success": True,
            "graduationId": graduation_id,
            "schoolName": school,
            "deletedStudents": deleted_students,
            "deletedPages": deleted_pages,
            "deletedFiles": deleted_files,
        }

    async def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utc_now()
        cutoff = now - self.retention
        candidates = await self.store.list(GRADUATIONS, where=[("config.autoDeleteEnabled", "==", True)])

        summary: Dict[str, Any] = {"checked": len(candidates), "deleted": 0, "failed": 0, "skipped": 0}
        details: List[Dict[str, Any]] = []
        for snapshot in candidates:
            graduation = to_record(snapshot)
            created_at = to_datetime(graduation.get("createdAt"))
            if created_at is None:
                logger.warning(f"[Cleanup] Skipping {snapshot.id}: no createdAt")
                summary["skipped"] += 1
                continue
            if created_at > cutoff:
                summary["skipped"] += 1
                continue
            with graduation_log_context(snapshot.id):
                try:
                    details.append(await self.delete_graduation(snapshot.id, graduation))
                    summary["deleted"] += 1
                except Exception as e:
                    logger.log_error_with_context(e, context=f"auto-delete graduation {snapshot.id}")
                    details.append({"success": False, "graduationId": snapshot.id, "error": str(e)})
                    summary["failed"] += 1

        summary["details"] = details
        logger.info(
            f"[Cleanup] Checked {summary['checked']}, deleted {summary['deleted']}, "
            f"failed {summary['failed']}, skipped {summary['skipped']}"
        )
        return summary
