"""
Pending-deletion log for assets.

Records in ``assetsPendingDeletion`` decouple "stop referencing this asset"
from "delete it from the object store". ``sweep_pending_deletions`` does the
actual deletion out of band (Celery beat).
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from app.core.config import settings
from app.core.logging_config import logger
from app.services.asset_store import AssetStore
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore

PENDING_DELETION_COLLECTION = "assetsPendingDeletion"

STATUS_PENDING = "pending"
STATUS_DELETED = "deleted"
STATUS_FAILED = "failed"


class AssetCleanup:
    def __init__(self, store: DocumentStore, assets: AssetStore):
        self.store = store
        self.assets = assets

    async def mark_for_deletion(
        self,
        urls: Union[None, str, Iterable[Optional[str]]],
        context: str = "unknown",
    ) -> List[str]:
        """
        Append a pending record per URL. URLs the asset store did not issue
        are skipped. Failures to write a record are logged, never raised.

        Returns:
            ids of the records written
        """
        if not urls:
            return []
        url_list = [urls] if isinstance(urls, str) else list(urls)

        record_ids = []
        for url in url_list:
            if not url:
                continue
            key = self.assets.key_from_url(url)
            if not key:
                logger.warning(f"[AssetCleanup] Could not extract key from URL: {url}")
                continue
            try:
                record_id = await self.store.add(PENDING_DELETION_COLLECTION, {
                    "url": url,
                    "key": key,
                    "context": context,
                    "markedAt": SERVER_TIMESTAMP,
                    "status": STATUS_PENDING,
                })
                record_ids.append(record_id)
                logger.info(f"[AssetCleanup] Marked for deletion: {key} ({context})")
            except Exception as e:
                logger.error(f"[AssetCleanup] Error marking asset {key}: {e}")
        return record_ids

    async def replace_asset(self, old_url: Optional[str], new_url: Optional[str], context: str = "unknown") -> List[str]:
        if not old_url or old_url == new_url:
            return []
        return await self.mark_for_deletion(old_url, context)

    async def replace_asset_array(
        self,
        old_urls: Optional[List[str]],
        new_urls: Optional[List[str]],
        context: str = "unknown",
    ) -> List[str]:
        """Mark only the URLs that disappeared from the array"""
        if not old_urls or not isinstance(old_urls, list):
            return []
        keep = set(new_urls or [])
        orphaned = [url for url in old_urls if url and url not in keep]
        if not orphaned:
            return []
        return await self.mark_for_deletion(orphaned, context)

    async def sweep_pending_deletions(self, limit: Optional[int] = None) -> Dict[str, Any]:
        """Delete pending assets from the object store and record the outcome"""
        limit = limit or settings.ASSET_SWEEP_BATCH_SIZE
        pending = await self.store.list(
            PENDING_DELETION_COLLECTION,
            where=[("status", "==", STATUS_PENDING)],
            order_by="markedAt",
            limit=limit,
        )

        summary = {"checked": len(pending), "deleted": 0, "failed": 0}
        for record in pending:
            key = record.get("key")
            try:
                await self.assets.delete(key)
                await self.store.update(record.path, {
                    "status": STATUS_DELETED,
                    "deletedAt": SERVER_TIMESTAMP,
                })
                summary["deleted"] += 1
            except Exception as e:
                logger.warning(f"[AssetCleanup] Failed to delete {key}: {e}")
                await self.store.update(record.path, {
                    "status": STATUS_FAILED,
                    "error": str(e),
                })
                summary["failed"] += 1

        logger.info(
            f"[AssetCleanup] Sweep complete: {summary['deleted']} deleted, {summary['failed']} failed",
            extra=summary,
        )
        return summary
