"""Content pages (messages, speeches) of a graduation."""

from typing import Any, Dict, List, Optional

from app.core.exceptions import DocumentNotFoundError, ResourceNotFoundError, ErrorCode
from app.core.logging_config import logger
from app.services.asset_cleanup import AssetCleanup
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore
from app.services.graduation_repository import content_collection, to_record


class ContentRepository:
    def __init__(self, store: DocumentStore, cleanup: Optional[AssetCleanup] = None):
        self.store = store
        self.cleanup = cleanup

    def _path(self, graduation_id: str, content_id: str) -> str:
        return f"{content_collection(graduation_id)}/{content_id}"

    async def create(self, graduation_id: str, data: Dict[str, Any]) -> str:
        body = {k: v for k, v in data.items() if k != "id"}
        body.setdefault("createdAt", SERVER_TIMESTAMP)
        body["updatedAt"] = SERVER_TIMESTAMP
        return await self.store.add(content_collection(graduation_id), body)

    async def get(self, graduation_id: str, content_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.store.get(self._path(graduation_id, content_id))
        return to_record(snapshot) if snapshot.exists else None

    async def list(self, graduation_id: str) -> List[Dict[str, Any]]:
        """Content pages sorted by creation time"""
        snapshots = await self.store.list(content_collection(graduation_id), order_by="createdAt")
        return [to_record(s) for s in snapshots]

    async def update(self, graduation_id: str, content_id: str, updates: Dict[str, Any]) -> None:
        if self.cleanup is not None and ("authorPhotoUrl" in updates or "bodyImageUrls" in updates):
            try:
                current = await self.get(graduation_id, content_id) or {}
                if "authorPhotoUrl" in updates:
                    await self.cleanup.replace_asset(
                        current.get("authorPhotoUrl"), updates["authorPhotoUrl"], "content-author-photo"
                    )
                if "bodyImageUrls" in updates:
                    await self.cleanup.replace_asset_array(
                        current.get("bodyImageUrls"), updates["bodyImageUrls"], "content-body-image"
                    )
            except Exception as e:
                logger.warning(f"[ContentRepo] Error tracking old content assets: {e}")

        try:
            await self.store.update(self._path(graduation_id, content_id), {
                **updates,
                "updatedAt": SERVER_TIMESTAMP,
            })
        except DocumentNotFoundError:
            raise ResourceNotFoundError("ContentPage", content_id, ErrorCode.DOCUMENT_NOT_FOUND)

    async def delete(self, graduation_id: str, content_id: str) -> None:
        if self.cleanup is not None:
            try:
                content = await self.get(graduation_id, content_id) or {}
                urls = [content.get("authorPhotoUrl"), *(content.get("bodyImageUrls") or [])]
                urls = [u for u in urls if u]
                if urls:
                    await self.cleanup.mark_for_deletion(urls, "content-deleted")
            except Exception as e:
                logger.warning(f"[ContentRepo] Error marking content assets: {e}")

        await self.store.delete(self._path(graduation_id, content_id))
