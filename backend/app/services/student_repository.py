"""Students of a graduation, with asset cleanup on replace and delete."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.exceptions import DocumentNotFoundError, StudentNotFoundError
from app.core.logging_config import logger
from app.services.asset_cleanup import AssetCleanup
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore
from app.services.graduation_repository import students_collection, to_record

# Asset fields and the context tag recorded when the old value is replaced
STUDENT_ASSET_FIELDS = {
    "profilePhotoUrl": "student-profile-photo",
    "coverPhotoBeforeUrl": "student-cover-before",
    "coverPhotoAfterUrl": "student-cover-after",
    "profilePdfUrl": "student-profile-pdf",
}


def order_key(student: Dict[str, Any]) -> Tuple[int, float]:
    order = student.get("order")
    if isinstance(order, (int, float)) and not isinstance(order, bool):
        return (0, order)
    return (1, 0)


class StudentRepository:
    def __init__(self, store: DocumentStore, cleanup: Optional[AssetCleanup] = None):
        self.store = store
        self.cleanup = cleanup

    def _path(self, graduation_id: str, student_id: str) -> str:
        return f"{students_collection(graduation_id)}/{student_id}"

    async def next_order(self, graduation_id: str) -> int:
        orders = [
            s.get("order") for s in await self.list(graduation_id)
            if isinstance(s.get("order"), int) and not isinstance(s.get("order"), bool)
        ]
        return max(orders) + 1 if orders else 0

    async def create(self, graduation_id: str, data: Dict[str, Any]) -> str:
        body = {k: v for k, v in data.items() if k != "id"}
        if "order" not in body:
            body["order"] = await self.next_order(graduation_id)
        body["createdAt"] = SERVER_TIMESTAMP
        body["updatedAt"] = SERVER_TIMESTAMP
        student_id = await self.store.add(students_collection(graduation_id), body)
        logger.info(f"[StudentRepo] Added student {student_id} to {graduation_id}")
        return student_id

    async def get(self, graduation_id: str, student_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.store.get(self._path(graduation_id, student_id))
        return to_record(snapshot) if snapshot.exists else None

    async def require(self, graduation_id: str, student_id: str) -> Dict[str, Any]:
        student = await self.get(graduation_id, student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    async def list(self, graduation_id: str) -> List[Dict[str, Any]]:
        """Students in roster (creation) order"""
        return [to_record(s) for s in await self.store.list(students_collection(graduation_id))]

    async def list_ordered(self, graduation_id: str) -> List[Dict[str, Any]]:
        """Students by manual ``order``; records without one go last"""
        return sorted(await self.list(graduation_id), key=order_key)

    async def update(self, graduation_id: str, student_id: str, updates: Dict[str, Any]) -> None:
        touched = [f for f in STUDENT_ASSET_FIELDS if f in updates]
        if touched and self.cleanup is not None:
            try:
                current = await self.get(graduation_id, student_id) or {}
                for field_name in touched:
                    await self.cleanup.replace_asset(
                        current.get(field_name), updates[field_name], STUDENT_ASSET_FIELDS[field_name]
                    )
            except Exception as e:
                # Continue with update even if cleanup tracking fails
                logger.warning(f"[StudentRepo] Error tracking old assets: {e}")

        try:
            await self.store.update(self._path(graduation_id, student_id), {
                **updates,
                "updatedAt": SERVER_TIMESTAMP,
            })
        except DocumentNotFoundError:
            raise StudentNotFoundError(student_id)

    async def delete(self, graduation_id: str, student_id: str) -> None:
        if self.cleanup is not None:
            try:
                student = await self.get(graduation_id, student_id) or {}
                urls = [student.get(f) for f in STUDENT_ASSET_FIELDS if student.get(f)]
                if urls:
                    await self.cleanup.mark_for_deletion(urls, "student-deleted")
            except Exception as e:
                logger.warning(f"[StudentRepo] Error marking student assets: {e}")

        await self.store.delete(self._path(graduation_id, student_id))
        logger.info(f"[StudentRepo] Deleted student {student_id} from {graduation_id}")

    async def update_order(self, graduation_id: str, orders: Iterable[Tuple[str, int]]) -> None:
        for student_id, order in orders:
            await self.update(graduation_id, student_id, {"order": order})

    async def update_profile_pdf(self, graduation_id: str, student_id: str, pdf_url: Optional[str]) -> None:
        await self.update(graduation_id, student_id, {"profilePdfUrl": pdf_url})
