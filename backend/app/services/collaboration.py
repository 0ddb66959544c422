"""
Collaborative editing: presence and optimistic conflict detection.

Each editing client constructs its own ``CollaborationCoordinator`` around a
document store. Presence is a heartbeat under ``activeEditors.<uid>`` on the
graduation document; conflicts are detected by comparing the graduation's
``updatedAt`` with the time of this client's own last save. Nothing here is
transactional: a save can still race another editor between the check and
the write.
"""

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from app.core.config import settings
from app.core.logging_config import logger
from app.services.document_store import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Unsubscribe,
)
from app.services.graduation_repository import editors_of, graduation_path
from app.utils.timestamps import to_datetime

EditorsCallback = Callable[[List[str]], Union[None, Awaitable[None]]]
ConflictCallback = Callable[[], Awaitable[bool]]
WriteFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]


@dataclass
class SaveResult:
    success: bool
    conflict: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "conflict": self.conflict}
        if self.error is not None:
            result["error"] = self.error
        return result


def active_editor_ids(
    active_editors: Optional[Dict[str, Any]],
    now: datetime,
    stale_after: timedelta,
) -> List[str]:
    """Editor ids whose heartbeat is younger than ``stale_after``"""
    active = []
    for uid, seen in (active_editors or {}).items():
        last_seen = to_datetime(seen)
        if last_seen is not None and now - last_seen < stale_after:
            active.append(uid)
    return active


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class CollaborationCoordinator:
    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
        heartbeat_seconds: float = settings.PRESENCE_HEARTBEAT_SECONDS,
        stale_seconds: float = settings.PRESENCE_STALE_SECONDS,
    ):
        self.store = store
        self.clock = clock or store.clock
        self.heartbeat_seconds = heartbeat_seconds
        self.stale_after = timedelta(seconds=stale_seconds)

        self._active_editors: Dict[str, Set[str]] = {}
        self._unsubscribers: Dict[str, Unsubscribe] = {}
        self._heartbeats: Dict[str, asyncio.Task] = {}
        self._last_save: Dict[str, datetime] = {}
        self._pending_changes: Dict[str, bool] = {}
        self._conflict_callbacks: Dict[str, ConflictCallback] = {}

    # ==========================================
    # Presence
    # ==========================================

    async def start_tracking(
        self,
        graduation_id: str,
        editor_id: str,
        on_editors_change: Optional[EditorsCallback] = None,
    ) -> None:
        """Write a heartbeat now and every heartbeat interval; report other live editors"""
        await self.stop_listening(graduation_id)
        await self.update_presence(graduation_id, editor_id, True)

        async def on_snapshot(snapshot: DocumentSnapshot) -> None:
            if not snapshot.exists:
                return
            active = active_editor_ids(snapshot.get("activeEditors"), self.clock(), self.stale_after)
            self._active_editors[graduation_id] = set(active)
            if on_editors_change is not None:
                await _maybe_await(on_editors_change([uid for uid in active if uid != editor_id]))

        self._unsubscribers[graduation_id] = await self.store.listen(
            graduation_path(graduation_id), on_snapshot
        )
        self._heartbeats[graduation_id] = asyncio.create_task(
            self._heartbeat_loop(graduation_id, editor_id)
        )
        logger.info(f"[Presence] Tracking {editor_id} on {graduation_id}")

    async def _heartbeat_loop(self, graduation_id: str, editor_id: str) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            await self.update_presence(graduation_id, editor_id, True)

    async def stop_listening(self, graduation_id: str) -> None:
        unsubscribe = self._unsubscribers.pop(graduation_id, None)
        if unsubscribe is not None:
            unsubscribe()
        task = self._heartbeats.pop(graduation_id, None)
        if task is not None:
            task.cancel()

    async def stop_tracking(self, graduation_id: str, editor_id: str) -> None:
        """Remove own heartbeat and drop all local state for the graduation"""
        if not graduation_id:
            return
        await self.stop_listening(graduation_id)
        # Presence is non-critical; update_presence already logs failures
        await self.update_presence(graduation_id, editor_id, False)

        self._active_editors.pop(graduation_id, None)
        self._last_save.pop(graduation_id, None)
        self._pending_changes.pop(graduation_id, None)
        self._conflict_callbacks.pop(graduation_id, None)

    async def update_presence(self, graduation_id: str, editor_id: str, is_active: bool) -> bool:
        """
        Set or clear ``activeEditors.<editor_id>``. Only editors may write
        presence. Never raises; returns whether a write happened.
        """
        try:
            snapshot = await self.store.get(graduation_path(graduation_id))
            if not snapshot.exists:
                logger.warning(f"[Presence] Graduation {graduation_id} does not exist")
                return False
            if editor_id not in editors_of(snapshot.to_dict()):
                logger.warning(f"[Presence] {editor_id} is not an editor of {graduation_id}, skipping")
                return False

            # Presence deliberately leaves updatedAt alone
            value = SERVER_TIMESTAMP if is_active else DELETE_FIELD
            await self.store.update(graduation_path(graduation_id), {f"activeEditors.{editor_id}": value})
            return True
        except Exception as e:
            logger.warning(f"[Presence] Error updating presence for {editor_id} on {graduation_id}: {e}")
            return False

    def get_other_active_editors(self, graduation_id: str, editor_id: str) -> List[str]:
        return sorted(uid for uid in self._active_editors.get(graduation_id, set()) if uid != editor_id)

    # ==========================================
    # Conflict detection
    # ==========================================

    async def check_for_conflicts(self, graduation_id: str) -> bool:
        """True when the graduation was written after this client's last save"""
        last_save = self._last_save.get(graduation_id)
        if last_save is None:
            return False

        try:
            snapshot = await self.store.get(graduation_path(graduation_id))
        except Exception as e:
            logger.error(f"[Conflict] Error checking conflicts on {graduation_id}: {e}")
            return False
        if not snapshot.exists:
            return False

        updated_at = to_datetime(snapshot.get("updatedAt"))
        return updated_at is not None and updated_at > last_save

    def record_save(self, graduation_id: str, at: Optional[datetime] = None) -> None:
        self._last_save[graduation_id] = at or self.clock()
        self._pending_changes[graduation_id] = False

    def last_save(self, graduation_id: str) -> Optional[datetime]:
        return self._last_save.get(graduation_id)

    def set_pending_changes(self, graduation_id: str, has_pending_changes: bool) -> None:
        self._pending_changes[graduation_id] = has_pending_changes

    def has_pending_changes(self, graduation_id: str) -> bool:
        return self._pending_changes.get(graduation_id, False)

    def on_conflict_detected(self, graduation_id: str, callback: ConflictCallback) -> None:
        """Register the default "proceed anyway?" callback for a graduation"""
        self._conflict_callbacks[graduation_id] = callback

    async def safe_update(
        self,
        graduation_id: str,
        updates: Dict[str, Any],
        write_fn: WriteFn,
        on_conflict: Optional[ConflictCallback] = None,
    ) -> SaveResult:
        """
        Check for conflicts, ask the callback whether to proceed, then write.

        Write errors are reported in the result rather than raised. With no
        callback registered a conflict does not block the write.
        """
        if await self.check_for_conflicts(graduation_id):
            callback = on_conflict or self._conflict_callbacks.get(graduation_id)
            if callback is not None:
                should_continue = await _maybe_await(callback())
                if not should_continue:
                    logger.info(f"[Conflict] Save to {graduation_id} aborted after conflict")
                    return SaveResult(success=False, conflict=True)
            logger.info(f"[Conflict] Overriding newer write on {graduation_id}")

        try:
            await write_fn(graduation_id, updates)
        except Exception as e:
            logger.error(f"[Conflict] Update of {graduation_id} failed: {e}")
            return SaveResult(success=False, conflict=False, error=str(e))

        self.record_save(graduation_id, await self._saved_at(graduation_id))
        return SaveResult(success=True, conflict=False)

    async def _saved_at(self, graduation_id: str) -> datetime:
        """Our save time: never earlier than the updatedAt our own write produced"""
        now = self.clock()
        try:
            snapshot = await self.store.get(graduation_path(graduation_id))
        except Exception:
            return now
        updated_at = to_datetime(snapshot.get("updatedAt")) if snapshot.exists else None
        return max(now, updated_at) if updated_at else now

    async def close(self) -> None:
        for graduation_id in list(self._unsubscribers) + list(self._heartbeats):
            await self.stop_listening(graduation_id)
