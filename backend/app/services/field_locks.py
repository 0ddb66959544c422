"""
Advisory per-field locks stored under ``lockedFields`` on the graduation.

Acquisition reads the current lock and then writes; two editors racing on
the same field can both succeed. Locks older than the staleness window are
treated as free whoever holds them, and a background task prunes them.
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
from app.services.graduation_repository import graduation_path
from app.utils.timestamps import to_datetime, to_millis


@dataclass
class FieldLock:
    field_path: str
    editor_uid: str
    email: Optional[str]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldPath": self.field_path,
            "editorUid": self.editor_uid,
            "email": self.email,
            "timestamp": to_millis(self.timestamp),
        }


LockCallback = Callable[[bool, Optional[FieldLock]], Union[None, Awaitable[None]]]


def sanitize_field_path(field_path: str) -> str:
    """Dots would be read as nesting in the lock map"""
    return field_path.replace(".", "_")


def parse_locks(
    locked_fields: Optional[Dict[str, Any]],
    now: datetime,
    stale_after: timedelta,
) -> Dict[str, FieldLock]:
    """Live (non-stale) locks keyed by sanitized field path"""
    live = {}
    for key, data in (locked_fields or {}).items():
        if not isinstance(data, dict):
            continue
        timestamp = to_datetime(data.get("timestamp"))
        if timestamp is None or now - timestamp >= stale_after:
            continue
        live[key] = FieldLock(
            field_path=key,
            editor_uid=data.get("editorUid"),
            email=data.get("email"),
            timestamp=timestamp,
        )
    return live


class FieldLockManager:
    """Lock bookkeeping for one editor identity"""

    def __init__(
        self,
        store: DocumentStore,
        editor_uid: str,
        editor_email: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        stale_seconds: float = settings.LOCK_STALE_SECONDS,
        cleanup_seconds: float = settings.LOCK_CLEANUP_SECONDS,
    ):
        self.store = store
        self.editor_uid = editor_uid
        self.editor_email = editor_email
        self.clock = clock or store.clock
        self.stale_after = timedelta(seconds=stale_seconds)
        self.cleanup_seconds = cleanup_seconds

        self._locks: Dict[str, Dict[str, Any]] = {}
        self._my_locks: Dict[str, Set[str]] = {}
        self._callbacks: Dict[str, Dict[str, LockCallback]] = {}
        self._unsubscribers: Dict[str, Unsubscribe] = {}
        self._cleanup_tasks: Dict[str, asyncio.Task] = {}

    async def initialize(self, graduation_id: str) -> None:
        """Subscribe to lock changes and start the stale-lock pruner"""
        async def on_snapshot(snapshot: DocumentSnapshot) -> None:
            if not snapshot.exists:
                return
            self._locks[graduation_id] = dict(snapshot.get("lockedFields") or {})
            await self._notify_lock_changes(graduation_id)

        self._unsubscribers[graduation_id] = await self.store.listen(
            graduation_path(graduation_id), on_snapshot
        )
        self._cleanup_tasks[graduation_id] = asyncio.create_task(self._cleanup_loop(graduation_id))
        logger.info(f"[FieldLocks] Initialized for {self.editor_uid} on {graduation_id}")

    async def cleanup(self, graduation_id: str) -> None:
        """Release own locks and stop listening"""
        for field_path in list(self._my_locks.get(graduation_id, set())):
            await self.unlock_field(graduation_id, field_path)

        unsubscribe = self._unsubscribers.pop(graduation_id, None)
        if unsubscribe is not None:
            unsubscribe()
        task = self._cleanup_tasks.pop(graduation_id, None)
        if task is not None:
            task.cancel()

        self._locks.pop(graduation_id, None)
        self._my_locks.pop(graduation_id, None)
        self._callbacks.pop(graduation_id, None)
        logger.info(f"[FieldLocks] Cleaned up {graduation_id}")

    # ==========================================
    # Acquire / release
    # ==========================================

    async def lock_field(self, graduation_id: str, field_path: str) -> bool:
        """Claim a field; False if another editor holds a live lock"""
        key = sanitize_field_path(field_path)
        try:
            snapshot = await self.store.get(graduation_path(graduation_id))
            if not snapshot.exists:
                return False

            live = parse_locks(snapshot.get("lockedFields"), self.clock(), self.stale_after)
            owner = live.get(key)
            if owner is not None and owner.editor_uid != self.editor_uid:
                logger.info(f"[FieldLocks] {field_path} already locked by {owner.email or owner.editor_uid}")
                return False

            await self.store.update(graduation_path(graduation_id), {
                f"lockedFields.{key}": {
                    "editorUid": self.editor_uid,
                    "email": self.editor_email,
                    "timestamp": SERVER_TIMESTAMP,
                }
            })
            self._my_locks.setdefault(graduation_id, set()).add(field_path)
            logger.info(f"[FieldLocks] Locked {field_path} on {graduation_id}")
            return True
        except Exception as e:
            logger.error(f"[FieldLocks] Error locking {field_path} on {graduation_id}: {e}")
            return False

    async def unlock_field(self, graduation_id: str, field_path: str) -> bool:
        """Release a lock this editor holds"""
        my_locks = self._my_locks.get(graduation_id, set())
        if field_path not in my_locks:
            logger.warning(f"[FieldLocks] Attempted to unlock {field_path} not owned by {self.editor_uid}")
            return False

        try:
            await self._remove_lock(graduation_id, field_path)
        except Exception as e:
            logger.error(f"[FieldLocks] Error unlocking {field_path} on {graduation_id}: {e}")
            return False

        my_locks.discard(field_path)
        logger.info(f"[FieldLocks] Unlocked {field_path} on {graduation_id}")
        return True

    async def force_unlock_field(self, graduation_id: str, field_path: str) -> bool:
        """Remove a lock regardless of holder"""
        try:
            removed = await self._remove_lock(graduation_id, field_path)
        except Exception as e:
            logger.error(f"[FieldLocks] Error force unlocking {field_path} on {graduation_id}: {e}")
            return False
        if removed:
            self._my_locks.get(graduation_id, set()).discard(field_path)
            logger.info(f"[FieldLocks] Force unlocked {field_path} on {graduation_id}")
        return removed

    async def _remove_lock(self, graduation_id: str, field_path: str) -> bool:
        snapshot = await self.store.get(graduation_path(graduation_id))
        if not snapshot.exists:
            return False
        await self.store.update(graduation_path(graduation_id), {
            f"lockedFields.{sanitize_field_path(field_path)}": DELETE_FIELD,
        })
        return True

    # ==========================================
    # Queries (against the last snapshot seen)
    # ==========================================

    def _live_locks(self, graduation_id: str) -> Dict[str, FieldLock]:
        return parse_locks(self._locks.get(graduation_id), self.clock(), self.stale_after)

    def get_field_lock_owner(self, graduation_id: str, field_path: str) -> Optional[FieldLock]:
        return self._live_locks(graduation_id).get(sanitize_field_path(field_path))

    def is_field_locked(self, graduation_id: str, field_path: str) -> bool:
        return self.get_field_lock_owner(graduation_id, field_path) is not None

    def is_field_locked_by_me(self, graduation_id: str, field_path: str) -> bool:
        owner = self.get_field_lock_owner(graduation_id, field_path)
        return owner is not None and owner.editor_uid == self.editor_uid

    def get_all_locked_fields(self, graduation_id: str) -> List[FieldLock]:
        return list(self._live_locks(graduation_id).values())

    # ==========================================
    # Change callbacks
    # ==========================================

    def on_lock_change(self, graduation_id: str, field_path: str, callback: LockCallback) -> None:
        self._callbacks.setdefault(graduation_id, {})[field_path] = callback

    def off_lock_change(self, graduation_id: str, field_path: str) -> None:
        self._callbacks.get(graduation_id, {}).pop(field_path, None)

    async def _notify_lock_changes(self, graduation_id: str) -> None:
        for field_path, callback in list(self._callbacks.get(graduation_id, {}).items()):
            owner = self.get_field_lock_owner(graduation_id, field_path)
            result = callback(owner is not None, owner)
            if inspect.isawaitable(result):
                await result

    # ==========================================
    # Stale lock pruning
    # ==========================================

    async def prune_stale_locks(self, graduation_id: str) -> int:
        """Strip locks past the staleness window; returns how many were removed"""
        snapshot = await self.store.get(graduation_path(graduation_id))
        if not snapshot.exists:
            return 0

        locked_fields = snapshot.get("lockedFields") or {}
        live = parse_locks(locked_fields, self.clock(), self.stale_after)
        stale = [key for key in locked_fields if key not in live]
        if not stale:
            return 0

        await self.store.update(graduation_path(graduation_id), {
            f"lockedFields.{key}": DELETE_FIELD for key in stale
        })
        logger.info(f"[FieldLocks] Removed {len(stale)} stale locks on {graduation_id}")
        return len(stale)

    async def _cleanup_loop(self, graduation_id: str) -> None:
        while True:
            await asyncio.sleep(self.cleanup_seconds)
            try:
                await self.prune_stale_locks(graduation_id)
            except Exception as e:
                logger.warning(f"[FieldLocks] Error during stale lock cleanup on {graduation_id}: {e}")
