"""
Document Store

Hierarchical JSON documents addressed by slash paths:

    graduations/{graduationId}
    graduations/{graduationId}/students/{studentId}
    graduations/{graduationId}/contentPages/{pageId}
    users/{uid}
    assetsPendingDeletion/{id}

Updates accept dotted field paths (``activeEditors.uid123``) and the
sentinels below, applied inside a single transaction. ``listen`` delivers
the current snapshot immediately and again after every write made through
this store; with polling enabled it also picks up writes from other
processes.
"""

import asyncio
import copy
import inspect
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import delete as sql_delete, select
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.core.database import create_engine_for, init_db, make_session_factory
from app.core.exceptions import DocumentNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.document import StoredDocument
from app.utils.timestamps import to_datetime, utc_now


# ============================================
# Sentinels
# ============================================

class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD = _Sentinel("DELETE_FIELD")


class ArrayUnion:
    """Append values not already present"""

    def __init__(self, *values: Any):
        self.values = list(values)


class ArrayRemove:
    """Remove every occurrence of the given values"""

    def __init__(self, *values: Any):
        self.values = list(values)


# ============================================
# Encoding
# ============================================

_DATETIME_TAG = "__datetime__"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_hook(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1 and _DATETIME_TAG in obj:
        return to_datetime(obj[_DATETIME_TAG])
    return obj


def encode_document(data: Dict[str, Any]) -> str:
    return json.dumps(data, default=_json_default)


def decode_document(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    return json.loads(raw, object_hook=_json_hook)


# ============================================
# Field paths and update application
# ============================================

def get_field(data: Optional[Dict[str, Any]], field_path: str, default: Any = None) -> Any:
    """Read a dotted field path from a document body"""
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _resolve_value(current: Any, value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        for item in value.values:
            if item not in existing:
                existing.append(item)
        return existing
    if isinstance(value, ArrayRemove):
        existing = list(current) if isinstance(current, list) else []
        return [item for item in existing if item not in value.values]
    if isinstance(value, dict):
        return {k: _resolve_value(None, v, now) for k, v in value.items() if v is not DELETE_FIELD}
    if isinstance(value, list):
        return [_resolve_value(None, v, now) for v in value]
    return copy.deepcopy(value)


def apply_updates(data: Dict[str, Any], updates: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Return a copy of ``data`` with dotted-path ``updates`` applied"""
    result = copy.deepcopy(data)
    for field_path, value in updates.items():
        parts = field_path.split(".")
        target = result
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    target = None
                    break
                child = {}
                target[part] = child
            target = child
        if target is None:
            continue
        leaf = parts[-1]
        if value is DELETE_FIELD:
            target.pop(leaf, None)
        else:
            target[leaf] = _resolve_value(target.get(leaf), value, now)
    return result


def merge_data(existing: Dict[str, Any], incoming: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Deep merge used by ``set(..., merge=True)``"""
    result = copy.deepcopy(existing)
    for key, value in incoming.items():
        if value is DELETE_FIELD:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_data(result[key], value, now)
        else:
            result[key] = _resolve_value(result.get(key), value, now)
    return result


def _matches(data: Dict[str, Any], field_path: str, op: str, expected: Any) -> bool:
    actual = get_field(data, field_path)
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual != expected
    if op == "array-contains":
        return isinstance(actual, list) and expected in actual
    if op == "in":
        return actual in expected
    raise ValidationError(f"Unsupported query operator '{op}'", field=field_path)


def split_path(path: str) -> Tuple[str, str]:
    """Split a document path into (collection path, document id)"""
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts or len(parts) % 2 != 0:
        raise ValidationError(f"Invalid document path '{path}'", field="path")
    return "/".join(parts[:-1]), parts[-1]


# ============================================
# Snapshots and listeners
# ============================================

@dataclass
class DocumentSnapshot:
    path: str
    data: Optional[Dict[str, Any]]
    version: int = 0

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field_path: str, default: Any = None) -> Any:
        return get_field(self.data, field_path, default)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data) if self.data is not None else {}


SnapshotCallback = Callable[[DocumentSnapshot], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]
WhereClause = Tuple[str, str, Any]


@dataclass(eq=False)
class _Listener:
    path: str
    callback: SnapshotCallback
    last_version: int = -1
    task: Optional[asyncio.Task] = field(default=None, repr=False)


# ============================================
# Store contract
# ============================================

class DocumentStore(ABC):
    """Contract consumed by the assembler, coordinator and services"""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        poll_seconds: float = 0.0,
    ):
        self.clock = clock
        self._poll_seconds = poll_seconds
        self._listeners: Dict[str, List[_Listener]] = {}

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        ...

    @abstractmethod
    async def list(
        self,
        collection: str,
        where: Sequence[WhereClause] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        ...

    @abstractmethod
    async def _write_set(self, path: str, data: Dict[str, Any], merge: bool) -> None:
        ...

    @abstractmethod
    async def _write_update(self, path: str, updates: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def _write_delete(self, path: str) -> bool:
        ...

    @abstractmethod
    async def delete_collection(self, collection: str) -> int:
        ...

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        await self._write_set(path, data, merge)
        await self._notify(path)

    async def update(self, path: str, updates: Dict[str, Any]) -> None:
        """Apply dotted-path updates; raises DocumentNotFoundError if absent"""
        await self._write_update(path, updates)
        await self._notify(path)

    async def delete(self, path: str) -> bool:
        deleted = await self._write_delete(path)
        await self._notify(path)
        return deleted

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id"""
        doc_id = uuid.uuid4().hex[:20]
        await self.set(f"{collection}/{doc_id}", data)
        return doc_id

    async def listen(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        """Subscribe to a document; the current snapshot is delivered before returning"""
        listener = _Listener(path=path, callback=callback)
        self._listeners.setdefault(path, []).append(listener)

        snapshot = await self.get(path)
        listener.last_version = snapshot.version
        await self._invoke(listener, snapshot)

        if self._poll_seconds > 0:
            listener.task = asyncio.create_task(self._poll(listener))

        def unsubscribe() -> None:
            listeners = self._listeners.get(path, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(path, None)
            if listener.task is not None:
                listener.task.cancel()
                listener.task = None

        return unsubscribe

    def listener_count(self, path: str) -> int:
        return len(self._listeners.get(path, []))

    async def _notify(self, path: str) -> None:
        listeners = list(self._listeners.get(path, []))
        if not listeners:
            return
        snapshot = await self.get(path)
        for listener in listeners:
            listener.last_version = snapshot.version
            await self._invoke(listener, snapshot)

    async def _invoke(self, listener: _Listener, snapshot: DocumentSnapshot) -> None:
        try:
            result = listener.callback(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # A broken listener must never fail the write that triggered it
            logger.warning(f"[DocumentStore] Listener for {listener.path} failed: {e}", exc_info=True)

    async def _poll(self, listener: _Listener) -> None:
        while True:
            await asyncio.sleep(self._poll_seconds)
            try:
                snapshot = await self.get(listener.path)
            except Exception as e:
                logger.warning(f"[DocumentStore] Poll of {listener.path} failed: {e}")
                continue
            if snapshot.version != listener.last_version:
                listener.last_version = snapshot.version
                await self._invoke(listener, snapshot)

    async def close(self) -> None:
        for listeners in self._listeners.values():
            for listener in listeners:
                if listener.task is not None:
                    listener.task.cancel()
        self._listeners.clear()


# ============================================
# SQLAlchemy implementation
# ============================================

class SQLDocumentStore(DocumentStore):
    """Documents stored as JSON rows in a single ``documents`` table"""

    def __init__(
        self,
        engine: AsyncEngine,
        clock: Callable[[], datetime] = utc_now,
        poll_seconds: float = 0.0,
    ):
        super().__init__(clock=clock, poll_seconds=poll_seconds)
        self._engine = engine
        self._session_factory = make_session_factory(engine)

    async def init(self) -> None:
        await init_db(self._engine)

    async def close(self) -> None:
        await super().close()
        await self._engine.dispose()

    async def get(self, path: str) -> DocumentSnapshot:
        split_path(path)
        async with self._session_factory() as session:
            row = await session.get(StoredDocument, path)
            if row is None:
                return DocumentSnapshot(path=path, data=None, version=0)
            return DocumentSnapshot(path=path, data=decode_document(row.data), version=row.version)

    async def list(
        self,
        collection: str,
        where: Sequence[WhereClause] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        collection = collection.strip("/")
        async with self._session_factory() as session:
            result = await session.execute(
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.created_at, StoredDocument.path)
            )
            rows = result.scalars().all()

        snapshots = []
        for row in rows:
            data = decode_document(row.data)
            if all(_matches(data, f, op, value) for f, op, value in where):
                snapshots.append(DocumentSnapshot(path=row.path, data=data, version=row.version))

        if order_by:
            present = [s for s in snapshots if s.get(order_by) is not None]
            missing = [s for s in snapshots if s.get(order_by) is None]
            present.sort(key=lambda s: s.get(order_by), reverse=descending)
            snapshots = present + missing

        if limit is not None:
            snapshots = snapshots[:limit]
        return snapshots

    async def _write_set(self, path: str, data: Dict[str, Any], merge: bool) -> None:
        collection, doc_id = split_path(path)
        now = self.clock()
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(StoredDocument, path, with_for_update=True)
                if row is None:
                    body = merge_data({}, data, now)
                    session.add(StoredDocument(
                        path=path,
                        collection=collection,
                        doc_id=doc_id,
                        data=encode_document(body),
                        version=1,
                    ))
                else:
                    base = decode_document(row.data) if merge else {}
                    row.data = encode_document(merge_data(base, data, now))
                    row.version = row.version + 1
                    row.updated_at = now

    async def _write_update(self, path: str, updates: Dict[str, Any]) -> None:
        split_path(path)
        now = self.clock()
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(StoredDocument, path, with_for_update=True)
                if row is None:
                    raise DocumentNotFoundError(path)
                row.data = encode_document(apply_updates(decode_document(row.data), updates, now))
                row.version = row.version + 1
                row.updated_at = now

    async def _write_delete(self, path: str) -> bool:
        split_path(path)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    sql_delete(StoredDocument).where(StoredDocument.path == path)
                )
                return (result.rowcount or 0) > 0

    async def delete_collection(self, collection: str) -> int:
        collection = collection.strip("/")
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    sql_delete(StoredDocument).where(StoredDocument.collection == collection)
                )
                deleted = result.rowcount or 0
        logger.info(f"[DocumentStore] Deleted {deleted} documents from {collection}")
        return deleted


async def create_document_store(
    url: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
    poll_seconds: Optional[float] = None,
) -> SQLDocumentStore:
    """Build a store for ``url`` (defaults to DATABASE_URL) and create its table"""
    engine = create_engine_for(url or settings.DATABASE_URL, echo=settings.DB_ECHO)
    store = SQLDocumentStore(
        engine,
        clock=clock,
        poll_seconds=settings.DOCUMENT_POLL_SECONDS if poll_seconds is None else poll_seconds,
    )
    await store.init()
    return store
