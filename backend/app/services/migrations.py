"""
One-off data migrations for legacy graduation records.

- student order: back-fill a dense ``order`` for students created before
  manual sorting existed
- editors: convert single-owner records (``ownerUid``) to ``editors`` +
  ``createdBy``
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.core.logging_config import logger
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore
from app.services.graduation_repository import GRADUATIONS, graduation_path, students_collection, to_record
from app.utils.timestamps import to_datetime

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _has_numeric_order(student: Dict[str, Any]) -> bool:
    order = student.get("order")
    return isinstance(order, (int, float)) and not isinstance(order, bool)


@dataclass
class EditorMigrationResult:
    graduation_id: str
    school_name: str
    needs_migration: bool = False
    changes: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    updates: Dict[str, Any] = field(default_factory=dict)


class MigrationService:
    def __init__(self, store: DocumentStore):
        self.store = store

    # ==========================================
    # Student order
    # ==========================================

    async def migrate_student_order(self, graduation_id: str) -> Dict[str, Any]:
        """Give every student without a numeric order one, after the current maximum"""
        students = [to_record(s) for s in await self.store.list(students_collection(graduation_id))]
        if not students:
            return {"success": True, "migrated": 0, "skipped": 0, "total": 0}

        needs = [s for s in students if not _has_numeric_order(s)]
        done = [s for s in students if _has_numeric_order(s)]
        if not needs:
            return {"success": True, "migrated": 0, "skipped": len(done), "total": len(students)}

        needs.sort(key=lambda s: (to_datetime(s.get("createdAt")) or _EPOCH, s.get("name") or ""))
        next_order = int(max(s["order"] for s in done)) + 1 if done else 0

        for offset, student in enumerate(needs):
            await self.store.update(f"{students_collection(graduation_id)}/{student['id']}", {
                "order": next_order + offset,
                "updatedAt": SERVER_TIMESTAMP,
            })
            logger.debug(f"[Migration] Set order {next_order + offset} for {student.get('name')} ({student['id']})")

        logger.info(f"[Migration] Back-filled order for {len(needs)} students in {graduation_id}")
        return {"success": True, "migrated": len(needs), "skipped": len(done), "total": len(students)}

    async def migrate_all_student_orders(self) -> List[Dict[str, Any]]:
        results = []
        for graduation in await self.store.list(GRADUATIONS):
            try:
                result = await self.migrate_student_order(graduation.id)
            except Exception as e:
                logger.error(f"[Migration] Error migrating students of {graduation.id}: {e}")
                result = {"success": False, "error": str(e)}
            results.append({"graduationId": graduation.id, **result})
        return results

    # ==========================================
    # Editors
    # ==========================================

    def plan_editor_migration(self, graduation_id: str, data: Dict[str, Any]) -> EditorMigrationResult:
        result = EditorMigrationResult(graduation_id=graduation_id, school_name=data.get("schoolName") or "Unknown")
        owner = data.get("ownerUid")
        editors = data.get("editors") if isinstance(data.get("editors"), list) else None
        created_by = data.get("createdBy")

        if owner is None and editors is not None and created_by is not None:
            return result
        if owner is None and editors is None:
            result.errors.append("No ownerUid or editors field found - cannot migrate")
            return result

        result.needs_migration = True
        if owner is not None and editors is None:
            result.updates["editors"] = [owner]
            result.changes.append(f"Create editors array: [{owner}]")
        elif owner is not None and owner not in editors:
            result.updates["editors"] = [*editors, owner]
            result.changes.append("Add ownerUid to existing editors array")

        if created_by is None:
            creator = owner or (editors[0] if editors else None)
            if creator:
                result.updates["createdBy"] = creator
                result.changes.append(f"Set createdBy: {creator}")
            else:
                result.errors.append("Cannot determine creator UID")
        return result

    async def migrate_editors(self, graduation_id: str, dry_run: bool = True) -> EditorMigrationResult:
        snapshot = await self.store.get(graduation_path(graduation_id))
        result = self.plan_editor_migration(graduation_id, snapshot.to_dict())
        if not result.updates:
            return result
        if dry_run:
            logger.info(f"[Migration] DRY RUN {graduation_id} would apply: {result.changes}")
            return result
        try:
            await self.store.update(graduation_path(graduation_id), result.updates)
            logger.info(f"[Migration] Migrated editors of {graduation_id}")
        except Exception as e:
            result.errors.append(f"Update failed: {e}")
            logger.error(f"[Migration] Editor migration of {graduation_id} failed: {e}")
        return result

    async def migrate_all_editors(self, dry_run: bool = True) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "total": 0,
            "alreadyMigrated": 0,
            "needsMigration": 0,
            "successful": 0,
            "failed": 0,
            "errors": [],
            "dryRun": dry_run,
        }
        graduations = await self.store.list(GRADUATIONS)
        summary["total"] = len(graduations)
        for graduation in graduations:
            result = await self.migrate_editors(graduation.id, dry_run=dry_run)
            if result.needs_migration:
                summary["needsMigration"] += 1
                if result.errors:
                    summary["failed"] += 1
                    summary["errors"].append({"graduationId": graduation.id, "errors": result.errors})
                else:
                    summary["successful"] += 1
            elif not result.errors:
                summary["alreadyMigrated"] += 1
            else:
                summary["errors"].append({"graduationId": graduation.id, "errors": result.errors})
        logger.info(
            f"[Migration] Editors: {summary['successful']} migrated, {summary['failed']} failed, "
            f"{summary['alreadyMigrated']} already done (dry_run={dry_run})"
        )
        return summary
