"""
Periodic maintenance run by Celery beat.

Each task opens its own document store, does one pass, and closes it again;
workers share no state with the API process.
"""

import asyncio
from typing import Any, Dict

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.logging_config import logger
from app.services.asset_cleanup import AssetCleanup
from app.services.asset_store import get_asset_store
from app.services.document_store import create_document_store
from app.services.graduation_cleanup import GraduationCleanupService


async def run_graduation_cleanup() -> Dict[str, Any]:
    store = await create_document_store()
    try:
        return await GraduationCleanupService(store, get_asset_store()).run()
    finally:
        await store.close()


async def run_asset_sweep(limit: int = settings.ASSET_SWEEP_BATCH_SIZE) -> Dict[str, Any]:
    store = await create_document_store()
    try:
        return await AssetCleanup(store, get_asset_store()).sweep_pending_deletions(limit=limit)
    finally:
        await store.close()


@celery_app.task
def cleanup_expired_graduations():
    """Delete graduations past the retention window that opted into auto-delete"""
    logger.info("[Maintenance] Starting scheduled graduation cleanup")
    summary = asyncio.run(run_graduation_cleanup())
    summary.pop("details", None)
    return summary


@celery_app.task
def sweep_pending_assets():
    """Delete assets queued in the pending-deletion log"""
    logger.info("[Maintenance] Sweeping pending asset deletions")
    return asyncio.run(run_asset_sweep())
