# Document/asset storage, repositories and domain services
from app.services.document_store import DocumentStore, create_document_store
from app.services.asset_store import AssetStore, get_asset_store

__all__ = [
    "DocumentStore",
    "create_document_store",
    "AssetStore",
    "get_asset_store",
]
