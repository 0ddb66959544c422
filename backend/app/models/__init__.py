# Re-export all models for convenient imports
from app.models.document import StoredDocument

__all__ = [
    "StoredDocument",
]
