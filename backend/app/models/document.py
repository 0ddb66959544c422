from sqlalchemy import Column, String, DateTime, Text, Integer

from app.core.database import Base
from app.utils.timestamps import utc_now


class StoredDocument(Base):
    """One JSON document addressed by its slash path (graduations/{id}/students/{sid})"""
    __tablename__ = "documents"

    path = Column(String(500), primary_key=True)
    collection = Column(String(500), nullable=False, index=True)
    doc_id = Column(String(200), nullable=False)

    # JSON body, datetimes tagged so they survive the round trip
    data = Column(Text, nullable=False, default="{}")
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<StoredDocument {self.path}>"
