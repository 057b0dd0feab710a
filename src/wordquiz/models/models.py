"""Database models for the quiz."""
from sqlalchemy import Column, String, Text

from wordquiz.models.base import Base, TimestampMixin


class StoredItem(Base, TimestampMixin):
    """One namespaced key and its JSON-encoded value."""

    __tablename__ = "storage_items"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredItem {self.key}>"
