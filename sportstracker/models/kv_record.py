"""
Key-value record backing every persisted collection.

One row per logical record (users, activities, settings, ledger, ...);
the value is the whole collection serialized as JSON text.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class KeyValueRecord(Base, TimestampMixin):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<KeyValueRecord(key={self.key}, size={len(self.value or '')})>"
