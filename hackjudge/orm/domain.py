"""
Domain catalog ORM model.

Domains are seeded once from configuration and never edited.
The key is used everywhere else instead of the display name.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime

from hackjudge.orm.base import Base


class Domain(Base):
    __tablename__ = "domains"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(128), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "name": self.name}

    def __repr__(self):
        return f"<Domain(key={self.key!r}, name={self.name!r})>"
