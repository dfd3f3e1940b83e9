"""
Judge ORM model.

``judge_type`` is stored explicitly at creation time and decides round
eligibility: Internal judges score Round 1, External judges score Round 2.
"""
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime, Enum

from hackjudge.orm.base import Base


class JudgeType(str, PyEnum):
    INTERNAL = "Internal"
    EXTERNAL = "External"


class Judge(Base):
    __tablename__ = "judges"

    id = Column(Integer, primary_key=True, index=True)
    judge_code = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    judge_type = Column(
        Enum(JudgeType, create_constraint=True),
        nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def round_number(self) -> int:
        """The round this judge is eligible to score."""
        return 1 if self.judge_type == JudgeType.INTERNAL else 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "judge_code": self.judge_code,
            "name": self.name,
            "judge_type": self.judge_type.value if self.judge_type else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Judge(id={self.id}, code={self.judge_code!r}, type={self.judge_type})>"
