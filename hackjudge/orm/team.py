"""
Team ORM model.

A team belongs to exactly one domain. ``domain_key`` only changes through
the explicit reassignment operation in the directory service.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index

from hackjudge.orm.base import Base


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    team_code = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    domain_key = Column(
        String(64),
        ForeignKey("domains.key", ondelete="RESTRICT"),
        nullable=False
    )
    problem_statement = Column(Text, nullable=False)
    idea_description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_teams_domain', 'domain_key'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "team_code": self.team_code,
            "name": self.name,
            "domain_key": self.domain_key,
            "problem_statement": self.problem_statement,
            "idea_description": self.idea_description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Team(id={self.id}, code={self.team_code!r}, domain={self.domain_key!r})>"
