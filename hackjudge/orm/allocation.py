"""
Judge Allocation ORM Models

Two distinct allocation variants, one per round:
- Round 1 is domain-wide. A DomainJudgeAssignment row says "judge J
  judges domain D"; it is expanded into one RoundOneAllocation per team
  currently in D.
- Round 2 is a direct judge <-> team pairing over the cross-domain
  finalist pool.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey,
    Index, UniqueConstraint
)

from hackjudge.orm.base import Base


# =============================================================================
# Model 1: DomainJudgeAssignment (Round 1, domain level)
# =============================================================================

class DomainJudgeAssignment(Base):
    __tablename__ = "domain_judge_assignments"

    id = Column(Integer, primary_key=True, index=True)
    domain_key = Column(
        String(64),
        ForeignKey("domains.key", ondelete="RESTRICT"),
        nullable=False
    )
    judge_id = Column(
        Integer,
        ForeignKey("judges.id", ondelete="CASCADE"),
        nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('domain_key', 'judge_id', name='uq_domain_judge'),
        Index('idx_domain_judge_domain', 'domain_key'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "domain_key": self.domain_key,
            "judge_id": self.judge_id,
        }


# =============================================================================
# Model 2: RoundOneAllocation (expanded per team)
# =============================================================================

class RoundOneAllocation(Base):
    __tablename__ = "round_one_allocations"

    id = Column(Integer, primary_key=True, index=True)
    judge_id = Column(
        Integer,
        ForeignKey("judges.id", ondelete="CASCADE"),
        nullable=False
    )
    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False
    )
    domain_key = Column(
        String(64),
        ForeignKey("domains.key", ondelete="RESTRICT"),
        nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('judge_id', 'team_id', name='uq_round_one_judge_team'),
        Index('idx_round_one_alloc_judge', 'judge_id'),
        Index('idx_round_one_alloc_domain', 'domain_key'),
    )

    round_number = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "round": self.round_number,
            "judge_id": self.judge_id,
            "team_id": self.team_id,
            "domain_key": self.domain_key,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# Model 3: RoundTwoAllocation (direct pairing)
# =============================================================================

class RoundTwoAllocation(Base):
    __tablename__ = "round_two_allocations"

    id = Column(Integer, primary_key=True, index=True)
    judge_id = Column(
        Integer,
        ForeignKey("judges.id", ondelete="CASCADE"),
        nullable=False
    )
    team_id = Column(
        Integer,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('judge_id', 'team_id', name='uq_round_two_judge_team'),
        Index('idx_round_two_alloc_judge', 'judge_id'),
    )

    round_number = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "round": self.round_number,
            "judge_id": self.judge_id,
            "team_id": self.team_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
