"""
Score Ledger ORM Model

One current score per (judge, team, round). A resubmission overwrites the
row in place. ``total`` is a cache of the rubric sum and is always
re-derivable from the stored criteria.

judge_id / team_id are plain references, not foreign keys: submitted
scores remain as evidence even after an allocation, team or judge is
removed.
"""
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, Mapping

from sqlalchemy import (
    Column, Integer, Numeric, String, DateTime,
    Index, UniqueConstraint, CheckConstraint
)

from hackjudge.orm.base import Base


QUANTIZER_2DP = Decimal("0.01")

# Order matters: it is the export / breakdown column order.
CRITERIA_FIELDS = (
    "problem_identification",
    "innovation_creativity",
    "feasibility_practicality",
    "market_impact_potential",
    "technology_domain_relevance",
    "pitch_delivery_qa",
)
RUBRIC_FIELDS = CRITERIA_FIELDS + ("bonus",)


class JudgingRound(IntEnum):
    ONE = 1
    TWO = 2


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or submitted number to a 2dp Decimal."""
    return Decimal(str(value)).quantize(QUANTIZER_2DP)


def compute_total(rubric: Mapping[str, Any]) -> Decimal:
    """
    Sum of the six criteria plus bonus.

    The single definition of a score total; used on write and re-checked
    during result calculation.
    """
    return sum((to_decimal(rubric[field]) for field in RUBRIC_FIELDS), Decimal("0.00"))


class Score(Base):
    __tablename__ = "scores"

    id = Column(Integer, primary_key=True, index=True)
    judge_id = Column(Integer, nullable=False)
    team_id = Column(Integer, nullable=False)
    domain_key = Column(String(64), nullable=False)
    round_number = Column(Integer, nullable=False)

    problem_identification = Column(Numeric(6, 2), nullable=False)
    innovation_creativity = Column(Numeric(6, 2), nullable=False)
    feasibility_practicality = Column(Numeric(6, 2), nullable=False)
    market_impact_potential = Column(Numeric(6, 2), nullable=False)
    technology_domain_relevance = Column(Numeric(6, 2), nullable=False)
    pitch_delivery_qa = Column(Numeric(6, 2), nullable=False)
    bonus = Column(Numeric(6, 2), nullable=False, default=0)

    total = Column(Numeric(8, 2), nullable=False)

    # Latest submission time; refreshed on every overwrite
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('judge_id', 'team_id', 'round_number', name='uq_score_judge_team_round'),
        CheckConstraint('round_number IN (1, 2)', name='chk_score_round'),
        Index('idx_scores_team_round', 'team_id', 'round_number'),
        Index('idx_scores_domain_round', 'domain_key', 'round_number'),
    )

    def rubric(self) -> Dict[str, Decimal]:
        return {field: to_decimal(getattr(self, field)) for field in RUBRIC_FIELDS}

    def apply_rubric(self, rubric: Mapping[str, Any]) -> None:
        """Overwrite criteria and refresh the cached total."""
        for field in RUBRIC_FIELDS:
            setattr(self, field, to_decimal(rubric[field]))
        self.total = compute_total(rubric)

    def verify_total(self) -> bool:
        """Verify stored total matches the recomputed rubric sum."""
        if self.total is None:
            return False
        return to_decimal(self.total) == compute_total(self.rubric())

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "judge_id": self.judge_id,
            "team_id": self.team_id,
            "domain_key": self.domain_key,
            "round": self.round_number,
        }
        for field, value in self.rubric().items():
            result[field] = float(value)
        result["total"] = float(to_decimal(self.total))
        result["created_at"] = self.created_at.isoformat() if self.created_at else None
        return result
