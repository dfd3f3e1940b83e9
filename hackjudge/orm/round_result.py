"""
Round Results ORM Models

RoundResult rows are a derived snapshot: every calculation replaces all
rows of its round. ResultCalculation is the versioned snapshot record,
one per successful calculation, with a monotonic version per round.
"""
import hashlib
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Column, Integer, Numeric, String, DateTime, ForeignKey,
    Index, UniqueConstraint, CheckConstraint
)

from hackjudge.orm.base import Base
from hackjudge.orm.score import CRITERIA_FIELDS, QUANTIZER_2DP


# =============================================================================
# Model 1: ResultCalculation (versioned snapshot record)
# =============================================================================

class ResultCalculation(Base):
    __tablename__ = "result_calculations"

    id = Column(Integer, primary_key=True, index=True)
    round_number = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    result_count = Column(Integer, nullable=False, default=0)
    snapshot_hash = Column(String(64), nullable=False)
    calculated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('round_number', 'version', name='uq_calculation_round_version'),
        CheckConstraint('round_number IN (1, 2)', name='chk_calculation_round'),
    )

    @staticmethod
    def compute_snapshot_hash(rows: Iterable["RoundResult"]) -> str:
        """
        SHA256 over the canonical JSON of the snapshot rows, in rank order.

        Ids and timestamps are excluded, so two calculations over the same
        ledger produce the same hash.
        """
        payload = [row.snapshot_dict() for row in rows]
        canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(canonical.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round_number,
            "version": self.version,
            "count": self.result_count,
            "snapshot_hash": self.snapshot_hash,
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
        }


# =============================================================================
# Model 2: RoundResult (one row per team per snapshot)
# =============================================================================

class RoundResult(Base):
    __tablename__ = "round_results"

    id = Column(Integer, primary_key=True, index=True)
    calculation_id = Column(
        Integer,
        ForeignKey("result_calculations.id", ondelete="CASCADE"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    # Ranking scope for Round 1; informational for Round 2
    domain_key = Column(String(64), nullable=True)
    team_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    judge_count = Column(Integer, nullable=False)

    # Mean per-criterion breakdown
    problem_identification = Column(Numeric(8, 2), nullable=False)
    innovation_creativity = Column(Numeric(8, 2), nullable=False)
    feasibility_practicality = Column(Numeric(8, 2), nullable=False)
    market_impact_potential = Column(Numeric(8, 2), nullable=False)
    technology_domain_relevance = Column(Numeric(8, 2), nullable=False)
    pitch_delivery_qa = Column(Numeric(8, 2), nullable=False)
    bonus = Column(Numeric(8, 2), nullable=False)

    total_score = Column(Numeric(10, 2), nullable=False)
    rank = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('round_number', 'team_id', name='uq_round_result_team'),
        CheckConstraint('rank >= 1', name='chk_round_result_rank'),
        Index('idx_round_result_round_domain', 'round_number', 'domain_key'),
    )

    BREAKDOWN_FIELDS = CRITERIA_FIELDS + ("bonus",)

    def breakdown(self) -> Dict[str, Decimal]:
        return {
            field: Decimal(str(getattr(self, field))).quantize(QUANTIZER_2DP)
            for field in self.BREAKDOWN_FIELDS
        }

    def snapshot_dict(self) -> Dict[str, Any]:
        """Deterministic content of the row, used for hashing."""
        return {
            "round": self.round_number,
            "domain_key": self.domain_key,
            "team_id": self.team_id,
            "position": self.position,
            "judge_count": self.judge_count,
            "breakdown": {k: f"{v:.2f}" for k, v in self.breakdown().items()},
            "total_score": f"{Decimal(str(self.total_score)).quantize(QUANTIZER_2DP):.2f}",
            "rank": self.rank,
        }

    def to_dict(self, team: Optional[Any] = None) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "round": self.round_number,
            "domain_key": self.domain_key,
            "team_id": self.team_id,
            "judge_count": self.judge_count,
            "total_score": float(self.total_score),
            "breakdown": {k: float(v) for k, v in self.breakdown().items()},
            "rank": self.rank,
        }
        if team is not None:
            result["team_code"] = team.team_code
            result["team_name"] = team.name
        return result


def order_results(rows: List[RoundResult]) -> List[RoundResult]:
    """Stable read order: domain then position for Round 1, position for Round 2."""
    return sorted(
        rows,
        key=lambda r: (r.domain_key or "", r.position) if r.round_number == 1 else ("", r.position)
    )
