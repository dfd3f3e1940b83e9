"""
Round Calculation State Machine

Per-round state: NOT_CALCULATED -> CALCULATED. The state is derived from
the versioned ResultCalculation records, never from ad-hoc flags.
Recalculation is a CALCULATED -> CALCULATED self-transition that bumps
the version.
"""
import asyncio
import logging
import weakref
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ConsistencyError, ErrorCode, PreconditionError, ValidationError
from hackjudge.orm.allocation import RoundTwoAllocation
from hackjudge.orm.round_result import ResultCalculation, RoundResult
from hackjudge.orm.score import JudgingRound, Score

logger = logging.getLogger(__name__)


class RoundState(str, Enum):
    NOT_CALCULATED = "not_calculated"
    CALCULATED = "calculated"


class InvalidTransitionError(ConsistencyError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, code=ErrorCode.INVALID_TRANSITION, details=details)


_calculation_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def calculation_lock() -> asyncio.Lock:
    """
    Process-wide lock serializing every calculation, whichever the round.
    Round 2 reads the Round 1 snapshot, so the two never interleave.
    One lock per event loop.
    """
    loop = asyncio.get_running_loop()
    lock = _calculation_locks.get(loop)
    if lock is None:
        lock = _calculation_locks[loop] = asyncio.Lock()
    return lock


def validate_round_number(round_number: Any) -> JudgingRound:
    try:
        return JudgingRound(int(round_number))
    except (TypeError, ValueError):
        raise ValidationError(
            f"Round must be 1 or 2, got {round_number!r}",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "round", "value": round_number}
        )


class RoundStateMachine:
    """
    Calculation state of a single round.

    Reads are always fresh from the database; the machine holds no
    cached state between calls.
    """

    ALLOWED_TRANSITIONS: Dict[RoundState, List[RoundState]] = {
        RoundState.NOT_CALCULATED: [RoundState.CALCULATED],
        RoundState.CALCULATED: [RoundState.CALCULATED],
    }

    def __init__(self, db: AsyncSession, round_number: int):
        self.db = db
        self.round_number = validate_round_number(round_number)

    async def latest(self) -> Optional[ResultCalculation]:
        result = await self.db.execute(
            select(ResultCalculation)
            .where(ResultCalculation.round_number == int(self.round_number))
            .order_by(ResultCalculation.version.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def state(self) -> RoundState:
        latest = await self.latest()
        return RoundState.CALCULATED if latest is not None else RoundState.NOT_CALCULATED

    async def status(self) -> Dict[str, Any]:
        """
        calculated: at least one successful calculation has run
        count: rows in the current snapshot
        version: snapshot version (0 before the first calculation)
        stale: a score for this round was written after the snapshot
        """
        latest = await self.latest()
        if latest is None:
            return {"calculated": False, "count": 0, "version": 0, "stale": False}

        result = await self.db.execute(
            select(func.count(Score.id))
            .where(Score.round_number == int(self.round_number))
            .where(Score.created_at > latest.calculated_at)
        )
        newer_scores = result.scalar() or 0
        return {
            "calculated": True,
            "count": latest.result_count,
            "version": latest.version,
            "stale": newer_scores > 0,
        }

    async def require_calculated(self) -> ResultCalculation:
        latest = await self.latest()
        if latest is None:
            code = (
                ErrorCode.ROUND_ONE_NOT_CALCULATED
                if self.round_number == JudgingRound.ONE
                else ErrorCode.PREREQUISITE_NOT_MET
            )
            raise PreconditionError(
                f"Round {int(self.round_number)} results have not been calculated yet",
                code=code,
                details={"round": int(self.round_number)}
            )
        return latest

    async def require_round_two_ready(self) -> None:
        """Round 2 needs a Round 1 snapshot and at least one Round 2 allocation."""
        await RoundStateMachine(self.db, JudgingRound.ONE).require_calculated()
        result = await self.db.execute(select(func.count(RoundTwoAllocation.id)))
        if not result.scalar():
            raise PreconditionError(
                "Round 2 has no allocations; run Round 2 setup first",
                code=ErrorCode.ROUND_TWO_NOT_ALLOCATED,
            )

    async def record_calculation(self, rows: List[RoundResult]) -> ResultCalculation:
        """
        Transition to CALCULATED with a new snapshot version.

        Adds the ResultCalculation to the session; the caller owns the
        transaction and commits (or rolls back) together with the rows.
        """
        current = await self.state()
        if RoundState.CALCULATED not in self.ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot transition round {int(self.round_number)} from {current.value} to calculated",
                details={"round": int(self.round_number), "from": current.value}
            )

        latest = await self.latest()
        version = (latest.version if latest else 0) + 1
        calculation = ResultCalculation(
            round_number=int(self.round_number),
            version=version,
            result_count=len(rows),
            snapshot_hash=ResultCalculation.compute_snapshot_hash(rows),
            calculated_at=datetime.utcnow(),
        )
        self.db.add(calculation)
        await self.db.flush()

        logger.info(
            f"Round {int(self.round_number)}: {current.value} -> calculated "
            f"(version {version}, {len(rows)} results)"
        )
        return calculation
