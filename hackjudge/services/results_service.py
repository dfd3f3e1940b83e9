"""
Round Results & Ranking Engine Service

Deterministic aggregation and ranking, computed as a wholesale snapshot
on explicit request (never on score writes).

Aggregate total: mean of per-judge totals, divided by the number of
judges who actually scored the team (not the number allocated).
Ordering: total DESC, innovation_creativity mean DESC, team_id ASC.
Rank: dense over (total, innovation_creativity mean), 1-based.
Scope: per domain for Round 1, global for Round 2. Round 1 counts only
scores submitted under the team's current domain.

A calculation reads the whole ledger, then replaces the round's rows in
one transaction. Any invariant violation aborts it and the previous
snapshot stays in force. Uses Decimal for all numeric computation.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, delete, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ConsistencyError, ErrorCode, JudgingError
from hackjudge.orm.allocation import RoundTwoAllocation
from hackjudge.orm.round_result import RoundResult, order_results
from hackjudge.orm.score import QUANTIZER_2DP, RUBRIC_FIELDS, JudgingRound, Score, to_decimal
from hackjudge.orm.team import Team
from hackjudge.services.domain_registry import domain_names
from hackjudge.state_machines.round_state import RoundStateMachine, calculation_lock

logger = logging.getLogger(__name__)


# =============================================================================
# Pure aggregation + ranking
# =============================================================================

@dataclass
class TeamAggregate:
    team_id: int
    domain_key: Optional[str]
    judge_count: int
    total: Decimal
    breakdown: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def innovation(self) -> Decimal:
        return self.breakdown["innovation_creativity"]


def _mean(values: Sequence[Decimal]) -> Decimal:
    return (sum(values, Decimal("0")) / Decimal(len(values))).quantize(QUANTIZER_2DP, rounding=ROUND_HALF_UP)


def aggregate_team(team_id: int, domain_key: Optional[str], scores: Sequence[Any]) -> TeamAggregate:
    """
    Mean of per-judge totals and per-criterion means for one team.

    `scores` holds one current score per judge (the ledger guarantees it).
    """
    if not scores:
        raise ValueError(f"Team {team_id} has no scores to aggregate")
    return TeamAggregate(
        team_id=team_id,
        domain_key=domain_key,
        judge_count=len(scores),
        total=_mean([to_decimal(s.total) for s in scores]),
        breakdown={f: _mean([to_decimal(getattr(s, f)) for s in scores]) for f in RUBRIC_FIELDS},
    )


def rank_aggregates(aggregates: Iterable[TeamAggregate]) -> List[tuple]:
    """
    Order aggregates and assign dense ranks.

    Returns [(aggregate, position, rank)], position and rank 1-based.
    A lower innovation_creativity mean loses a tie on total; teams equal
    on both share a rank and are ordered by team_id.
    """
    ordered = sorted(aggregates, key=lambda a: (-a.total, -a.innovation, a.team_id))
    ranked = []
    rank = 0
    previous = None
    for position, agg in enumerate(ordered, start=1):
        key = (agg.total, agg.innovation)
        if key != previous:
            rank += 1
            previous = key
        ranked.append((agg, position, rank))
    return ranked


def _build_rows(round_number: JudgingRound, ranked: List[tuple]) -> List[RoundResult]:
    rows = []
    for agg, position, rank in ranked:
        row = RoundResult(
            round_number=int(round_number),
            domain_key=agg.domain_key,
            team_id=agg.team_id,
            position=position,
            judge_count=agg.judge_count,
            total_score=agg.total,
            rank=rank,
        )
        for name, value in agg.breakdown.items():
            setattr(row, name, value)
        rows.append(row)
    return rows


# =============================================================================
# Snapshot reads (consistent within the calculation transaction)
# =============================================================================

async def _begin_serializable(db: AsyncSession) -> None:
    """SERIALIZABLE isolation on PostgreSQL; SQLite serializes writers itself."""
    if db.get_bind().dialect.name != "postgresql":
        return
    if db.in_transaction():
        # SET TRANSACTION must be the first statement of a transaction
        await db.commit()
    await db.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))


async def _scores_by_team(db: AsyncSession, round_number: JudgingRound) -> Dict[int, List[Score]]:
    result = await db.execute(
        select(Score)
        .where(Score.round_number == int(round_number))
        .order_by(Score.team_id, Score.judge_id)
        .execution_options(populate_existing=True)
    )
    grouped: Dict[int, List[Score]] = {}
    for score in result.scalars().all():
        if not score.verify_total():
            raise ConsistencyError(
                f"Score {score.id} total {score.total} does not match its rubric",
                code=ErrorCode.TOTAL_MISMATCH,
                details={"score_id": score.id, "judge_id": score.judge_id, "team_id": score.team_id}
            )
        grouped.setdefault(score.team_id, []).append(score)
    return grouped


def _check_domain(team: Team, known_domains: Dict[str, str]) -> None:
    if team.domain_key not in known_domains:
        raise ConsistencyError(
            f"Team {team.id} references unknown domain {team.domain_key!r}",
            details={"team_id": team.id, "domain_key": team.domain_key}
        )


async def _replace_snapshot(db: AsyncSession, round_number: JudgingRound, rows: List[RoundResult]) -> Dict[str, int]:
    """Delete the round's rows and write the new snapshot in the open transaction."""
    machine = RoundStateMachine(db, round_number)
    await db.execute(delete(RoundResult).where(RoundResult.round_number == int(round_number)))
    calculation = await machine.record_calculation(rows)
    for row in rows:
        row.calculation_id = calculation.id
    db.add_all(rows)
    await db.commit()
    return {"count": len(rows), "version": calculation.version}


async def _run_calculation(db: AsyncSession, round_number: JudgingRound, build) -> Dict[str, int]:
    """
    Serialize, read, then write all-or-nothing. On failure the session is
    rolled back so the previous snapshot remains in force.
    """
    async with calculation_lock():
        try:
            await _begin_serializable(db)
            rows = await build()
            outcome = await _replace_snapshot(db, round_number, rows)
        except JudgingError as e:
            await db.rollback()
            logger.error(f"Round {int(round_number)} calculation aborted: {e.message}")
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Round {int(round_number)} calculation aborted: {type(e).__name__}: {e}")
            raise ConsistencyError(
                f"Round {int(round_number)} calculation aborted by a storage error",
                details={"reason": type(e).__name__}
            ) from e

    logger.info(
        f"Round {int(round_number)} calculated: {outcome['count']} result(s), version {outcome['version']}"
    )
    return outcome


# =============================================================================
# Calculations
# =============================================================================

async def calculate_round_one(db: AsyncSession) -> Dict[str, int]:
    """
    Rank every scored team within its domain.

    Returns {"count": rows written, "version": snapshot version}.

    Raises:
        ConsistencyError: unknown domain or a score whose total has drifted
    """
    async def build() -> List[RoundResult]:
        known_domains = await domain_names(db)
        result = await db.execute(
            select(Team).order_by(Team.domain_key, Team.id).execution_options(populate_existing=True)
        )
        teams = list(result.scalars().all())
        scores = await _scores_by_team(db, JudgingRound.ONE)

        by_domain: Dict[str, List[TeamAggregate]] = {}
        for team in teams:
            _check_domain(team, known_domains)
            # Scores submitted under a domain the team has since left do not count
            team_scores = [s for s in scores.get(team.id, []) if s.domain_key == team.domain_key]
            if not team_scores:
                logger.debug(f"Team {team.id} has no Round 1 scores in {team.domain_key}; left out of snapshot")
                continue
            by_domain.setdefault(team.domain_key, []).append(
                aggregate_team(team.id, team.domain_key, team_scores)
            )

        rows: List[RoundResult] = []
        for domain_key in sorted(by_domain):
            rows.extend(_build_rows(JudgingRound.ONE, rank_aggregates(by_domain[domain_key])))
        return rows

    return await _run_calculation(db, JudgingRound.ONE, build)


async def calculate_round_two(db: AsyncSession) -> Dict[str, int]:
    """
    Rank the Round 2 pool globally, across domains.

    Raises:
        PreconditionError: Round 1 not calculated or no Round 2 allocations
        ConsistencyError: unknown domain or drifted total
    """
    async def build() -> List[RoundResult]:
        await RoundStateMachine(db, JudgingRound.TWO).require_round_two_ready()
        known_domains = await domain_names(db)
        result = await db.execute(
            select(Team)
            .where(Team.id.in_(select(RoundTwoAllocation.team_id)))
            .order_by(Team.id)
        )
        teams = list(result.scalars().all())
        scores = await _scores_by_team(db, JudgingRound.TWO)

        aggregates = []
        for team in teams:
            _check_domain(team, known_domains)
            team_scores = scores.get(team.id)
            if not team_scores:
                logger.debug(f"Team {team.id} has no Round 2 scores; left out of snapshot")
                continue
            aggregates.append(aggregate_team(team.id, team.domain_key, team_scores))
        return _build_rows(JudgingRound.TWO, rank_aggregates(aggregates))

    return await _run_calculation(db, JudgingRound.TWO, build)


# =============================================================================
# Queries
# =============================================================================

async def status(db: AsyncSession, round_number: int = JudgingRound.ONE) -> Dict[str, Any]:
    return await RoundStateMachine(db, round_number).status()


async def list_round_one_results(db: AsyncSession, domain_key: Optional[str] = None) -> List[RoundResult]:
    query = select(RoundResult).where(RoundResult.round_number == int(JudgingRound.ONE))
    if domain_key is not None:
        query = query.where(RoundResult.domain_key == domain_key)
    result = await db.execute(query)
    return order_results(list(result.scalars().all()))


async def list_round_two_results(db: AsyncSession) -> List[RoundResult]:
    """Global Round 2 ranking; empty until Round 2 has been calculated."""
    result = await db.execute(
        select(RoundResult).where(RoundResult.round_number == int(JudgingRound.TWO))
    )
    return order_results(list(result.scalars().all()))


async def list_results(db: AsyncSession, round_number: int) -> List[RoundResult]:
    if int(round_number) == JudgingRound.TWO:
        return await list_round_two_results(db)
    return await list_round_one_results(db)


async def round_two_overview(db: AsyncSession) -> Dict[str, Any]:
    """Read-side summary of Round 2; all counts are zero before setup."""
    result = await db.execute(select(RoundTwoAllocation))
    allocations = list(result.scalars().all())

    state = await status(db, JudgingRound.TWO)
    return {
        "teams": len({a.team_id for a in allocations}),
        "judges": len({a.judge_id for a in allocations}),
        "allocations": len(allocations),
        "status": state,
        "results": [r.to_dict() for r in await list_round_two_results(db)],
    }
