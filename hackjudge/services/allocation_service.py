"""
Judge Allocation Engine

Round 1: domain-wide. assign_domain_judges replaces the judge set of a
domain and expands it into one RoundOneAllocation per team in the domain.
Round 2: direct pairing. setup_round_two pairs every qualifying team with
every supplied judge (full cross-product over the finalist pool).

All writes are diff-based, so repeating a call with the same input
leaves the same relations (same ids) in place.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, and_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.errors import ErrorCode, NotFoundError, PreconditionError, ValidationError
from hackjudge.orm.allocation import DomainJudgeAssignment, RoundOneAllocation, RoundTwoAllocation
from hackjudge.orm.judge import Judge, JudgeType
from hackjudge.orm.round_result import RoundResult
from hackjudge.orm.score import JudgingRound
from hackjudge.orm.team import Team
from hackjudge.services.domain_registry import require_domain_keys
from hackjudge.state_machines.round_state import RoundStateMachine, validate_round_number

logger = logging.getLogger(__name__)


# =============================================================================
# Judge resolution
# =============================================================================

def _normalize_judge_ids(judge_ids: Iterable[Any]) -> List[int]:
    """Deduplicate while keeping first-seen order."""
    normalized: List[int] = []
    for raw in judge_ids:
        try:
            judge_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Judge id {raw!r} is not a valid id",
                code=ErrorCode.INVALID_INPUT,
                details={"judge_id": raw}
            )
        if judge_id not in normalized:
            normalized.append(judge_id)
    return normalized


async def resolve_eligible_judges(
    db: AsyncSession,
    judge_ids: Iterable[Any],
    judge_type: JudgeType
) -> List[Judge]:
    """
    Resolve ids to judges of the given type.

    Raises:
        ValidationError: unknown id (UNKNOWN_JUDGE) or wrong type (JUDGE_NOT_ELIGIBLE)
    """
    ids = _normalize_judge_ids(judge_ids)
    if not ids:
        return []

    result = await db.execute(select(Judge).where(Judge.id.in_(ids)))
    found = {j.id: j for j in result.scalars().all()}

    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(
            f"Unknown judge id(s): {', '.join(str(i) for i in missing)}",
            code=ErrorCode.UNKNOWN_JUDGE,
            details={"judge_ids": missing}
        )

    ineligible = [i for i in ids if found[i].judge_type != judge_type]
    if ineligible:
        raise ValidationError(
            f"Judge(s) {', '.join(str(i) for i in ineligible)} are not {judge_type.value} judges",
            code=ErrorCode.JUDGE_NOT_ELIGIBLE,
            details={"judge_ids": ineligible, "required_type": judge_type.value}
        )

    return [found[i] for i in ids]


# =============================================================================
# Round 1: domain-wide allocation
# =============================================================================

async def _existing_round_one_pairs(db: AsyncSession, domain_key: str) -> Set[Tuple[int, int]]:
    result = await db.execute(
        select(RoundOneAllocation.judge_id, RoundOneAllocation.team_id)
        .where(RoundOneAllocation.domain_key == domain_key)
    )
    return {(row.judge_id, row.team_id) for row in result.all()}


async def _materialize_round_one(
    db: AsyncSession,
    domain_key: str,
    judge_ids: Iterable[int],
    team_ids: Iterable[int]
) -> int:
    """Insert missing (judge, team) relations for a domain. Returns rows added."""
    existing = await _existing_round_one_pairs(db, domain_key)
    added = 0
    for judge_id in judge_ids:
        for team_id in team_ids:
            if (judge_id, team_id) in existing:
                continue
            db.add(RoundOneAllocation(judge_id=judge_id, team_id=team_id, domain_key=domain_key))
            added += 1
    return added


async def assign_domain_judges(
    db: AsyncSession,
    domain_key: str,
    judge_ids: Iterable[Any]
) -> List[RoundOneAllocation]:
    """
    Replace the full set of Round 1 judges for a domain.

    Judges removed from the set lose their relations in this domain;
    every remaining judge is allocated to every team currently in the
    domain. Submitted scores are untouched.

    Raises:
        ValidationError: unknown domain, unknown judge, or non-Internal judge
    """
    domain_key = (domain_key or "").strip().lower()
    await require_domain_keys(db, [domain_key])
    judges = await resolve_eligible_judges(db, judge_ids, JudgeType.INTERNAL)
    wanted = [j.id for j in judges]

    result = await db.execute(
        select(DomainJudgeAssignment).where(DomainJudgeAssignment.domain_key == domain_key)
    )
    current = {a.judge_id: a for a in result.scalars().all()}

    to_remove = [judge_id for judge_id in current if judge_id not in wanted]
    if to_remove:
        await db.execute(
            delete(DomainJudgeAssignment)
            .where(DomainJudgeAssignment.domain_key == domain_key)
            .where(DomainJudgeAssignment.judge_id.in_(to_remove))
        )
        await db.execute(
            delete(RoundOneAllocation)
            .where(RoundOneAllocation.domain_key == domain_key)
            .where(RoundOneAllocation.judge_id.in_(to_remove))
        )

    for judge_id in wanted:
        if judge_id not in current:
            db.add(DomainJudgeAssignment(domain_key=domain_key, judge_id=judge_id))

    result = await db.execute(select(Team.id).where(Team.domain_key == domain_key).order_by(Team.id))
    team_ids = list(result.scalars().all())
    added = await _materialize_round_one(db, domain_key, wanted, team_ids)
    await db.commit()

    logger.info(
        f"Domain {domain_key}: {len(wanted)} judge(s) assigned "
        f"({len(to_remove)} removed, {added} relation(s) added)"
    )
    return await list_allocations(db, domain_key=domain_key)


async def expand_team_allocations(db: AsyncSession, team: Team) -> int:
    """
    Allocate the judges of the team's domain to a (new or moved) team.
    Does not commit; the caller owns the transaction.
    """
    result = await db.execute(
        select(DomainJudgeAssignment.judge_id)
        .where(DomainJudgeAssignment.domain_key == team.domain_key)
        .order_by(DomainJudgeAssignment.judge_id)
    )
    judge_ids = list(result.scalars().all())
    if not judge_ids:
        return 0
    return await _materialize_round_one(db, team.domain_key, judge_ids, [team.id])


async def list_allocations(
    db: AsyncSession,
    judge_id: Optional[int] = None,
    domain_key: Optional[str] = None
) -> List[RoundOneAllocation]:
    """Round 1 relations, one per (judge, team), tagged with their domain."""
    query = select(RoundOneAllocation).order_by(
        RoundOneAllocation.domain_key, RoundOneAllocation.team_id, RoundOneAllocation.judge_id
    )
    if judge_id is not None:
        query = query.where(RoundOneAllocation.judge_id == judge_id)
    if domain_key is not None:
        query = query.where(RoundOneAllocation.domain_key == domain_key)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_domain_judges(db: AsyncSession, domain_key: str) -> List[Judge]:
    await require_domain_keys(db, [domain_key])
    result = await db.execute(
        select(Judge)
        .join(DomainJudgeAssignment, DomainJudgeAssignment.judge_id == Judge.id)
        .where(DomainJudgeAssignment.domain_key == domain_key)
        .order_by(Judge.id)
    )
    return list(result.scalars().all())


# =============================================================================
# Round 2: finalist pairing
# =============================================================================

async def qualifying_pool(db: AsyncSession, cutoff: Optional[int] = None) -> List[RoundResult]:
    """
    Round 1 results ranked within the per-domain promotion cutoff.
    """
    cutoff = settings.ROUND_TWO_PROMOTION_CUTOFF if cutoff is None else cutoff
    result = await db.execute(
        select(RoundResult)
        .where(RoundResult.round_number == int(JudgingRound.ONE))
        .where(RoundResult.rank <= cutoff)
        .order_by(RoundResult.domain_key, RoundResult.position)
    )
    return list(result.scalars().all())


async def setup_round_two(
    db: AsyncSession,
    judge_ids: Iterable[Any],
    cutoff: Optional[int] = None
) -> Dict[str, int]:
    """
    Build Round 2 allocations from the Round 1 qualifying pool.

    Every qualifying team is paired with every judge in judge_ids. The
    previous Round 2 allocation set is replaced.

    Raises:
        PreconditionError: Round 1 not calculated, or no qualifying teams
        ValidationError: empty judge list, unknown or non-External judge
    """
    await RoundStateMachine(db, JudgingRound.ONE).require_calculated()

    judges = await resolve_eligible_judges(db, judge_ids, JudgeType.EXTERNAL)
    if not judges:
        raise ValidationError(
            "Round 2 setup needs at least one External judge",
            code=ErrorCode.MISSING_FIELD,
            details={"field": "judge_ids"}
        )

    pool = await qualifying_pool(db, cutoff)
    if not pool:
        raise PreconditionError(
            "No Round 1 teams qualify for Round 2",
            code=ErrorCode.PREREQUISITE_NOT_MET,
            details={"cutoff": settings.ROUND_TWO_PROMOTION_CUTOFF if cutoff is None else cutoff}
        )

    # Teams removed from the directory since the snapshot cannot be paired
    result = await db.execute(select(Team.id).where(Team.id.in_([r.team_id for r in pool])))
    live_team_ids = set(result.scalars().all())
    team_ids = [r.team_id for r in pool if r.team_id in live_team_ids]
    wanted = {(j.id, t) for j in judges for t in team_ids}

    result = await db.execute(select(RoundTwoAllocation))
    current = {(a.judge_id, a.team_id): a for a in result.scalars().all()}

    removed = 0
    for pair, allocation in current.items():
        if pair not in wanted:
            await db.delete(allocation)
            removed += 1

    for judge in judges:
        for team_id in team_ids:
            if (judge.id, team_id) not in current:
                db.add(RoundTwoAllocation(judge_id=judge.id, team_id=team_id))

    await db.commit()

    logger.info(
        f"Round 2 setup: {len(team_ids)} team(s) x {len(judges)} judge(s) "
        f"= {len(wanted)} allocation(s), {removed} stale removed"
    )
    return {"teams": len(team_ids), "judges": len(judges), "allocations": len(wanted)}


async def list_round_two_allocations(
    db: AsyncSession,
    judge_id: Optional[int] = None
) -> List[RoundTwoAllocation]:
    query = select(RoundTwoAllocation).order_by(RoundTwoAllocation.team_id, RoundTwoAllocation.judge_id)
    if judge_id is not None:
        query = query.where(RoundTwoAllocation.judge_id == judge_id)
    result = await db.execute(query)
    return list(result.scalars().all())


# =============================================================================
# Manual correction + lookups
# =============================================================================

_ALLOCATION_MODELS = {
    JudgingRound.ONE: RoundOneAllocation,
    JudgingRound.TWO: RoundTwoAllocation,
}


async def remove_allocation(
    db: AsyncSession,
    allocation_id: int,
    round_number: int = JudgingRound.ONE
) -> None:
    """
    Delete a single relation. Scores already submitted under it persist.
    """
    model = _ALLOCATION_MODELS[validate_round_number(round_number)]
    allocation = await db.get(model, allocation_id)
    if allocation is None:
        raise NotFoundError("Allocation", allocation_id, code=ErrorCode.ALLOCATION_NOT_FOUND)
    await db.delete(allocation)
    await db.commit()
    logger.info(
        f"Removed round {int(round_number)} allocation {allocation_id} "
        f"(judge {allocation.judge_id}, team {allocation.team_id})"
    )


async def has_allocation(db: AsyncSession, judge_id: int, team_id: int, round_number: int) -> bool:
    model = _ALLOCATION_MODELS[validate_round_number(round_number)]
    result = await db.execute(
        select(model.id).where(and_(model.judge_id == judge_id, model.team_id == team_id))
    )
    return result.first() is not None


async def drop_judge_allocations(
    db: AsyncSession,
    judge_id: int,
    round_number: Optional[int] = None
) -> None:
    """
    Remove a judge's allocations (one round, or both). Does not commit.
    """
    rounds = [validate_round_number(round_number)] if round_number is not None else list(JudgingRound)
    if JudgingRound.ONE in rounds:
        await db.execute(delete(DomainJudgeAssignment).where(DomainJudgeAssignment.judge_id == judge_id))
        await db.execute(delete(RoundOneAllocation).where(RoundOneAllocation.judge_id == judge_id))
    if JudgingRound.TWO in rounds:
        await db.execute(delete(RoundTwoAllocation).where(RoundTwoAllocation.judge_id == judge_id))
