"""
Team & Judge Directory Service

Holds team and judge records keyed by stable ids. Inputs are validated
with pydantic schemas and translated into the core error taxonomy.

Removing a team or judge removes its allocations but never its scores.
"""
import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ErrorCode, NotFoundError, ValidationError, from_pydantic
from hackjudge.orm.allocation import DomainJudgeAssignment, RoundOneAllocation, RoundTwoAllocation
from hackjudge.orm.judge import Judge, JudgeType
from hackjudge.orm.team import Team
from hackjudge.schemas.directory import JudgeCreate, JudgeUpdate, TeamCreate, TeamUpdate
from hackjudge.services import allocation_service
from hackjudge.services.domain_registry import require_domain_keys

logger = logging.getLogger(__name__)


def _parse(schema, data: Union[Mapping[str, Any], Any], entity: str):
    if isinstance(data, schema):
        return data
    try:
        return schema(**dict(data))
    except PydanticValidationError as e:
        raise from_pydantic(e, entity)


# =============================================================================
# Teams
# =============================================================================

async def get_team(db: AsyncSession, team_id: int) -> Team:
    team = await db.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id, code=ErrorCode.TEAM_NOT_FOUND)
    return team


async def get_team_by_code(db: AsyncSession, team_code: str) -> Team:
    result = await db.execute(select(Team).where(Team.team_code == team_code))
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError("Team", team_code, code=ErrorCode.TEAM_NOT_FOUND)
    return team


async def list_teams(db: AsyncSession, domain_key: Optional[str] = None) -> List[Team]:
    query = select(Team).order_by(Team.id)
    if domain_key is not None:
        query = query.where(Team.domain_key == domain_key)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _check_team_codes_free(db: AsyncSession, codes: List[str]) -> None:
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    result = await db.execute(select(Team.team_code).where(Team.team_code.in_(codes)))
    duplicates += sorted(set(result.scalars().all()) - set(duplicates))
    if duplicates:
        raise ValidationError(
            f"Team code(s) already in use: {', '.join(duplicates)}",
            code=ErrorCode.DUPLICATE_CODE,
            details={"team_codes": duplicates}
        )


async def create_teams_bulk(db: AsyncSession, entries: Iterable[Mapping[str, Any]]) -> List[Team]:
    """
    Create many teams atomically. Every entry is validated before any
    row is written; one bad entry rejects the whole batch.
    """
    parsed = [_parse(TeamCreate, entry, "team") for entry in entries]
    if not parsed:
        raise ValidationError("No teams supplied", code=ErrorCode.MISSING_FIELD)

    await require_domain_keys(db, {p.domain_key for p in parsed})
    await _check_team_codes_free(db, [p.team_code for p in parsed])

    teams = [Team(**p.model_dump()) for p in parsed]
    db.add_all(teams)
    try:
        await db.flush()
        for team in teams:
            await allocation_service.expand_team_allocations(db, team)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationError(
            "Team code already in use",
            code=ErrorCode.DUPLICATE_CODE,
            details={"reason": str(e.orig)}
        )

    logger.info(f"Created {len(teams)} team(s)")
    return teams


async def create_team(db: AsyncSession, data: Union[Mapping[str, Any], TeamCreate]) -> Team:
    teams = await create_teams_bulk(db, [data])
    return teams[0]


async def update_team(db: AsyncSession, team_id: int, data: Union[Mapping[str, Any], TeamUpdate]) -> Team:
    """Update name / problem statement / idea. Never touches the domain."""
    payload = dict(data) if not isinstance(data, TeamUpdate) else data.model_dump(exclude_unset=True)
    if "domain_key" in payload:
        raise ValidationError(
            "domain_key cannot be changed by update; use reassign_team_domain",
            code=ErrorCode.INVALID_INPUT,
            details={"field": "domain_key"}
        )
    parsed = _parse(TeamUpdate, payload, "team")
    team = await get_team(db, team_id)
    for field, value in parsed.model_dump(exclude_unset=True).items():
        setattr(team, field, value)
    await db.commit()
    return team


async def reassign_team_domain(db: AsyncSession, team_id: int, domain_key: str) -> Team:
    """
    Move a team to another domain.

    Round 1 allocations are rebuilt from the new domain's judges. Scores
    already submitted keep the domain they were submitted under, so they
    no longer count towards the team's Round 1 result.
    """
    team = await get_team(db, team_id)
    domain_key = (domain_key or "").strip().lower()
    await require_domain_keys(db, [domain_key])
    if team.domain_key == domain_key:
        return team

    old_domain = team.domain_key
    await db.execute(delete(RoundOneAllocation).where(RoundOneAllocation.team_id == team.id))
    team.domain_key = domain_key
    await db.flush()
    await allocation_service.expand_team_allocations(db, team)
    await db.commit()

    logger.info(f"Team {team.id} reassigned from domain {old_domain} to {domain_key}")
    return team


async def delete_team(db: AsyncSession, team_id: int) -> None:
    team = await get_team(db, team_id)
    await db.execute(delete(RoundOneAllocation).where(RoundOneAllocation.team_id == team.id))
    await db.execute(delete(RoundTwoAllocation).where(RoundTwoAllocation.team_id == team.id))
    await db.delete(team)
    await db.commit()
    logger.info(f"Deleted team {team_id}; submitted scores retained")


async def delete_all_teams(db: AsyncSession) -> int:
    """Remove every team and its allocations. Scores are kept. Returns the count removed."""
    await db.execute(delete(RoundOneAllocation))
    await db.execute(delete(RoundTwoAllocation))
    result = await db.execute(delete(Team))
    await db.commit()
    logger.info(f"Deleted {result.rowcount} team(s); submitted scores retained")
    return result.rowcount


# =============================================================================
# Judges
# =============================================================================

async def get_judge(db: AsyncSession, judge_id: int) -> Judge:
    judge = await db.get(Judge, judge_id)
    if judge is None:
        raise NotFoundError("Judge", judge_id, code=ErrorCode.JUDGE_NOT_FOUND)
    return judge


async def get_judge_by_code(db: AsyncSession, judge_code: str) -> Judge:
    result = await db.execute(select(Judge).where(Judge.judge_code == judge_code))
    judge = result.scalar_one_or_none()
    if judge is None:
        raise NotFoundError("Judge", judge_code, code=ErrorCode.JUDGE_NOT_FOUND)
    return judge


async def list_judges(db: AsyncSession, judge_type: Optional[JudgeType] = None) -> List[Judge]:
    query = select(Judge).order_by(Judge.id)
    if judge_type is not None:
        query = query.where(Judge.judge_type == judge_type)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _check_judge_codes_free(db: AsyncSession, codes: List[str], exclude_id: Optional[int] = None) -> None:
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    query = select(Judge.judge_code).where(Judge.judge_code.in_(codes))
    if exclude_id is not None:
        query = query.where(Judge.id != exclude_id)
    result = await db.execute(query)
    duplicates += sorted(set(result.scalars().all()) - set(duplicates))
    if duplicates:
        raise ValidationError(
            f"Judge code(s) already in use: {', '.join(duplicates)}",
            code=ErrorCode.DUPLICATE_CODE,
            details={"judge_codes": duplicates}
        )


async def create_judges_bulk(db: AsyncSession, entries: Iterable[Mapping[str, Any]]) -> List[Judge]:
    """Create many judges atomically. judge_type is required on every entry."""
    parsed = [_parse(JudgeCreate, entry, "judge") for entry in entries]
    if not parsed:
        raise ValidationError("No judges supplied", code=ErrorCode.MISSING_FIELD)

    await _check_judge_codes_free(db, [p.judge_code for p in parsed])

    judges = [Judge(**p.model_dump()) for p in parsed]
    db.add_all(judges)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationError(
            "Judge code already in use",
            code=ErrorCode.DUPLICATE_CODE,
            details={"reason": str(e.orig)}
        )

    logger.info(f"Created {len(judges)} judge(s)")
    return judges


async def create_judge(db: AsyncSession, data: Union[Mapping[str, Any], JudgeCreate]) -> Judge:
    judges = await create_judges_bulk(db, [data])
    return judges[0]


async def update_judge(db: AsyncSession, judge_id: int, data: Union[Mapping[str, Any], JudgeUpdate]) -> Judge:
    """
    Update a judge. Changing judge_type drops the allocations of the
    round the judge is no longer eligible for.
    """
    parsed = _parse(JudgeUpdate, data, "judge")
    judge = await get_judge(db, judge_id)
    changes = parsed.model_dump(exclude_unset=True, exclude_none=True)

    if "judge_code" in changes and changes["judge_code"] != judge.judge_code:
        await _check_judge_codes_free(db, [changes["judge_code"]], exclude_id=judge.id)

    new_type = changes.get("judge_type")
    if new_type is not None and new_type != judge.judge_type:
        await allocation_service.drop_judge_allocations(
            db, judge.id, round_number=judge.round_number
        )
        logger.info(f"Judge {judge.id} type changed {judge.judge_type.value} -> {new_type.value}")

    for field, value in changes.items():
        setattr(judge, field, value)
    await db.commit()
    return judge


async def delete_judge(db: AsyncSession, judge_id: int) -> None:
    judge = await get_judge(db, judge_id)
    await allocation_service.drop_judge_allocations(db, judge.id)
    await db.delete(judge)
    await db.commit()
    logger.info(f"Deleted judge {judge_id}; submitted scores retained")


async def delete_all_judges(db: AsyncSession) -> int:
    """Remove every judge, domain assignment and allocation. Scores are kept."""
    await db.execute(delete(DomainJudgeAssignment))
    await db.execute(delete(RoundOneAllocation))
    await db.execute(delete(RoundTwoAllocation))
    result = await db.execute(delete(Judge))
    await db.commit()
    logger.info(f"Deleted {result.rowcount} judge(s); submitted scores retained")
    return result.rowcount
