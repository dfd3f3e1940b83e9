"""
Score Submission Ledger

One current score per (judge, team, round); a resubmission overwrites
the row and refreshes its timestamp. Every submission must be backed by
an allocation for that round:
- Round 1: the domain-wide expansion (RoundOneAllocation)
- Round 2: the direct pairing (RoundTwoAllocation)

The ledger never touches result snapshots. A write after a calculation
only makes that round's status report stale.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import AuthorizationError, ErrorCode, ValidationError, from_pydantic
from hackjudge.orm.allocation import RoundOneAllocation, RoundTwoAllocation
from hackjudge.orm.judge import Judge
from hackjudge.orm.score import JudgingRound, Score
from hackjudge.orm.team import Team
from hackjudge.schemas.rubric import AdminScoreEntry, RubricInput, ScoreEntry
from hackjudge.services.allocation_service import has_allocation
from hackjudge.services.directory_service import get_judge, get_team
from hackjudge.state_machines.round_state import validate_round_number

logger = logging.getLogger(__name__)


def parse_rubric(rubric: Union[Mapping[str, Any], RubricInput]) -> RubricInput:
    if isinstance(rubric, RubricInput):
        return rubric
    try:
        return RubricInput(**dict(rubric))
    except PydanticValidationError as e:
        raise from_pydantic(e, "rubric")


async def _authorize(db: AsyncSession, judge: Judge, team: Team, round_number: JudgingRound) -> None:
    if not await has_allocation(db, judge.id, team.id, round_number):
        raise AuthorizationError(
            f"Judge {judge.id} is not allocated to team {team.id} for round {int(round_number)}",
            details={"judge_id": judge.id, "team_id": team.id, "round": int(round_number)}
        )


async def _find_score(db: AsyncSession, judge_id: int, team_id: int, round_number: int) -> Optional[Score]:
    result = await db.execute(
        select(Score)
        .where(Score.judge_id == judge_id)
        .where(Score.team_id == team_id)
        .where(Score.round_number == int(round_number))
    )
    return result.scalar_one_or_none()


async def _upsert(
    db: AsyncSession,
    judge_id: int,
    team_id: int,
    domain_key: str,
    round_number: JudgingRound,
    rubric: RubricInput
) -> Score:
    """Stage an insert or in-place overwrite. Does not commit."""
    score = await _find_score(db, judge_id, team_id, round_number)
    if score is None:
        score = Score(judge_id=judge_id, team_id=team_id, round_number=int(round_number))
        db.add(score)
    score.domain_key = domain_key
    score.apply_rubric(rubric.as_mapping())
    score.created_at = datetime.utcnow()
    return score


async def submit(
    db: AsyncSession,
    judge_id: int,
    team_id: int,
    round_number: int,
    rubric: Union[Mapping[str, Any], RubricInput]
) -> Score:
    """
    Record a judge's score for a team in a round (last write wins).

    Raises:
        ValidationError: bad round or out-of-range rubric value
        NotFoundError: unknown judge or team
        AuthorizationError: no allocation links the judge to the team for this round
    """
    round_number = validate_round_number(round_number)
    parsed = parse_rubric(rubric)
    judge = await get_judge(db, judge_id)
    team = await get_team(db, team_id)
    await _authorize(db, judge, team, round_number)
    key = (judge.id, team.id, team.domain_key)

    score = await _upsert(db, *key, round_number, parsed)
    try:
        await db.commit()
    except IntegrityError:
        # Lost an insert race on (judge, team, round): overwrite the winner
        await db.rollback()
        score = await _upsert(db, *key, round_number, parsed)
        await db.commit()

    logger.info(
        f"Score recorded: judge {key[0]} team {key[1]} round {int(round_number)} total {score.total}"
    )
    return score


async def submit_bulk(
    db: AsyncSession,
    judge_id: int,
    round_number: int,
    entries: Iterable[Union[Mapping[str, Any], ScoreEntry]]
) -> List[Score]:
    """
    Submit many scores for one judge, all-or-nothing.

    Every entry is validated and authorized before any row is written.
    """
    round_number = validate_round_number(round_number)
    parsed = _parse_entries(ScoreEntry, entries)

    team_ids = [p.team_id for p in parsed]
    duplicates = sorted({t for t in team_ids if team_ids.count(t) > 1})
    if duplicates:
        raise ValidationError(
            f"Team(s) scored more than once in one batch: {', '.join(str(t) for t in duplicates)}",
            code=ErrorCode.INVALID_INPUT,
            details={"team_ids": duplicates}
        )

    judge = await get_judge(db, judge_id)
    pairs = []
    for entry in parsed:
        team = await get_team(db, entry.team_id)
        await _authorize(db, judge, team, round_number)
        pairs.append((judge, team, entry))

    scores = await _write_batch(db, round_number, pairs)
    logger.info(f"Bulk scores recorded: judge {judge.id} round {int(round_number)} count {len(scores)}")
    return scores


async def submit_bulk_admin(
    db: AsyncSession,
    round_number: int,
    entries: Iterable[Union[Mapping[str, Any], AdminScoreEntry]]
) -> List[Score]:
    """
    Submit scores on behalf of several judges, all-or-nothing.

    Each entry names its judge and team. The allocation check applies to
    every entry exactly as it would for the judge submitting directly.
    """
    round_number = validate_round_number(round_number)
    parsed = _parse_entries(AdminScoreEntry, entries)

    keys = [(p.judge_id, p.team_id) for p in parsed]
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        raise ValidationError(
            "Judge/team pair(s) scored more than once in one batch: "
            + ", ".join(f"{j}/{t}" for j, t in duplicates),
            code=ErrorCode.INVALID_INPUT,
            details={"pairs": [list(k) for k in duplicates]}
        )

    judges: Dict[int, Judge] = {}
    pairs = []
    for entry in parsed:
        if entry.judge_id not in judges:
            judges[entry.judge_id] = await get_judge(db, entry.judge_id)
        judge = judges[entry.judge_id]
        team = await get_team(db, entry.team_id)
        await _authorize(db, judge, team, round_number)
        pairs.append((judge, team, entry))

    scores = await _write_batch(db, round_number, pairs)
    logger.info(
        f"Admin bulk scores recorded: round {int(round_number)} count {len(scores)} "
        f"across {len(judges)} judge(s)"
    )
    return scores


def _parse_entries(schema, entries: Iterable[Any]) -> List[Any]:
    parsed = []
    for index, entry in enumerate(entries):
        if isinstance(entry, schema):
            parsed.append(entry)
            continue
        try:
            parsed.append(schema(**dict(entry)))
        except PydanticValidationError as e:
            error = from_pydantic(e, f"score entry {index}")
            error.details["index"] = index
            raise error
    if not parsed:
        raise ValidationError("No scores supplied", code=ErrorCode.MISSING_FIELD)
    return parsed


async def _write_batch(db: AsyncSession, round_number: JudgingRound, pairs: List[tuple]) -> List[Score]:
    """Stage every (judge, team, entry) upsert, then commit once."""
    scores = []
    for judge, team, entry in pairs:
        rubric = RubricInput(**entry.model_dump(include=set(RubricInput.model_fields)))
        scores.append(await _upsert(db, judge.id, team.id, team.domain_key, round_number, rubric))
    await db.commit()
    return scores


async def list_for_judge(
    db: AsyncSession,
    judge_id: int,
    round_number: int,
    domain_key: Optional[str] = None
) -> List[Score]:
    round_number = validate_round_number(round_number)
    query = (
        select(Score)
        .where(Score.judge_id == judge_id)
        .where(Score.round_number == int(round_number))
        .order_by(Score.team_id)
    )
    if domain_key is not None:
        query = query.where(Score.domain_key == domain_key)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_for_team(
    db: AsyncSession,
    team_id: int,
    round_number: int,
    domain_key: Optional[str] = None
) -> List[Score]:
    round_number = validate_round_number(round_number)
    query = (
        select(Score)
        .where(Score.team_id == team_id)
        .where(Score.round_number == int(round_number))
        .order_by(Score.judge_id)
    )
    if domain_key is not None:
        query = query.where(Score.domain_key == domain_key)
    result = await db.execute(query)
    return list(result.scalars().all())


async def count_by_judge(
    db: AsyncSession,
    domain_key: Optional[str] = None,
    round_number: int = JudgingRound.ONE
) -> Dict[int, int]:
    """Mapping judge_id -> number of current scores."""
    round_number = validate_round_number(round_number)
    query = (
        select(Score.judge_id, func.count(Score.id))
        .where(Score.round_number == int(round_number))
        .group_by(Score.judge_id)
    )
    if domain_key is not None:
        query = query.where(Score.domain_key == domain_key)
    result = await db.execute(query)
    return {judge_id: count for judge_id, count in result.all()}


async def incomplete_judges(
    db: AsyncSession,
    round_number: int = JudgingRound.ONE
) -> Dict[int, Dict[str, int]]:
    """
    Judges who have scored fewer teams than they are allocated to.

    Returns judge_id -> {"allocated": n, "scored": m} for every judge
    with m < n. Only scores for currently allocated teams count.
    """
    round_number = validate_round_number(round_number)
    model = RoundOneAllocation if round_number == JudgingRound.ONE else RoundTwoAllocation

    result = await db.execute(
        select(model.judge_id, func.count(model.id)).group_by(model.judge_id)
    )
    allocated = {judge_id: count for judge_id, count in result.all()}

    result = await db.execute(
        select(model.judge_id, func.count(Score.id))
        .join(
            Score,
            (Score.judge_id == model.judge_id)
            & (Score.team_id == model.team_id)
            & (Score.round_number == int(round_number))
        )
        .group_by(model.judge_id)
    )
    scored = {judge_id: count for judge_id, count in result.all()}

    return {
        judge_id: {"allocated": count, "scored": scored.get(judge_id, 0)}
        for judge_id, count in sorted(allocated.items())
        if scored.get(judge_id, 0) < count
    }
