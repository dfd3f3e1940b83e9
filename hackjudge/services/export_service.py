"""
Results CSV Export

Flattens the current snapshot of a round into CSV. Rows follow the
snapshot read order (domain then position for Round 1, position for
Round 2). Teams deleted since the calculation keep their row with a
blank code and name.
"""
import csv
import io
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.orm.round_result import RoundResult
from hackjudge.orm.score import CRITERIA_FIELDS, QUANTIZER_2DP, to_decimal
from hackjudge.orm.team import Team
from hackjudge.services import results_service
from hackjudge.state_machines.round_state import validate_round_number

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = (
    ("rank", "team_code", "team_name", "domain_key")
    + CRITERIA_FIELDS
    + ("bonus", "total_score", "judge_count")
)


def _fmt(value) -> str:
    return f"{value.quantize(QUANTIZER_2DP):.2f}"


def result_row(result: RoundResult, team: Optional[Team] = None) -> List[str]:
    breakdown = result.breakdown()
    return (
        [
            str(result.rank),
            team.team_code if team else "",
            team.name if team else "",
            result.domain_key or "",
        ]
        + [_fmt(breakdown[field]) for field in CRITERIA_FIELDS]
        + [_fmt(breakdown["bonus"]), _fmt(to_decimal(result.total_score)), str(result.judge_count)]
    )


async def export_results_csv(db: AsyncSession, round_number: int) -> str:
    """
    Render the current snapshot of a round as CSV text.

    Before the first calculation the output is the header row only.
    """
    round_number = validate_round_number(round_number)
    results = await results_service.list_results(db, round_number)

    teams: Dict[int, Team] = {}
    if results:
        query = select(Team).where(Team.id.in_([r.team_id for r in results]))
        teams = {team.id: team for team in (await db.execute(query)).scalars().all()}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for result in results:
        writer.writerow(result_row(result, teams.get(result.team_id)))

    logger.info(f"Exported {len(results)} round {int(round_number)} result(s) to CSV")
    return buffer.getvalue()
