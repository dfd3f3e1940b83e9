"""
Concurrency Test Suite

Tests for:
- Parallel submissions for distinct keys
- Parallel resubmissions for one key keep a single row
- Serialized calculations with sequential versions
- Round 1 and Round 2 calculations share one lock
"""
import asyncio

import pytest
from sqlalchemy import select, func

from hackjudge.errors import PreconditionError
from hackjudge.orm.score import Score
from hackjudge.services import allocation_service, results_service, score_service
from hackjudge.state_machines.round_state import RoundStateMachine, calculation_lock
from hackjudge.tests.factories import make_judge, make_team, rubric


@pytest.fixture
async def judged_domain(db):
    judges = [await make_judge(db, f"J{i}") for i in range(1, 4)]
    teams = [await make_team(db, f"T{i}", "fintech") for i in range(1, 4)]
    await allocation_service.assign_domain_judges(db, "fintech", [j.id for j in judges])
    return judges, teams


class TestParallelSubmissions:

    @pytest.mark.asyncio
    async def test_distinct_keys_all_recorded(self, db, session_factory, judged_domain):
        judges, teams = judged_domain

        async def submit(judge, team):
            async with session_factory() as session:
                await score_service.submit(session, judge.id, team.id, 1, rubric(6))

        await asyncio.gather(*[submit(j, t) for j in judges for t in teams])

        result = await db.execute(select(func.count(Score.id)))
        assert result.scalar() == 9

    @pytest.mark.asyncio
    async def test_same_key_keeps_one_row(self, db, session_factory, judged_domain):
        judges, teams = judged_domain

        async def submit(value):
            async with session_factory() as session:
                await score_service.submit(session, judges[0].id, teams[0].id, 1, rubric(value))

        await asyncio.gather(*[submit(v) for v in (4, 5, 6, 7)])

        scores = await score_service.list_for_team(db, teams[0].id, 1)
        assert len(scores) == 1
        assert scores[0].verify_total()


class TestSerializedCalculations:

    @pytest.mark.asyncio
    async def test_parallel_calculations_get_sequential_versions(self, db, session_factory, judged_domain):
        judges, teams = judged_domain
        for team in teams:
            await score_service.submit(db, judges[0].id, team.id, 1, rubric(7))

        async def calculate():
            async with session_factory() as session:
                return await results_service.calculate_round_one(session)

        outcomes = await asyncio.gather(calculate(), calculate(), calculate())

        assert sorted(o["version"] for o in outcomes) == [1, 2, 3]
        assert all(o["count"] == 3 for o in outcomes)
        latest = await RoundStateMachine(db, 1).latest()
        assert latest.version == 3

    @pytest.mark.asyncio
    async def test_round_two_waits_for_running_calculation(self, session_factory):
        async def calculate_round_two():
            async with session_factory() as session:
                return await results_service.calculate_round_two(session)

        lock = calculation_lock()
        await lock.acquire()
        try:
            task = asyncio.create_task(calculate_round_two())
            await asyncio.sleep(0.05)
            assert not task.done()
        finally:
            lock.release()

        with pytest.raises(PreconditionError):
            await task
