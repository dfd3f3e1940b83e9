"""
Allocation Engine Test Suite

Tests for:
- Domain-wide Round 1 expansion
- Idempotent replacement of a domain's judge set
- Judge eligibility per round
- Round 2 setup preconditions and the qualifying pool
- Manual removal keeping scores
"""
import pytest

from hackjudge.errors import ErrorCode, NotFoundError, PreconditionError, ValidationError
from hackjudge.orm.judge import JudgeType
from hackjudge.services import allocation_service, results_service, score_service
from hackjudge.tests.factories import make_judge, make_team, rubric


def _pairs(allocations):
    return sorted((a.judge_id, a.team_id) for a in allocations)


class TestRoundOneAllocation:
    """Domain-wide assignment expanded per team."""

    @pytest.mark.asyncio
    async def test_two_judges_two_teams_gives_four_relations(self, db):
        t1 = await make_team(db, "T1", "fintech")
        t2 = await make_team(db, "T2", "fintech")
        j1 = await make_judge(db, "J1")
        j2 = await make_judge(db, "J2")

        allocations = await allocation_service.assign_domain_judges(db, "fintech", [j1.id, j2.id])

        assert _pairs(allocations) == sorted([
            (j1.id, t1.id), (j1.id, t2.id), (j2.id, t1.id), (j2.id, t2.id)
        ])
        assert all(a.domain_key == "fintech" for a in allocations)

    @pytest.mark.asyncio
    async def test_assignment_is_idempotent(self, db):
        await make_team(db, "T1", "fintech")
        j1 = await make_judge(db, "J1")

        first = await allocation_service.assign_domain_judges(db, "fintech", [j1.id])
        second = await allocation_service.assign_domain_judges(db, "fintech", [j1.id])

        assert _pairs(first) == _pairs(second)
        assert len(await allocation_service.list_allocations(db)) == 1

    @pytest.mark.asyncio
    async def test_replacing_judge_set_drops_removed_judges(self, db):
        t1 = await make_team(db, "T1", "fintech")
        j1 = await make_judge(db, "J1")
        j2 = await make_judge(db, "J2")

        await allocation_service.assign_domain_judges(db, "fintech", [j1.id, j2.id])
        allocations = await allocation_service.assign_domain_judges(db, "fintech", [j2.id])

        assert _pairs(allocations) == [(j2.id, t1.id)]
        judges = await allocation_service.list_domain_judges(db, "fintech")
        assert [j.id for j in judges] == [j2.id]

    @pytest.mark.asyncio
    async def test_domains_are_independent(self, db):
        await make_team(db, "T1", "fintech")
        t2 = await make_team(db, "T2", "healthtech")
        j1 = await make_judge(db, "J1")

        await allocation_service.assign_domain_judges(db, "healthtech", [j1.id])

        allocations = await allocation_service.list_allocations(db, judge_id=j1.id)
        assert _pairs(allocations) == [(j1.id, t2.id)]

    @pytest.mark.asyncio
    async def test_team_added_later_is_allocated(self, db):
        j1 = await make_judge(db, "J1")
        await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [j1.id])

        t2 = await make_team(db, "T2", "fintech")

        assert await allocation_service.has_allocation(db, j1.id, t2.id, 1)

    @pytest.mark.asyncio
    async def test_unknown_domain_rejected(self, db):
        j1 = await make_judge(db, "J1")

        with pytest.raises(ValidationError) as exc_info:
            await allocation_service.assign_domain_judges(db, "space", [j1.id])

        assert exc_info.value.code == ErrorCode.UNKNOWN_DOMAIN

    @pytest.mark.asyncio
    async def test_unknown_judge_rejected(self, db):
        with pytest.raises(ValidationError) as exc_info:
            await allocation_service.assign_domain_judges(db, "fintech", [999])

        assert exc_info.value.code == ErrorCode.UNKNOWN_JUDGE

    @pytest.mark.asyncio
    async def test_external_judge_not_eligible_for_round_one(self, db):
        external = await make_judge(db, "X1", JudgeType.EXTERNAL)

        with pytest.raises(ValidationError) as exc_info:
            await allocation_service.assign_domain_judges(db, "fintech", [external.id])

        assert exc_info.value.code == ErrorCode.JUDGE_NOT_ELIGIBLE


class TestRoundTwoSetup:
    """Finalist pairing from the Round 1 snapshot."""

    @pytest.mark.asyncio
    async def test_setup_before_round_one_calculated_fails(self, db):
        external = await make_judge(db, "X1", JudgeType.EXTERNAL)

        with pytest.raises(PreconditionError) as exc_info:
            await allocation_service.setup_round_two(db, [external.id])

        assert exc_info.value.code == ErrorCode.ROUND_ONE_NOT_CALCULATED
        assert await allocation_service.list_round_two_allocations(db) == []

    @pytest.mark.asyncio
    async def test_setup_pairs_pool_with_every_judge(self, db):
        judge = await make_judge(db, "J1")
        teams = [await make_team(db, f"T{i}", "fintech") for i in range(1, 5)]
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        for i, team in enumerate(teams):
            await score_service.submit(db, judge.id, team.id, 1, rubric(5 + i))
        await results_service.calculate_round_one(db)

        x1 = await make_judge(db, "X1", JudgeType.EXTERNAL)
        x2 = await make_judge(db, "X2", JudgeType.EXTERNAL)
        summary = await allocation_service.setup_round_two(db, [x1.id, x2.id], cutoff=3)

        assert summary == {"teams": 3, "judges": 2, "allocations": 6}
        allocated_teams = {a.team_id for a in await allocation_service.list_round_two_allocations(db)}
        # Lowest scorer (T1) misses the cutoff
        assert allocated_teams == {t.id for t in teams[1:]}

    @pytest.mark.asyncio
    async def test_setup_replaces_previous_round_two_set(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(8))
        await results_service.calculate_round_one(db)

        x1 = await make_judge(db, "X1", JudgeType.EXTERNAL)
        x2 = await make_judge(db, "X2", JudgeType.EXTERNAL)
        await allocation_service.setup_round_two(db, [x1.id])
        await allocation_service.setup_round_two(db, [x2.id])

        allocations = await allocation_service.list_round_two_allocations(db)
        assert _pairs(allocations) == [(x2.id, team.id)]

    @pytest.mark.asyncio
    async def test_internal_judge_not_eligible_for_round_two(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(8))
        await results_service.calculate_round_one(db)

        with pytest.raises(ValidationError) as exc_info:
            await allocation_service.setup_round_two(db, [judge.id])

        assert exc_info.value.code == ErrorCode.JUDGE_NOT_ELIGIBLE

    @pytest.mark.asyncio
    async def test_empty_judge_list_rejected(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(8))
        await results_service.calculate_round_one(db)

        with pytest.raises(ValidationError):
            await allocation_service.setup_round_two(db, [])


class TestManualRemoval:
    """Single-relation removal."""

    @pytest.mark.asyncio
    async def test_remove_allocation_keeps_scores(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1", "fintech")
        [allocation] = await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(6))

        await allocation_service.remove_allocation(db, allocation.id)

        assert not await allocation_service.has_allocation(db, judge.id, team.id, 1)
        scores = await score_service.list_for_team(db, team.id, 1)
        assert len(scores) == 1

    @pytest.mark.asyncio
    async def test_remove_unknown_allocation(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            await allocation_service.remove_allocation(db, 12345)

        assert exc_info.value.code == ErrorCode.ALLOCATION_NOT_FOUND
