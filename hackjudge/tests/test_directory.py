"""
Team & Judge Directory Test Suite
"""
import pytest

from hackjudge.errors import ErrorCode, NotFoundError, ValidationError
from hackjudge.orm.judge import JudgeType
from hackjudge.services import allocation_service, directory_service, domain_registry, score_service
from hackjudge.tests.factories import make_judge, make_team, rubric


class TestDomainRegistry:

    @pytest.mark.asyncio
    async def test_domains_loaded_in_key_order(self, db):
        domains = await domain_registry.load_domains(db)
        assert [d.key for d in domains] == ["edtech", "fintech", "healthtech"]

    @pytest.mark.asyncio
    async def test_unknown_domain_not_found(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            await domain_registry.get_domain(db, "space")
        assert exc_info.value.code == ErrorCode.DOMAIN_NOT_FOUND

    @pytest.mark.asyncio
    async def test_seeding_is_idempotent(self, db):
        from hackjudge.seed.seed_domains import seed_domains

        created = await seed_domains(db, [("fintech", "Renamed"), ("agritech", "Agritech")])

        assert [d.key for d in created] == ["agritech"]
        fintech = await domain_registry.get_domain(db, "fintech")
        assert fintech.name == "Fintech"


class TestTeams:

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, db):
        team = await make_team(db, "T1", "FinTech", name="Ledger Lords")

        assert team.domain_key == "fintech"
        found = await directory_service.get_team_by_code(db, "T1")
        assert found.id == team.id
        assert found.name == "Ledger Lords"

    @pytest.mark.asyncio
    async def test_unknown_domain_rejected(self, db):
        with pytest.raises(ValidationError) as exc_info:
            await make_team(db, "T1", "space")
        assert exc_info.value.code == ErrorCode.UNKNOWN_DOMAIN

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, db):
        with pytest.raises(ValidationError):
            await directory_service.create_team(db, {
                "team_code": "T1", "name": "  ", "domain_key": "fintech", "problem_statement": "x"
            })

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected(self, db):
        await make_team(db, "T1")
        with pytest.raises(ValidationError) as exc_info:
            await make_team(db, "T1")
        assert exc_info.value.code == ErrorCode.DUPLICATE_CODE

    @pytest.mark.asyncio
    async def test_bulk_create_is_all_or_nothing(self, db):
        with pytest.raises(ValidationError):
            await directory_service.create_teams_bulk(db, [
                {"team_code": "A", "name": "A", "domain_key": "fintech", "problem_statement": "x"},
                {"team_code": "B", "name": "B", "domain_key": "space", "problem_statement": "x"},
            ])
        assert await directory_service.list_teams(db) == []

    @pytest.mark.asyncio
    async def test_update_cannot_change_domain(self, db):
        team = await make_team(db, "T1")
        with pytest.raises(ValidationError):
            await directory_service.update_team(db, team.id, {"domain_key": "edtech"})

        updated = await directory_service.update_team(db, team.id, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert updated.domain_key == "fintech"

    @pytest.mark.asyncio
    async def test_reassign_rebuilds_round_one_allocations(self, db):
        fin_judge = await make_judge(db, "J1")
        edu_judge = await make_judge(db, "J2")
        team = await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [fin_judge.id])
        await allocation_service.assign_domain_judges(db, "edtech", [edu_judge.id])

        await directory_service.reassign_team_domain(db, team.id, "edtech")

        assert not await allocation_service.has_allocation(db, fin_judge.id, team.id, 1)
        assert await allocation_service.has_allocation(db, edu_judge.id, team.id, 1)

    @pytest.mark.asyncio
    async def test_delete_team_keeps_scores(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(7))

        await directory_service.delete_team(db, team.id)

        with pytest.raises(NotFoundError):
            await directory_service.get_team(db, team.id)
        assert await allocation_service.list_allocations(db) == []
        assert len(await score_service.list_for_judge(db, judge.id, 1)) == 1


class TestJudges:

    @pytest.mark.asyncio
    async def test_judge_type_is_required(self, db):
        with pytest.raises(ValidationError):
            await directory_service.create_judge(db, {"judge_code": "J1", "name": "Ada"})

    @pytest.mark.asyncio
    async def test_judge_type_is_never_inferred_from_code(self, db):
        judge = await make_judge(db, "J42", JudgeType.INTERNAL)
        assert judge.judge_type == JudgeType.INTERNAL
        assert judge.round_number == 1

    @pytest.mark.asyncio
    async def test_list_by_type(self, db):
        await make_judge(db, "J1")
        external = await make_judge(db, "X1", JudgeType.EXTERNAL)

        judges = await directory_service.list_judges(db, JudgeType.EXTERNAL)

        assert [j.id for j in judges] == [external.id]

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected_on_update(self, db):
        await make_judge(db, "J1")
        other = await make_judge(db, "J2")

        with pytest.raises(ValidationError) as exc_info:
            await directory_service.update_judge(db, other.id, {"judge_code": "J1"})
        assert exc_info.value.code == ErrorCode.DUPLICATE_CODE

    @pytest.mark.asyncio
    async def test_delete_judge_removes_allocations(self, db):
        judge = await make_judge(db, "J1")
        await make_team(db, "T1")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])

        await directory_service.delete_judge(db, judge.id)

        assert await allocation_service.list_allocations(db) == []
        assert await allocation_service.list_domain_judges(db, "fintech") == []


class TestClearDirectory:
    """Delete-all keeps the ledger intact."""

    @pytest.fixture
    async def scored(self, db):
        judge = await make_judge(db, "J1")
        t1 = await make_team(db, "T1")
        t2 = await make_team(db, "T2")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, t1.id, 1, rubric(7))
        return judge, t1, t2

    @pytest.mark.asyncio
    async def test_delete_all_teams_keeps_scores(self, db, scored):
        judge, _, _ = scored

        removed = await directory_service.delete_all_teams(db)

        assert removed == 2
        assert await directory_service.list_teams(db) == []
        assert await allocation_service.list_allocations(db) == []
        assert [j.id for j in await allocation_service.list_domain_judges(db, "fintech")] == [judge.id]
        assert len(await score_service.list_for_judge(db, judge.id, 1)) == 1

    @pytest.mark.asyncio
    async def test_delete_all_judges_keeps_scores(self, db, scored):
        judge, t1, _ = scored

        removed = await directory_service.delete_all_judges(db)

        assert removed == 1
        assert await directory_service.list_judges(db) == []
        assert await allocation_service.list_allocations(db) == []
        assert await allocation_service.list_domain_judges(db, "fintech") == []
        assert len(await score_service.list_for_team(db, t1.id, 1)) == 1

    @pytest.mark.asyncio
    async def test_new_team_after_clearing_judges_has_no_allocations(self, db, scored):
        await directory_service.delete_all_judges(db)

        await make_team(db, "T3")

        assert await allocation_service.list_allocations(db) == []
