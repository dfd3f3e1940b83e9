"""
Results CSV Export Test Suite
"""
import csv
import io

import pytest

from hackjudge.services import allocation_service, directory_service, results_service, score_service
from hackjudge.services.export_service import EXPORT_COLUMNS, export_results_csv
from hackjudge.tests.factories import make_judge, make_team, rubric


def _rows(content):
    return list(csv.reader(io.StringIO(content)))


class TestExport:

    def test_column_order(self):
        assert EXPORT_COLUMNS == (
            "rank", "team_code", "team_name", "domain_key",
            "problem_identification", "innovation_creativity", "feasibility_practicality",
            "market_impact_potential", "technology_domain_relevance", "pitch_delivery_qa",
            "bonus", "total_score", "judge_count",
        )

    @pytest.mark.asyncio
    async def test_header_only_before_calculation(self, db):
        content = await export_results_csv(db, 1)
        assert _rows(content) == [list(EXPORT_COLUMNS)]

    @pytest.mark.asyncio
    async def test_rows_follow_snapshot_order(self, db):
        judge = await make_judge(db, "J1")
        t1 = await make_team(db, "T1", "fintech", name="Alpha")
        t2 = await make_team(db, "T2", "fintech", name="Beta")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, t1.id, 1, rubric(6))
        await score_service.submit(db, judge.id, t2.id, 1, rubric(8, bonus="2.5"))
        await results_service.calculate_round_one(db)

        header, first, second = _rows(await export_results_csv(db, 1))

        assert header == list(EXPORT_COLUMNS)
        assert first == [
            "1", "T2", "Beta", "fintech",
            "8.00", "8.00", "8.00", "8.00", "8.00", "8.00",
            "2.50", "50.50", "1",
        ]
        assert second[0:3] == ["2", "T1", "Alpha"]

    @pytest.mark.asyncio
    async def test_deleted_team_keeps_blank_identity(self, db):
        judge = await make_judge(db, "J1")
        team = await make_team(db, "T1", "fintech")
        await allocation_service.assign_domain_judges(db, "fintech", [judge.id])
        await score_service.submit(db, judge.id, team.id, 1, rubric(7))
        await results_service.calculate_round_one(db)

        await directory_service.delete_team(db, team.id)

        _, row = _rows(await export_results_csv(db, 1))
        assert row[0:4] == ["1", "", "", "fintech"]
