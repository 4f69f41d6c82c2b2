"""
Unit Tests for authId Correction (plan / apply)

Run with: pytest tests/test_identity_fix.py -v
"""

import pytest

from remediation.identity_fix import IdentityFixPlanner
from remediation.models import RemediationPlan

from fakes import InMemoryPersonRepository


@pytest.fixture
def persons():
    repo = InMemoryPersonRepository()
    repo.add("052", auth_id="052", employee_code="052")
    repo.add("061", auth_id="old-061", employee_code="061")
    repo.add("062", auth_id=None, employee_code="062")
    repo.add("uid-9", auth_id="uid-9", employee_code="E9")
    repo.add("bad", employee_code="bad", status="deleted")
    return repo


class TestPlan:

    @pytest.mark.asyncio
    async def test_partial_records_get_proposal(self, persons):
        plan = await IdentityFixPlanner(persons).plan()
        by_id = {item.id: item for item in plan.items}

        assert by_id["061"].proposed_write == {"auth_id": "061"}
        assert by_id["062"].proposed_write == {"auth_id": "062"}
        assert by_id["061"].detected_issues == ["authId is 'old-061', expected '061'"]

    @pytest.mark.asyncio
    async def test_inconsistent_records_need_manual_review(self, persons):
        plan = await IdentityFixPlanner(persons).plan()
        item = next(i for i in plan.items if i.id == "uid-9")

        assert item.proposed_write is None
        assert item.details["manual_review"] is True
        assert item.details["level"] == "inconsistent"

    @pytest.mark.asyncio
    async def test_consistent_records_not_listed(self, persons):
        plan = await IdentityFixPlanner(persons).plan()

        assert "052" not in [item.id for item in plan.items]

    @pytest.mark.asyncio
    async def test_unreadable_record_recorded_as_failure(self, persons):
        plan = await IdentityFixPlanner(persons).plan()

        assert plan.scanned == 5
        assert plan.failed == 1
        assert plan.summary() == {"scanned": 5, "flagged": 3, "applied": 0, "failed": 1}

    @pytest.mark.asyncio
    async def test_planning_is_pure_and_repeatable(self, persons):
        planner = IdentityFixPlanner(persons)

        first = await planner.plan()
        second = await planner.plan()

        assert first.to_dict() == second.to_dict()
        assert first.to_dict()["dry_run"] is True
        assert persons.writes == []


class TestApply:

    @pytest.mark.asyncio
    async def test_apply_writes_fixable_items(self, persons):
        planner = IdentityFixPlanner(persons)
        plan = await planner.plan()

        result = await planner.apply(plan, performed_by="admin-1")

        assert result.applied == 2
        assert persons.documents["061"]["auth_id"] == "061"
        assert persons.documents["062"]["auth_id"] == "062"
        assert persons.documents["061"]["updated_by"] == "admin-1"
        assert persons.documents["uid-9"]["auth_id"] == "uid-9"
        assert result.to_dict()["dry_run"] is False

    @pytest.mark.asyncio
    async def test_second_run_finds_nothing(self, persons):
        planner = IdentityFixPlanner(persons)
        await planner.apply(await planner.plan(), performed_by="admin-1")

        replan = await planner.plan()

        assert replan.fixable == []

    @pytest.mark.asyncio
    async def test_reapplying_a_plan_changes_nothing(self, persons):
        planner = IdentityFixPlanner(persons)
        plan = await planner.plan()
        await planner.apply(plan, performed_by="admin-1")
        snapshot = {k: dict(v) for k, v in persons.documents.items()}

        result = await planner.apply(plan, performed_by="admin-1")

        assert result.applied == 0
        assert len(persons.writes) == 2
        assert persons.documents == snapshot

    @pytest.mark.asyncio
    async def test_already_fixed_record_is_skipped(self, persons):
        planner = IdentityFixPlanner(persons)
        plan = await planner.plan()
        persons.documents["061"]["auth_id"] = "061"

        result = await planner.apply(plan, performed_by="admin-1")

        assert result.applied == 1
        assert [update.record_key for update in persons.writes] == ["062"]

    @pytest.mark.asyncio
    async def test_record_drifted_to_inconsistent_is_left_for_review(self, persons):
        planner = IdentityFixPlanner(persons)
        plan = await planner.plan()
        persons.documents["061"]["employee_code"] = "999"

        result = await planner.apply(plan, performed_by="admin-1")

        assert result.applied == 1
        assert persons.documents["061"]["auth_id"] == "old-061"
        assert "updated_by" not in persons.documents["061"]

    @pytest.mark.asyncio
    async def test_failed_group_does_not_stop_others(self, persons):
        persons.fail_on_write = {"061"}
        planner = IdentityFixPlanner(persons, group_size=1)
        plan = await planner.plan()

        result = await planner.apply(plan, performed_by="admin-1")

        assert result.applied == 1
        assert persons.documents["062"]["auth_id"] == "062"
        failed = next(item for item in plan.items if item.id == "061")
        assert failed.error == "write group rejected"
        assert failed.applied is False

    @pytest.mark.asyncio
    async def test_wrong_plan_kind_rejected(self, persons):
        with pytest.raises(ValueError):
            await IdentityFixPlanner(persons).apply(RemediationPlan(kind="reference_fix", items=[], scanned=0), "a")
