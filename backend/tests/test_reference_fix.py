"""
Unit Tests for Purchase-Order Reference Correction

Run with: pytest tests/test_reference_fix.py -v
"""

import pytest

from identity.errors import InvalidArgument, NotFound
from identity.models import PurchaseOrder
from remediation.reference_fix import (
    ReferenceFixPlanner,
    expected_target,
    parse_item_ref,
    inspect_item,
)

from fakes import InMemoryPurchaseOrderRepository


def order(po_id="po-1", items=None, created_at="2024-05-01T00:00:00"):
    return PurchaseOrder(id=po_id, code=f"PO-{po_id}", status="open", items=items or [], created_at=created_at)


@pytest.fixture
def purchase_orders():
    return InMemoryPurchaseOrderRepository([
        order("po-1", [
            {"code": "F1", "name": "Rose", "unit": "kg", "type": "fragrance", "item_ref": "fragrances/f1"},
            {"code": "M1", "name": "Bottle", "unit": "pcs", "item_ref": "materials/m1"},
            {"code": "F2", "name": "Musk", "unit": "KG", "type": "material", "item_ref": "materials/f2"},
            {"code": "X1", "name": "Mystery", "unit": None, "item_ref": None},
        ]),
        order("po-2", [
            {"code": "M2", "unit": "pcs", "type": "material", "item_ref": "materials/m2"},
        ], created_at="2024-06-01T00:00:00"),
    ])


@pytest.fixture
def planner(purchase_orders):
    return ReferenceFixPlanner(purchase_orders)


class TestItemRules:

    @pytest.mark.parametrize("unit,expected", [
        (None, ("fragrance", "fragrances")),
        ("", ("fragrance", "fragrances")),
        ("KG", ("fragrance", "fragrances")),
        ("kg", ("fragrance", "fragrances")),
        ("pcs", ("material", "materials")),
        ("L", ("material", "materials")),
    ])
    def test_expected_target(self, unit, expected):
        assert expected_target(unit) == expected

    @pytest.mark.parametrize("ref,expected", [
        ("materials/m1", ("materials", "m1")),
        ("projects/p/databases/(default)/documents/fragrances/f9", ("fragrances", "f9")),
        ({"path": "materials/m3"}, ("materials", "m3")),
        (None, ("unknown", "")),
        ("orphan", ("unknown", "")),
        ("a/documents", ("unknown", "")),
    ])
    def test_parse_item_ref(self, ref, expected):
        assert parse_item_ref(ref) == expected

    def test_correct_item_needs_nothing(self):
        item = {"unit": "kg", "type": "fragrance", "item_ref": "fragrances/f1"}

        assert inspect_item(0, item) is None

    def test_unknown_collection_only_needs_type(self):
        finding = inspect_item(0, {"unit": "pcs", "item_ref": None})

        assert finding["needs_type_field"] is True
        assert finding["needs_ref_fix"] is False


class TestPlanReferenceFix:

    @pytest.mark.asyncio
    async def test_lists_offending_items(self, planner):
        plan = await planner.plan_reference_fix("po-1")

        assert [item.id for item in plan.items] == ["po-1#1", "po-1#2", "po-1#3"]
        assert plan.scanned == 4
        assert plan.metadata["total_items"] == 4

    @pytest.mark.asyncio
    async def test_proposals(self, planner):
        plan = await planner.plan_reference_fix("po-1")
        by_id = {item.id: item for item in plan.items}

        assert by_id["po-1#1"].proposed_write == {"type": "material", "item_ref": "materials/m1"}
        assert by_id["po-1#2"].proposed_write == {"type": "fragrance", "item_ref": "fragrances/f2"}
        assert by_id["po-1#2"].details["current_collection"] == "materials"
        assert by_id["po-1#2"].details["expected_collection"] == "fragrances"

    @pytest.mark.asyncio
    async def test_unknown_item_id_is_not_fixable(self, planner):
        plan = await planner.plan_reference_fix("po-1")
        item = next(i for i in plan.items if i.id == "po-1#3")

        assert item.proposed_write is None
        assert item.is_fixable is False

    @pytest.mark.asyncio
    async def test_planning_is_pure(self, planner, purchase_orders):
        first = await planner.plan_reference_fix("po-1")
        second = await planner.plan_reference_fix("po-1")

        assert first.to_dict() == second.to_dict()
        assert purchase_orders.saves == []

    @pytest.mark.asyncio
    async def test_missing_order(self, planner):
        with pytest.raises(NotFound):
            await planner.plan_reference_fix("po-404")

    @pytest.mark.asyncio
    async def test_blank_id(self, planner):
        with pytest.raises(InvalidArgument):
            await planner.plan_reference_fix("  ")


class TestApplyReferenceFix:

    @pytest.mark.asyncio
    async def test_apply_rewrites_fixable_items(self, planner, purchase_orders):
        plan = await planner.plan_reference_fix("po-1")

        result = await planner.apply_reference_fix(plan, "admin-1", "Ada Admin")

        assert result.applied == 2
        items = purchase_orders.orders["po-1"].items
        assert items[1]["type"] == "material"
        assert items[2]["item_ref"] == "fragrances/f2"
        assert items[0] == {"code": "F1", "name": "Rose", "unit": "kg", "type": "fragrance", "item_ref": "fragrances/f1"}
        assert purchase_orders.saves[0]["fixed_by"] == "admin-1"
        assert purchase_orders.saves[0]["fixed_by_name"] == "Ada Admin"

    @pytest.mark.asyncio
    async def test_second_apply_is_noop(self, planner, purchase_orders):
        plan = await planner.plan_reference_fix("po-1")
        await planner.apply_reference_fix(plan, "admin-1")

        result = await planner.apply_reference_fix(plan, "admin-1")

        assert result.applied == 0
        assert len(purchase_orders.saves) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_fix(self, planner, purchase_orders):
        plan = await planner.plan_reference_fix("po-2")

        result = await planner.apply_reference_fix(plan, "admin-1")

        assert plan.items == []
        assert result.applied == 0
        assert purchase_orders.saves == []

    @pytest.mark.asyncio
    async def test_replaced_item_is_not_overwritten(self, planner, purchase_orders):
        purchase_orders.orders["po-9"] = order("po-9", [{"code": "A", "unit": "KG", "item_ref": "materials/a"}])
        plan = await planner.plan_reference_fix("po-9")
        purchase_orders.orders["po-9"] = order("po-9", [{"code": "B", "unit": "pcs", "item_ref": "materials/b"}])

        result = await planner.apply_reference_fix(plan, "admin-1")

        assert result.applied == 0
        assert purchase_orders.orders["po-9"].items == [{"code": "B", "unit": "pcs", "item_ref": "materials/b"}]
        assert purchase_orders.saves == []

    @pytest.mark.asyncio
    async def test_write_is_rebuilt_from_current_item(self, planner, purchase_orders):
        purchase_orders.orders["po-9"] = order("po-9", [{"code": "A", "unit": "KG", "item_ref": "materials/a"}])
        plan = await planner.plan_reference_fix("po-9")
        purchase_orders.orders["po-9"] = order("po-9", [{"code": "A", "unit": "pcs", "item_ref": "materials/a"}])

        result = await planner.apply_reference_fix(plan, "admin-1")

        assert result.applied == 1
        assert purchase_orders.orders["po-9"].items[0] == {
            "code": "A", "unit": "pcs", "type": "material", "item_ref": "materials/a",
        }

    @pytest.mark.asyncio
    async def test_write_failure_marks_items(self, planner, purchase_orders):
        purchase_orders.fail_writes = True
        plan = await planner.plan_reference_fix("po-1")

        result = await planner.apply_reference_fix(plan, "admin-1")

        assert result.applied == 0
        assert all(item.error for item in plan.items if item.proposed_write)


class TestScan:

    @pytest.mark.asyncio
    async def test_scan_lists_problematic_orders(self, planner):
        result = await planner.scan_purchase_orders()

        assert result["scanned_count"] == 2
        assert result["problematic_count"] == 1
        assert result["problematic_purchase_orders"][0]["id"] == "po-1"
        assert result["problematic_purchase_orders"][0]["problem_count"] == 3
