"""
Remediation - Purchase Order Reference Correction

Purchase-order items created before the type split may reference the wrong
collection. The expected target follows from the unit:
- no unit, or unit KG (any case) -> type "fragrance", collection "fragrances"
- any other unit                 -> type "material",  collection "materials"

An item needs a fix when its type is missing, or its item_ref points at a
known collection other than the expected one.

plan_reference_fix() only reads. apply_reference_fix() rewrites the fixable
items and stamps fixed_at / fixed_by / fixed_by_name on the order; it does
nothing when no item needs fixing, so running it twice is harmless.
"""

import logging
from typing import Optional, Dict, Any, List, Tuple

from identity.errors import InvalidArgument, NotFound, IdentityError
from identity.models import PurchaseOrder
from identity.repository import PurchaseOrderRepository

from .models import RemediationItem, RemediationPlan, RemediationResult

logger = logging.getLogger(__name__)

PLAN_KIND = "reference_fix"
UNKNOWN_COLLECTION = "unknown"
SCAN_LIMIT = 100

FRAGRANCE = ("fragrance", "fragrances")
MATERIAL = ("material", "materials")


def expected_target(unit: Optional[str]) -> Tuple[str, str]:
    """(type, collection) an item with this unit should reference."""
    if not unit or str(unit).upper() == "KG":
        return FRAGRANCE
    return MATERIAL


def parse_item_ref(item_ref: Any) -> Tuple[str, str]:
    """
    Extract (collection, item_id) from a stored reference.

    Accepts "materials/abc", full document paths containing a "documents"
    segment, or a mapping with a "path" key. Returns ("unknown", "") when the
    reference cannot be read.
    """
    if isinstance(item_ref, dict):
        item_ref = item_ref.get("path")
    if not isinstance(item_ref, str) or not item_ref.strip():
        return UNKNOWN_COLLECTION, ""

    segments = [s for s in item_ref.strip().split("/") if s]
    if "documents" in segments:
        index = segments.index("documents")
        if len(segments) > index + 2:
            return segments[index + 1], segments[index + 2]
        return UNKNOWN_COLLECTION, ""
    if len(segments) >= 2:
        return segments[-2], segments[-1]
    return UNKNOWN_COLLECTION, ""


def inspect_item(index: int, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Describe what is wrong with one item, or None if it is correct."""
    expected_type, expected_collection = expected_target(item.get("unit"))
    current_collection, item_id = parse_item_ref(item.get("item_ref"))

    needs_type_field = not item.get("type")
    needs_ref_fix = current_collection != UNKNOWN_COLLECTION and current_collection != expected_collection

    if not (needs_type_field or needs_ref_fix):
        return None

    return {
        "index": index,
        "code": item.get("code"),
        "name": item.get("name"),
        "unit": item.get("unit"),
        "current_type": item.get("type"),
        "expected_type": expected_type,
        "current_collection": current_collection,
        "expected_collection": expected_collection,
        "needs_type_field": needs_type_field,
        "needs_ref_fix": needs_ref_fix,
        "item_id": item_id,
    }


def proposed_write(finding: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Fields that correct the inspected item; None when its id is unknown."""
    if not finding["item_id"]:
        return None
    return {
        "type": finding["expected_type"],
        "item_ref": f"{finding['expected_collection']}/{finding['item_id']}",
    }


def _same_item(planned: Dict[str, Any], current: Dict[str, Any]) -> bool:
    return planned.get("code") == current.get("code") and planned.get("item_id") == current.get("item_id")


def _plan_for_order(order: PurchaseOrder) -> RemediationPlan:
    items: List[RemediationItem] = []

    for index, item in enumerate(order.items):
        finding = inspect_item(index, item)
        if finding is None:
            continue

        issues = []
        if finding["needs_type_field"]:
            issues.append("type field missing")
        if finding["needs_ref_fix"]:
            issues.append(
                f"item_ref points at {finding['current_collection']}, "
                f"expected {finding['expected_collection']}"
            )

        proposed = proposed_write(finding)
        if proposed is None:
            issues.append("item id unknown; cannot rewrite reference")

        items.append(RemediationItem(
            id=f"{order.id}#{index}",
            detected_issues=issues,
            proposed_write=proposed,
            details=finding,
        ))

    return RemediationPlan(
        kind=PLAN_KIND,
        items=items,
        scanned=len(order.items),
        target_id=order.id,
        metadata={
            "purchase_order_code": order.code,
            "status": order.status,
            "total_items": len(order.items),
        },
    )


class ReferenceFixPlanner:
    """Plans, applies and scans purchase-order reference fixes."""

    def __init__(self, purchase_orders: PurchaseOrderRepository):
        self.purchase_orders = purchase_orders

    async def _load(self, purchase_order_id: str) -> PurchaseOrder:
        if not purchase_order_id or not purchase_order_id.strip():
            raise InvalidArgument("Purchase order id is required")
        order = await self.purchase_orders.get(purchase_order_id)
        if order is None:
            raise NotFound(f"Purchase order {purchase_order_id} not found", candidate=purchase_order_id)
        return order

    async def plan_reference_fix(self, purchase_order_id: str) -> RemediationPlan:
        """Side-effect free analysis of one purchase order."""
        order = await self._load(purchase_order_id)
        plan = _plan_for_order(order)
        logger.info(f"Reference fix plan for {purchase_order_id}: {plan.flagged}/{plan.scanned} items need fixing")
        return plan

    async def apply_reference_fix(
        self,
        plan: RemediationPlan,
        fixed_by: str,
        fixed_by_name: Optional[str] = None
    ) -> RemediationResult:
        """
        Write the plan's fixable items back to the order.

        The order is re-read and each item re-inspected. Items fixed since
        planning are left alone, and an item that no longer matches the
        planned code and id is skipped. The write is rebuilt from the
        current item.
        """
        if plan.kind != PLAN_KIND:
            raise ValueError(f"Cannot apply a {plan.kind} plan as {PLAN_KIND}")

        order = await self._load(plan.target_id)
        items = [dict(item) for item in order.items]
        to_mark: List[RemediationItem] = []

        for plan_item in plan.fixable:
            index = plan_item.details["index"]
            if index >= len(items):
                continue
            finding = inspect_item(index, items[index])
            if finding is None:
                continue
            if not _same_item(plan_item.details, finding):
                logger.warning(
                    f"Reference fix for {plan.target_id}: item {index} changed since planning, skipped"
                )
                continue
            write = proposed_write(finding)
            if write is None:
                continue
            items[index].update(write)
            to_mark.append(plan_item)

        if not to_mark:
            logger.info(f"Reference fix for {plan.target_id}: nothing to apply")
            return RemediationResult(plan=plan, applied=0)

        try:
            await self.purchase_orders.save_items(
                plan.target_id,
                items,
                fixed_by=fixed_by,
                fixed_by_name=fixed_by_name,
                details={"fixed_items": [item.details["index"] for item in to_mark]},
            )
        except IdentityError as e:
            logger.error(f"Reference fix write for {plan.target_id} failed: {e}")
            for plan_item in to_mark:
                plan_item.error = str(e)
            return RemediationResult(plan=plan, applied=0)

        for plan_item in to_mark:
            plan_item.applied = True

        logger.info(
            f"Admin {fixed_by} fixed {len(to_mark)} items on purchase order {plan.target_id}",
            extra={"purchase_order_id": plan.target_id, "fixed_by": fixed_by},
        )
        return RemediationResult(plan=plan, applied=len(to_mark))

    async def scan_purchase_orders(self, limit: int = SCAN_LIMIT) -> Dict[str, Any]:
        """List recent purchase orders that need reference fixes."""
        orders = await self.purchase_orders.list_recent(min(limit, SCAN_LIMIT))
        problematic = []
        failures = []

        for order in orders:
            try:
                plan = _plan_for_order(order)
            except (TypeError, AttributeError, KeyError) as e:
                failures.append({"id": order.id, "error": str(e)})
                logger.warning(f"Purchase order scan could not read {order.id}: {e}")
                continue
            if plan.items:
                problematic.append({
                    "id": order.id,
                    "code": order.code,
                    "status": order.status,
                    "created_at": order.created_at,
                    "problem_count": len(plan.items),
                    "problems": [item.details for item in plan.items],
                })

        logger.info(f"Purchase order scan: {len(problematic)}/{len(orders)} need fixing")
        return {
            "scanned_count": len(orders),
            "problematic_count": len(problematic),
            "failed_count": len(failures),
            "problematic_purchase_orders": problematic,
            "failures": failures,
        }
