"""
Remediation - Identity Field Correction

plan() lists every drifted person record:
- partial (employeeCode == recordKey, authId stale or missing): proposes
  {auth_id: record_key}
- inconsistent (employeeCode != recordKey): flagged for manual review, no
  proposed write
- unreadable records: recorded as failures

apply(plan) is the only write path. Writes go out in groups under the store's
atomic-batch limit, one group at a time; a failed group marks its items as
failed and the next group still runs. Each record is re-checked before it is
written, so re-applying a plan to records that are already fixed is a no-op.
"""

import logging
from typing import Optional, List

from identity.checker import ConsistencyChecker
from identity.errors import IdentityError, RecordMappingError, RepositoryError
from identity.models import ConsistencyLevel
from identity.repository import PersonRepository, PersonUpdate

from .models import RemediationItem, RemediationPlan, RemediationResult
from .paging import iterate_person_documents, write_groups, MAX_PAGE_SIZE, DEFAULT_WRITE_GROUP_SIZE

logger = logging.getLogger(__name__)

PLAN_KIND = "identity_fix"


class IdentityFixPlanner:
    """Plans and applies authId corrections on the person collection."""

    def __init__(
        self,
        persons: PersonRepository,
        checker: Optional[ConsistencyChecker] = None,
        page_size: int = MAX_PAGE_SIZE,
        group_size: int = DEFAULT_WRITE_GROUP_SIZE
    ):
        self.persons = persons
        self.checker = checker or ConsistencyChecker()
        self.page_size = page_size
        self.group_size = group_size

    async def plan(self) -> RemediationPlan:
        """Side-effect free; never writes."""
        items: List[RemediationItem] = []
        scanned = 0

        async for document in iterate_person_documents(self.persons, self.page_size):
            scanned += 1
            try:
                record = document.to_record()
            except RecordMappingError as e:
                items.append(RemediationItem(
                    id=document.record_key,
                    detected_issues=["record could not be read"],
                    error=str(e),
                ))
                continue

            diagnostic = self.checker.check(record)
            if diagnostic.is_consistent:
                continue

            issues = [
                f"{m.field} is {m.actual_value!r}, expected {m.expected_value!r}"
                for m in diagnostic.mismatches
            ]
            proposed = None
            if diagnostic.level == ConsistencyLevel.PARTIAL:
                proposed = {"auth_id": record.record_key}

            items.append(RemediationItem(
                id=record.record_key,
                detected_issues=issues,
                proposed_write=proposed,
                details={
                    "level": diagnostic.level.value,
                    "recommendations": list(diagnostic.recommendations),
                    "manual_review": proposed is None,
                },
            ))

        plan = RemediationPlan(kind=PLAN_KIND, items=items, scanned=scanned)
        logger.info(
            f"Identity fix plan: {scanned} scanned, {plan.flagged} flagged, "
            f"{len(plan.fixable)} fixable, {plan.failed} failed"
        )
        return plan

    async def _still_partial(self, item: RemediationItem) -> bool:
        try:
            record = await self.persons.get_by_key(item.id)
        except IdentityError as e:
            logger.warning(f"Identity fix could not re-read {item.id}: {e}")
            item.error = str(e)
            return False
        if record is None:
            return False
        return self.checker.check(record).level == ConsistencyLevel.PARTIAL

    async def apply(self, plan: RemediationPlan, performed_by: str) -> RemediationResult:
        """
        Write the plan's fixable items that still need it.

        Each record is re-read and re-checked first. Records no longer
        partially consistent (already fixed, or drifted into manual review)
        and items applied by an earlier run are skipped.
        """
        if plan.kind != PLAN_KIND:
            raise ValueError(f"Cannot apply a {plan.kind} plan as {PLAN_KIND}")

        pending: List[RemediationItem] = []
        for item in plan.fixable:
            if item.applied:
                continue
            if await self._still_partial(item):
                pending.append(item)
            elif item.error is None:
                logger.info(f"Identity fix skipped {item.id}: no longer partially consistent")

        applied = 0
        for group in write_groups(pending, self.group_size):
            updates = [
                PersonUpdate(
                    record_key=item.id,
                    fields=dict(item.proposed_write),
                    details={"issues": list(item.detected_issues)},
                )
                for item in group
            ]
            try:
                written = await self.persons.apply_updates(updates, performed_by)
            except RepositoryError as e:
                logger.error(f"Identity fix group of {len(group)} failed: {e}")
                for item in group:
                    item.error = str(e)
                continue

            for item in group:
                item.applied = True
            applied += written

        result = RemediationResult(plan=plan, applied=applied)
        logger.info(
            f"Identity fix applied by {performed_by}: {applied} written, {result.failed} failed",
            extra={"performed_by": performed_by, "applied": applied, "failed": result.failed},
        )
        return result
