"""
Remediation - Cross-Store Audit

Checks the person collection against the other stores that reference it:
- ConsistencyChecker over every person record
- provider account exists for each stored authId, and its email label
  equals "<employeeCode>@<label domain>"
- time-entry sample: entries whose personnel id matches no person record key
  ("orphans")

Read-only. A record that fails to process is recorded and counted; it never
aborts the scan.
"""

import logging
from typing import Optional, Dict

from identity.checker import ConsistencyChecker
from identity.errors import IdentityError, Internal
from identity.models import ConsistencyLevel, PersonIdentityRecord
from identity.provider import ProviderDirectory, expected_label
from identity.repository import PersonRepository, TimeEntryRepository

from .models import CrossStoreAuditReport, OrphanScanResult
from .paging import iterate_person_documents, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 50
MAX_SAMPLE_SIZE = 100


def clamp_sample_size(sample_size: Optional[int], maximum: int = MAX_SAMPLE_SIZE) -> int:
    if not sample_size or sample_size < 1:
        return min(DEFAULT_SAMPLE_SIZE, maximum)
    return min(sample_size, maximum)


async def scan_orphan_time_entries(
    persons: PersonRepository,
    time_entries: TimeEntryRepository,
    sample_size: Optional[int] = DEFAULT_SAMPLE_SIZE,
    max_sample: int = MAX_SAMPLE_SIZE
) -> OrphanScanResult:
    """
    Find sampled time entries whose personnel id is no person's record key.

    orphan_count counts orphan entries; orphan_ids lists distinct personnel
    ids in scan order.
    """
    limit = clamp_sample_size(sample_size, max_sample)
    if sample_size and sample_size > limit:
        logger.info(f"Orphan scan sample clamped from {sample_size} to {limit}")

    try:
        entries = await time_entries.sample(limit)
        referenced = [e.personnel_id for e in entries if e.personnel_id]
        known_keys = await persons.existing_keys(referenced)
    except IdentityError:
        raise
    except Exception as e:
        logger.error(f"Orphan scan failed: {e}", exc_info=True)
        raise Internal("Time entry store unavailable") from e

    result = OrphanScanResult(checked=len(entries))

    for entry in entries:
        if not entry.personnel_id:
            result.missing_personnel_id += 1
            continue
        if entry.personnel_id in known_keys:
            continue
        result.orphan_count += 1
        result.orphan_entry_ids.append(entry.id)
        if entry.personnel_id not in result.orphan_ids:
            result.orphan_ids.append(entry.personnel_id)

    if result.orphan_ids:
        codes = await persons.existing_employee_codes(result.orphan_ids)
        result.matched_by_employee_code = [pid for pid in result.orphan_ids if pid in codes]

    logger.info(
        f"Orphan scan: {result.orphan_count}/{result.checked} entries orphaned "
        f"({len(result.orphan_ids)} distinct personnel ids)"
    )
    return result


class CrossStoreAuditor:
    """Consistency, provider and orphan audit over the person collection."""

    def __init__(
        self,
        persons: PersonRepository,
        time_entries: TimeEntryRepository,
        provider: Optional[ProviderDirectory] = None,
        label_domain: str = "deer-lab.local",
        checker: Optional[ConsistencyChecker] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_sample: int = MAX_SAMPLE_SIZE
    ):
        self.persons = persons
        self.time_entries = time_entries
        self.provider = provider
        self.label_domain = label_domain
        self.checker = checker or ConsistencyChecker()
        self.page_size = page_size
        self.max_sample = max_sample

    async def _check_provider(self, record: PersonIdentityRecord, report: CrossStoreAuditReport) -> None:
        uid = record.auth_id or record.record_key
        account = await self.provider.get_account(uid)
        if account is None:
            report.provider_missing.append(uid)
            return
        if record.employee_code is None:
            return
        expected = expected_label(record.employee_code, self.label_domain)
        if account.email != expected:
            report.label_mismatches.append({
                "record_key": record.record_key,
                "auth_id": uid,
                "actual_label": account.email,
                "expected_label": expected,
            })

    async def audit(self, sample_size: Optional[int] = DEFAULT_SAMPLE_SIZE) -> CrossStoreAuditReport:
        report = CrossStoreAuditReport(provider_checked=self.provider is not None)
        counters: Dict[ConsistencyLevel, int] = {level: 0 for level in ConsistencyLevel}

        async for document in iterate_person_documents(self.persons, self.page_size):
            report.scanned += 1
            try:
                record = document.to_record()
                diagnostic = self.checker.check(record)
                counters[diagnostic.level] += 1
                if not diagnostic.is_consistent:
                    report.drifted.append(diagnostic.to_dict())
                if self.provider is not None:
                    await self._check_provider(record, report)
            except IdentityError as e:
                report.failed += 1
                report.failures.append({"record_key": document.record_key, "error": str(e)})
                logger.warning(f"Cross-store audit could not process {document.record_key}: {e}")
            except Exception as e:
                report.failed += 1
                report.failures.append({"record_key": document.record_key, "error": f"{type(e).__name__}: {e}"})
                logger.error(f"Cross-store audit failed on {document.record_key}: {e}", exc_info=True)

        report.consistent = counters[ConsistencyLevel.CONSISTENT]
        report.partial = counters[ConsistencyLevel.PARTIAL]
        report.inconsistent = counters[ConsistencyLevel.INCONSISTENT]

        report.orphans = await scan_orphan_time_entries(
            self.persons, self.time_entries, sample_size, self.max_sample
        )

        logger.info(
            f"Cross-store audit: {report.scanned} scanned, {report.consistent} consistent, "
            f"{report.partial} partial, {report.inconsistent} inconsistent, {report.failed} failed, "
            f"{len(report.provider_missing)} missing provider accounts"
        )
        return report
