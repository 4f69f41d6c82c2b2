"""
Remediation - Identifier Format Audit

Runs the identifier validator over every person's employee code, so codes can
be checked before they are adopted as provider identifiers:
- pass/fail counts
- charset histogram (numeric / lowercase / uppercase / special / other_script / mixed)
- duplicate employee codes across the collection

Read-only.
"""

import logging
from typing import Dict, List, Set

from identity.errors import RecordMappingError
from identity.repository import PersonRepository
from identity.validator import validate_identifier, classify_charset, CHARSET_BUCKETS

from .models import FormatAuditReport
from .paging import iterate_person_documents, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)


class FormatAuditor:
    """Collection-wide employee-code audit."""

    def __init__(self, persons: PersonRepository, page_size: int = MAX_PAGE_SIZE):
        self.persons = persons
        self.page_size = page_size

    async def audit(self) -> FormatAuditReport:
        report = FormatAuditReport(charset_histogram={bucket: 0 for bucket in CHARSET_BUCKETS})
        seen: Set[str] = set()
        duplicates: List[str] = []

        async for document in iterate_person_documents(self.persons, self.page_size):
            report.total += 1
            try:
                record = document.to_record()
            except RecordMappingError as e:
                report.failed += 1
                report.issues.append({
                    "record_key": document.record_key,
                    "employee_code": None,
                    "issues": [],
                    "error": str(e),
                })
                logger.warning(f"Format audit skipped {document.record_key}: {e}")
                continue

            code = record.employee_code
            if code is None:
                report.invalid += 1
                report.issues.append({
                    "record_key": record.record_key,
                    "employee_code": None,
                    "issues": ["employeeCode missing"],
                })
                continue

            result = validate_identifier(code)
            report.charset_histogram[classify_charset(result.charset)] += 1

            if code in seen:
                if code not in duplicates:
                    duplicates.append(code)
            else:
                seen.add(code)

            if result.is_valid:
                report.valid += 1
            else:
                report.invalid += 1
                report.issues.append({
                    "record_key": record.record_key,
                    "employee_code": code,
                    "issues": list(result.issues),
                })

        report.duplicates = duplicates

        logger.info(
            f"Format audit: {report.valid}/{report.total} valid, {report.invalid} invalid, "
            f"{report.failed} failed, {len(duplicates)} duplicate codes "
            f"[{summarize_histogram(report.charset_histogram)}]"
        )
        return report


def summarize_histogram(histogram: Dict[str, int]) -> str:
    """One-line rendering used in logs and CLI output."""
    return ", ".join(f"{bucket}={histogram.get(bucket, 0)}" for bucket in CHARSET_BUCKETS)
