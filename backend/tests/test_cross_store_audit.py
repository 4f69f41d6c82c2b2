"""
Unit Tests for the Cross-Store Audit and Orphan Scan

Run with: pytest tests/test_cross_store_audit.py -v
"""

import httpx
import pytest

from identity.models import TimeEntry
from identity.provider import HttpProviderDirectory
from remediation.cross_store import (
    CrossStoreAuditor,
    scan_orphan_time_entries,
    clamp_sample_size,
    DEFAULT_SAMPLE_SIZE,
)

from fakes import InMemoryPersonRepository, InMemoryTimeEntryRepository, FakeProviderDirectory


@pytest.fixture
def persons():
    repo = InMemoryPersonRepository()
    repo.add("052", auth_id="052", employee_code="052")
    repo.add("061", auth_id="old-061", employee_code="061")
    repo.add("uid-9", auth_id="uid-9", employee_code="E9")
    return repo


@pytest.fixture
def time_entries():
    return InMemoryTimeEntryRepository([
        TimeEntry(id="t1", personnel_id="052"),
        TimeEntry(id="t2", personnel_id="ghost"),
        TimeEntry(id="t3", personnel_id="ghost"),
        TimeEntry(id="t4", personnel_id="E9"),
        TimeEntry(id="t5", personnel_id=None),
    ])


# ==================== ORPHAN SCAN ====================

class TestOrphanScan:

    @pytest.mark.asyncio
    async def test_ghost_is_orphan(self, persons, time_entries):
        result = await scan_orphan_time_entries(persons, time_entries)

        assert result.checked == 5
        assert "ghost" in result.orphan_ids
        assert result.orphan_ids == ["ghost", "E9"]
        assert result.orphan_count == 3
        assert result.orphan_entry_ids == ["t2", "t3", "t4"]
        assert result.missing_personnel_id == 1

    @pytest.mark.asyncio
    async def test_employee_code_matches_reported(self, persons, time_entries):
        result = await scan_orphan_time_entries(persons, time_entries)

        assert result.matched_by_employee_code == ["E9"]

    @pytest.mark.asyncio
    async def test_sample_is_clamped(self, persons, time_entries):
        await scan_orphan_time_entries(persons, time_entries, sample_size=5000)

        assert time_entries.sample_limits == [100]

    def test_clamp_sample_size(self):
        assert clamp_sample_size(None) == DEFAULT_SAMPLE_SIZE
        assert clamp_sample_size(0) == DEFAULT_SAMPLE_SIZE
        assert clamp_sample_size(10) == 10
        assert clamp_sample_size(500) == 100
        assert clamp_sample_size(80, maximum=20) == 20


# ==================== CROSS-STORE AUDIT ====================

class TestCrossStoreAudit:

    @pytest.mark.asyncio
    async def test_consistency_counts(self, persons, time_entries):
        report = await CrossStoreAuditor(persons, time_entries).audit()

        assert report.scanned == 3
        assert report.consistent == 1
        assert report.partial == 1
        assert report.inconsistent == 1
        assert {d["field_values"]["recordKey"] for d in report.drifted} == {"061", "uid-9"}
        assert report.provider_checked is False

    @pytest.mark.asyncio
    async def test_provider_checks(self, persons, time_entries):
        provider = FakeProviderDirectory({
            "052": "052@deer-lab.local",
            "uid-9": "someone@example.com",
        })

        report = await CrossStoreAuditor(persons, time_entries, provider=provider).audit()

        assert report.provider_missing == ["old-061"]
        assert report.label_mismatches == [{
            "record_key": "uid-9",
            "auth_id": "uid-9",
            "actual_label": "someone@example.com",
            "expected_label": "E9@deer-lab.local",
        }]

    @pytest.mark.asyncio
    async def test_provider_failure_is_isolated(self, persons, time_entries):
        provider = FakeProviderDirectory({"052": "052@deer-lab.local"}, unavailable=["old-061"])

        report = await CrossStoreAuditor(persons, time_entries, provider=provider).audit()

        assert report.failed == 1
        assert report.failures[0]["record_key"] == "061"
        assert provider.lookups == ["052", "old-061", "uid-9"]

    @pytest.mark.asyncio
    async def test_unreadable_record_is_counted(self, persons, time_entries):
        persons.add("099", employee_code="099", status="unknown")

        report = await CrossStoreAuditor(persons, time_entries).audit()

        assert report.scanned == 4
        assert report.failed == 1
        assert report.consistent + report.partial + report.inconsistent == 3

    @pytest.mark.asyncio
    async def test_report_includes_orphans(self, persons, time_entries):
        data = (await CrossStoreAuditor(persons, time_entries).audit(sample_size=2)).to_dict()

        assert data["orphans"]["checked"] == 2
        assert data["orphans"]["orphan_ids"] == ["ghost"]
        assert data["summary"]["flagged"] == 2

    @pytest.mark.asyncio
    async def test_malformed_provider_response_is_isolated(self, persons, time_entries):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        provider = HttpProviderDirectory(
            "https://provider.test", "proj-1", client=httpx.AsyncClient(transport=transport)
        )

        async with provider:
            report = await CrossStoreAuditor(persons, time_entries, provider=provider).audit()

        assert report.scanned == 3
        assert report.failed == 3
        assert report.consistent + report.partial + report.inconsistent == 3
        assert report.orphans.checked == 5

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(self, persons, time_entries):
        class BrokenDirectory(FakeProviderDirectory):
            async def get_account(self, uid):
                if uid == "old-061":
                    raise RuntimeError("boom")
                return await super().get_account(uid)

        provider = BrokenDirectory({"052": "052@deer-lab.local"})

        report = await CrossStoreAuditor(persons, time_entries, provider=provider).audit()

        assert report.failed == 1
        assert report.failures == [{"record_key": "061", "error": "RuntimeError: boom"}]
        assert report.scanned == 3
