"""
Unit Tests for the Identifier Format Audit and Paging

Run with: pytest tests/test_format_audit.py -v
"""

import pytest

from identity.errors import Internal
from remediation.format_audit import FormatAuditor, summarize_histogram
from remediation.paging import iterate_person_documents, write_groups

from fakes import InMemoryPersonRepository


@pytest.fixture
def persons():
    repo = InMemoryPersonRepository()
    repo.add("001", employee_code="052")
    repo.add("002", employee_code="emp.7")
    repo.add("003", employee_code="052")
    repo.add("004", employee_code=None)
    repo.add("005", employee_code="ABC")
    repo.add("006", employee_code="ABC")
    repo.add("007", employee_code="x1", status="archived")
    return repo


class TestFormatAudit:

    @pytest.mark.asyncio
    async def test_counts(self, persons):
        report = await FormatAuditor(persons).audit()

        assert report.total == 7
        assert report.valid == 4
        assert report.invalid == 2
        assert report.failed == 1

    @pytest.mark.asyncio
    async def test_issues_listed(self, persons):
        report = await FormatAuditor(persons).audit()
        by_key = {issue["record_key"]: issue for issue in report.issues}

        assert by_key["002"]["issues"] == ["contains forbidden characters: ."]
        assert by_key["004"]["issues"] == ["employeeCode missing"]
        assert "error" in by_key["007"]

    @pytest.mark.asyncio
    async def test_duplicates_in_order_of_first_repetition(self, persons):
        report = await FormatAuditor(persons).audit()

        assert report.duplicates == ["052", "ABC"]

    @pytest.mark.asyncio
    async def test_histogram(self, persons):
        report = await FormatAuditor(persons).audit()

        assert report.charset_histogram["numeric"] == 2
        assert report.charset_histogram["uppercase"] == 2
        assert report.charset_histogram["mixed"] == 1
        assert sum(report.charset_histogram.values()) == 5

    @pytest.mark.asyncio
    async def test_audit_does_not_write(self, persons):
        await FormatAuditor(persons).audit()

        assert persons.writes == []

    @pytest.mark.asyncio
    async def test_summary_shape(self, persons):
        data = (await FormatAuditor(persons).audit()).to_dict()

        assert data["summary"] == {"scanned": 7, "flagged": 2, "applied": 0, "failed": 1}

    def test_summarize_histogram(self):
        line = summarize_histogram({"numeric": 3})

        assert line.startswith("numeric=3, lowercase=0")


class TestPaging:

    @pytest.mark.asyncio
    async def test_pages_in_key_order(self, persons):
        keys = [doc.record_key async for doc in iterate_person_documents(persons, page_size=3)]

        assert keys == ["001", "002", "003", "004", "005", "006", "007"]
        assert persons.page_calls == [(None, 3), ("003", 3), ("006", 3)]

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, persons):
        [doc async for doc in iterate_person_documents(persons, page_size=1000)]

        assert persons.page_calls[0] == (None, 100)

    @pytest.mark.asyncio
    async def test_page_failure_is_internal(self):
        class BrokenRepository(InMemoryPersonRepository):
            async def list_page(self, after_key, limit):
                raise ConnectionError("offline")

        with pytest.raises(Internal):
            [doc async for doc in iterate_person_documents(BrokenRepository())]

    def test_write_groups(self):
        groups = write_groups(list(range(9)), group_size=4)

        assert groups == [[0, 1, 2, 3], [4, 5, 6, 7], [8]]
        assert write_groups([], 4) == []
