"""
Unit Tests for the Consistency Checker

Run with: pytest tests/test_consistency_checker.py -v
"""

import pytest

from identity.checker import ConsistencyChecker, FIELD_AUTH_ID, FIELD_EMPLOYEE_CODE, FIELD_RECORD_KEY
from identity.errors import RecordMappingError
from identity.models import PersonIdentityRecord, ConsistencyLevel, PersonStatus


@pytest.fixture
def checker():
    return ConsistencyChecker()


def record(key="052", auth_id="052", employee_code="052", **kwargs):
    return PersonIdentityRecord(record_key=key, auth_id=auth_id, employee_code=employee_code, **kwargs)


class TestConsistencyLevels:
    """Classification of the identifier triple."""

    def test_all_equal_is_consistent(self, checker):
        diagnostic = checker.check(record())

        assert diagnostic.level == ConsistencyLevel.CONSISTENT
        assert diagnostic.is_consistent is True
        assert diagnostic.mismatches == []
        assert diagnostic.recommendations == []

    def test_stale_auth_id_is_partial_with_one_mismatch(self, checker):
        diagnostic = checker.check(record(auth_id="old-052"))

        assert diagnostic.level == ConsistencyLevel.PARTIAL
        assert len(diagnostic.mismatches) == 1
        mismatch = diagnostic.mismatches[0]
        assert mismatch.field == FIELD_AUTH_ID
        assert mismatch.actual_value == "old-052"
        assert mismatch.expected_value == "052"
        assert diagnostic.recommendations == ["update stored authId field from old-052 to 052"]

    def test_missing_auth_id_is_partial(self, checker):
        diagnostic = checker.check(record(auth_id=None))

        assert diagnostic.level == ConsistencyLevel.PARTIAL
        assert diagnostic.recommendations == ["set stored authId field to 052"]

    def test_employee_code_mismatch_is_inconsistent(self, checker):
        diagnostic = checker.check(record(employee_code="E-52"))

        assert diagnostic.level == ConsistencyLevel.INCONSISTENT
        assert [m.field for m in diagnostic.mismatches] == [FIELD_EMPLOYEE_CODE]
        assert "manual review" in diagnostic.recommendations[0]

    def test_missing_employee_code_is_inconsistent(self, checker):
        diagnostic = checker.check(record(auth_id=None, employee_code=None))

        assert diagnostic.level == ConsistencyLevel.INCONSISTENT
        assert [m.field for m in diagnostic.mismatches] == [FIELD_AUTH_ID, FIELD_EMPLOYEE_CODE]
        assert "assign employeeCode 052" in diagnostic.recommendations


class TestSessionComparison:
    """The caller's session id is compared but never counted as a mismatch."""

    def test_matching_session(self, checker):
        diagnostic = checker.check(record(), auth_session_id="052")

        assert diagnostic.session_matches is True
        assert diagnostic.recommendations == []

    def test_foreign_session(self, checker):
        diagnostic = checker.check(record(), auth_session_id="xyz")

        assert diagnostic.session_matches is False
        assert diagnostic.is_consistent is True
        assert diagnostic.recommendations == ["verify provider account for session xyz"]

    def test_no_session(self, checker):
        assert checker.check(record()).session_matches is None


class TestCheckerProperties:

    def test_check_is_idempotent(self, checker):
        subject = record(auth_id="old-052", display_name="Kim")

        first = checker.check(subject, "old-052")
        second = checker.check(subject, "old-052")

        assert first == second
        assert subject.auth_id == "old-052"

    def test_subject_is_record_key(self, checker):
        diagnostic = checker.check(record(display_name="Kim"))

        assert diagnostic.subject_id == "052"
        assert diagnostic.display_name == "Kim"
        assert diagnostic.to_dict()["display_name"] == "Kim"
        assert checker.check(record()).display_name is None

    def test_field_values_reported(self, checker):
        diagnostic = checker.check(record(auth_id="a1"))

        assert diagnostic.field_values == {
            FIELD_AUTH_ID: "a1",
            FIELD_EMPLOYEE_CODE: "052",
            FIELD_RECORD_KEY: "052",
        }


class TestRecordMapping:
    """Store payloads are mapped explicitly; bad payloads fail loudly."""

    def test_blank_strings_become_missing(self):
        mapped = PersonIdentityRecord.from_document("052", {"auth_id": "  ", "employee_code": "052"})

        assert mapped.auth_id is None
        assert mapped.employee_code == "052"
        assert mapped.status == PersonStatus.ACTIVE

    def test_unknown_status_raises(self):
        with pytest.raises(RecordMappingError) as exc_info:
            PersonIdentityRecord.from_document("052", {"status": "archived"})

        assert exc_info.value.record_key == "052"

    def test_missing_key_raises(self):
        with pytest.raises(RecordMappingError):
            PersonIdentityRecord.from_document("", {})

    def test_admin_role(self):
        mapped = PersonIdentityRecord.from_document("1", {"role_name": "admin", "permissions": "audit"})

        assert mapped.is_admin is True
        assert mapped.permissions == frozenset({"audit"})
