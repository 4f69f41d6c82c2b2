"""
Identity Reconciliation - Consistency Checker

Compares the identifier triple (authId, employeeCode, recordKey) of a person
record and produces a field-by-field diagnostic.

The record key is the anchor: it cannot be written client-side, so every
mismatch is reported against it.
"""

from typing import Optional, List

from .models import (
    PersonIdentityRecord,
    ConsistencyDiagnostic,
    ConsistencyLevel,
    Mismatch,
)

FIELD_AUTH_ID = "authId"
FIELD_EMPLOYEE_CODE = "employeeCode"
FIELD_RECORD_KEY = "recordKey"


class ConsistencyChecker:
    """
    Classifies a person record as consistent, partial or inconsistent.

    - consistent: authId == employeeCode == recordKey
    - partial: employeeCode == recordKey, authId differs or is missing
    - inconsistent: employeeCode != recordKey (or missing)

    Stateless; check() never mutates its input and is idempotent.
    """

    def check(
        self,
        record: PersonIdentityRecord,
        auth_session_id: Optional[str] = None
    ) -> ConsistencyDiagnostic:
        key = record.record_key
        mismatches: List[Mismatch] = []
        recommendations: List[str] = []

        if record.auth_id != key:
            mismatches.append(Mismatch(FIELD_AUTH_ID, record.auth_id, key))
            if record.auth_id is None:
                recommendations.append(f"set stored authId field to {key}")
            else:
                recommendations.append(f"update stored authId field from {record.auth_id} to {key}")

        if record.employee_code != key:
            mismatches.append(Mismatch(FIELD_EMPLOYEE_CODE, record.employee_code, key))
            if record.employee_code is None:
                recommendations.append(f"assign employeeCode {key}")
            else:
                recommendations.append(
                    f"reconcile employeeCode {record.employee_code} with record key {key} (manual review)"
                )

        if record.employee_code != key:
            level = ConsistencyLevel.INCONSISTENT
        elif record.auth_id != key:
            level = ConsistencyLevel.PARTIAL
        else:
            level = ConsistencyLevel.CONSISTENT

        session_matches = None
        if auth_session_id:
            session_matches = auth_session_id == key
            if not session_matches:
                recommendations.append(f"verify provider account for session {auth_session_id}")

        return ConsistencyDiagnostic(
            subject_id=key,
            field_values={
                FIELD_AUTH_ID: record.auth_id,
                FIELD_EMPLOYEE_CODE: record.employee_code,
                FIELD_RECORD_KEY: key,
            },
            level=level,
            mismatches=mismatches,
            recommendations=recommendations,
            session_matches=session_matches,
            display_name=record.display_name,
        )
