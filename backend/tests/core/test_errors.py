"""Error Hierarchy — verifies codes, categories and the response envelope."""

from recordvault.core.errors import (
    ConnectivityError, DatabaseError, EncryptionError, ErrorCategory,
    IntegrityViolation, NotFoundOrForbidden, RecordVaultError, SchemaViolation,
    ValidationError,
)


def test_not_found_or_forbidden_message_is_fixed():
    err = NotFoundOrForbidden()
    assert err.message == "Record not found or access denied"
    assert err.code == "NOT_FOUND_OR_FORBIDDEN"
    assert err.category is ErrorCategory.RESOURCE_NOT_FOUND


def test_reported_conditions_are_recoverable():
    assert SchemaViolation(["audit_logs"]).recoverable
    assert IntegrityViolation(3).recoverable
    assert EncryptionError("password").recoverable
    assert not ConnectivityError("down").recoverable


def test_schema_violation_message_lists_drift():
    err = SchemaViolation(["audit_logs"], {"users": ["email"]})
    assert "audit_logs" in err.message
    assert "users missing columns: email" in err.message


def test_to_response_envelope():
    body = ValidationError("bad", field="payload").to_response()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert body["category"] == "validation"
    assert body["severity"] == "error"
    assert "timestamp" in body


def test_all_errors_share_base():
    for err in (DatabaseError("x", "query"), ConnectivityError("y")):
        assert isinstance(err, RecordVaultError)
        assert err.category is ErrorCategory.DATABASE
