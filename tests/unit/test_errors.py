"""Unit tests for error classification utilities."""

import pytest

from walkmate.core.db_client import AuthenticationError, DatabaseError, RecordNotFoundError
from walkmate.core.errors import (
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
    classify_auth_error,
    classify_error_with_response,
    is_missing_profile_error,
)


@pytest.mark.unit
class TestClassifyAuthError:
    """Tests for classify_auth_error."""

    def test_invalid_credentials(self):
        category, message = classify_auth_error(AuthenticationError("Failed to authenticate: 400"))

        assert category == ErrorCategory.INVALID_CREDENTIALS
        assert "비밀번호" in message

    def test_email_not_confirmed(self):
        category, _ = classify_auth_error(AuthenticationError("Email not verified"))

        assert category == ErrorCategory.EMAIL_NOT_CONFIRMED

    def test_already_registered(self):
        category, message = classify_auth_error(
            AuthenticationError("Failed to register user: 400 validation_not_unique")
        )

        assert category == ErrorCategory.ALREADY_REGISTERED
        assert "이미 가입된" in message

    def test_network_error(self):
        category, _ = classify_auth_error(ConnectionError("connection refused"))

        assert category == ErrorCategory.NETWORK_ERROR

    def test_unknown_error_gets_generic_message(self):
        category, message = classify_auth_error(Exception("something odd"))

        assert category == ErrorCategory.UNKNOWN
        assert message

    def test_every_category_is_reachable(self):
        errors = [
            AuthenticationError("Failed to authenticate: 400"),
            AuthenticationError("Email not verified"),
            AuthenticationError("Failed to register user: 400 validation_not_unique"),
            ConnectionError("connection refused"),
            Exception("something odd"),
        ]

        assert {classify_auth_error(error)[0] for error in errors} == set(ErrorCategory)


@pytest.mark.unit
class TestIsMissingProfileError:
    """Tests for is_missing_profile_error."""

    def test_record_not_found(self):
        assert is_missing_profile_error(RecordNotFoundError("Record not found in profiles: u1"))

    def test_pocketbase_not_found_message(self):
        assert is_missing_profile_error(DatabaseError("404 The requested resource wasn't found."))

    def test_other_database_error(self):
        assert not is_missing_profile_error(DatabaseError("Backend rejected GET on profiles: 500"))

    def test_foreign_backend_codes_are_not_missing_profiles(self):
        assert not is_missing_profile_error(DatabaseError("PGRST116: JSON object requested, multiple rows returned"))


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response."""

    def test_authentication_error_keeps_auth_message(self):
        response = classify_error_with_response(AuthenticationError("Failed to authenticate: 400"))

        assert response.code == ErrorCode.ERR_INVALID_CREDENTIALS
        assert response.severity == ErrorSeverity.MEDIUM

    def test_already_applied(self):
        response = classify_error_with_response(ValueError("You have already applied to walk request r1"))

        assert response.code == ErrorCode.ERR_ALREADY_APPLIED
        assert response.severity == ErrorSeverity.LOW

    def test_permission_error(self):
        response = classify_error_with_response(PermissionError("Only owners can post walk requests"))

        assert response.code == ErrorCode.ERR_PERMISSION_DENIED

    def test_record_not_found(self):
        response = classify_error_with_response(RecordNotFoundError("Record not found in dogs: d9"))

        assert response.code == ErrorCode.ERR_NOT_FOUND

    def test_illegal_transition(self):
        response = classify_error_with_response(ValueError("Cannot move walk request r1 from COMPLETED to COMPLETED"))

        assert response.code == ErrorCode.ERR_INVALID_STATE_TRANSITION

    def test_validation_error_surfaces_its_message(self):
        response = classify_error_with_response(ValueError("Reward must be a positive amount"))

        assert response.code == ErrorCode.ERR_VALIDATION_FAILED
        assert response.message == "Reward must be a positive amount"

    def test_network_error(self):
        response = classify_error_with_response(DatabaseError("Backend connection error on walk_requests: timeout"))

        assert response.code == ErrorCode.ERR_NETWORK_ERROR

    def test_unknown_error(self):
        response = classify_error_with_response(RuntimeError("boom"))

        assert response.code == ErrorCode.ERR_UNKNOWN
