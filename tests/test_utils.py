"""
Tests for auditlib/utils.py utility functions.

Covers:
- retry_with_backoff decorator (exception types and predicates)
- AuthError, is_credential_error, is_access_denied_error and check_and_raise_auth_error
- is_throttling_error
- setup_logging
- ProgressTracker plain-text mode
- parse_list
"""
import logging
import os
import sys

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from auditlib.constants import REPORT_EC2_CPU_METRICS, REPORT_UNUSED_EIPS
from auditlib.utils import (
    AuthError,
    ProgressTracker,
    check_and_raise_auth_error,
    is_access_denied_error,
    is_credential_error,
    is_throttling_error,
    parse_list,
    retry_with_backoff,
    setup_logging,
)


def client_error(code: str, operation: str = "DescribeInstances") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# =============================================================================
# retry_with_backoff Tests
# =============================================================================

class TestRetryWithBackoff:
    """Tests for retry_with_backoff decorator."""

    def test_no_retry_on_success(self):
        call_count = 0

        @retry_with_backoff(max_attempts=3)
        def succeeds():
            nonlocal call_count
            call_count += 1
            return "ok"

        assert succeeds() == "ok"
        assert call_count == 1

    def test_retry_on_failure(self):
        call_count = 0

        @retry_with_backoff(max_attempts=3, min_wait=0.01, max_wait=0.1)
        def failing_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not yet")
            return "success"

        assert failing_func() == "success"
        assert call_count == 3

    def test_max_attempts_exceeded(self):
        call_count = 0

        @retry_with_backoff(max_attempts=2, min_wait=0.01, max_wait=0.1)
        def always_fails():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("Always fails")

        with pytest.raises(ConnectionError):
            always_fails()
        assert call_count == 2

    def test_only_listed_exceptions_retried(self):
        call_count = 0

        @retry_with_backoff(max_attempts=3, exceptions=(ValueError,), min_wait=0.01)
        def wrong_type():
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            wrong_type()
        assert call_count == 1

    def test_predicate_limits_retries(self):
        calls = []

        @retry_with_backoff(max_attempts=3, min_wait=0.01, max_wait=0.01,
                            exceptions=(ClientError,), when=is_throttling_error)
        def call_api(code):
            calls.append(code)
            raise client_error(code)

        with pytest.raises(ClientError):
            call_api("Throttling")
        assert len(calls) == 3

        calls.clear()
        with pytest.raises(ClientError):
            call_api("InvalidParameterValue")
        assert len(calls) == 1


# =============================================================================
# Error Classification Tests
# =============================================================================

class TestIsCredentialError:
    """Tests for is_credential_error."""

    @pytest.mark.parametrize("code", ["ExpiredToken", "InvalidClientTokenId", "SignatureDoesNotMatch"])
    def test_credential_codes(self, code):
        assert is_credential_error(client_error(code))

    def test_no_credentials(self):
        assert is_credential_error(NoCredentialsError())

    @pytest.mark.parametrize("code", ["AuthFailure", "UnauthorizedOperation", "OptInRequired", "AccessDenied"])
    def test_region_refusals_are_not_credential_errors(self, code):
        assert not is_credential_error(client_error(code))

    def test_non_aws_exception(self):
        assert not is_credential_error(ValueError("nope"))


class TestIsAccessDeniedError:
    """Tests for is_access_denied_error."""

    @pytest.mark.parametrize("code", ["AccessDenied", "UnauthorizedOperation", "AuthFailure", "OptInRequired"])
    def test_denied_codes(self, code):
        assert is_access_denied_error(client_error(code))

    def test_other_client_error(self):
        assert not is_access_denied_error(client_error("InvalidParameterValue"))

    def test_no_credentials(self):
        assert not is_access_denied_error(NoCredentialsError())


class TestIsThrottlingError:
    """Tests for is_throttling_error."""

    @pytest.mark.parametrize("code", ["Throttling", "ThrottlingException", "RequestLimitExceeded"])
    def test_throttling_codes(self, code):
        assert is_throttling_error(client_error(code))

    def test_auth_is_not_throttling(self):
        assert not is_throttling_error(client_error("AccessDenied"))

    def test_non_aws_exception(self):
        assert not is_throttling_error(RuntimeError("slow"))


class TestCheckAndRaiseAuthError:
    """Tests for check_and_raise_auth_error."""

    def test_raises_for_credential_error(self):
        original = client_error("ExpiredToken")
        with pytest.raises(AuthError) as exc_info:
            check_and_raise_auth_error(original, "list instances")
        assert exc_info.value.original_error is original
        assert "list instances" in str(exc_info.value)

    def test_raises_for_missing_credentials(self):
        with pytest.raises(AuthError):
            check_and_raise_auth_error(NoCredentialsError(), "list instances")

    @pytest.mark.parametrize("code", ["AuthFailure", "UnauthorizedOperation", "OptInRequired"])
    def test_returns_for_region_refusals(self, code):
        assert check_and_raise_auth_error(client_error(code), "list instances") is None

    def test_returns_for_other_errors(self):
        assert check_and_raise_auth_error(client_error("InternalError"), "list instances") is None


# =============================================================================
# setup_logging Tests
# =============================================================================

class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_level(self):
        setup_logging("WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_case_insensitive(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_defaults_to_info(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_log_file_in_output_dir(self, tmp_path):
        setup_logging("INFO", output_dir=str(tmp_path))
        try:
            logs = [f for f in os.listdir(tmp_path) if f.startswith("usage_audit_") and f.endswith(".log")]
            assert len(logs) == 1
        finally:
            setup_logging("INFO")


# =============================================================================
# ProgressTracker Tests
# =============================================================================

class TestProgressTracker:
    """Tests for ProgressTracker in plain-text mode."""

    def test_counts(self, capsys):
        with ProgressTracker("Test", total_regions=2, show_progress=False) as tracker:
            tracker.start_region("us-east-1")
            tracker.update_task("Fetching...")
            tracker.add_rows(REPORT_EC2_CPU_METRICS, 3)
            tracker.add_rows(REPORT_UNUSED_EIPS, 1)
            tracker.complete_region()
            tracker.start_region("us-west-2")
            tracker.fail_region("us-west-2", RuntimeError("boom"))

        assert tracker.completed_regions == 1
        assert tracker.failed_regions == {"us-west-2": "boom"}
        assert tracker.total_rows == 4
        out = capsys.readouterr().out
        assert "[us-west-2] FAILED" in out
        assert "Regions failed:    us-west-2" in out


# =============================================================================
# parse_list Tests
# =============================================================================

class TestParseList:
    """Tests for parse_list."""

    def test_comma_string(self):
        assert parse_list("us-east-1, us-west-2,,") == ["us-east-1", "us-west-2"]

    def test_list(self):
        assert parse_list(["a", " b ", ""]) == ["a", "b"]

    def test_none(self):
        assert parse_list(None) == []
