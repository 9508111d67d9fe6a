"""Tests for error classification and envelopes."""

import httpx

from club_scheduler.domain.errors import (
    ClassifiedFailure,
    ErrorKind,
    ErrorSeverity,
)
from club_scheduler.services.errors import (
    classify_error,
    conflict_error,
    extract_error_code,
    failure_response,
    success_response,
    validation_error,
)
from tests.fakes import StoreError


def test_classify_maps_known_status_codes() -> None:
    error = classify_error(StoreError(401), "login")

    assert error.kind is ErrorKind.AUTHENTICATION
    assert error.severity is ErrorSeverity.MEDIUM
    assert error.user_message.startswith("Invalid credentials")
    assert error.retryable is False
    assert error.operation == "login"


def test_classify_marks_transient_failures_retryable() -> None:
    assert classify_error(StoreError(503), "op").retryable is True
    assert classify_error(StoreError(429), "op").retryable is True
    assert classify_error(StoreError("database_error"), "op").retryable is True
    assert classify_error(StoreError(500), "op").retryable is True
    assert classify_error(StoreError(404), "op").retryable is False


def test_classify_unknown_code_uses_default_message() -> None:
    error = classify_error(ValueError("boom"), "op")

    assert error.kind is ErrorKind.UNKNOWN
    assert error.code == "unknown"
    assert error.user_message == "An unexpected error occurred. Please try again."
    assert error.technical_detail == "boom"


def test_classify_passes_through_classified_failures() -> None:
    original = classify_error(StoreError(409), "first")

    assert classify_error(original, "second") is original
    assert classify_error(ClassifiedFailure(original), "second") is original


def test_extract_error_code_handles_httpx_and_builtin_errors() -> None:
    request = httpx.Request("GET", "https://example.supabase.co")
    response = httpx.Response(502, request=request)

    assert (
        extract_error_code(
            httpx.HTTPStatusError("bad gateway", request=request, response=response)
        )
        == 502
    )
    assert extract_error_code(httpx.ConnectError("down")) == "network_error"
    assert extract_error_code(httpx.ReadTimeout("slow")) == "connection_timeout"
    assert extract_error_code(TimeoutError()) == "connection_timeout"
    assert extract_error_code(ConnectionResetError()) == "network_error"
    assert extract_error_code({"status": "404"}) == 404
    assert extract_error_code({"code": "23505"}) == "23505"


def test_duplicate_key_is_a_conflict() -> None:
    error = classify_error({"code": "23505", "message": "duplicate key"}, "create")

    assert error.kind is ErrorKind.CONFLICT
    assert error.technical_detail == "duplicate key"


def test_validation_error_joins_problems() -> None:
    error = validation_error(["Start date is required", "Pick a batch"], "schedule")

    assert error.kind is ErrorKind.VALIDATION
    assert error.user_message == "Start date is required. Pick a batch"
    assert error.context["problems"] == ["Start date is required", "Pick a batch"]


def test_validation_error_lists_fields_without_problems() -> None:
    error = validation_error([], "schedule", field_errors={"end_date": "missing"})

    assert error.user_message == "Please check the following fields: end_date"


def test_conflict_error_counts_conflicts() -> None:
    error = conflict_error(2, "schedule_sessions", [{"date": "2024-12-16"}])

    assert error.kind is ErrorKind.VALIDATION
    assert error.user_message == "Scheduling conflicts found for 2 sessions"
    assert error.context["conflicts"] == [{"date": "2024-12-16"}]


def test_envelopes_serialize() -> None:
    success = success_response({"count": 1}, "Done", meta={"page": 1}).to_dict()
    failure = failure_response(classify_error(StoreError(404), "get")).to_dict()

    assert success["success"] is True
    assert success["data"] == {"count": 1}
    assert success["page"] == 1
    assert failure["success"] is False
    assert failure["message"] == "The requested resource was not found."
    assert failure["error"]["kind"] == "NOT_FOUND_ERROR"
