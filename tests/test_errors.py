from __future__ import annotations

import json

import pytest

from autoqs.errors import (
    QUOTA_MESSAGE,
    SAFETY_MESSAGE,
    FailureKind,
    GenerationError,
    LedgerIndexError,
    QuotaExceededError,
    SafetyRejectionError,
    classify_failure,
    to_generation_error,
    unwrap_error_message,
)


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Error code: 429 - Too Many Requests", FailureKind.QUOTA),
        ("RESOURCE_EXHAUSTED", FailureKind.QUOTA),
        ("You exceeded your current quota", FailureKind.QUOTA),
        ("Rate limit reached for gpt-4o-mini", FailureKind.QUOTA),
        ("Candidate was blocked due to SAFETY", FailureKind.SAFETY),
        ("Connection reset by peer", FailureKind.GENERIC),
        ("", FailureKind.GENERIC),
    ],
)
def test_classify_failure(message, kind):
    assert classify_failure(message) is kind


def test_unwrap_nested_json_error():
    body = json.dumps({"error": {"code": 500, "message": "Internal model failure"}})
    assert unwrap_error_message(f"Request failed: {body}") == "Internal model failure"
    assert unwrap_error_message("plain text") == "plain text"
    assert unwrap_error_message("broken {json") == "broken {json"


def test_to_generation_error_maps_kinds():
    quota = to_generation_error(RuntimeError("429 Too Many Requests"))
    assert isinstance(quota, QuotaExceededError)
    assert str(quota) == QUOTA_MESSAGE

    safety = to_generation_error(RuntimeError("blocked: SAFETY"))
    assert isinstance(safety, SafetyRejectionError)
    assert str(safety) == SAFETY_MESSAGE

    nested = json.dumps({"error": {"message": "model not found"}})
    generic = to_generation_error(RuntimeError(nested))
    assert type(generic) is GenerationError
    assert str(generic) == "model not found"


def test_ledger_index_error_is_an_index_error():
    assert issubclass(LedgerIndexError, IndexError)
