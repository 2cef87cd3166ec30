from __future__ import annotations

import json
from types import SimpleNamespace
from typing import List

import pytest

from autoqs.errors import GenerationError, IngestionParseError, QuotaExceededError, SafetyRejectionError
from autoqs.generation import (
    TRADE_SECTIONS,
    Attachment,
    BOQGenerator,
    RetryPolicy,
    build_task_prompt,
    call_with_quota_retry,
    create_system_prompt,
)
from autoqs.project_meta import COUNTRY_BY_CODE, MeasurementStandard


class FakeResponses:
    def __init__(self, outcomes: List[object]) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(*outcomes) -> SimpleNamespace:
    return SimpleNamespace(responses=FakeResponses(list(outcomes)))


def _response(text: str, annotations=()) -> SimpleNamespace:
    content = SimpleNamespace(type="output_text", text=text, annotations=list(annotations))
    return SimpleNamespace(output_text=text, output=[SimpleNamespace(content=[content])])


def test_retry_policy_delays_double():
    policy = RetryPolicy()
    assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_quota_failures_are_retried_with_backoff():
    delays: List[float] = []
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise RuntimeError("429 Too Many Requests")
        return "ok"

    result = call_with_quota_retry(flaky, policy=RetryPolicy(), description="test", sleeper=delays.append)
    assert result == "ok"
    assert delays == [2.0, 4.0]


def test_quota_retries_are_bounded():
    delays: List[float] = []

    def always_quota():
        raise RuntimeError("RESOURCE_EXHAUSTED")

    with pytest.raises(RuntimeError):
        call_with_quota_retry(always_quota, policy=RetryPolicy(), description="test", sleeper=delays.append)
    assert delays == [2.0, 4.0, 8.0]


def test_other_failures_are_not_retried():
    delays: List[float] = []

    def broken():
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        call_with_quota_retry(broken, policy=RetryPolicy(), description="test", sleeper=delays.append)
    assert delays == []


def test_prompts_carry_locale_and_sections():
    country = COUNTRY_BY_CODE["UK"]
    system = create_system_prompt(country, year=2025)
    assert "United Kingdom" in system
    assert "GBP" in system
    assert "2025" in system
    task = build_task_prompt("3 bedroom house, 120m2", MeasurementStandard.NRM2, country)
    assert "3 bedroom house, 120m2" in task
    assert MeasurementStandard.NRM2.value in task
    for name, _scope in TRADE_SECTIONS:
        assert name in task


def test_generate_returns_ledger(payload_text):
    annotation = SimpleNamespace(type="url_citation", url="https://example.com/rates", title="Rates")
    client = _client(_response(f"```json\n{payload_text()}\n```", [annotation]))
    generator = BOQGenerator(client, sleeper=lambda _: None)
    ledger = generator.generate("Clinic", MeasurementStandard.NRM2, COUNTRY_BY_CODE["US"])
    assert ledger.project_summary.currency == "USD"
    assert ledger.sources[0].uri == "https://example.com/rates"
    call = client.responses.calls[0]
    assert call["model"] == generator.model
    assert call["tools"] == [{"type": "web_search_preview"}]
    assert call["input"][0]["role"] == "system"


def test_generate_sends_attachment_as_image(payload_text):
    client = _client(_response(payload_text()))
    generator = BOQGenerator(client, web_search=False)
    generator.generate("", "NRM2", COUNTRY_BY_CODE["LK"], Attachment("image/png", "aGVsbG8="))
    call = client.responses.calls[0]
    assert "tools" not in call
    parts = call["input"][1]["content"]
    assert parts[-1] == {"type": "input_image", "image_url": "data:image/png;base64,aGVsbG8="}


def test_generate_retries_quota_then_succeeds(payload_text):
    delays: List[float] = []
    client = _client(RuntimeError("429 Too Many Requests"), _response(payload_text()))
    generator = BOQGenerator(client, sleeper=delays.append)
    ledger = generator.generate("Clinic", "NRM2", COUNTRY_BY_CODE["US"])
    assert ledger.trades
    assert delays == [2.0]


def test_generate_persistent_quota_raises_quota_error():
    client = _client(*[RuntimeError("quota exceeded")] * 4)
    generator = BOQGenerator(client, sleeper=lambda _: None)
    with pytest.raises(QuotaExceededError):
        generator.generate("Clinic", "NRM2", COUNTRY_BY_CODE["US"])
    assert len(client.responses.calls) == 4


def test_generate_safety_block_is_not_retried():
    client = _client(RuntimeError(json.dumps({"error": {"message": "Blocked for SAFETY"}})))
    generator = BOQGenerator(client, sleeper=lambda _: None)
    with pytest.raises(SafetyRejectionError):
        generator.generate("Clinic", "NRM2", COUNTRY_BY_CODE["US"])
    assert len(client.responses.calls) == 1


def test_generate_empty_response_raises():
    generator = BOQGenerator(_client(SimpleNamespace(output_text="")))
    with pytest.raises(GenerationError):
        generator.generate("Clinic", "NRM2", COUNTRY_BY_CODE["US"])


def test_generate_unparseable_response_raises_parse_error():
    generator = BOQGenerator(_client(_response("Sorry, I can't produce that.")))
    with pytest.raises(IngestionParseError):
        generator.generate("Clinic", "NRM2", COUNTRY_BY_CODE["US"])


def test_generate_requires_input():
    generator = BOQGenerator(_client())
    with pytest.raises(GenerationError):
        generator.generate("   ", "NRM2", COUNTRY_BY_CODE["US"])


def test_missing_api_key_is_reported():
    with pytest.raises(GenerationError):
        BOQGenerator(api_key=None)
