"""Error taxonomy for the BOQ ledger and its generation boundary."""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Optional


QUOTA_MESSAGE = (
    "Quota Exceeded: the AI service is busy. We automatically retried but the "
    "limit persists. Please try again in 1-2 minutes."
)
SAFETY_MESSAGE = (
    "Safety Block: the AI flagged this image/text as unsafe. Please try a "
    "different file."
)
INGESTION_MESSAGE = "AI returned invalid JSON format. Please try again."

_QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "quota", "Too Many Requests", "rate limit")
_SAFETY_MARKERS = ("SAFETY",)
_NESTED_JSON = re.compile(r"\{.*\}", re.DOTALL)


class BOQError(Exception):
    """Base class for every error raised by :mod:`autoqs`."""


class IngestionParseError(BOQError):
    """Generator output could not be interpreted as a conforming ledger."""

    def __init__(self, message: str = INGESTION_MESSAGE, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class GenerationError(BOQError):
    """The generation collaborator failed for a reason other than quota or safety."""


class QuotaExceededError(GenerationError):
    """Rate limit / quota exhaustion that persisted through the retry policy."""


class SafetyRejectionError(GenerationError):
    """The model refused the request on safety grounds. Never retried."""


class LedgerIntegrityError(BOQError):
    """A ledger breaks a structural rule (missing or duplicate item ids)."""


class LedgerIndexError(BOQError, IndexError):
    """A trade, item or assumption position does not exist in the snapshot."""


class FailureKind(str, Enum):
    QUOTA = "quota"
    SAFETY = "safety"
    GENERIC = "generic"


def unwrap_error_message(message: str) -> str:
    """Return the inner ``error.message`` when ``message`` embeds a JSON error body."""

    match = _NESTED_JSON.search(message or "")
    if not match:
        return message
    try:
        payload = json.loads(match.group(0))
    except (TypeError, ValueError):
        return message
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return message


def is_quota_message(message: str) -> bool:
    text = message or ""
    lowered = text.lower()
    return any(marker in text or marker.lower() in lowered for marker in _QUOTA_MARKERS)


def classify_failure(message: str) -> FailureKind:
    """Classify a collaborator failure message into a :class:`FailureKind`."""

    if is_quota_message(message):
        return FailureKind.QUOTA
    if any(marker in (message or "") for marker in _SAFETY_MARKERS):
        return FailureKind.SAFETY
    return FailureKind.GENERIC


def to_generation_error(exc: BaseException, message: Optional[str] = None) -> GenerationError:
    """Map an arbitrary collaborator exception onto the generation error hierarchy."""

    raw = message if message is not None else (str(exc) or repr(exc))
    text = unwrap_error_message(raw)
    kind = classify_failure(text)
    if kind is FailureKind.QUOTA:
        return QuotaExceededError(QUOTA_MESSAGE)
    if kind is FailureKind.SAFETY:
        return SafetyRejectionError(SAFETY_MESSAGE)
    return GenerationError(text)


__all__ = [
    "BOQError",
    "IngestionParseError",
    "GenerationError",
    "QuotaExceededError",
    "SafetyRejectionError",
    "LedgerIntegrityError",
    "LedgerIndexError",
    "FailureKind",
    "classify_failure",
    "is_quota_message",
    "to_generation_error",
    "unwrap_error_message",
    "QUOTA_MESSAGE",
    "SAFETY_MESSAGE",
    "INGESTION_MESSAGE",
]
