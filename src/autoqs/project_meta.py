"""
Locale and measurement-standard metadata shared by generation, ingestion and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class MeasurementStandard(str, Enum):
    NRM1 = "NRM1 (RICS New Rules of Measurement)"
    NRM2 = "NRM2 (RICS New Rules of Measurement)"
    SMM7 = "SMM7 (Standard Method of Measurement)"
    CESMM4 = "CESMM4 (Civil Engineering)"
    POMI = "POMI (Principles of Measurement International)"


@dataclass(frozen=True)
class CountryOption:
    code: str
    name: str
    currency: str
    currency_symbol: str


# Keep tuple structure to preserve order for UI display
COUNTRY_CHOICES: Tuple[CountryOption, ...] = (
    CountryOption("LK", "Sri Lanka", "LKR", "LKR"),
    CountryOption("UK", "United Kingdom", "GBP", "£"),
    CountryOption("US", "United States", "USD", "$"),
    CountryOption("AE", "United Arab Emirates", "AED", "AED"),
    CountryOption("SA", "Saudi Arabia", "SAR", "SAR"),
    CountryOption("AU", "Australia", "AUD", "A$"),
    CountryOption("CA", "Canada", "CAD", "C$"),
    CountryOption("IN", "India", "INR", "₹"),
    CountryOption("SG", "Singapore", "SGD", "S$"),
    CountryOption("ZA", "South Africa", "ZAR", "R"),
    CountryOption("QA", "Qatar", "QAR", "QAR"),
)

COUNTRY_BY_CODE: Dict[str, CountryOption] = {country.code: country for country in COUNTRY_CHOICES}
DEFAULT_COUNTRY = COUNTRY_CHOICES[0]


def country_display_strings() -> List[str]:
    """Return formatted strings like ``\"UK - United Kingdom (GBP)\"`` for pickers."""

    return [f"{c.code} - {c.name} ({c.currency})" for c in COUNTRY_CHOICES]


def find_country(value: Optional[str]) -> Optional[CountryOption]:
    """
    Resolve a country code, name or display string to a :class:`CountryOption`.

    Accepts ``"UK"``, ``"uk - United Kingdom (GBP)"`` or ``"United Kingdom"``.
    Returns ``None`` when the value cannot be mapped.
    """

    if not value:
        return None
    candidate = value.strip()
    if not candidate:
        return None

    first = candidate.split("-", 1)[0].strip().upper()
    if first in COUNTRY_BY_CODE:
        return COUNTRY_BY_CODE[first]

    lowered = candidate.lower()
    for country in COUNTRY_CHOICES:
        if lowered == country.name.lower():
            return country
    return None


def resolve_country(value: Optional[str]) -> CountryOption:
    """Like :func:`find_country` but falls back to the first configured country."""

    return find_country(value) or DEFAULT_COUNTRY


def normalize_measurement_standard(value: object) -> Optional[MeasurementStandard]:
    """Map ``"NRM2"``, ``"nrm2"`` or a full label onto :class:`MeasurementStandard`."""

    if isinstance(value, MeasurementStandard):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    head = text.split("(", 1)[0].strip().upper().replace(" ", "")
    if head in MeasurementStandard.__members__:
        return MeasurementStandard[head]
    for standard in MeasurementStandard:
        if text.lower() == standard.value.lower():
            return standard
    return None


def standard_short_name(value: object) -> str:
    """Short code (``NRM2``) for a stored standard label, or the label itself."""

    standard = normalize_measurement_standard(value)
    return standard.name if standard else str(value or "")


__all__ = [
    "MeasurementStandard",
    "CountryOption",
    "COUNTRY_CHOICES",
    "COUNTRY_BY_CODE",
    "DEFAULT_COUNTRY",
    "country_display_strings",
    "find_country",
    "resolve_country",
    "normalize_measurement_standard",
    "standard_short_name",
]
