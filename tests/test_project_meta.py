from __future__ import annotations

import pytest

from autoqs.project_meta import (
    COUNTRY_BY_CODE,
    DEFAULT_COUNTRY,
    MeasurementStandard,
    country_display_strings,
    find_country,
    normalize_measurement_standard,
    resolve_country,
    standard_short_name,
)


@pytest.mark.parametrize("value", ["UK", "uk", "UK - United Kingdom (GBP)", "United Kingdom"])
def test_find_country(value):
    assert find_country(value) is COUNTRY_BY_CODE["UK"]


def test_unknown_country_falls_back_to_default():
    assert find_country("Atlantis") is None
    assert resolve_country("Atlantis") is DEFAULT_COUNTRY
    assert DEFAULT_COUNTRY.code == "LK"


def test_display_strings():
    assert "US - United States (USD)" in country_display_strings()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("NRM2", MeasurementStandard.NRM2),
        ("nrm1", MeasurementStandard.NRM1),
        ("CESMM4 (Civil Engineering)", MeasurementStandard.CESMM4),
        (MeasurementStandard.POMI, MeasurementStandard.POMI),
        ("", None),
        ("ISO 9000", None),
    ],
)
def test_normalize_measurement_standard(value, expected):
    assert normalize_measurement_standard(value) is expected


def test_standard_short_name():
    assert standard_short_name("SMM7 (Standard Method of Measurement)") == "SMM7"
    assert standard_short_name("Local method") == "Local method"
