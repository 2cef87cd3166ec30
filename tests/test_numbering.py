from __future__ import annotations

import pytest

from autoqs.numbering import next_item_number


@pytest.mark.parametrize(
    "trade_index, existing, expected",
    [
        (1, [], "2.1"),
        (0, ["1.1", "1.2"], "1.3"),
        (1, ["2.3.4"], "2.3.5"),
        (4, ["5.09"], "5.10"),
        (0, ["1.1", "1.2b"], "1.3"),
        (2, ["3.a"], "3.2"),
        (0, ["7"], "8"),
    ],
)
def test_next_item_number(trade_index, existing, expected):
    assert next_item_number(trade_index, existing) == expected


def test_only_last_number_is_considered():
    assert next_item_number(0, ["1.9", "1.2"]) == "1.3"
