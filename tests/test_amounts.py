from decimal import Decimal

import pytest

from launchpad.core.amounts import (
    from_db,
    lamports_to_sol,
    percent_of,
    sol_to_lamports,
    to_db,
    to_sol,
)


def test_to_sol_truncates_to_lamport():
    assert to_sol("1.0000000019") == Decimal("1.000000001")
    assert to_sol(Decimal("0.3333333333333")) == Decimal("0.333333333")


def test_to_sol_float_uses_short_repr():
    assert to_sol(0.1) == Decimal("0.1")


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity"])
def test_to_sol_rejects_garbage(bad):
    with pytest.raises(ValueError):
        to_sol(bad)


def test_empty_values_are_zero():
    assert to_sol(None) == 0
    assert to_sol("") == 0


def test_db_text_round_trip_keeps_precision():
    stored = to_db(Decimal("123456789.123456789"))
    assert stored == "123456789.123456789"
    assert from_db(stored) == Decimal("123456789.123456789")


def test_lamport_conversions():
    assert lamports_to_sol(600_000_000) == Decimal("0.6")
    assert sol_to_lamports("0.000000001") == 1
    assert sol_to_lamports(Decimal("2.5")) == 2_500_000_000


def test_percent_of_rounds_down():
    assert percent_of("0.000000003", 50) == Decimal("0.000000001")
    assert percent_of("0.6", 50) == Decimal("0.3")
