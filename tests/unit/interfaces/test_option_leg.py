from datetime import date, datetime

import pytest

from osw.exceptions import SchemaError
from osw.interfaces.option_leg import (
    ClosingEntry,
    ClosingTransaction,
    Leg,
    ManualPremium,
    MarketPremium,
    SavedPremium,
    TheoreticalPremium,
    is_cost_basis_source,
    provenance_label,
)


def test_provenance_labels():
    assert provenance_label(None) == "unset"
    assert provenance_label(MarketPremium()) == "market"
    assert provenance_label(TheoreticalPremium(volatility=0.2)) == "theoretical"
    assert provenance_label(ManualPremium()) == "manual"
    assert provenance_label(SavedPremium()) == "saved"


def test_only_real_prices_are_cost_bases():
    assert not is_cost_basis_source(None)
    assert not is_cost_basis_source(TheoreticalPremium(volatility=0.2))
    assert all(is_cost_basis_source(s) for s in (MarketPremium(), ManualPremium(), SavedPremium()))


def test_unknown_source_raises():
    with pytest.raises(SchemaError):
        provenance_label("market")


def test_leg_rejects_unknown_kind_and_side():
    with pytest.raises(SchemaError):
        Leg(id="x", kind="future", position="long", quantity=1, premium=1.0)
    with pytest.raises(SchemaError):
        Leg(id="x", kind="call", position="flat", quantity=1, premium=1.0, strike=10)


def test_multiplier_direction_and_signed_quantity():
    option = Leg(id="o", kind="put", position="short", quantity=3, premium=1.0, strike=50)
    stock = Leg(id="s", kind="stock", position="long", quantity=100, premium=50.0)

    assert option.multiplier == 100 and stock.multiplier == 1
    assert option.signed_quantity() == -3
    assert stock.signed_quantity() == 100


def test_cost_basis_floor():
    leg = Leg(id="o", kind="call", position="long", quantity=1, premium=0.0, strike=10)

    assert leg.cost_basis == pytest.approx(0.01)


def test_closing_quantities_and_validity():
    closing = ClosingTransaction(
        entries=(
            ClosingEntry(id="a", quantity=1, closing_price=2.0, opening_price=1.0, strike=10),
            ClosingEntry(id="b", quantity=1, closing_price=4.0, opening_price=1.0, strike=10, excluded=True),
        )
    )
    leg = Leg(id="o", kind="call", position="long", quantity=3, premium=1.0, strike=10, closing=closing)
    over_closed = Leg(id="o", kind="call", position="long", quantity=1, premium=1.0, strike=10, closing=closing)

    assert leg.closed_quantity == 2
    assert leg.open_quantity == 1
    assert closing.average_closing_price == pytest.approx(3.0)
    assert leg.is_valid
    assert not over_closed.is_valid


def test_days_until_expiry_from_expiration_date():
    leg = Leg(
        id="o", kind="call", position="long", quantity=1, premium=1.0, strike=10,
        expiration_date=date(2026, 10, 20), days_to_expiry=99,
    )

    assert leg.days_until_expiry(datetime(2026, 10, 16, 10, 0)) == pytest.approx(4.25)
    assert leg.days_until_expiry(datetime(2026, 10, 21)) == 0.0
    assert leg.days_until_expiry(None) == 99.0
