from datetime import datetime

import pytest

from osw.config.settings import EngineSettings
from osw.exceptions import CostBasisLockedError, PositionError
from osw.interfaces.option_leg import (
    Leg,
    ManualPremium,
    MarketPremium,
    SavedPremium,
    TheoreticalPremium,
)
from osw.market.chain import OptionQuote
from osw.positions.updates import (
    apply_market_quote,
    apply_theoretical_premium,
    close_position,
    lock_cost_basis,
    mark_saved,
    remove_closing_entry,
    reset_cost_basis,
    set_excluded,
    set_manual_premium,
    with_quantity,
    with_strike,
)
from osw.pricing.black_scholes import black_scholes
from osw.strategy.aggregator import net_premium, strategy_metrics

AS_OF = datetime(2026, 10, 16, 10, 0)


def _leg(**kwargs):
    defaults = dict(id="c185", kind="call", position="long", quantity=2, premium=5.0, strike=185.0, days_to_expiry=30)
    defaults.update(kwargs)
    return Leg(**defaults)


def test_close_position_freezes_premium_and_strike():
    leg = _leg(source=ManualPremium())

    closed = close_position(leg, 1, 7.25)
    moved = with_strike(closed, 190.0)

    entry = moved.closing.entries[0]
    assert entry.id == "c185-close-1"
    assert entry.opening_price == 5.0
    assert entry.strike == 185.0
    assert moved.strike == 190.0
    assert leg.closing is None


def test_close_position_rejects_over_close_and_bad_quantity():
    leg = close_position(_leg(), 1, 6.0)

    with pytest.raises(PositionError):
        close_position(leg, 2, 6.0)
    with pytest.raises(PositionError):
        close_position(leg, 0, 6.0)
    with pytest.raises(PositionError):
        close_position(leg, 1, -1.0)


def test_close_position_rejects_duplicate_entry_id():
    leg = close_position(_leg(quantity=3), 1, 6.0, entry_id="a")

    with pytest.raises(PositionError):
        close_position(leg, 1, 6.0, entry_id="a")


def test_remove_closing_entry_reopens_contracts():
    leg = close_position(_leg(), 2, 6.0, entry_id="all")
    assert leg.is_fully_closed

    reopened = remove_closing_entry(leg, "all")

    assert reopened.open_quantity == 2
    assert reopened.closing is None
    with pytest.raises(PositionError):
        remove_closing_entry(reopened, "all")


def test_with_quantity_cannot_drop_below_closed():
    leg = close_position(_leg(quantity=3), 2, 6.0)

    assert with_quantity(leg, 4).open_quantity == 2
    with pytest.raises(PositionError):
        with_quantity(leg, 1)


def test_with_strike_rejects_stock_and_bad_values():
    with pytest.raises(PositionError):
        with_strike(_leg(kind="stock", strike=0.0), 10.0)
    with pytest.raises(PositionError):
        with_strike(_leg(), -5.0)


def test_lock_requires_real_cost_basis():
    with pytest.raises(PositionError):
        lock_cost_basis(_leg(source=TheoreticalPremium(volatility=0.3)))

    assert lock_cost_basis(_leg(source=MarketPremium())).cost_basis_locked


def test_manual_premium_respects_lock():
    locked = _leg(source=MarketPremium(), cost_basis_locked=True)

    with pytest.raises(CostBasisLockedError):
        set_manual_premium(locked, 4.0)

    updated = set_manual_premium(locked, 4.0, unlock=True, entered_at=AS_OF)
    assert updated.premium == 4.0
    assert isinstance(updated.source, ManualPremium)
    assert updated.cost_basis_locked


def test_reset_and_saved_cost_basis():
    saved = mark_saved(_leg(source=MarketPremium()))
    assert isinstance(saved.source, SavedPremium)
    assert saved.cost_basis_locked

    reset = reset_cost_basis(saved)
    assert reset.source is None
    assert not reset.cost_basis_locked
    assert not reset.has_cost_basis


def test_theoretical_premium_fills_unset_leg():
    leg = apply_theoretical_premium(_leg(), 185.0, 0.30, as_of=AS_OF)

    expected = black_scholes(185.0, 185.0, 30 / 365, 0.30, "call", 0.05).price
    assert leg.premium == pytest.approx(round(expected, 2))
    assert isinstance(leg.source, TheoreticalPremium)
    assert not leg.has_cost_basis


def test_theoretical_premium_never_touches_protected_leg():
    manual = _leg(source=ManualPremium())
    locked = _leg(source=MarketPremium(), cost_basis_locked=True)

    assert apply_theoretical_premium(manual, 185.0, 0.30) is manual
    assert apply_theoretical_premium(locked, 185.0, 0.30) is locked


def test_theoretical_premium_is_floored():
    leg = apply_theoretical_premium(_leg(strike=400.0), 185.0, 0.10)

    assert leg.premium == pytest.approx(0.01)


def _quote(mid=6.4, strike=185.0, side="call"):
    return OptionQuote(strike=strike, side=side, bid=6.3, ask=6.5, mid=mid, underlying_price=185.0, option_symbol="AAPL-C185")


def test_market_quote_sets_unprotected_premium():
    leg = apply_market_quote(_leg(), _quote(), 185.0, as_of=AS_OF)

    assert leg.premium == 6.4
    assert leg.source == MarketPremium(quote_id="AAPL-C185")
    assert leg.entry_underlying_price == 185.0
    assert leg.market.bid == 6.3
    assert 0.05 < leg.implied_vol < 1.0


def test_market_quote_keeps_locked_premium_but_refreshes_fields():
    locked = _leg(source=ManualPremium(), cost_basis_locked=True)

    updated = apply_market_quote(locked, _quote(mid=8.0), 185.0, as_of=AS_OF)

    assert updated.premium == 5.0
    assert isinstance(updated.source, ManualPremium)
    assert updated.market.mark == 8.0
    assert updated.implied_vol is not None


def test_market_quote_for_other_contract_is_ignored():
    leg = _leg()

    assert apply_market_quote(leg, _quote(strike=190.0), 185.0) is leg
    assert apply_market_quote(leg, _quote(side="put"), 185.0) is leg


def test_edits_never_mutate_input():
    leg = _leg()
    set_excluded(leg)
    with_strike(leg, 200.0)

    assert leg.excluded is False
    assert leg.strike == 185.0


def test_sub_penny_quote_keeps_premium_above_floor():
    leg = _leg(strike=200.0, quantity=1)
    quote = OptionQuote(strike=200.0, side="call", mid=0.004, underlying_price=185.0)

    updated = apply_market_quote(leg, quote, 185.0, as_of=AS_OF)

    assert updated.premium == pytest.approx(0.01)
    assert isinstance(updated.source, MarketPremium)
    assert net_premium([updated]) == pytest.approx(-1.0)
    assert strategy_metrics([updated]).max_loss == pytest.approx(1.0)


def test_zero_manual_premium_is_floored():
    leg = set_manual_premium(_leg(), 0.0)
    custom = set_manual_premium(_leg(), 0.0, settings=EngineSettings(min_premium=0.25))

    assert leg.premium == pytest.approx(0.01)
    assert custom.premium == pytest.approx(0.25)
    with pytest.raises(PositionError):
        set_manual_premium(_leg(), -1.0)
