from datetime import date, datetime, timedelta

import numpy as np
import pytest

from osw.config.settings import CommissionSettings, EngineSettings
from osw.interfaces.option_leg import Leg, ManualPremium
from osw.positions.updates import close_position
from osw.pricing.black_scholes import black_scholes
from osw.simulation.scenario_grid import (
    build_price_rows,
    MAX_OFFSET_DAYS,
    build_time_steps,
    generate_scenario_grid,
    group_columns_by_date,
    nearest_target_days,
)
from osw.strategy.aggregator import mark_to_model_pnl

AS_OF = datetime(2026, 10, 16, 10, 0)


def _leg(leg_id="c", kind="call", position="long", strike=100.0, premium=3.0, quantity=1, **kwargs):
    return Leg(
        id=leg_id,
        kind=kind,
        position=position,
        quantity=quantity,
        premium=premium,
        strike=strike,
        source=ManualPremium(),
        **kwargs,
    )


def test_price_rows_include_spot_and_strikes_descending():
    rows = build_price_rows(100.0, 14.0, 15, strikes=[103.0, 250.0])

    assert rows[0] == pytest.approx(114.0)
    assert rows[-1] == pytest.approx(86.0)
    assert 100.0 in rows
    assert 103.0 in rows
    assert 250.0 not in rows
    assert np.all(np.diff(rows) < 0)


def test_price_rows_for_invalid_spot():
    assert build_price_rows(0.0).size == 0


def test_day_mode_columns_for_thirty_days():
    days, use_hours = build_time_steps(30.0, AS_OF)

    assert not use_hours
    assert len(days) == 12
    assert days[0] == 0.0
    assert days[-1] == 30.0


@pytest.mark.parametrize("target,count", [(10, 10), (45, 14), (90, 16)])
def test_day_mode_column_counts(target, count):
    days, _ = build_time_steps(target)

    assert len(days) == count


def test_hour_mode_within_a_week():
    days, use_hours = build_time_steps(3.25, AS_OF)

    assert use_hours
    assert days[0] == 0.0
    assert days[-1] == pytest.approx(3.25)
    assert len(days) <= 17
    assert list(days) == sorted(days)


def test_expired_target_has_single_column():
    assert build_time_steps(0.0) == ((0.0,), True)


def test_date_groups_follow_calendar():
    groups = group_columns_by_date((0.0, 0.5, 1.0, 2.0), AS_OF)

    assert [(g.label, g.start, g.count) for g in groups] == [("16 F", 0, 2), ("17 Sa", 2, 1), ("18 Su", 3, 1)]
    assert group_columns_by_date((0.0,), None) == ()


def test_nearest_target_days_uses_open_option_legs():
    near = _leg("n", expiration_date=date(2026, 10, 20))
    far = _leg("f", expiration_date=date(2026, 11, 20))

    assert nearest_target_days([near, far], AS_OF) == pytest.approx(4.25)
    assert nearest_target_days([], AS_OF) == 30.0


def test_first_column_at_spot_matches_mark_to_model():
    legs = [_leg("c", strike=100, premium=3.0, days_to_expiry=20), _leg("p", "put", "short", 95, 1.5, days_to_expiry=20)]

    grid = generate_scenario_grid(legs, 100.0, 0.3, AS_OF)

    row = int(np.where(grid.prices == 100.0)[0][0])
    expected = mark_to_model_pnl(legs, 100.0, 0.3, AS_OF)
    assert grid.pnl[row, 0] == pytest.approx(expected, rel=1e-9, abs=1e-6)


def test_last_column_is_expiration_payoff():
    legs = [_leg("c", strike=100, premium=3.0, days_to_expiry=20)]

    grid = generate_scenario_grid(legs, 100.0, 0.3, AS_OF)

    expected = 100 * (np.maximum(grid.prices - 100.0, 0.0) - 3.0)
    np.testing.assert_allclose(grid.pnl[:, -1], expected, atol=1e-9)


def test_grid_is_deterministic():
    legs = [_leg(days_to_expiry=12), _leg("s", kind="stock", premium=100.0, strike=0.0, quantity=100)]

    first = generate_scenario_grid(legs, 101.0, 0.25, AS_OF)
    second = generate_scenario_grid(legs, 101.0, 0.25, AS_OF)

    np.testing.assert_array_equal(first.pnl, second.pnl)
    assert first.days == second.days


def test_realized_offset_applies_to_every_cell():
    closed = close_position(_leg(premium=5.0), 1, 8.0)

    grid = generate_scenario_grid([closed], 100.0, 0.3, AS_OF)

    assert grid.realized_offset == pytest.approx(300.0)
    assert np.allclose(grid.pnl, 300.0)


def test_excluded_legs_do_not_move_the_grid():
    base = [_leg(days_to_expiry=10)]
    with_excluded = base + [_leg("x", "put", "short", 90, 1.0, excluded=True, days_to_expiry=10)]

    np.testing.assert_array_equal(
        generate_scenario_grid(base, 100.0, 0.3, AS_OF).pnl,
        generate_scenario_grid(with_excluded, 100.0, 0.3, AS_OF).pnl,
    )


def test_explicit_day_offsets_and_frame_export():
    grid = generate_scenario_grid([_leg(days_to_expiry=30)], 100.0, 0.3, AS_OF, day_offsets=[5, 1], rows=5)

    assert grid.days == (0.0, 1.0, 5.0, 30.0)
    frame = grid.to_frame()
    assert list(frame.columns) == ["+0d", "+1d", "+5d", "+30d"]
    assert frame.index.name == "price"
    assert frame.shape == grid.shape


def test_hour_mode_labels_and_groups():
    leg = _leg(expiration_date=(AS_OF + timedelta(days=2)).date())

    grid = generate_scenario_grid([leg], 100.0, 0.3, AS_OF)

    assert grid.use_hours
    assert grid.column_labels()[0] == "+0h"
    assert grid.date_groups[0].label == "16 F"
    assert sum(group.count for group in grid.date_groups) == len(grid.days)


def test_explicit_offsets_are_clamped_and_skip_non_finite():
    grid = generate_scenario_grid(
        [_leg(days_to_expiry=30)], 100.0, 0.3, AS_OF, day_offsets=[-2, float("nan"), 1e9], rows=3
    )

    assert grid.days == (0.0, 30.0, MAX_OFFSET_DAYS)
    assert len(grid.date_groups) == 3


def test_commission_is_subtracted_from_every_cell():
    legs = [_leg(days_to_expiry=20), _leg("p", "put", "short", 95, 1.5, quantity=2, days_to_expiry=20)]
    fees = CommissionSettings(per_trade=1.0, per_contract=0.65, round_trip=True)

    gross = generate_scenario_grid(legs, 100.0, 0.3, AS_OF)
    net = generate_scenario_grid(legs, 100.0, 0.3, AS_OF, fees=fees)

    # two trades and three contracts, doubled for the round trip
    assert net.commission == pytest.approx(7.9)
    np.testing.assert_allclose(net.pnl, gross.pnl - 7.9)
    assert net.to_frame().attrs["commission"] == pytest.approx(7.9)
    assert gross.commission == 0.0


def test_calendar_spread_values_each_leg_to_its_own_expiry():
    near = _leg("near", position="short", premium=2.0, days_to_expiry=10)
    far = _leg("far", premium=4.0, days_to_expiry=40)

    grid = generate_scenario_grid([near, far], 100.0, 0.3, AS_OF)

    assert grid.days[-1] == pytest.approx(10.0)
    for price, cell in zip(grid.prices, grid.pnl[:, -1]):
        near_pnl = -100 * (max(price - 100.0, 0.0) - 2.0)
        far_pnl = 100 * (black_scholes(price, 100.0, 30 / 365.0, 0.3, "call", 0.05).price - 4.0)
        assert cell == pytest.approx(near_pnl + far_pnl, rel=1e-9, abs=1e-6)


def test_grid_follows_multiplier_and_premium_floor_settings():
    leg = _leg(strike=200.0, premium=0.0, days_to_expiry=5)
    settings = EngineSettings(contract_multiplier=10, min_premium=0.5)

    grid = generate_scenario_grid([leg], 100.0, 0.3, AS_OF, settings=settings)

    np.testing.assert_allclose(grid.pnl[:, -1], -5.0)
