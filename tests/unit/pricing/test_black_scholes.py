import math

import numpy as np
import pytest

from osw.exceptions import PricingError
from osw.models.options import OptionSpec
from osw.pricing.black_scholes import (
    BlackScholesPricer,
    black_scholes,
    intrinsic_value,
    price_array,
    stock_valuation,
)


def test_at_the_money_call_thirty_days():
    valuation = black_scholes(185.0, 185.0, 30 / 365, 0.30, "call", 0.05)

    assert 5.0 <= valuation.price <= 8.0
    assert 0.50 <= valuation.greeks.delta <= 0.60
    assert valuation.greeks.gamma > 0
    assert valuation.greeks.theta < 0
    assert valuation.greeks.vega > 0


@pytest.mark.parametrize(
    "spot,strike,t,vol,rate",
    [
        (100.0, 100.0, 0.5, 0.2, 0.05),
        (50.0, 80.0, 2.0, 0.6, 0.01),
        (250.0, 180.0, 0.1, 1.2, 0.03),
        (12.5, 10.0, 1.0, 0.05, 0.0),
    ],
)
def test_put_call_parity(spot, strike, t, vol, rate):
    call = black_scholes(spot, strike, t, vol, "call", rate).price
    put = black_scholes(spot, strike, t, vol, "put", rate).price
    forward = spot - strike * math.exp(-rate * t)

    assert call - put == pytest.approx(forward, rel=1e-6, abs=1e-9)


def test_call_price_increases_with_volatility_and_decreases_with_strike():
    low_vol = black_scholes(100, 100, 0.25, 0.1, "call").price
    high_vol = black_scholes(100, 100, 0.25, 0.5, "call").price
    higher_strike = black_scholes(100, 110, 0.25, 0.5, "call").price

    assert high_vol > low_vol
    assert higher_strike < high_vol


def test_call_delta_stays_between_zero_and_one():
    for spot in (50.0, 90.0, 100.0, 110.0, 200.0):
        call = black_scholes(spot, 100, 0.5, 0.3, "call").greeks.delta
        put = black_scholes(spot, 100, 0.5, 0.3, "put").greeks.delta
        assert 0.0 <= call <= 1.0
        assert -1.0 <= put <= 0.0


def test_price_converges_to_intrinsic_near_expiry():
    tiny = 1e-8
    assert black_scholes(110, 100, tiny, 0.3, "call").price == pytest.approx(10.0, abs=1e-4)
    assert black_scholes(90, 100, tiny, 0.3, "put").price == pytest.approx(10.0, abs=1e-4)
    assert black_scholes(90, 100, tiny, 0.3, "call").price == pytest.approx(0.0, abs=1e-6)


def test_expired_valuation_uses_step_delta():
    itm = black_scholes(110, 100, 0.0, 0.3, "call")
    otm_put = black_scholes(110, 100, 0.0, 0.3, "put")
    at_strike = black_scholes(100, 100, 0.0, 0.3, "call")

    assert itm.price == 10.0 and itm.greeks.delta == 1.0
    assert otm_put.price == 0.0 and otm_put.greeks.delta == 0.0
    assert at_strike.greeks.delta == 0.0
    assert black_scholes(90, 100, -1.0, 0.3, "put").greeks.delta == -1.0


def test_zero_volatility_is_intrinsic():
    assert black_scholes(120, 100, 1.0, 0.0, "call").price == 20.0


def test_invalid_spot_or_strike_returns_zero_valuation():
    assert black_scholes(0.0, 100, 0.5, 0.3, "call").price == 0.0
    assert black_scholes(100, -5.0, 0.5, 0.3, "put").price == 0.0
    assert black_scholes(float("nan"), 100, 0.5, 0.3, "put").greeks.delta == 0.0


def test_unknown_option_type_raises():
    with pytest.raises(PricingError):
        black_scholes(100, 100, 0.5, 0.3, "straddle")


def test_deep_out_of_the_money_put_is_not_negative():
    assert black_scholes(1000, 10, 0.1, 0.2, "put").price >= 0.0


def test_intrinsic_value():
    assert intrinsic_value(105, 100, "call") == 5
    assert intrinsic_value(105, 100, "put") == 0
    assert intrinsic_value(95, 100, "put") == 5


def test_stock_valuation_delta_is_signed_quantity():
    valuation = stock_valuation(150.0, -200)

    assert valuation.price == 150.0
    assert valuation.greeks.delta == -200.0
    assert valuation.greeks.gamma == 0.0


def test_price_array_matches_scalar_pricing():
    spec = OptionSpec.from_days("put", 100, 45, 0.25, 0.04)
    spots = np.array([80.0, 95.0, 100.0, 105.0, 130.0])

    vectorised = price_array(spots, spec)
    scalar = [black_scholes(s, 100, spec.time_to_expiry, 0.25, "put", 0.04).price for s in spots]

    np.testing.assert_allclose(vectorised, scalar, rtol=1e-10, atol=1e-12)


def test_price_array_handles_non_positive_spots():
    spec = OptionSpec.from_days("put", 100, 30, 0.3, 0.05)
    values = price_array(np.array([0.0, -1.0]), spec)

    assert np.all(np.isfinite(values))
    assert values[0] == pytest.approx(100 * math.exp(-0.05 * spec.time_to_expiry))


def test_pricer_rejects_multidimensional_spots():
    spec = OptionSpec.from_days("call", 100, 30, 0.3)
    with pytest.raises(PricingError):
        BlackScholesPricer().price(np.ones((2, 2)), spec)


def test_pricer_greeks_match_function():
    pricer = BlackScholesPricer()
    greeks = pricer.greeks(100, 105, 0.5, 0.05, 0.3, "call")

    assert greeks == black_scholes(100, 105, 0.5, 0.3, "call", 0.05).greeks
