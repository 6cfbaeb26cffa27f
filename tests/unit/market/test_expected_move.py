import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

import pytest

from osw.market.chain import OptionQuote
from osw.market.expected_move import (
    ExpectedMoveCache,
    compute_expected_move,
    frozen_expected_move,
    nearest_expiration,
    volatility_expected_move,
)

EXPIRY = date(2026, 10, 23)


def _quote(strike, side, mid, expiration=EXPIRY):
    return OptionQuote(strike=strike, side=side, mid=mid, underlying_price=100.0, expiration=expiration)


def _chain_without_second_strangle():
    return [
        _quote(95, "put", 3.5),
        _quote(100, "call", 4.2),
        _quote(100, "put", 3.8),
        _quote(105, "call", 2.5),
    ]


def test_blend_without_second_strangle():
    move = compute_expected_move(_chain_without_second_strangle(), 100.0, symbol="AAPL")

    assert move is not None
    assert move.atm_strike == 100
    assert move.otm1_strangle == pytest.approx(6.0)
    assert move.otm2_strangle is None
    assert move.expected_move == pytest.approx(7.40)
    assert move.lower_bound == pytest.approx(92.60)
    assert move.upper_bound == pytest.approx(107.40)
    assert move.move_percent == pytest.approx(7.40)


def test_blend_with_all_strangles():
    chain = _chain_without_second_strangle() + [_quote(90, "put", 1.2), _quote(110, "call", 0.8)]

    move = compute_expected_move(chain, 100.0)

    assert move.expected_move == pytest.approx(0.6 * 8.0 + 0.3 * 6.0 + 0.1 * 2.0)


def test_blend_without_first_strangle_side():
    chain = [
        _quote(90, "put", 1.2),
        _quote(95, "put", 3.5),
        _quote(100, "call", 4.2),
        _quote(100, "put", 3.8),
        _quote(105, "put", 6.0),
        _quote(110, "call", 0.8),
    ]

    move = compute_expected_move(chain, 100.0)

    assert move.otm1_strangle is None
    assert move.expected_move == pytest.approx(0.9 * 8.0 + 0.1 * 2.0)


def test_single_sided_atm_doubles_available_mid():
    move = compute_expected_move([_quote(100, "call", 4.2)], 101.0)

    assert move.expected_move == pytest.approx(8.4)
    assert move.atm_put == pytest.approx(4.2)


def test_no_atm_price_returns_none():
    chain = [OptionQuote(strike=100, side="call", underlying_price=100.0)]

    assert compute_expected_move(chain, 100.0) is None
    assert compute_expected_move(_chain_without_second_strangle(), 0.0) is None


def test_days_to_expiration_defaults_and_floor():
    chain = _chain_without_second_strangle()

    assert compute_expected_move(chain, 100.0).days_to_expiration == 30
    same_day = compute_expected_move(chain, 100.0, expiration=EXPIRY, as_of=datetime(2026, 10, 23, 9, 30))
    assert same_day.days_to_expiration == 1


@pytest.mark.parametrize("as_of", [datetime(2026, 10, 16, 0, 0), datetime(2026, 10, 16, 10, 0), datetime(2026, 10, 16, 23, 59)])
def test_partial_days_round_up_to_whole_days(as_of):
    move = compute_expected_move(_chain_without_second_strangle(), 100.0, expiration=EXPIRY, as_of=as_of)

    assert move.days_to_expiration == 7


def test_nearest_expiration_skips_past_dates():
    chain = [_quote(100, "call", 1.0, date(2026, 10, 9)), _quote(100, "call", 1.0, EXPIRY)]

    assert nearest_expiration(chain, datetime(2026, 10, 16)) == EXPIRY
    assert nearest_expiration(chain) == date(2026, 10, 9)


def test_cache_computes_once_per_key():
    cache = ExpectedMoveCache()
    calls = []
    move = compute_expected_move(_chain_without_second_strangle(), 100.0, symbol="AAPL")

    def compute():
        calls.append(1)
        return move

    first = cache.get_or_compute("AAPL", EXPIRY, compute)
    second = cache.get_or_compute("AAPL", EXPIRY, compute)

    assert first is second
    assert len(calls) == 1


def test_cache_does_not_store_missing_result():
    cache = ExpectedMoveCache()

    assert cache.get_or_compute("AAPL", EXPIRY, lambda: None) is None
    assert len(cache) == 0


def test_new_expiration_evicts_same_symbol_only():
    cache = ExpectedMoveCache()
    move = compute_expected_move(_chain_without_second_strangle(), 100.0)
    cache.get_or_compute("AAPL", EXPIRY, lambda: move)
    cache.get_or_compute("MSFT", EXPIRY, lambda: move)

    cache.get_or_compute("AAPL", date(2026, 10, 30), lambda: move)

    assert sorted(cache.keys()) == [("AAPL", date(2026, 10, 30)), ("MSFT", EXPIRY)]
    assert cache.get("AAPL", EXPIRY) is None


def test_cache_is_thread_safe():
    cache = ExpectedMoveCache()
    move = compute_expected_move(_chain_without_second_strangle(), 100.0)
    counter = []
    lock = threading.Lock()

    def compute():
        with lock:
            counter.append(1)
        time.sleep(0.01)
        return move

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: cache.get_or_compute("SPY", EXPIRY, compute), range(16)))

    assert len(counter) == 1
    assert all(result is move for result in results)


def test_frozen_move_ignores_refreshed_quotes():
    cache = ExpectedMoveCache()
    as_of = datetime(2026, 10, 16, 10, 0)
    first = frozen_expected_move(cache, _chain_without_second_strangle(), 100.0, "AAPL", as_of)

    refreshed = [_quote(100, "call", 9.0), _quote(100, "put", 9.0)]
    second = frozen_expected_move(cache, refreshed, 100.0, "AAPL", as_of)

    assert second.expected_move == pytest.approx(first.expected_move)
    assert first.expiration == EXPIRY
    assert first.days_to_expiration == 7


def test_volatility_expected_move_one_year():
    band = volatility_expected_move(100.0, 0.30, 365)

    assert band.move_1sd == pytest.approx(30.0)
    assert band.lower_2sd == pytest.approx(40.0)
    assert band.upper_1sd == pytest.approx(130.0)
    assert band.move_percent == pytest.approx(30.0)
