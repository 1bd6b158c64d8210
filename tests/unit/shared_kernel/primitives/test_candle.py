import pytest

from tradelab.shared_kernel.primitives import Candle


def test_candle_accepts_valid_ohlc() -> None:
    candle = Candle(open_time=300_000, open=100.0, high=101.0, low=99.5, close=100.5, volume=3.0)

    assert candle.close_time is None
    assert candle.as_dict() == {
        "openTime": 300_000,
        "open": 100.0,
        "high": 101.0,
        "low": 99.5,
        "close": 100.5,
    }


def test_candle_rejects_broken_invariants() -> None:
    with pytest.raises(ValueError):
        Candle(open_time=-1, open=1.0, high=1.0, low=1.0, close=1.0)
    with pytest.raises(ValueError):
        Candle(open_time=0, open=1.0, high=0.9, low=0.8, close=0.85)
    with pytest.raises(ValueError):
        Candle(open_time=0, open=1.0, high=1.2, low=1.05, close=1.1)
    with pytest.raises(ValueError):
        Candle(open_time=0, open=1.0, high=1.0, low=1.0, close=1.0, volume=-1.0)
    with pytest.raises(ValueError):
        Candle(open_time=60_000, open=1.0, high=1.0, low=1.0, close=1.0, close_time=60_000)
