from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Candle:
    """
    Candle — OHLC-свеча в том виде, в каком её отдаёт провайдер свечей.

    Время хранится как epoch milliseconds UTC:
    - open_time — начало бара (ключ выравнивания окна)
    - close_time — конец бара, если провайдер его отдаёт
    """

    open_time: int

    open: float
    high: float
    low: float
    close: float

    volume: float = 0.0
    close_time: Optional[int] = None

    def __post_init__(self) -> None:
        if self.open_time < 0:
            raise ValueError("Candle requires open_time >= 0")

        if self.close_time is not None and self.close_time <= self.open_time:
            raise ValueError(
                f"Candle requires open_time < close_time, got {self.open_time} .. {self.close_time}"
            )

        # OHLC инварианты
        if self.high < max(self.open, self.close):
            raise ValueError("Candle requires high >= max(open, close)")

        if self.low > min(self.open, self.close):
            raise ValueError("Candle requires low <= min(open, close)")

        if self.volume < 0:
            raise ValueError("Candle requires volume >= 0")

    def as_dict(self) -> dict:
        """Сериализация свечи для debug-снимков (openTime + OHLC)."""
        return {
            "openTime": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }
