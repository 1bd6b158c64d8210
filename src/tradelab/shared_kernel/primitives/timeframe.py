from __future__ import annotations

from dataclasses import dataclass

# Поддерживаемый набор интервалов свечей провайдера.
# Значения — длительность в минутах.
_SUPPORTED_MINUTES = {
    "1m": 1,
    "3m": 3,
    "5m": 5,
    "15m": 15,
    "30m": 30,
    "1h": 60,
    "2h": 2 * 60,
    "4h": 4 * 60,
    "1d": 24 * 60,
}


@dataclass(frozen=True, slots=True)
class Timeframe:
    """
    Timeframe — интервал свечей окна исхода.

    Representation:
    - code: "1m", "5m", ... (совпадает с кодом interval у Binance klines)
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.strip().lower()
        object.__setattr__(self, "code", normalized)

        if normalized not in _SUPPORTED_MINUTES:
            raise ValueError(
                f"Unsupported timeframe={normalized!r}. Supported: {sorted(_SUPPORTED_MINUTES.keys())}"  # noqa: E501
            )

    @classmethod
    def from_minutes(cls, minutes: int) -> Timeframe:
        """Построить таймфрейм по длительности в минутах (5 -> "5m")."""
        for code, value in _SUPPORTED_MINUTES.items():
            if value == minutes:
                return cls(code)
        raise ValueError(f"Unsupported timeframe minutes={minutes!r}")

    def minutes(self) -> int:
        return _SUPPORTED_MINUTES[self.code]

    def __str__(self) -> str:
        return self.code
