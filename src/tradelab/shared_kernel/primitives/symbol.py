from __future__ import annotations

from dataclasses import dataclass

# Разделители пар, которые детектор сигналов может прислать ("BTC/USDT", "btc-usdt").
_PAIR_SEPARATORS = ("/", "-", "_")


@dataclass(frozen=True, slots=True)
class Symbol:
    """
    Symbol — спотовая пара в формате Binance REST (например "BTCUSDT").

    Правила:
    - нормализация: strip + upper, разделители пары удаляются
    - инвариант: после нормализации строка не пустая и только из латиницы/цифр
    - одна и та же пара из сигнала и из запроса свечей даёт одинаковый ключ кэша
    """

    value: str

    def __post_init__(self) -> None:
        # Канонический вид: без пробелов по краям, верхний регистр, без "/" и "-".
        normalized = self.value.strip().upper()
        for separator in _PAIR_SEPARATORS:
            normalized = normalized.replace(separator, "")
        object.__setattr__(self, "value", normalized)

        if not normalized:
            raise ValueError("Symbol must be non-empty after normalization")
        # klines endpoint отвергает любые другие символы ответом 400.
        if not (normalized.isascii() and normalized.isalnum()):
            raise ValueError(f"Symbol must be alphanumeric pair code: {self.value!r}")

    def __str__(self) -> str:
        return self.value
