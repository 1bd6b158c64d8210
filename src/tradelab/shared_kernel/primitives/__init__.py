"""
Shared Kernel primitives.

This package re-exports the minimal set of market primitives so that other
modules can import them from one place:

    from tradelab.shared_kernel.primitives import Candle, Symbol, Timeframe
"""

from .candle import Candle
from .symbol import Symbol
from .timeframe import Timeframe

__all__ = [
    "Candle",
    "Symbol",
    "Timeframe",
]
