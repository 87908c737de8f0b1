"""
Signals package for the price analytics pipeline.

Main components:
- SignalEngine: Derives a BUY/SELL/HOLD signal with stop and target levels
"""

from price_analytics.signals.engine import SignalAction, SignalEngine, TradeSignal

__all__ = [
    "SignalAction",
    "SignalEngine",
    "TradeSignal",
]
