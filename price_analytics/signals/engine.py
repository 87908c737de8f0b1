"""
Rule-based trade signal generation from the latest indicator values.

The signal is derived from the last two indicator rows only. Two rule
families vote independently:

- RSI: below the oversold level is bullish, above the overbought level bearish
- Moving-average crossover: the fast SMA (20 by default) crossing above the
  slow SMA (50 by default) is bullish, crossing below is bearish

Votes on one side produce BUY or SELL, no votes produce HOLD, and votes on
both sides are resolved by the configured tie-break. Stop and target levels
are placed around the latest close using a volatility-scaled risk percentage
and a fixed reward-to-risk ratio.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Tuple, Union

import numpy as np
import pandas as pd

from price_analytics.exceptions import InsufficientHistoryError
from price_analytics.features.engineer import FeatureEngineer
from price_analytics.utils.config import ConfigManager, resolve_config

logger = logging.getLogger(__name__)


class SignalAction(str, Enum):
    BUY = 'BUY'
    SELL = 'SELL'
    HOLD = 'HOLD'


@dataclass(frozen=True)
class SignalRationale:
    """Indicator values and votes behind a signal."""

    rsi_previous: float
    rsi_current: float
    sma_fast_previous: float
    sma_slow_previous: float
    sma_fast_current: float
    sma_slow_current: float
    volatility: float
    bullish_votes: Tuple[str, ...] = ()
    bearish_votes: Tuple[str, ...] = ()
    conflict: bool = False

    @property
    def families_voting(self) -> int:
        return len(set(self.bullish_votes) | set(self.bearish_votes))


@dataclass(frozen=True)
class TradeSignal:
    """Directional recommendation with stop and target levels.

    Percentages are expressed in percent (2.0 means 2%).
    """

    action: SignalAction
    confidence: int
    reference_price: float
    stop_price: float
    target_price: float
    risk_pct: float
    target_pct: float
    rationale: SignalRationale

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['action'] = self.action.value
        return data


class SignalEngine:
    """Generates a BUY/SELL/HOLD signal from an indicator frame."""

    def __init__(self, config: Union[Dict, ConfigManager, None] = None):
        """Initialize signal engine.

        Args:
            config: Configuration dict or ConfigManager instance
        """
        self.config = resolve_config(config)
        self.signal_config = self.config.get('signal', {})

        self.rsi_oversold = self.signal_config.get('rsi_oversold', 35.0)
        self.rsi_overbought = self.signal_config.get('rsi_overbought', 65.0)
        self.base_confidence = self.signal_config.get('base_confidence', 50)
        self.confidence_step = self.signal_config.get('confidence_step', 20)
        self.max_confidence = self.signal_config.get('max_confidence', 90)
        self.risk_multiplier = self.signal_config.get('risk_multiplier', 0.5)
        self.min_risk_pct = self.signal_config.get('min_risk_pct', 1.0)
        self.max_risk_pct = self.signal_config.get('max_risk_pct', 3.0)
        self.reward_ratio = self.signal_config.get('reward_ratio', 2.0)
        self.tie_break = SignalAction(self.signal_config.get('tie_break', 'hold').upper())
        self.fast_column = f"sma_{self.signal_config.get('fast_sma_period', 20)}"
        self.slow_column = f"sma_{self.signal_config.get('slow_sma_period', 50)}"

        # Column names follow the indicator configuration
        engineer = FeatureEngineer(self.config)
        self.rsi_column = engineer.rsi_column
        self.volatility_column = engineer.volatility_column

    @property
    def required_columns(self) -> Tuple[str, ...]:
        return ('close', self.rsi_column, self.fast_column, self.slow_column, self.volatility_column)

    def _latest_rows(self, frame: pd.DataFrame) -> Tuple[pd.Series, pd.Series]:
        if len(frame) < 2:
            raise InsufficientHistoryError(f"signal needs 2 indicator rows, got {len(frame)}")

        missing = [col for col in self.required_columns if col not in frame.columns]
        if missing:
            raise InsufficientHistoryError(f"indicator frame lacks columns {missing}")

        latest = frame.iloc[-2:][list(self.required_columns)]
        undefined = [col for col in self.required_columns if latest[col].isna().any()]
        if undefined:
            raise InsufficientHistoryError(
                f"last two rows have undefined values for {undefined}; "
                f"more history is needed before a signal can be generated"
            )

        return latest.iloc[0], latest.iloc[1]

    def _vote(self, previous: pd.Series, current: pd.Series) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        bullish = []
        bearish = []

        rsi = current[self.rsi_column]
        if rsi < self.rsi_oversold:
            bullish.append('rsi')
        elif rsi > self.rsi_overbought:
            bearish.append('rsi')

        prev_fast, prev_slow = previous[self.fast_column], previous[self.slow_column]
        curr_fast, curr_slow = current[self.fast_column], current[self.slow_column]
        if prev_fast <= prev_slow and curr_fast > curr_slow:
            bullish.append('crossover')
        elif prev_fast >= prev_slow and curr_fast < curr_slow:
            bearish.append('crossover')

        return tuple(bullish), tuple(bearish)

    def _resolve_action(self, bullish: Tuple[str, ...], bearish: Tuple[str, ...]) -> SignalAction:
        if bullish and bearish:
            logger.warning(f"Conflicting signal votes (bullish={bullish}, bearish={bearish}); "
                           f"tie-break resolves to {self.tie_break.value}")
            return self.tie_break
        if bullish:
            return SignalAction.BUY
        if bearish:
            return SignalAction.SELL
        return SignalAction.HOLD

    def risk_percent(self, volatility: float) -> float:
        """Risk percentage scaled by volatility and clamped to the configured range."""
        return float(np.clip(self.risk_multiplier * volatility, self.min_risk_pct, self.max_risk_pct))

    def generate(self, frame: pd.DataFrame) -> TradeSignal:
        """Generate a trade signal from the last two rows of an indicator frame.

        Args:
            frame: Indicator frame as produced by FeatureEngineer.compute_all_features

        Returns:
            TradeSignal for the latest row

        Raises:
            InsufficientHistoryError: If fewer than two rows are available or any
                required indicator is undefined in either of them
        """
        previous, current = self._latest_rows(frame)
        bullish, bearish = self._vote(previous, current)
        action = self._resolve_action(bullish, bearish)

        rationale = SignalRationale(
            rsi_previous=float(previous[self.rsi_column]),
            rsi_current=float(current[self.rsi_column]),
            sma_fast_previous=float(previous[self.fast_column]),
            sma_slow_previous=float(previous[self.slow_column]),
            sma_fast_current=float(current[self.fast_column]),
            sma_slow_current=float(current[self.slow_column]),
            volatility=float(current[self.volatility_column]),
            bullish_votes=bullish,
            bearish_votes=bearish,
            conflict=bool(bullish and bearish),
        )

        confidence = min(self.max_confidence,
                         self.base_confidence + self.confidence_step * rationale.families_voting)

        price = float(current['close'])
        risk_pct = self.risk_percent(rationale.volatility)
        target_pct = self.reward_ratio * risk_pct

        # HOLD keeps the sell-side levels
        if action is SignalAction.BUY:
            stop_price = price * (1 - risk_pct / 100)
            target_price = price * (1 + target_pct / 100)
        else:
            stop_price = price * (1 + risk_pct / 100)
            target_price = price * (1 - target_pct / 100)

        signal = TradeSignal(
            action=action,
            confidence=int(confidence),
            reference_price=price,
            stop_price=stop_price,
            target_price=target_price,
            risk_pct=risk_pct,
            target_pct=target_pct,
            rationale=rationale,
        )

        logger.info(f"Signal {action.value} (confidence {signal.confidence}) at {price:.2f}: "
                    f"bullish={list(bullish)}, bearish={list(bearish)}")
        return signal
