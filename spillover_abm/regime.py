"""Market regime and sentiment process."""

from enum import IntEnum

import numpy as np

from .config import DEFAULT_PARAMS


class Regime(IntEnum):
    LOW = 1
    NORMAL = 2
    CRISIS = 3


class RegimeProcess:
    """Discrete volatility regime with a bounded sentiment scalar.

    Each transition, in order of precedence:
      - with ``crisis_probability`` enter CRISIS and drop sentiment;
      - else, if in CRISIS, recover to NORMAL with ``recovery_probability``
        and lift sentiment;
      - else with ``switch_probability`` draw LOW or NORMAL uniformly and
        perturb sentiment by U(-0.1, 0.1).
    Sentiment is clamped to ``sentiment_bounds`` after every transition.
    """

    def __init__(self, rng: np.random.Generator | None = None,
                 params: dict | None = None):
        p = {**DEFAULT_PARAMS, **(params or {})}
        self.crisis_probability = p['crisis_probability']
        self.crisis_drop = p['crisis_sentiment_drop']
        self.recovery_probability = p['recovery_probability']
        self.recovery_gain = p['recovery_sentiment_gain']
        self.switch_probability = p['regime_switch_probability']
        self.perturbation = p['sentiment_perturbation']
        self.bounds = tuple(p['sentiment_bounds'])
        self.multipliers = {Regime(k): v for k, v in p['regime_multipliers'].items()}
        self.rng = rng or np.random.default_rng()

        self.regime = Regime.LOW
        self.sentiment = self._clamp(p['initial_sentiment'])
        self.history: list[Regime] = [self.regime]
        self.sentiment_history: list[float] = [self.sentiment]

    def _clamp(self, value: float) -> float:
        low, high = self.bounds
        return float(min(high, max(low, value)))

    def step(self) -> Regime:
        """Advance regime and sentiment by one period."""
        if self.rng.random() < self.crisis_probability:
            self.regime = Regime.CRISIS
            self.sentiment -= self.crisis_drop
        elif self.regime == Regime.CRISIS and self.rng.random() < self.recovery_probability:
            self.regime = Regime.NORMAL
            self.sentiment += self.recovery_gain
        elif self.rng.random() < self.switch_probability:
            self.regime = Regime(int(self.rng.integers(1, 3)))
            self.sentiment += self.rng.uniform(-self.perturbation, self.perturbation)

        self.sentiment = self._clamp(self.sentiment)
        self.history.append(self.regime)
        self.sentiment_history.append(self.sentiment)
        return self.regime

    @property
    def multiplier(self) -> float:
        """Return scaling for the current regime."""
        return self.multipliers[self.regime]
