"""Market signals and type-specific position rules.

The signal bundle is computed once per period and shared read-only by every
agent; each agent's target position depends only on the bundle, its own
parameters and its own wealth/position, so decisions within a period are
independent of each other.
"""

from dataclasses import dataclass

import numpy as np

from .agents import Agent, AgentType
from .config import DEFAULT_PARAMS
from .regime import Regime


@dataclass(frozen=True)
class MarketSignals:
    """Per-asset signals plus shared sentiment and regime for one period."""

    momentum: np.ndarray
    volatility: np.ndarray
    base_returns: np.ndarray
    sentiment: float
    regime: Regime

    @property
    def n_assets(self) -> int:
        return len(self.momentum)


def compute_market_signals(price_history: np.ndarray, sentiment: float,
                           regime: Regime, base_returns: np.ndarray,
                           params: dict | None = None) -> MarketSignals:
    """Build the signal bundle from prices recorded before this period.

    Momentum is the mean one-period price change over the trailing
    ``momentum_window`` prices (0 until that many exist); volatility is the
    sample std of the trailing ``volatility_window`` prices
    (``default_volatility`` until that many exist).
    """
    p = {**DEFAULT_PARAMS, **(params or {})}
    history = np.atleast_2d(np.asarray(price_history, dtype=float))
    n_hist, n_assets = history.shape

    mom_window = p['momentum_window']
    if n_hist >= mom_window:
        momentum = np.diff(history[-mom_window:], axis=0).mean(axis=0)
    else:
        momentum = np.zeros(n_assets)

    vol_window = p['volatility_window']
    if n_hist >= vol_window:
        volatility = history[-vol_window:].std(axis=0, ddof=1)
    else:
        volatility = np.full(n_assets, p['default_volatility'])

    return MarketSignals(momentum=momentum, volatility=volatility,
                         base_returns=np.asarray(base_returns, dtype=float),
                         sentiment=float(sentiment), regime=Regime(regime))


def position_signal(agent_type: AgentType, trend_sensitivity: float,
                    momentum: float, sentiment: float, volatility: float,
                    base_return: float, rng: np.random.Generator,
                    params: dict | None = None) -> float:
    """Signed position signal for one asset, before the wealth cap.

    Only NOISE agents consume randomness here.
    """
    p = {**DEFAULT_PARAMS, **(params or {})}
    if agent_type == AgentType.MOMENTUM:
        return trend_sensitivity * momentum
    if agent_type == AgentType.CONTRARIAN:
        return -trend_sensitivity * momentum
    if agent_type == AgentType.FUNDAMENTALIST:
        return (p['expected_return'] - base_return) * trend_sensitivity
    if agent_type == AgentType.NOISE:
        return float(rng.normal(0.0, p['noise_trader_sigma']))
    if agent_type == AgentType.HERDING:
        return (sentiment - 0.5) * 2 * trend_sensitivity
    if agent_type == AgentType.SOPHISTICATED:
        momentum_term = trend_sensitivity * momentum
        sentiment_term = (sentiment - 0.5) * 0.5
        volatility_term = -volatility * 0.1  # smaller positions when volatile
        return momentum_term + sentiment_term + volatility_term
    return 0.0


def position_cap(wealth: float, risk_tolerance: float, n_assets: int,
                 last_price: float) -> float:
    """Largest absolute position an agent may hold in one asset."""
    return max(wealth, 0.0) * risk_tolerance / n_assets / last_price


def neighbor_sentiment(mean_influence: float, sentiment: float) -> float:
    """Sentiment relayed by neighbours, each weighted by its social influence."""
    return mean_influence * sentiment + (1 - mean_influence) * 0.5


def decide_positions(agent: Agent, wealth: float, position: np.ndarray,
                     signals: MarketSignals, last_prices: np.ndarray,
                     rng: np.random.Generator,
                     neighbor_influence: float | None = None,
                     params: dict | None = None) -> np.ndarray:
    """Target position vector of one agent for this period.

    Steps: perturb momentum and sentiment by agent-specific noise, blend in
    neighbour sentiment when the agent has information-network neighbours,
    apply the type rule, scale and clamp by the wealth cap, and finally hold
    the previous position with probability ``1 - trading_frequency``.
    """
    p = {**DEFAULT_PARAMS, **(params or {})}
    n_assets = signals.n_assets
    noise_level = 1 - agent.noise_tolerance

    momentum = signals.momentum + rng.normal(
        0.0, noise_level * p['momentum_noise'], n_assets)
    sentiment = signals.sentiment + rng.normal(
        0.0, noise_level * p['sentiment_noise'], n_assets)

    if neighbor_influence is not None:
        w = p['neighbor_weight']
        relayed = neighbor_sentiment(neighbor_influence, signals.sentiment)
        sentiment = (1 - w) * sentiment + w * relayed

    new_position = np.empty(n_assets)
    for i in range(n_assets):
        signal = position_signal(
            agent.agent_type, agent.trend_sensitivity, momentum[i],
            sentiment[i], signals.volatility[i], signals.base_returns[i],
            rng, p)
        cap = position_cap(wealth, agent.risk_tolerance, n_assets,
                           last_prices[i])
        if rng.random() < agent.trading_frequency:
            new_position[i] = np.clip(signal * cap, -cap, cap)
        else:
            new_position[i] = position[i]
    return new_position
