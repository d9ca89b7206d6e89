"""Trading agents: behavioural types, the fixed-schema agent record and the
simulation-time Trader that carries mutable wealth and positions."""

from dataclasses import dataclass
from enum import Enum

import agentpy as ap
import numpy as np

from .config import MIN_MEMORY_LENGTH, PARAM_BOUNDS
from .exceptions import ConfigurationError


class AgentType(Enum):
    MOMENTUM = 'momentum'
    CONTRARIAN = 'contrarian'
    FUNDAMENTALIST = 'fundamentalist'
    NOISE = 'noise'
    HERDING = 'herding'
    SOPHISTICATED = 'sophisticated'


@dataclass
class Agent:
    """Behavioural parameters and wealth of one trader.

    Bounded fields are checked on construction; the record is built once by
    the population factory and never reshaped.
    """

    agent_id: int
    agent_type: AgentType
    initial_wealth: float
    current_wealth: float
    risk_tolerance: float
    trading_frequency: float
    trend_sensitivity: float
    noise_tolerance: float
    memory_length: int
    transaction_cost_rate: float = 0.003
    leverage_limit: float = 1.0
    social_influence: float = 0.0
    reputation: float = 0.5

    def __post_init__(self):
        if not isinstance(self.agent_type, AgentType):
            try:
                self.agent_type = AgentType(self.agent_type)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown agent type {self.agent_type!r}") from None
        for name in ('initial_wealth', 'current_wealth'):
            if not getattr(self, name) > 0:
                raise ConfigurationError(
                    f"{name} must be positive for agent {self.agent_id}")
        for name, (low, high) in PARAM_BOUNDS.items():
            value = getattr(self, name)
            if not low <= value <= high:
                raise ConfigurationError(
                    f"{name}={value} outside [{low}, {high}] "
                    f"for agent {self.agent_id}")
        if self.memory_length < MIN_MEMORY_LENGTH:
            raise ConfigurationError(
                f"memory_length={self.memory_length} < {MIN_MEMORY_LENGTH} "
                f"for agent {self.agent_id}")
        if self.transaction_cost_rate < 0:
            raise ConfigurationError("transaction_cost_rate must be >= 0")
        if not 0.0 <= self.social_influence <= 1.0:
            raise ConfigurationError("social_influence must lie in [0, 1]")

    def within_bounds(self) -> bool:
        """True when every clamped field sits inside its declared range."""
        in_range = all(low <= getattr(self, name) <= high
                       for name, (low, high) in PARAM_BOUNDS.items())
        return in_range and self.memory_length >= MIN_MEMORY_LENGTH


class Trader(ap.Agent):
    """Simulation-time wrapper around an Agent record.

    The Trader owns the mutable state of a run (wealth and per-asset
    position); the wrapped record is only read.
    """

    def setup(self, profile: Agent | None = None, n_assets: int = 1):
        self.profile = profile
        self.n_assets = n_assets
        self.wealth: float = profile.current_wealth if profile else 0.0
        self.position = np.zeros(n_assets)
        self._prev_position = np.zeros(n_assets)
        self.neighbor_influence: float | None = None

    @property
    def agent_type(self) -> AgentType:
        return self.profile.agent_type

    def rebalance(self, new_position: np.ndarray) -> np.ndarray:
        """Adopt a new position vector and return the signed change."""
        change = new_position - self.position
        self._prev_position = self.position
        self.position = new_position
        return change

    def mark_to_market(self, old_prices: np.ndarray,
                       new_prices: np.ndarray) -> float:
        """Revalue wealth after the price update, net of transaction costs.

        wealth_t = pos_t * P_t + cash_{t-1} + (pos_{t-1} - pos_t) * P_t - costs
        where cash_{t-1} = wealth_{t-1} - pos_{t-1} * P_{t-1}.
        """
        prev = self._prev_position
        cash = self.wealth - float(prev @ old_prices)
        position_value = float(self.position @ new_prices)
        cash_flow = float((prev - self.position) @ new_prices)
        costs = float(np.sum(np.abs(self.position - prev)
                             * self.profile.transaction_cost_rate
                             * new_prices))
        self.wealth = position_value + cash + cash_flow - costs
        return self.wealth
