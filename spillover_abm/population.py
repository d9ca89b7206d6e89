"""Heterogeneous agent population factory."""

import logging
from collections import Counter
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from .agents import Agent, AgentType
from .analytics import gini_coefficient
from .config import (
    DEFAULT_PARAMS,
    MIN_MEMORY_LENGTH,
    PARAM_BOUNDS,
    TYPE_PROBABILITIES,
    TYPE_TEMPLATES,
    WEALTH_DISTRIBUTIONS,
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Population:
    """Ordered, fixed-size collection of agents plus creation metadata."""

    agents: tuple[Agent, ...]
    type_distribution: dict[AgentType, int]
    wealth_gini: float
    behavioral_heterogeneity: float
    wealth_distribution: str
    n_assets: int | None = None
    params: dict = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self.agents)

    def __iter__(self):
        return iter(self.agents)

    def __getitem__(self, index) -> Agent:
        return self.agents[index]

    @property
    def n_agents(self) -> int:
        return len(self.agents)

    @property
    def types(self) -> list[AgentType]:
        return [a.agent_type for a in self.agents]

    @property
    def initial_wealth(self) -> np.ndarray:
        return np.array([a.initial_wealth for a in self.agents])

    def type_fractions(self) -> dict[AgentType, float]:
        n = len(self.agents)
        return {t: self.type_distribution.get(t, 0) / n for t in AgentType}

    def to_frame(self) -> pd.DataFrame:
        """One row per agent with its type and behavioural parameters."""
        rows = [{
            'agent_id': a.agent_id,
            'agent_type': a.agent_type.value,
            'initial_wealth': a.initial_wealth,
            'risk_tolerance': a.risk_tolerance,
            'trading_frequency': a.trading_frequency,
            'trend_sensitivity': a.trend_sensitivity,
            'noise_tolerance': a.noise_tolerance,
            'memory_length': a.memory_length,
            'transaction_cost_rate': a.transaction_cost_rate,
            'leverage_limit': a.leverage_limit,
            'social_influence': a.social_influence,
        } for a in self.agents]
        return pd.DataFrame(rows).set_index('agent_id')


def draw_initial_wealth(n_agents: int, mode: str,
                        rng: np.random.Generator,
                        params: dict | None = None) -> np.ndarray:
    """Draw starting wealth for every agent.

    ``pareto`` uses inverse-CDF sampling with shape 1.5 shifted by the floor,
    giving a right-skewed distribution with no agent below 100.
    """
    p = {**DEFAULT_PARAMS, **(params or {})}
    floor = p['wealth_floor']
    if mode == 'equal':
        return np.full(n_agents, p['equal_wealth'], dtype=float)
    if mode == 'normal':
        draws = rng.normal(p['normal_wealth_mean'], p['normal_wealth_sd'],
                           n_agents)
        return np.maximum(floor, draws)
    if mode == 'pareto':
        shape = p['pareto_shape']
        scale = p['equal_wealth'] * (shape - 1) / shape
        u = rng.random(n_agents)
        return scale * (u ** (-1.0 / shape) - 1.0) + floor
    raise ConfigurationError(
        f"Unknown wealth distribution {mode!r}; "
        f"expected one of {WEALTH_DISTRIBUTIONS}")


def apply_heterogeneity(template: dict, factor: float) -> dict:
    """Scale every base parameter by one shared factor, then clamp."""
    scaled = {}
    for name, (low, high) in PARAM_BOUNDS.items():
        scaled[name] = float(np.clip(template[name] * factor, low, high))
    scaled['memory_length'] = max(MIN_MEMORY_LENGTH,
                                  int(round(template['memory_length'] * factor)))
    return scaled


def create_population(n_agents: int = 500,
                      behavioral_heterogeneity: float = 0.7,
                      wealth_distribution: str = 'pareto',
                      rng: np.random.Generator | None = None,
                      n_assets: int | None = None,
                      params: dict | None = None) -> Population:
    """Create a heterogeneous population of trading agents.

    Parameters
    ----------
    n_agents : int
        Number of agents, must be positive.
    behavioral_heterogeneity : float
        Width ``h`` of the per-agent multiplier ``U[1 - h/2, 1 + h/2]``
        applied to all base parameters of the agent's type.
    wealth_distribution : str
        ``'equal'``, ``'normal'`` or ``'pareto'``.
    rng : numpy Generator, optional
        Source of randomness; a fresh unseeded generator when omitted.
    n_assets : int, optional
        Number of assets the population is expected to trade. The simulator
        refuses return series with fewer columns.
    """
    if isinstance(n_agents, bool) or not isinstance(n_agents, (int, np.integer)):
        raise ConfigurationError(f"n_agents must be an integer, got {n_agents!r}")
    if n_agents <= 0:
        raise ConfigurationError(f"n_agents must be positive, got {n_agents}")
    if not 0.0 <= behavioral_heterogeneity <= 1.0:
        raise ConfigurationError(
            f"behavioral_heterogeneity must lie in [0, 1], "
            f"got {behavioral_heterogeneity}")
    if wealth_distribution not in WEALTH_DISTRIBUTIONS:
        raise ConfigurationError(
            f"Unknown wealth distribution {wealth_distribution!r}; "
            f"expected one of {WEALTH_DISTRIBUTIONS}")
    if n_assets is not None and n_assets <= 0:
        raise ConfigurationError(f"n_assets must be positive, got {n_assets}")

    rng = rng or np.random.default_rng()
    types = list(AgentType)
    assignments = rng.choice(len(types), size=n_agents, p=TYPE_PROBABILITIES)
    wealth = draw_initial_wealth(n_agents, wealth_distribution, rng, params)

    h = behavioral_heterogeneity
    agents = []
    for i in range(n_agents):
        agent_type = types[assignments[i]]
        factor = rng.uniform(1 - h / 2, 1 + h / 2)
        chars = apply_heterogeneity(TYPE_TEMPLATES[agent_type.value], factor)
        agents.append(Agent(
            agent_id=i,
            agent_type=agent_type,
            initial_wealth=float(wealth[i]),
            current_wealth=float(wealth[i]),
            transaction_cost_rate=float(rng.uniform(0.001, 0.005)),
            leverage_limit=float(rng.uniform(1.0, 3.0)),
            social_influence=float(rng.uniform(0.0, 0.5)),
            reputation=0.5,
            **chars,
        ))

    counts = Counter(a.agent_type for a in agents)
    type_distribution = {t: counts.get(t, 0) for t in AgentType}
    gini = gini_coefficient(wealth)

    logger.info("Created %d agents (%s wealth), Gini=%.3f", n_agents,
                wealth_distribution, gini)
    logger.debug("Type distribution: %s",
                 {t.value: c for t, c in type_distribution.items()})

    return Population(
        agents=tuple(agents),
        type_distribution=type_distribution,
        wealth_gini=gini,
        behavioral_heterogeneity=behavioral_heterogeneity,
        wealth_distribution=wealth_distribution,
        n_assets=n_assets,
        params=dict(params or {}),
    )


def population_from_agents(agents, n_assets: int | None = None,
                           wealth_distribution: str = 'custom') -> Population:
    """Wrap hand-built Agent records into a Population, ids in list order."""
    agents = tuple(agents)
    counts = Counter(a.agent_type for a in agents)
    wealth = np.array([a.initial_wealth for a in agents], dtype=float)
    return Population(
        agents=agents,
        type_distribution={t: counts.get(t, 0) for t in AgentType},
        wealth_gini=gini_coefficient(wealth),
        behavioral_heterogeneity=0.0,
        wealth_distribution=wealth_distribution,
        n_assets=n_assets,
    )
