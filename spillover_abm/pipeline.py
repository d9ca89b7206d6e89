"""End-to-end analysis: population, simulation, spillover and contagion."""

import logging
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_PARAMS
from .contagion import METHODS, ContagionResult, detect_contagion_episodes
from .exceptions import ConfigurationError
from .model import SimulationResult, simulate_market
from .population import Population, create_population
from .spillover import SpilloverResult, compute_dynamic_spillover

logger = logging.getLogger(__name__)


@dataclass
class AnalysisBundle:
    population: Population
    simulation: SimulationResult
    spillover: SpilloverResult
    contagion: ContagionResult

    def summary(self) -> dict:
        return {
            **self.simulation.summary,
            'n_windows': self.spillover.n_windows,
            'mean_total_spillover': float(self.spillover.total_spillover.mean()),
            'degraded_windows': len(self.spillover.degraded_windows),
            'n_episodes': len(self.contagion.episodes),
        }


def run_analysis(asset_returns, n_agents: int = DEFAULT_PARAMS['n_agents'],
                 n_periods: int = DEFAULT_PARAMS['n_periods'],
                 window_size: int = DEFAULT_PARAMS['window_size'],
                 significance_level: float = DEFAULT_PARAMS['significance_level'],
                 network_effects: bool = True,
                 seed: int = DEFAULT_PARAMS['seed'],
                 behavioral_heterogeneity: float = DEFAULT_PARAMS['behavioral_heterogeneity'],
                 wealth_distribution: str = DEFAULT_PARAMS['wealth_distribution'],
                 methods=METHODS, max_workers: int | None = None) -> AnalysisBundle:
    """Run the full pipeline with a single generator seeded from ``seed``.

    The spillover window must fit into the ``n_periods - 1`` simulated log
    returns; this is checked before anything is simulated.
    """
    if isinstance(window_size, int) and window_size > n_periods - 1:
        raise ConfigurationError(
            f"window_size={window_size} exceeds the {n_periods - 1} simulated returns")

    rng = np.random.default_rng(seed)
    population = create_population(
        n_agents, behavioral_heterogeneity=behavioral_heterogeneity,
        wealth_distribution=wealth_distribution, rng=rng)

    simulation = simulate_market(population, asset_returns, n_periods=n_periods,
                                 network_effects=network_effects, rng=rng)
    spillover = compute_dynamic_spillover(simulation, window_size=window_size,
                                          significance_level=significance_level,
                                          max_workers=max_workers)
    contagion = detect_contagion_episodes(spillover, market_prices=simulation,
                                          methods=methods)

    bundle = AnalysisBundle(population, simulation, spillover, contagion)
    logger.info("Analysis complete: %s", bundle.summary())
    return bundle
