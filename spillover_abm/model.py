"""Agent-based multi-asset market driven by an external return series."""

import logging
from dataclasses import dataclass, field

import agentpy as ap
import numpy as np
import pandas as pd

from .agents import AgentType, Trader
from .analytics import (
    compute_autocorrelation,
    compute_return_statistics,
    gini_coefficient,
    performance_by_type,
)
from .config import DEFAULT_PARAMS
from .decisions import compute_market_signals, decide_positions
from .exceptions import ConfigurationError, DataShapeError
from .market_maker import MarketMaker
from .network import MultilayerNetwork, build_multilayer_network
from .population import Population
from .regime import Regime, RegimeProcess

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Per-period histories and summary statistics of one simulation run.

    Row ``t`` of every history is period ``t + 1``; row 0 is the initial
    state (prices at 100, wealth at each agent's current wealth).
    """

    prices: np.ndarray        # (T, A)
    volumes: np.ndarray       # (T, A)
    regimes: np.ndarray       # (T,)
    sentiment: np.ndarray     # (T,)
    wealth: np.ndarray        # (T, N)
    positions: np.ndarray     # (T, N, A)
    agent_types: list[AgentType]
    asset_names: list[str]
    final_wealth_gini: float
    wealth_gini_evolution: np.ndarray
    agent_returns: np.ndarray
    market_returns: np.ndarray
    type_distribution: dict[AgentType, int]
    network_effects: bool
    summary: dict = field(default_factory=dict)

    @property
    def n_periods(self) -> int:
        return self.prices.shape[0]

    @property
    def n_assets(self) -> int:
        return self.prices.shape[1]

    @property
    def n_agents(self) -> int:
        return self.wealth.shape[1]

    def log_returns(self) -> np.ndarray:
        return np.diff(np.log(self.prices), axis=0)

    def price_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.prices, columns=self.asset_names)
        frame.index.name = 'period'
        return frame

    def market_frame(self) -> pd.DataFrame:
        """Regime, sentiment, total volume and wealth Gini per period."""
        return pd.DataFrame({
            'regime': self.regimes,
            'sentiment': self.sentiment,
            'volume': self.volumes.sum(axis=1),
            'wealth_gini': self.wealth_gini_evolution,
        }).rename_axis('period')

    def performance_by_type(self) -> pd.DataFrame:
        return performance_by_type(self.agent_types, self.agent_returns)

    def return_statistics(self) -> dict:
        return compute_return_statistics(self.log_returns())


def _as_return_matrix(asset_returns):
    if isinstance(asset_returns, pd.DataFrame):
        names = [str(c) for c in asset_returns.columns]
        values = asset_returns.to_numpy()
    else:
        values = asset_returns
        names = None
    try:
        matrix = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as exc:
        raise DataShapeError(f"Asset returns must be numeric: {exc}") from exc
    if matrix.ndim == 1:
        matrix = matrix[:, np.newaxis]
    if names is None:
        names = [f"asset_{i + 1}" for i in range(matrix.shape[-1])]
    return matrix, names


def validate_market_inputs(population: Population, asset_returns,
                           n_periods: int,
                           network: MultilayerNetwork | None = None
                           ) -> tuple[np.ndarray, list[str]]:
    """Check simulation inputs and return the return matrix and asset names.

    Raises before any simulation state exists: ConfigurationError for bad
    scalars or an empty population, DataShapeError for a malformed series or
    one with fewer assets than the population expects, or a prebuilt network
    sized for a different population.
    """
    if isinstance(n_periods, bool) or not isinstance(n_periods, (int, np.integer)):
        raise ConfigurationError(f"n_periods must be an integer, got {n_periods!r}")
    if n_periods < 2:
        raise ConfigurationError(f"n_periods must be >= 2, got {n_periods}")
    if population is None or len(population) == 0:
        raise ConfigurationError("Population is empty")
    if network is not None and network.n_agents != len(population):
        raise DataShapeError(
            f"Network has {network.n_agents} agents but the population has "
            f"{len(population)}")
    if asset_returns is None:
        raise DataShapeError("No asset return series supplied")

    matrix, names = _as_return_matrix(asset_returns)
    if matrix.ndim != 2 or matrix.shape[0] == 0 or matrix.shape[1] == 0:
        raise DataShapeError(
            f"Asset returns must be a non-empty (periods x assets) matrix, "
            f"got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise DataShapeError("Asset returns contain NaN or infinite values")

    expected = getattr(population, 'n_assets', None)
    if expected is not None:
        if matrix.shape[1] < expected:
            raise DataShapeError(
                f"Population expects {expected} assets but the return series "
                f"has {matrix.shape[1]}")
        matrix = matrix[:, :expected]
        names = names[:expected]
    return matrix, names


class MarketSimulator(ap.Model):
    """Heterogeneous-agent multi-asset market.

    Simulation loop per period:
      1. Regime transition and sentiment update
      2. Regime-scaled base returns from the external series plus noise
      3. Shared signal bundle (momentum, volatility, sentiment, regime)
      4. Each trader chooses a target position
      5. Aggregate demand over all traders
      6. Market maker updates prices with linear price impact
      7. Traders mark wealth to market net of transaction costs
    """

    def setup(self, population: Population | None = None, asset_returns=None,
              network: MultilayerNetwork | None = None,
              rng: np.random.Generator | None = None):
        # Merge defaults with user-supplied parameters
        for key, val in DEFAULT_PARAMS.items():
            if key not in self.p:
                self.p[key] = val

        if not self.p['network_effects']:
            network = None
        self.returns, self.asset_names = validate_market_inputs(
            population, asset_returns, self.p['n_periods'], network)
        self.population = population
        self._params = dict(self.p)
        self.rng = rng if rng is not None else np.random.default_rng(self.p.get('seed'))

        n_agents = len(population)
        n_assets = self.returns.shape[1]
        n_periods = self.p['n_periods']

        self.regime_process = RegimeProcess(rng=self.rng, params=self._params)
        self.market_maker = MarketMaker(n_assets,
                                        initial_price=self.p['initial_price'],
                                        impact_scale=self.p['impact_scale'],
                                        normalization=self.p['impact_normalization'],
                                        min_gross_return=self.p['min_gross_return'],
                                        min_price=self.p['min_price'])

        self.traders = ap.AgentList(
            self, [Trader(self, profile=a, n_assets=n_assets) for a in population])

        self.network = network if self.p['network_effects'] else None
        if self.network is None and self.p['network_effects'] \
                and n_agents > self.p['network_min_agents']:
            self.network = build_multilayer_network(
                population, layer_types=['information'],
                density=self.p['network_density'], rng=self.rng)
        self._attach_neighbors()

        # Append-only histories, row t = period t + 1
        self.prices = np.zeros((n_periods, n_assets))
        self.volumes = np.zeros((n_periods, n_assets))
        self.wealth = np.zeros((n_periods, n_agents))
        self.positions = np.zeros((n_periods, n_agents, n_assets))
        self.regimes = np.zeros(n_periods, dtype=int)
        self.sentiment = np.zeros(n_periods)

        logger.info("Starting market simulation: %d agents, %d assets, "
                    "%d periods, network effects %s", n_agents, n_assets,
                    n_periods, 'on' if self.network is not None else 'off')

    def _attach_neighbors(self):
        """Store each trader's mean neighbour social influence, if any."""
        layer = self.network.information if self.network is not None else None
        if layer is None:
            return
        influence = np.array([a.social_influence for a in self.population])
        for i, trader in enumerate(self.traders):
            neighbors = layer.neighbors(i)
            if neighbors:
                trader.neighbor_influence = float(influence[neighbors].mean())

    def step(self):
        """Advance the market by one period."""
        t = self.t
        n_agents = len(self.traders)

        # 1. Regime and sentiment
        regime = self.regime_process.step()

        # 2. Base returns
        row = self.returns[min(t, len(self.returns) - 1)]
        base_returns = (row * self.regime_process.multiplier
                        + self.rng.normal(0.0, self.p['return_noise_sigma'], len(row)))

        # 3. Shared signal bundle
        signals = compute_market_signals(self.prices[:t],
                                         self.regime_process.sentiment,
                                         regime, base_returns, self._params)
        last_prices = self.market_maker.prices.copy()

        # 4-5. Decisions and aggregate demand
        demand = np.zeros(len(row))
        for trader in self.traders:
            target = decide_positions(trader.profile, trader.wealth,
                                      trader.position, signals, last_prices,
                                      self.rng, trader.neighbor_influence,
                                      self._params)
            demand += trader.rebalance(target)

        # 6. Prices, only once every trader has contributed demand
        new_prices = self.market_maker.update_prices(base_returns, demand, n_agents)

        # 7. Wealth
        for trader in self.traders:
            trader.mark_to_market(last_prices, new_prices)

        if t % 50 == 0:
            logger.debug("Period %d / %d", t + 1, self.p['n_periods'])

    def update(self):
        """Write the current period into the histories and record observables."""
        t = self.t
        self.prices[t] = self.market_maker.prices
        self.volumes[t] = self.market_maker.volume_history[-1]
        self.regimes[t] = int(self.regime_process.regime)
        self.sentiment[t] = self.regime_process.sentiment
        for i, trader in enumerate(self.traders):
            self.wealth[t, i] = trader.wealth
            self.positions[t, i] = trader.position

        self.record('sentiment', self.sentiment[t])
        self.record('regime', int(self.regimes[t]))
        self.record('volume', float(self.volumes[t].sum()))
        self.record('mean_wealth', float(self.wealth[t].mean()))
        self.record('wealth_gini', gini_coefficient(self.wealth[t]))

        if t >= self.p['n_periods'] - 1:
            self.stop()

    def end(self):
        """Compute summary statistics and assemble the result bundle."""
        last = self.t
        wealth = self.wealth[:last + 1]
        prices = self.prices[:last + 1]

        gini_path = np.array([gini_coefficient(w) for w in wealth])
        start_wealth = wealth[0]
        with np.errstate(divide='ignore', invalid='ignore'):
            agent_returns = (wealth[-1] - start_wealth) / start_wealth
        market_returns = (prices[-1] - prices[0]) / prices[0]

        summary = {
            'final_wealth_gini': float(gini_path[-1]),
            'mean_agent_return': float(np.mean(agent_returns)),
            'mean_market_return': float(np.mean(market_returns)),
            'crisis_periods': int(np.sum(self.regimes[:last + 1] == Regime.CRISIS)),
        }
        log_returns = np.diff(np.log(prices), axis=0)
        if log_returns.shape[0] >= 10:
            stats = compute_return_statistics(log_returns)
            acf_data = compute_autocorrelation(log_returns.mean(axis=1), nlags=5)
            summary.update({
                'kurtosis': stats['kurtosis'],
                'jb_statistic': stats['jb_statistic'],
                'jb_pvalue': stats['jb_pvalue'],
                'std_return': stats['std'],
                'abs_return_acf1': float(acf_data['acf_abs_returns'][1]),
            })
        for key, val in summary.items():
            self.report(key, val)

        self.result = SimulationResult(
            prices=prices,
            volumes=self.volumes[:last + 1],
            regimes=self.regimes[:last + 1],
            sentiment=self.sentiment[:last + 1],
            wealth=wealth,
            positions=self.positions[:last + 1],
            agent_types=[t.agent_type for t in self.traders],
            asset_names=list(self.asset_names),
            final_wealth_gini=float(gini_path[-1]),
            wealth_gini_evolution=gini_path,
            agent_returns=agent_returns,
            market_returns=market_returns,
            type_distribution=dict(self.population.type_distribution),
            network_effects=self.network is not None,
            summary=summary,
        )

        logger.info("Simulation completed: final Gini %.3f, mean agent return "
                    "%.2f%%, mean market return %.2f%%",
                    summary['final_wealth_gini'],
                    summary['mean_agent_return'] * 100,
                    summary['mean_market_return'] * 100)


def simulate_market(population: Population, asset_returns,
                    n_periods: int = 500, network_effects: bool = True,
                    network: MultilayerNetwork | None = None,
                    rng: np.random.Generator | None = None,
                    seed: int | None = None,
                    params: dict | None = None) -> SimulationResult:
    """Validate inputs, run a MarketSimulator for ``n_periods`` and return
    its SimulationResult.

    Parameters
    ----------
    population : Population
        Agents from :func:`create_population`; left unmodified.
    asset_returns : array or DataFrame
        (periods x assets) exogenous returns. Periods beyond its length reuse
        the last row.
    n_periods : int
        Number of periods including the initial state, at least 2.
    network_effects : bool
        Build an information network for sentiment diffusion when the
        population has more than ``network_min_agents`` agents.
    network : MultilayerNetwork, optional
        Prebuilt network whose information layer is used instead.
    rng : numpy Generator, optional
        Caller-owned source of randomness; takes precedence over ``seed``.
    """
    # Fail fast before the model allocates anything
    validate_market_inputs(population, asset_returns, n_periods,
                           network if network_effects else None)

    model_params = {**(params or {}), 'n_periods': int(n_periods),
                    'steps': int(n_periods) - 1,
                    'network_effects': bool(network_effects)}
    if seed is not None:
        model_params['seed'] = seed
    model = MarketSimulator(model_params, population=population,
                            asset_returns=asset_returns, network=network, rng=rng)
    model.run(display=False)
    return model.result
