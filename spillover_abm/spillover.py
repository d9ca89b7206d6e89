"""Rolling-window spillover networks over simulated asset prices.

For every window of log returns the absolute pairwise correlation matrix is
computed, entries whose correlation t-test is not significant are zeroed,
and the remaining matrix is read as a directed weighted graph:

    total spillover = sum(S) / (n * (n - 1)) * 100      (0-100 scale)
    to_i   = sum_j S[i, j]
    from_j = sum_i S[i, j]
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import networkx as nx
import numpy as np
import pandas as pd
from scipy import stats

from .analytics import asset_spillover_stats, detect_structural_breaks
from .config import DEFAULT_PARAMS
from .exceptions import ConfigurationError, DataShapeError, NumericalError

logger = logging.getLogger(__name__)

_CONSTANT_TOL = 1e-12


def significant_spillover_matrix(window_returns: np.ndarray,
                                 significance_level: float) -> np.ndarray:
    """Absolute correlations with zero diagonal, insignificant pairs zeroed.

    Raises
    ------
    NumericalError
        If any asset is (near-)constant in the window or the correlation
        matrix is not finite.
    """
    window_returns = np.asarray(window_returns, dtype=float)
    n_obs = window_returns.shape[0]
    if np.any(window_returns.std(axis=0) <= _CONSTANT_TOL):
        raise NumericalError("constant returns in window, correlation undefined")

    with np.errstate(divide='ignore', invalid='ignore'):
        corr = np.corrcoef(window_returns, rowvar=False)
    if not np.all(np.isfinite(corr)):
        raise NumericalError("non-finite correlation matrix")

    r = np.clip(np.abs(corr), 0.0, 1.0)
    df = n_obs - 2
    with np.errstate(divide='ignore', invalid='ignore'):
        t_stat = r * np.sqrt(df / (1.0 - r ** 2))
    t_stat = np.where(r >= 1.0, np.inf, t_stat)
    p_values = 2 * stats.t.sf(t_stat, df)

    spillover = r.copy()
    np.fill_diagonal(spillover, 0.0)
    spillover[p_values > significance_level] = 0.0
    return spillover


def network_metrics(matrix: np.ndarray) -> dict:
    """Density, clustering and betweenness centralisation of a spillover graph.

    Clustering is the transitivity of the undirected view. Centralisation is
    Freeman's index on unweighted betweenness, normalised by its directed
    maximum (n - 1)^2 (n - 2); it is 0 for fewer than 3 assets.
    """
    graph = nx.from_numpy_array(np.asarray(matrix), create_using=nx.DiGraph)
    n = graph.number_of_nodes()
    density = nx.density(graph) if n > 1 else 0.0
    clustering = nx.transitivity(graph.to_undirected())

    if n < 3 or graph.number_of_edges() == 0:
        centralization = 0.0
    else:
        betweenness = np.array(list(
            nx.betweenness_centrality(graph, normalized=False).values()))
        centralization = float(np.sum(betweenness.max() - betweenness)
                               / ((n - 1) ** 2 * (n - 2)))
    return {
        'density': float(density),
        'clustering': float(clustering),
        'centralization': centralization,
    }


def window_spillover(window_returns: np.ndarray,
                     significance_level: float = 0.05) -> dict:
    """Spillover matrix, indices and graph metrics of a single window.

    A degenerate window yields an all-zero matrix and ``degraded=True``
    instead of raising.
    """
    n_assets = np.asarray(window_returns).shape[1]
    degraded = False
    try:
        matrix = significant_spillover_matrix(window_returns, significance_level)
    except NumericalError as exc:
        logger.debug("Window degraded to zero spillover: %s", exc)
        matrix = np.zeros((n_assets, n_assets))
        degraded = True

    total = matrix.sum() / (n_assets * (n_assets - 1)) * 100.0
    return {
        'matrix': matrix,
        'total': float(total),
        'to': matrix.sum(axis=1),
        'from': matrix.sum(axis=0),
        'degraded': degraded,
        **network_metrics(matrix),
    }


@dataclass
class SpilloverResult:
    """Aligned per-window spillover series; window ``w`` covers log returns
    ``w .. w + window_size - 1``."""

    total_spillover: np.ndarray         # (W,)
    directional_to: np.ndarray          # (W, A)
    directional_from: np.ndarray        # (W, A)
    network_density: np.ndarray         # (W,)
    network_clustering: np.ndarray      # (W,)
    network_centralization: np.ndarray  # (W,)
    matrices: np.ndarray                # (W, A, A)
    window_end: np.ndarray              # index of each window's last return
    degraded_windows: list[int]
    window_size: int
    significance_level: float
    asset_names: list[str]

    @property
    def n_windows(self) -> int:
        return len(self.total_spillover)

    @property
    def net_spillover(self) -> np.ndarray:
        return self.directional_to - self.directional_from

    def average_pairwise_spillover(self) -> np.ndarray:
        """Mean upper-triangle entry of each window's matrix."""
        n = self.matrices.shape[1]
        rows, cols = np.triu_indices(n, k=1)
        return self.matrices[:, rows, cols].mean(axis=1)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'total_spillover': self.total_spillover,
            'network_density': self.network_density,
            'network_clustering': self.network_clustering,
            'network_centralization': self.network_centralization,
        }, index=pd.Index(self.window_end, name='window_end'))

    def asset_stats(self) -> pd.DataFrame:
        return asset_spillover_stats(self.directional_to, self.directional_from,
                                     self.asset_names)

    def structural_breaks(self) -> dict:
        return {
            'density': detect_structural_breaks(self.network_density),
            'clustering': detect_structural_breaks(self.network_clustering),
        }


def _price_matrix(prices):
    asset_names = None
    if isinstance(prices, pd.DataFrame):
        asset_names = [str(c) for c in prices.columns]
        prices = prices.to_numpy()
    elif hasattr(prices, 'prices'):  # SimulationResult
        asset_names = prices.asset_names
        prices = prices.prices
    try:
        matrix = np.asarray(prices, dtype=float)
    except (TypeError, ValueError) as exc:
        raise DataShapeError(f"Prices must be numeric: {exc}") from exc
    if matrix.ndim != 2:
        raise DataShapeError(f"Prices must be (periods x assets), got {matrix.shape}")
    if matrix.shape[1] < 2:
        raise DataShapeError("Spillover needs at least 2 assets")
    if not np.all(np.isfinite(matrix)) or np.any(matrix <= 0):
        raise DataShapeError("Prices must be finite and strictly positive")
    if asset_names is None:
        asset_names = [f"asset_{i + 1}" for i in range(matrix.shape[1])]
    return matrix, list(asset_names)


def compute_dynamic_spillover(prices, window_size: int | None = None,
                              significance_level: float | None = None,
                              max_workers: int | None = None) -> SpilloverResult:
    """Compute rolling-window spillover networks from a price history.

    Parameters
    ----------
    prices : SimulationResult, DataFrame or array
        (periods x assets) strictly positive prices.
    window_size : int, default 100
        Number of log returns per window, at least 3.
    significance_level : float, default 0.05
        Pairs whose correlation p-value exceeds this are dropped.
    max_workers : int, optional
        Evaluate windows on a thread pool of this size. Windows are
        independent, so the result is identical to sequential evaluation.
    """
    window_size = DEFAULT_PARAMS['window_size'] if window_size is None else window_size
    if significance_level is None:
        significance_level = DEFAULT_PARAMS['significance_level']

    matrix, asset_names = _price_matrix(prices)
    returns = np.diff(np.log(matrix), axis=0)
    n_returns, n_assets = returns.shape

    if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
        raise ConfigurationError(f"window_size must be an integer, got {window_size!r}")
    if window_size < 3:
        raise ConfigurationError(f"window_size must be >= 3, got {window_size}")
    if window_size > n_returns:
        raise ConfigurationError(
            f"window_size={window_size} exceeds the {n_returns} available returns")
    if not 0.0 < significance_level < 1.0:
        raise ConfigurationError(
            f"significance_level must lie in (0, 1), got {significance_level}")

    starts = range(n_returns - window_size + 1)
    logger.info("Computing spillover over %d windows of %d returns (%d assets)",
                len(starts), window_size, n_assets)

    def run(start):
        return window_spillover(returns[start:start + window_size],
                                significance_level)

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            windows = list(pool.map(run, starts))
    else:
        windows = [run(start) for start in starts]

    result = SpilloverResult(
        total_spillover=np.array([w['total'] for w in windows]),
        directional_to=np.array([w['to'] for w in windows]),
        directional_from=np.array([w['from'] for w in windows]),
        network_density=np.array([w['density'] for w in windows]),
        network_clustering=np.array([w['clustering'] for w in windows]),
        network_centralization=np.array([w['centralization'] for w in windows]),
        matrices=np.array([w['matrix'] for w in windows]),
        window_end=np.array([s + window_size - 1 for s in starts]),
        degraded_windows=[s for s, w in zip(starts, windows) if w['degraded']],
        window_size=int(window_size),
        significance_level=float(significance_level),
        asset_names=asset_names,
    )
    if result.degraded_windows:
        logger.info("%d window(s) degraded to zero spillover",
                    len(result.degraded_windows))
    logger.info("Spillover computed: mean %.2f%%, peak %.2f%%",
                result.total_spillover.mean(), result.total_spillover.max())
    return result
