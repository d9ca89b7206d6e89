"""Market maker: sets multi-asset prices from aggregate demand."""

import numpy as np

from .config import DEFAULT_PARAMS


class MarketMaker:
    """Linear price-impact market maker over several assets.

    P(t) = P(t-1) * (1 + r(t) + impact_scale * D(t) / (N * normalization))

    where r is the exogenous base return, D the aggregate signed change in
    positions and N the number of agents. The gross factor is floored at
    ``min_gross_return`` and the price itself at ``min_price``, so repeated
    crashes never underflow a price to zero.
    """

    def __init__(self, n_assets: int, initial_price: float = 100.0,
                 impact_scale: float | None = None,
                 normalization: float | None = None,
                 min_gross_return: float | None = None,
                 min_price: float | None = None):
        p = DEFAULT_PARAMS
        self.impact_scale = p['impact_scale'] if impact_scale is None else impact_scale
        self.normalization = (p['impact_normalization'] if normalization is None
                              else normalization)
        self.min_gross_return = (p['min_gross_return'] if min_gross_return is None
                                 else min_gross_return)
        self.min_price = p['min_price'] if min_price is None else min_price

        self.prices = np.full(n_assets, float(initial_price))
        self.price_history: list[np.ndarray] = [self.prices.copy()]
        self.volume_history: list[np.ndarray] = [np.zeros(n_assets)]

    def price_impact(self, aggregate_demand: np.ndarray, n_agents: int) -> np.ndarray:
        return self.impact_scale * aggregate_demand / (n_agents * self.normalization)

    def update_prices(self, base_returns: np.ndarray,
                      aggregate_demand: np.ndarray, n_agents: int) -> np.ndarray:
        """Apply base returns and demand impact; record prices and volume.

        Parameters
        ----------
        base_returns : array
            Regime-scaled exogenous return per asset for this period.
        aggregate_demand : array
            Sum over agents of the signed position change per asset.
        n_agents : int
            Total number of agents.
        """
        gross = 1.0 + base_returns + self.price_impact(aggregate_demand, n_agents)
        gross = np.maximum(gross, self.min_gross_return)
        self.prices = np.maximum(self.prices * gross, self.min_price)
        self.price_history.append(self.prices.copy())
        self.volume_history.append(np.abs(aggregate_demand))
        return self.prices

    def trailing_prices(self, n: int) -> np.ndarray:
        """Last n recorded price vectors (fewer if history is shorter)."""
        return np.array(self.price_history[-n:])

    @property
    def log_prices(self) -> np.ndarray:
        return np.log(self.prices)
