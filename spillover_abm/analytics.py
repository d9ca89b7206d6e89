"""Inequality, return diagnostics and spillover summary statistics."""

import numpy as np
import pandas as pd
from scipy.stats import jarque_bera, kurtosis, skew
from statsmodels.tsa.stattools import acf


def gini_coefficient(wealth) -> float:
    """Gini coefficient of a wealth vector.

    G = sum((2i - n - 1) * w_(i)) / (n * sum(w)) over ascending w, which is 0
    for equal holdings and (n - 1) / n when one agent holds everything.
    NaN entries are dropped; an empty vector gives NaN.
    """
    w = np.asarray(wealth, dtype=float)
    w = np.sort(w[~np.isnan(w)])
    n = len(w)
    if n == 0:
        return float('nan')
    total = w.sum()
    if total == 0:
        return 0.0
    ranks = np.arange(1, n + 1)
    return float(np.sum((2 * ranks - n - 1) * w) / (n * total))


def compute_return_statistics(returns: np.ndarray) -> dict:
    """Descriptive statistics for a (pooled) return series."""
    returns = np.asarray(returns, dtype=float).ravel()
    jb = jarque_bera(returns)
    return {
        'mean': float(np.mean(returns)),
        'std': float(np.std(returns)),
        'skewness': float(skew(returns)),
        'kurtosis': float(kurtosis(returns, fisher=True)),  # excess kurtosis
        'jb_statistic': float(jb.statistic),
        'jb_pvalue': float(jb.pvalue),
        'min': float(np.min(returns)),
        'max': float(np.max(returns)),
        'n': len(returns),
    }


def compute_autocorrelation(returns: np.ndarray, nlags: int = 20) -> dict:
    """ACF for returns and absolute returns (volatility clustering)."""
    returns = np.asarray(returns, dtype=float)
    nlags = min(nlags, len(returns) - 1)
    return {
        'acf_returns': acf(returns, nlags=nlags, fft=True),
        'acf_abs_returns': acf(np.abs(returns), nlags=nlags, fft=True),
        'nlags': nlags,
    }


def detect_structural_breaks(series, ma_window: int = 5,
                             lag: int = 5) -> np.ndarray:
    """Indices where the smoothed series shifts by more than one std.

    The series is smoothed with a centred moving average; a break is flagged
    where the lag-``lag`` change of the smoothed series exceeds the standard
    deviation of the raw series. Series of 10 points or fewer yield nothing.
    """
    s = pd.Series(np.asarray(series, dtype=float))
    if len(s) <= 10:
        return np.array([], dtype=int)
    smoothed = s.rolling(ma_window, center=True).mean()
    change = (smoothed - smoothed.shift(lag)).abs()
    # label each change at the start of its span
    change = change.shift(-lag)
    breaks = np.flatnonzero((change > s.std()).to_numpy())
    return breaks


def asset_spillover_stats(directional_to: np.ndarray,
                          directional_from: np.ndarray,
                          asset_names=None) -> pd.DataFrame:
    """Per-asset summary of directional spillovers across all windows."""
    to = np.asarray(directional_to, dtype=float)
    frm = np.asarray(directional_from, dtype=float)
    n_assets = to.shape[1]
    index = list(asset_names) if asset_names is not None else list(range(n_assets))
    combined = to + frm
    volatility = (combined.std(axis=0, ddof=1) if len(combined) > 1
                  else np.zeros(n_assets))
    stats = pd.DataFrame({
        'avg_spillover_to': to.mean(axis=0),
        'avg_spillover_from': frm.mean(axis=0),
        'max_spillover_to': to.max(axis=0),
        'max_spillover_from': frm.max(axis=0),
        'spillover_volatility': volatility,
    }, index=pd.Index(index, name='asset'))
    stats['net_spillover'] = stats['avg_spillover_to'] - stats['avg_spillover_from']
    return stats


def performance_by_type(agent_types, agent_returns) -> pd.DataFrame:
    """Mean, median, dispersion and count of agent returns per type."""
    frame = pd.DataFrame({
        'agent_type': [getattr(t, 'value', t) for t in agent_types],
        'return': np.asarray(agent_returns, dtype=float),
    })
    grouped = frame.groupby('agent_type')['return']
    return grouped.agg(['mean', 'median', 'std', 'count'])
