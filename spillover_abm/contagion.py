"""Multi-method contagion detection on a spillover index.

Four independent detectors each flag a set of periods (windows); every
detector casts at most one vote per period. Periods reaching
``min_agreement`` votes are consensus periods and maximal runs of them are
contagion episodes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import pandas as pd
import ruptures as rpt

from .config import DEFAULT_PARAMS
from .exceptions import ConfigurationError, DataShapeError
from .spillover import SpilloverResult

logger = logging.getLogger(__name__)

METHODS = ('threshold', 'regime', 'correlation', 'volatility')

_PELT_MIN_SIZE = 2


class Severity(Enum):
    MILD = 'mild'
    MODERATE = 'moderate'
    SEVERE = 'severe'


@dataclass(frozen=True)
class Detection:
    """Output of a single detector."""

    name: str
    flagged: np.ndarray
    intervals: tuple[tuple[int, int], ...]
    threshold: float | None = None
    details: dict = field(default_factory=dict)

    @property
    def n_flagged(self) -> int:
        return int(self.flagged.sum())


@dataclass(frozen=True)
class ContagionEpisode:
    episode_id: int
    start: int
    end: int
    duration: int
    peak_spillover: float
    avg_spillover: float
    spillover_increase: float
    severity: Severity
    methods: tuple[str, ...]


@dataclass
class ContagionResult:
    """Named detector outputs combined by a per-period vote counter."""

    spillover: np.ndarray
    flag_counts: np.ndarray
    consensus: np.ndarray
    episodes: tuple[ContagionEpisode, ...]
    methods: tuple[str, ...]
    min_agreement: int
    threshold: Detection | None = None
    regime: Detection | None = None
    correlation: Detection | None = None
    volatility: Detection | None = None

    @property
    def detections(self) -> dict[str, Detection]:
        return {name: getattr(self, name) for name in METHODS
                if getattr(self, name) is not None}

    @property
    def flagged_any(self) -> np.ndarray:
        return self.flag_counts >= 1

    def to_frame(self) -> pd.DataFrame:
        """One row per episode."""
        columns = ['episode_id', 'start', 'end', 'duration', 'peak_spillover',
                   'avg_spillover', 'spillover_increase', 'severity', 'methods']
        rows = [{
            'episode_id': e.episode_id,
            'start': e.start,
            'end': e.end,
            'duration': e.duration,
            'peak_spillover': e.peak_spillover,
            'avg_spillover': e.avg_spillover,
            'spillover_increase': e.spillover_increase,
            'severity': e.severity.value,
            'methods': ','.join(e.methods),
        } for e in self.episodes]
        return pd.DataFrame(rows, columns=columns)


def flagged_intervals(mask) -> tuple[tuple[int, int], ...]:
    """Maximal runs of True as inclusive (start, end) pairs."""
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return ()
    edges = np.diff(np.concatenate(([0], mask.astype(int), [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return tuple((int(s), int(e)) for s, e in zip(starts, ends))


def _mask_from_segments(n: int, breakpoints, values: np.ndarray):
    """Flag segments (given by exclusive end points) whose mean exceeds the median."""
    median = np.median(values)
    mask = np.zeros(n, dtype=bool)
    segments = []
    start = 0
    for end in breakpoints:
        segment_mean = float(values[start:end].mean())
        if segment_mean > median:
            mask[start:end] = True
            segments.append({'start': start, 'end': end - 1,
                             'avg_spillover': segment_mean})
        start = end
    return mask, segments


class ContagionDetector:
    """Threshold, regime, correlation and volatility detectors plus consensus.

    Parameters
    ----------
    threshold_quantiles : tuple of float
        Cut-points of the spillover series; a period is flagged when it lies
        above the lowest one.
    correlation_quantile, volatility_quantile : float
        Cut-points for the average pairwise spillover and market volatility.
    min_agreement : int
        Votes a period needs to become a consensus period.
    regime_method : {'pelt', 'ma'}
        Changepoint search with PELT, or the moving-average crossover.
    """

    def __init__(self, threshold_quantiles=None, correlation_quantile=None,
                 volatility_quantile=None, min_agreement=None,
                 regime_method: str = 'pelt', ma_short=None, ma_long=None,
                 severe_quantile=None, moderate_quantile=None):
        p = DEFAULT_PARAMS
        self.threshold_quantiles = tuple(sorted(
            threshold_quantiles or p['threshold_quantiles']))
        self.correlation_quantile = (p['correlation_quantile']
                                     if correlation_quantile is None
                                     else correlation_quantile)
        self.volatility_quantile = (p['volatility_quantile']
                                    if volatility_quantile is None
                                    else volatility_quantile)
        self.min_agreement = p['min_agreement'] if min_agreement is None else min_agreement
        self.ma_short = ma_short or p['ma_short']
        self.ma_long = ma_long or p['ma_long']
        self.severe_quantile = (p['severe_quantile'] if severe_quantile is None
                                else severe_quantile)
        self.moderate_quantile = (p['moderate_quantile'] if moderate_quantile is None
                                  else moderate_quantile)
        self.regime_method = regime_method

        if isinstance(self.min_agreement, bool) or not isinstance(
                self.min_agreement, (int, np.integer)) or self.min_agreement < 1:
            raise ConfigurationError(
                f"min_agreement must be a positive integer, got {self.min_agreement!r}")
        if regime_method not in ('pelt', 'ma'):
            raise ConfigurationError(f"Unknown regime_method '{regime_method}'")
        quantiles = (*self.threshold_quantiles, self.correlation_quantile,
                     self.volatility_quantile, self.severe_quantile,
                     self.moderate_quantile)
        if not all(0.0 <= q <= 1.0 for q in quantiles):
            raise ConfigurationError("Detector quantiles must lie in [0, 1]")

    # --- individual detectors -------------------------------------------

    def detect_threshold(self, series: np.ndarray) -> Detection:
        series = np.asarray(series, dtype=float)
        levels = {}
        for q in self.threshold_quantiles:
            cut = float(np.quantile(series, q))
            levels[q] = {'threshold': cut,
                         'intervals': flagged_intervals(series > cut)}
        lowest = float(np.quantile(series, self.threshold_quantiles[0]))
        flagged = series > lowest
        return Detection('threshold', flagged, flagged_intervals(flagged),
                         lowest, {'levels': levels})

    def changepoints(self, series: np.ndarray) -> list[int]:
        """Exclusive segment end points, always ending with ``len(series)``."""
        n = len(series)
        variance = float(np.var(series))
        if variance == 0.0:
            return [n]
        if self.regime_method == 'pelt' and n >= 2 * _PELT_MIN_SIZE:
            algo = rpt.Pelt(model='l2', min_size=_PELT_MIN_SIZE, jump=1)
            algo.fit(series.reshape(-1, 1))
            return [int(b) for b in algo.predict(pen=np.log(n) * variance)]

        smooth = pd.Series(series)
        short = smooth.rolling(self.ma_short, center=True).mean()
        long_ = smooth.rolling(self.ma_long, center=True).mean()
        signal = (short > long_).astype(int).to_numpy()
        changes = np.flatnonzero(np.diff(signal) != 0) + 1
        return [int(c) for c in changes] + [n]

    def detect_regime(self, series: np.ndarray) -> Detection:
        series = np.asarray(series, dtype=float)
        n = len(series)
        breakpoints = self.changepoints(series)
        if len(breakpoints) <= 1:
            flagged = np.zeros(n, dtype=bool)
            segments = []
        else:
            flagged, segments = _mask_from_segments(n, breakpoints, series)
        return Detection('regime', flagged, flagged_intervals(flagged),
                         float(np.median(series)),
                         {'changepoints': breakpoints[:-1], 'segments': segments,
                          'method': self.regime_method})

    def detect_correlation(self, matrices: np.ndarray) -> Detection:
        matrices = np.asarray(matrices, dtype=float)
        if matrices.ndim != 3 or matrices.shape[1] != matrices.shape[2]:
            raise DataShapeError(
                f"Spillover matrices must be (windows x assets x assets), got {matrices.shape}")
        rows, cols = np.triu_indices(matrices.shape[1], k=1)
        average = matrices[:, rows, cols].mean(axis=1)
        cut = float(np.quantile(average, self.correlation_quantile))
        flagged = average > cut
        return Detection('correlation', flagged, flagged_intervals(flagged),
                         cut, {'avg_pairwise_spillover': average})

    def detect_volatility(self, market_prices, n_windows: int) -> Detection:
        """Cross-asset RMS of market log returns, aligned to windows by end."""
        prices = market_prices
        if isinstance(prices, pd.DataFrame):
            prices = prices.to_numpy()
        elif hasattr(prices, 'prices'):  # SimulationResult
            prices = prices.prices
        prices = np.asarray(prices, dtype=float)
        if prices.ndim == 1:
            prices = prices.reshape(-1, 1)
        if prices.ndim != 2 or not np.all(np.isfinite(prices)) or np.any(prices <= 0):
            raise DataShapeError("Market prices must be a finite positive (periods x assets) matrix")
        returns = np.diff(np.log(prices), axis=0)
        volatility = np.sqrt(np.mean(returns ** 2, axis=1))
        offset = len(volatility) - n_windows
        if offset < 0:
            raise DataShapeError(
                f"Market data covers {len(volatility)} returns, fewer than {n_windows} windows")
        aligned = volatility[offset:]
        cut = float(np.quantile(aligned, self.volatility_quantile))
        flagged = aligned > cut
        return Detection('volatility', flagged, flagged_intervals(flagged),
                         cut, {'market_volatility': aligned})

    # --- consensus ------------------------------------------------------

    def _severity(self, peak: float, series: np.ndarray) -> Severity:
        if peak > np.quantile(series, self.severe_quantile):
            return Severity.SEVERE
        if peak > np.quantile(series, self.moderate_quantile):
            return Severity.MODERATE
        return Severity.MILD

    def build_episodes(self, series: np.ndarray, consensus: np.ndarray,
                       detections: dict[str, Detection]) -> tuple[ContagionEpisode, ...]:
        mean_level = float(series.mean())
        episodes = []
        for episode_id, (start, end) in enumerate(flagged_intervals(consensus), 1):
            window = series[start:end + 1]
            peak = float(window.max())
            increase = peak / mean_level - 1 if mean_level != 0 else float('nan')
            methods = tuple(name for name, d in detections.items()
                            if d.flagged[start:end + 1].any())
            episodes.append(ContagionEpisode(
                episode_id=episode_id, start=start, end=end,
                duration=end - start + 1, peak_spillover=peak,
                avg_spillover=float(window.mean()), spillover_increase=increase,
                severity=self._severity(peak, series), methods=methods))
        return tuple(episodes)

    def detect(self, series, market_prices=None, matrices=None,
               methods=METHODS) -> ContagionResult:
        methods = tuple(methods)
        unknown = [m for m in methods if m not in METHODS]
        if unknown:
            raise ConfigurationError(
                f"Unknown detection method(s) {unknown}; choose from {list(METHODS)}")

        series = np.asarray(series, dtype=float).ravel()
        n = len(series)
        if n == 0:
            return ContagionResult(
                spillover=series, flag_counts=np.zeros(0, dtype=int),
                consensus=np.zeros(0, dtype=bool), episodes=(),
                methods=methods, min_agreement=self.min_agreement)
        if not np.all(np.isfinite(series)):
            raise DataShapeError("Spillover series contains NaN or infinite values")

        detections: dict[str, Detection] = {}
        if 'threshold' in methods:
            detections['threshold'] = self.detect_threshold(series)
        if 'regime' in methods:
            detections['regime'] = self.detect_regime(series)
        if 'correlation' in methods:
            if matrices is None:
                logger.debug("Correlation detector skipped: no spillover matrices")
            else:
                if len(matrices) != n:
                    raise DataShapeError(
                        f"{len(matrices)} spillover matrices for {n} periods")
                detections['correlation'] = self.detect_correlation(matrices)
        if 'volatility' in methods:
            if market_prices is None:
                logger.debug("Volatility detector skipped: no market data")
            else:
                detections['volatility'] = self.detect_volatility(market_prices, n)

        flag_counts = np.zeros(n, dtype=int)
        for detection in detections.values():
            flag_counts += detection.flagged.astype(int)
        consensus = flag_counts >= self.min_agreement
        episodes = self.build_episodes(series, consensus, detections)

        for name, detection in detections.items():
            logger.debug("Detector %s flagged %d of %d periods",
                         name, detection.n_flagged, n)
        logger.info("Contagion detection (%s): %d consensus periods, %d episode(s)",
                    ', '.join(detections), int(consensus.sum()), len(episodes))

        return ContagionResult(
            spillover=series, flag_counts=flag_counts, consensus=consensus,
            episodes=episodes, methods=tuple(detections),
            min_agreement=self.min_agreement, **detections)


def detect_contagion_episodes(spillover, market_prices=None, methods=METHODS,
                              matrices=None, min_agreement: int | None = None,
                              regime_method: str = 'pelt') -> ContagionResult:
    """Run the requested detectors on a spillover index.

    ``spillover`` may be a SpilloverResult, in which case its per-window
    matrices feed the correlation detector unless ``matrices`` is given.
    """
    if isinstance(spillover, SpilloverResult):
        if matrices is None:
            matrices = spillover.matrices
        spillover = spillover.total_spillover
    detector = ContagionDetector(min_agreement=min_agreement,
                                 regime_method=regime_method)
    return detector.detect(spillover, market_prices=market_prices,
                           matrices=matrices, methods=methods)
