"""Tests for the rolling-window spillover engine."""

import numpy as np
import pandas as pd
import pytest

from spillover_abm.exceptions import ConfigurationError, DataShapeError, NumericalError
from spillover_abm.spillover import (
    compute_dynamic_spillover,
    network_metrics,
    significant_spillover_matrix,
    window_spillover,
)


def correlated_prices(n_periods=200, n_assets=4, rho=0.6, seed=42):
    """Geometric random walks driven by a common factor."""
    rng = np.random.default_rng(seed)
    common = rng.normal(0, 0.01, (n_periods - 1, 1))
    own = rng.normal(0, 0.01, (n_periods - 1, n_assets))
    returns = np.sqrt(rho) * common + np.sqrt(1 - rho) * own
    log_prices = np.vstack([np.zeros(n_assets), np.cumsum(returns, axis=0)])
    return 100 * np.exp(log_prices)


class TestSignificantSpilloverMatrix:
    def test_perfect_correlation(self):
        x = np.random.default_rng(0).normal(0, 1, 30)
        matrix = significant_spillover_matrix(np.column_stack([x, 2 * x]), 0.05)
        np.testing.assert_allclose(matrix, [[0.0, 1.0], [1.0, 0.0]])

    def test_insignificant_pairs_zeroed(self):
        rng = np.random.default_rng(1)
        returns = rng.normal(0, 1, (5, 2))
        matrix = significant_spillover_matrix(returns, 1e-6)
        np.testing.assert_array_equal(matrix, np.zeros((2, 2)))

    def test_negative_correlation_counts(self):
        x = np.random.default_rng(2).normal(0, 1, 50)
        matrix = significant_spillover_matrix(np.column_stack([x, -x]), 0.05)
        assert matrix[0, 1] == pytest.approx(1.0)

    def test_constant_column_raises(self):
        returns = np.column_stack([np.zeros(10),
                                   np.random.default_rng(3).normal(0, 1, 10)])
        with pytest.raises(NumericalError):
            significant_spillover_matrix(returns, 0.05)


class TestNetworkMetrics:
    def test_empty_graph(self):
        metrics = network_metrics(np.zeros((3, 3)))
        assert metrics == {'density': 0.0, 'clustering': 0.0,
                           'centralization': 0.0}

    def test_complete_graph(self):
        matrix = np.ones((4, 4)) - np.eye(4)
        metrics = network_metrics(matrix)
        assert metrics['density'] == pytest.approx(1.0)
        assert metrics['clustering'] == pytest.approx(1.0)
        assert metrics['centralization'] == pytest.approx(0.0)

    def test_star_is_fully_centralized(self):
        matrix = np.zeros((4, 4))
        matrix[0, 1:] = matrix[1:, 0] = 0.5
        metrics = network_metrics(matrix)
        assert metrics['centralization'] == pytest.approx(1.0)
        assert metrics['clustering'] == pytest.approx(0.0)
        assert metrics['density'] == pytest.approx(0.5)

    def test_two_assets_no_centralization(self):
        matrix = np.array([[0.0, 0.9], [0.9, 0.0]])
        assert network_metrics(matrix)['centralization'] == 0.0


class TestWindowSpillover:
    def test_constant_window_degrades_to_zero(self):
        result = window_spillover(np.zeros((20, 3)), 0.05)
        assert result['degraded']
        assert result['total'] == 0.0
        np.testing.assert_array_equal(result['matrix'], np.zeros((3, 3)))

    def test_directional_sums(self):
        x = np.random.default_rng(4).normal(0, 1, 40)
        result = window_spillover(np.column_stack([x, x + 1e-3 * np.arange(40)]), 0.05)
        np.testing.assert_allclose(result['to'], result['matrix'].sum(axis=1))
        np.testing.assert_allclose(result['from'], result['matrix'].sum(axis=0))
        assert result['total'] == pytest.approx(result['matrix'].sum() / 2 * 100)


class TestComputeDynamicSpillover:
    def test_window_count_and_alignment(self):
        prices = correlated_prices(120, 3)
        result = compute_dynamic_spillover(prices, window_size=50)
        assert result.n_windows == 119 - 50 + 1
        assert result.window_end[0] == 49
        assert result.window_end[-1] == 118
        assert result.matrices.shape == (70, 3, 3)
        assert result.directional_to.shape == (70, 3)

    def test_zero_diagonal_and_bounded_total(self):
        result = compute_dynamic_spillover(correlated_prices(), window_size=30)
        for matrix in result.matrices:
            np.testing.assert_array_equal(np.diag(matrix), 0.0)
        assert np.all(result.total_spillover >= 0)
        assert np.all(result.total_spillover <= 100)

    def test_common_factor_gives_high_spillover(self):
        strong = compute_dynamic_spillover(correlated_prices(rho=0.9), window_size=50)
        weak = compute_dynamic_spillover(correlated_prices(rho=0.0), window_size=50)
        assert strong.total_spillover.mean() > weak.total_spillover.mean()
        assert strong.network_density.mean() > 0.9

    def test_constant_prices_zero_spillover_without_error(self):
        prices = np.full((40, 3), 100.0)
        result = compute_dynamic_spillover(prices, window_size=20)
        np.testing.assert_array_equal(result.total_spillover, 0.0)
        assert result.degraded_windows == list(range(result.n_windows))

    def test_degenerate_window_is_local(self):
        prices = correlated_prices(100, 2)
        prices[:30] = 100.0  # first 29 returns are zero
        result = compute_dynamic_spillover(prices, window_size=20)
        assert 0 in result.degraded_windows
        assert result.n_windows - 1 not in result.degraded_windows

    def test_thread_pool_matches_sequential(self):
        prices = correlated_prices(150, 4)
        seq = compute_dynamic_spillover(prices, window_size=40)
        par = compute_dynamic_spillover(prices, window_size=40, max_workers=4)
        np.testing.assert_array_equal(seq.total_spillover, par.total_spillover)
        np.testing.assert_array_equal(seq.matrices, par.matrices)

    def test_dataframe_names(self):
        frame = pd.DataFrame(correlated_prices(80, 2), columns=['x', 'y'])
        result = compute_dynamic_spillover(frame, window_size=30)
        assert result.asset_names == ['x', 'y']
        assert list(result.asset_stats().index) == ['x', 'y']

    def test_frames_and_breaks(self):
        result = compute_dynamic_spillover(correlated_prices(), window_size=30)
        frame = result.to_frame()
        assert len(frame) == result.n_windows
        assert frame.index.name == 'window_end'
        breaks = result.structural_breaks()
        assert set(breaks) == {'density', 'clustering'}
        np.testing.assert_allclose(result.net_spillover,
                                   result.directional_to - result.directional_from)
        assert result.average_pairwise_spillover().shape == (result.n_windows,)

    @pytest.mark.parametrize('window_size', [2, 0, 500])
    def test_invalid_window(self, window_size):
        with pytest.raises(ConfigurationError, match="window_size"):
            compute_dynamic_spillover(correlated_prices(100), window_size=window_size)

    @pytest.mark.parametrize('alpha', [0.0, 1.0, 1.5])
    def test_invalid_significance(self, alpha):
        with pytest.raises(ConfigurationError, match="significance_level"):
            compute_dynamic_spillover(correlated_prices(100), window_size=20,
                                      significance_level=alpha)

    def test_single_asset_rejected(self):
        with pytest.raises(DataShapeError, match="2 assets"):
            compute_dynamic_spillover(correlated_prices(100, 1), window_size=20)

    def test_non_positive_prices_rejected(self):
        prices = correlated_prices(100, 2)
        prices[10, 0] = -1.0
        with pytest.raises(DataShapeError, match="positive"):
            compute_dynamic_spillover(prices, window_size=20)
