"""Tests for MarketMaker."""

import numpy as np
import pytest

from spillover_abm.market_maker import MarketMaker


class TestMarketMaker:
    def test_initial_state(self):
        mm = MarketMaker(3, initial_price=100.0)
        np.testing.assert_array_equal(mm.prices, [100.0, 100.0, 100.0])
        assert len(mm.price_history) == 1
        np.testing.assert_array_equal(mm.volume_history[0], np.zeros(3))

    def test_positive_demand_raises_price(self):
        mm = MarketMaker(2)
        mm.update_prices(np.zeros(2), np.array([100.0, 0.0]), n_agents=10)
        assert mm.prices[0] > 100.0
        assert mm.prices[1] == pytest.approx(100.0)

    def test_negative_demand_lowers_price(self):
        mm = MarketMaker(1)
        mm.update_prices(np.zeros(1), np.array([-100.0]), n_agents=10)
        assert mm.prices[0] < 100.0

    def test_linear_impact(self):
        mm = MarketMaker(1)
        # 0.1 * 50 / (10 * 100) = 0.005
        mm.update_prices(np.array([0.01]), np.array([50.0]), n_agents=10)
        assert mm.prices[0] == pytest.approx(100.0 * 1.015)

    def test_price_always_positive(self):
        """Even with extreme negative demand, price stays positive."""
        mm = MarketMaker(2)
        for _ in range(500):
            mm.update_prices(np.array([-0.5, -2.0]),
                             np.array([-1e6, -1e9]), n_agents=10)
        assert np.all(mm.prices > 0)
        np.testing.assert_array_equal(mm.prices, [mm.min_price, mm.min_price])

    def test_custom_price_floor(self):
        mm = MarketMaker(1, initial_price=1.0, min_price=0.5)
        mm.update_prices(np.array([-0.9]), np.zeros(1), n_agents=1)
        assert mm.prices[0] == pytest.approx(0.5)

    def test_floor_applied(self):
        mm = MarketMaker(1)
        mm.update_prices(np.array([-5.0]), np.zeros(1), n_agents=1)
        assert mm.prices[0] == pytest.approx(100.0 * 0.01)

    def test_history_tracking(self):
        mm = MarketMaker(2)
        mm.update_prices(np.zeros(2), np.array([10.0, -4.0]), 100)
        mm.update_prices(np.zeros(2), np.array([-5.0, 2.0]), 100)
        assert len(mm.price_history) == 3
        np.testing.assert_array_equal(mm.volume_history[1], [10.0, 4.0])
        np.testing.assert_array_equal(mm.volume_history[2], [5.0, 2.0])

    def test_history_entries_are_copies(self):
        mm = MarketMaker(1)
        mm.update_prices(np.array([0.1]), np.zeros(1), 1)
        assert mm.price_history[0][0] == pytest.approx(100.0)

    def test_trailing_prices(self):
        mm = MarketMaker(2)
        for r in [0.01, -0.02, 0.03]:
            mm.update_prices(np.full(2, r), np.zeros(2), 10)
        assert mm.trailing_prices(2).shape == (2, 2)
        assert mm.trailing_prices(10).shape == (4, 2)

    def test_custom_impact(self):
        mm = MarketMaker(1, impact_scale=1.0, normalization=1.0)
        mm.update_prices(np.zeros(1), np.array([0.5]), n_agents=10)
        assert mm.prices[0] == pytest.approx(105.0)
