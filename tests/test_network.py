"""Tests for the multilayer agent network builder."""

import networkx as nx
import numpy as np
import pytest

from spillover_abm.agents import Agent
from spillover_abm.exceptions import ConfigurationError
from spillover_abm.network import (
    LAYER_TYPES,
    build_multilayer_network,
    information_similarity,
    layer_metrics,
    trading_similarity,
)
from spillover_abm.population import create_population


def _agent(agent_type, wealth=1000.0, risk=0.5, memory=20):
    return Agent(agent_id=0, agent_type=agent_type, initial_wealth=wealth,
                 current_wealth=wealth, risk_tolerance=risk,
                 trading_frequency=0.5, trend_sensitivity=0.5,
                 noise_tolerance=0.5, memory_length=memory)


@pytest.fixture
def population():
    return create_population(40, rng=np.random.default_rng(42))


class TestSimilarity:
    def test_identical_agents(self):
        a = _agent('momentum')
        assert trading_similarity(a, a) == pytest.approx((0.8 + 1.0 + 1.0) / 3)

    def test_different_types_and_wealth(self):
        a = _agent('momentum', wealth=100.0, risk=0.2)
        b = _agent('noise', wealth=100.0 * np.exp(5), risk=0.9)
        assert trading_similarity(a, b) == pytest.approx((0.2 + 0.0 + 0.3) / 3)

    def test_information_sophistication(self):
        a = _agent('sophisticated', memory=200)
        assert information_similarity(a, a) == pytest.approx(0.9)
        b = _agent('noise', memory=20)
        assert information_similarity(b, b) == pytest.approx(0.3 * 40 / 400)


class TestBuildMultilayerNetwork:
    def test_all_layers(self, population):
        network = build_multilayer_network(population, rng=np.random.default_rng(0))
        assert network.layer_types == list(LAYER_TYPES)
        for name in LAYER_TYPES:
            assert network[name].graph.number_of_nodes() == 40
        node = network['trading'].graph.nodes[3]
        assert node['agent_type'] == population[3].agent_type.value

    def test_information_only(self, population):
        network = build_multilayer_network(population, layer_types=['information'],
                                           rng=np.random.default_rng(0))
        assert network.layer_types == ['information']
        assert network.information is not None

    def test_zero_density_no_edges(self, population):
        network = build_multilayer_network(population, layer_types=['trading'],
                                           density=0.0, rng=np.random.default_rng(0))
        graph = network['trading'].graph
        assert graph.number_of_edges() == 0
        assert np.isnan(network['trading'].metrics['modularity'])

    def test_full_density_bounded_by_similarity(self, population):
        network = build_multilayer_network(population, layer_types=['trading'],
                                           density=1.0, rng=np.random.default_rng(0))
        assert 0 < network['trading'].metrics['density'] < 1

    def test_social_ring_lattice(self):
        pop = create_population(20, rng=np.random.default_rng(1))
        network = build_multilayer_network(pop, layer_types=['social'],
                                           density=0.2, rewiring_probability=0.0,
                                           rng=np.random.default_rng(0))
        layer = network['social']
        assert layer.graph.number_of_edges() == 40
        assert all(d == 4 for _, d in layer.graph.degree())
        assert layer.metrics['clustering'] == pytest.approx(0.5)
        assert layer.neighbors(0) == [1, 2, 18, 19]

    def test_rewiring_keeps_edge_count(self):
        pop = create_population(30, rng=np.random.default_rng(1))
        network = build_multilayer_network(pop, layer_types=['social'],
                                           density=0.2, rewiring_probability=0.5,
                                           rng=np.random.default_rng(3))
        assert network['social'].graph.number_of_edges() == 30 * 3

    def test_interlayer_correlations(self, population):
        network = build_multilayer_network(population, density=0.3,
                                           rng=np.random.default_rng(0))
        corr = network.interlayer_correlations
        assert list(corr.index) == list(LAYER_TYPES)
        np.testing.assert_allclose(np.diag(corr.to_numpy()), 1.0)
        np.testing.assert_allclose(corr.to_numpy(), corr.to_numpy().T)

    def test_reproducible(self, population):
        a = build_multilayer_network(population, rng=np.random.default_rng(7))
        b = build_multilayer_network(population, rng=np.random.default_rng(7))
        for name in LAYER_TYPES:
            assert sorted(a[name].graph.edges()) == sorted(b[name].graph.edges())

    def test_unknown_layer(self, population):
        with pytest.raises(ConfigurationError, match="Unknown network layer"):
            build_multilayer_network(population, layer_types=['trading', 'credit'])

    @pytest.mark.parametrize('density', [-0.1, 1.5])
    def test_invalid_density(self, population, density):
        with pytest.raises(ConfigurationError, match="density"):
            build_multilayer_network(population, density=density)


class TestLayerMetrics:
    def test_disconnected_path_stats_nan(self, population):
        network = build_multilayer_network(population, layer_types=['information'],
                                           density=0.0, rng=np.random.default_rng(0))
        metrics = network['information'].metrics
        assert np.isnan(metrics['average_path_length'])
        assert np.isnan(metrics['diameter'])
        assert metrics['density'] == 0.0

    def test_connected_metrics(self):
        metrics = layer_metrics(nx.complete_graph(5))
        assert metrics['density'] == pytest.approx(1.0)
        assert metrics['clustering'] == pytest.approx(1.0)
        assert metrics['average_path_length'] == pytest.approx(1.0)
        assert metrics['diameter'] == 1
