"""Tests for the agent population factory."""

import numpy as np
import pandas as pd
import pytest

from spillover_abm.agents import AgentType
from spillover_abm.analytics import gini_coefficient
from spillover_abm.config import TYPE_PROBABILITIES, TYPE_TEMPLATES
from spillover_abm.exceptions import ConfigurationError
from spillover_abm.population import (
    apply_heterogeneity,
    create_population,
    draw_initial_wealth,
    population_from_agents,
)


class TestCreatePopulation:
    def test_size_and_ids(self):
        pop = create_population(50, rng=np.random.default_rng(42))
        assert len(pop) == 50
        assert [a.agent_id for a in pop] == list(range(50))
        assert sum(pop.type_distribution.values()) == 50

    def test_type_proportions_converge(self):
        pop = create_population(20000, rng=np.random.default_rng(42))
        fractions = pop.type_fractions()
        for agent_type, expected in zip(AgentType, TYPE_PROBABILITIES):
            assert fractions[agent_type] == pytest.approx(expected, abs=0.02)

    def test_all_fields_within_bounds(self):
        pop = create_population(500, behavioral_heterogeneity=1.0,
                                rng=np.random.default_rng(1))
        assert all(a.within_bounds() for a in pop)
        assert all(0.001 <= a.transaction_cost_rate <= 0.005 for a in pop)
        assert all(1.0 <= a.leverage_limit <= 3.0 for a in pop)
        assert all(0.0 <= a.social_influence <= 0.5 for a in pop)

    def test_zero_heterogeneity_matches_templates(self):
        pop = create_population(60, behavioral_heterogeneity=0.0,
                                rng=np.random.default_rng(3))
        for agent in pop:
            template = TYPE_TEMPLATES[agent.agent_type.value]
            assert agent.risk_tolerance == pytest.approx(template['risk_tolerance'])
            assert agent.memory_length == template['memory_length']
            assert agent.trend_sensitivity == pytest.approx(
                template['trend_sensitivity'])

    def test_one_shared_multiplier_per_agent(self):
        """All parameters of an agent are scaled by the same factor."""
        pop = create_population(300, behavioral_heterogeneity=0.7,
                                rng=np.random.default_rng(5))
        contrarians = [a for a in pop if a.agent_type is AgentType.CONTRARIAN]
        assert contrarians
        template = TYPE_TEMPLATES['contrarian']
        for agent in contrarians:
            factor = agent.risk_tolerance / template['risk_tolerance']
            assert agent.trading_frequency == pytest.approx(
                template['trading_frequency'] * factor)
            assert agent.noise_tolerance == pytest.approx(
                template['noise_tolerance'] * factor)

    def test_equal_wealth(self):
        pop = create_population(30, wealth_distribution='equal',
                                rng=np.random.default_rng(0))
        np.testing.assert_array_equal(pop.initial_wealth, np.full(30, 1000.0))
        assert pop.wealth_gini == pytest.approx(0.0, abs=1e-12)

    def test_pareto_wealth_skewed(self):
        pop = create_population(1000, wealth_distribution='pareto',
                                rng=np.random.default_rng(0))
        assert pop.initial_wealth.min() >= 100.0
        assert pop.wealth_gini > 0.2
        assert pop.wealth_gini == pytest.approx(gini_coefficient(pop.initial_wealth))

    def test_same_seed_same_population(self):
        a = create_population(40, rng=np.random.default_rng(9)).to_frame()
        b = create_population(40, rng=np.random.default_rng(9)).to_frame()
        pd.testing.assert_frame_equal(a, b)

    def test_to_frame(self):
        frame = create_population(10, rng=np.random.default_rng(2)).to_frame()
        assert len(frame) == 10
        assert {'agent_type', 'risk_tolerance', 'memory_length'} <= set(frame.columns)

    @pytest.mark.parametrize('n_agents', [0, -5, 2.5, True])
    def test_invalid_agent_count(self, n_agents):
        with pytest.raises(ConfigurationError, match="n_agents"):
            create_population(n_agents)

    def test_invalid_heterogeneity(self):
        with pytest.raises(ConfigurationError, match="heterogeneity"):
            create_population(10, behavioral_heterogeneity=1.5)

    def test_unknown_wealth_mode(self):
        with pytest.raises(ConfigurationError, match="lognormal"):
            create_population(10, wealth_distribution='lognormal')


class TestDrawInitialWealth:
    def test_normal_floor(self):
        wealth = draw_initial_wealth(5000, 'normal', np.random.default_rng(0))
        assert wealth.min() >= 100.0
        assert wealth.mean() == pytest.approx(1000.0, rel=0.05)

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            draw_initial_wealth(5, 'uniform', np.random.default_rng(0))


class TestApplyHeterogeneity:
    def test_clamping(self):
        chars = apply_heterogeneity(TYPE_TEMPLATES['noise'], 1.5)
        assert chars['risk_tolerance'] == pytest.approx(1.0)
        assert chars['trading_frequency'] == pytest.approx(1.0)
        assert chars['noise_tolerance'] == pytest.approx(0.15)

    def test_memory_floor(self):
        chars = apply_heterogeneity(TYPE_TEMPLATES['noise'], 0.65)
        assert chars['memory_length'] == 5

    def test_trend_clamped(self):
        chars = apply_heterogeneity({**TYPE_TEMPLATES['momentum'],
                                     'trend_sensitivity': 0.9}, 1.3)
        assert chars['trend_sensitivity'] == pytest.approx(1.0)


class TestPopulationFromAgents:
    def test_wraps_agents(self):
        source = create_population(8, rng=np.random.default_rng(4))
        pop = population_from_agents(list(source), n_assets=3)
        assert len(pop) == 8
        assert pop.n_assets == 3
        assert pop.type_distribution == source.type_distribution
        assert pop[2] is source[2]
