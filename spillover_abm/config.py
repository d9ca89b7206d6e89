"""Default parameters for the heterogeneous-agent market and spillover engine."""

DEFAULT_PARAMS = {
    # Simulation
    'n_periods': 500,
    'seed': 42,
    'initial_price': 100.0,

    # Population
    'n_agents': 500,
    'behavioral_heterogeneity': 0.7,
    'wealth_distribution': 'pareto',

    # Wealth draws
    'equal_wealth': 1000.0,
    'normal_wealth_mean': 1000.0,
    'normal_wealth_sd': 300.0,
    'wealth_floor': 100.0,
    'pareto_shape': 1.5,

    # Regime process
    'crisis_probability': 0.02,
    'crisis_sentiment_drop': 0.3,
    'recovery_probability': 0.3,
    'recovery_sentiment_gain': 0.2,
    'regime_switch_probability': 0.05,
    'sentiment_perturbation': 0.1,
    'initial_sentiment': 0.5,
    'sentiment_bounds': (0.1, 0.9),
    'regime_multipliers': {1: 0.8, 2: 1.0, 3: 2.5},  # low / normal / crisis

    # Returns and signals
    'return_noise_sigma': 0.001,
    'momentum_window': 10,
    'volatility_window': 5,
    'default_volatility': 0.1,
    'momentum_noise': 0.01,     # scaled by (1 - noise_tolerance)
    'sentiment_noise': 0.1,     # scaled by (1 - noise_tolerance)

    # Decision rules
    'expected_return': 0.001,   # fundamentalist long-run anchor
    'noise_trader_sigma': 0.1,
    'neighbor_weight': 0.3,     # share of neighbour sentiment in the blend

    # Price formation (linear impact)
    'impact_normalization': 100.0,
    'impact_scale': 0.1,
    'min_gross_return': 0.01,
    'min_price': 1e-8,          # absolute floor, prices stay strictly positive

    # Networks
    'network_effects': True,
    'network_density': 0.05,
    'network_min_agents': 10,
    'rewiring_probability': 0.1,

    # Spillover engine
    'window_size': 100,
    'significance_level': 0.05,

    # Contagion detection
    'threshold_quantiles': (0.75, 0.85, 0.90, 0.95),
    'correlation_quantile': 0.85,
    'volatility_quantile': 0.90,
    'min_agreement': 2,
    'ma_short': 5,
    'ma_long': 20,
    'severe_quantile': 0.95,
    'moderate_quantile': 0.85,
}

# Categorical draw over behavioural types, in AgentType declaration order.
TYPE_PROBABILITIES = (0.20, 0.15, 0.20, 0.15, 0.15, 0.15)

# Base behavioural templates before the heterogeneity multiplier.
TYPE_TEMPLATES = {
    'momentum': {
        'risk_tolerance': 0.7, 'trading_frequency': 0.8, 'memory_length': 20,
        'trend_sensitivity': 0.9, 'noise_tolerance': 0.3,
    },
    'contrarian': {
        'risk_tolerance': 0.6, 'trading_frequency': 0.5, 'memory_length': 50,
        'trend_sensitivity': -0.7, 'noise_tolerance': 0.5,
    },
    'fundamentalist': {
        'risk_tolerance': 0.5, 'trading_frequency': 0.3, 'memory_length': 100,
        'trend_sensitivity': 0.2, 'noise_tolerance': 0.7,
    },
    'noise': {
        'risk_tolerance': 0.9, 'trading_frequency': 0.9, 'memory_length': 5,
        'trend_sensitivity': 0.1, 'noise_tolerance': 0.1,
    },
    'herding': {
        'risk_tolerance': 0.6, 'trading_frequency': 0.6, 'memory_length': 15,
        'trend_sensitivity': 0.5, 'noise_tolerance': 0.4,
    },
    'sophisticated': {
        'risk_tolerance': 0.4, 'trading_frequency': 0.4, 'memory_length': 200,
        'trend_sensitivity': 0.6, 'noise_tolerance': 0.8,
    },
}

# Clamp ranges shared by the factory and the Agent record.
PARAM_BOUNDS = {
    'risk_tolerance': (0.1, 1.0),
    'trading_frequency': (0.1, 1.0),
    'trend_sensitivity': (-1.0, 1.0),
    'noise_tolerance': (0.1, 1.0),
}
MIN_MEMORY_LENGTH = 5

WEALTH_DISTRIBUTIONS = ('equal', 'normal', 'pareto')
