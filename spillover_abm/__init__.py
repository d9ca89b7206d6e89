"""Heterogeneous Agent Market Simulation with Dynamic Spillover Analysis."""

__version__ = "0.1.0"

from .agents import Agent, AgentType, Trader
from .analytics import gini_coefficient
from .config import DEFAULT_PARAMS
from .contagion import (
    ContagionDetector,
    ContagionEpisode,
    ContagionResult,
    Detection,
    Severity,
    detect_contagion_episodes,
)
from .exceptions import (
    ConfigurationError,
    DataShapeError,
    NumericalError,
    SpilloverABMError,
)
from .market_maker import MarketMaker
from .model import MarketSimulator, SimulationResult, simulate_market
from .network import MultilayerNetwork, NetworkLayer, build_multilayer_network
from .pipeline import AnalysisBundle, run_analysis
from .population import Population, create_population, population_from_agents
from .regime import Regime, RegimeProcess
from .spillover import SpilloverResult, compute_dynamic_spillover

__all__ = [
    "Agent",
    "AgentType",
    "AnalysisBundle",
    "ConfigurationError",
    "ContagionDetector",
    "ContagionEpisode",
    "ContagionResult",
    "DEFAULT_PARAMS",
    "DataShapeError",
    "Detection",
    "MarketMaker",
    "MarketSimulator",
    "MultilayerNetwork",
    "NetworkLayer",
    "NumericalError",
    "Population",
    "Regime",
    "RegimeProcess",
    "Severity",
    "SimulationResult",
    "SpilloverABMError",
    "SpilloverResult",
    "Trader",
    "build_multilayer_network",
    "compute_dynamic_spillover",
    "create_population",
    "detect_contagion_episodes",
    "gini_coefficient",
    "population_from_agents",
    "run_analysis",
    "simulate_market",
]
