"""Multilayer agent networks: trading, information and social layers.

Each layer is an undirected ``networkx.Graph`` over agent indices. The
trading and information layers draw every candidate pair independently with
probability ``density * similarity``; the social layer is a ring lattice with
random rewiring (small-world).
"""

import logging
from dataclasses import dataclass

import networkx as nx
import numpy as np
import pandas as pd

from .agents import Agent, AgentType
from .config import DEFAULT_PARAMS
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LAYER_TYPES = ('trading', 'information', 'social')

_SOPHISTICATION = {
    AgentType.SOPHISTICATED: 0.9,
    AgentType.FUNDAMENTALIST: 0.7,
}


@dataclass
class NetworkLayer:
    name: str
    graph: nx.Graph
    metrics: dict

    @property
    def adjacency(self) -> np.ndarray:
        n = self.graph.number_of_nodes()
        return nx.to_numpy_array(self.graph, nodelist=range(n))

    def neighbors(self, node: int) -> list[int]:
        return sorted(self.graph.neighbors(node))


@dataclass
class MultilayerNetwork:
    layers: dict[str, NetworkLayer]
    interlayer_correlations: pd.DataFrame
    n_agents: int
    density: float

    @property
    def layer_types(self) -> list[str]:
        return list(self.layers)

    def __getitem__(self, name: str) -> NetworkLayer:
        return self.layers[name]

    @property
    def information(self) -> NetworkLayer | None:
        return self.layers.get('information')


def trading_similarity(a: Agent, b: Agent) -> float:
    """Mean of type match, log-wealth proximity and risk-tolerance proximity."""
    type_sim = 0.8 if a.agent_type == b.agent_type else 0.2
    wealth_sim = 1 - abs(np.log(max(a.current_wealth, 1e-12))
                         - np.log(max(b.current_wealth, 1e-12))) / 5
    wealth_sim = float(np.clip(wealth_sim, 0.0, 1.0))
    risk_sim = 1 - abs(a.risk_tolerance - b.risk_tolerance)
    return (type_sim + wealth_sim + risk_sim) / 3


def information_similarity(a: Agent, b: Agent) -> float:
    """Sophisticated agents with long memories share more information."""
    soph_a = _SOPHISTICATION.get(a.agent_type, 0.3)
    soph_b = _SOPHISTICATION.get(b.agent_type, 0.3)
    memory_factor = min(1.0, (a.memory_length + b.memory_length) / 400)
    return (soph_a + soph_b) / 2 * memory_factor


def _similarity_graph(agents, similarity, density, rng) -> nx.Graph:
    n = len(agents)
    graph = nx.Graph()
    graph.add_nodes_from(range(n))
    for i in range(n - 1):
        for j in range(i + 1, n):
            if rng.random() < density * similarity(agents[i], agents[j]):
                graph.add_edge(i, j)
    return graph


def _small_world_graph(n: int, density: float, rewiring: float,
                       rng: np.random.Generator) -> nx.Graph:
    graph = nx.Graph()
    graph.add_nodes_from(range(n))
    if n < 2:
        return graph
    k = max(2, int(round(density * n / 2)))
    for i in range(n):
        for j in range(1, k + 1):
            neighbor = (i + j) % n
            if neighbor != i:
                graph.add_edge(i, neighbor)

    for u, v in sorted(graph.edges()):
        if rng.random() >= rewiring:
            continue
        candidates = [w for w in range(n)
                      if w != u and not graph.has_edge(u, w)]
        if not candidates:
            continue
        target = candidates[rng.integers(len(candidates))]
        graph.remove_edge(u, v)
        graph.add_edge(u, target)
    return graph


def layer_metrics(graph: nx.Graph) -> dict:
    """Density, clustering, path statistics and modularity of one layer."""
    n = graph.number_of_nodes()
    connected = n > 0 and nx.is_connected(graph)
    if graph.number_of_edges() > 0:
        communities = nx.community.greedy_modularity_communities(graph)
        modularity = nx.community.modularity(graph, communities)
    else:
        modularity = float('nan')
    return {
        'density': nx.density(graph) if n > 1 else 0.0,
        'clustering': nx.transitivity(graph),
        'average_path_length': (nx.average_shortest_path_length(graph)
                                if connected and n > 1 else float('nan')),
        'diameter': nx.diameter(graph) if connected and n > 1 else float('nan'),
        'modularity': float(modularity),
    }


def build_multilayer_network(agents, layer_types=LAYER_TYPES,
                             density: float | None = None,
                             rng: np.random.Generator | None = None,
                             rewiring_probability: float | None = None
                             ) -> MultilayerNetwork:
    """Build one undirected graph per requested layer over the agents.

    Parameters
    ----------
    agents : sequence of Agent
        Population members; node ``i`` is ``agents[i]``.
    layer_types : iterable of str
        Any of ``'trading'``, ``'information'``, ``'social'``.
    density : float
        Base connection probability in [0, 1].
    rng : numpy Generator, optional
        Source of randomness for edge draws and rewiring.
    """
    agents = list(agents)
    density = DEFAULT_PARAMS['network_density'] if density is None else density
    if rewiring_probability is None:
        rewiring_probability = DEFAULT_PARAMS['rewiring_probability']
    if not 0.0 <= density <= 1.0:
        raise ConfigurationError(f"density must lie in [0, 1], got {density}")
    layer_types = list(layer_types)
    unknown = set(layer_types) - set(LAYER_TYPES)
    if unknown:
        raise ConfigurationError(
            f"Unknown network layer(s) {sorted(unknown)}; "
            f"expected any of {LAYER_TYPES}")

    rng = rng or np.random.default_rng()
    n = len(agents)
    layers = {}
    for name in layer_types:
        if name == 'trading':
            graph = _similarity_graph(agents, trading_similarity, density, rng)
        elif name == 'information':
            graph = _similarity_graph(agents, information_similarity, density, rng)
        else:
            graph = _small_world_graph(n, density, rewiring_probability, rng)

        nx.set_node_attributes(
            graph, {i: a.agent_type.value for i, a in enumerate(agents)},
            'agent_type')
        nx.set_node_attributes(
            graph, {i: a.current_wealth for i, a in enumerate(agents)}, 'wealth')
        nx.set_node_attributes(
            graph, {i: a.risk_tolerance for i, a in enumerate(agents)},
            'risk_tolerance')

        metrics = layer_metrics(graph)
        layers[name] = NetworkLayer(name=name, graph=graph, metrics=metrics)
        logger.debug("%s layer: %d edges, density=%.3f, clustering=%.3f",
                     name, graph.number_of_edges(), metrics['density'],
                     metrics['clustering'])

    correlations = pd.DataFrame(np.eye(len(layer_types)),
                                index=layer_types, columns=layer_types)
    for i, first in enumerate(layer_types):
        for second in layer_types[i + 1:]:
            a = layers[first].adjacency.ravel()
            b = layers[second].adjacency.ravel()
            if a.std() == 0 or b.std() == 0:
                corr = float('nan')
            else:
                corr = float(np.corrcoef(a, b)[0, 1])
            correlations.loc[first, second] = corr
            correlations.loc[second, first] = corr

    logger.info("Built %d-layer network over %d agents", len(layers), n)
    return MultilayerNetwork(layers=layers,
                             interlayer_correlations=correlations,
                             n_agents=n, density=density)
