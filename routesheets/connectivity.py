"""
Connectivity of a set of geo-tagged events.

Events are the nodes of a proximity graph where two events are adjacent when
their haversine distance is within a threshold. A group is cohesive when that
graph has a single connected component.
"""

from typing import Sequence
import networkx as nx
import numpy as np

from routesheets.geo import GeoPoint, pairwise_distance_km


def proximity_adjacency(
    points: Sequence[GeoPoint],
    max_distance_m: float,
) -> np.ndarray:
    """
    Boolean adjacency matrix of the proximity graph, without self loops.
    """
    dist_km = pairwise_distance_km(points)
    adjacency = dist_km <= (float(max_distance_m) / 1000.0)
    np.fill_diagonal(adjacency, False)
    return adjacency


def build_proximity_graph(
    points: Sequence[GeoPoint],
    max_distance_m: float,
) -> nx.Graph:
    """
    Undirected graph over the indices of `points`.
    """
    adjacency = proximity_adjacency(points, max_distance_m)
    return nx.from_numpy_array(adjacency.astype(np.int8))


def is_cohesive_group(points: Sequence[GeoPoint], max_distance_m: float) -> bool:
    """
    True when a depth-first traversal from the first point reaches every
    point through hops of at most `max_distance_m` meters. Groups of 0 or 1
    points are cohesive.
    """
    if len(points) < 2:
        return True
    G = build_proximity_graph(points, max_distance_m)
    return len(set(nx.dfs_preorder_nodes(G, 0))) == len(points)
