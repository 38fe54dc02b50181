"""
===============================================================================
TOPOLOGY ANALYSIS - Instantaneous Network Graph
===============================================================================
Adjacency state of one analysis pass and the graph metrics derived from
it.  Edges are stored in a dense boolean NumPy matrix; ``adj[i, j]`` means
node i reaches node j.  In bidirectional analysis every toggle is mirrored,
so the matrix stays symmetric.

A version counter increases on every edge change.  Metric consumers
compare it against the version they last computed at and skip recomputing
when the topology has not changed.

Metrics
-------
    average degree      -- sum of out-degrees / N
    partitions          -- connected components (union-find)
    partition degree    -- sum over components of size * (N - size)
    min-cut             -- global minimum edge cut, Stoer-Wagner (networkx)
    stability           -- links that are not bridges, i.e. links whose
                           loss alone does not split a partition
    unidirectional      -- one-directional links and their endpoints
===============================================================================
"""

import logging
from typing import Dict, Tuple

import networkx as nx
import numpy as np

from core.data_structures import DisjointSet

logger = logging.getLogger(__name__)


class TopologyGraph:
    """
    Mutable link graph over node indices ``0 .. n-1``.

    Parameters
    ----------
    n : int
        Number of nodes.
    """

    def __init__(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"Node count must be non-negative, got {n}")
        self._adj = np.zeros((n, n), dtype=bool)
        self.version = 0

    # =========================================================================
    # EDGE STATE
    # =========================================================================

    @property
    def node_count(self) -> int:
        return self._adj.shape[0]

    @property
    def adjacency(self) -> np.ndarray:
        """Read-only view of the adjacency matrix."""
        view = self._adj.view()
        view.flags.writeable = False
        return view

    def has_edge(self, i: int, j: int) -> bool:
        return bool(self._adj[i, j])

    def set_edge(self, i: int, j: int, present: bool, mirror: bool = True) -> None:
        """Set the edge i -> j (and j -> i when ``mirror``)."""
        self._adj[i, j] = present
        if mirror:
            self._adj[j, i] = present
        self.version += 1

    def toggle(self, i: int, j: int, mirror: bool = True) -> bool:
        """
        Flip the edge i -> j (and j -> i when ``mirror``).

        Returns
        -------
        bool
            The new state of i -> j.
        """
        present = not self._adj[i, j]
        self.set_edge(i, j, present, mirror)
        return present

    def edge_count(self) -> int:
        """Number of directed edges (an undirected link counts twice)."""
        return int(np.count_nonzero(self._adj))

    def link_count(self) -> int:
        """Number of node pairs connected in at least one direction."""
        return int(np.count_nonzero(np.triu(self._adj | self._adj.T, k=1)))

    def copy(self) -> 'TopologyGraph':
        g = TopologyGraph(0)
        g._adj = self._adj.copy()
        g.version = self.version
        return g

    # =========================================================================
    # DERIVED GRAPHS
    # =========================================================================

    def without_unidirectional(self) -> Tuple['TopologyGraph', Dict[str, int]]:
        """
        Copy of the graph keeping only links present in both directions.

        Returns
        -------
        graph : TopologyGraph
            Symmetric copy; its version equals this graph's version.
        counts : dict
            ``unicnt`` one-directional edges, ``unisrc`` distinct nodes
            that are the source of one, ``unidst`` distinct nodes that are
            the destination of one.
        """
        uni = self._adj & ~self._adj.T
        g = TopologyGraph(0)
        g._adj = self._adj & self._adj.T
        g.version = self.version
        counts = {
            'unicnt': int(np.count_nonzero(uni)),
            'unisrc': int(np.count_nonzero(uni.any(axis=1))),
            'unidst': int(np.count_nonzero(uni.any(axis=0))),
        }
        return g, counts

    def to_networkx(self) -> nx.Graph:
        """Undirected networkx view: a link exists if either direction does."""
        g = nx.Graph()
        g.add_nodes_from(range(self.node_count))
        rows, cols = np.nonzero(np.triu(self._adj | self._adj.T, k=1))
        g.add_edges_from(zip(rows.tolist(), cols.tolist()))
        return g

    # =========================================================================
    # METRICS
    # =========================================================================

    def average_degree(self) -> float:
        n = self.node_count
        if n == 0:
            return 0.0
        return self.edge_count() / n

    def components(self) -> DisjointSet:
        """Union-find over the currently active links."""
        ds = DisjointSet(self.node_count)
        rows, cols = np.nonzero(np.triu(self._adj | self._adj.T, k=1))
        for i, j in zip(rows.tolist(), cols.tolist()):
            ds.union(i, j)
        return ds

    def partitions(self) -> int:
        return self.components().count

    def partition_degree(self) -> int:
        return self.components().partition_degree()

    def min_cut(self) -> int:
        """
        Minimum number of links whose removal splits the network.

        Zero for a network that is already partitioned or has fewer than
        two nodes.
        """
        if self.node_count < 2:
            return 0
        g = self.to_networkx()
        if not nx.is_connected(g):
            return 0
        cut_value, _ = nx.stoer_wagner(g)
        return int(cut_value)

    def stability(self) -> int:
        """Number of links that lie on a cycle (non-bridge links)."""
        g = self.to_networkx()
        bridges = sum(1 for _ in nx.bridges(g))
        return g.number_of_edges() - bridges

    def __repr__(self) -> str:
        return f"TopologyGraph(nodes={self.node_count}, links={self.link_count()})"
