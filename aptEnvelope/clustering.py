"""Connected-component extraction and size filtering of clusters."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import numpy as np

from aptEnvelope.neighbours import NeighbourGraph


def extract_clusters(graph: NeighbourGraph) -> list[np.ndarray]:
    """
    Partition the graph nodes into connected components.

    The lowest-index unvisited node seeds each breadth-first search; the
    nodes are emitted in the order they were visited.

    Parameters
    ----------
    graph : NeighbourGraph
        Adjacency of the selected atoms.

    Returns
    -------
    list of np.ndarray
        One index array per cluster, in discovery order. Every node appears
        in exactly one cluster.
    """
    offsets = graph.offsets
    neighbours = graph.neighbours
    visited = np.zeros(graph.n_nodes, dtype=bool)
    clusters: list[np.ndarray] = []

    for seed in range(graph.n_nodes):
        if visited[seed]:
            continue
        visited[seed] = True
        members = [seed]
        queue = deque([seed])
        while queue:
            node = queue.popleft()
            for nxt in neighbours[offsets[node]:offsets[node + 1]]:
                if not visited[nxt]:
                    visited[nxt] = True
                    members.append(int(nxt))
                    queue.append(nxt)
        clusters.append(np.array(members, dtype=np.int64))

    return clusters


@dataclass
class ClusterFilterResult:
    """
    Outcome of removing small clusters.

    Attributes
    ----------
    clusters : list of np.ndarray
        Surviving clusters, in their original order.
    removed_histogram : dict of int to int
        Number of removed clusters for every size ``1..min_atoms - 1``.
    min_atoms : int
        The size threshold used.
    """

    clusters: list[np.ndarray]
    removed_histogram: dict[int, int] = field(default_factory=dict)
    min_atoms: int = 1

    @property
    def n_removed(self) -> int:
        return sum(self.removed_histogram.values())

    @property
    def atoms_removed(self) -> int:
        return sum(size * count for size, count in self.removed_histogram.items())

    @property
    def atoms_kept(self) -> int:
        return sum(len(cluster) for cluster in self.clusters)

    def summary(self) -> str:
        """Text listing of the removed cluster sizes."""
        lines = [
            f"{self.removed_histogram[size]}\t\t{size} atom clusters"
            for size in range(1, self.min_atoms)
        ]
        lines.append(
            f"{self.n_removed} clusters containing 1 to {self.min_atoms - 1} atoms not included"
        )
        return "\n".join(lines)


def filter_clusters(clusters: list[np.ndarray], min_atoms: int) -> ClusterFilterResult:
    """
    Drop clusters with fewer than ``min_atoms`` atoms.

    Parameters
    ----------
    clusters : list of np.ndarray
        Clusters from ``extract_clusters``.
    min_atoms : int
        Smallest cluster size kept.

    Returns
    -------
    ClusterFilterResult
        Survivors plus a histogram of the removed sizes.
    """
    if min_atoms < 1:
        raise ValueError(f"min_atoms must be at least 1, got {min_atoms}")

    histogram = {size: 0 for size in range(1, min_atoms)}
    kept: list[np.ndarray] = []
    for cluster in clusters:
        size = len(cluster)
        if size < min_atoms:
            histogram[size] += 1
        else:
            kept.append(cluster)

    return ClusterFilterResult(clusters=kept, removed_histogram=histogram, min_atoms=min_atoms)
