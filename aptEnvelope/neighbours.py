"""Neighbour graph over the selected atoms."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import sparse

from aptEnvelope.binning import CellList, bin_points
from aptEnvelope.neighbour_helpers import get_backend_functions


@dataclass
class NeighbourGraph:
    """
    Undirected graph in compressed sparse row form.

    Node ``i`` is the i-th selected atom; its neighbours are
    ``neighbours[offsets[i]:offsets[i + 1]]``. Every edge is stored once per
    endpoint, so ``j`` is a neighbour of ``i`` exactly when ``i`` is a
    neighbour of ``j``.

    Attributes
    ----------
    offsets : np.ndarray
        Row offsets, shape (n_nodes + 1,).
    neighbours : np.ndarray
        Concatenated, per-row sorted neighbour indices.
    """

    offsets: np.ndarray
    neighbours: np.ndarray

    @property
    def n_nodes(self) -> int:
        return self.offsets.shape[0] - 1

    @property
    def n_edges(self) -> int:
        """Number of undirected edges."""
        return self.neighbours.shape[0] // 2

    @property
    def degree(self) -> np.ndarray:
        return np.diff(self.offsets)

    def neighbours_of(self, node: int) -> np.ndarray:
        return self.neighbours[self.offsets[node]:self.offsets[node + 1]]

    def has_edge(self, a: int, b: int) -> bool:
        row = self.neighbours_of(a)
        k = np.searchsorted(row, b)
        return bool(k < row.shape[0] and row[k] == b)

    def to_sparse(self) -> sparse.csr_matrix:
        """Return the adjacency as a boolean ``scipy.sparse.csr_matrix``."""
        data = np.ones(self.neighbours.shape[0], dtype=bool)
        return sparse.csr_matrix(
            (data, self.neighbours, self.offsets),
            shape=(self.n_nodes, self.n_nodes),
        )


def build_neighbour_graph(
    positions: np.ndarray,
    separation: float,
    extents: tuple[np.ndarray, np.ndarray] | None = None,
    backend: str | None = None,
    cell_list: CellList | None = None,
) -> NeighbourGraph:
    """
    Link every pair of points no further apart than ``separation``.

    Points are binned into cells of edge ``separation``; each point is then
    compared only with the points of the 27 cells around its own, which keeps
    the work proportional to the number of points times the local occupancy.

    Parameters
    ----------
    positions : np.ndarray
        Point coordinates, shape (n, 3).
    separation : float
        Linking distance. Points with squared distance <= separation^2 are linked.
    extents : tuple of np.ndarray, optional
        ``(min, max)`` dataset corners used to lay out the cell grid.
    backend : str, optional
        'numpy' or 'numba'. Defaults to the APTENVELOPE_BACKEND setting.
    cell_list : CellList, optional
        Precomputed binning of ``positions`` with cell size ``separation``.

    Returns
    -------
    NeighbourGraph
        The symmetric adjacency of the points.

    Raises
    ------
    ConfigurationTooFineError
        If the cell grid for ``extents`` would be too large.
    """
    if separation <= 0:
        raise ValueError("separation must be positive.")
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    if cell_list is None:
        cell_list = bin_points(positions, separation, extents)

    build_adjacency = get_backend_functions(backend)
    offsets, neighbours = build_adjacency(
        positions,
        cell_list.order,
        cell_list.starts,
        cell_list.occupied,
        cell_list.dims,
        float(separation) * float(separation),
    )
    return NeighbourGraph(offsets=offsets, neighbours=neighbours)
