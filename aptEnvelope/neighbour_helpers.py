"""
Adjacency construction helpers for the cell-list neighbour search.

This module provides backend-agnostic functions that turn a ``CellList`` into a
compressed sparse row adjacency structure. Two backends are available:
- NumPy: vectorised per neighbour offset, pairs generated with np.repeat
- Numba: JIT-compiled two-pass loops (count degrees, then fill) (default)

Both backends compare each point only against the points of the 27 cells
around its own and return the same edge set, with every row sorted.

Backend selection is controlled by the APTENVELOPE_BACKEND environment variable.
See `aptEnvelope.backends` for configuration details.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from aptEnvelope.backends import get_backend, AVAILABLE_BACKENDS

#: The 27 cell offsets of a neighbourhood, the cell itself included.
NEIGHBOUR_OFFSETS: tuple[tuple[int, int, int], ...] = tuple(
    (ox, oy, oz)
    for ox in (-1, 0, 1)
    for oy in (-1, 0, 1)
    for oz in (-1, 0, 1)
)


def _get_numba_functions() -> Callable:
    """Import and return the Numba backend function."""
    try:
        from aptEnvelope.neighbour_helpers_numba import build_adjacency_numba
        return build_adjacency_numba
    except ImportError as e:
        raise ImportError(
            "Numba backend requested but numba is not installed. "
            "Install with: pip install numba"
        ) from e


def get_backend_functions(backend: str | None = None) -> Callable:
    """
    Get the adjacency builder for the specified backend.

    Parameters
    ----------
    backend : str, optional
        Backend to use: 'numpy' or 'numba'. If not specified, uses the
        APTENVELOPE_BACKEND environment variable, defaulting to 'numba'.

    Returns
    -------
    Callable
        ``build_adjacency(positions, order, starts, occupied, dims, separation_sq)``
        returning ``(offsets, neighbours)``.

    Raises
    ------
    ValueError
        If an unknown backend is specified.
    """
    if backend is None:
        backend = get_backend()

    if backend not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Unknown neighbour backend: {backend!r}. "
            f"Available backends: {sorted(AVAILABLE_BACKENDS)}"
        )

    if backend == 'numba':
        return _get_numba_functions()

    # NumPy backend
    return build_adjacency


def _cell_pair_members(
    order: np.ndarray,
    starts: np.ndarray,
    a_cells: np.ndarray,
    b_cells: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Enumerate every (point in a, point in b) pair for matched cell pairs.

    Parameters
    ----------
    order, starts : np.ndarray
        Cell-list ordering and slice starts.
    a_cells, b_cells : np.ndarray
        Positions in the occupied-cell list; pair ``p`` is
        ``(a_cells[p], b_cells[p])``.

    Returns
    -------
    i, j : np.ndarray
        Point indices of every candidate pair.
    """
    counts = np.diff(starts)
    count_a = counts[a_cells]
    count_b = counts[b_cells]
    pair_counts = count_a * count_b
    total = int(pair_counts.sum())
    if total == 0:
        empty = np.empty(0, dtype=np.int64)
        return empty, empty

    pair = np.repeat(np.arange(a_cells.shape[0]), pair_counts)
    block_start = np.cumsum(pair_counts) - pair_counts
    local = np.arange(total, dtype=np.int64) - block_start[pair]
    width = count_b[pair]

    i = order[starts[a_cells][pair] + local // width]
    j = order[starts[b_cells][pair] + local % width]
    return i, j


def build_adjacency(
    positions: np.ndarray,
    order: np.ndarray,
    starts: np.ndarray,
    occupied: np.ndarray,
    dims: tuple[int, int, int],
    separation_sq: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Build the CSR adjacency of points closer than the separation.

    Parameters
    ----------
    positions : np.ndarray
        Point coordinates, shape (n, 3), float64.
    order, starts, occupied : np.ndarray
        Cell-list arrays (see ``aptEnvelope.binning.CellList``).
    dims : tuple of int
        Cells per axis.
    separation_sq : float
        Squared linking distance. Pairs with ``d^2 <= separation_sq`` are linked.

    Returns
    -------
    offsets : np.ndarray
        Shape (n + 1,); row ``i`` is ``neighbours[offsets[i]:offsets[i + 1]]``.
    neighbours : np.ndarray
        Concatenated, per-row sorted neighbour indices.

    Notes
    -----
    Every ordered cell pair is visited once, so each unordered point pair is
    found once from each side and the adjacency is symmetric by construction.
    Self pairs (a point against itself when a cell is compared with itself)
    are dropped explicitly.
    """
    n = positions.shape[0]
    cx, cy, cz = np.unravel_index(occupied, dims)
    occupied_index = np.arange(occupied.shape[0])

    sources: list[np.ndarray] = []
    targets: list[np.ndarray] = []
    for ox, oy, oz in NEIGHBOUR_OFFSETS:
        nx_ = cx + ox
        ny_ = cy + oy
        nz_ = cz + oz
        inside = (
            (nx_ >= 0) & (nx_ < dims[0])
            & (ny_ >= 0) & (ny_ < dims[1])
            & (nz_ >= 0) & (nz_ < dims[2])
        )
        if not np.any(inside):
            continue
        flat = np.ravel_multi_index((nx_[inside], ny_[inside], nz_[inside]), dims)
        k = np.searchsorted(occupied, flat)
        k_clipped = np.minimum(k, occupied.shape[0] - 1)
        hit = occupied[k_clipped] == flat
        if not np.any(hit):
            continue

        a_cells = occupied_index[inside][hit]
        b_cells = k_clipped[hit]
        i, j = _cell_pair_members(order, starts, a_cells, b_cells)

        keep = i != j
        delta = positions[i] - positions[j]
        keep &= np.einsum('ij,ij->i', delta, delta) <= separation_sq
        sources.append(i[keep])
        targets.append(j[keep])

    if sources:
        src = np.concatenate(sources).astype(np.int64)
        dst = np.concatenate(targets).astype(np.int64)
    else:
        src = np.empty(0, dtype=np.int64)
        dst = np.empty(0, dtype=np.int64)

    by_row = np.lexsort((dst, src))
    offsets = np.zeros(n + 1, dtype=np.int64)
    np.cumsum(np.bincount(src, minlength=n), out=offsets[1:])
    return offsets, dst[by_row]
