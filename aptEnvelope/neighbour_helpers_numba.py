"""
Numba JIT-compiled adjacency construction.

This module provides the high-performance implementation of the cell-list
neighbour search using Numba's JIT compilation. The graph is built in two
passes over the same loops: the first counts the degree of every point, the
second writes the neighbours into a preallocated CSR array.

Note: We use sequential loops (not prange) because the fill pass advances a
shared per-point write cursor.
"""

from __future__ import annotations

import numpy as np
from numba import jit  # type: ignore[import-untyped]


@jit(nopython=True, cache=True)
def _find_cell(occupied: np.ndarray, flat: int) -> int:
    """Return the position of ``flat`` in the sorted occupied list, or -1."""
    k = np.searchsorted(occupied, flat)
    if k < occupied.shape[0] and occupied[k] == flat:
        return k
    return -1


@jit(nopython=True, cache=True)
def _visit_neighbour_pairs(
    positions: np.ndarray,
    order: np.ndarray,
    starts: np.ndarray,
    occupied: np.ndarray,
    nx: int,
    ny: int,
    nz: int,
    separation_sq: float,
    fill: bool,
    degree: np.ndarray,
    cursor: np.ndarray,
    neighbours: np.ndarray,
) -> None:
    """
    Walk every linked pair within the 27-cell neighbourhoods.

    With ``fill=False`` the degree of each point is incremented; with
    ``fill=True`` each neighbour is written at ``cursor[i]``.
    """
    n_occupied = occupied.shape[0]
    for c in range(n_occupied):
        flat = occupied[c]
        cx = flat // (ny * nz)
        cy = (flat // nz) % ny
        cz = flat % nz

        for ox in range(-1, 2):
            ix = cx + ox
            if ix < 0 or ix >= nx:
                continue
            for oy in range(-1, 2):
                iy = cy + oy
                if iy < 0 or iy >= ny:
                    continue
                for oz in range(-1, 2):
                    iz = cz + oz
                    if iz < 0 or iz >= nz:
                        continue

                    k = _find_cell(occupied, (ix * ny + iy) * nz + iz)
                    if k < 0:
                        continue

                    for a in range(starts[c], starts[c + 1]):
                        i = order[a]
                        xi = positions[i, 0]
                        yi = positions[i, 1]
                        zi = positions[i, 2]
                        for b in range(starts[k], starts[k + 1]):
                            j = order[b]
                            # A point is never its own neighbour
                            if i == j:
                                continue
                            dx = xi - positions[j, 0]
                            dy = yi - positions[j, 1]
                            dz = zi - positions[j, 2]
                            if dx * dx + dy * dy + dz * dz <= separation_sq:
                                if fill:
                                    neighbours[cursor[i]] = j
                                    cursor[i] += 1
                                else:
                                    degree[i] += 1


@jit(nopython=True, cache=True)
def _sort_rows(offsets: np.ndarray, neighbours: np.ndarray) -> None:
    """Sort every CSR row in place."""
    for i in range(offsets.shape[0] - 1):
        lo = offsets[i]
        hi = offsets[i + 1]
        if hi - lo > 1:
            neighbours[lo:hi] = np.sort(neighbours[lo:hi])


def build_adjacency_numba(
    positions: np.ndarray,
    order: np.ndarray,
    starts: np.ndarray,
    occupied: np.ndarray,
    dims: tuple[int, int, int],
    separation_sq: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Numba implementation of CSR adjacency construction.

    See `aptEnvelope.neighbour_helpers.build_adjacency` for full documentation.
    """
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    order = np.ascontiguousarray(order, dtype=np.int64)
    starts = np.ascontiguousarray(starts, dtype=np.int64)
    occupied = np.ascontiguousarray(occupied, dtype=np.int64)
    nx, ny, nz = (int(d) for d in dims)
    n = positions.shape[0]

    degree = np.zeros(n, dtype=np.int64)
    placeholder = np.zeros(0, dtype=np.int64)

    # Pass 1: degrees
    _visit_neighbour_pairs(
        positions, order, starts, occupied, nx, ny, nz,
        float(separation_sq), False, degree, placeholder, placeholder,
    )

    offsets = np.zeros(n + 1, dtype=np.int64)
    np.cumsum(degree, out=offsets[1:])

    # Pass 2: fill
    neighbours = np.empty(offsets[-1], dtype=np.int64)
    cursor = offsets[:-1].copy()
    _visit_neighbour_pairs(
        positions, order, starts, occupied, nx, ny, nz,
        float(separation_sq), True, degree, cursor, neighbours,
    )

    _sort_rows(offsets, neighbours)
    return offsets, neighbours
