"""
Uniform-grid cell lists for the neighbour search.

Points are binned into cubic cells whose edge equals the clustering
separation, so every neighbour of a point lies in the 27 cells around its own.
Only occupied cells are stored: points are sorted by flat cell id and each
occupied cell owns a contiguous slice of that ordering.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from aptEnvelope.errors import ConfigurationTooFineError

#: Largest number of grid cells a configuration may request.
MAX_GRID_CELLS: int = 120_000_000


def grid_dimensions(
    extent_min: np.ndarray,
    extent_max: np.ndarray,
    cell_size: float,
) -> tuple[int, int, int]:
    """
    Number of cells per axis needed to cover the extents.

    Parameters
    ----------
    extent_min, extent_max : np.ndarray
        Corners of the dataset bounding box, shape (3,).
    cell_size : float
        Cell edge length.

    Returns
    -------
    tuple of int
        ``floor(extent / cell_size) + 1`` for each axis.
    """
    if cell_size <= 0:
        raise ValueError("cell_size must be positive.")
    extent = np.asarray(extent_max, dtype=np.float64) - np.asarray(extent_min, dtype=np.float64)
    if np.any(extent < 0):
        raise ValueError(f"Extents are inverted: min={extent_min}, max={extent_max}")
    nx, ny, nz = (int(v) + 1 for v in np.floor(extent / cell_size))
    return nx, ny, nz


def check_grid_size(dims: tuple[int, int, int], limit: int = MAX_GRID_CELLS) -> int:
    """
    Reject grids with more cells than ``limit``.

    Parameters
    ----------
    dims : tuple of int
        Cells per axis.
    limit : int, optional
        Largest allowed cell count (default ``MAX_GRID_CELLS``).

    Returns
    -------
    int
        The total number of cells.

    Raises
    ------
    ConfigurationTooFineError
        If the grid has more than ``limit`` cells.
    """
    n_cells = dims[0] * dims[1] * dims[2]
    if n_cells > limit:
        raise ConfigurationTooFineError(
            f"Atom separation too fine: a {dims[0]} x {dims[1]} x {dims[2]} grid "
            f"({n_cells} cells) exceeds the limit of {limit}. "
            "Choose a larger separation."
        )
    return n_cells


@dataclass
class CellList:
    """
    Points binned by cell, in compressed form.

    Attributes
    ----------
    dims : tuple of int
        Cells per axis.
    origin : np.ndarray
        World position of the corner of cell (0, 0, 0).
    cell_size : float
        Cell edge length.
    occupied : np.ndarray
        Sorted flat ids (C order over ``dims``) of the occupied cells.
    starts : np.ndarray
        ``order[starts[c]:starts[c + 1]]`` are the points of ``occupied[c]``.
    order : np.ndarray
        Point indices sorted by cell.
    """

    dims: tuple[int, int, int]
    origin: np.ndarray
    cell_size: float
    occupied: np.ndarray
    starts: np.ndarray
    order: np.ndarray

    @property
    def n_points(self) -> int:
        return self.order.shape[0]

    @property
    def n_occupied(self) -> int:
        return self.occupied.shape[0]

    def occupied_cells(self) -> np.ndarray:
        """Integer coordinates of the occupied cells, shape (n_occupied, 3)."""
        return np.column_stack(np.unravel_index(self.occupied, self.dims)).astype(np.int64)

    def members(self, ix: int, iy: int, iz: int) -> np.ndarray:
        """Indices of the points in cell ``(ix, iy, iz)`` (empty if unoccupied)."""
        nx, ny, nz = self.dims
        if not (0 <= ix < nx and 0 <= iy < ny and 0 <= iz < nz):
            return np.empty(0, dtype=np.int64)
        flat = (ix * ny + iy) * nz + iz
        k = np.searchsorted(self.occupied, flat)
        if k == self.n_occupied or self.occupied[k] != flat:
            return np.empty(0, dtype=np.int64)
        return self.order[self.starts[k]:self.starts[k + 1]]

    def as_dict(self) -> dict[tuple[int, int, int], np.ndarray]:
        """Map every occupied cell coordinate to the indices of its points."""
        cells = self.occupied_cells()
        return {
            tuple(int(v) for v in cells[c]): self.order[self.starts[c]:self.starts[c + 1]]
            for c in range(self.n_occupied)
        }


def bin_points(
    positions: np.ndarray,
    cell_size: float,
    extents: tuple[np.ndarray, np.ndarray] | None = None,
    limit: int = MAX_GRID_CELLS,
) -> CellList:
    """
    Bin points into a uniform grid of cubic cells.

    Parameters
    ----------
    positions : np.ndarray
        Point coordinates, shape (n, 3).
    cell_size : float
        Cell edge length; the clustering separation.
    extents : tuple of np.ndarray, optional
        ``(min, max)`` corners of the dataset. Defaults to the extents of
        ``positions``. Points outside are clamped into the boundary cells.
    limit : int, optional
        Largest allowed cell count.

    Returns
    -------
    CellList
        The binned points.

    Raises
    ------
    ConfigurationTooFineError
        If the grid would exceed ``limit`` cells. Raised before any
        per-cell storage is allocated.
    """
    positions = np.asarray(positions, dtype=np.float64)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(f"positions must have shape (n, 3), got {positions.shape}.")

    if extents is None:
        if positions.shape[0] == 0:
            extents = (np.zeros(3), np.zeros(3))
        else:
            extents = (positions.min(axis=0), positions.max(axis=0))
    origin = np.asarray(extents[0], dtype=np.float64)
    dims = grid_dimensions(origin, extents[1], cell_size)
    check_grid_size(dims, limit)

    coords = np.floor((positions - origin) / cell_size).astype(np.int64)
    np.clip(coords, 0, np.array(dims, dtype=np.int64) - 1, out=coords)
    flat = np.ravel_multi_index(coords.T, dims).astype(np.int64)

    order = np.argsort(flat, kind='stable').astype(np.int64)
    occupied, first = np.unique(flat[order], return_index=True)
    starts = np.append(first, positions.shape[0]).astype(np.int64)

    return CellList(
        dims=dims,
        origin=origin,
        cell_size=float(cell_size),
        occupied=occupied.astype(np.int64),
        starts=starts,
        order=order,
    )
