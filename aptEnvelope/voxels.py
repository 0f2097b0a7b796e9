"""
Voxel envelopes around clusters.

Each surviving cluster gets a boolean occupancy grid over its bounding box,
padded by one voxel on every side. An optional fill pass closes gaps between
occupied voxels along each axis in turn. The envelope then captures every
ranged ion, cluster member or not, whose voxel is occupied.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from aptEnvelope.statistics import safe_ratio


@dataclass
class VoxelGrid:
    """
    Boolean occupancy grid with a world-space origin.

    Cell ``(i, j, k)`` covers ``origin + (i, j, k) * resolution`` up to one
    resolution further along each axis.

    Attributes
    ----------
    occupancy : np.ndarray
        Boolean array of shape (nx, ny, nz).
    origin : np.ndarray
        World position of the corner of cell (0, 0, 0).
    resolution : float
        Voxel edge length.
    """

    occupancy: np.ndarray
    origin: np.ndarray
    resolution: float

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.occupancy.shape

    @property
    def n_occupied(self) -> int:
        return int(np.count_nonzero(self.occupancy))

    def world_position(self, i: int, j: int, k: int) -> np.ndarray:
        """World position of the corner of cell ``(i, j, k)``."""
        return self.origin + np.array([i, j, k], dtype=np.float64) * self.resolution

    def cell_indices(self, positions: np.ndarray) -> np.ndarray:
        """
        Cell coordinates of ``positions``, clipped to the grid.

        Parameters
        ----------
        positions : np.ndarray
            World coordinates, shape (n, 3).

        Returns
        -------
        np.ndarray
            Integer coordinates, shape (n, 3).
        """
        positions = np.asarray(positions, dtype=np.float64)
        cells = np.floor((positions - self.origin) / self.resolution).astype(np.int64)
        np.clip(cells, 0, np.array(self.shape, dtype=np.int64) - 1, out=cells)
        return cells

    def is_occupied(self, positions: np.ndarray) -> np.ndarray:
        """Boolean mask of the positions whose cell is occupied."""
        cells = self.cell_indices(positions)
        return self.occupancy[cells[:, 0], cells[:, 1], cells[:, 2]]


def padded_bounds(positions: np.ndarray, padding: float) -> tuple[np.ndarray, np.ndarray]:
    """Axis-aligned bounding box of ``positions`` grown by ``padding`` on every side."""
    positions = np.asarray(positions, dtype=np.float64)
    return positions.min(axis=0) - padding, positions.max(axis=0) + padding


def grid_shape(
    box_min: np.ndarray,
    box_max: np.ndarray,
    resolution: float,
) -> tuple[int, int, int]:
    """Cells per axis of an envelope grid: ``ceil(extent / resolution) + 1``."""
    extent = np.asarray(box_max, dtype=np.float64) - np.asarray(box_min, dtype=np.float64)
    nx, ny, nz = (int(v) + 1 for v in np.ceil(extent / resolution))
    return nx, ny, nz


def voxelize(positions: np.ndarray, resolution: float) -> VoxelGrid:
    """
    Mark the voxels holding ``positions`` in a padded grid.

    Parameters
    ----------
    positions : np.ndarray
        Cluster member coordinates, shape (n, 3), n >= 1.
    resolution : float
        Voxel edge length; also the padding on every side.

    Returns
    -------
    VoxelGrid
        Grid with one occupied voxel per distinct member cell.
    """
    if resolution <= 0:
        raise ValueError("resolution must be positive.")
    positions = np.asarray(positions, dtype=np.float64)
    if positions.shape[0] == 0:
        raise ValueError("Cannot voxelize an empty cluster.")

    box_min, box_max = padded_bounds(positions, resolution)
    occupancy = np.zeros(grid_shape(box_min, box_max, resolution), dtype=bool)
    grid = VoxelGrid(occupancy=occupancy, origin=box_min, resolution=float(resolution))

    cells = grid.cell_indices(positions)
    occupancy[cells[:, 0], cells[:, 1], cells[:, 2]] = True
    return grid


def _fill_along_axis(occupancy: np.ndarray, axis: int) -> np.ndarray:
    """Fill every line along ``axis`` between its first and last occupied cell."""
    n = occupancy.shape[axis]
    any_occupied = occupancy.any(axis=axis, keepdims=True)
    first = np.argmax(occupancy, axis=axis, keepdims=True)
    last = n - 1 - np.argmax(np.flip(occupancy, axis=axis), axis=axis, keepdims=True)

    index_shape = [1, 1, 1]
    index_shape[axis] = n
    index = np.arange(n).reshape(index_shape)

    return occupancy | (any_occupied & (index >= first) & (index <= last))


def sweep_fill(occupancy: np.ndarray) -> np.ndarray:
    """
    Close gaps with three cumulative directional sweeps.

    The sweeps run along X, then Y, then Z, each on the result of the
    previous one. For every line along the sweep axis, all cells between the
    lowest and highest occupied index become occupied. This is a per-axis
    convex closure, not a morphological closing.

    Parameters
    ----------
    occupancy : np.ndarray
        Boolean grid of shape (nx, ny, nz). Not modified.

    Returns
    -------
    np.ndarray
        Filled grid; a superset of ``occupancy``.
    """
    filled = np.asarray(occupancy, dtype=bool)
    for axis in (0, 1, 2):
        filled = _fill_along_axis(filled, axis)
    return filled


class BoxQuery:
    """
    Range queries of points inside axis-aligned boxes.

    Points are sorted once by x; a query selects the x slab with a binary
    search and then filters y and z.

    Parameters
    ----------
    positions : np.ndarray
        Point coordinates, shape (n, 3).
    """

    def __init__(self, positions: np.ndarray):
        self.positions = np.asarray(positions, dtype=np.float64)
        self._order = np.argsort(self.positions[:, 0], kind='stable')
        self._sorted_x = self.positions[self._order, 0]

    def rows_in_box(self, box_min: np.ndarray, box_max: np.ndarray) -> np.ndarray:
        """Ascending indices of the points inside the closed box."""
        lo = np.searchsorted(self._sorted_x, box_min[0], side='left')
        hi = np.searchsorted(self._sorted_x, box_max[0], side='right')
        rows = self._order[lo:hi]
        yz = self.positions[rows, 1:]
        inside = np.all((yz >= box_min[1:]) & (yz <= box_max[1:]), axis=1)
        return np.sort(rows[inside])


@dataclass
class Envelope:
    """
    Voxel envelope of one cluster and the ranged ions it captured.

    Attributes
    ----------
    grid : VoxelGrid
        Occupancy grid (after the optional fill).
    box_min, box_max : np.ndarray
        Padded bounding box of the cluster.
    rows : np.ndarray
        Indices into the ranged ion table of the captured ions.
    positions : np.ndarray
        Captured ion positions, shape (n, 3).
    species : np.ndarray
        Captured ion species ids, shape (n,).
    species_counts : np.ndarray
        Captured ions per catalog species.
    """

    grid: VoxelGrid
    box_min: np.ndarray
    box_max: np.ndarray
    rows: np.ndarray
    positions: np.ndarray
    species: np.ndarray
    species_counts: np.ndarray

    @property
    def ion_count(self) -> int:
        return self.rows.shape[0]

    @property
    def counts_by_species(self) -> dict[int, int]:
        """Non-zero captured counts keyed by species id."""
        return {int(s): int(c) for s, c in enumerate(self.species_counts) if c}

    @property
    def ions_per_voxel(self) -> float:
        """Captured ions per occupied voxel; ``nan`` for an empty grid."""
        return float(safe_ratio(self.ion_count, self.grid.n_occupied))


def build_envelope(
    cluster_positions: np.ndarray,
    query: BoxQuery,
    ranged_species: np.ndarray,
    n_species: int,
    resolution: float,
    fill_in_grid: bool = False,
) -> Envelope:
    """
    Build the envelope of one cluster.

    Parameters
    ----------
    cluster_positions : np.ndarray
        Coordinates of the cluster members, shape (n, 3).
    query : BoxQuery
        Box queries over the whole ranged ion population.
    ranged_species : np.ndarray
        Species id of every ranged ion, aligned with ``query.positions``.
    n_species : int
        Catalog size.
    resolution : float
        Voxel edge length.
    fill_in_grid : bool, optional
        Apply ``sweep_fill`` before capturing ions.

    Returns
    -------
    Envelope
        The envelope with its captured ions.
    """
    grid = voxelize(cluster_positions, resolution)
    if fill_in_grid:
        grid.occupancy = sweep_fill(grid.occupancy)
    box_min, box_max = padded_bounds(cluster_positions, resolution)

    candidates = query.rows_in_box(box_min, box_max)
    rows = candidates[grid.is_occupied(query.positions[candidates])]
    species = ranged_species[rows]

    return Envelope(
        grid=grid,
        box_min=box_min,
        box_max=box_max,
        rows=rows,
        positions=query.positions[rows],
        species=species,
        species_counts=np.bincount(species, minlength=n_species).astype(np.int64),
    )
