"""Geometry for drawing envelopes: colour palettes, voxel meshes, point clouds."""

from __future__ import annotations

import numpy as np

from aptEnvelope.results import PointCloud, Surface
from aptEnvelope.voxels import Envelope, VoxelGrid

#: Unit-cube corners; corner ``c`` sits at ``((c >> 2) & 1, (c >> 1) & 1, c & 1)``.
CUBE_CORNERS = np.array(
    [[(c >> 2) & 1, (c >> 1) & 1, c & 1] for c in range(8)],
    dtype=np.float64,
)

#: Two triangles per cube face, as indices into ``CUBE_CORNERS``.
CUBE_TRIANGLES = np.array(
    [
        [0, 2, 6], [0, 4, 6],  # front (z = 0)
        [1, 3, 7], [1, 5, 7],  # back (z = 1)
        [2, 3, 7], [2, 6, 7],  # top (y = 1)
        [0, 1, 5], [0, 4, 5],  # bottom (y = 0)
        [0, 2, 3], [0, 1, 3],  # left (x = 0)
        [4, 6, 7], [4, 5, 7],  # right (x = 1)
    ],
    dtype=np.int64,
)


def make_palette(n_colors: int, seed: int = 0) -> np.ndarray:
    """
    Deterministic list of RGB colours.

    Parameters
    ----------
    n_colors : int
        Number of colours.
    seed : int, optional
        Seed of the generator; the same seed always gives the same palette.

    Returns
    -------
    np.ndarray
        ``uint8`` array of shape (n_colors, 3).
    """
    rng = np.random.default_rng(seed)
    return rng.integers(0, 255, size=(n_colors, 3), dtype=np.uint8)


def voxel_mesh(grid: VoxelGrid) -> tuple[np.ndarray, np.ndarray]:
    """
    Cube mesh of the occupied voxels of a grid.

    Every occupied voxel contributes 8 vertices and 12 triangles; shared
    faces are not merged.

    Parameters
    ----------
    grid : VoxelGrid
        Grid to mesh.

    Returns
    -------
    vertices : np.ndarray
        World coordinates, shape (8 * n_occupied, 3).
    triangles : np.ndarray
        Vertex indices, shape (12 * n_occupied, 3).
    """
    cells = np.argwhere(grid.occupancy).astype(np.float64)
    n_cells = cells.shape[0]
    vertices = grid.origin + (cells[:, None, :] + CUBE_CORNERS[None, :, :]) * grid.resolution
    triangles = CUBE_TRIANGLES[None, :, :] + 8 * np.arange(n_cells, dtype=np.int64)[:, None, None]
    return vertices.reshape(-1, 3), triangles.reshape(-1, 3)


def _as_color(color: np.ndarray) -> tuple[int, int, int]:
    return int(color[0]), int(color[1]), int(color[2])


def envelope_surface(envelope: Envelope, ordinal: int, color: np.ndarray) -> Surface:
    """Voxel surface of one envelope."""
    vertices, triangles = voxel_mesh(envelope.grid)
    return Surface(
        name=f"Envelope {ordinal + 1}",
        vertices=vertices,
        triangles=triangles,
        color=_as_color(color),
        group=ordinal,
    )


def envelope_points(envelope: Envelope, ordinal: int, color: np.ndarray) -> PointCloud:
    """Point cloud of the ions captured by one envelope."""
    positions = envelope.positions
    return PointCloud(
        name=f"Envelope {ordinal + 1}",
        x=positions[:, 0].copy(),
        y=positions[:, 1].copy(),
        z=positions[:, 2].copy(),
        color=_as_color(color),
        group=ordinal,
    )
