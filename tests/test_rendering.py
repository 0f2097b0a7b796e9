"""Tests for envelope geometry and colours."""

import numpy as np

from aptEnvelope.rendering import (
    CUBE_CORNERS,
    CUBE_TRIANGLES,
    envelope_points,
    envelope_surface,
    make_palette,
    voxel_mesh,
)
from aptEnvelope.voxels import BoxQuery, VoxelGrid, build_envelope


class TestPalette:
    """Tests for make_palette()."""

    def test_same_seed_same_palette(self):
        np.testing.assert_array_equal(make_palette(5, seed=7), make_palette(5, seed=7))

    def test_different_seed_different_palette(self):
        assert not np.array_equal(make_palette(5, seed=1), make_palette(5, seed=2))

    def test_shape_and_dtype(self):
        palette = make_palette(4)
        assert palette.shape == (4, 3)
        assert palette.dtype == np.uint8

    def test_empty(self):
        assert make_palette(0).shape == (0, 3)


class TestVoxelMesh:
    """Tests for voxel_mesh()."""

    def test_unit_cube_tables(self):
        assert CUBE_CORNERS.shape == (8, 3)
        assert CUBE_TRIANGLES.shape == (12, 3)
        # every corner is used and every face lies on one cube side
        assert set(CUBE_TRIANGLES.ravel()) == set(range(8))
        for triangle in CUBE_TRIANGLES:
            corners = CUBE_CORNERS[triangle]
            assert np.any(np.ptp(corners, axis=0) == 0)

    def test_one_voxel(self):
        occupancy = np.zeros((3, 3, 3), dtype=bool)
        occupancy[1, 2, 0] = True
        grid = VoxelGrid(occupancy, np.array([10.0, 20.0, 30.0]), 0.5)
        vertices, triangles = voxel_mesh(grid)
        assert vertices.shape == (8, 3)
        assert triangles.shape == (12, 3)
        np.testing.assert_allclose(vertices.min(axis=0), [10.5, 21.0, 30.0])
        np.testing.assert_allclose(vertices.max(axis=0), [11.0, 21.5, 30.5])

    def test_counts_scale_with_occupied_voxels(self):
        occupancy = np.zeros((4, 4, 4), dtype=bool)
        occupancy[1:3, 1, 1] = True
        occupancy[2, 2, 2] = True
        vertices, triangles = voxel_mesh(VoxelGrid(occupancy, np.zeros(3), 1.0))
        assert vertices.shape == (24, 3)
        assert triangles.shape == (36, 3)
        assert triangles.max() == 23
        # each voxel references only its own eight vertices
        for v in range(3):
            block = triangles[12 * v:12 * (v + 1)]
            assert block.min() == 8 * v
            assert block.max() == 8 * v + 7


class TestEnvelopeRenderables:
    """Tests for envelope_points() and envelope_surface()."""

    def _envelope(self, clustered):
        ranged = clustered.species_ids != 255
        return build_envelope(
            clustered.cluster_a,
            BoxQuery(clustered.positions[ranged]),
            clustered.species_ids[ranged],
            3,
            0.5,
        )

    def test_points(self, clustered):
        envelope = self._envelope(clustered)
        points = envelope_points(envelope, 0, np.array([1, 2, 3], dtype=np.uint8))
        assert points.name == "Envelope 1"
        assert points.color == (1, 2, 3)
        assert points.group == 0
        assert len(points.x) == envelope.ion_count
        np.testing.assert_allclose(np.column_stack([points.x, points.y, points.z]), envelope.positions)

    def test_surface(self, clustered):
        envelope = self._envelope(clustered)
        surface = envelope_surface(envelope, 2, np.array([200, 100, 0], dtype=np.uint8))
        assert surface.name == "Envelope 3"
        assert surface.group == 2
        assert surface.vertices.shape == (8 * envelope.grid.n_occupied, 3)
        assert all(isinstance(c, int) for c in surface.color)
