"""Tests for aptEnvelope.gyration module."""

import numpy as np
import pytest

from aptEnvelope.gyration import compute_gyration


class TestComputeGyration:
    """Tests for compute_gyration()."""

    def test_cube_corners(self, clustered):
        stats = compute_gyration(clustered.cluster_a, np.full(8, 1))
        assert stats.n_atoms == 8
        np.testing.assert_allclose(stats.centre_of_mass, [2.75, 2.75, 2.75])
        np.testing.assert_allclose(stats.axis_gyration, [0.1, 0.1, 0.1])
        assert stats.radius_of_gyration == pytest.approx(np.sqrt(0.03))

    def test_octahedron(self, clustered):
        stats = compute_gyration(clustered.cluster_b, np.full(6, 1))
        np.testing.assert_allclose(stats.centre_of_mass, [6.75, 6.75, 6.75])
        np.testing.assert_allclose(stats.axis_gyration, np.full(3, np.sqrt(0.0075)))
        assert stats.radius_of_gyration == pytest.approx(0.15)

    def test_radius_combines_axes(self, random_points):
        stats = compute_gyration(random_points, np.zeros(len(random_points), dtype=int))
        assert stats.radius_of_gyration == pytest.approx(
            np.sqrt(np.sum(stats.axis_gyration ** 2))
        )

    def test_single_atom(self):
        stats = compute_gyration(np.array([[1.0, 2.0, 3.0]]), np.array([0]))
        np.testing.assert_allclose(stats.centre_of_mass, [1.0, 2.0, 3.0])
        assert stats.radius_of_gyration == 0.0

    def test_per_species(self):
        positions = np.array([
            [0.0, 0.0, 0.0],
            [2.0, 0.0, 0.0],
            [10.0, 10.0, 10.0],
        ])
        stats = compute_gyration(positions, np.array([1, 1, 3]))
        assert stats.species_counts == {1: 2, 3: 1}
        np.testing.assert_allclose(stats.species_centres[1], [1.0, 0.0, 0.0])
        assert stats.species_gyration[1] == pytest.approx(1.0)
        assert stats.species_gyration[3] == 0.0
        assert 0 not in stats.species_gyration

    def test_precision_far_from_origin(self):
        """Accumulation in double precision survives a large offset in float32 input."""
        offset = np.float32(1000.0)
        positions = (np.array([[-0.1, 0, 0], [0.1, 0, 0]], dtype=np.float32) + offset)
        stats = compute_gyration(positions, np.array([0, 0]))
        assert stats.axis_gyration[0] == pytest.approx(0.1, rel=1e-3)

    def test_empty_cluster(self):
        stats = compute_gyration(np.empty((0, 3)), np.empty(0, dtype=int))
        assert stats.n_atoms == 0
        assert np.isnan(stats.radius_of_gyration)
        assert np.all(np.isnan(stats.centre_of_mass))
