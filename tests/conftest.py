"""Shared fixtures for unit tests."""

import itertools

import numpy as np
import pytest

from aptEnvelope.ions import NumpyIonData, UNRANGED

FE, CU, NI = 0, 1, 2
SPECIES_NAMES = ["Fe", "Cu", "Ni"]


def cube_cluster(centre, half_edge):
    """Eight points on the corners of a cube."""
    corners = np.array(list(itertools.product((-1.0, 1.0), repeat=3)))
    return np.asarray(centre, dtype=float) + half_edge * corners


def octahedron_cluster(centre, radius):
    """Six points on the axes around a centre."""
    offsets = np.vstack([np.eye(3), -np.eye(3)])
    return np.asarray(centre, dtype=float) + radius * offsets


class ClusteredDataset:
    """
    Synthetic reconstruction with two Cu clusters in an Fe lattice.

    - Fe on every integer lattice point of [0, 10]^3 (1331 ions)
    - Cu cluster A: cube corners around (2.75, 2.75, 2.75), half edge 0.1
    - Cu cluster B: octahedron around (6.75, 6.75, 6.75), radius 0.15
    - two isolated Cu ions
    - one Ni ion at the centre of cluster A
    - two unranged ions

    With a 0.5 nm separation and 0.5 nm voxels, envelope A captures the
    8 Cu, the Ni and Fe(3, 3, 3); envelope B captures the 6 Cu and Fe(7, 7, 7).
    """

    def __init__(self):
        grid = np.arange(11, dtype=float)
        lattice = np.array(list(itertools.product(grid, grid, grid)))
        cluster_a = cube_cluster((2.75, 2.75, 2.75), 0.1)
        cluster_b = octahedron_cluster((6.75, 6.75, 6.75), 0.15)
        singles = np.array([[1.5, 8.5, 4.5], [8.5, 1.5, 4.5]])
        nickel = np.array([[2.75, 2.75, 2.75]])
        unranged = np.array([[0.5, 0.5, 0.5], [9.5, 9.5, 9.5]])

        self.positions = np.vstack([lattice, cluster_a, cluster_b, singles, nickel, unranged])
        self.species_ids = np.concatenate([
            np.full(len(lattice), FE),
            np.full(len(cluster_a) + len(cluster_b) + len(singles), CU),
            [NI],
            np.full(len(unranged), UNRANGED),
        ]).astype(np.int64)
        self.cluster_a = cluster_a
        self.cluster_b = cluster_b
        self.n_fe = len(lattice)
        self.n_cu = len(cluster_a) + len(cluster_b) + len(singles)
        self.n_unranged = len(unranged)

    def ion_data(self, chunk_size=1_000_000):
        return NumpyIonData(self.positions, self.species_ids, SPECIES_NAMES, chunk_size=chunk_size)


@pytest.fixture
def clustered():
    """Fixture providing the synthetic two-cluster reconstruction."""
    return ClusteredDataset()


@pytest.fixture
def clustered_ion_data(clustered):
    """Ion data of the two-cluster reconstruction, read in small chunks."""
    return clustered.ion_data(chunk_size=500)


@pytest.fixture
def colinear_positions():
    """Four points on the x axis, 1 nm apart."""
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [2.0, 0.0, 0.0],
        [3.0, 0.0, 0.0],
    ])


@pytest.fixture
def colinear_ion_data(colinear_positions):
    """Four colinear Cu ions in an Fe/Cu catalog."""
    return NumpyIonData(colinear_positions, np.full(4, 1), ["Fe", "Cu"])


@pytest.fixture
def random_points():
    """Reproducible uniform points in a 4 nm box."""
    rng = np.random.default_rng(1234)
    return rng.uniform(0.0, 4.0, size=(400, 3))


def brute_force_pairs(positions, separation):
    """Set of (i, j) pairs, i != j, with squared distance <= separation^2."""
    delta = positions[:, None, :] - positions[None, :, :]
    d2 = np.einsum('ijk,ijk->ij', delta, delta)
    i, j = np.nonzero(d2 <= separation * separation)
    return {(int(a), int(b)) for a, b in zip(i, j) if a != b}


@pytest.fixture
def pairs_within():
    """Fixture providing the brute-force neighbour pair finder."""
    return brute_force_pairs
