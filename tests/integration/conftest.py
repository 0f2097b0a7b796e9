"""Shared fixtures and configuration for integration tests."""

import numpy as np
import pytest

from aptEnvelope.ions import NumpyIonData, UNRANGED


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow", default=False):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def precipitate_dataset(n_matrix, n_precipitates, atoms_per_precipitate, box=20.0, seed=0):
    """
    Random matrix with dense spherical solute precipitates.

    Species: 0 = Fe (matrix), 1 = Cu (solute, also dilute in the matrix),
    2 = Mn (inside precipitates only). About 2% of the ions are unranged.
    """
    rng = np.random.default_rng(seed)
    matrix = rng.uniform(0.0, box, size=(n_matrix, 3))
    matrix_species = np.where(rng.random(n_matrix) < 0.005, 1, 0)

    centres = rng.uniform(2.0, box - 2.0, size=(n_precipitates, 3))
    offsets = rng.normal(scale=0.3, size=(n_precipitates, atoms_per_precipitate, 3))
    precipitates = (centres[:, None, :] + offsets).reshape(-1, 3)
    precipitate_species = np.where(rng.random(len(precipitates)) < 0.8, 1, 2)

    positions = np.vstack([matrix, precipitates])
    species = np.concatenate([matrix_species, precipitate_species])
    species[rng.random(len(species)) < 0.02] = UNRANGED
    return NumpyIonData(positions, species, ["Fe", "Cu", "Mn"], chunk_size=5000)


@pytest.fixture(scope="module")
def precipitates():
    """Small precipitate dataset used by the consistency tests."""
    return precipitate_dataset(20_000, 6, 40)


@pytest.fixture(scope="module")
def large_precipitates():
    """Larger precipitate dataset for the slow tests."""
    return precipitate_dataset(400_000, 60, 200, box=50.0, seed=1)
