"""Centre of mass and radius of gyration of clusters."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass
class GyrationStats:
    """
    Spatial spread of one cluster.

    Attributes
    ----------
    n_atoms : int
        Number of cluster members.
    centre_of_mass : np.ndarray
        Mean member position, shape (3,).
    axis_gyration : np.ndarray
        ``sqrt(mean squared deviation)`` along x, y and z.
    radius_of_gyration : float
        ``sqrt(sum of squared deviations over all axes / n_atoms)``.
    species_centres : dict of int to np.ndarray
        Mean position of the members of each species present.
    species_gyration : dict of int to float
        Radius of gyration of each species present, about its own centre.
    species_counts : dict of int to int
        Members per species present.
    """

    n_atoms: int
    centre_of_mass: np.ndarray
    axis_gyration: np.ndarray
    radius_of_gyration: float
    species_centres: dict[int, np.ndarray] = field(default_factory=dict)
    species_gyration: dict[int, float] = field(default_factory=dict)
    species_counts: dict[int, int] = field(default_factory=dict)


def _spread(positions: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Return the mean and the per-axis sum of squared deviations (float64)."""
    centre = positions.mean(axis=0, dtype=np.float64)
    deviation = positions - centre
    return centre, np.einsum('ij,ij->j', deviation, deviation)


def compute_gyration(positions: np.ndarray, species: np.ndarray) -> GyrationStats:
    """
    Centre of mass and radius of gyration of a cluster.

    Sums are accumulated in double precision whatever the storage precision
    of ``positions``; deviations are taken from the already computed mean.

    Parameters
    ----------
    positions : np.ndarray
        Member coordinates, shape (n, 3).
    species : np.ndarray
        Member species ids, shape (n,).

    Returns
    -------
    GyrationStats
        Overall and per-species statistics. An empty cluster yields ``nan``
        everywhere instead of raising.
    """
    positions = np.asarray(positions, dtype=np.float64)
    species = np.asarray(species)
    n_atoms = positions.shape[0]

    if n_atoms == 0:
        return GyrationStats(
            n_atoms=0,
            centre_of_mass=np.full(3, np.nan),
            axis_gyration=np.full(3, np.nan),
            radius_of_gyration=float('nan'),
        )

    centre, sum_sq = _spread(positions)
    stats = GyrationStats(
        n_atoms=n_atoms,
        centre_of_mass=centre,
        axis_gyration=np.sqrt(sum_sq / n_atoms),
        radius_of_gyration=float(np.sqrt(sum_sq.sum() / n_atoms)),
    )

    for species_id in np.unique(species):
        members = positions[species == species_id]
        species_centre, species_sum_sq = _spread(members)
        key = int(species_id)
        stats.species_centres[key] = species_centre
        stats.species_counts[key] = members.shape[0]
        stats.species_gyration[key] = float(np.sqrt(species_sum_sq.sum() / members.shape[0]))

    return stats
