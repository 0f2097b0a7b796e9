"""Run configuration for the envelope analysis."""

from __future__ import annotations

import numbers
from collections.abc import Sequence
from dataclasses import dataclass

from aptEnvelope.errors import InvalidInputError

#: Allowed range (nm) for the maximum separation between clustered atoms.
SEPARATION_LIMITS: tuple[float, float] = (0.2, 5.0)

#: Allowed range (nm) for the envelope voxel size.
RESOLUTION_LIMITS: tuple[float, float] = (0.05, 5.0)


def validate_range(name: str, value: float, limits: tuple[float, float]) -> float:
    """Validate that ``value`` lies within the closed interval ``limits``.

    Parameters
    ----------
    name : str
        Option name used in the error message.
    value : float
        Value to check.
    limits : tuple of float
        Inclusive ``(low, high)`` bounds.

    Returns
    -------
    float
        The value as a float.

    Raises
    ------
    InvalidInputError
        If the value is not a finite number inside the bounds.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    low, high = limits
    if not (low <= value <= high):
        raise InvalidInputError(
            f"{name} must lie in [{low}, {high}] nm, got {value}"
        )
    return value


@dataclass(frozen=True)
class EnvelopeOptions:
    """
    Immutable options for one envelope analysis run.

    Parameters
    ----------
    selected_species : str or sequence of str
        1-based catalog indices of the species that seed clustering, either as
        a whitespace separated string (``"2 5 3"``) or as separate tokens.
    max_atom_separation : float
        Largest distance (nm) between two atoms of the same cluster, ``dmax``.
    min_atoms_per_cluster : int
        Clusters with fewer atoms are discarded.
    grid_resolution : float
        Edge length (nm) of the envelope voxels.
    fill_in_grid : bool
        Run the directional sweep-fill on each envelope grid.
    """

    selected_species: str | Sequence[str]
    max_atom_separation: float
    min_atoms_per_cluster: int = 1
    grid_resolution: float = 0.5
    fill_in_grid: bool = False

    def __post_init__(self):
        object.__setattr__(
            self,
            'max_atom_separation',
            validate_range('max_atom_separation', self.max_atom_separation, SEPARATION_LIMITS),
        )
        object.__setattr__(
            self,
            'grid_resolution',
            validate_range('grid_resolution', self.grid_resolution, RESOLUTION_LIMITS),
        )
        if isinstance(self.min_atoms_per_cluster, bool) or not isinstance(self.min_atoms_per_cluster, numbers.Integral):
            raise InvalidInputError(
                f"min_atoms_per_cluster must be an integer, got {self.min_atoms_per_cluster!r}"
            )
        if self.min_atoms_per_cluster < 1:
            raise InvalidInputError(
                f"min_atoms_per_cluster must be at least 1, got {self.min_atoms_per_cluster}"
            )
        object.__setattr__(self, 'min_atoms_per_cluster', int(self.min_atoms_per_cluster))
        object.__setattr__(self, 'fill_in_grid', bool(self.fill_in_grid))

    @property
    def tokens(self) -> tuple[str, ...]:
        """Selection tokens as a tuple of strings."""
        if isinstance(self.selected_species, str):
            return tuple(self.selected_species.split())
        return tuple(str(token) for token in self.selected_species)
