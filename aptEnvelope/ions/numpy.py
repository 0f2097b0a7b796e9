"""
NumPy array ion data source for aptEnvelope.

This module provides the NumpyIonData class for reconstructions held
directly as NumPy arrays in memory.
"""

from typing import Iterator

import numpy as np

from ._base import IonData, UNRANGED


class NumpyIonData(IonData):
    """
    Represents an atom-probe reconstruction stored directly as NumPy arrays.

    Designed for data already resident in memory, or for synthetic point
    clouds generated numerically.

    Parameters
    ----------
    positions : np.ndarray
        Ion positions of shape ``(ions, 3)`` in nm.
    species_ids : np.ndarray
        Species id per ion, shape ``(ions,)``. Ions outside every range carry
        ``UNRANGED``.
    species_names : list of str
        Catalog names; ``species_names[i]`` is the name of id ``i``.
    chunk_size : int, optional
        Number of ions yielded per chunk by ``iter_chunks`` (default 1,000,000).

    Raises
    ------
    ValueError
        If the arrays are inconsistent or reference ids missing from the
        catalog.
    """

    def __init__(
        self,
        positions: np.ndarray,
        species_ids: np.ndarray,
        species_names: list[str],
        *,
        chunk_size: int = 1_000_000,
    ):
        positions = np.asarray(positions)
        species_ids = np.asarray(species_ids)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (n, 3), got {positions.shape}.")
        if species_ids.shape != (positions.shape[0],):
            raise ValueError("Species id and position arrays are incommensurate.")
        if positions.shape[0] == 0:
            raise ValueError("At least one ion is required.")
        if not np.all(np.isfinite(positions)):
            raise ValueError("Ion positions must be finite.")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer.")

        self.species_names = self._validate_species_names(species_names)
        ranged = species_ids[species_ids != UNRANGED]
        if ranged.size and (ranged.min() < 0 or ranged.max() >= len(self.species_names)):
            raise ValueError("Species ids reference species missing from the catalog.")

        self.positions = positions
        self.species_ids = species_ids.astype(np.int64, copy=False)
        self.chunk_size = int(chunk_size)
        self.ion_count = positions.shape[0]

    def iter_chunks(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Iterate over the in-memory arrays in ``chunk_size`` slices."""
        for start in range(0, self.ion_count, self.chunk_size):
            stop = start + self.chunk_size
            yield self.positions[start:stop], self.species_ids[start:stop]

    def extents(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the (min, max) corners of all ion positions."""
        return self.positions.min(axis=0), self.positions.max(axis=0)

    def species_counts(self) -> np.ndarray:
        """Return the number of ions of every catalog species."""
        ranged = self.species_ids[self.species_ids != UNRANGED]
        return np.bincount(ranged, minlength=len(self.species_names)).astype(np.int64)

