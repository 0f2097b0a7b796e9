"""
Base classes for ion data sources in aptEnvelope.

This module defines the abstract base class every data source implements and
the constants shared by all of them.
"""

from abc import ABC, abstractmethod
from typing import Iterator

import numpy as np

#: Species id carried by ions that fall outside every range.
UNRANGED: int = 255


class IonData(ABC):
    """
    Abstract base class defining the interface for ion data sources.

    A data source exposes ion positions and species ids in chunks, the ordered
    species catalog, aggregate per-species counts and the dataset extents.
    The analysis reads every chunk exactly once before clustering starts.

    Required Attributes
    -------------------
    species_names : list of str
        Catalog names; the position in the list is the species id.
    ion_count : int
        Total number of ions, ranged and unranged.
    """

    species_names: list[str]
    ion_count: int

    @staticmethod
    def _validate_species_names(species_names: list[str]) -> list[str]:
        """
        Validate the species catalog.

        Parameters
        ----------
        species_names : list of str
            Names in catalog order.

        Returns
        -------
        list of str
            The validated names.

        Raises
        ------
        ValueError
            If a name is repeated or the catalog would collide with the
            unranged sentinel id.
        """
        names = [str(name) for name in species_names]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate species names detected: {names!r}")
        if len(names) >= UNRANGED:
            raise ValueError(
                f"At most {UNRANGED} species are supported, got {len(names)}."
            )
        return names

    @abstractmethod
    def iter_chunks(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """
        Iterate over the dataset in chunks.

        Yields
        ------
        positions : np.ndarray
            Ion positions for the chunk, shape (n, 3).
        species_ids : np.ndarray
            Species id per ion, shape (n,). ``UNRANGED`` for unranged ions.
        """
        ...

    @abstractmethod
    def extents(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the (min, max) corners of the dataset bounding box."""
        ...

    def species_counts(self) -> np.ndarray:
        """
        Return the number of ions of every catalog species.

        The default implementation performs a pass over the chunks.
        Subclasses holding aggregate counts should override it.

        Returns
        -------
        np.ndarray
            Integer counts of shape ``(len(species_names),)``.
        """
        counts = np.zeros(len(self.species_names), dtype=np.int64)
        for _, species_ids in self.iter_chunks():
            ranged = species_ids[species_ids != UNRANGED]
            counts += np.bincount(ranged, minlength=len(self.species_names))[:len(self.species_names)]
        return counts

