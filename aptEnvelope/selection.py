"""Selection resolution and two-phase ingestion of the ion data source."""

from __future__ import annotations

import re
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from aptEnvelope.errors import ConsistencyWarning, InvalidInputError
from aptEnvelope.ions._base import IonData, UNRANGED

_INTEGER_TOKEN = re.compile(r"[+-]?[0-9]+")


def resolve_selection(tokens: str | Sequence[str], catalog_size: int) -> tuple[int, ...]:
    """
    Turn user tokens into an ordered set of 0-based species ids.

    Parameters
    ----------
    tokens : str or sequence of str
        1-based catalog indices, either whitespace separated in one string
        or as separate tokens.
    catalog_size : int
        Number of species in the catalog.

    Returns
    -------
    tuple of int
        0-based ids in first-occurrence order, without duplicates.

    Raises
    ------
    InvalidInputError
        If a token is not an integer, lies outside ``[1, catalog_size]``, or
        no token is given.
    """
    if isinstance(tokens, str):
        tokens = tokens.split()
    else:
        tokens = [str(token).strip() for token in tokens]

    if not tokens:
        raise InvalidInputError("No species selected. Separate range indices with spaces.")

    resolved: list[int] = []
    for token in tokens:
        if not _INTEGER_TOKEN.fullmatch(token):
            raise InvalidInputError(
                f"Bad range input {token!r}. Separate range indices with spaces."
            )
        index = int(token)
        if index < 1 or index > catalog_size:
            raise InvalidInputError(
                f"Range index {index} is outside the catalog (1 to {catalog_size})."
            )
        if index - 1 not in resolved:
            resolved.append(index - 1)
    return tuple(resolved)


@dataclass
class IonTable:
    """
    Fully materialised ion data for one analysis run.

    All arrays are index aligned: ``species[i]`` is the species of
    ``positions[i]``. Only ranged ions are kept.

    Attributes
    ----------
    positions : np.ndarray
        Ranged ion positions, shape (n_ranged, 3).
    species : np.ndarray
        Species id per ranged ion, shape (n_ranged,).
    selected : np.ndarray
        Rows of ``positions`` whose species is in the selection, in input order.
        Cluster indices refer to positions in this array.
    selection : tuple of int
        The resolved selection.
    ion_count : int
        Number of ions read, ranged and unranged.
    unranged_count : int
        Number of unranged ions read.
    """

    positions: np.ndarray
    species: np.ndarray
    selected: np.ndarray
    selection: tuple[int, ...]
    ion_count: int
    unranged_count: int

    @property
    def ranged_count(self) -> int:
        return self.positions.shape[0]

    @property
    def selected_positions(self) -> np.ndarray:
        return self.positions[self.selected]

    @property
    def selected_species(self) -> np.ndarray:
        return self.species[self.selected]

    def species_totals(self, n_species: int) -> np.ndarray:
        """Ranged ion count per catalog species, shape ``(n_species,)``."""
        counts = np.bincount(self.species, minlength=n_species)
        return counts[:n_species].astype(np.int64, copy=False)


def count_duplicate_positions(positions: np.ndarray) -> int:
    """Return how many rows of ``positions`` repeat an earlier row exactly."""
    if positions.shape[0] < 2:
        return 0
    unique = np.unique(positions, axis=0)
    return positions.shape[0] - unique.shape[0]


def gather_ions(ion_data: IonData, selection: Sequence[int]) -> IonTable:
    """
    Read every chunk of ``ion_data`` once and build the run's ion table.

    Parameters
    ----------
    ion_data : IonData
        Data source to read.
    selection : sequence of int
        Resolved species ids that seed clustering.

    Returns
    -------
    IonTable
        Ranged ions with the selected subset marked.

    Warns
    -----
    ConsistencyWarning
        If ranged ions share identical coordinates. Every such ion is kept.
    """
    selection = tuple(int(s) for s in selection)
    position_chunks: list[np.ndarray] = []
    species_chunks: list[np.ndarray] = []
    ion_count = 0
    unranged_count = 0

    for positions, species_ids in ion_data.iter_chunks():
        positions = np.asarray(positions)
        species_ids = np.asarray(species_ids)
        ion_count += positions.shape[0]
        ranged = species_ids != UNRANGED
        unranged_count += int(np.count_nonzero(~ranged))
        position_chunks.append(positions[ranged])
        species_chunks.append(species_ids[ranged].astype(np.int64, copy=False))

    if position_chunks:
        positions = np.concatenate(position_chunks, axis=0)
        species = np.concatenate(species_chunks)
    else:
        positions = np.empty((0, 3), dtype=np.float64)
        species = np.empty(0, dtype=np.int64)

    duplicates = count_duplicate_positions(positions)
    if duplicates:
        warnings.warn(
            f"{duplicates} ranged ions share coordinates with another ion; "
            "all of them are kept.",
            ConsistencyWarning,
            stacklevel=2,
        )

    selected = np.flatnonzero(np.isin(species, np.array(selection, dtype=np.int64)))

    return IonTable(
        positions=positions,
        species=species,
        selected=selected,
        selection=selection,
        ion_count=ion_count,
        unranged_count=unranged_count,
    )
