"""Species catalog: the ordered mapping from species id to name."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from aptEnvelope.ions._base import IonData


class SpeciesCatalog:
    """
    Ordered, immutable mapping from species id to species name.

    Ids are the 0-based positions of the names, so the catalog order must be
    the one used by the data source for its species ids.

    Parameters
    ----------
    names : sequence of str
        Species names in id order.
    """

    def __init__(self, names: Sequence[str]):
        self._names = tuple(str(name) for name in names)
        if len(set(self._names)) != len(self._names):
            raise ValueError(f"Duplicate species names detected: {list(self._names)!r}")
        self._ids = {name: i for i, name in enumerate(self._names)}

    @classmethod
    def from_ion_data(cls, ion_data: IonData) -> SpeciesCatalog:
        """Build the catalog from a data source's species names."""
        return cls(ion_data.species_names)

    @property
    def names(self) -> tuple[str, ...]:
        """Species names in id order."""
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __getitem__(self, species_id: int) -> str:
        return self._names[species_id]

    def __repr__(self) -> str:
        return f"SpeciesCatalog({list(self._names)!r})"

    def id_of(self, name: str) -> int:
        """
        Return the id of a species name.

        Raises
        ------
        KeyError
            If the name is not in the catalog.
        """
        try:
            return self._ids[name]
        except KeyError:
            raise KeyError(f"Species {name!r} not found in catalog.") from None
