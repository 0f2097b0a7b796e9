"""Tests for the ion data sources."""

import numpy as np
import pytest

from aptEnvelope.ions import IonData, NumpyIonData, UNRANGED


class TestNumpyIonData:
    """Tests for NumpyIonData."""

    def test_basic_attributes(self, clustered, clustered_ion_data):
        assert isinstance(clustered_ion_data, IonData)
        assert clustered_ion_data.ion_count == len(clustered.positions)
        assert clustered_ion_data.species_names == ["Fe", "Cu", "Ni"]

    def test_chunks_cover_every_ion_once(self, clustered):
        ion_data = clustered.ion_data(chunk_size=100)
        chunks = list(ion_data.iter_chunks())
        assert all(len(positions) <= 100 for positions, _ in chunks)
        positions = np.concatenate([p for p, _ in chunks])
        species = np.concatenate([s for _, s in chunks])
        np.testing.assert_array_equal(positions, clustered.positions)
        np.testing.assert_array_equal(species, clustered.species_ids)

    def test_extents(self, clustered_ion_data):
        low, high = clustered_ion_data.extents()
        np.testing.assert_allclose(low, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(high, [10.0, 10.0, 10.0])

    def test_species_counts_skip_unranged(self, clustered, clustered_ion_data):
        counts = clustered_ion_data.species_counts()
        np.testing.assert_array_equal(counts, [clustered.n_fe, clustered.n_cu, 1])

    def test_default_species_counts_matches_override(self, clustered_ion_data):
        """The chunked IonData implementation agrees with the bincount override."""
        counts = IonData.species_counts(clustered_ion_data)
        np.testing.assert_array_equal(counts, clustered_ion_data.species_counts())

    def test_bad_position_shape(self):
        with pytest.raises(ValueError, match='shape'):
            NumpyIonData(np.zeros((3, 2)), np.zeros(3, dtype=int), ["Fe"])

    def test_incommensurate_arrays(self):
        with pytest.raises(ValueError, match='incommensurate'):
            NumpyIonData(np.zeros((3, 3)), np.zeros(2, dtype=int), ["Fe"])

    def test_empty_dataset(self):
        with pytest.raises(ValueError, match='At least one ion'):
            NumpyIonData(np.zeros((0, 3)), np.zeros(0, dtype=int), ["Fe"])

    def test_non_finite_positions(self):
        positions = np.array([[0.0, np.nan, 0.0]])
        with pytest.raises(ValueError, match='finite'):
            NumpyIonData(positions, np.zeros(1, dtype=int), ["Fe"])

    def test_species_missing_from_catalog(self):
        with pytest.raises(ValueError, match='missing from the catalog'):
            NumpyIonData(np.zeros((2, 3)), np.array([0, 3]), ["Fe", "Cu"])

    def test_unranged_sentinel_is_allowed(self):
        ion_data = NumpyIonData(np.zeros((2, 3)), np.array([0, UNRANGED]), ["Fe"])
        np.testing.assert_array_equal(ion_data.species_counts(), [1])

    def test_duplicate_species_names(self):
        with pytest.raises(ValueError, match='Duplicate species names'):
            NumpyIonData(np.zeros((1, 3)), np.zeros(1, dtype=int), ["Fe", "Fe"])

    def test_catalog_too_large(self):
        names = [f"S{i}" for i in range(UNRANGED)]
        with pytest.raises(ValueError, match='At most'):
            NumpyIonData(np.zeros((1, 3)), np.zeros(1, dtype=int), names)

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError, match='chunk_size'):
            NumpyIonData(np.zeros((1, 3)), np.zeros(1, dtype=int), ["Fe"], chunk_size=0)
